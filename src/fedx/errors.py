from __future__ import annotations
from typing import Any, Optional

class FedxError(Exception):
    """Base error for fedx."""

class AuthError(FedxError):
    pass

class ConfigurationError(FedxError):
    """Raised when a stack file or profile is malformed or incomplete."""

class UnknownRoleError(ConfigurationError):
    def __init__(self, role_name: str, principal: str | None = None) -> None:
        subject = f"User '{principal}' references role" if principal else "Role"
        super().__init__(
            f"{subject} '{role_name}', which is not in the built-in role table; "
            "add it under rbac.roles in the stack file."
        )
        self.principal = principal
        self.role_name = role_name

class MissingScopeParameterError(ConfigurationError):
    def __init__(self, principal: str, role_name: str, scope_kind: str, parameter: str) -> None:
        super().__init__(
            f"User '{principal}' assignment with role '{role_name}' has scopeType "
            f"'{scope_kind}' but no '{parameter}'."
        )
        self.principal = principal
        self.role_name = role_name
        self.scope_kind = scope_kind
        self.parameter = parameter

class DirectoryLookupError(FedxError):
    def __init__(self, identifier: str, reason: str) -> None:
        super().__init__(f"Directory lookup for '{identifier}' failed: {reason}")
        self.identifier = identifier

class ProvisioningError(FedxError):
    """Raised when a provisioning API rejects or conflicts with a declaration."""

class HttpError(FedxError):
    def __init__(self, status_code: int, message: str, *, details: Optional[Any] = None) -> None:
        super().__init__(f"HTTP {status_code}: {message}")
        self.status_code = status_code
        self.details = details

class UnrecognizedProfileWarning(UserWarning):
    """Issued when a user references an RBAC profile that has no preset."""
