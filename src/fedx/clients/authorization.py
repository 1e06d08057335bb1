"""Client bindings for Azure Resource Manager role assignments."""

from __future__ import annotations

from collections.abc import Callable
from types import TracebackType
from typing import Any, cast

from pydantic import BaseModel

from ..http_client import HttpClient
from ..models.authorization import (
    CreateRoleAssignmentRequest,
    RoleAssignment,
    RoleAssignmentListResult,
)

DEFAULT_API_VERSION = "2022-04-01"
ARM_BASE_URL = "https://management.azure.com"


def role_assignment_path(scope: str, assignment_name: str) -> str:
    """Return the ARM resource path of ``assignment_name`` beneath ``scope``."""

    return (
        f"{scope.rstrip('/')}/providers/Microsoft.Authorization/roleAssignments/{assignment_name}"
    )


class ArmAuthorizationClient:
    """Typed wrapper for ``Microsoft.Authorization/roleAssignments``."""

    def __init__(
        self,
        token_getter: Callable[[], str],
        *,
        base_url: str = ARM_BASE_URL,
        api_version: str = DEFAULT_API_VERSION,
    ) -> None:
        self.http = HttpClient(base_url, token_getter=token_getter)
        self.api_version = api_version

    def _with_version(self, extra: dict[str, Any] | None = None) -> dict[str, Any]:
        params: dict[str, Any] = {"api-version": self.api_version}
        if extra:
            params.update(extra)
        return params

    @staticmethod
    def _dump(payload: Any) -> dict[str, Any]:
        if isinstance(payload, BaseModel):
            return payload.model_dump(by_alias=True, exclude_none=True)
        return cast(dict[str, Any], payload)

    def get_role_assignment(self, scope: str, assignment_name: str) -> RoleAssignment | None:
        """Return the assignment named ``assignment_name`` at ``scope`` or ``None``."""

        response = self.http.get_optional(
            role_assignment_path(scope, assignment_name), params=self._with_version()
        )
        if response is None:
            return None
        return RoleAssignment.model_validate(response.json())

    def create_role_assignment(
        self,
        scope: str,
        assignment_name: str,
        request: CreateRoleAssignmentRequest | dict[str, Any],
    ) -> RoleAssignment:
        """Create the assignment ``assignment_name`` at ``scope``."""

        response = self.http.put(
            role_assignment_path(scope, assignment_name),
            params=self._with_version(),
            json=self._dump(request),
        )
        return RoleAssignment.model_validate(response.json())

    def list_role_assignments(
        self, scope: str, *, principal_id: str | None = None
    ) -> list[RoleAssignment]:
        """Return assignments at or above ``scope``, optionally filtered by principal."""

        params: dict[str, Any] = {}
        if principal_id:
            params["$filter"] = f"principalId eq '{principal_id}'"
        path: str | None = f"{scope.rstrip('/')}/providers/Microsoft.Authorization/roleAssignments"
        query: dict[str, Any] | None = self._with_version(params)
        results: list[RoleAssignment] = []
        while path:
            response = self.http.get(path, params=query)
            page = RoleAssignmentListResult.model_validate(response.json())
            results.extend(page.value)
            path = page.next_link
            query = None
        return results

    def delete_role_assignment(self, scope: str, assignment_name: str) -> None:
        """Remove a role assignment."""

        self.http.delete(
            role_assignment_path(scope, assignment_name), params=self._with_version()
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""

        self.http.close()

    def __enter__(self) -> ArmAuthorizationClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


__all__ = ["ArmAuthorizationClient", "role_assignment_path", "DEFAULT_API_VERSION"]
