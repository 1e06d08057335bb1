"""Role-assignment reconciliation.

Turns declared users (a profile name plus explicit assignments) into concrete
``ResolvedAssignment`` records. Every record carries an assignment key derived
only from (principal, role definition, scope), so re-running against the same
declarations always names the same ARM role assignments.

The only side effect is principal creation through the injected
:class:`~fedx.rbac.directory.PrincipalDirectory`. All scope and role
resolution for a user happens before that call, so a malformed declaration
never creates anything.
"""

from __future__ import annotations

import logging
import re
import uuid
import warnings
from collections.abc import Sequence
from dataclasses import dataclass

from ..errors import (
    ConfigurationError,
    DirectoryLookupError,
    MissingScopeParameterError,
    UnknownRoleError,
    UnrecognizedProfileWarning,
)
from ..models.rbac import (
    AssignmentDeclaration,
    ManagedRbacRecord,
    NormalizedUser,
    PrincipalRecord,
    ResolvedAssignment,
    ScopeKind,
    UserDeclaration,
)
from .catalog import DEFAULT_CATALOG, RbacCatalog
from .directory import PrincipalDirectory, generate_initial_credential

logger = logging.getLogger(__name__)

ASSIGNMENT_KEY_NAMESPACE = uuid.UUID("5d1f7c3a-9b2e-4e0c-8f61-2a7d4c9e0b13")

_NON_ALPHANUMERIC = re.compile(r"[^a-zA-Z0-9]")
_LOGICAL_NAME_SEPARATORS = re.compile(r"[@.]")


@dataclass(frozen=True)
class ReconcileContext:
    """Ambient values shared by every declaration in one evaluation."""

    subscription_id: str

    @property
    def subscription_scope(self) -> str:
        return f"/subscriptions/{self.subscription_id}"


def expand_profile(
    profile_name: str | None,
    context: ReconcileContext,
    catalog: RbacCatalog = DEFAULT_CATALOG,
) -> list[AssignmentDeclaration]:
    """Return the preset assignments for ``profile_name``.

    An absent or empty name yields no presets. An unknown name also yields no
    presets and issues a single :class:`UnrecognizedProfileWarning`.
    """

    if not profile_name:
        return []
    preset = catalog.profiles.get(profile_name)
    if preset is None:
        warnings.warn(
            f"Unknown RBAC profile '{profile_name}', no preset assignments will be applied "
            f"(subscription {context.subscription_id}).",
            UnrecognizedProfileWarning,
            stacklevel=2,
        )
        return []
    return list(preset)


def merge_assignments(
    preset: Sequence[AssignmentDeclaration],
    explicit: Sequence[AssignmentDeclaration] | None,
) -> list[AssignmentDeclaration]:
    """Concatenate ``preset`` and ``explicit`` without deduplication."""

    return [*preset, *(explicit or ())]


def resolve_scope(
    assignment: AssignmentDeclaration,
    subscription_id: str,
    *,
    principal_identifier: str = "<unknown>",
) -> str:
    """Return the ARM scope path ``assignment`` applies to."""

    kind = assignment.scope_kind
    if kind is ScopeKind.SUBSCRIPTION:
        return f"/subscriptions/{subscription_id}"
    if kind is ScopeKind.RESOURCE_GROUP:
        if not assignment.resource_group_name:
            raise MissingScopeParameterError(
                principal_identifier, assignment.role_name, kind.value, "resourceGroupName"
            )
        return f"/subscriptions/{subscription_id}/resourceGroups/{assignment.resource_group_name}"
    if not assignment.resource_scope_path:
        raise MissingScopeParameterError(
            principal_identifier, assignment.role_name, kind.value, "scope"
        )
    return assignment.resource_scope_path


def resolve_role_definition(
    subscription_id: str,
    role_name: str,
    catalog: RbacCatalog = DEFAULT_CATALOG,
    *,
    principal_identifier: str | None = None,
) -> str:
    """Return the subscription-scoped role definition path for ``role_name``."""

    role_id = catalog.roles.get(role_name)
    if not role_id:
        raise UnknownRoleError(role_name, principal_identifier)
    return (
        f"/subscriptions/{subscription_id}/providers/Microsoft.Authorization/"
        f"roleDefinitions/{role_id}"
    )


def derive_assignment_key(principal_id: str, role_definition_path: str, scope_path: str) -> str:
    """Return a deterministic GUID naming the (principal, role, scope) assignment."""

    return str(
        uuid.uuid5(ASSIGNMENT_KEY_NAMESPACE, f"{principal_id}|{role_definition_path}|{scope_path}")
    )


def normalize_principal_id(raw_id: str) -> str:
    """Strip any resource path prefix, e.g. ``/users/<guid>`` becomes ``<guid>``."""

    return raw_id.rstrip("/").rsplit("/", 1)[-1] if "/" in raw_id else raw_id


def normalize_user(
    user: UserDeclaration, *, require_initial_credential: bool = False
) -> NormalizedUser:
    """Fill in every optional field of ``user`` that principal creation needs."""

    upn = user.principal_identifier.strip()
    local_part = upn.split("@", 1)[0]
    display_name = user.display_name or local_part
    mail_alias = user.mail_alias or _NON_ALPHANUMERIC.sub("", local_part)
    if not mail_alias:
        raise ConfigurationError(
            f"User '{upn}' has no mailNickname and none can be derived from the UPN."
        )
    if require_initial_credential and not user.initial_credential:
        raise ConfigurationError(
            f"User '{upn}' has no password and rbac.requireInitialCredential is enabled."
        )
    return NormalizedUser(
        principal_identifier=upn,
        profile_name=user.profile_name or None,
        explicit_assignments=tuple(user.explicit_assignments),
        display_name=display_name,
        mail_alias=mail_alias,
        initial_credential=user.initial_credential,
    )


def resolve_or_create_principal(
    user: NormalizedUser,
    directory: PrincipalDirectory,
    *,
    strict_lookup: bool = True,
) -> PrincipalRecord:
    """Return the directory principal for ``user``, creating it when absent."""

    upn = user.principal_identifier
    try:
        existing = directory.lookup(upn)
    except DirectoryLookupError as exc:
        if strict_lookup:
            raise
        logger.warning("%s; treating user as not found", exc)
        existing = None

    if existing is not None:
        logger.info("Using existing user: %s", upn)
        return existing.model_copy(update={"id": normalize_principal_id(existing.id)})

    logger.info("Creating new user: %s", upn)
    created = directory.create(
        upn,
        display_name=user.display_name,
        mail_alias=user.mail_alias,
        credential=user.initial_credential or generate_initial_credential(),
    )
    return created.model_copy(update={"id": normalize_principal_id(created.id)})


def logical_name(principal_identifier: str, assignment: AssignmentDeclaration) -> str:
    """Return the human readable resource name for an assignment."""

    parts = [
        "rbac",
        _LOGICAL_NAME_SEPARATORS.sub("-", principal_identifier),
        assignment.role_name.lower().replace(" ", "-"),
        assignment.scope_kind.value,
        assignment.resource_group_name,
    ]
    return "-".join(part for part in parts if part)


@dataclass(frozen=True)
class _Target:
    declaration: AssignmentDeclaration
    scope_path: str
    role_definition_path: str


class RoleAssignmentReconciler:
    """Map declared users onto resolved, keyed role assignments."""

    def __init__(
        self,
        directory: PrincipalDirectory,
        *,
        catalog: RbacCatalog = DEFAULT_CATALOG,
        strict_lookup: bool = True,
        require_initial_credential: bool = False,
    ) -> None:
        self.directory = directory
        self.catalog = catalog
        self.strict_lookup = strict_lookup
        self.require_initial_credential = require_initial_credential

    def declarations_for(
        self, user: NormalizedUser | UserDeclaration, context: ReconcileContext
    ) -> list[AssignmentDeclaration]:
        preset = expand_profile(user.profile_name, context, self.catalog)
        return merge_assignments(preset, tuple(user.explicit_assignments))

    def _targets(
        self, user: NormalizedUser, context: ReconcileContext
    ) -> list[_Target]:
        targets: list[_Target] = []
        for declaration in self.declarations_for(user, context):
            scope_path = resolve_scope(
                declaration,
                context.subscription_id,
                principal_identifier=user.principal_identifier,
            )
            role_definition_path = resolve_role_definition(
                context.subscription_id,
                declaration.role_name,
                self.catalog,
                principal_identifier=user.principal_identifier,
            )
            targets.append(_Target(declaration, scope_path, role_definition_path))
        return targets

    def _validate(
        self, user: UserDeclaration, context: ReconcileContext
    ) -> tuple[NormalizedUser, list[_Target]]:
        normalized = normalize_user(
            user, require_initial_credential=self.require_initial_credential
        )
        return normalized, self._targets(normalized, context)

    def reconcile_user(
        self, user: UserDeclaration, context: ReconcileContext
    ) -> list[ResolvedAssignment]:
        """Resolve one declaration; nothing is created if any assignment is invalid."""

        return self._resolve(*self._validate(user, context))

    def _resolve(self, user: NormalizedUser, targets: Sequence[_Target]) -> list[ResolvedAssignment]:
        if not targets:
            logger.warning(
                "User '%s' has no assignments after profile + explicit merge; skipping.",
                user.principal_identifier,
            )
            return []
        principal = resolve_or_create_principal(
            user, self.directory, strict_lookup=self.strict_lookup
        )
        resolved: list[ResolvedAssignment] = []
        for target in targets:
            resolved.append(
                ResolvedAssignment(
                    principal_identifier=user.principal_identifier,
                    principal_id=principal.id,
                    role_name=target.declaration.role_name,
                    role_definition_path=target.role_definition_path,
                    scope_kind=target.declaration.scope_kind,
                    scope_path=target.scope_path,
                    assignment_key=derive_assignment_key(
                        principal.id, target.role_definition_path, target.scope_path
                    ),
                    logical_name=logical_name(user.principal_identifier, target.declaration),
                    principal_pending=principal.pending,
                )
            )
        return resolved

    def reconcile(
        self, users: Sequence[UserDeclaration], subscription_id: str
    ) -> list[ResolvedAssignment]:
        """Resolve every user in order.

        All declarations are validated before the first directory call, so a
        malformed stack fails without creating principals.
        """

        if not subscription_id:
            raise ConfigurationError("azure.subscriptionId is required for RBAC reconciliation.")
        context = ReconcileContext(subscription_id)

        seen: set[str] = set()
        validated: list[tuple[NormalizedUser, list[_Target]]] = []
        for user in users:
            normalized, targets = self._validate(user, context)
            key = normalized.principal_identifier.lower()
            if key in seen:
                raise ConfigurationError(
                    f"User '{normalized.principal_identifier}' is declared more than once."
                )
            seen.add(key)
            validated.append((normalized, targets))

        resolved: list[ResolvedAssignment] = []
        for normalized, targets in validated:
            resolved.extend(self._resolve(normalized, targets))
        return resolved


def managed_rbac_report(
    users: Sequence[UserDeclaration],
    subscription_id: str,
    catalog: RbacCatalog = DEFAULT_CATALOG,
) -> list[ManagedRbacRecord]:
    """Return the merged declarations per user for operators and auditors."""

    context = ReconcileContext(subscription_id)
    return [
        ManagedRbacRecord(
            upn=user.principal_identifier,
            profile=user.profile_name or None,
            assignments=merge_assignments(
                expand_profile(user.profile_name, context, catalog), user.explicit_assignments
            ),
        )
        for user in users
    ]


__all__ = [
    "ASSIGNMENT_KEY_NAMESPACE",
    "ReconcileContext",
    "RoleAssignmentReconciler",
    "derive_assignment_key",
    "expand_profile",
    "logical_name",
    "managed_rbac_report",
    "merge_assignments",
    "normalize_principal_id",
    "normalize_user",
    "resolve_or_create_principal",
    "resolve_role_definition",
    "resolve_scope",
]
