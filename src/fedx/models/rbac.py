"""Pydantic models for declared RBAC users and the assignments resolved from them."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ScopeKind(str, Enum):
    """Resource-hierarchy boundary a role assignment applies to."""

    SUBSCRIPTION = "subscription"
    RESOURCE_GROUP = "resourceGroup"
    RESOURCE = "resource"


class AssignmentDeclaration(BaseModel):
    """One desired role binding as written in the stack file."""

    role_name: str = Field(alias="roleName", min_length=1)
    scope_kind: ScopeKind = Field(default=ScopeKind.SUBSCRIPTION, alias="scopeType")
    resource_group_name: str | None = Field(default=None, alias="resourceGroupName")
    resource_scope_path: str | None = Field(default=None, alias="scope")

    model_config = ConfigDict(populate_by_name=True, extra="forbid", frozen=True)


class UserDeclaration(BaseModel):
    """A declared user with an optional profile and explicit assignments."""

    principal_identifier: str = Field(alias="upn", min_length=1)
    profile_name: str | None = Field(default=None, alias="profile")
    explicit_assignments: list[AssignmentDeclaration] = Field(
        default_factory=list, alias="assignments"
    )
    display_name: str | None = Field(default=None, alias="displayName")
    mail_alias: str | None = Field(default=None, alias="mailNickname")
    initial_credential: str | None = Field(default=None, alias="password", repr=False)

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class NormalizedUser(BaseModel):
    """A user declaration with every optional creation field defaulted."""

    principal_identifier: str
    profile_name: str | None
    explicit_assignments: tuple[AssignmentDeclaration, ...]
    display_name: str
    mail_alias: str
    initial_credential: str | None = Field(default=None, repr=False)

    model_config = ConfigDict(frozen=True)


class PrincipalRecord(BaseModel):
    """Directory principal resolved for a declared user."""

    id: str
    user_principal_name: str | None = Field(default=None, alias="userPrincipalName")
    display_name: str | None = Field(default=None, alias="displayName")
    pending: bool = False

    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ResolvedAssignment(BaseModel):
    """A concrete (principal, role, scope) triple with its deterministic key."""

    principal_identifier: str
    principal_id: str
    principal_type: str = "User"
    role_name: str
    role_definition_path: str
    scope_kind: ScopeKind
    scope_path: str
    assignment_key: str
    logical_name: str
    principal_pending: bool = False

    model_config = ConfigDict(frozen=True)


class AssignmentOutcome(str, Enum):
    """Result of declaring one resolved assignment to a provisioning sink."""

    CREATED = "created"
    UNCHANGED = "unchanged"
    PLANNED = "planned"


class ManagedRbacRecord(BaseModel):
    """Audit view of one user's merged declarations."""

    upn: str
    profile: str | None = None
    assignments: list[AssignmentDeclaration] = Field(default_factory=list)


class RbacSettings(BaseModel):
    """The ``rbac`` section of a stack file."""

    users: list[UserDeclaration] = Field(default_factory=list)
    strict_lookup: bool = Field(default=True, alias="strictLookup")
    require_initial_credential: bool = Field(default=False, alias="requireInitialCredential")
    roles: dict[str, str] = Field(default_factory=dict)
    profiles: dict[str, list[AssignmentDeclaration]] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


__all__ = [
    "ScopeKind",
    "AssignmentDeclaration",
    "UserDeclaration",
    "NormalizedUser",
    "PrincipalRecord",
    "ResolvedAssignment",
    "AssignmentOutcome",
    "ManagedRbacRecord",
    "RbacSettings",
]
