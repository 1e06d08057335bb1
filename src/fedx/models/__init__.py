"""Re-export typed models for the fedx SDK."""

from __future__ import annotations

from .authorization import (
    CreateRoleAssignmentRequest,
    RoleAssignment,
)
from .graph import (
    Application,
    CreateApplicationRequest,
    CreateGroupRequest,
    CreateUserRequest,
    GraphUser,
    Group,
    PasswordCredential,
    ServicePrincipal,
)
from .keycloak import IdentityProviderMapperRepresentation, IdentityProviderRepresentation
from .rbac import (
    AssignmentDeclaration,
    AssignmentOutcome,
    ManagedRbacRecord,
    NormalizedUser,
    PrincipalRecord,
    RbacSettings,
    ResolvedAssignment,
    ScopeKind,
    UserDeclaration,
)

__all__ = [
    "Application",
    "AssignmentDeclaration",
    "AssignmentOutcome",
    "CreateApplicationRequest",
    "CreateGroupRequest",
    "CreateRoleAssignmentRequest",
    "CreateUserRequest",
    "GraphUser",
    "Group",
    "IdentityProviderMapperRepresentation",
    "IdentityProviderRepresentation",
    "ManagedRbacRecord",
    "NormalizedUser",
    "PasswordCredential",
    "PrincipalRecord",
    "RbacSettings",
    "ResolvedAssignment",
    "RoleAssignment",
    "ScopeKind",
    "ServicePrincipal",
    "UserDeclaration",
]
