"""Pydantic models for Azure Resource Manager role assignments."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class RoleAssignmentProperties(BaseModel):
    """Properties block linking a principal, a role definition and a scope."""

    principal_id: str = Field(alias="principalId")
    role_definition_id: str = Field(alias="roleDefinitionId")
    principal_type: str | None = Field(default=None, alias="principalType")
    scope: str | None = None
    description: str | None = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class RoleAssignment(BaseModel):
    """Role assignment resource returned by ARM."""

    id: str | None = None
    name: str
    type: str | None = None
    properties: RoleAssignmentProperties

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class RoleAssignmentListResult(BaseModel):
    """Container for paged role assignment results."""

    value: list[RoleAssignment] = Field(default_factory=list)
    next_link: str | None = Field(default=None, alias="nextLink")

    model_config = ConfigDict(populate_by_name=True)


class CreateRoleAssignmentProperties(BaseModel):
    principal_id: str = Field(alias="principalId")
    role_definition_id: str = Field(alias="roleDefinitionId")
    principal_type: str = Field(default="User", alias="principalType")
    description: str | None = None

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class CreateRoleAssignmentRequest(BaseModel):
    """Payload used to grant a role to a principal at a given scope."""

    properties: CreateRoleAssignmentProperties

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


__all__ = [
    "RoleAssignmentProperties",
    "RoleAssignment",
    "RoleAssignmentListResult",
    "CreateRoleAssignmentProperties",
    "CreateRoleAssignmentRequest",
]
