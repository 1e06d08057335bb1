"""Typed models for the Microsoft Graph directory resources fedx manages."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class GraphUser(BaseModel):
    """User object returned by ``/users``."""

    id: str
    user_principal_name: str | None = Field(default=None, alias="userPrincipalName")
    display_name: str | None = Field(default=None, alias="displayName")
    mail_nickname: str | None = Field(default=None, alias="mailNickname")
    account_enabled: bool | None = Field(default=None, alias="accountEnabled")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class PasswordProfile(BaseModel):
    password: str = Field(repr=False)
    force_change_password_next_sign_in: bool = Field(
        default=True, alias="forceChangePasswordNextSignIn"
    )

    model_config = ConfigDict(populate_by_name=True)


class CreateUserRequest(BaseModel):
    """Payload for creating a member user."""

    account_enabled: bool = Field(default=True, alias="accountEnabled")
    display_name: str = Field(alias="displayName")
    mail_nickname: str = Field(alias="mailNickname")
    user_principal_name: str = Field(alias="userPrincipalName")
    password_profile: PasswordProfile = Field(alias="passwordProfile")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class ResourceAccess(BaseModel):
    """A single delegated scope (``Scope``) or application role (``Role``)."""

    id: str
    type: str

    model_config = ConfigDict(populate_by_name=True)


class RequiredResourceAccess(BaseModel):
    resource_app_id: str = Field(alias="resourceAppId")
    resource_access: list[ResourceAccess] = Field(default_factory=list, alias="resourceAccess")

    model_config = ConfigDict(populate_by_name=True)


class WebApplication(BaseModel):
    redirect_uris: list[str] = Field(default_factory=list, alias="redirectUris")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Application(BaseModel):
    """Application registration returned by ``/applications``."""

    id: str
    app_id: str = Field(alias="appId")
    display_name: str | None = Field(default=None, alias="displayName")
    sign_in_audience: str | None = Field(default=None, alias="signInAudience")
    web: WebApplication | None = None
    group_membership_claims: str | None = Field(default=None, alias="groupMembershipClaims")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class CreateApplicationRequest(BaseModel):
    """Payload for registering an application."""

    display_name: str = Field(alias="displayName")
    sign_in_audience: str = Field(default="AzureADMyOrg", alias="signInAudience")
    web: WebApplication = Field(default_factory=WebApplication)
    group_membership_claims: str | None = Field(default=None, alias="groupMembershipClaims")
    required_resource_access: list[RequiredResourceAccess] = Field(
        default_factory=list, alias="requiredResourceAccess"
    )

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class ServicePrincipal(BaseModel):
    id: str
    app_id: str = Field(alias="appId")
    display_name: str | None = Field(default=None, alias="displayName")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class PasswordCredential(BaseModel):
    """Client secret returned by ``addPassword``; ``secret_text`` is only present once."""

    key_id: str | None = Field(default=None, alias="keyId")
    display_name: str | None = Field(default=None, alias="displayName")
    end_date_time: str | None = Field(default=None, alias="endDateTime")
    secret_text: str | None = Field(default=None, alias="secretText", repr=False)

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class Group(BaseModel):
    id: str
    display_name: str | None = Field(default=None, alias="displayName")
    security_enabled: bool | None = Field(default=None, alias="securityEnabled")
    mail_enabled: bool | None = Field(default=None, alias="mailEnabled")

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class CreateGroupRequest(BaseModel):
    """Payload for a security-enabled, non mail-enabled group."""

    display_name: str = Field(alias="displayName")
    mail_nickname: str = Field(alias="mailNickname")
    security_enabled: bool = Field(default=True, alias="securityEnabled")
    mail_enabled: bool = Field(default=False, alias="mailEnabled")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


__all__ = [
    "GraphUser",
    "PasswordProfile",
    "CreateUserRequest",
    "ResourceAccess",
    "RequiredResourceAccess",
    "WebApplication",
    "Application",
    "CreateApplicationRequest",
    "ServicePrincipal",
    "PasswordCredential",
    "Group",
    "CreateGroupRequest",
]
