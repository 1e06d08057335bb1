"""Keycloak Admin REST representations for identity brokering."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class IdentityProviderRepresentation(BaseModel):
    """An identity provider instance in a realm."""

    alias: str
    display_name: str | None = Field(default=None, alias="displayName")
    provider_id: str = Field(default="oidc", alias="providerId")
    enabled: bool = True
    trust_email: bool = Field(default=False, alias="trustEmail")
    store_token: bool = Field(default=False, alias="storeToken")
    add_read_token_role_on_create: bool = Field(default=False, alias="addReadTokenRoleOnCreate")
    config: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class IdentityProviderMapperRepresentation(BaseModel):
    """Mapper that imports a claim from the upstream token into a user attribute."""

    id: str | None = None
    name: str
    identity_provider_alias: str = Field(alias="identityProviderAlias")
    identity_provider_mapper: str = Field(
        default="oidc-user-attribute-idp-mapper", alias="identityProviderMapper"
    )
    config: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(populate_by_name=True, extra="allow")


__all__ = ["IdentityProviderRepresentation", "IdentityProviderMapperRepresentation"]
