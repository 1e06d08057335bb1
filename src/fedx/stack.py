"""Stack files: the YAML document declaring desired federation and RBAC state.

Example::

    azure:
      subscriptionId: 00000000-0000-0000-0000-000000000000
      tenantId: contoso.onmicrosoft.com
    rbac:
      users:
        - upn: alice@contoso.com
          profile: sre
    appRegistration:
      appName: openCenter-idp-integration
    keycloak:
      baseUrl: https://sso.example.com
      realmId: platform
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ConfigurationError
from .models.rbac import RbacSettings
from .rbac.catalog import DEFAULT_CATALOG, RbacCatalog

DEFAULT_SECURITY_GROUPS: tuple[str, ...] = (
    "cluster-admins",
    "read-only",
    "namespace-admins",
    "security-team",
    "observability",
    "platform-team",
    "k8s-ops",
)


class GroupReadPermission(str, Enum):
    """How the broker application is granted ``Group.Read.All`` on Graph."""

    DELEGATED = "delegated"
    APPLICATION = "application"


class AzureSettings(BaseModel):
    subscription_id: str | None = Field(default=None, alias="subscriptionId")
    tenant_id: str | None = Field(default=None, alias="tenantId")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class AppRegistrationSettings(BaseModel):
    """The ``appRegistration`` section."""

    app_name: str = Field(default="openCenter-idp-integration", alias="appName")
    redirect_uri: str | None = Field(default=None, alias="redirectUri")
    secret_lifetime: str = Field(default="2 years", alias="secretLifetime")
    secret_display_name: str = Field(default="Keycloak Secret", alias="secretDisplayName")
    groups: list[str] = Field(default_factory=lambda: list(DEFAULT_SECURITY_GROUPS))
    group_read_permission: GroupReadPermission = Field(
        default=GroupReadPermission.DELEGATED, alias="groupReadPermission"
    )
    group_membership_claims: str | None = Field(
        default="SecurityGroup", alias="groupMembershipClaims"
    )

    model_config = ConfigDict(populate_by_name=True, extra="forbid")


class KeycloakSettings(BaseModel):
    """The ``keycloak`` section."""

    base_url: str = Field(alias="baseUrl")
    realm_id: str = Field(alias="realmId")
    alias: str = "microsoft-entra"
    display_name: str = Field(default="Login with Microsoft", alias="displayName")
    azure_client_id: str | None = Field(default=None, alias="azureClientId")
    azure_tenant_id: str | None = Field(default=None, alias="azureTenantId")
    azure_client_secret_env: str | None = Field(default=None, alias="azureClientSecretEnv")
    default_scopes: str = Field(default="openid profile email", alias="defaultScopes")
    trust_email: bool = Field(default=True, alias="trustEmail")
    admin_realm: str = Field(default="master", alias="adminRealm")

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    @property
    def redirect_uri(self) -> str:
        """Broker endpoint Entra must redirect back to."""

        return f"{self.base_url.rstrip('/')}/realms/{self.realm_id}/broker/{self.alias}/endpoint"

    def resolve_client_secret(self) -> str | None:
        if not self.azure_client_secret_env:
            return None
        return os.getenv(self.azure_client_secret_env) or None


class StackConfig(BaseModel):
    """A complete stack file."""

    azure: AzureSettings = Field(default_factory=AzureSettings)
    rbac: RbacSettings = Field(default_factory=RbacSettings)
    app_registration: AppRegistrationSettings | None = Field(
        default=None, alias="appRegistration"
    )
    keycloak: KeycloakSettings | None = None

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    def catalog(self, base: RbacCatalog = DEFAULT_CATALOG) -> RbacCatalog:
        """Return ``base`` extended with the stack's custom roles and profiles."""

        if not self.rbac.roles and not self.rbac.profiles:
            return base
        return base.extend(roles=self.rbac.roles, profiles=self.rbac.profiles)

    def require_subscription_id(self) -> str:
        if not self.azure.subscription_id:
            raise ConfigurationError("azure.subscriptionId is required.")
        return self.azure.subscription_id

    def require_tenant_id(self) -> str:
        if not self.azure.tenant_id:
            raise ConfigurationError("azure.tenantId is required.")
        return self.azure.tenant_id


def parse_stack(data: Any, *, source: str = "<stack>") -> StackConfig:
    """Validate decoded YAML ``data`` into a :class:`StackConfig`."""

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{source}: expected a mapping at the top level.")
    try:
        return StackConfig.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"{source}: invalid stack file\n{exc}") from exc


def load_stack(path: str | os.PathLike[str]) -> StackConfig:
    """Read and validate the stack file at ``path``."""

    stack_path = Path(path)
    try:
        with stack_path.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle)
    except FileNotFoundError as exc:
        raise ConfigurationError(f"Stack file not found: {stack_path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"{stack_path}: invalid YAML: {exc}") from exc
    return parse_stack(data, source=str(stack_path))


__all__ = [
    "AppRegistrationSettings",
    "AzureSettings",
    "DEFAULT_SECURITY_GROUPS",
    "GroupReadPermission",
    "KeycloakSettings",
    "StackConfig",
    "load_stack",
    "parse_stack",
]
