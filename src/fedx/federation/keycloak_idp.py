"""Keycloak identity provider brokering logins to Entra ID."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..clients.keycloak import KeycloakAdminClient
from ..errors import ConfigurationError
from ..models.keycloak import IdentityProviderMapperRepresentation, IdentityProviderRepresentation
from ..stack import KeycloakSettings

logger = logging.getLogger(__name__)

MICROSOFT_LOGIN_URL = "https://login.microsoftonline.com"
GRAPH_USERINFO_URL = "https://graph.microsoft.com/oidc/userinfo"

# (mapper name, upstream claim, Keycloak user attribute)
ATTRIBUTE_MAPPINGS: tuple[tuple[str, str, str], ...] = (
    ("Import Name", "name", "firstName"),
    ("Import Email", "email", "email"),
    ("Import Surname", "family_name", "lastName"),
)


@dataclass(frozen=True)
class EntraEndpoints:
    authorization_url: str
    token_url: str
    userinfo_url: str
    issuer: str
    jwks_url: str

    @classmethod
    def for_tenant(cls, tenant_id: str) -> EntraEndpoints:
        base = f"{MICROSOFT_LOGIN_URL}/{tenant_id}"
        return cls(
            authorization_url=f"{base}/oauth2/v2.0/authorize",
            token_url=f"{base}/oauth2/v2.0/token",
            userinfo_url=GRAPH_USERINFO_URL,
            issuer=f"{base}/v2.0",
            jwks_url=f"{base}/discovery/v2.0/keys",
        )


@dataclass(frozen=True)
class FederationInputs:
    """Entra values the Keycloak identity provider is configured with."""

    client_id: str
    client_secret: str = field(repr=False)
    tenant_id: str


def resolve_federation_inputs(
    settings: KeycloakSettings,
    *,
    client_id: str | None = None,
    client_secret: str | None = None,
    tenant_id: str | None = None,
) -> FederationInputs:
    """Combine explicit values with the stack's ``keycloak`` section.

    An explicit client id and secret (usually app registration outputs) take
    precedence. ``tenant_id`` is only used when the section omits
    ``azureTenantId``.
    """

    resolved_client_id = client_id or settings.azure_client_id
    resolved_secret = client_secret or settings.resolve_client_secret()
    resolved_tenant = settings.azure_tenant_id or tenant_id
    missing = [
        name
        for name, value in (
            ("keycloak.azureClientId", resolved_client_id),
            ("keycloak.azureClientSecretEnv", resolved_secret),
            ("keycloak.azureTenantId", resolved_tenant),
        )
        if not value
    ]
    if missing:
        raise ConfigurationError(
            "Missing Keycloak federation inputs: " + ", ".join(missing)
        )
    return FederationInputs(
        client_id=str(resolved_client_id),
        client_secret=str(resolved_secret),
        tenant_id=str(resolved_tenant),
    )


def build_identity_provider(
    settings: KeycloakSettings, inputs: FederationInputs
) -> IdentityProviderRepresentation:
    endpoints = EntraEndpoints.for_tenant(inputs.tenant_id)
    return IdentityProviderRepresentation(
        alias=settings.alias,
        display_name=settings.display_name,
        provider_id="oidc",
        enabled=True,
        trust_email=settings.trust_email,
        store_token=False,
        add_read_token_role_on_create=False,
        config={
            "clientId": inputs.client_id,
            "clientSecret": inputs.client_secret,
            "clientAuthMethod": "client_secret_post",
            "authorizationUrl": endpoints.authorization_url,
            "tokenUrl": endpoints.token_url,
            "userInfoUrl": endpoints.userinfo_url,
            "issuer": endpoints.issuer,
            "jwksUrl": endpoints.jwks_url,
            "useJwksUrl": "true",
            "validateSignature": "true",
            "defaultScope": settings.default_scopes,
            "syncMode": "IMPORT",
        },
    )


def build_mappers(alias: str) -> list[IdentityProviderMapperRepresentation]:
    return [
        IdentityProviderMapperRepresentation(
            name=name,
            identity_provider_alias=alias,
            config={"claim": claim, "user.attribute": attribute, "syncMode": "INHERIT"},
        )
        for name, claim, attribute in ATTRIBUTE_MAPPINGS
    ]


def plan_identity_provider(
    settings: KeycloakSettings, inputs: FederationInputs
) -> dict[str, object]:
    """Return the representations a provision run would submit, secret masked."""

    provider = build_identity_provider(settings, inputs)
    provider.config["clientSecret"] = "[secret]"
    return {
        "identityProvider": provider.model_dump(by_alias=True, exclude_none=True),
        "mappers": [
            mapper.model_dump(by_alias=True, exclude_none=True)
            for mapper in build_mappers(settings.alias)
        ],
        "redirectUri": settings.redirect_uri,
    }


@dataclass
class KeycloakFederationResult:
    alias: str
    redirect_uri: str
    identity_provider: str
    mappers: dict[str, str] = field(default_factory=dict)

    def outputs(self) -> dict[str, object]:
        return {
            "identityProviderAlias": self.alias,
            "redirectUri": self.redirect_uri,
            "identityProvider": self.identity_provider,
            "mappers": dict(self.mappers),
        }


class KeycloakFederationProvisioner:
    """Upsert the Entra identity provider and its attribute mappers in a realm."""

    def __init__(self, client: KeycloakAdminClient, settings: KeycloakSettings) -> None:
        self.client = client
        self.settings = settings

    def ensure_identity_provider(self, inputs: FederationInputs) -> str:
        alias = self.settings.alias
        desired = build_identity_provider(self.settings, inputs)
        if self.client.get_identity_provider(alias) is None:
            logger.info("Creating identity provider %s in realm %s", alias, self.settings.realm_id)
            self.client.create_identity_provider(desired)
            return "created"
        logger.info("Updating identity provider %s in realm %s", alias, self.settings.realm_id)
        self.client.update_identity_provider(alias, desired)
        return "updated"

    def ensure_mappers(self) -> dict[str, str]:
        alias = self.settings.alias
        existing = {mapper.name: mapper for mapper in self.client.list_mappers(alias)}
        outcomes: dict[str, str] = {}
        for mapper in build_mappers(alias):
            current = existing.get(mapper.name)
            if current is None or not current.id:
                self.client.create_mapper(alias, mapper)
                outcomes[mapper.name] = "created"
            elif (
                current.config != mapper.config
                or current.identity_provider_mapper != mapper.identity_provider_mapper
            ):
                self.client.update_mapper(alias, current.id, mapper)
                outcomes[mapper.name] = "updated"
            else:
                outcomes[mapper.name] = "unchanged"
        return outcomes

    def provision(self, inputs: FederationInputs) -> KeycloakFederationResult:
        identity_provider = self.ensure_identity_provider(inputs)
        mappers = self.ensure_mappers()
        return KeycloakFederationResult(
            alias=self.settings.alias,
            redirect_uri=self.settings.redirect_uri,
            identity_provider=identity_provider,
            mappers=mappers,
        )


__all__ = [
    "ATTRIBUTE_MAPPINGS",
    "EntraEndpoints",
    "FederationInputs",
    "KeycloakFederationProvisioner",
    "KeycloakFederationResult",
    "build_identity_provider",
    "build_mappers",
    "plan_identity_provider",
    "resolve_federation_inputs",
]
