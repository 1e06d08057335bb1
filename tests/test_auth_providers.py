from __future__ import annotations

import types

import httpx
import pytest

from fedx.auth.azure_ad import AzureADTokenProvider
from fedx.auth.base import EnvironmentTokenProvider, StaticTokenProvider
from fedx.auth.keycloak import KeycloakClientCredentialsProvider
from fedx.errors import AuthError


class StubConfidentialApp:
    instances: list[StubConfidentialApp] = []

    def __init__(self, *, client_id: str, client_credential: str, authority: str) -> None:
        self.client_id = client_id
        self.client_secret = client_credential
        self.authority = authority
        self.requested_scopes: list[str] | None = None
        StubConfidentialApp.instances.append(self)

    def acquire_token_for_client(self, *, scopes: list[str]) -> dict[str, str]:
        self.requested_scopes = list(scopes)
        return {"access_token": "confidential-token"}


class StubPublicApp:
    def __init__(self, client_id: str, authority: str) -> None:
        self.client_id = client_id
        self.authority = authority
        self.flows: list[dict[str, str]] = []

    def get_accounts(self) -> list[dict[str, str]]:
        return []

    def acquire_token_silent(
        self, scopes: list[str], *, account: dict[str, str]
    ) -> dict[str, str] | None:
        return None

    def initiate_device_flow(self, scopes: list[str]) -> dict[str, str]:
        return {"user_code": "ABC", "message": "Go to example"}

    def acquire_token_by_device_flow(self, flow: dict[str, str]) -> dict[str, str]:
        self.flows.append(flow)
        return {"access_token": "device-token"}


@pytest.fixture
def stub_msal(monkeypatch: pytest.MonkeyPatch) -> types.SimpleNamespace:
    StubConfidentialApp.instances = []
    module = types.SimpleNamespace(
        ConfidentialClientApplication=StubConfidentialApp,
        PublicClientApplication=StubPublicApp,
    )
    monkeypatch.setattr("fedx.auth.azure_ad.msal", module, raising=False)
    return module


def test_static_token_provider_returns_constant() -> None:
    provider = StaticTokenProvider("abc123")
    assert provider.get_token() == "abc123"


def test_environment_provider_prefers_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("FEDX_ARM_TOKEN", " env-token ")
    provider = EnvironmentTokenProvider("FEDX_ARM_TOKEN", StaticTokenProvider("fallback"))
    assert provider.get_token() == "env-token"

    monkeypatch.delenv("FEDX_ARM_TOKEN")
    assert provider.get_token() == "fallback"


def test_environment_provider_without_fallback_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("FEDX_ARM_TOKEN", raising=False)
    with pytest.raises(AuthError):
        EnvironmentTokenProvider("FEDX_ARM_TOKEN").get_token()


def test_azure_ad_token_provider_confidential_flow(stub_msal: types.SimpleNamespace) -> None:
    provider = AzureADTokenProvider(
        tenant_id="contoso",
        client_id="app-id",
        scopes=["https://management.azure.com/.default"],
        client_secret="dummy-secret",  # nosec B106
    )
    assert provider.get_token() == "confidential-token"  # nosec B105
    assert provider.get_token() == "confidential-token"  # nosec B105

    (app,) = StubConfidentialApp.instances
    assert app.authority == "https://login.microsoftonline.com/contoso"
    assert app.requested_scopes == ["https://management.azure.com/.default"]


def test_azure_ad_token_provider_device_flow(stub_msal: types.SimpleNamespace) -> None:
    provider = AzureADTokenProvider(
        tenant_id="contoso",
        client_id="app-id",
        scopes=["https://graph.microsoft.com/.default"],
        use_device_code=True,
    )
    assert provider.get_token() == "device-token"  # nosec B105


def test_azure_ad_token_provider_requires_msal(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("fedx.auth.azure_ad.msal", None, raising=False)
    with pytest.raises(AuthError):
        AzureADTokenProvider(tenant_id="contoso", client_id="app-id", scopes=["User.Read"])


def test_keycloak_client_credentials_caches_token(respx_mock) -> None:
    route = respx_mock.post(
        "https://sso.example.com/realms/master/protocol/openid-connect/token"
    ).mock(return_value=httpx.Response(200, json={"access_token": "kc-token", "expires_in": 300}))

    provider = KeycloakClientCredentialsProvider(
        "https://sso.example.com", client_id="fedx-admin", client_secret="shh"  # nosec B106
    )

    assert provider.get_token() == "kc-token"  # nosec B105
    assert provider.get_token() == "kc-token"  # nosec B105
    assert route.call_count == 1
    form = route.calls.last.request.content.decode()
    assert "grant_type=client_credentials" in form
    assert "client_id=fedx-admin" in form


def test_keycloak_client_credentials_failure_is_auth_error(respx_mock) -> None:
    respx_mock.post("https://sso.example.com/realms/ops/protocol/openid-connect/token").mock(
        return_value=httpx.Response(401, json={"error": "unauthorized_client"})
    )
    provider = KeycloakClientCredentialsProvider(
        "https://sso.example.com", client_id="x", client_secret="y", realm="ops"  # nosec B106
    )
    with pytest.raises(AuthError):
        provider.get_token()
