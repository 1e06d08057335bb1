from __future__ import annotations

import logging
from collections.abc import Iterable
from importlib import import_module
from typing import Any, Protocol, cast

from ..errors import AuthError
from .base import TokenProvider

logger = logging.getLogger(__name__)

GRAPH_SCOPE = "https://graph.microsoft.com/.default"
ARM_SCOPE = "https://management.azure.com/.default"


class _ConfidentialClient(Protocol):
    def acquire_token_for_client(self, *, scopes: Iterable[str]) -> dict[str, Any]: ...


class _PublicClient(Protocol):
    def get_accounts(self) -> list[dict[str, Any]]: ...

    def acquire_token_silent(
        self, scopes: Iterable[str], *, account: dict[str, Any]
    ) -> dict[str, Any] | None: ...

    def initiate_device_flow(self, scopes: Iterable[str]) -> dict[str, Any]: ...

    def acquire_token_by_device_flow(self, flow: dict[str, Any]) -> dict[str, Any]: ...

    def acquire_token_interactive(self, scopes: Iterable[str]) -> dict[str, Any]: ...


class _ConfidentialClientFactory(Protocol):
    def __call__(
        self, *, client_id: str, client_credential: str, authority: str
    ) -> _ConfidentialClient: ...


class _PublicClientFactory(Protocol):
    def __call__(self, client_id: str, authority: str) -> _PublicClient: ...


class _MsalModule(Protocol):
    ConfidentialClientApplication: _ConfidentialClientFactory
    PublicClientApplication: _PublicClientFactory


def _load_msal() -> _MsalModule | None:
    try:
        module = import_module("msal")
    except ImportError:  # pragma: no cover - optional dependency not installed
        return None
    return cast(_MsalModule, module)


msal = _load_msal()


class AzureADTokenProvider(TokenProvider):
    """MSAL-based provider using client credentials, or device code for operators."""

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        scopes: Iterable[str],
        client_secret: str | None = None,
        use_device_code: bool = False,
    ) -> None:
        if msal is None:
            raise AuthError("msal is not installed. Install fedx[auth] to enable Azure AD auth.")
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.scopes = list(scopes)
        self.client_secret = client_secret
        self.use_device_code = use_device_code
        self._confidential: _ConfidentialClient | None = None
        self._public: _PublicClient | None = None

    @property
    def authority(self) -> str:
        return f"https://login.microsoftonline.com/{self.tenant_id}"

    def get_token(self) -> str:
        msal_module = cast(_MsalModule, msal)
        token_result: dict[str, Any] | None
        if self.client_secret:
            if self._confidential is None:
                self._confidential = msal_module.ConfidentialClientApplication(
                    client_id=self.client_id,
                    client_credential=self.client_secret,
                    authority=self.authority,
                )
            token_result = self._confidential.acquire_token_for_client(scopes=self.scopes)
        else:
            if self._public is None:
                self._public = msal_module.PublicClientApplication(
                    self.client_id, authority=self.authority
                )
            token_result = self._acquire_user_token(self._public)
        if not token_result or "access_token" not in token_result:
            error = token_result.get("error_description") if token_result else None
            raise AuthError(f"Failed to acquire token for {self.scopes}: {error or token_result}")
        return str(token_result["access_token"])

    def _acquire_user_token(self, app: _PublicClient) -> dict[str, Any] | None:
        accounts = app.get_accounts()
        if accounts:
            silent_result = app.acquire_token_silent(self.scopes, account=accounts[0])
            if silent_result and "access_token" in silent_result:
                logger.debug("Acquired token silently via cached account")
                return silent_result

        if self.use_device_code:
            logger.info("Starting device code flow for %s", ", ".join(self.scopes))
            flow = app.initiate_device_flow(scopes=self.scopes)
            if "user_code" not in flow:
                raise AuthError(f"Failed to start device flow: {flow.get('error_description')}")
            logger.warning("%s", flow["message"])
            return app.acquire_token_by_device_flow(flow)

        logger.info("Falling back to interactive flow for Azure AD token acquisition")
        return app.acquire_token_interactive(scopes=self.scopes)


__all__ = ["AzureADTokenProvider", "ARM_SCOPE", "GRAPH_SCOPE"]
