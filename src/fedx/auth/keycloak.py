from __future__ import annotations

import logging
import time

from ..errors import AuthError, HttpError
from ..http_client import HttpClient, json_dict
from .base import TokenProvider

logger = logging.getLogger(__name__)

# Refresh this many seconds before the advertised expiry.
_EXPIRY_SKEW = 30.0


class KeycloakClientCredentialsProvider(TokenProvider):
    """OAuth2 client-credentials grant against a Keycloak realm token endpoint."""

    def __init__(
        self,
        base_url: str,
        *,
        client_id: str,
        client_secret: str,
        realm: str = "master",
    ) -> None:
        self.token_path = f"realms/{realm}/protocol/openid-connect/token"
        self.client_id = client_id
        self._client_secret = client_secret
        self.http = HttpClient(base_url)
        self._token: str | None = None
        self._expires_at = 0.0

    def get_token(self) -> str:
        if self._token and time.monotonic() < self._expires_at:
            return self._token
        try:
            response = self.http.post(
                self.token_path,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self.client_id,
                    "client_secret": self._client_secret,
                },
            )
        except HttpError as exc:
            raise AuthError(f"Keycloak token request failed: {exc}") from exc
        payload = json_dict(response)
        token = payload.get("access_token")
        if not isinstance(token, str) or not token:
            raise AuthError("Keycloak token response did not include an access_token")
        expires_in = float(payload.get("expires_in") or 60)
        self._token = token
        self._expires_at = time.monotonic() + max(expires_in - _EXPIRY_SKEW, 0.0)
        logger.debug("Acquired Keycloak admin token for client %s", self.client_id)
        return token

    def close(self) -> None:
        self.http.close()


__all__ = ["KeycloakClientCredentialsProvider"]
