from __future__ import annotations

import os
from abc import ABC, abstractmethod

from ..errors import AuthError


class TokenProvider(ABC):
    @abstractmethod
    def get_token(self) -> str:
        """Return an access token string for Authorization: Bearer."""


class StaticTokenProvider(TokenProvider):
    def __init__(self, token: str) -> None:
        self._token = token

    def get_token(self) -> str:
        return self._token


class EnvironmentTokenProvider(TokenProvider):
    """Prefer a token exported in ``env_var``; otherwise defer to ``fallback``.

    The variable is read on every call so a refreshed export is picked up
    without rebuilding clients.
    """

    def __init__(self, env_var: str, fallback: TokenProvider | None = None) -> None:
        self.env_var = env_var
        self.fallback = fallback

    def get_token(self) -> str:
        token = (os.getenv(self.env_var) or "").strip()
        if token:
            return token
        if self.fallback is None:
            raise AuthError(f"{self.env_var} is not set and no profile is configured.")
        return self.fallback.get_token()
