"""Keycloak Admin REST client for realm identity providers."""

from __future__ import annotations

from collections.abc import Callable
from types import TracebackType
from urllib.parse import quote

from ..http_client import HttpClient
from ..models.keycloak import IdentityProviderMapperRepresentation, IdentityProviderRepresentation


class KeycloakAdminClient:
    """Bindings for ``/admin/realms/{realm}/identity-provider``."""

    def __init__(
        self,
        token_getter: Callable[[], str],
        *,
        base_url: str,
        realm: str,
    ) -> None:
        self.realm = realm
        self.http = HttpClient(
            f"{base_url.rstrip('/')}/admin/realms/{quote(realm, safe='')}",
            token_getter=token_getter,
        )

    @staticmethod
    def _instance_path(alias: str) -> str:
        return f"identity-provider/instances/{quote(alias, safe='')}"

    def get_identity_provider(self, alias: str) -> IdentityProviderRepresentation | None:
        response = self.http.get_optional(self._instance_path(alias))
        if response is None:
            return None
        return IdentityProviderRepresentation.model_validate(response.json())

    def create_identity_provider(self, representation: IdentityProviderRepresentation) -> None:
        self.http.post(
            "identity-provider/instances",
            json=representation.model_dump(by_alias=True, exclude_none=True),
        )

    def update_identity_provider(
        self, alias: str, representation: IdentityProviderRepresentation
    ) -> None:
        self.http.put(
            self._instance_path(alias),
            json=representation.model_dump(by_alias=True, exclude_none=True),
        )

    def list_mappers(self, alias: str) -> list[IdentityProviderMapperRepresentation]:
        response = self.http.get(f"{self._instance_path(alias)}/mappers")
        data = response.json()
        if not isinstance(data, list):
            return []
        return [IdentityProviderMapperRepresentation.model_validate(item) for item in data]

    def create_mapper(self, alias: str, mapper: IdentityProviderMapperRepresentation) -> None:
        self.http.post(
            f"{self._instance_path(alias)}/mappers",
            json=mapper.model_dump(by_alias=True, exclude_none=True),
        )

    def update_mapper(
        self, alias: str, mapper_id: str, mapper: IdentityProviderMapperRepresentation
    ) -> None:
        payload = mapper.model_copy(update={"id": mapper_id})
        self.http.put(
            f"{self._instance_path(alias)}/mappers/{quote(mapper_id, safe='')}",
            json=payload.model_dump(by_alias=True, exclude_none=True),
        )

    def close(self) -> None:
        """Close the underlying HTTP client."""

        self.http.close()

    def __enter__(self) -> KeycloakAdminClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


__all__ = ["KeycloakAdminClient"]
