"""Microsoft Graph client for users, applications, service principals and groups."""

from __future__ import annotations

import logging
from collections.abc import Callable
from types import TracebackType
from typing import Any
from urllib.parse import quote

from ..http_client import HttpClient, json_dict
from ..models.graph import (
    Application,
    CreateApplicationRequest,
    CreateGroupRequest,
    CreateUserRequest,
    GraphUser,
    Group,
    PasswordCredential,
    ServicePrincipal,
)

logger = logging.getLogger(__name__)

GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"


def odata_literal(value: str) -> str:
    """Quote ``value`` as an OData string literal."""

    return "'" + value.replace("'", "''") + "'"


class GraphClient:
    """Minimal Microsoft Graph v1.0 bindings used by the provisioners."""

    def __init__(
        self,
        token_getter: Callable[[], str],
        *,
        base_url: str = GRAPH_BASE_URL,
    ) -> None:
        self.http = HttpClient(base_url, token_getter=token_getter)

    def _list(self, path: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        next_path: str | None = path
        query = params
        while next_path:
            payload = json_dict(self.http.get(next_path, params=query))
            items.extend(item for item in payload.get("value", []) if isinstance(item, dict))
            next_path = payload.get("@odata.nextLink")
            query = None
        return items

    # Users -------------------------------------------------------------

    def get_user(self, user_principal_name: str) -> GraphUser | None:
        """Return the user with ``user_principal_name`` or ``None`` when absent."""

        response = self.http.get_optional(f"users/{quote(user_principal_name, safe='@')}")
        if response is None:
            return None
        return GraphUser.model_validate(response.json())

    def create_user(self, request: CreateUserRequest) -> GraphUser:
        response = self.http.post("users", json=request.model_dump(by_alias=True))
        return GraphUser.model_validate(response.json())

    # Applications ------------------------------------------------------

    def find_applications(self, display_name: str) -> list[Application]:
        items = self._list(
            "applications", params={"$filter": f"displayName eq {odata_literal(display_name)}"}
        )
        return [Application.model_validate(item) for item in items]

    def create_application(self, request: CreateApplicationRequest) -> Application:
        response = self.http.post(
            "applications", json=request.model_dump(by_alias=True, exclude_none=True)
        )
        return Application.model_validate(response.json())

    def update_application(self, object_id: str, patch: dict[str, Any]) -> None:
        self.http.patch(f"applications/{object_id}", json=patch)

    def add_application_password(
        self, object_id: str, *, display_name: str, end_date_time: str
    ) -> PasswordCredential:
        """Add a client secret to the application with object id ``object_id``."""

        body = {"passwordCredential": {"displayName": display_name, "endDateTime": end_date_time}}
        response = self.http.post(f"applications/{object_id}/addPassword", json=body)
        return PasswordCredential.model_validate(response.json())

    # Service principals ------------------------------------------------

    def find_service_principal(self, app_id: str) -> ServicePrincipal | None:
        items = self._list(
            "servicePrincipals", params={"$filter": f"appId eq {odata_literal(app_id)}"}
        )
        return ServicePrincipal.model_validate(items[0]) if items else None

    def create_service_principal(self, app_id: str) -> ServicePrincipal:
        response = self.http.post("servicePrincipals", json={"appId": app_id})
        return ServicePrincipal.model_validate(response.json())

    # Groups ------------------------------------------------------------

    def find_group(self, display_name: str) -> Group | None:
        items = self._list(
            "groups", params={"$filter": f"displayName eq {odata_literal(display_name)}"}
        )
        if len(items) > 1:
            logger.warning(
                "Found %d groups named '%s'; using the first match", len(items), display_name
            )
        return Group.model_validate(items[0]) if items else None

    def create_group(self, request: CreateGroupRequest) -> Group:
        response = self.http.post("groups", json=request.model_dump(by_alias=True))
        return Group.model_validate(response.json())

    def close(self) -> None:
        """Close the underlying HTTP client."""

        self.http.close()

    def __enter__(self) -> GraphClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()


__all__ = ["GraphClient", "GRAPH_BASE_URL", "odata_literal"]
