"""Principal directory adapters used to resolve or create declared users."""

from __future__ import annotations

import logging
import secrets
from typing import Protocol

from ..clients.graph import GraphClient
from ..errors import DirectoryLookupError, HttpError
from ..models.graph import CreateUserRequest, PasswordProfile
from ..models.rbac import PrincipalRecord

logger = logging.getLogger(__name__)


class PrincipalDirectory(Protocol):
    def lookup(self, identifier: str) -> PrincipalRecord | None: ...

    def create(
        self, identifier: str, *, display_name: str, mail_alias: str, credential: str
    ) -> PrincipalRecord: ...


def generate_initial_credential() -> str:
    """Return a one-time password satisfying Entra complexity rules."""

    return f"TempPass{secrets.token_urlsafe(16)}!"


class GraphPrincipalDirectory:
    """Directory backed by Microsoft Graph ``/users``."""

    def __init__(self, graph: GraphClient) -> None:
        self.graph = graph

    def lookup(self, identifier: str) -> PrincipalRecord | None:
        try:
            user = self.graph.get_user(identifier)
        except HttpError as exc:
            raise DirectoryLookupError(identifier, str(exc)) from exc
        if user is None:
            return None
        return PrincipalRecord(
            id=user.id,
            user_principal_name=user.user_principal_name,
            display_name=user.display_name,
        )

    def create(
        self, identifier: str, *, display_name: str, mail_alias: str, credential: str
    ) -> PrincipalRecord:
        request = CreateUserRequest(
            display_name=display_name,
            mail_nickname=mail_alias,
            user_principal_name=identifier,
            password_profile=PasswordProfile(password=credential),
        )
        user = self.graph.create_user(request)
        return PrincipalRecord(
            id=user.id,
            user_principal_name=user.user_principal_name or identifier,
            display_name=user.display_name or display_name,
        )


class PlanningDirectory:
    """Delegates lookups but records creations instead of performing them."""

    def __init__(self, delegate: PrincipalDirectory) -> None:
        self.delegate = delegate
        self.pending: list[str] = []

    def lookup(self, identifier: str) -> PrincipalRecord | None:
        return self.delegate.lookup(identifier)

    def create(
        self, identifier: str, *, display_name: str, mail_alias: str, credential: str
    ) -> PrincipalRecord:
        logger.debug("Plan: user %s would be created as %s", identifier, mail_alias)
        self.pending.append(identifier)
        return PrincipalRecord(
            id=f"pending-{identifier}",
            user_principal_name=identifier,
            display_name=display_name,
            pending=True,
        )


__all__ = [
    "PrincipalDirectory",
    "GraphPrincipalDirectory",
    "PlanningDirectory",
    "generate_initial_credential",
]
