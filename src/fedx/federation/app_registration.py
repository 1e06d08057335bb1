"""Entra ID application registration used by Keycloak as an OIDC client.

Provisioning is find-or-create throughout: the application is matched by
display name, the service principal by app id and security groups by display
name. Only the client secret is always new because Graph never returns the
text of existing secrets.
"""

from __future__ import annotations

import calendar
import logging
import re
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from ..clients.graph import GraphClient
from ..errors import ConfigurationError, ProvisioningError
from ..models.graph import (
    Application,
    CreateApplicationRequest,
    CreateGroupRequest,
    PasswordCredential,
    RequiredResourceAccess,
    ResourceAccess,
    WebApplication,
)
from ..stack import AppRegistrationSettings, GroupReadPermission

logger = logging.getLogger(__name__)

MICROSOFT_GRAPH_APP_ID = "00000003-0000-0000-c000-000000000000"
USER_READ_SCOPE_ID = "e1fe6dd8-ba31-4d61-89e7-88639da4683d"
GROUP_READ_ALL_SCOPE_ID = "5f8c59db-677d-491f-a6b8-5f174b11ec1d"
GROUP_READ_ALL_ROLE_ID = "5b567255-7703-4780-807c-7be8301ae99b"

_LIFETIME = re.compile(r"^\s*(\d+)\s*(years?|months?|days?|hours?|h)\s*$", re.IGNORECASE)
_MAIL_NICKNAME_INVALID = re.compile(r"[^A-Za-z0-9._-]")


def _add_months(moment: datetime, months: int) -> datetime:
    index = moment.month - 1 + months
    year = moment.year + index // 12
    month = index % 12 + 1
    day = min(moment.day, calendar.monthrange(year, month)[1])
    return moment.replace(year=year, month=month, day=day)


def parse_secret_lifetime(text: str, now: datetime | None = None) -> datetime:
    """Return the expiry for a secret created at ``now`` living for ``text``.

    Accepts ``"<n> year(s)"``, ``"<n> month(s)"``, ``"<n> day(s)"`` and hour
    durations such as ``"17520h"``. Month arithmetic clamps to the last day of
    the target month.
    """

    match = _LIFETIME.match(text or "")
    if not match:
        raise ConfigurationError(
            f"Invalid secretLifetime '{text}'; use e.g. '2 years', '6 months', '30 days' or '17520h'."
        )
    value = int(match.group(1))
    if value <= 0:
        raise ConfigurationError(f"secretLifetime must be positive, got '{text}'.")
    unit = match.group(2).lower()
    start = now or datetime.now(timezone.utc)
    if unit.startswith("year"):
        return _add_months(start, 12 * value)
    if unit.startswith("month"):
        return _add_months(start, value)
    if unit.startswith("day"):
        return start + timedelta(days=value)
    return start + timedelta(hours=value)


def oidc_discovery_url(tenant_id: str) -> str:
    return f"https://login.microsoftonline.com/{tenant_id}/v2.0/.well-known/openid-configuration"


def build_application_request(
    settings: AppRegistrationSettings, redirect_uri: str | None = None
) -> CreateApplicationRequest:
    """Return the single-tenant application payload for ``settings``."""

    if settings.group_read_permission is GroupReadPermission.APPLICATION:
        group_access = ResourceAccess(id=GROUP_READ_ALL_ROLE_ID, type="Role")
    else:
        group_access = ResourceAccess(id=GROUP_READ_ALL_SCOPE_ID, type="Scope")
    uri = redirect_uri or settings.redirect_uri
    return CreateApplicationRequest(
        display_name=settings.app_name,
        sign_in_audience="AzureADMyOrg",
        web=WebApplication(redirect_uris=[uri] if uri else []),
        group_membership_claims=settings.group_membership_claims,
        required_resource_access=[
            RequiredResourceAccess(
                resource_app_id=MICROSOFT_GRAPH_APP_ID,
                resource_access=[ResourceAccess(id=USER_READ_SCOPE_ID, type="Scope"), group_access],
            )
        ],
    )


def group_mail_nickname(display_name: str) -> str:
    nickname = _MAIL_NICKNAME_INVALID.sub("", display_name)
    if not nickname:
        raise ConfigurationError(f"Cannot derive a mailNickname for group '{display_name}'.")
    return nickname


def plan_app_registration(
    settings: AppRegistrationSettings,
    *,
    tenant_id: str,
    redirect_uri: str | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Return the payloads :class:`AppRegistrationProvisioner` would submit."""

    expires = parse_secret_lifetime(settings.secret_lifetime, now)
    return {
        "application": build_application_request(settings, redirect_uri).model_dump(
            by_alias=True, exclude_none=True
        ),
        "clientSecret": {
            "displayName": settings.secret_display_name,
            "endDateTime": expires.isoformat(),
        },
        "groups": [
            CreateGroupRequest(
                display_name=name, mail_nickname=group_mail_nickname(name)
            ).model_dump(by_alias=True)
            for name in settings.groups
        ],
        "oidcDiscoveryUrl": oidc_discovery_url(tenant_id),
    }


@dataclass
class AppRegistrationResult:
    """Outputs Keycloak needs to federate with the tenant."""

    application_object_id: str
    client_id: str
    tenant_id: str
    service_principal_id: str
    group_ids: dict[str, str] = field(default_factory=dict)
    client_secret: str | None = field(default=None, repr=False)
    secret_expires: str | None = None

    @property
    def oidc_discovery_url(self) -> str:
        return oidc_discovery_url(self.tenant_id)

    def outputs(self, *, show_secret: bool = False) -> dict[str, Any]:
        secret = self.client_secret
        if secret and not show_secret:
            secret = "[secret]"
        return {
            "clientId": self.client_id,
            "tenantId": self.tenant_id,
            "clientSecret": secret,
            "clientSecretExpires": self.secret_expires,
            "oidcDiscoveryUrl": self.oidc_discovery_url,
            "servicePrincipalId": self.service_principal_id,
            "groupIdMap": dict(self.group_ids),
        }


class AppRegistrationProvisioner:
    """Find-or-create the broker application, its principal, secret and groups."""

    def __init__(
        self,
        graph: GraphClient,
        settings: AppRegistrationSettings,
        *,
        tenant_id: str,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.graph = graph
        self.settings = settings
        self.tenant_id = tenant_id
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def ensure_application(self, redirect_uri: str | None = None) -> Application:
        request = build_application_request(self.settings, redirect_uri)
        matches = self.graph.find_applications(self.settings.app_name)
        if len(matches) > 1:
            raise ProvisioningError(
                f"{len(matches)} applications are named '{self.settings.app_name}'; "
                "rename or delete the duplicates first."
            )
        if not matches:
            logger.info("Registering application %s", self.settings.app_name)
            return self.graph.create_application(request)

        application = matches[0]
        current = application.web.redirect_uris if application.web else []
        desired = request.web.redirect_uris
        if desired and sorted(current) != sorted(desired):
            logger.info("Updating redirect URIs of %s", self.settings.app_name)
            self.graph.update_application(application.id, {"web": {"redirectUris": desired}})
        else:
            logger.debug("Application %s already registered", self.settings.app_name)
        return application

    def ensure_service_principal(self, app_id: str) -> str:
        existing = self.graph.find_service_principal(app_id)
        if existing is not None:
            return existing.id
        logger.info("Creating service principal for %s", app_id)
        return self.graph.create_service_principal(app_id).id

    def add_client_secret(self, application_object_id: str) -> PasswordCredential:
        expires = parse_secret_lifetime(self.settings.secret_lifetime, self._clock())
        return self.graph.add_application_password(
            application_object_id,
            display_name=self.settings.secret_display_name,
            end_date_time=expires.isoformat(),
        )

    def ensure_groups(self) -> dict[str, str]:
        group_ids: dict[str, str] = {}
        for name in self.settings.groups:
            group = self.graph.find_group(name)
            if group is None:
                logger.info("Creating security group %s", name)
                group = self.graph.create_group(
                    CreateGroupRequest(display_name=name, mail_nickname=group_mail_nickname(name))
                )
            group_ids[name] = group.id
        return group_ids

    def provision(
        self, redirect_uri: str | None = None, *, create_secret: bool = True
    ) -> AppRegistrationResult:
        # Validate the lifetime before touching Graph.
        parse_secret_lifetime(self.settings.secret_lifetime, self._clock())
        application = self.ensure_application(redirect_uri)
        service_principal_id = self.ensure_service_principal(application.app_id)
        credential = self.add_client_secret(application.id) if create_secret else None
        group_ids = self.ensure_groups()
        return AppRegistrationResult(
            application_object_id=application.id,
            client_id=application.app_id,
            tenant_id=self.tenant_id,
            service_principal_id=service_principal_id,
            group_ids=group_ids,
            client_secret=credential.secret_text if credential else None,
            secret_expires=credential.end_date_time if credential else None,
        )


__all__ = [
    "AppRegistrationProvisioner",
    "AppRegistrationResult",
    "build_application_request",
    "group_mail_nickname",
    "oidc_discovery_url",
    "parse_secret_lifetime",
    "plan_app_registration",
]
