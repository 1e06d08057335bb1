from __future__ import annotations

import json
from datetime import datetime, timezone

import httpx
import pytest

from fedx.clients.graph import GraphClient
from fedx.errors import ProvisioningError
from fedx.federation.app_registration import (
    GROUP_READ_ALL_ROLE_ID,
    GROUP_READ_ALL_SCOPE_ID,
    MICROSOFT_GRAPH_APP_ID,
    USER_READ_SCOPE_ID,
    AppRegistrationProvisioner,
    AppRegistrationResult,
    build_application_request,
    group_mail_nickname,
    plan_app_registration,
)
from fedx.stack import AppRegistrationSettings, GroupReadPermission

GRAPH = "https://graph.microsoft.com/v1.0"
TENANT = "contoso.onmicrosoft.com"
REDIRECT = "https://sso.example.com/realms/platform/broker/microsoft-entra/endpoint"
NOW = datetime(2025, 1, 15, tzinfo=timezone.utc)


def settings(**overrides) -> AppRegistrationSettings:
    data = {"app_name": "fedx-app", "groups": ["cluster-admins", "read-only"]}
    data.update(overrides)
    return AppRegistrationSettings(**data)


def filter_params(field: str, value: str) -> dict[str, str]:
    return {"$filter": f"{field} eq '{value}'"}


@pytest.fixture
def graph(token_getter):
    return GraphClient(token_getter, base_url=GRAPH)


def test_build_application_request_delegated_permissions() -> None:
    request = build_application_request(settings(), REDIRECT)
    payload = request.model_dump(by_alias=True, exclude_none=True)

    assert payload["displayName"] == "fedx-app"
    assert payload["signInAudience"] == "AzureADMyOrg"
    assert payload["web"] == {"redirectUris": [REDIRECT]}
    assert payload["groupMembershipClaims"] == "SecurityGroup"
    (graph_access,) = payload["requiredResourceAccess"]
    assert graph_access["resourceAppId"] == MICROSOFT_GRAPH_APP_ID
    assert graph_access["resourceAccess"] == [
        {"id": USER_READ_SCOPE_ID, "type": "Scope"},
        {"id": GROUP_READ_ALL_SCOPE_ID, "type": "Scope"},
    ]


def test_build_application_request_application_permission() -> None:
    request = build_application_request(
        settings(group_read_permission=GroupReadPermission.APPLICATION, group_membership_claims=None)
    )
    payload = request.model_dump(by_alias=True, exclude_none=True)
    assert {"id": GROUP_READ_ALL_ROLE_ID, "type": "Role"} in payload["requiredResourceAccess"][0][
        "resourceAccess"
    ]
    assert "groupMembershipClaims" not in payload
    assert payload["web"] == {"redirectUris": []}


def test_group_mail_nickname_strips_invalid_characters() -> None:
    assert group_mail_nickname("k8s ops (prod)") == "k8sopsprod"


def test_plan_app_registration_has_no_side_effects() -> None:
    plan = plan_app_registration(settings(), tenant_id=TENANT, redirect_uri=REDIRECT, now=NOW)

    assert plan["clientSecret"] == {
        "displayName": "Keycloak Secret",
        "endDateTime": "2027-01-15T00:00:00+00:00",
    }
    assert [group["displayName"] for group in plan["groups"]] == ["cluster-admins", "read-only"]
    assert all(group["securityEnabled"] and not group["mailEnabled"] for group in plan["groups"])
    assert plan["oidcDiscoveryUrl"] == (
        f"https://login.microsoftonline.com/{TENANT}/v2.0/.well-known/openid-configuration"
    )


def test_provision_creates_everything(respx_mock, graph) -> None:
    respx_mock.get(f"{GRAPH}/applications", params=filter_params("displayName", "fedx-app")).mock(
        return_value=httpx.Response(200, json={"value": []})
    )
    create_app = respx_mock.post(f"{GRAPH}/applications").mock(
        return_value=httpx.Response(
            201,
            json={"id": "obj-1", "appId": "app-1", "web": {"redirectUris": [REDIRECT]}},
        )
    )
    respx_mock.get(f"{GRAPH}/servicePrincipals", params=filter_params("appId", "app-1")).mock(
        return_value=httpx.Response(200, json={"value": []})
    )
    create_sp = respx_mock.post(f"{GRAPH}/servicePrincipals").mock(
        return_value=httpx.Response(201, json={"id": "sp-1", "appId": "app-1"})
    )
    add_password = respx_mock.post(f"{GRAPH}/applications/obj-1/addPassword").mock(
        return_value=httpx.Response(
            200,
            json={
                "keyId": "key-1",
                "secretText": "s3cr3t",
                "endDateTime": "2027-01-15T00:00:00Z",
            },
        )
    )
    respx_mock.get(f"{GRAPH}/groups", params=filter_params("displayName", "cluster-admins")).mock(
        return_value=httpx.Response(200, json={"value": [{"id": "grp-admins"}]})
    )
    respx_mock.get(f"{GRAPH}/groups", params=filter_params("displayName", "read-only")).mock(
        return_value=httpx.Response(200, json={"value": []})
    )
    create_group = respx_mock.post(f"{GRAPH}/groups").mock(
        return_value=httpx.Response(201, json={"id": "grp-ro", "displayName": "read-only"})
    )

    provisioner = AppRegistrationProvisioner(graph, settings(), tenant_id=TENANT, clock=lambda: NOW)
    result = provisioner.provision(REDIRECT)

    assert result.client_id == "app-1"
    assert result.service_principal_id == "sp-1"
    assert result.client_secret == "s3cr3t"
    assert result.group_ids == {"cluster-admins": "grp-admins", "read-only": "grp-ro"}
    assert json.loads(create_app.calls.last.request.content)["web"] == {
        "redirectUris": [REDIRECT]
    }
    assert json.loads(create_sp.calls.last.request.content) == {"appId": "app-1"}
    assert json.loads(add_password.calls.last.request.content) == {
        "passwordCredential": {
            "displayName": "Keycloak Secret",
            "endDateTime": "2027-01-15T00:00:00+00:00",
        }
    }
    assert json.loads(create_group.calls.last.request.content) == {
        "displayName": "read-only",
        "mailNickname": "read-only",
        "securityEnabled": True,
        "mailEnabled": False,
    }


def test_provision_reuses_existing_app_and_updates_redirect(respx_mock, graph) -> None:
    respx_mock.get(f"{GRAPH}/applications", params=filter_params("displayName", "fedx-app")).mock(
        return_value=httpx.Response(
            200,
            json={
                "value": [
                    {"id": "obj-1", "appId": "app-1", "web": {"redirectUris": ["https://old"]}}
                ]
            },
        )
    )
    create_app = respx_mock.post(f"{GRAPH}/applications")
    patch = respx_mock.patch(f"{GRAPH}/applications/obj-1").mock(
        return_value=httpx.Response(204)
    )
    respx_mock.get(f"{GRAPH}/servicePrincipals", params=filter_params("appId", "app-1")).mock(
        return_value=httpx.Response(200, json={"value": [{"id": "sp-1", "appId": "app-1"}]})
    )
    add_password = respx_mock.post(f"{GRAPH}/applications/obj-1/addPassword")

    provisioner = AppRegistrationProvisioner(
        graph, settings(groups=[]), tenant_id=TENANT, clock=lambda: NOW
    )
    result = provisioner.provision(REDIRECT, create_secret=False)

    assert not create_app.called
    assert not add_password.called
    assert json.loads(patch.calls.last.request.content) == {"web": {"redirectUris": [REDIRECT]}}
    assert result.client_secret is None
    assert result.service_principal_id == "sp-1"


def test_provision_rejects_duplicate_applications(respx_mock, graph) -> None:
    respx_mock.get(f"{GRAPH}/applications", params=filter_params("displayName", "fedx-app")).mock(
        return_value=httpx.Response(
            200,
            json={"value": [{"id": "obj-1", "appId": "a"}, {"id": "obj-2", "appId": "b"}]},
        )
    )
    provisioner = AppRegistrationProvisioner(graph, settings(), tenant_id=TENANT, clock=lambda: NOW)
    with pytest.raises(ProvisioningError):
        provisioner.provision(REDIRECT)


def test_result_outputs_mask_secret() -> None:
    result = AppRegistrationResult(
        application_object_id="obj-1",
        client_id="app-1",
        tenant_id=TENANT,
        service_principal_id="sp-1",
        group_ids={"read-only": "grp-ro"},
        client_secret="s3cr3t",
    )
    assert result.outputs()["clientSecret"] == "[secret]"
    assert result.outputs(show_secret=True)["clientSecret"] == "s3cr3t"
    assert "s3cr3t" not in repr(result)
