from __future__ import annotations

import json
from pathlib import Path

import httpx

from fedx.cli import app
from fedx.rbac.catalog import BUILTIN_ROLE_IDS
from fedx.rbac.reconciler import derive_assignment_key

GRAPH = "https://graph.microsoft.com/v1.0"
ARM = "https://management.azure.com"
SUBSCRIPTION = "00000000-0000-0000-0000-000000000001"
SCOPE = f"/subscriptions/{SUBSCRIPTION}"
CONTRIBUTOR = (
    f"{SCOPE}/providers/Microsoft.Authorization/roleDefinitions/{BUILTIN_ROLE_IDS['Contributor']}"
)
API = {"api-version": "2022-04-01"}

STACK = f"""
azure:
  subscriptionId: {SUBSCRIPTION}
rbac:
  users:
    - upn: dev@contoso.com
      profile: devops
    - upn: new@contoso.com
      profile: developer
"""


def write_stack(tmp_path: Path, text: str = STACK) -> str:
    path = tmp_path / "stack.yaml"
    path.write_text(text, encoding="utf-8")
    return str(path)


def mock_users(respx_mock) -> None:
    respx_mock.get(f"{GRAPH}/users/dev@contoso.com").mock(
        return_value=httpx.Response(200, json={"id": "pid-dev", "userPrincipalName": "dev@contoso.com"})
    )
    respx_mock.get(f"{GRAPH}/users/new@contoso.com").mock(
        return_value=httpx.Response(404, json={"error": {"code": "Request_ResourceNotFound"}})
    )


def test_rbac_plan_never_creates(cli_runner, respx_mock, tmp_path) -> None:
    mock_users(respx_mock)
    create_user = respx_mock.post(f"{GRAPH}/users")
    arm = respx_mock.route(host="management.azure.com")

    result = cli_runner.invoke(app, ["rbac", "plan", write_stack(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "rbac-dev-contoso-com-contributor-subscription" in result.stdout
    assert "rbac-new-contoso-com-reader-subscription" in result.stdout
    assert "(new)" in result.stdout
    assert "Plan: 2 assignment(s), 1 new user(s)" in result.stdout
    assert not create_user.called
    assert not arm.called


def test_rbac_plan_json(cli_runner, respx_mock, tmp_path) -> None:
    mock_users(respx_mock)

    result = cli_runner.invoke(app, ["rbac", "plan", write_stack(tmp_path), "--json"])

    assert result.exit_code == 0, result.output
    start = result.stdout.index("[\n")
    records = json.loads(result.stdout[start:])
    assert [r["principal_identifier"] for r in records] == ["dev@contoso.com", "new@contoso.com"]
    assert records[0]["assignment_key"] == derive_assignment_key("pid-dev", CONTRIBUTOR, SCOPE)
    assert records[1]["principal_pending"] is True
    assert {r["outcome"] for r in records} == {"planned"}


def test_rbac_plan_unknown_profile_makes_no_calls(cli_runner, respx_mock, tmp_path) -> None:
    graph = respx_mock.route(host="graph.microsoft.com")
    stack = f"""
azure:
  subscriptionId: {SUBSCRIPTION}
rbac:
  users:
    - upn: ghost@contoso.com
      profile: Nonexistent
"""

    result = cli_runner.invoke(app, ["rbac", "plan", write_stack(tmp_path, stack)])

    assert result.exit_code == 0, result.output
    assert "Plan: 0 assignment(s), 0 new user(s)" in result.stdout
    assert not graph.called


def test_rbac_plan_invalid_declaration_fails_fast(cli_runner, respx_mock, tmp_path) -> None:
    graph = respx_mock.route(host="graph.microsoft.com")
    stack = f"""
azure:
  subscriptionId: {SUBSCRIPTION}
rbac:
  users:
    - upn: bad@contoso.com
      assignments:
        - roleName: Contributor
          scopeType: resourceGroup
"""

    result = cli_runner.invoke(app, ["rbac", "plan", write_stack(tmp_path, stack)])

    assert result.exit_code == 1
    assert "resourceGroupName" in result.output
    assert not graph.called


def test_rbac_apply_creates_users_and_assignments(cli_runner, respx_mock, tmp_path) -> None:
    mock_users(respx_mock)
    create_user = respx_mock.post(f"{GRAPH}/users").mock(
        return_value=httpx.Response(201, json={"id": "pid-new", "userPrincipalName": "new@contoso.com"})
    )
    dev_key = derive_assignment_key("pid-dev", CONTRIBUTOR, SCOPE)
    dev_url = f"{ARM}{SCOPE}/providers/Microsoft.Authorization/roleAssignments/{dev_key}"
    respx_mock.get(dev_url, params=API).mock(
        return_value=httpx.Response(
            200,
            json={
                "name": dev_key,
                "properties": {"principalId": "pid-dev", "roleDefinitionId": CONTRIBUTOR},
            },
        )
    )
    new_lookup = respx_mock.get(
        url__regex=rf"{ARM}{SCOPE}/providers/Microsoft\.Authorization/roleAssignments/(?!{dev_key}).+"
    ).mock(return_value=httpx.Response(404, json={"error": {"code": "RoleAssignmentNotFound"}}))
    put = respx_mock.put(
        url__regex=rf"{ARM}{SCOPE}/providers/Microsoft\.Authorization/roleAssignments/.+"
    ).mock(
        return_value=httpx.Response(
            201, json={"name": "x", "properties": {"principalId": "pid-new", "roleDefinitionId": "r"}}
        )
    )

    result = cli_runner.invoke(app, ["rbac", "apply", write_stack(tmp_path)])

    assert result.exit_code == 0, result.output
    assert "Applied: 1 created, 1 unchanged" in result.stdout
    assert create_user.call_count == 1
    assert new_lookup.call_count == 1
    assert put.call_count == 1
    body = json.loads(put.calls.last.request.content)
    assert body["properties"]["principalId"] == "pid-new"
    assert body["properties"]["principalType"] == "User"


def test_rbac_apply_http_error_exits_nonzero(cli_runner, respx_mock, tmp_path) -> None:
    respx_mock.get(f"{GRAPH}/users/dev@contoso.com").mock(
        return_value=httpx.Response(200, json={"id": "pid-dev"})
    )
    respx_mock.get(url__regex=rf"{ARM}/subscriptions/.+").mock(
        return_value=httpx.Response(404, json={})
    )
    respx_mock.put(url__regex=rf"{ARM}/subscriptions/.+").mock(
        return_value=httpx.Response(
            403, json={"error": {"code": "AuthorizationFailed", "message": "denied"}}
        )
    )
    stack = f"""
azure:
  subscriptionId: {SUBSCRIPTION}
rbac:
  users:
    - upn: dev@contoso.com
      profile: devops
"""

    result = cli_runner.invoke(app, ["rbac", "apply", write_stack(tmp_path, stack)])

    assert result.exit_code == 1
    assert "HTTP 403" in result.output
    assert "AuthorizationFailed" in result.output
    assert "Traceback" not in result.output


def test_rbac_apply_requires_subscription(cli_runner, tmp_path) -> None:
    result = cli_runner.invoke(app, ["rbac", "apply", write_stack(tmp_path, "rbac: {}\n")])
    assert result.exit_code == 1
    assert "azure.subscriptionId" in result.output


def test_rbac_report(cli_runner, tmp_path) -> None:
    stack = f"""
azure:
  subscriptionId: {SUBSCRIPTION}
rbac:
  users:
    - upn: a@contoso.com
      profile: developer
      assignments:
        - roleName: Owner
          scopeType: resourceGroup
          resourceGroupName: rg-app
"""

    result = cli_runner.invoke(app, ["rbac", "report", write_stack(tmp_path, stack)])

    assert result.exit_code == 0, result.output
    records = json.loads(result.stdout)
    assert records == [
        {
            "upn": "a@contoso.com",
            "profile": "developer",
            "assignments": [
                {"roleName": "Reader", "scopeType": "subscription"},
                {"roleName": "Owner", "scopeType": "resourceGroup", "resourceGroupName": "rg-app"},
            ],
        }
    ]


def test_rbac_report_keeps_missing_profile_as_null(cli_runner, tmp_path) -> None:
    stack = f"""
azure:
  subscriptionId: {SUBSCRIPTION}
rbac:
  users:
    - upn: b@contoso.com
      assignments:
        - roleName: Reader
"""

    result = cli_runner.invoke(app, ["rbac", "report", write_stack(tmp_path, stack)])

    assert result.exit_code == 0, result.output
    records = json.loads(result.stdout)
    assert records == [
        {
            "upn": "b@contoso.com",
            "profile": None,
            "assignments": [{"roleName": "Reader", "scopeType": "subscription"}],
        }
    ]
