"""Typer commands federating a Keycloak realm with Entra ID."""

from __future__ import annotations

from pathlib import Path

import typer

from ..clients.graph import GraphClient
from ..clients.keycloak import KeycloakAdminClient
from ..errors import ConfigurationError
from ..federation.app_registration import (
    AppRegistrationProvisioner,
    AppRegistrationResult,
    plan_app_registration,
)
from ..federation.keycloak_idp import (
    FederationInputs,
    KeycloakFederationProvisioner,
    KeycloakFederationResult,
    plan_identity_provider,
    resolve_federation_inputs,
)
from ..stack import AppRegistrationSettings, KeycloakSettings, StackConfig, load_stack
from .common import echo_json, get_token_getter, handle_cli_errors

app = typer.Typer(help="Entra ID app registration and Keycloak identity brokering")

STACK_ARGUMENT = typer.Argument(  # noqa: B008
    ...,
    exists=True,
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
    help="Path to the stack YAML file",
)
DRY_RUN_OPTION = typer.Option(  # noqa: B008
    False, "--dry-run", help="Print the requests without calling any API."
)
SHOW_SECRET_OPTION = typer.Option(  # noqa: B008
    False, "--show-secret", help="Print the generated client secret instead of masking it."
)


def _app_settings(stack: StackConfig) -> AppRegistrationSettings:
    return stack.app_registration or AppRegistrationSettings()


def _keycloak_settings(stack: StackConfig) -> KeycloakSettings:
    if stack.keycloak is None:
        raise ConfigurationError("The stack file has no keycloak section.")
    return stack.keycloak


def _redirect_uri(stack: StackConfig, override: str | None) -> str | None:
    if override:
        return override
    settings = _app_settings(stack)
    if settings.redirect_uri:
        return settings.redirect_uri
    return stack.keycloak.redirect_uri if stack.keycloak else None


def _register(
    ctx: typer.Context, stack: StackConfig, redirect_uri: str | None, *, create_secret: bool
) -> AppRegistrationResult:
    with GraphClient(get_token_getter(ctx, "graph")) as graph:
        provisioner = AppRegistrationProvisioner(
            graph, _app_settings(stack), tenant_id=stack.require_tenant_id()
        )
        return provisioner.provision(redirect_uri, create_secret=create_secret)


def _federate(
    ctx: typer.Context, settings: KeycloakSettings, inputs: FederationInputs
) -> KeycloakFederationResult:
    token_getter = get_token_getter(ctx, "keycloak", keycloak=settings)
    with KeycloakAdminClient(
        token_getter, base_url=settings.base_url, realm=settings.realm_id
    ) as client:
        return KeycloakFederationProvisioner(client, settings).provision(inputs)


@app.command("app-registration")
@handle_cli_errors
def federation_app_registration(
    ctx: typer.Context,
    stack_path: Path = STACK_ARGUMENT,
    redirect_uri: str | None = typer.Option(  # noqa: B008
        None, help="Redirect URI; defaults to the Keycloak broker endpoint"
    ),
    dry_run: bool = DRY_RUN_OPTION,
    show_secret: bool = SHOW_SECRET_OPTION,
    no_secret: bool = typer.Option(  # noqa: B008
        False, "--no-secret", help="Do not add a new client secret."
    ),
) -> None:
    """Register the broker application, its service principal and security groups."""

    stack = load_stack(stack_path)
    uri = _redirect_uri(stack, redirect_uri)
    if dry_run:
        echo_json(
            plan_app_registration(
                _app_settings(stack), tenant_id=stack.require_tenant_id(), redirect_uri=uri
            )
        )
        return
    result = _register(ctx, stack, uri, create_secret=not no_secret)
    echo_json(result.outputs(show_secret=show_secret))


@app.command("keycloak-idp")
@handle_cli_errors
def federation_keycloak_idp(
    ctx: typer.Context,
    stack_path: Path = STACK_ARGUMENT,
    dry_run: bool = DRY_RUN_OPTION,
) -> None:
    """Upsert the Entra identity provider and its mappers in the Keycloak realm."""

    stack = load_stack(stack_path)
    settings = _keycloak_settings(stack)
    inputs = resolve_federation_inputs(settings, tenant_id=stack.azure.tenant_id)
    if dry_run:
        echo_json(plan_identity_provider(settings, inputs))
        return
    echo_json(_federate(ctx, settings, inputs).outputs())


@app.command("up")
@handle_cli_errors
def federation_up(
    ctx: typer.Context,
    stack_path: Path = STACK_ARGUMENT,
    show_secret: bool = SHOW_SECRET_OPTION,
) -> None:
    """Register the application, then federate Keycloak with the fresh credentials."""

    stack = load_stack(stack_path)
    settings = _keycloak_settings(stack)
    registration = _register(ctx, stack, _redirect_uri(stack, None), create_secret=True)
    inputs = resolve_federation_inputs(
        settings,
        client_id=registration.client_id,
        client_secret=registration.client_secret,
        tenant_id=registration.tenant_id,
    )
    federation = _federate(ctx, settings, inputs)
    echo_json(
        {
            "appRegistration": registration.outputs(show_secret=show_secret),
            "keycloak": federation.outputs(),
        }
    )


__all__ = [
    "app",
    "federation_app_registration",
    "federation_keycloak_idp",
    "federation_up",
]
