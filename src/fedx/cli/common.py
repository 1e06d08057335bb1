from __future__ import annotations

import json
import logging
import os
import warnings
from collections.abc import Callable
from functools import wraps
from typing import Any, Literal, ParamSpec, TypeVar, cast

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from ..auth.azure_ad import ARM_SCOPE, GRAPH_SCOPE, AzureADTokenProvider
from ..auth.base import EnvironmentTokenProvider, TokenProvider
from ..auth.keycloak import KeycloakClientCredentialsProvider
from ..config import ConfigData, ConfigStore, EncryptedConfigError
from ..errors import (
    AuthError,
    ConfigurationError,
    FedxError,
    HttpError,
    UnrecognizedProfileWarning,
)
from ..stack import KeycloakSettings

console = Console()
err_console = Console(stderr=True)

Audience = Literal["graph", "arm", "keycloak"]
TokenGetter = Callable[[], str]

ENV_TOKEN_VARS: dict[str, str] = {
    "graph": "FEDX_GRAPH_TOKEN",
    "arm": "FEDX_ARM_TOKEN",
    "keycloak": "FEDX_KEYCLOAK_TOKEN",
}
_AZURE_SCOPES: dict[str, str] = {"graph": GRAPH_SCOPE, "arm": ARM_SCOPE}


def configure_logging(verbose: bool = False) -> None:
    """Route log records and RBAC warnings to stderr through rich."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False, markup=False)],
        force=True,
    )
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)
    logging.captureWarnings(True)
    warnings.simplefilter("always", UnrecognizedProfileWarning)


def _render_http_error(exc: HttpError) -> None:
    console.print(f"[red]Error:[/red] {escape(str(exc))}")
    details = getattr(exc, "details", None)
    if details:
        snippet = details
        if isinstance(details, dict):
            snippet = json.dumps(details, indent=2)
        console.print(str(snippet), markup=False)


CommandParams = ParamSpec("CommandParams")
CommandReturn = TypeVar("CommandReturn")


def handle_cli_errors(
    func: Callable[CommandParams, CommandReturn],
) -> Callable[CommandParams, CommandReturn]:
    @wraps(func)
    def wrapper(*args: CommandParams.args, **kwargs: CommandParams.kwargs) -> CommandReturn:
        try:
            return func(*args, **kwargs)
        except typer.BadParameter:
            raise
        except typer.Exit:
            raise
        except HttpError as exc:
            _render_http_error(exc)
            raise typer.Exit(1) from None
        except EncryptedConfigError as exc:
            console.print(f"[red]Error:[/red] {escape(str(exc))}")
            console.print(
                "Export the original FEDX_CONFIG_ENCRYPTION_KEY, or remove the profile with "
                "`fedx profile delete NAME` and add it again."
            )
            raise typer.Exit(1) from None
        except AuthError as exc:
            console.print(f"[red]Error:[/red] Authentication failed: {escape(str(exc))}")
            console.print(
                "Export FEDX_GRAPH_TOKEN / FEDX_ARM_TOKEN / FEDX_KEYCLOAK_TOKEN or run "
                "`fedx profile add NAME` to configure credentials."
            )
            raise typer.Exit(1) from None
        except ConfigurationError as exc:
            console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
            raise typer.Exit(1) from None
        except FedxError as exc:
            console.print(f"[red]Error:[/red] {escape(str(exc))}")
            raise typer.Exit(1) from None
        except Exception as exc:
            if os.getenv("FEDX_DEBUG"):
                raise
            console.print(f"[red]Error:[/red] Unexpected failure: {escape(str(exc))}")
            console.print("Set FEDX_DEBUG=1 for a stack trace.")
            raise typer.Exit(1) from exc

    return wrapper


def resolve_token_getter(
    audience: Audience,
    *,
    config: ConfigData | None = None,
    keycloak: KeycloakSettings | None = None,
) -> TokenGetter:
    """Resolve a callable returning a token for ``audience``.

    Resolution order is:

    1. The audience's environment override (``FEDX_GRAPH_TOKEN``,
       ``FEDX_ARM_TOKEN`` or ``FEDX_KEYCLOAK_TOKEN``).
    2. The default profile: msal for Graph and ARM, a client-credentials
       grant for Keycloak.
    """

    env_var = ENV_TOKEN_VARS[audience]
    if os.getenv(env_var):
        return EnvironmentTokenProvider(env_var).get_token

    cfg = config or ConfigStore().load()
    profile = cfg.default()
    if profile is None:
        raise typer.BadParameter(f"No {env_var} and no default profile configured.")

    fallback: TokenProvider
    if audience == "keycloak":
        if keycloak is None:
            raise typer.BadParameter("The stack file has no keycloak section.")
        secret = profile.resolve_keycloak_client_secret()
        if not profile.keycloak_client_id or not secret:
            raise typer.BadParameter(
                f"Profile '{profile.name}' is missing keycloak_client_id or its secret; "
                "run `fedx profile add` with --keycloak-client-id."
            )
        fallback = KeycloakClientCredentialsProvider(
            keycloak.base_url,
            client_id=profile.keycloak_client_id,
            client_secret=secret,
            realm=keycloak.admin_realm,
        )
    else:
        if not profile.tenant_id or not profile.client_id:
            raise typer.BadParameter(
                f"Profile '{profile.name}' is missing tenant_id or client_id."
            )
        fallback = AzureADTokenProvider(
            tenant_id=profile.tenant_id,
            client_id=profile.client_id,
            scopes=[_AZURE_SCOPES[audience]],
            client_secret=profile.resolve_client_secret(),
            use_device_code=profile.use_device_code,
        )
    return EnvironmentTokenProvider(env_var, fallback).get_token


def get_token_getter(
    ctx: typer.Context,
    audience: Audience,
    *,
    keycloak: KeycloakSettings | None = None,
) -> TokenGetter:
    """Return the cached token getter for ``audience``, resolving it on first use."""

    ctx_obj = cast(dict[str, Any], ctx.ensure_object(dict))
    getters = cast(dict[str, TokenGetter], ctx_obj.setdefault("token_getters", {}))
    getter = getters.get(audience)
    if callable(getter):
        return getter
    getter = resolve_token_getter(audience, keycloak=keycloak)
    getters[audience] = getter
    return getter


def echo_json(payload: Any) -> None:
    """Write ``payload`` to stdout as indented JSON without rich markup."""

    typer.echo(json.dumps(payload, indent=2, default=str))


__all__ = [
    "console",
    "configure_logging",
    "echo_json",
    "err_console",
    "get_token_getter",
    "handle_cli_errors",
    "resolve_token_getter",
    "ENV_TOKEN_VARS",
    "TokenGetter",
]
