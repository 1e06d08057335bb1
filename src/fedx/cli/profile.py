"""Commands for inspecting and mutating stored fedx profiles."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

import typer
from rich import print

from ..config import ConfigStore, Profile
from .common import handle_cli_errors

app = typer.Typer(help="Profiles & credentials")


MASK_PLACEHOLDER = "<hidden>"
SENSITIVE_KEYS = frozenset({"client_secret", "keycloak_client_secret"})


@app.command("add")
@handle_cli_errors
def profile_add(
    name: str = typer.Argument(..., help="Profile name"),
    tenant_id: str | None = typer.Option(None, help="Entra ID tenant"),  # noqa: B008
    client_id: str | None = typer.Option(  # noqa: B008
        None, help="App registration (client) ID used for Graph and ARM"
    ),
    client_secret_env: str | None = typer.Option(  # noqa: B008
        None, help="Environment variable containing the client secret"
    ),
    device_code: bool = typer.Option(  # noqa: B008
        False,
        "--device-code/--no-device-code",
        help="Use the device code flow when no client secret is available.",
    ),
    keycloak_client_id: str | None = typer.Option(  # noqa: B008
        None, help="Keycloak admin client ID (client-credentials grant)"
    ),
    keycloak_client_secret_env: str | None = typer.Option(  # noqa: B008
        None, help="Environment variable containing the Keycloak admin client secret"
    ),
    set_default: bool = typer.Option(  # noqa: B008
        True,
        "--set-default/--no-set-default",
        help="Set the profile as default after creation.",
    ),
) -> None:
    """Create or update a credentials profile."""

    profile = Profile(
        name=name,
        tenant_id=tenant_id,
        client_id=client_id,
        client_secret_env=client_secret_env,
        use_device_code=device_code,
        keycloak_client_id=keycloak_client_id,
        keycloak_client_secret_env=keycloak_client_secret_env,
    )
    ConfigStore().add_or_update_profile(profile, set_default=set_default)
    print(f"Profile [bold]{name}[/bold] saved.")


@app.command("list")
@handle_cli_errors
def profile_list() -> None:
    """Show all saved profiles, highlighting the default profile."""

    cfg = ConfigStore().load()
    for name in sorted(cfg.profiles):
        star = "*" if cfg.default_profile == name else " "
        print(f"{star} {name}")


@app.command("show")
@handle_cli_errors
def profile_show(name: str = typer.Argument(..., help="Profile name")) -> None:
    """Display the stored configuration for a profile."""

    cfg = ConfigStore().load()
    profile = cfg.profiles.get(name)
    if not profile:
        raise typer.BadParameter(f"Profile '{name}' not found")
    print(_mask_sensitive_fields(asdict(profile)))


@app.command("use")
@handle_cli_errors
def profile_use(name: str = typer.Argument(..., help="Profile to activate")) -> None:
    """Set a profile as the default for subsequent commands."""

    try:
        ConfigStore().set_default_profile(name)
    except KeyError:
        raise typer.BadParameter(f"Profile '{name}' not found") from None
    print(f"Default profile set to [bold]{name}[/bold]")


@app.command("delete")
@handle_cli_errors
def profile_delete(name: str = typer.Argument(..., help="Profile to remove")) -> None:
    """Remove a stored profile."""

    try:
        ConfigStore().delete_profile(name)
    except KeyError:
        raise typer.BadParameter(f"Profile '{name}' not found") from None
    print(f"Deleted profile [bold]{name}[/bold]")


def _mask_sensitive_fields(data: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with sensitive keys masked."""

    masked = dict(data)
    for key in masked:
        if key in SENSITIVE_KEYS and masked[key] not in (None, ""):
            masked[key] = MASK_PLACEHOLDER
    return masked


__all__ = [
    "app",
    "profile_add",
    "profile_delete",
    "profile_list",
    "profile_show",
    "profile_use",
]
