from __future__ import annotations

import typer

from . import federation, profile, rbac
from .common import configure_logging

app = typer.Typer(help="fedx CLI")


def _register_sub_app(name: str, sub_app: typer.Typer) -> None:
    app.add_typer(sub_app, name=name)


_register_sub_app("profile", profile.app)
_register_sub_app("rbac", rbac.app)
_register_sub_app("federation", federation.app)


@app.callback()
def common(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),  # noqa: B008
) -> None:
    """Initialize logging and shared Typer context state."""

    configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj.setdefault("token_getters", {})


def main() -> None:
    app()


__all__ = ["app", "main"]
