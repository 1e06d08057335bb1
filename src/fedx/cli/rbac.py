"""Typer commands reconciling declared users onto Azure role assignments."""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import typer

from ..clients.authorization import ArmAuthorizationClient
from ..clients.graph import GraphClient
from ..models.rbac import AssignmentOutcome, ResolvedAssignment
from ..rbac.directory import GraphPrincipalDirectory, PlanningDirectory, PrincipalDirectory
from ..rbac.provisioning import ArmAssignmentSink, RecordingSink, apply_assignments
from ..rbac.reconciler import RoleAssignmentReconciler, managed_rbac_report
from ..stack import StackConfig, load_stack
from .common import echo_json, get_token_getter, handle_cli_errors

app = typer.Typer(help="Declarative Azure RBAC for directory users")

STACK_ARGUMENT = typer.Argument(  # noqa: B008
    ...,
    exists=True,
    file_okay=True,
    dir_okay=False,
    resolve_path=True,
    help="Path to the stack YAML file",
)
LENIENT_OPTION = typer.Option(  # noqa: B008
    False,
    "--lenient-lookup",
    help="Treat failed directory lookups as 'user not found' instead of aborting.",
)


def _reconciler(
    stack: StackConfig, directory: PrincipalDirectory, *, lenient: bool
) -> RoleAssignmentReconciler:
    return RoleAssignmentReconciler(
        directory,
        catalog=stack.catalog(),
        strict_lookup=stack.rbac.strict_lookup and not lenient,
        require_initial_credential=stack.rbac.require_initial_credential,
    )


def _render(assignment: ResolvedAssignment, outcome: AssignmentOutcome) -> None:
    suffix = " (new)" if assignment.principal_pending else ""
    typer.echo(
        f"{outcome.value:<9} {assignment.logical_name} -> {assignment.scope_path} "
        f"[{assignment.assignment_key}]{suffix}"
    )


def _as_json(results: Sequence[tuple[ResolvedAssignment, AssignmentOutcome]]) -> list[dict]:
    return [
        {**assignment.model_dump(mode="json"), "outcome": outcome.value}
        for assignment, outcome in results
    ]


@app.command("plan")
@handle_cli_errors
def rbac_plan(
    ctx: typer.Context,
    stack_path: Path = STACK_ARGUMENT,
    lenient_lookup: bool = LENIENT_OPTION,
    as_json: bool = typer.Option(False, "--json", help="Emit the plan as JSON"),  # noqa: B008
) -> None:
    """Show the role assignments an apply would declare without changing anything."""

    stack = load_stack(stack_path)
    subscription_id = stack.require_subscription_id()
    with GraphClient(get_token_getter(ctx, "graph")) as graph:
        directory = PlanningDirectory(GraphPrincipalDirectory(graph))
        resolved = _reconciler(stack, directory, lenient=lenient_lookup).reconcile(
            stack.rbac.users, subscription_id
        )
    results = apply_assignments(resolved, RecordingSink())
    if as_json:
        echo_json(_as_json(results))
        return
    for assignment, outcome in results:
        _render(assignment, outcome)
    typer.echo(
        f"Plan: {len({a.assignment_key for a, _ in results})} assignment(s), "
        f"{len(directory.pending)} new user(s)"
    )


@app.command("apply")
@handle_cli_errors
def rbac_apply(
    ctx: typer.Context,
    stack_path: Path = STACK_ARGUMENT,
    lenient_lookup: bool = LENIENT_OPTION,
) -> None:
    """Create missing users and declare their role assignments."""

    stack = load_stack(stack_path)
    subscription_id = stack.require_subscription_id()
    with (
        GraphClient(get_token_getter(ctx, "graph")) as graph,
        ArmAuthorizationClient(get_token_getter(ctx, "arm")) as arm,
    ):
        resolved = _reconciler(
            stack, GraphPrincipalDirectory(graph), lenient=lenient_lookup
        ).reconcile(stack.rbac.users, subscription_id)
        results = apply_assignments(resolved, ArmAssignmentSink(arm))

    for assignment, outcome in results:
        _render(assignment, outcome)
    outcomes = {a.assignment_key: o for a, o in results}
    created = sum(1 for o in outcomes.values() if o is AssignmentOutcome.CREATED)
    typer.echo(f"Applied: {created} created, {len(outcomes) - created} unchanged")


@app.command("report")
@handle_cli_errors
def rbac_report(stack_path: Path = STACK_ARGUMENT) -> None:
    """Print the merged profile and explicit assignments of every declared user."""

    stack = load_stack(stack_path)
    records = managed_rbac_report(
        stack.rbac.users, stack.azure.subscription_id or "", stack.catalog()
    )
    echo_json(
        [
            {
                "upn": record.upn,
                "profile": record.profile,
                "assignments": [
                    assignment.model_dump(mode="json", by_alias=True, exclude_none=True)
                    for assignment in record.assignments
                ],
            }
            for record in records
        ]
    )


__all__ = ["app", "rbac_apply", "rbac_plan", "rbac_report"]
