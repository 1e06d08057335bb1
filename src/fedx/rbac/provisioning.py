"""Provisioning sinks that receive resolved role assignments."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import Protocol

from ..clients.authorization import ArmAuthorizationClient
from ..errors import HttpError, ProvisioningError
from ..models.authorization import CreateRoleAssignmentProperties, CreateRoleAssignmentRequest
from ..models.rbac import AssignmentOutcome, ResolvedAssignment

logger = logging.getLogger(__name__)


class AssignmentSink(Protocol):
    def declare(self, assignment: ResolvedAssignment) -> AssignmentOutcome: ...


def _error_code(exc: HttpError) -> str | None:
    details = exc.details
    if isinstance(details, dict):
        error = details.get("error")
        if isinstance(error, dict):
            code = error.get("code")
            return str(code) if code else None
    return None


class ArmAssignmentSink:
    """Declare assignments against Azure Resource Manager by their deterministic name."""

    def __init__(self, client: ArmAuthorizationClient) -> None:
        self.client = client

    def declare(self, assignment: ResolvedAssignment) -> AssignmentOutcome:
        if assignment.principal_pending:
            raise ProvisioningError(
                f"Principal for '{assignment.principal_identifier}' has not been created yet."
            )
        existing = self.client.get_role_assignment(
            assignment.scope_path, assignment.assignment_key
        )
        if existing is not None:
            props = existing.properties
            same_principal = props.principal_id == assignment.principal_id
            same_role = (
                props.role_definition_id.lower() == assignment.role_definition_path.lower()
            )
            if same_principal and same_role:
                logger.debug("Role assignment %s already present", assignment.logical_name)
                return AssignmentOutcome.UNCHANGED
            raise ProvisioningError(
                f"Role assignment {assignment.assignment_key} at {assignment.scope_path} "
                "exists with a different principal or role."
            )

        request = CreateRoleAssignmentRequest(
            properties=CreateRoleAssignmentProperties(
                principal_id=assignment.principal_id,
                role_definition_id=assignment.role_definition_path,
                principal_type=assignment.principal_type,
            )
        )
        try:
            self.client.create_role_assignment(
                assignment.scope_path, assignment.assignment_key, request
            )
        except HttpError as exc:
            if exc.status_code == 409 and _error_code(exc) == "RoleAssignmentExists":
                logger.warning(
                    "%s is already granted under a different assignment name; leaving it as is",
                    assignment.logical_name,
                )
                return AssignmentOutcome.UNCHANGED
            raise
        logger.info("Created role assignment %s", assignment.logical_name)
        return AssignmentOutcome.CREATED


class RecordingSink:
    """Collects declarations without contacting any API."""

    def __init__(self) -> None:
        self.declared: list[ResolvedAssignment] = []

    def declare(self, assignment: ResolvedAssignment) -> AssignmentOutcome:
        self.declared.append(assignment)
        return AssignmentOutcome.PLANNED


def apply_assignments(
    assignments: Iterable[ResolvedAssignment], sink: AssignmentSink
) -> list[tuple[ResolvedAssignment, AssignmentOutcome]]:
    """Declare each assignment once; repeated keys reuse the first outcome."""

    outcomes: dict[str, AssignmentOutcome] = {}
    results: list[tuple[ResolvedAssignment, AssignmentOutcome]] = []
    for assignment in assignments:
        key = assignment.assignment_key
        if key not in outcomes:
            outcomes[key] = sink.declare(assignment)
        else:
            logger.debug("Skipping duplicate declaration of %s", assignment.logical_name)
        results.append((assignment, outcomes[key]))
    return results


__all__ = ["AssignmentSink", "ArmAssignmentSink", "RecordingSink", "apply_assignments"]
