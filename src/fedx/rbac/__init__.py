"""Declarative Azure RBAC reconciliation for directory users."""

from __future__ import annotations

from .catalog import DEFAULT_CATALOG, RbacCatalog
from .directory import GraphPrincipalDirectory, PlanningDirectory, PrincipalDirectory
from .provisioning import ArmAssignmentSink, AssignmentSink, RecordingSink, apply_assignments
from .reconciler import (
    ReconcileContext,
    RoleAssignmentReconciler,
    derive_assignment_key,
    expand_profile,
    managed_rbac_report,
    merge_assignments,
    resolve_or_create_principal,
    resolve_role_definition,
    resolve_scope,
)

__all__ = [
    "ArmAssignmentSink",
    "AssignmentSink",
    "DEFAULT_CATALOG",
    "GraphPrincipalDirectory",
    "PlanningDirectory",
    "PrincipalDirectory",
    "RbacCatalog",
    "RecordingSink",
    "ReconcileContext",
    "RoleAssignmentReconciler",
    "apply_assignments",
    "derive_assignment_key",
    "expand_profile",
    "managed_rbac_report",
    "merge_assignments",
    "resolve_or_create_principal",
    "resolve_role_definition",
    "resolve_scope",
]
