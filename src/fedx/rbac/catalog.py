"""Built-in role identifiers and profile presets.

Both tables are exposed read-only through :class:`RbacCatalog`, which callers
inject into the reconciler. Stack files extend the defaults with
:meth:`RbacCatalog.extend` instead of mutating module state.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType

from ..models.rbac import AssignmentDeclaration, ScopeKind

BUILTIN_ROLE_IDS: Mapping[str, str] = MappingProxyType(
    {
        "Owner": "8e3af657-a8ff-443c-a75c-2fe8c4bcb635",
        "Contributor": "b24988ac-6180-42a0-ab88-20f7382dd24c",
        "Reader": "acdd72a7-3385-48ef-bd42-f606fba81ae7",
        "User Access Administrator": "18d7d88d-d35e-4fb5-a5c3-7773c20a72d9",
    }
)


def _subscription(role_name: str) -> AssignmentDeclaration:
    return AssignmentDeclaration(role_name=role_name, scope_kind=ScopeKind.SUBSCRIPTION)


def _resource_group(role_name: str, resource_group: str) -> AssignmentDeclaration:
    return AssignmentDeclaration(
        role_name=role_name,
        scope_kind=ScopeKind.RESOURCE_GROUP,
        resource_group_name=resource_group,
    )


DEFAULT_PROFILES: Mapping[str, tuple[AssignmentDeclaration, ...]] = MappingProxyType(
    {
        "sre": (
            _subscription("Reader"),
            _resource_group("Contributor", "rg-infra"),
            _resource_group("Contributor", "rg-observability"),
        ),
        "devops": (_subscription("Contributor"),),
        "developer": (_subscription("Reader"),),
        "observability": (
            _subscription("Reader"),
            _resource_group("Reader", "rg-observability"),
        ),
    }
)


@dataclass(frozen=True)
class RbacCatalog:
    """Immutable role-name and profile tables consulted during reconciliation."""

    roles: Mapping[str, str] = field(default_factory=lambda: BUILTIN_ROLE_IDS)
    profiles: Mapping[str, tuple[AssignmentDeclaration, ...]] = field(
        default_factory=lambda: DEFAULT_PROFILES
    )

    def __post_init__(self) -> None:
        object.__setattr__(self, "roles", MappingProxyType(dict(self.roles)))
        object.__setattr__(
            self,
            "profiles",
            MappingProxyType({name: tuple(items) for name, items in self.profiles.items()}),
        )

    def extend(
        self,
        *,
        roles: Mapping[str, str] | None = None,
        profiles: Mapping[str, Sequence[AssignmentDeclaration]] | None = None,
    ) -> RbacCatalog:
        """Return a new catalog with ``roles`` and ``profiles`` layered over this one."""

        merged_profiles: dict[str, tuple[AssignmentDeclaration, ...]] = dict(self.profiles)
        for name, items in (profiles or {}).items():
            merged_profiles[name] = tuple(items)
        return RbacCatalog(roles={**self.roles, **(roles or {})}, profiles=merged_profiles)


DEFAULT_CATALOG = RbacCatalog()


__all__ = ["BUILTIN_ROLE_IDS", "DEFAULT_PROFILES", "DEFAULT_CATALOG", "RbacCatalog"]
