"""Identity federation and RBAC provisioning for Entra ID and Keycloak."""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
