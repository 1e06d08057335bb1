"""Entra ID to Keycloak identity federation."""

from __future__ import annotations

from .app_registration import AppRegistrationProvisioner, AppRegistrationResult
from .keycloak_idp import (
    FederationInputs,
    KeycloakFederationProvisioner,
    KeycloakFederationResult,
    resolve_federation_inputs,
)

__all__ = [
    "AppRegistrationProvisioner",
    "AppRegistrationResult",
    "FederationInputs",
    "KeycloakFederationProvisioner",
    "KeycloakFederationResult",
    "resolve_federation_inputs",
]
