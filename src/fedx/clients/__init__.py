from .authorization import ArmAuthorizationClient as ArmAuthorizationClient
from .graph import GraphClient as GraphClient
from .keycloak import KeycloakAdminClient as KeycloakAdminClient

__all__ = [
    "ArmAuthorizationClient",
    "GraphClient",
    "KeycloakAdminClient",
]
