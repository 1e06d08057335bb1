"""Token providers for Microsoft identity platform and Keycloak."""
