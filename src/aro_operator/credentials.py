"""Credential and tenant resolution.

The operator authenticates with a managed identity only. Service principal
secrets, certificates and passwords in the environment are refused at
startup: AAD identity provider secrets already flow through the cluster
specs, and the operator itself must not hold a second set of secrets.

SECURITY INVARIANTS:
1. AZURE_CLIENT_SECRET must never be present in the environment
2. ManagedIdentityCredential is the only credential type returned
3. Identifiers are redacted before they are logged
"""

from __future__ import annotations

import logging
import os

from azure.identity import ManagedIdentityCredential

from .config import Config

logger = logging.getLogger(__name__)

# Environment variables that indicate credential leakage
FORBIDDEN_CREDENTIAL_ENV_VARS: tuple[str, ...] = (
    "AZURE_CLIENT_SECRET",
    "AZURE_CLIENT_CERTIFICATE_PATH",
    "AZURE_CLIENT_CERTIFICATE_PASSWORD",
    "AZURE_USERNAME",
    "AZURE_PASSWORD",
)


class CredentialPolicyError(Exception):
    """Raised when a credential secret is found in the environment.

    This is fatal: the operator must not start.
    """

    def __init__(self, env_var: str) -> None:
        self.env_var = env_var
        super().__init__(
            f"{env_var} is set. Only managed identity authentication is allowed: "
            "remove credential environment variables and assign a managed identity."
        )


def redact(value: str | None) -> str:
    """Shorten an identifier for log output."""
    if not value:
        return ""
    return value[:8] + "..." if len(value) > 8 else value


def enforce_managed_identity_only() -> None:
    """Refuse to continue if credential secrets are in the environment.

    Raises:
        CredentialPolicyError: If any forbidden variable is set.
    """
    for env_var in FORBIDDEN_CREDENTIAL_ENV_VARS:
        if os.environ.get(env_var):
            logger.critical(
                "Credential secret found in environment",
                extra={"env_var": env_var, "action": "startup_blocked"},
            )
            raise CredentialPolicyError(env_var)


def get_credential(client_id: str | None = None) -> ManagedIdentityCredential:
    """Get a ManagedIdentityCredential after checking the environment.

    Args:
        client_id: Client ID of a user-assigned managed identity.
            If None, the system-assigned identity is used.

    Raises:
        CredentialPolicyError: If credential environment variables are set.
    """
    enforce_managed_identity_only()

    if client_id:
        logger.info(
            "Using user-assigned managed identity",
            extra={"client_id": redact(client_id)},
        )
        return ManagedIdentityCredential(client_id=client_id)

    logger.info("Using system-assigned managed identity")
    return ManagedIdentityCredential()


def resolve_tenant_id(config: Config) -> str:
    """Ambient tenant injected into AAD identity providers."""
    logger.debug("Resolved ambient tenant", extra={"tenant_id": redact(config.tenant_id)})
    return config.tenant_id
