"""Identity provider variant resolution.

Encodes and decodes the polymorphic identity provider union between the
configuration models and the remote API model. The union is closed: every
match below ends in assert_never so a new variant cannot be silently
mishandled.

Two values never round-trip from configuration:
- tenant_id is injected from the ambient tenant on expand
- the AAD secret is write-only and is never populated on flatten
"""

from __future__ import annotations

from typing import assert_never

from .api_models import (
    BasicIdentityProvider,
    OpenShiftManagedClusterAADIdentityProvider,
    OpenShiftManagedClusterBaseIdentityProvider,
)
from .errors import SpecValidationError
from .models import AADIdentityProvider, BaseIdentityProvider, IdentityProviderVariant


def expand_provider(config: IdentityProviderVariant, tenant_id: str) -> BasicIdentityProvider:
    """Translate a configured provider variant into its API variant.

    Args:
        config: Provider variant from the configuration tree.
        tenant_id: Ambient tenant, injected into directory-backed providers.
            Any tenant_id on the configuration is ignored.

    Raises:
        SpecValidationError: If an AAD provider has no client secret.
    """
    match config:
        case AADIdentityProvider():
            if config.client_secret is None:
                raise SpecValidationError(
                    "provider.clientSecret", "is required for AADIdentityProvider"
                )
            return OpenShiftManagedClusterAADIdentityProvider(
                client_id=config.client_id,
                secret=config.client_secret.get_secret_value(),
                tenant_id=tenant_id,
                customer_admin_group_id=config.group_id,
            )
        case BaseIdentityProvider():
            return OpenShiftManagedClusterBaseIdentityProvider()
        case _:
            assert_never(config)


def flatten_provider(api: BasicIdentityProvider) -> IdentityProviderVariant:
    """Translate an API provider variant back into configuration shape.

    The secret slot is left unset (unknown/unchanged), never emptied.
    """
    match api:
        case OpenShiftManagedClusterAADIdentityProvider():
            return AADIdentityProvider.model_construct(
                client_id=api.client_id or "",
                client_secret=None,
                group_id=api.customer_admin_group_id or None,
                tenant_id=api.tenant_id or None,
            )
        case OpenShiftManagedClusterBaseIdentityProvider():
            return BaseIdentityProvider()
        case _:
            assert_never(api)
