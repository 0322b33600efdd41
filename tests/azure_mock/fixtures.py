"""Shared cluster spec data for tests."""

from __future__ import annotations

import copy
from typing import Any

from aro_operator.config import PollingConfig
from aro_operator.identity import ClusterIdentity
from aro_operator.models import ClusterSpec

SUBSCRIPTION_ID = "12345678-1234-1234-1234-123456789012"
TENANT_ID = "87654321-4321-4321-4321-210987654321"
AAD_CLIENT_ID = "11111111-2222-3333-4444-555555555555"
AAD_GROUP_ID = "66666666-7777-8888-9999-000000000000"

_ACCTEST1: dict[str, Any] = {
    "name": "acctest1",
    "resourceGroupName": "acctestRG-1",
    "location": "East US",
    "openshiftVersion": "v3.11",
    "masterPoolProfile": {
        "name": "default",
        "count": 1,
        "vmSize": "Standard_D2s_v3",
        "osType": "Linux",
        "subnetCidr": "10.0.0.0/24",
    },
    "agentPoolProfiles": [
        {
            "name": "default",
            "count": 1,
            "vmSize": "Standard_D2s_v3",
            "role": "Compute",
            "subnetCidr": "10.0.0.0/24",
        }
    ],
    "networkProfile": {"vnetCidr": "10.0.0.0/8"},
}


def acctest_spec_data(**overrides: Any) -> dict[str, Any]:
    """Raw spec for the acctest1 cluster, with top-level overrides."""
    data = copy.deepcopy(_ACCTEST1)
    data.update(overrides)
    return data


def acctest_spec(**overrides: Any) -> ClusterSpec:
    return ClusterSpec.model_validate(acctest_spec_data(**overrides))


def aad_provider_data(secret: str | None = "s3cr3t-value") -> dict[str, Any]:
    provider: dict[str, Any] = {
        "kind": "AADIdentityProvider",
        "clientId": AAD_CLIENT_ID,
        "groupId": AAD_GROUP_ID,
    }
    if secret is not None:
        provider["clientSecret"] = secret
    return {"identityProviders": [{"name": "Azure AD", "provider": provider}]}


def acctest_identity(spec: ClusterSpec | None = None) -> ClusterIdentity:
    return (spec or acctest_spec()).identity(SUBSCRIPTION_ID)


def fast_polling(timeout_seconds: float = 5.0) -> PollingConfig:
    """Polling without delays between attempts."""
    return PollingConfig(
        initial_interval=0.0,
        max_interval=0.0,
        multiplier=1.0,
        timeout_seconds=timeout_seconds,
    )
