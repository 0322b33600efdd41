"""Profile translators between the configuration tree and the API model.

Each profile has an expand (configuration -> API) and flatten
(API -> configuration) function. Expand never mutates its input and
returns None for an empty input; required-ness is enforced by the
configuration schema, not here.

Flatten covers every field the API returns, including provider-assigned
ones the configuration never declared (cluster fqdn, router fqdn, public
subdomain, openshift version). Flattened values are what the remote
reported, so they are not re-validated against the declaration rules.

Round-trip stability, excluding the write-only secret:
    flatten(expand(x)) == x   for every field the user declares
    expand(flatten(y)) == y   for every field the API declares
"""

from __future__ import annotations

import logging
from typing import Any

from . import api_models as api
from .codec import AgentPoolRole, OSType, normalize_location, optional_string
from .identity import ClusterIdentity
from .identity_providers import expand_provider, flatten_provider
from .models import (
    AgentPoolProfile,
    AuthProfile,
    ClusterSpec,
    IdentityProvider,
    MasterPoolProfile,
    NetworkProfile,
    RemoteClusterState,
    RouterProfile,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Master Pool
# =============================================================================


def expand_master_pool_profile(
    profile: MasterPoolProfile | None,
) -> api.OpenShiftManagedClusterMasterPoolProfile | None:
    if profile is None:
        return None
    return api.OpenShiftManagedClusterMasterPoolProfile(
        name=profile.name,
        count=profile.count,
        vm_size=profile.vm_size,
        subnet_cidr=optional_string(profile.subnet_cidr),
        os_type=profile.os_type,
    )


def flatten_master_pool_profile(
    profile: api.OpenShiftManagedClusterMasterPoolProfile | None,
) -> MasterPoolProfile | None:
    if profile is None:
        return None
    return MasterPoolProfile.model_construct(
        name=profile.name or "",
        count=profile.count if profile.count is not None else 1,
        vm_size=profile.vm_size or "",
        os_type=profile.os_type or OSType.LINUX,
        subnet_cidr=profile.subnet_cidr or "",
    )


# =============================================================================
# Agent Pools
# =============================================================================


def expand_agent_pool_profiles(
    profiles: list[AgentPoolProfile],
) -> list[api.OpenShiftManagedClusterAgentPoolProfile] | None:
    """Expand agent pools, preserving declaration order."""
    if not profiles:
        return None
    return [
        api.OpenShiftManagedClusterAgentPoolProfile(
            name=p.name,
            count=p.count,
            vm_size=p.vm_size,
            subnet_cidr=optional_string(p.subnet_cidr),
            os_type=p.os_type,
            role=p.role,
        )
        for p in profiles
    ]


def flatten_agent_pool_profiles(
    profiles: list[api.OpenShiftManagedClusterAgentPoolProfile] | None,
) -> list[AgentPoolProfile]:
    """Flatten agent pools in the order the API returned them."""
    if not profiles:
        return []
    return [
        AgentPoolProfile.model_construct(
            name=p.name or "",
            count=p.count if p.count is not None else 1,
            vm_size=p.vm_size or "",
            os_type=p.os_type or OSType.LINUX,
            subnet_cidr=p.subnet_cidr or "",
            role=p.role or AgentPoolRole.COMPUTE,
        )
        for p in profiles
    ]


# =============================================================================
# Network
# =============================================================================


def expand_network_profile(profile: NetworkProfile | None) -> api.NetworkProfile | None:
    if profile is None:
        return None
    return api.NetworkProfile(
        vnet_cidr=optional_string(profile.vnet_cidr),
        peer_vnet_id=optional_string(profile.peer_vnet_id),
        vnet_id=optional_string(profile.vnet_id),
    )


def flatten_network_profile(profile: api.NetworkProfile | None) -> NetworkProfile | None:
    if profile is None:
        return None
    return NetworkProfile.model_construct(
        vnet_cidr=profile.vnet_cidr or "",
        peer_vnet_id=optional_string(profile.peer_vnet_id),
        vnet_id=optional_string(profile.vnet_id),
    )


# =============================================================================
# Routers
# =============================================================================


def expand_router_profiles(
    profiles: list[RouterProfile],
) -> list[api.OpenShiftRouterProfile] | None:
    """Expand router profiles. fqdn is computed and never sent."""
    if not profiles:
        return None
    return [
        api.OpenShiftRouterProfile(
            name=p.name,
            public_subdomain=optional_string(p.public_subdomain),
        )
        for p in profiles
    ]


def flatten_router_profiles(
    profiles: list[api.OpenShiftRouterProfile] | None,
) -> list[RouterProfile]:
    if not profiles:
        return []
    return [
        RouterProfile.model_construct(
            name=p.name or "",
            public_subdomain=optional_string(p.public_subdomain),
            fqdn=optional_string(p.fqdn),
        )
        for p in profiles
    ]


# =============================================================================
# Auth
# =============================================================================


def expand_auth_profile(
    profile: AuthProfile | None, tenant_id: str
) -> api.OpenShiftManagedClusterAuthProfile | None:
    """Expand the auth profile, injecting the ambient tenant into providers."""
    if profile is None or not profile.identity_providers:
        return None
    return api.OpenShiftManagedClusterAuthProfile(
        identity_providers=[
            api.OpenShiftManagedClusterIdentityProvider(
                name=p.name,
                provider=expand_provider(p.provider, tenant_id),
            )
            for p in profile.identity_providers
        ]
    )


def flatten_auth_profile(
    profile: api.OpenShiftManagedClusterAuthProfile | None,
) -> AuthProfile | None:
    if profile is None:
        return None
    providers = [
        IdentityProvider.model_construct(
            name=p.name or "",
            provider=flatten_provider(
                p.provider or api.OpenShiftManagedClusterBaseIdentityProvider()
            ),
        )
        for p in profile.identity_providers or []
    ]
    return AuthProfile.model_construct(identity_providers=providers)


# =============================================================================
# Cluster
# =============================================================================


def expand_cluster(spec: ClusterSpec, tenant_id: str) -> api.OpenShiftManagedCluster:
    """Build the create/update request body for a cluster.

    Raises:
        SpecValidationError: If a profile cannot be expanded. Nothing has
            been sent to the remote API at that point.
    """
    cluster = api.OpenShiftManagedCluster(
        name=spec.name,
        location=normalize_location(spec.location),
        tags=dict(spec.tags),
        openshift_version=optional_string(spec.openshift_version),
        network_profile=expand_network_profile(spec.network_profile),
        router_profiles=expand_router_profiles(spec.router_profiles),
        master_pool_profile=expand_master_pool_profile(spec.master_pool_profile),
        agent_pool_profiles=expand_agent_pool_profiles(spec.agent_pool_profiles),
        auth_profile=expand_auth_profile(spec.auth_profile, tenant_id),
    )
    logger.debug(
        "Expanded cluster spec",
        extra={
            "cluster": spec.name,
            "agent_pools": len(spec.agent_pool_profiles),
            "identity_providers": len(spec.auth_profile.identity_providers),
        },
    )
    return cluster


def flatten_cluster(cluster: api.OpenShiftManagedCluster) -> RemoteClusterState:
    """Flatten a remote API response into observed state.

    Identity comes from the resource ID the API returned.

    Raises:
        MalformedIdentityError: If the response ID is missing or malformed.
    """
    identity = ClusterIdentity.parse(cluster.id or "")

    return RemoteClusterState.model_construct(
        id=cluster.id,
        name=cluster.name or identity.name,
        resource_group_name=identity.resource_group,
        location=normalize_location(cluster.location or ""),
        openshift_version=optional_string(cluster.openshift_version),
        cluster_version=optional_string(cluster.cluster_version),
        fqdn=optional_string(cluster.fqdn),
        public_hostname=optional_string(cluster.public_hostname),
        provisioning_state=optional_string(cluster.provisioning_state),
        master_pool_profile=flatten_master_pool_profile(cluster.master_pool_profile),
        agent_pool_profiles=flatten_agent_pool_profiles(cluster.agent_pool_profiles),
        network_profile=flatten_network_profile(cluster.network_profile),
        router_profiles=flatten_router_profiles(cluster.router_profiles),
        auth_profile=flatten_auth_profile(cluster.auth_profile),
        tags=dict(cluster.tags or {}),
    )


def _provider_record_to_wire(provider: dict[str, Any] | None) -> dict[str, Any] | None:
    if provider is None:
        return None
    wire = {k: v for k, v in provider.items() if k != "groupId"}
    if "groupId" in provider:
        wire["customerAdminGroupId"] = provider["groupId"]
    return wire


def observed_from_record(record: dict[str, Any]) -> RemoteClusterState:
    """Rebuild observed state from a stored record.

    The record goes back through flatten_cluster, so it is held to the
    same rules as the API response it was flattened from. Slots the API
    left empty (an omitted subnetCidr, for example) load as they were
    stored instead of failing declaration validation.

    Raises:
        MalformedIdentityError: If the record has no usable resource ID.
        SpecValidationError: If an enum slot holds an unknown value.
    """
    auth = record.get("authProfile")
    if auth is not None:
        auth = {
            "identityProviders": [
                {**p, "provider": _provider_record_to_wire(p.get("provider"))}
                for p in auth.get("identityProviders") or []
            ]
        }

    body = {
        "id": record.get("id"),
        "name": record.get("name"),
        "location": record.get("location"),
        "tags": record.get("tags"),
        "properties": {
            "openShiftVersion": record.get("openshiftVersion"),
            "clusterVersion": record.get("clusterVersion"),
            "publicHostname": record.get("publicHostname"),
            "fqdn": record.get("fqdn"),
            "provisioningState": record.get("provisioningState"),
            "networkProfile": record.get("networkProfile"),
            "routerProfiles": record.get("routerProfiles"),
            "masterPoolProfile": record.get("masterPoolProfile"),
            "agentPoolProfiles": record.get("agentPoolProfiles"),
            "authProfile": auth,
        },
    }
    return flatten_cluster(api.OpenShiftManagedCluster.from_dict(body))
