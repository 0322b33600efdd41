"""Typed request/response model of the OpenShift managed cluster API.

Mirrors the ARM wire shape of Microsoft.ContainerService/openShiftManagedClusters
(API version 2019-04-30). Class names follow the Azure SDK models, and like
them each class exposes as_dict() / from_dict() for the camelCase wire form.

Unset (None) fields are omitted from as_dict() output: the remote API
distinguishes an unset field from an empty one.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from .codec import (
    AgentPoolRole,
    IdentityProviderKind,
    OSType,
    decode_enum,
    decode_provider_kind,
    encode_enum,
    encode_int32,
)


def _compact(values: dict[str, Any]) -> dict[str, Any]:
    """Drop unset entries."""
    return {k: v for k, v in values.items() if v is not None}


def _optional_enum(value: Any, enum_type: Any, field_name: str) -> Any:
    if value is None or value == "":
        return None
    return decode_enum(value, enum_type, field_name)


def _optional_int32(value: int | None, field_name: str) -> int | None:
    if value is None:
        return None
    return encode_int32(value, field_name)


# =============================================================================
# Pool Profiles
# =============================================================================


@dataclass
class OpenShiftManagedClusterMasterPoolProfile:
    """Master pool as sent to and returned by the API."""

    name: str | None = None
    count: int | None = None
    vm_size: str | None = None
    subnet_cidr: str | None = None
    os_type: OSType | None = None

    def as_dict(self) -> dict[str, Any]:
        return _compact({
            "name": self.name,
            "count": _optional_int32(self.count, "masterPoolProfile.count"),
            "vmSize": self.vm_size,
            "subnetCidr": self.subnet_cidr,
            "osType": encode_enum(self.os_type),
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OpenShiftManagedClusterMasterPoolProfile:
        return cls(
            name=data.get("name"),
            count=data.get("count"),
            vm_size=data.get("vmSize"),
            subnet_cidr=data.get("subnetCidr"),
            os_type=_optional_enum(data.get("osType"), OSType, "osType"),
        )


@dataclass
class OpenShiftManagedClusterAgentPoolProfile:
    """Agent pool as sent to and returned by the API."""

    name: str | None = None
    count: int | None = None
    vm_size: str | None = None
    subnet_cidr: str | None = None
    os_type: OSType | None = None
    role: AgentPoolRole | None = None

    def as_dict(self) -> dict[str, Any]:
        return _compact({
            "name": self.name,
            "count": _optional_int32(self.count, "agentPoolProfiles.count"),
            "vmSize": self.vm_size,
            "subnetCidr": self.subnet_cidr,
            "osType": encode_enum(self.os_type),
            "role": encode_enum(self.role),
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OpenShiftManagedClusterAgentPoolProfile:
        return cls(
            name=data.get("name"),
            count=data.get("count"),
            vm_size=data.get("vmSize"),
            subnet_cidr=data.get("subnetCidr"),
            os_type=_optional_enum(data.get("osType"), OSType, "osType"),
            role=_optional_enum(data.get("role"), AgentPoolRole, "role"),
        )


# =============================================================================
# Network and Router Profiles
# =============================================================================


@dataclass
class NetworkProfile:
    """Cluster network as sent to and returned by the API."""

    vnet_cidr: str | None = None
    peer_vnet_id: str | None = None
    vnet_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return _compact({
            "vnetCidr": self.vnet_cidr,
            "peerVnetId": self.peer_vnet_id,
            "vnetId": self.vnet_id,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> NetworkProfile:
        return cls(
            vnet_cidr=data.get("vnetCidr"),
            peer_vnet_id=data.get("peerVnetId"),
            vnet_id=data.get("vnetId"),
        )


@dataclass
class OpenShiftRouterProfile:
    """Router profile. fqdn is read-only."""

    name: str | None = None
    public_subdomain: str | None = None
    fqdn: str | None = None

    def as_dict(self) -> dict[str, Any]:
        return _compact({
            "name": self.name,
            "publicSubdomain": self.public_subdomain,
            "fqdn": self.fqdn,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OpenShiftRouterProfile:
        return cls(
            name=data.get("name"),
            public_subdomain=data.get("publicSubdomain"),
            fqdn=data.get("fqdn"),
        )


# =============================================================================
# Identity Providers
# =============================================================================


@dataclass
class OpenShiftManagedClusterBaseIdentityProvider:
    """Base identity provider: discriminator only."""

    kind: IdentityProviderKind = field(default=IdentityProviderKind.BASE, init=False)

    def as_dict(self) -> dict[str, Any]:
        return {"kind": self.kind.value}


@dataclass
class OpenShiftManagedClusterAADIdentityProvider:
    """Azure AD identity provider. The secret is write-only."""

    client_id: str | None = None
    secret: str | None = field(default=None, repr=False)
    tenant_id: str | None = None
    customer_admin_group_id: str | None = None
    kind: IdentityProviderKind = field(default=IdentityProviderKind.AAD, init=False)

    def as_dict(self) -> dict[str, Any]:
        return _compact({
            "kind": self.kind.value,
            "clientId": self.client_id,
            "secret": self.secret,
            "tenantId": self.tenant_id,
            "customerAdminGroupId": self.customer_admin_group_id,
        })


BasicIdentityProvider = (
    OpenShiftManagedClusterBaseIdentityProvider | OpenShiftManagedClusterAADIdentityProvider
)


def identity_provider_from_dict(data: dict[str, Any] | None) -> BasicIdentityProvider:
    """Decode the polymorphic provider by its kind discriminator.

    Unknown kinds decode to the base variant.
    """
    data = data or {}
    match decode_provider_kind(data.get("kind")):
        case IdentityProviderKind.AAD:
            return OpenShiftManagedClusterAADIdentityProvider(
                client_id=data.get("clientId"),
                secret=data.get("secret"),
                tenant_id=data.get("tenantId"),
                customer_admin_group_id=data.get("customerAdminGroupId"),
            )
        case IdentityProviderKind.BASE:
            return OpenShiftManagedClusterBaseIdentityProvider()


@dataclass
class OpenShiftManagedClusterIdentityProvider:
    """Named identity provider entry."""

    name: str | None = None
    provider: BasicIdentityProvider | None = None

    def as_dict(self) -> dict[str, Any]:
        return _compact({
            "name": self.name,
            "provider": self.provider.as_dict() if self.provider is not None else None,
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OpenShiftManagedClusterIdentityProvider:
        return cls(
            name=data.get("name"),
            provider=identity_provider_from_dict(data.get("provider")),
        )


@dataclass
class OpenShiftManagedClusterAuthProfile:
    """Auth profile: ordered identity providers."""

    identity_providers: list[OpenShiftManagedClusterIdentityProvider] | None = None

    def as_dict(self) -> dict[str, Any]:
        if self.identity_providers is None:
            return {}
        return {"identityProviders": [p.as_dict() for p in self.identity_providers]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OpenShiftManagedClusterAuthProfile:
        providers = data.get("identityProviders")
        if providers is None:
            return cls()
        return cls(
            identity_providers=[
                OpenShiftManagedClusterIdentityProvider.from_dict(p) for p in providers
            ]
        )


# =============================================================================
# Cluster
# =============================================================================


@dataclass
class OpenShiftManagedCluster:
    """The managed cluster resource.

    id, cluster_version, fqdn, public_hostname and provisioning_state are
    read-only and only populated on responses.
    """

    location: str | None = None
    name: str | None = None
    id: str | None = None
    type: str | None = None
    tags: dict[str, str] | None = None
    openshift_version: str | None = None
    cluster_version: str | None = None
    public_hostname: str | None = None
    fqdn: str | None = None
    provisioning_state: str | None = None
    network_profile: NetworkProfile | None = None
    router_profiles: list[OpenShiftRouterProfile] | None = None
    master_pool_profile: OpenShiftManagedClusterMasterPoolProfile | None = None
    agent_pool_profiles: list[OpenShiftManagedClusterAgentPoolProfile] | None = None
    auth_profile: OpenShiftManagedClusterAuthProfile | None = None

    def properties_dict(self) -> dict[str, Any]:
        """The "properties" object of the wire form."""
        return _compact({
            "openShiftVersion": self.openshift_version,
            "clusterVersion": self.cluster_version,
            "publicHostname": self.public_hostname,
            "fqdn": self.fqdn,
            "provisioningState": self.provisioning_state,
            "networkProfile": self.network_profile.as_dict() if self.network_profile else None,
            "routerProfiles": (
                [r.as_dict() for r in self.router_profiles]
                if self.router_profiles is not None
                else None
            ),
            "masterPoolProfile": (
                self.master_pool_profile.as_dict() if self.master_pool_profile else None
            ),
            "agentPoolProfiles": (
                [a.as_dict() for a in self.agent_pool_profiles]
                if self.agent_pool_profiles is not None
                else None
            ),
            "authProfile": self.auth_profile.as_dict() if self.auth_profile else None,
        })

    def as_dict(self) -> dict[str, Any]:
        return _compact({
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "location": self.location,
            "tags": self.tags,
            "properties": self.properties_dict(),
        })

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> OpenShiftManagedCluster:
        props = data.get("properties") or {}

        network = props.get("networkProfile")
        routers = props.get("routerProfiles")
        master = props.get("masterPoolProfile")
        agents = props.get("agentPoolProfiles")
        auth = props.get("authProfile")

        return cls(
            id=data.get("id"),
            name=data.get("name"),
            type=data.get("type"),
            location=data.get("location"),
            tags=data.get("tags"),
            openshift_version=props.get("openShiftVersion"),
            cluster_version=props.get("clusterVersion"),
            public_hostname=props.get("publicHostname"),
            fqdn=props.get("fqdn"),
            provisioning_state=props.get("provisioningState"),
            network_profile=NetworkProfile.from_dict(network) if network is not None else None,
            router_profiles=(
                [OpenShiftRouterProfile.from_dict(r) for r in routers]
                if routers is not None
                else None
            ),
            master_pool_profile=(
                OpenShiftManagedClusterMasterPoolProfile.from_dict(master)
                if master is not None
                else None
            ),
            agent_pool_profiles=(
                [OpenShiftManagedClusterAgentPoolProfile.from_dict(a) for a in agents]
                if agents is not None
                else None
            ),
            auth_profile=(
                OpenShiftManagedClusterAuthProfile.from_dict(auth) if auth is not None else None
            ),
        )
