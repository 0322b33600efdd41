"""Pydantic models for the cluster configuration tree.

These models provide:
1. Type-safe YAML parsing (camelCase keys, snake_case also accepted)
2. Validation at the boundary (fail fast, fail loudly)
3. A typed ClusterSpec the reconciler consumes without further casting

The observed state (RemoteClusterState) reuses the profile models so
declared and observed values compare field by field.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal

from pydantic import BaseModel, Field, SecretStr, field_validator, model_validator

from .codec import (
    AgentPoolRole,
    IdentityProviderKind,
    OSType,
    decode_enum,
    decode_provider_kind,
    normalize_location,
    optional_string,
    validate_cidr,
    validate_node_count,
    validate_pool_name,
)
from .errors import SpecValidationError
from .identity import ClusterIdentity


class ProfileModel(BaseModel):
    """Base for all configuration models."""

    model_config = {"extra": "ignore", "populate_by_name": True}


# =============================================================================
# Pool Profiles
# =============================================================================


class PoolProfile(ProfileModel):
    """Shape shared by master and agent pools."""

    name: str
    count: int = 1
    vm_size: Annotated[str, Field(min_length=1, alias="vmSize")]
    os_type: OSType = Field(OSType.LINUX, alias="osType")
    subnet_cidr: str = Field(alias="subnetCidr")

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        return validate_pool_name(v, "name")

    @field_validator("count")
    @classmethod
    def validate_count(cls, v: int) -> int:
        return validate_node_count(v, "count")

    @field_validator("os_type", mode="before")
    @classmethod
    def decode_os_type(cls, v: Any) -> OSType:
        if v is None or v == "":
            return OSType.LINUX
        return decode_enum(v, OSType, "osType")

    @field_validator("subnet_cidr")
    @classmethod
    def validate_subnet_cidr(cls, v: str) -> str:
        return validate_cidr(v, "subnetCidr")


class MasterPoolProfile(PoolProfile):
    """Master (control plane) pool."""

    pass


class AgentPoolProfile(PoolProfile):
    """Agent pool; a cluster has one or more."""

    role: AgentPoolRole = AgentPoolRole.COMPUTE

    @field_validator("role", mode="before")
    @classmethod
    def decode_role(cls, v: Any) -> AgentPoolRole:
        return decode_enum(v, AgentPoolRole, "role")


# =============================================================================
# Network and Router Profiles
# =============================================================================


class NetworkProfile(ProfileModel):
    """Cluster virtual network."""

    vnet_cidr: str = Field(alias="vnetCidr")
    peer_vnet_id: str | None = Field(None, alias="peerVnetId")
    vnet_id: str | None = Field(None, alias="vnetId")

    @field_validator("vnet_cidr")
    @classmethod
    def validate_vnet_cidr(cls, v: str) -> str:
        return validate_cidr(v, "vnetCidr")

    @field_validator("peer_vnet_id", "vnet_id", mode="before")
    @classmethod
    def empty_as_unset(cls, v: str | None) -> str | None:
        return optional_string(v)


class RouterProfile(ProfileModel):
    """Router profile. public_subdomain is optional+computed, fqdn computed."""

    name: Annotated[str, Field(min_length=1)]
    public_subdomain: str | None = Field(None, alias="publicSubdomain")
    fqdn: str | None = None

    @field_validator("public_subdomain", "fqdn", mode="before")
    @classmethod
    def empty_as_unset(cls, v: str | None) -> str | None:
        return optional_string(v)


# =============================================================================
# Auth Profile
# =============================================================================


class BaseIdentityProvider(ProfileModel):
    """Base identity provider variant: discriminator only."""

    kind: Literal[IdentityProviderKind.BASE] = IdentityProviderKind.BASE


class AADIdentityProvider(ProfileModel):
    """Azure Active Directory identity provider variant.

    client_secret is write-only: the remote API never returns it, so an
    observed provider has client_secret=None meaning "unknown/unchanged".
    tenant_id is computed: the ambient tenant is injected on expand and
    the observed value is filled on flatten.
    """

    kind: Literal[IdentityProviderKind.AAD] = IdentityProviderKind.AAD
    client_id: Annotated[str, Field(min_length=1, alias="clientId")]
    client_secret: SecretStr | None = Field(None, alias="clientSecret")
    group_id: str | None = Field(None, alias="groupId")
    tenant_id: str | None = Field(None, alias="tenantId")

    @field_validator("group_id", "tenant_id", mode="before")
    @classmethod
    def empty_as_unset(cls, v: str | None) -> str | None:
        return optional_string(v)

    @field_validator("client_secret", mode="before")
    @classmethod
    def empty_secret_as_unset(cls, v: Any) -> Any:
        if isinstance(v, str):
            return optional_string(v)
        return v


IdentityProviderVariant = BaseIdentityProvider | AADIdentityProvider


def resolve_provider_variant(raw: Any) -> IdentityProviderVariant:
    """Build the provider variant selected by the "kind" discriminator.

    Unknown kinds resolve to the base variant.
    """
    if isinstance(raw, BaseIdentityProvider | AADIdentityProvider):
        return raw
    if not isinstance(raw, dict):
        raise SpecValidationError("provider", f"must be a mapping, got {type(raw).__name__}")

    kind = decode_provider_kind(raw.get("kind"))
    match kind:
        case IdentityProviderKind.AAD:
            return AADIdentityProvider.model_validate({**raw, "kind": kind})
        case IdentityProviderKind.BASE:
            return BaseIdentityProvider()


class IdentityProvider(ProfileModel):
    """Named identity provider entry of the auth profile."""

    name: Annotated[str, Field(min_length=1)]
    provider: IdentityProviderVariant

    @field_validator("provider", mode="before")
    @classmethod
    def resolve_variant(cls, v: Any) -> IdentityProviderVariant:
        return resolve_provider_variant(v)


class AuthProfile(ProfileModel):
    """Ordered list of identity providers."""

    identity_providers: list[IdentityProvider] = Field(
        default_factory=list, alias="identityProviders"
    )

    @field_validator("identity_providers")
    @classmethod
    def validate_unique_names(cls, v: list[IdentityProvider]) -> list[IdentityProvider]:
        _require_unique([p.name for p in v], "identityProviders")
        return v


# =============================================================================
# Cluster
# =============================================================================


def _require_unique(names: list[str], field: str) -> None:
    seen: set[str] = set()
    for name in names:
        if name in seen:
            raise SpecValidationError(field, f"duplicate name {name!r}")
        seen.add(name)


class ClusterSpec(ProfileModel):
    """Desired state of one managed OpenShift cluster.

    name, resource_group_name and location are immutable after creation.
    """

    name: Annotated[str, Field(min_length=1)]
    resource_group_name: Annotated[str, Field(min_length=1, max_length=90, alias="resourceGroupName")]
    location: Annotated[str, Field(min_length=1)]
    openshift_version: str | None = Field(None, alias="openshiftVersion")
    master_pool_profile: MasterPoolProfile = Field(alias="masterPoolProfile")
    agent_pool_profiles: Annotated[
        list[AgentPoolProfile], Field(min_length=1, alias="agentPoolProfiles")
    ]
    network_profile: NetworkProfile = Field(alias="networkProfile")
    router_profiles: list[RouterProfile] = Field(default_factory=list, alias="routerProfiles")
    auth_profile: AuthProfile = Field(default_factory=AuthProfile, alias="authProfile")
    tags: dict[str, str] = Field(default_factory=dict)

    @field_validator("location")
    @classmethod
    def normalize_region(cls, v: str) -> str:
        return normalize_location(v)

    @field_validator("openshift_version", mode="before")
    @classmethod
    def empty_as_unset(cls, v: str | None) -> str | None:
        return optional_string(v)

    @model_validator(mode="after")
    def validate_unique_profiles(self) -> ClusterSpec:
        # The master pool has its own namespace; agent pools must not collide
        _require_unique([p.name for p in self.agent_pool_profiles], "agentPoolProfiles")
        _require_unique([r.name for r in self.router_profiles], "routerProfiles")
        return self

    def identity(self, subscription_id: str) -> ClusterIdentity:
        """Identity of this cluster in the given subscription."""
        return ClusterIdentity(
            subscription_id=subscription_id,
            resource_group=self.resource_group_name,
            name=self.name,
        )


class RemoteClusterState(ProfileModel):
    """Observed state of a cluster, flattened from the remote API.

    Secrets are never present: identity provider client_secret is None.
    """

    id: Annotated[str, Field(min_length=1)]
    name: str
    resource_group_name: str = Field(alias="resourceGroupName")
    location: str
    openshift_version: str | None = Field(None, alias="openshiftVersion")
    cluster_version: str | None = Field(None, alias="clusterVersion")
    fqdn: str | None = None
    public_hostname: str | None = Field(None, alias="publicHostname")
    provisioning_state: str | None = Field(None, alias="provisioningState")
    master_pool_profile: MasterPoolProfile | None = Field(None, alias="masterPoolProfile")
    agent_pool_profiles: list[AgentPoolProfile] = Field(
        default_factory=list, alias="agentPoolProfiles"
    )
    network_profile: NetworkProfile | None = Field(None, alias="networkProfile")
    router_profiles: list[RouterProfile] = Field(default_factory=list, alias="routerProfiles")
    auth_profile: AuthProfile | None = Field(None, alias="authProfile")
    tags: dict[str, str] = Field(default_factory=dict)

    @property
    def identity(self) -> ClusterIdentity:
        """Identity parsed from the resource ID."""
        return ClusterIdentity.parse(self.id)

    def to_record(self) -> dict[str, Any]:
        """Serialize for the configuration store."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
