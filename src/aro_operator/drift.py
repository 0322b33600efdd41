"""Drift detection between declared and observed cluster state.

Each difference is classified as in-place (sent as an update) or
force-replace (the cluster must be destroyed and recreated).

Force-replace fields:
- name, resourceGroupName, location
- masterPoolProfile name, vmSize, subnetCidr, osType
- agentPoolProfiles vmSize, subnetCidr, osType (pools matched by name)
- networkProfile vnetCidr

Fields the configuration leaves unset are computed by the remote API and
are not compared. The AAD client secret is write-only and never compared.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from .codec import equal_fold, normalize_location
from .models import (
    AADIdentityProvider,
    AgentPoolProfile,
    AuthProfile,
    ClusterSpec,
    IdentityProvider,
    MasterPoolProfile,
    NetworkProfile,
    RemoteClusterState,
    RouterProfile,
)


@dataclass(frozen=True)
class FieldChange:
    """A single declared-vs-observed difference."""

    path: str
    declared: Any
    observed: Any
    force_new: bool = False

    def describe(self) -> str:
        marker = "-/+" if self.force_new else "~"
        return f"{marker} {self.path}: {self.observed!r} -> {self.declared!r}"


@dataclass
class ClusterDiff:
    """All differences for one cluster."""

    resource_id: str
    changes: list[FieldChange] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        return bool(self.changes)

    @property
    def immutable_changes(self) -> list[FieldChange]:
        return [c for c in self.changes if c.force_new]

    @property
    def in_place_changes(self) -> list[FieldChange]:
        return [c for c in self.changes if not c.force_new]

    @property
    def requires_replacement(self) -> bool:
        return any(c.force_new for c in self.changes)


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


class _Collector:
    def __init__(self) -> None:
        self.changes: list[FieldChange] = []

    def compare(
        self,
        path: str,
        declared: Any,
        observed: Any,
        *,
        force_new: bool = False,
        fold: bool = False,
    ) -> None:
        declared, observed = _plain(declared), _plain(observed)
        if declared is None:
            return
        if fold and isinstance(declared, str) and isinstance(observed, str):
            if equal_fold(declared, observed):
                return
        elif declared == observed:
            return
        self.changes.append(FieldChange(path, declared, observed, force_new))

    def add(self, path: str, declared: Any, observed: Any, force_new: bool = False) -> None:
        self.changes.append(FieldChange(path, declared, observed, force_new))


def _diff_pool(
    out: _Collector,
    path: str,
    declared: MasterPoolProfile | AgentPoolProfile,
    observed: MasterPoolProfile | AgentPoolProfile,
) -> None:
    out.compare(f"{path}.count", declared.count, observed.count)
    out.compare(f"{path}.vmSize", declared.vm_size, observed.vm_size, force_new=True, fold=True)
    out.compare(f"{path}.subnetCidr", declared.subnet_cidr, observed.subnet_cidr, force_new=True)
    out.compare(f"{path}.osType", declared.os_type, observed.os_type, force_new=True)


def _diff_master(
    out: _Collector, declared: MasterPoolProfile, observed: MasterPoolProfile | None
) -> None:
    if observed is None:
        out.add("masterPoolProfile", declared.name, None, force_new=True)
        return
    out.compare("masterPoolProfile.name", declared.name, observed.name, force_new=True)
    _diff_pool(out, "masterPoolProfile", declared, observed)


def _diff_agents(
    out: _Collector, declared: list[AgentPoolProfile], observed: list[AgentPoolProfile]
) -> None:
    observed_by_name = {p.name: p for p in observed}
    declared_names = {p.name for p in declared}

    for pool in declared:
        path = f"agentPoolProfiles[{pool.name}]"
        current = observed_by_name.get(pool.name)
        if current is None:
            out.add(path, pool.name, None)
            continue
        _diff_pool(out, path, pool, current)
        out.compare(f"{path}.role", pool.role, current.role)

    for pool in observed:
        if pool.name not in declared_names:
            out.add(f"agentPoolProfiles[{pool.name}]", None, pool.name)


def _diff_network(
    out: _Collector, declared: NetworkProfile, observed: NetworkProfile | None
) -> None:
    if observed is None:
        out.add("networkProfile.vnetCidr", declared.vnet_cidr, None, force_new=True)
        return
    out.compare("networkProfile.vnetCidr", declared.vnet_cidr, observed.vnet_cidr, force_new=True)
    out.compare("networkProfile.peerVnetId", declared.peer_vnet_id, observed.peer_vnet_id, fold=True)
    out.compare("networkProfile.vnetId", declared.vnet_id, observed.vnet_id, fold=True)


def _diff_routers(
    out: _Collector, declared: list[RouterProfile], observed: list[RouterProfile]
) -> None:
    # An empty declaration lets the API default the router
    if not declared:
        return
    observed_by_name = {r.name: r for r in observed}
    declared_names = {r.name for r in declared}

    for router in declared:
        path = f"routerProfiles[{router.name}]"
        current = observed_by_name.get(router.name)
        if current is None:
            out.add(path, router.name, None)
            continue
        out.compare(f"{path}.publicSubdomain", router.public_subdomain, current.public_subdomain)

    for router in observed:
        if router.name not in declared_names:
            out.add(f"routerProfiles[{router.name}]", None, router.name)


def _provider_fields(entry: IdentityProvider) -> dict[str, Any]:
    provider = entry.provider
    fields: dict[str, Any] = {"kind": _plain(provider.kind)}
    if isinstance(provider, AADIdentityProvider):
        fields["clientId"] = provider.client_id
        fields["groupId"] = provider.group_id
    return fields


def _diff_auth(out: _Collector, declared: AuthProfile, observed: AuthProfile | None) -> None:
    observed_providers = observed.identity_providers if observed is not None else []
    observed_by_name = {p.name: p for p in observed_providers}
    declared_names = {p.name for p in declared.identity_providers}

    for entry in declared.identity_providers:
        path = f"authProfile.identityProviders[{entry.name}]"
        current = observed_by_name.get(entry.name)
        if current is None:
            out.add(path, entry.name, None)
            continue
        current_fields = _provider_fields(current)
        for key, value in _provider_fields(entry).items():
            out.compare(f"{path}.{key}", value, current_fields.get(key))

    for entry in observed_providers:
        if entry.name not in declared_names:
            out.add(f"authProfile.identityProviders[{entry.name}]", None, entry.name)


def diff_cluster(desired: ClusterSpec, observed: RemoteClusterState) -> ClusterDiff:
    """Compare a declared spec against observed state.

    Args:
        desired: Declared configuration.
        observed: Flattened remote state.

    Returns:
        ClusterDiff listing every difference, each marked force_new or not.
    """
    out = _Collector()

    out.compare("name", desired.name, observed.name, force_new=True)
    out.compare(
        "resourceGroupName",
        desired.resource_group_name,
        observed.resource_group_name,
        force_new=True,
        fold=True,
    )
    out.compare(
        "location",
        normalize_location(desired.location),
        normalize_location(observed.location),
        force_new=True,
    )
    out.compare("openshiftVersion", desired.openshift_version, observed.openshift_version)

    _diff_master(out, desired.master_pool_profile, observed.master_pool_profile)
    _diff_agents(out, desired.agent_pool_profiles, observed.agent_pool_profiles)
    _diff_network(out, desired.network_profile, observed.network_profile)
    _diff_routers(out, desired.router_profiles, observed.router_profiles)
    _diff_auth(out, desired.auth_profile, observed.auth_profile)

    if desired.tags != observed.tags:
        out.add("tags", dict(desired.tags), dict(observed.tags))

    return ClusterDiff(resource_id=observed.id, changes=out.changes)


class PlanAction(str, Enum):
    """What apply would do for a cluster."""

    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    NO_CHANGE = "no-change"


@dataclass(frozen=True)
class ClusterPlan:
    """Outcome of a dry-run comparison. diff is None when the cluster is absent."""

    resource_id: str
    action: PlanAction
    diff: ClusterDiff | None = None

    @classmethod
    def from_diff(cls, diff: ClusterDiff) -> ClusterPlan:
        if diff.requires_replacement:
            action = PlanAction.REPLACE
        elif diff.has_changes:
            action = PlanAction.UPDATE
        else:
            action = PlanAction.NO_CHANGE
        return cls(resource_id=diff.resource_id, action=action, diff=diff)
