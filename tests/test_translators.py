"""Tests for expand/flatten between the configuration tree and the API model."""

from __future__ import annotations

import pytest
from azure_mock.fixtures import (
    AAD_CLIENT_ID,
    AAD_GROUP_ID,
    TENANT_ID,
    aad_provider_data,
    acctest_identity,
    acctest_spec,
)

from aro_operator import api_models as api
from aro_operator.codec import AgentPoolRole, OSType
from aro_operator.errors import MalformedIdentityError, SpecValidationError
from aro_operator.identity_providers import expand_provider, flatten_provider
from aro_operator.models import AADIdentityProvider, BaseIdentityProvider, ClusterSpec
from aro_operator.translators import (
    expand_agent_pool_profiles,
    expand_auth_profile,
    expand_cluster,
    expand_router_profiles,
    flatten_agent_pool_profiles,
    flatten_cluster,
    flatten_router_profiles,
)


def _respond(spec: ClusterSpec, request: api.OpenShiftManagedCluster) -> api.OpenShiftManagedCluster:
    """Echo a request back the way the API returns it."""
    return api.OpenShiftManagedCluster.from_dict(
        {**request.as_dict(), "id": acctest_identity(spec).resource_id}
    )


class TestExpand:
    """Tests for configuration -> API translation."""

    def test_acctest_scenario(self) -> None:
        cluster = expand_cluster(acctest_spec(), TENANT_ID)

        assert cluster.name == "acctest1"
        assert cluster.location == "eastus"
        assert cluster.master_pool_profile is not None
        assert cluster.master_pool_profile.count == 1
        assert cluster.master_pool_profile.vm_size == "Standard_D2s_v3"
        assert cluster.master_pool_profile.os_type is OSType.LINUX
        assert cluster.agent_pool_profiles is not None
        assert cluster.agent_pool_profiles[0].role is AgentPoolRole.COMPUTE
        assert cluster.network_profile is not None
        assert cluster.network_profile.vnet_cidr == "10.0.0.0/8"
        assert cluster.auth_profile is None
        assert cluster.router_profiles is None

    def test_wire_shape(self) -> None:
        body = expand_cluster(acctest_spec(), TENANT_ID).as_dict()

        assert body["location"] == "eastus"
        assert body["tags"] == {}
        props = body["properties"]
        assert props["openShiftVersion"] == "v3.11"
        assert props["masterPoolProfile"] == {
            "name": "default",
            "count": 1,
            "vmSize": "Standard_D2s_v3",
            "subnetCidr": "10.0.0.0/24",
            "osType": "Linux",
        }
        assert props["agentPoolProfiles"][0]["role"] == "Compute"
        assert props["networkProfile"] == {"vnetCidr": "10.0.0.0/8"}
        assert "routerProfiles" not in props
        assert "authProfile" not in props
        assert "fqdn" not in props

    def test_does_not_mutate_spec(self) -> None:
        spec = acctest_spec(authProfile=aad_provider_data(), tags={"env": "test"})
        before = spec.model_dump()

        cluster = expand_cluster(spec, TENANT_ID)
        assert cluster.tags is not None
        cluster.tags["added"] = "x"

        assert spec.model_dump() == before

    def test_agent_pool_order_preserved(self) -> None:
        spec = acctest_spec(
            agentPoolProfiles=[
                {"name": "infra", "count": 3, "vmSize": "Standard_D4s_v3", "role": "infra", "subnetCidr": "10.0.0.0/24"},
                {"name": "compute", "count": 2, "vmSize": "Standard_D4s_v3", "subnetCidr": "10.0.0.0/24"},
            ]
        )

        pools = expand_agent_pool_profiles(spec.agent_pool_profiles)

        assert pools is not None
        assert [p.name for p in pools] == ["infra", "compute"]
        assert pools[0].role is AgentPoolRole.INFRA

    def test_empty_inputs_expand_to_none(self) -> None:
        assert expand_agent_pool_profiles([]) is None
        assert expand_router_profiles([]) is None
        assert expand_auth_profile(None, TENANT_ID) is None

    def test_router_fqdn_never_sent(self) -> None:
        spec = acctest_spec(routerProfiles=[{"name": "default", "publicSubdomain": "", "fqdn": "x.example.com"}])

        routers = expand_router_profiles(spec.router_profiles)

        assert routers is not None
        assert routers[0].as_dict() == {"name": "default"}

    def test_count_overflow_fails_loudly(self) -> None:
        with pytest.raises(OverflowError):
            api.OpenShiftManagedClusterMasterPoolProfile(name="default", count=2**31).as_dict()


class TestIdentityProviders:
    """Tests for the identity provider union translation."""

    def test_aad_expand_injects_ambient_tenant(self) -> None:
        auth = aad_provider_data()
        auth["identityProviders"][0]["provider"]["tenantId"] = "ignored-tenant"
        spec = acctest_spec(authProfile=auth)

        provider = expand_provider(spec.auth_profile.identity_providers[0].provider, TENANT_ID)

        assert isinstance(provider, api.OpenShiftManagedClusterAADIdentityProvider)
        assert provider.tenant_id == TENANT_ID
        assert provider.client_id == AAD_CLIENT_ID
        assert provider.customer_admin_group_id == AAD_GROUP_ID
        assert provider.secret == "s3cr3t-value"
        assert provider.as_dict()["kind"] == "AADIdentityProvider"

    def test_aad_secret_not_in_repr(self) -> None:
        provider = api.OpenShiftManagedClusterAADIdentityProvider(client_id="c", secret="s3cr3t-value")
        assert "s3cr3t-value" not in repr(provider)

    def test_aad_without_secret_fails_before_send(self) -> None:
        spec = acctest_spec(authProfile=aad_provider_data(secret=None))

        with pytest.raises(SpecValidationError) as exc_info:
            expand_cluster(spec, TENANT_ID)
        assert exc_info.value.field == "provider.clientSecret"

    def test_round_trip_never_echoes_secret(self) -> None:
        spec = acctest_spec(authProfile=aad_provider_data())

        flattened = flatten_provider(expand_provider(spec.auth_profile.identity_providers[0].provider, TENANT_ID))

        assert isinstance(flattened, AADIdentityProvider)
        assert flattened.client_id == AAD_CLIENT_ID
        assert flattened.tenant_id == TENANT_ID
        assert flattened.group_id == AAD_GROUP_ID
        assert flattened.client_secret is None

    def test_base_variant(self) -> None:
        expanded = expand_provider(BaseIdentityProvider(), TENANT_ID)

        assert expanded.as_dict() == {"kind": "OpenShiftManagedClusterBaseIdentityProvider"}
        assert isinstance(flatten_provider(expanded), BaseIdentityProvider)

    def test_unknown_wire_kind_decodes_to_base(self) -> None:
        provider = api.identity_provider_from_dict({"kind": "GitHubIdentityProvider", "clientId": "x"})
        assert isinstance(provider, api.OpenShiftManagedClusterBaseIdentityProvider)


class TestFlatten:
    """Tests for API -> configuration translation."""

    def test_acctest_round_trip(self) -> None:
        spec = acctest_spec(tags={"env": "test"})

        state = flatten_cluster(_respond(spec, expand_cluster(spec, TENANT_ID)))

        assert state.name == spec.name
        assert state.resource_group_name == spec.resource_group_name
        assert state.location == spec.location
        assert state.openshift_version == spec.openshift_version
        assert state.tags == spec.tags
        assert state.master_pool_profile is not None
        assert state.master_pool_profile.model_dump() == spec.master_pool_profile.model_dump()
        assert [p.model_dump() for p in state.agent_pool_profiles] == [
            p.model_dump() for p in spec.agent_pool_profiles
        ]
        assert state.network_profile is not None
        assert state.network_profile.model_dump() == spec.network_profile.model_dump()
        assert state.identity == acctest_identity(spec)

    def test_auth_round_trip(self) -> None:
        spec = acctest_spec(authProfile=aad_provider_data())

        state = flatten_cluster(_respond(spec, expand_cluster(spec, TENANT_ID)))

        assert state.auth_profile is not None
        entry = state.auth_profile.identity_providers[0]
        assert entry.name == "Azure AD"
        assert isinstance(entry.provider, AADIdentityProvider)
        assert entry.provider.client_secret is None
        assert "s3cr3t-value" not in str(state.to_record())

    def test_computed_fields_are_flattened(self) -> None:
        response = api.OpenShiftManagedCluster.from_dict(
            {
                "id": acctest_identity().resource_id,
                "name": "acctest1",
                "location": "eastus",
                "properties": {
                    "openShiftVersion": "v3.11",
                    "clusterVersion": "3.11.154",
                    "fqdn": "acctest1.eastus.cloudapp.azure.com",
                    "publicHostname": "openshift.acctest1.osadev.cloud",
                    "provisioningState": "Succeeded",
                    "routerProfiles": [
                        {"name": "default", "publicSubdomain": "apps.acctest1.osadev.cloud", "fqdn": "router.acctest1"}
                    ],
                },
            }
        )

        state = flatten_cluster(response)

        assert state.cluster_version == "3.11.154"
        assert state.fqdn == "acctest1.eastus.cloudapp.azure.com"
        assert state.public_hostname == "openshift.acctest1.osadev.cloud"
        assert state.provisioning_state == "Succeeded"
        assert state.router_profiles[0].public_subdomain == "apps.acctest1.osadev.cloud"
        assert state.router_profiles[0].fqdn == "router.acctest1"
        assert state.master_pool_profile is None
        assert state.agent_pool_profiles == []

    def test_empty_lists_flatten_to_empty(self) -> None:
        assert flatten_agent_pool_profiles(None) == []
        assert flatten_router_profiles([]) == []

    def test_malformed_id(self) -> None:
        with pytest.raises(MalformedIdentityError):
            flatten_cluster(api.OpenShiftManagedCluster(id="/subscriptions/sub/resourceGroups/rg", name="acctest1"))

    def test_wire_round_trip(self) -> None:
        spec = acctest_spec(
            authProfile=aad_provider_data(),
            routerProfiles=[{"name": "default", "publicSubdomain": "apps.example.com"}],
        )
        request = expand_cluster(spec, TENANT_ID)

        assert api.OpenShiftManagedCluster.from_dict(request.as_dict()) == request
