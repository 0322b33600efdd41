"""Cluster identity and Azure resource ID handling.

Azure resource IDs follow the pattern:
/subscriptions/{sub}/resourceGroups/{rg}/providers/{namespace}/{type}/{name}

The resource group and cluster name are extracted by fixed key lookup,
so the ID format must be preserved exactly for compatibility with
existing records.
"""

from __future__ import annotations

from dataclasses import dataclass

from .errors import MalformedIdentityError

PROVIDER_NAMESPACE = "Microsoft.ContainerService"
RESOURCE_TYPE = "openShiftManagedClusters"

SUBSCRIPTIONS_KEY = "subscriptions"
RESOURCE_GROUPS_KEY = "resourceGroups"
PROVIDERS_KEY = "providers"


@dataclass(frozen=True)
class ClusterIdentity:
    """Identity of one managed OpenShift cluster.

    Immutable after creation; any change means a different cluster.
    """

    subscription_id: str
    resource_group: str
    name: str

    @property
    def resource_id(self) -> str:
        """Full ARM resource ID."""
        return (
            f"/{SUBSCRIPTIONS_KEY}/{self.subscription_id}"
            f"/{RESOURCE_GROUPS_KEY}/{self.resource_group}"
            f"/{PROVIDERS_KEY}/{PROVIDER_NAMESPACE}/{RESOURCE_TYPE}/{self.name}"
        )

    def __str__(self) -> str:
        return self.resource_id

    @classmethod
    def parse(cls, resource_id: str) -> ClusterIdentity:
        """Parse an ARM resource ID into a cluster identity.

        Raises:
            MalformedIdentityError: If subscription, resource group or
                cluster name segments are absent.
        """
        segments = parse_resource_id(resource_id)

        subscription_id = segments.get(SUBSCRIPTIONS_KEY)
        if not subscription_id:
            raise MalformedIdentityError(resource_id, SUBSCRIPTIONS_KEY)

        resource_group = segments.get(RESOURCE_GROUPS_KEY)
        if not resource_group:
            raise MalformedIdentityError(resource_id, RESOURCE_GROUPS_KEY)

        name = segments.get(RESOURCE_TYPE)
        if not name:
            raise MalformedIdentityError(resource_id, RESOURCE_TYPE)

        return cls(subscription_id=subscription_id, resource_group=resource_group, name=name)


def parse_resource_id(resource_id: str) -> dict[str, str]:
    """Split a resource ID into a key -> value mapping of path segments.

    The resourceGroups key is matched case-insensitively, as ARM does.
    The provider namespace is stored under the "providers" key.

    Raises:
        MalformedIdentityError: If the ID is empty or has an odd number
            of segments.
    """
    if not resource_id or not resource_id.startswith("/"):
        raise MalformedIdentityError(resource_id or "", SUBSCRIPTIONS_KEY)

    components = [c for c in resource_id.strip("/").split("/") if c]
    if len(components) % 2 != 0:
        raise MalformedIdentityError(resource_id, "key/value pairs")

    segments: dict[str, str] = {}
    for i in range(0, len(components), 2):
        key, value = components[i], components[i + 1]
        if key.lower() == RESOURCE_GROUPS_KEY.lower():
            key = RESOURCE_GROUPS_KEY
        elif key.lower() == SUBSCRIPTIONS_KEY:
            key = SUBSCRIPTIONS_KEY
        segments[key] = value

    return segments
