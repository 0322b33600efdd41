"""Azure API mocks for testing the cluster operator without Azure connectivity.

Two levels are provided:
- MockAzureContext patches the Azure SDK (managed identity credential and
  ResourceManagementClient) with in-memory fakes, exercising
  AzureOpenShiftClient end to end.
- StubClusterClient implements the ClusterClient protocol directly and
  records every call, for reconciler state machine tests.

Usage:
    from azure_mock import MockAzureContext

    with MockAzureContext(pending_polls=2) as ctx:
        client = AzureOpenShiftClient(get_credential(), SUBSCRIPTION_ID)
        ...
        assert ctx.state.resource_count == 1
"""

from .context import MockAzureContext
from .credential import MockManagedIdentityCredential
from .resources import MockGenericResource, MockResourceClient, MockResourceState
from .stub import StubClusterClient

__all__ = [
    "MockAzureContext",
    "MockGenericResource",
    "MockManagedIdentityCredential",
    "MockResourceClient",
    "MockResourceState",
    "StubClusterClient",
]
