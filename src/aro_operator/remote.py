"""Remote API client for managed OpenShift clusters.

ClusterClient is the contract the reconciler depends on. It is
synchronous; the reconciler runs it in an executor.

AzureOpenShiftClient implements it over the azure-mgmt-resource generic
resources API. Azure SDK exceptions never leave this module; they are
translated into the operator error taxonomy:

    404                  -> NotFoundError
    409 on create        -> AlreadyExistsError
    429, 5xx, transport  -> TransientAPIError
    other HTTP status    -> RemoteAPIError
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol

from azure.core.credentials import TokenCredential
from azure.core.exceptions import (
    AzureError,
    HttpResponseError,
    ResourceExistsError,
    ResourceNotFoundError,
)
from azure.mgmt.resource import ResourceManagementClient
from azure.mgmt.resource.resources.models import GenericResource

from .api_models import OpenShiftManagedCluster
from .config import DEFAULT_API_VERSION
from .errors import (
    AlreadyExistsError,
    NotFoundError,
    RemoteAPIError,
    TransientAPIError,
)
from .identity import PROVIDER_NAMESPACE, RESOURCE_TYPE, ClusterIdentity

logger = logging.getLogger(__name__)


class OperationStatus(str, Enum):
    """Status of a long-running operation."""

    PENDING = "Pending"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"


@dataclass(frozen=True)
class OperationResult:
    """One poll of a long-running operation. reason is set on failure."""

    status: OperationStatus
    reason: str | None = None


@dataclass
class OperationHandle:
    """An accepted long-running operation, polled until terminal."""

    operation: str
    identity: ClusterIdentity
    poller: Any = field(default=None, repr=False)


class ClusterClient(Protocol):
    """Operations the reconciler needs from the remote API."""

    def create(self, identity: ClusterIdentity, cluster: OpenShiftManagedCluster) -> OperationHandle:
        ...

    def update(self, identity: ClusterIdentity, cluster: OpenShiftManagedCluster) -> OperationHandle:
        ...

    def delete(self, identity: ClusterIdentity) -> OperationHandle:
        ...

    def get(self, identity: ClusterIdentity) -> OpenShiftManagedCluster:
        ...

    def poll_operation(self, handle: OperationHandle) -> OperationResult:
        ...


def _is_transient(status_code: int | None) -> bool:
    return status_code is not None and (status_code == 429 or status_code >= 500)


def _reason(error: AzureError) -> str:
    return getattr(error, "message", None) or str(error)


@contextmanager
def translate_errors(operation: str, identity: ClusterIdentity) -> Iterator[None]:
    """Translate Azure SDK exceptions raised inside the block."""
    resource_id = identity.resource_id
    try:
        yield
    except ResourceNotFoundError as e:
        raise NotFoundError(resource_id) from e
    except ResourceExistsError as e:
        if operation == "create":
            raise AlreadyExistsError(resource_id) from e
        raise RemoteAPIError(operation, resource_id, _reason(e), 409) from e
    except HttpResponseError as e:
        status = e.status_code
        if status == 404:
            raise NotFoundError(resource_id) from e
        if status == 409 and operation == "create":
            raise AlreadyExistsError(resource_id) from e
        if _is_transient(status):
            logger.warning(
                "Transient API error",
                extra={"operation": operation, "resource_id": resource_id, "status_code": status},
            )
            raise TransientAPIError(operation, resource_id, _reason(e), status) from e
        logger.error(
            "API rejected request",
            extra={"operation": operation, "resource_id": resource_id, "status_code": status},
        )
        raise RemoteAPIError(operation, resource_id, _reason(e), status) from e
    except AzureError as e:
        # Connection and transport failures carry no HTTP status
        logger.warning(
            "Transport error",
            extra={"operation": operation, "resource_id": resource_id, "error": str(e)},
        )
        raise TransientAPIError(operation, resource_id, _reason(e), None) from e


def _from_generic_resource(resource: GenericResource) -> OpenShiftManagedCluster:
    return OpenShiftManagedCluster.from_dict(
        {
            "id": resource.id,
            "name": resource.name,
            "type": resource.type,
            "location": resource.location,
            "tags": resource.tags,
            "properties": resource.properties or {},
        }
    )


class AzureOpenShiftClient:
    """ClusterClient over Azure Resource Manager generic resources."""

    def __init__(
        self,
        credential: TokenCredential,
        subscription_id: str,
        api_version: str = DEFAULT_API_VERSION,
    ) -> None:
        self._api_version = api_version
        self._client = ResourceManagementClient(
            credential=credential,
            subscription_id=subscription_id,
        )

    def _resource_args(self, identity: ClusterIdentity) -> dict[str, str]:
        return {
            "resource_group_name": identity.resource_group,
            "resource_provider_namespace": PROVIDER_NAMESPACE,
            "parent_resource_path": "",
            "resource_type": RESOURCE_TYPE,
            "resource_name": identity.name,
            "api_version": self._api_version,
        }

    def _put(
        self, operation: str, identity: ClusterIdentity, cluster: OpenShiftManagedCluster
    ) -> OperationHandle:
        parameters = GenericResource(
            location=cluster.location,
            tags=cluster.tags,
            properties=cluster.properties_dict(),
        )
        with translate_errors(operation, identity):
            poller = self._client.resources.begin_create_or_update(
                parameters=parameters,
                **self._resource_args(identity),
            )
        logger.info(
            "Operation accepted",
            extra={"operation": operation, "resource_id": identity.resource_id},
        )
        return OperationHandle(operation=operation, identity=identity, poller=poller)

    def create(self, identity: ClusterIdentity, cluster: OpenShiftManagedCluster) -> OperationHandle:
        return self._put("create", identity, cluster)

    def update(self, identity: ClusterIdentity, cluster: OpenShiftManagedCluster) -> OperationHandle:
        return self._put("update", identity, cluster)

    def delete(self, identity: ClusterIdentity) -> OperationHandle:
        with translate_errors("delete", identity):
            poller = self._client.resources.begin_delete(**self._resource_args(identity))
        logger.info(
            "Operation accepted",
            extra={"operation": "delete", "resource_id": identity.resource_id},
        )
        return OperationHandle(operation="delete", identity=identity, poller=poller)

    def get(self, identity: ClusterIdentity) -> OpenShiftManagedCluster:
        with translate_errors("get", identity):
            resource = self._client.resources.get(**self._resource_args(identity))
        return _from_generic_resource(resource)

    def poll_operation(self, handle: OperationHandle) -> OperationResult:
        """Check an operation without blocking.

        The SDK poller runs in its own thread; result() is only called
        once it reports done, so it returns immediately or raises the
        terminal error.
        """
        poller = handle.poller
        if not poller.done():
            return OperationResult(OperationStatus.PENDING)
        try:
            poller.result()
        except AzureError as e:
            return OperationResult(OperationStatus.FAILED, _reason(e))
        return OperationResult(OperationStatus.SUCCEEDED)
