"""Lifecycle reconciler for managed OpenShift clusters.

State machine per cluster identity:

    Absent  -> create  -> Submitting -> Polling -> Ready
    Ready   -> update  -> Submitting -> Polling -> Ready   (mutable changes only)
    Ready   -> update with a force-replace change -> ImmutableFieldChangedError
    Ready   -> delete  -> Submitting -> Polling -> Absent
    any     -> synchronous remote failure          -> Failed
    Polling -> terminal failure reported           -> Failed

After a create or update succeeds, the cluster is read back once and the
flattened response is returned and stored; the declared spec is never
trusted as ground truth after a mutation.

Operations on one identity are serialized by a per-identity lock.
Distinct identities reconcile concurrently and share no mutable state.

Polling uses bounded exponential backoff with a deadline. Timeout or
cancel stops polling only: the remote operation keeps running, the
local state returns to where it was, and resume() can re-poll it.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from enum import Enum
from typing import Any, TypeVar

from .config import PollingConfig
from .drift import ClusterPlan, PlanAction, diff_cluster
from .errors import (
    ClusterOperatorError,
    ImmutableFieldChangedError,
    NotFoundError,
    OperationCanceledError,
    OperationTimeoutError,
    RemoteOperationFailedError,
    SpecValidationError,
    StaleDeleteError,
)
from .guard import ensure_absent
from .identity import ClusterIdentity
from .models import ClusterSpec, RemoteClusterState
from .remote import ClusterClient, OperationHandle, OperationStatus
from .store import ConfigStore
from .translators import expand_cluster, flatten_cluster

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ReconcileState(str, Enum):
    """Lifecycle state of one cluster identity."""

    ABSENT = "Absent"
    SUBMITTING = "Submitting"
    POLLING = "Polling"
    READY = "Ready"
    FAILED = "Failed"


class ClusterReconciler:
    """Drives create, read, update and delete of clusters.

    All collaborators are passed in, so each one can be replaced in tests.
    """

    def __init__(
        self,
        client: ClusterClient,
        store: ConfigStore,
        tenant_id: str,
        polling: PollingConfig | None = None,
        require_import: bool = True,
    ) -> None:
        """Initialize the reconciler.

        Args:
            client: Remote API client.
            store: Configuration store receiving observed state.
            tenant_id: Ambient tenant injected into AAD identity providers.
            polling: Backoff and deadline for long-running operations.
            require_import: Run the existence guard before every create.
                When False, a create may overwrite an existing cluster.
        """
        self._client = client
        self._store = store
        self._tenant_id = tenant_id
        self._polling = polling or PollingConfig()
        self._require_import = require_import
        self._states: dict[str, ReconcileState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._pending: dict[str, OperationHandle] = {}

    # -------------------------------------------------------------------------
    # State tracking
    # -------------------------------------------------------------------------

    @staticmethod
    def _key(identity: ClusterIdentity) -> str:
        return identity.resource_id.lower()

    def state_of(self, identity: ClusterIdentity) -> ReconcileState:
        """Current lifecycle state. Unknown identities are Absent."""
        return self._states.get(self._key(identity), ReconcileState.ABSENT)

    def pending_operation(self, identity: ClusterIdentity) -> OperationHandle | None:
        """Operation left running by a timeout or cancel, if any."""
        return self._pending.get(self._key(identity))

    def _set_state(self, identity: ClusterIdentity, state: ReconcileState, **extra: Any) -> None:
        previous = self.state_of(identity)
        self._states[self._key(identity)] = state
        if previous != state:
            logger.info(
                "Cluster state transition",
                extra={
                    "resource_id": identity.resource_id,
                    "from_state": previous.value,
                    "to_state": state.value,
                    **extra,
                },
            )

    def _lock_for(self, identity: ClusterIdentity) -> asyncio.Lock:
        return self._locks.setdefault(self._key(identity), asyncio.Lock())

    @contextmanager
    def _tracking(self, identity: ClusterIdentity) -> Iterator[None]:
        """Move to Failed on errors, except where the remote is unchanged."""
        previous = self.state_of(identity)
        try:
            yield
        except ImmutableFieldChangedError:
            # Nothing was sent; the cluster is as it was
            self._set_state(identity, previous)
            raise
        except (OperationTimeoutError, OperationCanceledError):
            self._set_state(identity, previous)
            raise
        except NotFoundError:
            self._set_state(identity, ReconcileState.ABSENT)
            raise
        except ClusterOperatorError as e:
            self._set_state(identity, ReconcileState.FAILED, error=type(e).__name__)
            logger.error(
                "Cluster operation failed",
                extra={"resource_id": identity.resource_id, "error": str(e)},
            )
            raise

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        """Run a blocking client call in the default executor."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args))

    # -------------------------------------------------------------------------
    # Polling
    # -------------------------------------------------------------------------

    async def _wait(
        self,
        handle: OperationHandle,
        timeout: float | None,
        cancel_event: asyncio.Event | None,
    ) -> None:
        """Poll an operation to a terminal state.

        Raises:
            RemoteOperationFailedError: If the operation failed remotely.
            OperationTimeoutError: If the deadline passed first.
            OperationCanceledError: If cancel_event was set first.
        """
        identity = handle.identity
        resource_id = identity.resource_id
        timeout_seconds = timeout if timeout is not None else self._polling.timeout_seconds
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout_seconds
        interval = self._polling.initial_interval
        attempt = 0

        self._pending[self._key(identity)] = handle
        self._set_state(identity, ReconcileState.POLLING, operation=handle.operation)

        while True:
            if cancel_event is not None and cancel_event.is_set():
                logger.warning(
                    "Polling canceled, remote operation continues",
                    extra={"resource_id": resource_id, "operation": handle.operation},
                )
                raise OperationCanceledError(handle.operation, resource_id)

            attempt += 1
            result = await self._run(self._client.poll_operation, handle)
            logger.debug(
                "Polled operation",
                extra={
                    "resource_id": resource_id,
                    "operation": handle.operation,
                    "attempt": attempt,
                    "status": result.status.value,
                },
            )

            if result.status is OperationStatus.SUCCEEDED:
                self._pending.pop(self._key(identity), None)
                return
            if result.status is OperationStatus.FAILED:
                self._pending.pop(self._key(identity), None)
                raise RemoteOperationFailedError(
                    handle.operation, resource_id, result.reason or "no reason reported"
                )

            remaining = deadline - loop.time()
            if remaining <= 0:
                logger.warning(
                    "Polling timed out, remote operation continues",
                    extra={
                        "resource_id": resource_id,
                        "operation": handle.operation,
                        "timeout_seconds": timeout_seconds,
                    },
                )
                raise OperationTimeoutError(handle.operation, resource_id, timeout_seconds)

            delay = min(interval, remaining)
            if cancel_event is not None:
                try:
                    await asyncio.wait_for(cancel_event.wait(), timeout=delay)
                except TimeoutError:
                    pass
            else:
                await asyncio.sleep(delay)
            interval = self._polling.next_interval(interval)

    # -------------------------------------------------------------------------
    # Remote reads
    # -------------------------------------------------------------------------

    async def _read(self, identity: ClusterIdentity) -> RemoteClusterState | None:
        """Authoritative read. None means the cluster does not exist."""
        try:
            cluster = await self._run(self._client.get, identity)
        except NotFoundError:
            return None
        return flatten_cluster(cluster)

    async def _read_back(self, identity: ClusterIdentity) -> RemoteClusterState:
        """Read after a successful create or update and store the result."""
        cluster = await self._run(self._client.get, identity)
        state = flatten_cluster(cluster)
        self._store.set_observed_state(identity, state)
        self._set_state(identity, ReconcileState.READY)
        return state

    def _forget(self, identity: ClusterIdentity, reason: str) -> None:
        if self._store.get_observed_state(identity) is not None:
            logger.warning(
                "Cluster no longer exists, removing local record",
                extra={"resource_id": identity.resource_id, "reason": reason},
            )
            self._store.clear_observed_state(identity)
        self._pending.pop(self._key(identity), None)
        self._set_state(identity, ReconcileState.ABSENT)

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    async def apply(
        self,
        identity: ClusterIdentity,
        spec: ClusterSpec,
        *,
        import_existing: bool = False,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RemoteClusterState:
        """Create or update a cluster to match its spec.

        An operation left pending by an earlier timeout or cancel is polled
        to completion first, then its result is compared against the spec.

        Args:
            identity: Cluster to reconcile.
            spec: Declared state. Never mutated.
            import_existing: Adopt an existing cluster instead of refusing.
            timeout: Polling deadline in seconds (default from PollingConfig).
            cancel_event: Stops polling when set.

        Returns:
            Observed state read back after the operation.

        Raises:
            SpecValidationError: Spec does not match identity or cannot be
                expanded. Raised before any remote call.
            AlreadyExistsError: Cluster exists and was not imported.
            ImmutableFieldChangedError: A force-replace field changed.
            RemoteOperationFailedError, OperationTimeoutError,
            OperationCanceledError, TransientAPIError, RemoteAPIError.
        """
        if spec.name != identity.name:
            raise SpecValidationError(
                "name", f"spec declares {spec.name!r} but identity is {identity.name!r}"
            )
        if spec.resource_group_name.lower() != identity.resource_group.lower():
            raise SpecValidationError(
                "resourceGroupName",
                f"spec declares {spec.resource_group_name!r} "
                f"but identity is {identity.resource_group!r}",
            )
        request = expand_cluster(spec, self._tenant_id)

        async with self._lock_for(identity):
            with self._tracking(identity):
                observed: RemoteClusterState | None = None
                pending = self._pending.get(self._key(identity))
                if pending is not None:
                    observed = await self._finish(pending, timeout, cancel_event)
                elif import_existing or self._store.get_observed_state(identity) is not None:
                    observed = await self._read(identity)
                    if observed is None:
                        self._forget(identity, "not found on apply")
                    elif import_existing:
                        logger.info(
                            "Importing existing cluster",
                            extra={"resource_id": identity.resource_id},
                        )

                if observed is None:
                    if self._require_import and not import_existing:
                        await self._run(ensure_absent, self._client, identity)
                    self._set_state(identity, ReconcileState.SUBMITTING, operation="create")
                    handle = await self._run(self._client.create, identity, request)
                else:
                    diff = diff_cluster(spec, observed)
                    if diff.immutable_changes:
                        fields = [c.path for c in diff.immutable_changes]
                        logger.warning(
                            "Force-replace fields changed, refusing in-place update",
                            extra={"resource_id": identity.resource_id, "fields": fields},
                        )
                        raise ImmutableFieldChangedError(identity.resource_id, fields)
                    if not diff.has_changes:
                        logger.info(
                            "No drift detected", extra={"resource_id": identity.resource_id}
                        )
                        self._store.set_observed_state(identity, observed)
                        self._set_state(identity, ReconcileState.READY)
                        return observed

                    logger.info(
                        "Drift detected, updating cluster",
                        extra={
                            "resource_id": identity.resource_id,
                            "changes": [c.path for c in diff.changes],
                        },
                    )
                    self._set_state(identity, ReconcileState.SUBMITTING, operation="update")
                    handle = await self._run(self._client.update, identity, request)

                await self._wait(handle, timeout, cancel_event)
                return await self._read_back(identity)

    async def destroy(
        self,
        identity: ClusterIdentity,
        *,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> None:
        """Delete a cluster and confirm it is gone.

        Raises:
            NotFoundError: The cluster does not exist.
            StaleDeleteError: The delete succeeded but the cluster is still
                returned by the remote API.
            RemoteOperationFailedError, OperationTimeoutError,
            OperationCanceledError, TransientAPIError, RemoteAPIError.
        """
        async with self._lock_for(identity):
            with self._tracking(identity):
                if await self._read(identity) is None:
                    self._forget(identity, "not found on destroy")
                    raise NotFoundError(identity.resource_id)

                self._set_state(identity, ReconcileState.SUBMITTING, operation="delete")
                handle = await self._run(self._client.delete, identity)
                await self._wait(handle, timeout, cancel_event)
                await self._confirm_deleted(identity)

    async def _confirm_deleted(self, identity: ClusterIdentity) -> None:
        if await self._read(identity) is not None:
            raise StaleDeleteError(identity.resource_id)
        self._store.clear_observed_state(identity)
        self._set_state(identity, ReconcileState.ABSENT)

    async def resume(
        self,
        identity: ClusterIdentity,
        *,
        timeout: float | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> RemoteClusterState | None:
        """Re-poll an operation left running by a timeout or cancel.

        Returns:
            Observed state after a create or update, None after a delete.

        Raises:
            ClusterOperatorError: If no operation is pending for the identity.
        """
        async with self._lock_for(identity):
            handle = self._pending.get(self._key(identity))
            if handle is None:
                raise ClusterOperatorError(f"No pending operation for {identity.resource_id!r}")
            with self._tracking(identity):
                return await self._finish(handle, timeout, cancel_event)

    async def _finish(
        self,
        handle: OperationHandle,
        timeout: float | None,
        cancel_event: asyncio.Event | None,
    ) -> RemoteClusterState | None:
        """Poll a pending operation to completion and read the result."""
        logger.info(
            "Resuming pending operation",
            extra={"resource_id": handle.identity.resource_id, "operation": handle.operation},
        )
        await self._wait(handle, timeout, cancel_event)
        if handle.operation == "delete":
            await self._confirm_deleted(handle.identity)
            return None
        return await self._read_back(handle.identity)

    async def refresh(self, identity: ClusterIdentity) -> RemoteClusterState | None:
        """Read the cluster and store its observed state.

        Returns:
            Observed state, or None if the cluster is absent. A cluster
            removed out-of-band has its local record cleared.
        """
        async with self._lock_for(identity):
            with self._tracking(identity):
                state = await self._read(identity)
                if state is None:
                    self._forget(identity, "not found on refresh")
                    return None
                self._store.set_observed_state(identity, state)
                self._set_state(identity, ReconcileState.READY)
                return state

    async def plan(self, identity: ClusterIdentity, spec: ClusterSpec) -> ClusterPlan:
        """Compare a spec against the remote cluster without changing anything."""
        observed = await self._read(identity)
        if observed is None:
            return ClusterPlan(resource_id=identity.resource_id, action=PlanAction.CREATE)
        return ClusterPlan.from_diff(diff_cluster(spec, observed))
