"""Tests for the periodic reconcile loop."""

from __future__ import annotations

import asyncio
from pathlib import Path

import pytest
import yaml
from azure_mock import StubClusterClient
from azure_mock.fixtures import (
    SUBSCRIPTION_ID,
    TENANT_ID,
    acctest_identity,
    acctest_spec,
    acctest_spec_data,
    fast_polling,
)

from aro_operator.config import MAX_CONSECUTIVE_FAILURES, PollingConfig
from aro_operator.errors import OperationTimeoutError, TransientAPIError
from aro_operator.loop import CycleResult, ReconcileLoop
from aro_operator.reconciler import ClusterReconciler, ReconcileState
from aro_operator.remote import OperationStatus
from aro_operator.store import FileConfigStore, InMemoryConfigStore


def make_loop(
    client: StubClusterClient,
    store: InMemoryConfigStore | FileConfigStore,
    polling: PollingConfig | None = None,
) -> ReconcileLoop:
    reconciler = ClusterReconciler(
        client=client,
        store=store,
        tenant_id=TENANT_ID,
        polling=polling or fast_polling(),
    )
    return ReconcileLoop(reconciler, store, interval_seconds=0.01)


def two_cluster_store() -> InMemoryConfigStore:
    return InMemoryConfigStore(
        SUBSCRIPTION_ID,
        [acctest_spec(), acctest_spec(name="acctest2")],
    )


class TestRunOnce:
    @pytest.mark.asyncio
    async def test_reconciles_every_cluster(self) -> None:
        client = StubClusterClient()
        loop = make_loop(client, two_cluster_store())

        result = await loop.run_once()

        assert result.success
        assert len(result.reconciled) == 2
        assert client.count("create") == 2
        assert result.end_time is not None

    @pytest.mark.asyncio
    async def test_second_cycle_is_read_only(self) -> None:
        client = StubClusterClient()
        loop = make_loop(client, two_cluster_store())
        await loop.run_once()
        client.calls.clear()

        result = await loop.run_once()

        assert result.success
        assert client.calls == ["get", "get"]

    @pytest.mark.asyncio
    async def test_one_failure_does_not_stop_others(self) -> None:
        client = StubClusterClient(poll_statuses=[OperationStatus.FAILED])
        loop = make_loop(client, two_cluster_store())

        result = await loop.run_once()

        assert not result.success
        assert len(result.errors) == 1
        assert len(result.reconciled) == 1
        failed_id = next(iter(result.errors))
        assert failed_id.endswith("/acctest1")

    @pytest.mark.asyncio
    async def test_spec_load_error_recorded(self, tmp_path: Path) -> None:
        specs_dir = tmp_path / "specs"
        specs_dir.mkdir()
        (specs_dir / "acctest1.yaml").write_text(yaml.safe_dump(acctest_spec_data()))
        client = StubClusterClient()
        loop = make_loop(client, FileConfigStore(SUBSCRIPTION_ID, specs_dir, tmp_path / "state"))
        (specs_dir / "broken.yaml").write_text("name: [")

        result = await loop.run_once()

        assert "<specs>" in result.errors
        assert client.calls == []

    @pytest.mark.asyncio
    async def test_shutdown_cancels_polling(self) -> None:
        client = StubClusterClient()
        client.default_status = OperationStatus.PENDING
        loop = make_loop(client, two_cluster_store())

        task = asyncio.create_task(loop.run_once())
        await asyncio.sleep(0.05)
        loop.shutdown()
        result = await asyncio.wait_for(task, timeout=2)

        assert result.reconciled == []
        assert client.count("create") == 1
        assert loop._reconciler.pending_operation(acctest_identity()) is not None

    @pytest.mark.asyncio
    async def test_next_cycle_finishes_timed_out_create(self) -> None:
        client = StubClusterClient()
        client.visible_on_accept = True
        client.default_status = OperationStatus.PENDING
        store = InMemoryConfigStore(SUBSCRIPTION_ID, [acctest_spec()])
        loop = make_loop(client, store, fast_polling(timeout_seconds=0.05))

        first = await loop.run_once()
        client.default_status = OperationStatus.SUCCEEDED
        second = await loop.run_once()
        third = await loop.run_once()

        assert isinstance(first.errors[acctest_identity().resource_id], OperationTimeoutError)
        assert second.success
        assert third.success
        assert client.count("create") == 1
        assert loop._reconciler.pending_operation(acctest_identity()) is None
        assert store.get_observed_state(acctest_identity()) is not None


class TestCircuitBreaker:
    def test_success_resets_failures(self) -> None:
        loop = make_loop(StubClusterClient(), InMemoryConfigStore(SUBSCRIPTION_ID))
        failed = CycleResult(errors={"x": TransientAPIError("get", "x", "boom", 503)})

        loop._record(failed)
        loop._record(failed)
        assert loop.consecutive_failures == 2

        loop._record(CycleResult())
        assert loop.consecutive_failures == 0
        assert not loop.circuit_open

    @pytest.mark.asyncio
    async def test_opens_after_consecutive_failures(self) -> None:
        client = StubClusterClient()
        client.errors["get"] = TransientAPIError("get", "acctest1", "service unavailable", 503)
        loop = make_loop(client, InMemoryConfigStore(SUBSCRIPTION_ID, [acctest_spec()]))

        for _ in range(MAX_CONSECUTIVE_FAILURES):
            loop._record(await loop.run_once())

        assert loop.consecutive_failures == MAX_CONSECUTIVE_FAILURES
        assert loop.circuit_open
        assert loop._reconciler.state_of(acctest_identity()) is ReconcileState.FAILED


class TestRun:
    @pytest.mark.asyncio
    async def test_run_until_shutdown(self) -> None:
        client = StubClusterClient()
        loop = make_loop(client, two_cluster_store())

        task = asyncio.create_task(loop.run())
        for _ in range(100):
            if client.count("create") == 2:
                break
            await asyncio.sleep(0.01)
        loop.shutdown()
        await asyncio.wait_for(task, timeout=2)

        assert client.count("create") == 2
        assert loop.consecutive_failures == 0
