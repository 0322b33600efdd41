"""Periodic reconciliation of every declared cluster (operator mode).

Each cycle reloads specs when the store supports it, then applies every
declared cluster in turn. Errors for one cluster do not stop the others.

Circuit breaker: after MAX_CONSECUTIVE_FAILURES failed cycles the loop
pauses for CIRCUIT_BREAKER_RESET_SECONDS before trying again.

The shutdown event doubles as the polling cancel signal, so SIGTERM stops
a long create/update wait promptly; the remote operation keeps running.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from .config import CIRCUIT_BREAKER_RESET_SECONDS, MAX_CONSECUTIVE_FAILURES
from .errors import ClusterOperatorError, OperationCanceledError
from .reconciler import ClusterReconciler
from .spec_loader import SpecLoadError
from .store import ConfigStore

logger = logging.getLogger(__name__)


@dataclass
class CycleResult:
    """Result of one reconciliation cycle."""

    start_time: datetime = field(default_factory=lambda: datetime.now(UTC))
    end_time: datetime | None = None
    reconciled: list[str] = field(default_factory=list)
    errors: dict[str, Exception] = field(default_factory=dict)

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def success(self) -> bool:
        return not self.errors


class ReconcileLoop:
    """Runs ClusterReconciler.apply for every declared cluster on an interval."""

    def __init__(
        self,
        reconciler: ClusterReconciler,
        store: ConfigStore,
        interval_seconds: float,
    ) -> None:
        self._reconciler = reconciler
        self._store = store
        self._interval_seconds = interval_seconds
        self._shutdown_event = asyncio.Event()

        # Circuit breaker state
        self._consecutive_failures = 0
        self._circuit_open_until: datetime | None = None

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def circuit_open(self) -> bool:
        return self._circuit_open_until is not None

    async def run_once(self) -> CycleResult:
        """Reconcile every declared cluster once."""
        result = CycleResult()

        reload = getattr(self._store, "reload", None)
        if reload is not None:
            try:
                reload()
            except SpecLoadError as e:
                logger.error("Failed to load specs", extra={"error": str(e)})
                result.errors["<specs>"] = e
                result.end_time = datetime.now(UTC)
                return result

        for identity in self._store.list_identities():
            if self._shutdown_event.is_set():
                break
            spec = self._store.get_config(identity)
            if spec is None:
                continue
            try:
                await self._reconciler.apply(
                    identity, spec, cancel_event=self._shutdown_event
                )
                result.reconciled.append(identity.resource_id)
            except OperationCanceledError:
                logger.info(
                    "Reconciliation interrupted by shutdown",
                    extra={"resource_id": identity.resource_id},
                )
                break
            except (ClusterOperatorError, SpecLoadError) as e:
                result.errors[identity.resource_id] = e

        result.end_time = datetime.now(UTC)
        self._log_result(result)
        return result

    async def run(self) -> None:
        """Run reconciliation cycles until shutdown."""
        logger.info(
            "Starting reconcile loop",
            extra={"interval_seconds": self._interval_seconds},
        )

        while not self._shutdown_event.is_set():
            # Circuit breaker check
            if self._circuit_open_until is not None:
                now = datetime.now(UTC)
                if now < self._circuit_open_until:
                    remaining = (self._circuit_open_until - now).total_seconds()
                    logger.warning(
                        "Circuit breaker open, skipping reconciliation",
                        extra={
                            "remaining_seconds": remaining,
                            "consecutive_failures": self._consecutive_failures,
                        },
                    )
                    await self._sleep(min(remaining, self._interval_seconds))
                    continue
                logger.info("Circuit breaker reset, resuming reconciliation")
                self._circuit_open_until = None
                self._consecutive_failures = 0

            result = await self.run_once()
            self._record(result)
            await self._sleep(self._interval_seconds)

        logger.info("Reconcile loop shutdown complete")

    def shutdown(self) -> None:
        """Signal the loop to stop."""
        logger.info("Shutdown requested")
        self._shutdown_event.set()

    def _record(self, result: CycleResult) -> None:
        """Update circuit breaker state from a cycle result."""
        if result.success:
            self._consecutive_failures = 0
            return

        self._consecutive_failures += 1
        if self._consecutive_failures >= MAX_CONSECUTIVE_FAILURES:
            self._circuit_open_until = datetime.now(UTC) + timedelta(
                seconds=CIRCUIT_BREAKER_RESET_SECONDS
            )
            logger.error(
                "Circuit breaker opened after consecutive failures",
                extra={
                    "consecutive_failures": self._consecutive_failures,
                    "reset_seconds": CIRCUIT_BREAKER_RESET_SECONDS,
                },
            )

    async def _sleep(self, seconds: float) -> None:
        """Wait for the next cycle or shutdown."""
        try:
            await asyncio.wait_for(self._shutdown_event.wait(), timeout=seconds)
        except TimeoutError:
            pass

    def _log_result(self, result: CycleResult) -> None:
        extra = {
            "duration_seconds": result.duration_seconds,
            "reconciled": len(result.reconciled),
            "failed": len(result.errors),
        }
        if result.errors:
            logger.error(
                "Reconciliation cycle had failures",
                extra={**extra, "errors": {k: str(v) for k, v in result.errors.items()}},
            )
        else:
            logger.info("Reconciliation cycle complete", extra=extra)
