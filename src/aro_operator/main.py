"""Main entry point for the managed OpenShift cluster operator.

Reads cluster specs from SPECS_DIR, reconciles them on RECONCILE_INTERVAL,
and records observed state in STATE_DIR. Authentication is managed
identity only; see credentials.py.
"""

from __future__ import annotations

import asyncio
import json
import logging
import signal
import sys
from datetime import UTC, datetime
from typing import TextIO

from .config import Config, ConfigurationError
from .credentials import CredentialPolicyError, get_credential, redact, resolve_tenant_id
from .loop import ReconcileLoop
from .reconciler import ClusterReconciler
from .remote import AzureOpenShiftClient
from .spec_loader import SpecLoadError
from .store import FileConfigStore

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_LOG_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class JsonFormatter(logging.Formatter):
    """Format logs as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, UTC)
            .isoformat()
            .replace("+00:00", "Z"),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_LOG_ATTRS:
                log_data[key] = value

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(level: str = "INFO", stream: TextIO | None = None) -> None:
    """Configure structured logging with JSON output (stdout by default)."""
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(JsonFormatter())

    root_logger = logging.getLogger()
    root_logger.handlers = [handler]
    root_logger.setLevel(level.upper())

    # Reduce noise from Azure SDK
    logging.getLogger("azure").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


async def main() -> int:
    """Run the operator.

    Returns:
        Exit code: 0 on clean shutdown, 1 on configuration or runtime
        failure, 2 on a credential policy violation.
    """
    setup_logging()
    logger = logging.getLogger(__name__)

    try:
        config = Config.from_env()
    except ConfigurationError as e:
        logger.error("Configuration error", extra={"error": str(e)})
        return 1

    setup_logging(config.log_level)
    logger.info(
        "Starting managed OpenShift cluster operator",
        extra={
            "subscription_id": redact(config.subscription_id),
            "specs_dir": str(config.specs_dir),
            "state_dir": str(config.state_dir),
            "api_version": config.api_version,
            "require_import": config.require_import,
        },
    )

    try:
        credential = get_credential(config.client_id)
        store = FileConfigStore(config.subscription_id, config.specs_dir, config.state_dir)
    except CredentialPolicyError as e:
        logger.critical(
            "Security violation: credentials detected in environment",
            extra={"error": str(e)},
        )
        return 2
    except SpecLoadError as e:
        logger.error(
            "Failed to load cluster specs",
            extra={"error": str(e), "specs_dir": str(config.specs_dir)},
        )
        return 1

    client = AzureOpenShiftClient(credential, config.subscription_id, config.api_version)
    reconciler = ClusterReconciler(
        client=client,
        store=store,
        tenant_id=resolve_tenant_id(config),
        polling=config.polling,
        require_import=config.require_import,
    )
    loop_runner = ReconcileLoop(reconciler, store, config.reconcile_interval_seconds)

    # Set up signal handlers for graceful shutdown
    loop = asyncio.get_running_loop()

    def signal_handler(sig: signal.Signals) -> None:
        logger.info("Received signal", extra={"signal": sig.name})
        loop_runner.shutdown()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))

    try:
        await loop_runner.run()
    except Exception as e:
        logger.exception("Unhandled exception", extra={"error": str(e)})
        return 1

    logger.info("Operator stopped")
    return 0


def run() -> None:
    """Entry point for the operator process."""
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
