"""Operator and CLI settings for managed OpenShift reconciliation.

Configuration is read once from environment variables into frozen
dataclasses; invalid values fail at startup rather than at runtime.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path


class ConfigurationError(Exception):
    """Raised when configuration validation fails."""

    pass


DEFAULT_API_VERSION = "2019-04-30"

# Reconcile loop cadence
DEFAULT_RECONCILE_INTERVAL_SECONDS = 300
MIN_RECONCILE_INTERVAL_SECONDS = 60
MAX_RECONCILE_INTERVAL_SECONDS = 3600

# Cluster create/delete routinely takes 15-30 minutes
DEFAULT_OPERATION_TIMEOUT_SECONDS = 3600
DEFAULT_POLL_INTERVAL_SECONDS = 15.0
DEFAULT_POLL_MAX_INTERVAL_SECONDS = 120.0
DEFAULT_POLL_BACKOFF_MULTIPLIER = 2.0

# Circuit breaker for the operator loop
MAX_CONSECUTIVE_FAILURES = 5
CIRCUIT_BREAKER_RESET_SECONDS = 300

# Cluster spec files larger than this are rejected unread
MAX_SPEC_FILE_SIZE_BYTES = 1024 * 1024

# Subscription, tenant and client IDs
VALID_GUID_PATTERN = r"^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$"
VALID_API_VERSION_PATTERN = r"^\d{4}-\d{2}-\d{2}(-preview)?$"


@dataclass(frozen=True)
class PollingConfig:
    """Bounded exponential backoff for long-running operations.

    The wait before poll n is initial_interval * multiplier**(n-1),
    capped at max_interval. Polling stops at timeout_seconds.
    """

    initial_interval: float = DEFAULT_POLL_INTERVAL_SECONDS
    max_interval: float = DEFAULT_POLL_MAX_INTERVAL_SECONDS
    multiplier: float = DEFAULT_POLL_BACKOFF_MULTIPLIER
    timeout_seconds: float = DEFAULT_OPERATION_TIMEOUT_SECONDS

    def __post_init__(self) -> None:
        errors: list[str] = []

        if self.initial_interval < 0:
            errors.append("POLL_INTERVAL must not be negative")
        if self.max_interval < self.initial_interval:
            errors.append("POLL_MAX_INTERVAL must be at least POLL_INTERVAL")
        if self.multiplier < 1:
            errors.append("POLL_BACKOFF_MULTIPLIER must be at least 1")
        if self.timeout_seconds <= 0:
            errors.append("OPERATION_TIMEOUT must be positive")

        if errors:
            raise ConfigurationError(
                "Polling configuration invalid:\n  - " + "\n  - ".join(errors)
            )

    def next_interval(self, current: float) -> float:
        """Interval to use after waiting `current` seconds."""
        return min(current * self.multiplier, self.max_interval)


@dataclass(frozen=True)
class Config:
    """Settings for one operator process, usually built by from_env.

    Every problem found is collected into a single ConfigurationError.
    """

    # Required fields
    subscription_id: str
    tenant_id: str

    # Optional user-assigned managed identity
    client_id: str | None = None

    # Paths
    specs_dir: Path = field(default_factory=lambda: Path("/specs"))
    state_dir: Path = field(default_factory=lambda: Path("/state"))

    # Timing
    reconcile_interval_seconds: int = DEFAULT_RECONCILE_INTERVAL_SECONDS
    polling: PollingConfig = field(default_factory=PollingConfig)

    # Behavior
    require_import: bool = True
    api_version: str = DEFAULT_API_VERSION
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        errors: list[str] = []

        if not self.subscription_id:
            errors.append("AZURE_SUBSCRIPTION_ID is required")
        elif not re.match(VALID_GUID_PATTERN, self.subscription_id.lower()):
            errors.append(f"AZURE_SUBSCRIPTION_ID must be a valid GUID: {self.subscription_id}")

        if not self.tenant_id:
            errors.append("AZURE_TENANT_ID is required")
        elif not re.match(VALID_GUID_PATTERN, self.tenant_id.lower()):
            errors.append(f"AZURE_TENANT_ID must be a valid GUID: {self.tenant_id}")

        if self.client_id and not re.match(VALID_GUID_PATTERN, self.client_id.lower()):
            errors.append(f"AZURE_CLIENT_ID must be a valid GUID: {self.client_id}")

        if not (
            MIN_RECONCILE_INTERVAL_SECONDS
            <= self.reconcile_interval_seconds
            <= MAX_RECONCILE_INTERVAL_SECONDS
        ):
            errors.append(
                f"RECONCILE_INTERVAL must be between {MIN_RECONCILE_INTERVAL_SECONDS} "
                f"and {MAX_RECONCILE_INTERVAL_SECONDS} seconds"
            )

        if not re.match(VALID_API_VERSION_PATTERN, self.api_version):
            errors.append(f"API_VERSION must look like YYYY-MM-DD: {self.api_version}")

        if self.log_level.upper() not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            errors.append(f"LOG_LEVEL is not a valid level: {self.log_level}")

        if errors:
            error_msg = "Configuration validation failed:\n  - " + "\n  - ".join(errors)
            raise ConfigurationError(error_msg)

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Environment Variables:
            AZURE_SUBSCRIPTION_ID: Subscription holding the clusters
            AZURE_TENANT_ID: Tenant injected into AAD identity providers
            AZURE_CLIENT_ID: User-assigned managed identity (optional)
            SPECS_DIR: Path to cluster YAML specs (default: /specs)
            STATE_DIR: Path to observed state records (default: /state)
            RECONCILE_INTERVAL: Seconds between reconciliation loops (default: 300)
            OPERATION_TIMEOUT: Seconds to poll one operation (default: 3600)
            POLL_INTERVAL: Initial poll interval in seconds (default: 15)
            POLL_MAX_INTERVAL: Poll interval cap in seconds (default: 120)
            POLL_BACKOFF_MULTIPLIER: Poll interval growth factor (default: 2.0)
            REQUIRE_IMPORT: If "true", refuse to adopt existing clusters (default: true)
            API_VERSION: Cluster API version (default: 2019-04-30)
            LOG_LEVEL: Logging level (default: INFO)
        """

        def get_int(key: str, default: int) -> int:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be an integer: {value}") from e

        def get_float(key: str, default: float) -> float:
            value = os.environ.get(key)
            if value is None:
                return default
            try:
                return float(value)
            except ValueError as e:
                raise ConfigurationError(f"{key} must be a number: {value}") from e

        def get_bool(key: str, default: bool) -> bool:
            value = os.environ.get(key, "").lower()
            if not value:
                return default
            return value in ("true", "1", "yes")

        return cls(
            subscription_id=os.environ.get("AZURE_SUBSCRIPTION_ID", ""),
            tenant_id=os.environ.get("AZURE_TENANT_ID", ""),
            client_id=os.environ.get("AZURE_CLIENT_ID") or None,
            specs_dir=Path(os.environ.get("SPECS_DIR", "/specs")),
            state_dir=Path(os.environ.get("STATE_DIR", "/state")),
            reconcile_interval_seconds=get_int(
                "RECONCILE_INTERVAL", DEFAULT_RECONCILE_INTERVAL_SECONDS
            ),
            polling=PollingConfig(
                initial_interval=get_float("POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS),
                max_interval=get_float("POLL_MAX_INTERVAL", DEFAULT_POLL_MAX_INTERVAL_SECONDS),
                multiplier=get_float("POLL_BACKOFF_MULTIPLIER", DEFAULT_POLL_BACKOFF_MULTIPLIER),
                timeout_seconds=get_float("OPERATION_TIMEOUT", DEFAULT_OPERATION_TIMEOUT_SECONDS),
            ),
            require_import=get_bool("REQUIRE_IMPORT", True),
            api_version=os.environ.get("API_VERSION", DEFAULT_API_VERSION),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )
