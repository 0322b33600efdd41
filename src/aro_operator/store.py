"""Configuration store: declared specs and observed state per cluster.

The store owns ClusterSpec values; the reconciler borrows them for one
operation and writes back RemoteClusterState.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol

import yaml

from .errors import ClusterOperatorError
from .identity import ClusterIdentity
from .models import ClusterSpec, RemoteClusterState
from .spec_loader import SpecLoadError, load_specs
from .translators import observed_from_record

logger = logging.getLogger(__name__)


class ConfigStore(Protocol):
    """Store contract consumed by the reconciler and the operator loop."""

    def list_identities(self) -> list[ClusterIdentity]:
        ...

    def get_config(self, identity: ClusterIdentity) -> ClusterSpec | None:
        ...

    def get_observed_state(self, identity: ClusterIdentity) -> RemoteClusterState | None:
        ...

    def set_observed_state(self, identity: ClusterIdentity, state: RemoteClusterState) -> None:
        ...

    def clear_observed_state(self, identity: ClusterIdentity) -> None:
        ...


def _key(identity: ClusterIdentity) -> str:
    # Resource group names are case-insensitive in ARM
    return f"{identity.subscription_id.lower()}/{identity.resource_group.lower()}/{identity.name}"


class InMemoryConfigStore:
    """Process-local store, used by the CLI and in tests."""

    def __init__(self, subscription_id: str, specs: list[ClusterSpec] | None = None) -> None:
        self._subscription_id = subscription_id
        self._specs: dict[str, tuple[ClusterIdentity, ClusterSpec]] = {}
        self._observed: dict[str, RemoteClusterState] = {}
        for spec in specs or []:
            self.put_config(spec)

    def put_config(self, spec: ClusterSpec) -> ClusterIdentity:
        identity = spec.identity(self._subscription_id)
        self._specs[_key(identity)] = (identity, spec)
        return identity

    def list_identities(self) -> list[ClusterIdentity]:
        return [identity for identity, _ in self._specs.values()]

    def get_config(self, identity: ClusterIdentity) -> ClusterSpec | None:
        entry = self._specs.get(_key(identity))
        return entry[1] if entry else None

    def get_observed_state(self, identity: ClusterIdentity) -> RemoteClusterState | None:
        return self._observed.get(_key(identity))

    def set_observed_state(self, identity: ClusterIdentity, state: RemoteClusterState) -> None:
        self._observed[_key(identity)] = state

    def clear_observed_state(self, identity: ClusterIdentity) -> None:
        self._observed.pop(_key(identity), None)


class FileConfigStore(InMemoryConfigStore):
    """Specs from a directory of YAML files, observed state as YAML records.

    State records are named <resource-group>.<cluster>.yaml in state_dir
    and written atomically.
    """

    def __init__(
        self, subscription_id: str, specs_dir: Path | None, state_dir: Path
    ) -> None:
        super().__init__(subscription_id)
        self._specs_dir = specs_dir
        self._state_dir = state_dir
        self.reload()

    def reload(self) -> None:
        """Re-read spec files. The previous specs are kept on failure.

        Without a specs directory only observed state is stored.

        Raises:
            SpecLoadError: If any spec file is invalid.
        """
        if self._specs_dir is None:
            return
        specs = load_specs(self._specs_dir)
        self._specs.clear()
        for spec in specs:
            self.put_config(spec)
        logger.info(
            "Loaded cluster specs",
            extra={"specs_dir": str(self._specs_dir), "clusters": len(specs)},
        )

    def _state_path(self, identity: ClusterIdentity) -> Path:
        return self._state_dir / f"{identity.resource_group.lower()}.{identity.name}.yaml"

    def get_observed_state(self, identity: ClusterIdentity) -> RemoteClusterState | None:
        path = self._state_path(identity)
        if not path.exists():
            return None

        try:
            record = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            raise SpecLoadError(f"Failed to read state record {path}: {e}") from e

        if not isinstance(record, dict):
            raise SpecLoadError(f"Invalid state record {path}: must be a YAML mapping")
        try:
            return observed_from_record(record)
        except (ClusterOperatorError, AttributeError, TypeError) as e:
            raise SpecLoadError(f"Invalid state record {path}: {e}") from e

    def set_observed_state(self, identity: ClusterIdentity, state: RemoteClusterState) -> None:
        self._state_dir.mkdir(parents=True, exist_ok=True)
        path = self._state_path(identity)
        tmp_path = path.with_suffix(".yaml.tmp")
        tmp_path.write_text(
            yaml.safe_dump(state.to_record(), sort_keys=True),
            encoding="utf-8",
        )
        os.replace(tmp_path, path)
        logger.debug("Saved observed state", extra={"resource_id": identity.resource_id})

    def clear_observed_state(self, identity: ClusterIdentity) -> None:
        path = self._state_path(identity)
        if path.exists():
            path.unlink()
            logger.debug("Removed observed state", extra={"resource_id": identity.resource_id})
