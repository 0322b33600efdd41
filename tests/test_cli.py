"""Tests for the aroctl CLI.

The Azure client is replaced by a StubClusterClient passed through the
click context object.
"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from azure_mock import StubClusterClient
from azure_mock.fixtures import SUBSCRIPTION_ID, TENANT_ID, acctest_spec_data
from click.testing import CliRunner, Result

from aro_operator.cli import cli


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture
def spec_file(tmp_path: Path) -> Path:
    path = tmp_path / "acctest1.yaml"
    path.write_text(yaml.safe_dump(acctest_spec_data()))
    return path


def invoke(
    runner: CliRunner,
    client: StubClusterClient,
    state_dir: Path,
    *args: str,
    input: str | None = None,
) -> Result:
    return runner.invoke(
        cli,
        ["-s", SUBSCRIPTION_ID, "-t", TENANT_ID, "--state-dir", str(state_dir), *args],
        obj={"client": client},
        input=input,
    )


class TestApply:
    def test_create(self, runner: CliRunner, spec_file: Path, tmp_path: Path) -> None:
        client = StubClusterClient()

        result = invoke(runner, client, tmp_path / "state", "apply", str(spec_file))

        assert result.exit_code == 0, result.output
        assert "name: acctest1" in result.output
        assert "provisioningState: Succeeded" in result.output
        assert client.calls == ["get", "create", "poll", "get"]
        assert (tmp_path / "state" / "acctestrg-1.acctest1.yaml").exists()

    def test_second_apply_is_read_only(self, runner: CliRunner, spec_file: Path, tmp_path: Path) -> None:
        client = StubClusterClient()
        invoke(runner, client, tmp_path / "state", "apply", str(spec_file))
        client.calls.clear()

        result = invoke(runner, client, tmp_path / "state", "apply", str(spec_file))

        assert result.exit_code == 0, result.output
        assert client.calls == ["get"]

    def test_existing_cluster_needs_import(self, runner: CliRunner, spec_file: Path, tmp_path: Path) -> None:
        client = StubClusterClient()
        invoke(runner, client, tmp_path / "state-a", "apply", str(spec_file))

        result = invoke(runner, client, tmp_path / "state-b", "apply", str(spec_file))

        assert result.exit_code == 1
        assert "needs to be imported" in result.output
        assert client.count("create") == 1

        result = invoke(runner, client, tmp_path / "state-b", "apply", str(spec_file), "--import")

        assert result.exit_code == 0, result.output
        assert client.count("create") == 1

    def test_invalid_spec(self, runner: CliRunner, tmp_path: Path) -> None:
        data = acctest_spec_data()
        data["masterPoolProfile"]["name"] = "Master"
        path = tmp_path / "bad.yaml"
        path.write_text(yaml.safe_dump(data))
        client = StubClusterClient()

        result = invoke(runner, client, tmp_path / "state", "apply", str(path))

        assert result.exit_code == 1
        assert "Validation failed" in result.output
        assert client.calls == []

    def test_missing_subscription(self, runner: CliRunner, spec_file: Path) -> None:
        result = runner.invoke(
            cli,
            ["-t", TENANT_ID, "apply", str(spec_file)],
            obj={"client": StubClusterClient()},
            env={"AZURE_SUBSCRIPTION_ID": None},
        )

        assert result.exit_code == 2
        assert "AZURE_SUBSCRIPTION_ID" in result.output


class TestPlan:
    def test_absent_cluster(self, runner: CliRunner, spec_file: Path, tmp_path: Path) -> None:
        result = invoke(runner, StubClusterClient(), tmp_path, "plan", str(spec_file))

        assert result.exit_code == 0, result.output
        assert "acctest1: create" in result.output

    def test_force_replace(self, runner: CliRunner, spec_file: Path, tmp_path: Path) -> None:
        client = StubClusterClient()
        invoke(runner, client, tmp_path / "state", "apply", str(spec_file))
        data = acctest_spec_data()
        data["masterPoolProfile"]["vmSize"] = "Standard_D4s_v3"
        data["masterPoolProfile"]["count"] = 3
        changed = tmp_path / "changed.yaml"
        changed.write_text(yaml.safe_dump(data))
        client.calls.clear()

        result = invoke(runner, client, tmp_path / "state", "plan", str(changed))

        assert result.exit_code == 2
        assert "acctest1: replace" in result.output
        assert "-/+ masterPoolProfile.vmSize" in result.output
        assert "~ masterPoolProfile.count: 1 -> 3" in result.output
        assert client.calls == ["get"]


class TestRefreshAndDestroy:
    def test_refresh_absent(self, runner: CliRunner, tmp_path: Path) -> None:
        result = invoke(runner, StubClusterClient(), tmp_path, "refresh", "acctestRG-1", "acctest1")

        assert result.exit_code == 0, result.output
        assert "acctest1: absent" in result.output

    def test_refresh_existing(self, runner: CliRunner, spec_file: Path, tmp_path: Path) -> None:
        client = StubClusterClient()
        invoke(runner, client, tmp_path, "apply", str(spec_file))

        result = invoke(runner, client, tmp_path, "refresh", "acctestRG-1", "acctest1")

        assert result.exit_code == 0, result.output
        assert "fqdn: acctest1.eastus.cloudapp.azure.com" in result.output

    def test_destroy(self, runner: CliRunner, spec_file: Path, tmp_path: Path) -> None:
        client = StubClusterClient()
        invoke(runner, client, tmp_path, "apply", str(spec_file))

        result = invoke(runner, client, tmp_path, "destroy", "acctestRG-1", "acctest1", "--yes")

        assert result.exit_code == 0, result.output
        assert "acctest1: deleted" in result.output
        assert not (tmp_path / "acctestrg-1.acctest1.yaml").exists()

    def test_destroy_declined(self, runner: CliRunner, spec_file: Path, tmp_path: Path) -> None:
        client = StubClusterClient()
        invoke(runner, client, tmp_path, "apply", str(spec_file))

        result = invoke(runner, client, tmp_path, "destroy", "acctestRG-1", "acctest1", input="n\n")

        assert result.exit_code == 1
        assert "delete" not in client.calls

    def test_destroy_unknown(self, runner: CliRunner, tmp_path: Path) -> None:
        result = invoke(runner, StubClusterClient(), tmp_path, "destroy", "acctestRG-1", "acctest1", "-y")

        assert result.exit_code == 1
        assert "was not found" in result.output
