"""Tests for cluster spec file loading."""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml
from azure_mock.fixtures import aad_provider_data, acctest_spec_data

from aro_operator.config import MAX_SPEC_FILE_SIZE_BYTES
from aro_operator.spec_loader import SpecLoadError, load_spec, load_specs, parse_spec


def write_spec(path: Path, data: object) -> Path:
    path.write_text(yaml.safe_dump(data))
    return path


class TestParseSpec:
    def test_flat_form(self) -> None:
        spec = parse_spec(acctest_spec_data())
        assert spec.name == "acctest1"

    def test_kubernetes_wrapper(self) -> None:
        data = acctest_spec_data()
        del data["name"]
        wrapped = {
            "apiVersion": "aro.azure.com/v1",
            "kind": "OpenShiftManagedCluster",
            "metadata": {"name": "acctest1"},
            "spec": data,
        }

        spec = parse_spec(wrapped)

        assert spec.name == "acctest1"
        assert spec.master_pool_profile.vm_size == "Standard_D2s_v3"

    def test_wrapper_spec_name_wins(self) -> None:
        wrapped = {
            "apiVersion": "aro.azure.com/v1",
            "metadata": {"name": "from-metadata"},
            "spec": acctest_spec_data(),
        }
        assert parse_spec(wrapped).name == "acctest1"

    def test_wrong_kind(self) -> None:
        wrapped = {"apiVersion": "v1", "kind": "ConfigMap", "spec": acctest_spec_data()}

        with pytest.raises(SpecLoadError, match="Unsupported kind"):
            parse_spec(wrapped)

    def test_not_a_mapping(self) -> None:
        with pytest.raises(SpecLoadError, match="must be a YAML mapping"):
            parse_spec(["a", "b"])

    def test_validation_errors_are_readable(self) -> None:
        data = acctest_spec_data()
        data["masterPoolProfile"]["name"] = "Master-Pool"

        with pytest.raises(SpecLoadError) as exc_info:
            parse_spec(data, "cluster.yaml")

        message = str(exc_info.value)
        assert "cluster.yaml" in message
        assert "masterPoolProfile.name" in message

    def test_secret_not_in_validation_error(self) -> None:
        data = acctest_spec_data(authProfile=aad_provider_data())
        data["masterPoolProfile"]["count"] = 0

        with pytest.raises(SpecLoadError) as exc_info:
            parse_spec(data)

        assert "s3cr3t-value" not in str(exc_info.value)


class TestLoadSpec:
    def test_load(self, tmp_path: Path) -> None:
        spec = load_spec(write_spec(tmp_path / "acctest1.yaml", acctest_spec_data()))
        assert spec.resource_group_name == "acctestRG-1"

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(SpecLoadError, match="not found"):
            load_spec(tmp_path / "missing.yaml")

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("name: [unclosed")

        with pytest.raises(SpecLoadError, match="Invalid YAML"):
            load_spec(path)

    def test_not_utf8(self, tmp_path: Path) -> None:
        path = tmp_path / "latin1.yaml"
        path.write_bytes("name: acctest1\nlocation: Zürich\n".encode("latin-1"))

        with pytest.raises(SpecLoadError, match="Failed to read"):
            load_spec(path)

    def test_size_limit(self, tmp_path: Path) -> None:
        path = tmp_path / "huge.yaml"
        path.write_text("#" * (MAX_SPEC_FILE_SIZE_BYTES + 1))

        with pytest.raises(SpecLoadError, match="maximum size"):
            load_spec(path)


class TestLoadSpecs:
    def test_loads_sorted_yaml_files(self, tmp_path: Path) -> None:
        write_spec(tmp_path / "b.yaml", acctest_spec_data(name="acctest2"))
        write_spec(tmp_path / "a.yml", acctest_spec_data())
        (tmp_path / "README.md").write_text("not a spec")

        specs = load_specs(tmp_path)

        assert [s.name for s in specs] == ["acctest1", "acctest2"]

    def test_duplicate_cluster(self, tmp_path: Path) -> None:
        write_spec(tmp_path / "a.yaml", acctest_spec_data())
        write_spec(tmp_path / "b.yaml", acctest_spec_data(resourceGroupName="ACCTESTRG-1"))

        with pytest.raises(SpecLoadError, match="declared in both"):
            load_specs(tmp_path)

    def test_undecodable_file_is_load_error(self, tmp_path: Path) -> None:
        write_spec(tmp_path / "a.yaml", acctest_spec_data())
        (tmp_path / "b.yaml").write_bytes(b"\xff\xfe\x00garbage")

        with pytest.raises(SpecLoadError, match="b.yaml"):
            load_specs(tmp_path)

    def test_missing_directory(self, tmp_path: Path) -> None:
        with pytest.raises(SpecLoadError, match="does not exist"):
            load_specs(tmp_path / "nope")
