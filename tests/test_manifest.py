"""Tests for the run manifest."""

from __future__ import annotations

import json

import numpy as np
import pytest

from nca_metric.config import NCAConfig
from nca_metric.manifest import ArtifactInfo, RunManifest
from nca_metric.optimizers import OptimizationResult, TerminationReason


def _result() -> OptimizationResult:
    return OptimizationResult(
        transform=np.eye(3),
        objective=-9.5,
        iterations=12,
        termination=TerminationReason.CONVERGED,
        gradient_norm=1e-8,
    )


def test_manifest_records_config_artifacts_and_runs(tmp_path) -> None:
    artifact = tmp_path / "distance.csv"
    artifact.write_text("1,0\n0,1\n")

    manifest = RunManifest(tmp_path)
    manifest.set_config(NCAConfig(), seed=17)
    manifest.register_artifact("distance", artifact, "learn", metadata={"shape": [2, 2]})
    manifest.record_result(_result(), "lbfgs", 10)

    on_disk = json.loads((tmp_path / "MANIFEST.json").read_text())
    assert len(on_disk["config_hash"]) == 16
    assert on_disk["config"]["seed"] == 17
    assert on_disk["artifacts"]["distance"]["stage"] == "learn"
    assert on_disk["runs"][0]["termination"] == "converged"
    assert on_disk["runs"][0]["num_features"] == 3

    reloaded = RunManifest(tmp_path)
    assert reloaded.get_stage_artifacts("learn") == ["distance"]
    assert reloaded.get_stage_artifacts("whiten") == []


def test_config_hash_follows_seed(tmp_path) -> None:
    manifest = RunManifest(tmp_path)
    manifest.set_config(NCAConfig(), seed=1)
    first = manifest.data["config_hash"]
    manifest.set_config(NCAConfig(), seed=2)
    assert manifest.data["config_hash"] != first


def test_verify_checksums_detects_changes(tmp_path) -> None:
    artifact = tmp_path / "distance.csv"
    artifact.write_text("1,0\n0,1\n")
    manifest = RunManifest(tmp_path)
    manifest.register_artifact("distance", artifact, "learn")
    assert manifest.verify_checksums() == {"distance": True}

    artifact.write_text("2,0\n0,2\n")
    assert manifest.verify_checksums() == {"distance": False}

    artifact.unlink()
    assert manifest.verify_checksums() == {"distance": False}


def test_missing_artifact(tmp_path) -> None:
    with pytest.raises(FileNotFoundError):
        RunManifest(tmp_path).register_artifact("distance", tmp_path / "absent.csv", "learn")


def test_artifact_metadata_defaults_to_empty_mapping(tmp_path) -> None:
    first = ArtifactInfo("a", "a.csv", "now", 1, "0" * 16, "learn")
    second = ArtifactInfo("b", "b.csv", "now", 1, "0" * 16, "learn")
    first.metadata["shape"] = [2, 2]

    assert second.metadata == {}

    artifact = tmp_path / "distance.csv"
    artifact.write_text("1,0\n0,1\n")
    manifest = RunManifest(tmp_path)
    manifest.register_artifact("distance", artifact, "learn")
    assert manifest.data["artifacts"]["distance"]["metadata"] == {}
