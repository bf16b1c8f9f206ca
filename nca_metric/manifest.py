"""
Run manifest and artifact registry.

Tracks the configuration hash, written artifacts and the optimization outcome
of a run for reproducibility.
"""

import hashlib
import json
from dataclasses import asdict, dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .config import NCAConfig
from .optimizers import OptimizationResult


@dataclass
class ArtifactInfo:
    """Information about a generated artifact."""
    name: str
    path: str
    created: str
    size_bytes: int
    checksum: str
    stage: str
    metadata: Dict[str, Any] = field(default_factory=dict)


class RunManifest:
    """Registry for run artifacts and metadata, persisted as ``MANIFEST.json``."""

    def __init__(self, work_dir: Path):
        self.work_dir = Path(work_dir)
        self.manifest_path = self.work_dir / "MANIFEST.json"
        self.data = self._load_or_create()

    def _load_or_create(self) -> Dict[str, Any]:
        """Load existing manifest or create new one."""
        if self.manifest_path.exists():
            with open(self.manifest_path) as f:
                return json.load(f)
        return {
            "version": __version__,
            "created": datetime.now().isoformat(),
            "config_hash": None,
            "artifacts": {},
            "runs": [],
        }

    def save(self):
        """Save manifest to disk."""
        self.work_dir.mkdir(parents=True, exist_ok=True)
        with open(self.manifest_path, "w") as f:
            json.dump(self.data, f, indent=2, default=str)

    def set_config(self, config: NCAConfig, seed: Optional[int] = None):
        """Register configuration and compute hash."""
        serializable_config = config.model_dump(mode="json")
        if seed is not None:
            serializable_config["seed"] = seed
        config_str = json.dumps(serializable_config, sort_keys=True)

        self.data["config_hash"] = hashlib.sha256(config_str.encode()).hexdigest()[:16]
        self.data["config"] = serializable_config
        self.data["updated"] = datetime.now().isoformat()
        self.save()

    def register_artifact(self, name: str, path: Path, stage: str, metadata: Optional[Dict] = None):
        """Register an artifact."""
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Artifact not found: {path}")

        artifact = ArtifactInfo(
            name=name,
            path=str(path),
            created=datetime.now().isoformat(),
            size_bytes=path.stat().st_size,
            checksum=self._compute_checksum(path),
            stage=stage,
            metadata=metadata or {},
        )
        self.data["artifacts"][name] = asdict(artifact)
        self.save()

    def record_result(self, result: OptimizationResult, optimizer: str, num_points: int):
        """Append the summary of an optimization run."""
        self.data["runs"].append({
            "finished": datetime.now().isoformat(),
            "optimizer": optimizer,
            "num_points": num_points,
            "num_features": int(result.transform.shape[0]),
            "termination": result.termination.value,
            "iterations": result.iterations,
            "objective": result.objective,
            "gradient_norm": result.gradient_norm,
        })
        self.save()

    def verify_checksums(self) -> Dict[str, bool]:
        """Verify all artifact checksums."""
        results = {}
        for name, artifact in self.data["artifacts"].items():
            path = Path(artifact["path"])
            if path.exists():
                results[name] = self._compute_checksum(path) == artifact["checksum"]
            else:
                results[name] = False
        return results

    def get_stage_artifacts(self, stage: str) -> List[str]:
        """Get all artifacts from a specific stage."""
        return [name for name, artifact in self.data["artifacts"].items()
                if artifact["stage"] == stage]

    def _compute_checksum(self, path: Path) -> str:
        """Compute SHA256 checksum of file."""
        sha256_hash = hashlib.sha256()
        with open(path, "rb") as f:
            for byte_block in iter(lambda: f.read(4096), b""):
                sha256_hash.update(byte_block)
        return sha256_hash.hexdigest()[:16]
