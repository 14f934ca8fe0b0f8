"""Circuit registry: operation name -> content-addressed artifact.

The registry is built once at process start and handed to the execution
engine. It is read-only afterwards, so concurrent pipelines can share it.
Replacing the artifact behind a name changes its image id; that is a
versioning event owned by whoever builds the artifacts (see export()).
"""

import hashlib
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Union

from bigint2.circuits.programs import OPERATIONS
from bigint2.errors import LoadError, UnknownOperationError

logger = logging.getLogger(__name__)

MANIFEST_NAME = "manifest.json"


@dataclass(frozen=True)
class CircuitArtifact:
    """Immutable circuit binary identified by the SHA-256 of its bytes."""
    name: str
    blob: bytes = field(repr=False)

    @property
    def image_id(self) -> str:
        return hashlib.sha256(self.blob).hexdigest()


class CircuitRegistry:
    """Read-only mapping from operation name to CircuitArtifact."""

    def __init__(self, artifacts: Mapping[str, CircuitArtifact]) -> None:
        for name, artifact in artifacts.items():
            if artifact.name != name:
                raise ValueError(f"Artifact {artifact.name!r} registered under {name!r}")
        self._artifacts = MappingProxyType(dict(artifacts))

    # --- Factory Methods ---

    @classmethod
    def default(cls) -> "CircuitRegistry":
        """Assemble the built-in circuits."""
        return cls({name: CircuitArtifact(name, op.assemble()) for name, op in OPERATIONS.items()})

    @classmethod
    def from_manifest(cls, path: Union[str, Path]) -> "CircuitRegistry":
        """Load artifacts listed in a manifest written by export().

        Manifest layout:
            {"circuits": {"modadd": {"path": "modadd.bin", "image_id": "<sha256 hex>"}, ...}}

        Raises:
            LoadError: Missing/unreadable manifest or blob, or image id mismatch
        """
        manifest_path = Path(path)
        if manifest_path.is_dir():
            manifest_path = manifest_path / MANIFEST_NAME
        try:
            with open(manifest_path) as f:
                manifest = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise LoadError(f"Cannot read manifest {manifest_path}: {e}") from e

        artifacts: Dict[str, CircuitArtifact] = {}
        for name, entry in manifest.get("circuits", {}).items():
            if not isinstance(entry, dict) or "path" not in entry:
                raise LoadError(f"Manifest entry for {name!r} has no path")
            blob_path = manifest_path.parent / entry["path"]
            try:
                blob = blob_path.read_bytes()
            except OSError as e:
                raise LoadError(f"Cannot read artifact {blob_path}: {e}") from e
            artifact = CircuitArtifact(name, blob)
            expected_id = entry.get("image_id")
            if expected_id is not None and artifact.image_id != expected_id:
                raise LoadError(
                    f"Image id mismatch for {name}: manifest {expected_id}, file {artifact.image_id}"
                )
            artifacts[name] = artifact

        logger.debug("Loaded %d circuits from %s", len(artifacts), manifest_path)
        return cls(artifacts)

    # --- Lookup ---

    def lookup(self, operation: str) -> CircuitArtifact:
        try:
            return self._artifacts[operation]
        except KeyError:
            raise UnknownOperationError(operation) from None

    def __contains__(self, operation: object) -> bool:
        return operation in self._artifacts

    def __iter__(self) -> Iterator[str]:
        return iter(self._artifacts)

    def __len__(self) -> int:
        return len(self._artifacts)

    def image_ids(self) -> Dict[str, str]:
        return {name: a.image_id for name, a in self._artifacts.items()}

    # --- Packaging ---

    def export(self, directory: Union[str, Path]) -> Path:
        """Write each artifact as <name>.bin plus a manifest; returns the manifest path."""
        out_dir = Path(directory)
        out_dir.mkdir(parents=True, exist_ok=True)

        circuits = {}
        for name, artifact in self._artifacts.items():
            filename = f"{name}.bin"
            (out_dir / filename).write_bytes(artifact.blob)
            circuits[name] = {"path": filename, "image_id": artifact.image_id}

        manifest_path = out_dir / MANIFEST_NAME
        with open(manifest_path, "w") as f:
            json.dump({"circuits": circuits}, f, indent=2, sort_keys=True)
        return manifest_path
