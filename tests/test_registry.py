"""Tests for the circuit registry and manifest packaging."""

import hashlib
import json

import pytest

from bigint2.circuits.programs import OPERATIONS
from bigint2.errors import LoadError, UnknownOperationError
from bigint2.protocol.registry import MANIFEST_NAME, CircuitArtifact, CircuitRegistry


class TestRegistry:
    """Test lookup and immutability."""

    def test_default_has_all_operations(self, registry):
        assert set(registry) == set(OPERATIONS)
        assert len(registry) == 6
        assert "modmul" in registry
        assert "modpow" not in registry

    def test_lookup(self, registry):
        artifact = registry.lookup("modadd")
        assert artifact.name == "modadd"
        assert artifact.blob[:4] == b"BIG2"

    def test_lookup_unknown(self, registry):
        with pytest.raises(UnknownOperationError):
            registry.lookup("modpow")

    def test_image_id_is_sha256(self, registry):
        artifact = registry.lookup("modinv")
        assert artifact.image_id == hashlib.sha256(artifact.blob).hexdigest()

    def test_image_ids_distinct(self, registry):
        ids = registry.image_ids()
        assert len(set(ids.values())) == len(ids)

    def test_default_is_deterministic(self, registry):
        assert CircuitRegistry.default().image_ids() == registry.image_ids()

    def test_read_only(self, registry):
        with pytest.raises(TypeError):
            registry._artifacts["modadd"] = CircuitArtifact("modadd", b"")

    def test_name_mismatch_rejected(self, registry):
        with pytest.raises(ValueError):
            CircuitRegistry({"modsub": registry.lookup("modadd")})


class TestManifest:
    """Test export() and from_manifest()."""

    def test_export_round_trip(self, registry, tmp_path):
        manifest_path = registry.export(tmp_path / "circuits")
        assert manifest_path.name == MANIFEST_NAME

        loaded = CircuitRegistry.from_manifest(manifest_path)
        assert loaded.image_ids() == registry.image_ids()

        # A directory path resolves to its manifest
        assert CircuitRegistry.from_manifest(tmp_path / "circuits").image_ids() == registry.image_ids()

    def test_manifest_layout(self, registry, tmp_path):
        manifest_path = registry.export(tmp_path)
        with open(manifest_path) as f:
            manifest = json.load(f)
        entry = manifest["circuits"]["modmul"]
        assert entry["path"] == "modmul.bin"
        assert entry["image_id"] == registry.lookup("modmul").image_id
        assert (tmp_path / "modmul.bin").read_bytes() == registry.lookup("modmul").blob

    def test_missing_manifest(self, tmp_path):
        with pytest.raises(LoadError):
            CircuitRegistry.from_manifest(tmp_path / "nope.json")

    def test_malformed_manifest(self, tmp_path):
        path = tmp_path / MANIFEST_NAME
        path.write_text("{not json")
        with pytest.raises(LoadError):
            CircuitRegistry.from_manifest(path)

    def test_missing_blob(self, registry, tmp_path):
        registry.export(tmp_path)
        (tmp_path / "modadd.bin").unlink()
        with pytest.raises(LoadError):
            CircuitRegistry.from_manifest(tmp_path)

    def test_entry_without_path(self, tmp_path):
        path = tmp_path / MANIFEST_NAME
        path.write_text(json.dumps({"circuits": {"modadd": {"image_id": "00"}}}))
        with pytest.raises(LoadError):
            CircuitRegistry.from_manifest(path)

    def test_image_id_mismatch(self, registry, tmp_path):
        """Replacing a blob without updating the manifest is detected."""
        registry.export(tmp_path)
        (tmp_path / "modadd.bin").write_bytes(registry.lookup("modsub").blob)
        with pytest.raises(LoadError, match="Image id mismatch"):
            CircuitRegistry.from_manifest(tmp_path)

    def test_image_id_optional(self, registry, tmp_path):
        blob = registry.lookup("modadd").blob
        (tmp_path / "custom.bin").write_bytes(blob)
        path = tmp_path / MANIFEST_NAME
        path.write_text(json.dumps({"circuits": {"modadd": {"path": "custom.bin"}}}))
        loaded = CircuitRegistry.from_manifest(path)
        assert loaded.lookup("modadd").image_id == hashlib.sha256(blob).hexdigest()
        assert len(loaded) == 1
