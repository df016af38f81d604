"""Unit tests for artifact entry listing and target transformation."""

from __future__ import annotations

import json
from pathlib import Path
from unittest.mock import patch

import pytest

from sourcewatch.artifact.transformer import (
    BundleTransformer,
    ContentEntry,
    entry_resource_name,
    list_entries,
)
from sourcewatch.config.settings import TargetSettings
from sourcewatch.errors import SerializationError


class TestListEntries:
    """Tests for reading extracted entries."""

    def test_sorted_regular_files_only(self, tmp_path: Path) -> None:
        """Test name order and that directories are skipped."""
        (tmp_path / "b.json").write_bytes(b"B")
        (tmp_path / "a.json").write_bytes(b"A")
        (tmp_path / "nested").mkdir()
        (tmp_path / "nested" / "c.json").write_bytes(b"C")

        entries = list_entries(tmp_path)

        assert entries == [ContentEntry("a.json", b"A"), ContentEntry("b.json", b"B")]

    def test_empty_directory(self, tmp_path: Path) -> None:
        """Test that an empty artifact yields no entries."""
        assert list_entries(tmp_path) == []


class TestEntryResourceName:
    """Tests for deriving resource names from file names."""

    @pytest.mark.parametrize(
        ("entry", "expected"),
        [
            ("app.json", "app"),
            ("My_App.json", "my-app"),
            ("front end.v2.json", "front-end-v2"),
            ("-weird-.yaml", "weird"),
        ],
    )
    def test_names(self, entry: str, expected: str) -> None:
        """Test DNS-1123 sanitization."""
        assert entry_resource_name(entry) == expected

    def test_length_capped(self) -> None:
        """Test that names fit in a label."""
        assert len(entry_resource_name("a" * 100 + ".json")) == 63

    def test_unusable_name(self) -> None:
        """Test that a name with nothing usable fails."""
        with pytest.raises(SerializationError):
            entry_resource_name("___.json")


class TestBundleTransformer:
    """Tests for BundleTransformer.transform."""

    def test_fixed_identity(self) -> None:
        """Test the default target envelope."""
        payload = b'{"kind": "Application", "name": "demo"}'

        specs = BundleTransformer(TargetSettings()).transform([ContentEntry("app.json", payload)])

        assert len(specs) == 1
        manifest = specs[0].to_manifest()
        assert manifest == {
            "kind": "ApplicationDeployment",
            "apiVersion": "radapp.io/v1alpha3",
            "metadata": {"name": "fluxdemo", "namespace": "default"},
            "spec": {"template": payload.decode()},
        }

    def test_template_is_verbatim(self) -> None:
        """Test that the payload is not parsed or reformatted."""
        payload = b"not json at all\n  indented\n"

        spec = BundleTransformer(TargetSettings()).transform([ContentEntry("x.txt", payload)])[0]

        assert spec.spec.template == "not json at all\n  indented\n"
        assert json.loads(json.dumps(spec.to_manifest()))["spec"]["template"] == spec.spec.template

    def test_entry_order_kept(self) -> None:
        """Test one spec per entry, in entry order."""
        entries = [ContentEntry("a.json", b"A"), ContentEntry("b.json", b"B")]

        specs = BundleTransformer(TargetSettings()).transform(entries)

        assert [s.spec.template for s in specs] == ["A", "B"]

    def test_identity_collision_warns(self) -> None:
        """Several entries with the fixed identity log a warning."""
        entries = [ContentEntry("a.json", b"A"), ContentEntry("b.json", b"B")]

        with patch("sourcewatch.artifact.transformer.log") as mock_log:
            specs = BundleTransformer(TargetSettings()).transform(entries)

        assert {s.identity for s in specs} == {("default", "fluxdemo")}
        mock_log.warning.assert_called_once()
        assert mock_log.warning.call_args.args[0] == "target_identity_collision"

    def test_name_from_entry(self) -> None:
        """Test per-entry identities."""
        entries = [ContentEntry("frontend.json", b"F"), ContentEntry("backend.json", b"B")]
        config = TargetSettings(name_from_entry=True, namespace="apps")

        with patch("sourcewatch.artifact.transformer.log") as mock_log:
            specs = BundleTransformer(config).transform(entries)

        assert [s.identity for s in specs] == [("apps", "frontend"), ("apps", "backend")]
        mock_log.warning.assert_not_called()

    def test_non_utf8_entry(self) -> None:
        """Test that binary content fails serialization."""
        with pytest.raises(SerializationError) as exc_info:
            BundleTransformer(TargetSettings()).transform([ContentEntry("blob.bin", b"\xff\xfe")])

        assert exc_info.value.details == {"entry": "blob.bin"}

    def test_no_entries(self) -> None:
        """Test that nothing in means nothing out."""
        assert BundleTransformer(TargetSettings()).transform([]) == []
