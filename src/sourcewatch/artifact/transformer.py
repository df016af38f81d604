"""Artifact content to target resource transformation.

Each regular file at the top of an extracted artifact becomes one
``TargetResourceSpec`` whose ``spec.template`` is the file content,
unparsed. Identity comes from ``TargetSettings``:

- by default every spec gets the configured ``name``/``namespace``, so with
  several files they overwrite each other and the last one wins;
- with ``name_from_entry`` the name is derived from the file name.
"""

import json
import re
from collections import Counter
from dataclasses import dataclass
from pathlib import Path

from pydantic import ValidationError

from sourcewatch.config.settings import TargetSettings, get_settings
from sourcewatch.crd import TargetMetadata, TargetResourceSpec, TargetSpec
from sourcewatch.errors import ArtifactFetchError, SerializationError
from sourcewatch.observability._logging import get_logger


log = get_logger(__name__)

# RFC 1123 label limit
MAX_NAME_LENGTH = 63

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]+")


@dataclass(frozen=True)
class ContentEntry:
    """A file extracted from an artifact."""

    name: str
    content: bytes


def list_entries(directory: str | Path) -> list[ContentEntry]:
    """Read the regular files directly under ``directory``, sorted by name.

    Raises:
        ArtifactFetchError: The extracted files cannot be listed or read.
    """
    entries: list[ContentEntry] = []
    try:
        for path in sorted(Path(directory).iterdir(), key=lambda p: p.name):
            if not path.is_file():
                log.debug("artifact_entry_skipped", entry=path.name, reason="not a regular file")
                continue
            entries.append(ContentEntry(name=path.name, content=path.read_bytes()))
    except OSError as e:
        raise ArtifactFetchError(f"failed to read artifact entries: {e}") from e
    return entries


def entry_resource_name(entry_name: str) -> str:
    """Turn a file name into a DNS-1123 label, e.g. ``My_App.json`` -> ``my-app``."""
    stem = Path(entry_name).stem.lower()
    name = _INVALID_NAME_CHARS.sub("-", stem).strip("-")[:MAX_NAME_LENGTH].rstrip("-")
    if not name:
        raise SerializationError(
            f"cannot derive a resource name from entry {entry_name!r}",
            details={"entry": entry_name},
        )
    return name


class BundleTransformer:
    """Maps artifact entries to target resource envelopes."""

    def __init__(self, config: TargetSettings | None = None) -> None:
        self._config = config or get_settings().target

    def transform(self, entries: list[ContentEntry]) -> list[TargetResourceSpec]:
        """Build one spec per entry, keeping entry order.

        Raises:
            SerializationError: An entry is not UTF-8 text, or its envelope
                cannot be encoded for the cluster API.
        """
        specs = [self._to_spec(entry) for entry in entries]

        collisions = [
            f"{namespace}/{name}"
            for (namespace, name), count in Counter(s.identity for s in specs).items()
            if count > 1
        ]
        if collisions:
            log.warning(
                "target_identity_collision",
                identities=collisions,
                entries=len(specs),
                hint="only the last entry per identity survives; see name_from_entry",
            )
        return specs

    def _to_spec(self, entry: ContentEntry) -> TargetResourceSpec:
        log.info("processing_entry", entry=entry.name, size=len(entry.content))

        try:
            template = entry.content.decode("utf-8")
        except UnicodeDecodeError as e:
            raise SerializationError(
                f"entry {entry.name!r} is not UTF-8 text: {e}",
                details={"entry": entry.name},
            ) from e

        name = (
            entry_resource_name(entry.name) if self._config.name_from_entry else self._config.name
        )

        try:
            spec = TargetResourceSpec(
                kind=self._config.kind,
                api_version=self._config.api_version,
                metadata=TargetMetadata(name=name, namespace=self._config.namespace),
                spec=TargetSpec(template=template),
            )
            encoded = json.dumps(spec.to_manifest())
        except (ValidationError, TypeError, ValueError) as e:
            raise SerializationError(
                f"failed to encode {self._config.kind} for entry {entry.name!r}: {e}",
                details={"entry": entry.name},
            ) from e

        log.debug("target_manifest", entry=entry.name, json=encoded)
        return spec
