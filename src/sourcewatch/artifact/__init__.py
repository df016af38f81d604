"""Artifact retrieval and transformation.

- fetcher.py: download, digest verification and safe extraction
- transformer.py: extracted entries to target resource envelopes
- scratch.py: per-reconciliation temporary directories
"""

from sourcewatch.artifact.fetcher import ArchiveFetcher, extract_tarball, verify_digest
from sourcewatch.artifact.scratch import scratch_area
from sourcewatch.artifact.transformer import (
    BundleTransformer,
    ContentEntry,
    entry_resource_name,
    list_entries,
)


__all__ = [
    "ArchiveFetcher",
    "BundleTransformer",
    "ContentEntry",
    "entry_resource_name",
    "extract_tarball",
    "list_entries",
    "scratch_area",
    "verify_digest",
]
