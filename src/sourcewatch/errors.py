"""Structured errors for the reconcile pipeline.

Every failure raised by the fetch, transform and converge stages is a
:class:`SourceWatchError`. The kopf handlers turn these into
``kopf.TemporaryError`` so the object is requeued with a delay.
"""

from __future__ import annotations

import json
from datetime import UTC, datetime
from typing import Any


class SourceWatchError(RuntimeError):
    """Structured exception for reconcile failures."""

    code = "sourcewatch_error"
    phase = "reconcile"
    retryable = False

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
        timestamp: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.timestamp = timestamp or datetime.now(UTC).isoformat()

    def to_dict(self) -> dict[str, Any]:
        """Serialize the error for logs/status surfaces."""
        return {
            "code": self.code,
            "phase": self.phase,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
            "timestamp": self.timestamp,
        }

    def to_json(self) -> str:
        """Serialize the error as a compact JSON string."""
        return json.dumps(self.to_dict(), sort_keys=True, ensure_ascii=True, default=str)


# ============================================================================
# Source read
# ============================================================================


class InvalidSourceError(SourceWatchError):
    """The watched GitRepository does not have the expected shape."""

    code = "source_invalid"
    phase = "read"


# ============================================================================
# Artifact retrieval
# ============================================================================


class ArtifactFetchError(SourceWatchError):
    """The artifact could not be downloaded or extracted."""

    code = "artifact_fetch_failed"
    phase = "fetch"


class TransientTransportError(ArtifactFetchError):
    """Network failures persisted after the retry budget was spent."""

    code = "artifact_transport_exhausted"
    retryable = True


class IntegrityError(ArtifactFetchError):
    """The downloaded payload does not match the declared digest."""

    code = "artifact_digest_mismatch"


class PathTraversalError(ArtifactFetchError):
    """An archive entry resolves outside the extraction directory."""

    code = "artifact_path_traversal"


class ArchiveSizeError(ArtifactFetchError):
    """The artifact exceeds the configured download or extraction size."""

    code = "artifact_too_large"


# ============================================================================
# Transformation
# ============================================================================


class SerializationError(SourceWatchError):
    """A target resource envelope could not be encoded."""

    code = "target_serialization_failed"
    phase = "transform"


# ============================================================================
# Reconciliation
# ============================================================================


class ReconcileTimeoutError(SourceWatchError):
    """A reconciliation did not finish within its time budget."""

    code = "reconcile_timeout"
    retryable = True


# ============================================================================
# Convergence
# ============================================================================


class ConflictError(SourceWatchError):
    """The target resource was modified concurrently (stale resourceVersion)."""

    code = "target_conflict"
    phase = "converge"
    retryable = True


class FatalAPIError(SourceWatchError):
    """The cluster API rejected a read or write for a non-conflict reason."""

    code = "target_api_error"
    phase = "converge"

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        reason: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        merged = dict(details or {})
        if status is not None:
            merged.setdefault("status", status)
        if reason:
            merged.setdefault("reason", reason)
        super().__init__(message, details=merged)
        self.status = status
        self.reason = reason


__all__ = [
    "ArchiveSizeError",
    "ArtifactFetchError",
    "ConflictError",
    "FatalAPIError",
    "IntegrityError",
    "InvalidSourceError",
    "PathTraversalError",
    "ReconcileTimeoutError",
    "SerializationError",
    "SourceWatchError",
    "TransientTransportError",
]
