"""Unit tests for structured reconcile errors."""

from __future__ import annotations

import json

import pytest

from sourcewatch.errors import (
    ArchiveSizeError,
    ArtifactFetchError,
    ConflictError,
    FatalAPIError,
    IntegrityError,
    InvalidSourceError,
    PathTraversalError,
    ReconcileTimeoutError,
    SerializationError,
    SourceWatchError,
    TransientTransportError,
)


class TestErrorTaxonomy:
    """Retryability and phase per error class."""

    @pytest.mark.parametrize(
        ("error_cls", "phase", "retryable"),
        [
            (InvalidSourceError, "read", False),
            (TransientTransportError, "fetch", True),
            (IntegrityError, "fetch", False),
            (PathTraversalError, "fetch", False),
            (ArchiveSizeError, "fetch", False),
            (SerializationError, "transform", False),
            (ConflictError, "converge", True),
            (FatalAPIError, "converge", False),
            (ReconcileTimeoutError, "reconcile", True),
        ],
    )
    def test_error_attributes(
        self, error_cls: type[SourceWatchError], phase: str, retryable: bool
    ) -> None:
        """Each error reports its pipeline phase and retryability."""
        error = error_cls("boom")

        assert isinstance(error, SourceWatchError)
        assert error.phase == phase
        assert error.retryable is retryable
        assert str(error) == "boom"

    def test_fetch_errors_share_base(self) -> None:
        """All retrieval failures can be caught as ArtifactFetchError."""
        for error_cls in (TransientTransportError, IntegrityError, PathTraversalError):
            assert issubclass(error_cls, ArtifactFetchError)


class TestSerialization:
    """Tests for error serialization."""

    def test_to_dict(self) -> None:
        """Test dict form carries code, phase and details."""
        error = IntegrityError("digest mismatch", details={"expected": "sha256:aa"})

        data = error.to_dict()

        assert data["code"] == "artifact_digest_mismatch"
        assert data["phase"] == "fetch"
        assert data["retryable"] is False
        assert data["details"] == {"expected": "sha256:aa"}
        assert data["timestamp"]

    def test_to_json_round_trips(self) -> None:
        """Test compact JSON output."""
        error = ConflictError("stale", details={"resource_version": "7"})

        data = json.loads(error.to_json())

        assert data["code"] == "target_conflict"
        assert data["details"]["resource_version"] == "7"

    def test_fatal_api_error_records_status(self) -> None:
        """HTTP status and reason are kept for status surfaces."""
        error = FatalAPIError("forbidden", status=403, reason="Forbidden")

        assert error.status == 403
        assert error.details == {"status": 403, "reason": "Forbidden"}
