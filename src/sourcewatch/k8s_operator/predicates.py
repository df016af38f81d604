"""Revision-change filter for GitRepository events.

Reconciliation is admitted only when the artifact revision published by the
source-controller differs from the last one the operator handled. Other
status churn (conditions, lastUpdateTime, observedGeneration) is ignored.
"""

from collections.abc import Mapping
from typing import Any


def artifact_revision(state: Mapping[str, Any] | None) -> str:
    """Return the artifact revision from a GitRepository body or artifact.

    Accepts either a full object (``status.artifact.revision``) or the
    ``status.artifact`` mapping itself. Missing values count as ``""``.
    """
    if not state:
        return ""
    if "status" in state:
        state = (state.get("status") or {}).get("artifact") or {}
    return str(state.get("revision") or "")


def revision_changed(
    old: Mapping[str, Any] | None,
    new: Mapping[str, Any] | None,
) -> bool:
    """Return True if ``new`` carries a different revision than ``old``.

    A missing ``old`` (object newly observed) is always admitted.
    """
    if not old:
        return True
    return artifact_revision(old) != artifact_revision(new)


def admit_revision_change(
    old: Mapping[str, Any] | None = None,
    new: Mapping[str, Any] | None = None,
    **_kwargs: Any,
) -> bool:
    """kopf ``when=`` filter wrapping :func:`revision_changed`."""
    return revision_changed(old, new)


__all__ = ["admit_revision_change", "artifact_revision", "revision_changed"]
