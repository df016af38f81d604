"""In-memory kopf state storages.

The GitRepository belongs to the Flux source-controller and is only read
here. kopf's stock storages would patch annotations (progress records and
``last-handled-configuration``) onto every handled object, so both kinds of
state are kept in process memory instead, keyed by ``metadata.uid``:

- the diff base is the essence last seen by this operator process, which
  is what the revision-change filter compares against;
- handler progress (retry counts, delays) lives only as long as the process.

One write remains on the retry path: after a ``kopf.TemporaryError`` delay
kopf "touches" the object to get a fresh watch event. That single
annotation is set for the retry and removed on the next successful pass.
"""

import copy
from typing import Any

import kopf


def _uid(body: kopf.Body) -> str:
    return str((body.get("metadata") or {}).get("uid") or "")


class InMemoryDiffBaseStorage(kopf.DiffBaseStorage):
    """Keeps the last handled essence per object uid, never on the object."""

    def __init__(self) -> None:
        super().__init__()
        self._essences: dict[str, kopf.BodyEssence] = {}

    def fetch(self, *, body: kopf.Body) -> kopf.BodyEssence | None:
        essence = self._essences.get(_uid(body))
        return copy.deepcopy(essence) if essence is not None else None

    def store(self, *, body: kopf.Body, patch: kopf.Patch, essence: kopf.BodyEssence) -> None:
        self._essences[_uid(body)] = copy.deepcopy(essence)

    def forget(self, uid: str) -> None:
        """Drop the state of a deleted object."""
        self._essences.pop(uid, None)

    def __len__(self) -> int:
        return len(self._essences)


class InMemoryProgressStorage(kopf.ProgressStorage):
    """Keeps handler progress records per object uid.

    Only :meth:`touch` writes to the object, using the
    ``<prefix>/touch-dummy`` annotation kopf needs to wake up a delayed retry.
    """

    def __init__(self, *, prefix: str, touch_key: str = "touch-dummy") -> None:
        super().__init__()
        self.touch_annotation = f"{prefix}/{touch_key}"
        self._records: dict[tuple[str, str], kopf.ProgressRecord] = {}

    def fetch(self, *, key: kopf.HandlerId, body: kopf.Body) -> kopf.ProgressRecord | None:
        record = self._records.get((_uid(body), key))
        return copy.deepcopy(record) if record is not None else None

    def store(
        self,
        *,
        key: kopf.HandlerId,
        record: kopf.ProgressRecord,
        body: kopf.Body,
        patch: kopf.Patch,
    ) -> None:
        self._records[(_uid(body), key)] = copy.deepcopy(record)

    def purge(self, *, key: kopf.HandlerId, body: kopf.Body, patch: kopf.Patch) -> None:
        self._records.pop((_uid(body), key), None)

    def touch(self, *, body: kopf.Body, patch: kopf.Patch, value: str | None) -> None:
        annotations = (body.get("metadata") or {}).get("annotations") or {}
        if annotations.get(self.touch_annotation) != value:
            patch.meta.annotations[self.touch_annotation] = value

    def clear(self, *, essence: kopf.BodyEssence) -> kopf.BodyEssence:
        """Strip the retry annotation so touching never looks like a change."""
        essence = copy.deepcopy(essence)
        metadata: dict[str, Any] = essence.get("metadata") or {}
        annotations: dict[str, Any] = metadata.get("annotations") or {}
        annotations.pop(self.touch_annotation, None)
        if "annotations" in metadata and not annotations:
            del metadata["annotations"]
        if "metadata" in essence and not metadata:
            del essence["metadata"]
        return essence

    def forget(self, uid: str) -> None:
        """Drop the state of a deleted object."""
        for record_key in [k for k in self._records if k[0] == uid]:
            del self._records[record_key]


__all__ = ["InMemoryDiffBaseStorage", "InMemoryProgressStorage"]
