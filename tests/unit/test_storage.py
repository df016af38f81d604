"""Unit tests for the in-memory kopf state storages."""

from __future__ import annotations

from typing import Any

import kopf

from sourcewatch.k8s_operator.storage import InMemoryDiffBaseStorage, InMemoryProgressStorage


TOUCH = "sourcewatch.radapp.io/touch-dummy"


def _body(uid: str = "uid-1", annotations: dict[str, str] | None = None) -> kopf.Body:
    metadata: dict[str, Any] = {"name": "podinfo", "namespace": "flux-system", "uid": uid}
    if annotations is not None:
        metadata["annotations"] = annotations
    return kopf.Body(
        {
            "apiVersion": "source.toolkit.fluxcd.io/v1",
            "kind": "GitRepository",
            "metadata": metadata,
            "status": {"artifact": {"revision": "rev1"}},
        }
    )


class TestInMemoryDiffBaseStorage:
    """Tests for the diff base kept in process memory."""

    def test_store_never_patches_object(self) -> None:
        """The handled essence is remembered without writing to the object."""
        storage = InMemoryDiffBaseStorage()
        patch = kopf.Patch()
        essence = {"status": {"artifact": {"revision": "rev1"}}}

        storage.store(body=_body(), patch=patch, essence=essence)

        assert dict(patch) == {}
        assert storage.fetch(body=_body()) == essence

    def test_unknown_object_has_no_base(self) -> None:
        """A newly observed object has no previous state."""
        storage = InMemoryDiffBaseStorage()
        storage.store(body=_body("uid-1"), patch=kopf.Patch(), essence={"spec": {}})

        assert storage.fetch(body=_body("uid-2")) is None

    def test_fetch_returns_copy(self) -> None:
        """Callers cannot mutate the remembered essence."""
        storage = InMemoryDiffBaseStorage()
        storage.store(
            body=_body(), patch=kopf.Patch(), essence={"status": {"artifact": {"revision": "rev1"}}}
        )

        storage.fetch(body=_body())["status"]["artifact"]["revision"] = "changed"

        assert storage.fetch(body=_body())["status"]["artifact"]["revision"] == "rev1"

    def test_forget(self) -> None:
        """Test dropping the state of a deleted object."""
        storage = InMemoryDiffBaseStorage()
        storage.store(body=_body(), patch=kopf.Patch(), essence={"spec": {}})

        storage.forget("uid-1")

        assert storage.fetch(body=_body()) is None
        assert len(storage) == 0


class TestInMemoryProgressStorage:
    """Tests for handler progress kept in process memory."""

    def test_store_fetch_purge_never_patch(self) -> None:
        """Progress records round-trip without writing to the object."""
        storage = InMemoryProgressStorage(prefix="sourcewatch.radapp.io")
        patch = kopf.Patch()
        record = {"started": "2026-10-19T10:00:00", "retries": 1, "success": False}

        storage.store(key=kopf.HandlerId("handler"), record=record, body=_body(), patch=patch)
        fetched = storage.fetch(key=kopf.HandlerId("handler"), body=_body())
        storage.purge(key=kopf.HandlerId("handler"), body=_body(), patch=patch)

        assert fetched == record
        assert storage.fetch(key=kopf.HandlerId("handler"), body=_body()) is None
        assert dict(patch) == {}

    def test_records_are_per_object(self) -> None:
        """Test that objects do not see each other's progress."""
        storage = InMemoryProgressStorage(prefix="sourcewatch.radapp.io")
        storage.store(
            key=kopf.HandlerId("handler"), record={"retries": 2}, body=_body("uid-1"), patch=kopf.Patch()
        )

        assert storage.fetch(key=kopf.HandlerId("handler"), body=_body("uid-2")) is None

    def test_touch_sets_retry_annotation(self) -> None:
        """The retry wake-up is the only write, and only when it changes."""
        storage = InMemoryProgressStorage(prefix="sourcewatch.radapp.io")

        patch = kopf.Patch()
        storage.touch(body=_body(), patch=patch, value="wake")
        assert patch["metadata"]["annotations"] == {TOUCH: "wake"}

        unchanged = kopf.Patch()
        storage.touch(body=_body(annotations={TOUCH: "wake"}), patch=unchanged, value="wake")
        assert dict(unchanged) == {}

        absent = kopf.Patch()
        storage.touch(body=_body(), patch=absent, value=None)
        assert dict(absent) == {}

    def test_clear_strips_retry_annotation(self) -> None:
        """The wake-up annotation never shows up as a change."""
        storage = InMemoryProgressStorage(prefix="sourcewatch.radapp.io")
        essence = {
            "metadata": {"annotations": {TOUCH: "wake", "team": "web"}},
            "status": {"artifact": {"revision": "rev1"}},
        }

        cleared = storage.clear(essence=essence)

        assert cleared["metadata"]["annotations"] == {"team": "web"}
        assert essence["metadata"]["annotations"][TOUCH] == "wake"
        assert storage.clear(essence={"metadata": {"annotations": {TOUCH: "x"}}}) == {}

    def test_forget(self) -> None:
        """Test dropping every record of a deleted object."""
        storage = InMemoryProgressStorage(prefix="sourcewatch.radapp.io")
        for handler in ("a", "b"):
            storage.store(
                key=kopf.HandlerId(handler), record={"retries": 0}, body=_body(), patch=kopf.Patch()
            )

        storage.forget("uid-1")

        assert storage.fetch(key=kopf.HandlerId("a"), body=_body()) is None
        assert storage.fetch(key=kopf.HandlerId("b"), body=_body()) is None
