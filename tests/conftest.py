"""Pytest configuration and fixtures for sourcewatch tests."""

from __future__ import annotations

import copy
import hashlib
import io
import os
import tarfile
from typing import TYPE_CHECKING, Any

import pytest
from kubernetes.client.rest import ApiException

if TYPE_CHECKING:
    from collections.abc import Callable, Generator


# Ensure we're using test configuration
os.environ.setdefault("SOURCEWATCH_ENVIRONMENT", "development")
os.environ.setdefault("SOURCEWATCH_OBSERVABILITY_METRICS_ENABLED", "false")


@pytest.fixture(autouse=True)
def reset_settings() -> Generator[None, None, None]:
    """Reset settings cache before each test."""
    from sourcewatch.config.settings import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FakeCustomObjectsApi:
    """In-memory stand-in for ``kubernetes.client.CustomObjectsApi``.

    Mimics the API server's optimistic concurrency: every write bumps
    ``metadata.resourceVersion`` and a replace carrying a stale version is
    rejected with 409.
    """

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str, str, str], dict[str, Any]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self._version = 0

    def _next_version(self) -> str:
        self._version += 1
        return str(self._version)

    def put(self, group: str, plural: str, obj: dict[str, Any]) -> dict[str, Any]:
        """Store ``obj`` directly, as another writer would. Not recorded in ``calls``."""
        stored = copy.deepcopy(obj)
        stored.setdefault("metadata", {})["resourceVersion"] = self._next_version()
        meta = stored["metadata"]
        self.objects[(group, plural, meta.get("namespace", "default"), meta["name"])] = stored
        return copy.deepcopy(stored)

    def get_namespaced_custom_object(
        self, group: str, version: str, namespace: str, plural: str, name: str
    ) -> dict[str, Any]:
        self.calls.append(("get", {"plural": plural, "namespace": namespace, "name": name}))
        try:
            return copy.deepcopy(self.objects[(group, plural, namespace, name)])
        except KeyError:
            raise ApiException(status=404, reason="Not Found") from None

    def create_namespaced_custom_object(
        self, group: str, version: str, namespace: str, plural: str, body: dict[str, Any]
    ) -> dict[str, Any]:
        name = body["metadata"]["name"]
        self.calls.append(("create", {"plural": plural, "namespace": namespace, "body": body}))
        if (group, plural, namespace, name) in self.objects:
            raise ApiException(status=409, reason="AlreadyExists")
        return self.put(group, plural, body)

    def replace_namespaced_custom_object(
        self,
        group: str,
        version: str,
        namespace: str,
        plural: str,
        name: str,
        body: dict[str, Any],
    ) -> dict[str, Any]:
        key = (group, plural, namespace, name)
        self.calls.append(("replace", {"plural": plural, "namespace": namespace, "body": body}))
        if key not in self.objects:
            raise ApiException(status=404, reason="Not Found")
        current = self.objects[key]["metadata"]["resourceVersion"]
        if body.get("metadata", {}).get("resourceVersion") != current:
            raise ApiException(status=409, reason="Conflict")
        return self.put(group, plural, body)

    def calls_of(self, kind: str, plural: str | None = None) -> list[dict[str, Any]]:
        """Return recorded calls of ``kind`` ("get", "create", "replace")."""
        return [
            args
            for call, args in self.calls
            if call == kind and (plural is None or args["plural"] == plural)
        ]


@pytest.fixture
def fake_api() -> FakeCustomObjectsApi:
    """In-memory custom objects API."""
    return FakeCustomObjectsApi()


@pytest.fixture
def make_tarball() -> Callable[..., bytes]:
    """Build a gzipped tarball from ``{name: content}``.

    Extra ``tarfile.TarInfo`` members (links, traversal names) can be passed
    through ``extra``.
    """

    def _make(
        files: dict[str, bytes],
        extra: list[tuple[tarfile.TarInfo, bytes | None]] | None = None,
    ) -> bytes:
        buffer = io.BytesIO()
        with tarfile.open(fileobj=buffer, mode="w:gz") as tar:
            for name, content in files.items():
                info = tarfile.TarInfo(name)
                info.size = len(content)
                tar.addfile(info, io.BytesIO(content))
            for info, content in extra or []:
                tar.addfile(info, io.BytesIO(content) if content is not None else None)
        return buffer.getvalue()

    return _make


def sha256_digest(data: bytes) -> str:
    """Return a source-controller style digest for ``data``."""
    return f"sha256:{hashlib.sha256(data).hexdigest()}"


@pytest.fixture
def digest_of() -> Callable[[bytes], str]:
    """Digest helper exposed as a fixture."""
    return sha256_digest


@pytest.fixture
def sample_gitrepository() -> dict[str, Any]:
    """Sample Flux GitRepository with a published artifact."""
    return {
        "apiVersion": "source.toolkit.fluxcd.io/v1",
        "kind": "GitRepository",
        "metadata": {
            "name": "podinfo",
            "namespace": "flux-system",
            "uid": "1f0c5a4e-0000-4000-8000-000000000001",
        },
        "spec": {
            "interval": "1m",
            "url": "https://github.com/stefanprodan/podinfo",
            "ref": {"branch": "master"},
        },
        "status": {
            "observedGeneration": 1,
            "artifact": {
                "digest": "sha256:" + "0" * 64,
                "lastUpdateTime": "2026-10-19T10:00:00Z",
                "path": "gitrepository/flux-system/podinfo/abc123.tar.gz",
                "revision": "master@sha1:abc123",
                "size": 2048,
                "url": "http://source-controller.flux-system.svc.cluster.local./gitrepository/flux-system/podinfo/abc123.tar.gz",
            },
        },
    }
