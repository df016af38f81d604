"""Kopf handlers for Flux GitRepository resources.

Registers the watch on ``source.toolkit.fluxcd.io/v1`` GitRepositories:

- create / resume: always reconcile (level-triggered catch-up)
- update of ``status.artifact``: reconcile only when the revision changed
- delete: drop the object's in-memory kopf state; targets are kept

A failed reconciliation raises ``kopf.TemporaryError`` so kopf retries the
object after ``requeue_delay`` seconds. kopf state is kept in memory (see
``storage``); the only write to the GitRepository is the retry wake-up
annotation.
"""

from typing import Any

import kopf
from prometheus_client import start_http_server

from sourcewatch.config.settings import get_settings
from sourcewatch.crd import FLUX_SOURCE_API_GROUP, FLUX_SOURCE_API_VERSION, GITREPOSITORY_PLURAL
from sourcewatch.errors import SourceWatchError
from sourcewatch.k8s_operator.predicates import admit_revision_change, artifact_revision
from sourcewatch.k8s_operator.reconciler import Reconciler
from sourcewatch.k8s_operator.storage import InMemoryDiffBaseStorage, InMemoryProgressStorage
from sourcewatch.kubernetes import load_custom_objects_api
from sourcewatch.observability._logging import get_logger
from sourcewatch.observability._metrics import registry


log = get_logger(__name__)

# Prefix of the retry wake-up annotation on watched objects
ANNOTATION_PREFIX = "sourcewatch.radapp.io"


@kopf.on.startup()  # type: ignore[misc]
async def configure_operator(
    settings: kopf.OperatorSettings,
    memo: kopf.Memo,
    **_kwargs: Any,
) -> None:
    """Configure kopf storage, build the reconciler and expose metrics.

    The reconciler is stored in the operator memo, which kopf copies into
    every per-object memo.
    """
    app_settings = get_settings()

    # GitRepositories belong to the source-controller
    progress_storage = InMemoryProgressStorage(prefix=ANNOTATION_PREFIX)
    diffbase_storage = InMemoryDiffBaseStorage()
    settings.persistence.progress_storage = progress_storage
    settings.persistence.diffbase_storage = diffbase_storage
    memo["storages"] = (progress_storage, diffbase_storage)

    if "reconciler" not in memo:
        memo["reconciler"] = Reconciler(load_custom_objects_api(app_settings.kubernetes))

    if app_settings.observability.metrics_enabled:
        start_http_server(app_settings.observability.metrics_port, registry=registry)
        log.info("metrics_server_started", port=app_settings.observability.metrics_port)

    log.info(
        "operator_configured",
        target=f"{app_settings.target.kind}.{app_settings.target.group}",
        http_retries=app_settings.fetch.retries,
    )


async def _reconcile(memo: kopf.Memo, namespace: str, name: str) -> None:
    """Run one reconciliation and map failures to kopf retries."""
    reconciler: Reconciler = memo["reconciler"]
    try:
        result = await reconciler.reconcile(namespace, name)
    except SourceWatchError as e:
        raise kopf.TemporaryError(e.to_json(), delay=get_settings().requeue_delay) from e

    if result.requeue:
        raise kopf.TemporaryError("requeue requested", delay=get_settings().requeue_delay)


@kopf.on.resume(FLUX_SOURCE_API_GROUP, FLUX_SOURCE_API_VERSION, GITREPOSITORY_PLURAL)  # type: ignore[misc]
@kopf.on.create(FLUX_SOURCE_API_GROUP, FLUX_SOURCE_API_VERSION, GITREPOSITORY_PLURAL)  # type: ignore[misc]
async def handle_gitrepository_observed(
    namespace: str,
    name: str,
    memo: kopf.Memo,
    **_kwargs: Any,
) -> None:
    """Reconcile a GitRepository seen for the first time (or after restart)."""
    log.info("gitrepository_observed", namespace=namespace, name=name)
    await _reconcile(memo, namespace, name)


@kopf.on.update(  # type: ignore[misc]
    FLUX_SOURCE_API_GROUP,
    FLUX_SOURCE_API_VERSION,
    GITREPOSITORY_PLURAL,
    field="status.artifact",
    when=admit_revision_change,
)
async def handle_artifact_revision_change(
    namespace: str,
    name: str,
    old: Any,
    new: Any,
    memo: kopf.Memo,
    **_kwargs: Any,
) -> None:
    """Reconcile when the source-controller publishes a new revision."""
    log.info(
        "artifact_revision_changed",
        namespace=namespace,
        name=name,
        old_revision=artifact_revision(old),
        new_revision=artifact_revision(new),
    )
    await _reconcile(memo, namespace, name)


@kopf.on.delete(  # type: ignore[misc]
    FLUX_SOURCE_API_GROUP,
    FLUX_SOURCE_API_VERSION,
    GITREPOSITORY_PLURAL,
    optional=True,
)
async def handle_gitrepository_delete(
    namespace: str,
    name: str,
    uid: str,
    memo: kopf.Memo,
    **_kwargs: Any,
) -> None:
    """Forget the object's in-memory state. Synthesized targets are left in place."""
    for storage in memo.get("storages", ()):
        storage.forget(uid)
    log.info("gitrepository_deleted", namespace=namespace, name=name)


__all__ = [
    "ANNOTATION_PREFIX",
    "configure_operator",
    "handle_artifact_revision_change",
    "handle_gitrepository_delete",
    "handle_gitrepository_observed",
]
