"""GitRepository reconciliation.

One call of :meth:`Reconciler.reconcile` runs the whole pipeline for a
single GitRepository:

    read source -> scratch dir -> fetch artifact -> list entries
        -> transform -> upsert each target -> remove scratch dir

Each call is stateless: it only looks at the current GitRepository and
the current cluster state, so running it again for the same revision
converges to the same result. Failures are raised, never swallowed; the
caller (the kopf handlers) turns them into requeues.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from sourcewatch.artifact import ArchiveFetcher, BundleTransformer, list_entries, scratch_area
from sourcewatch.config.settings import Settings, get_settings
from sourcewatch.errors import ReconcileTimeoutError, SourceWatchError
from sourcewatch.kubernetes import Applied, ConvergenceClient, read_git_repository
from sourcewatch.observability._logging import (
    bind_reconcile_context,
    clear_reconcile_context,
    get_logger,
)
from sourcewatch.observability._metrics import reconcile_duration_seconds, reconciliations_total
from sourcewatch.utils import run_in_thread


log = get_logger(__name__)


@dataclass
class ReconcileResult:
    """Outcome handed back to the control loop."""

    requeue: bool = False
    revision: str | None = None
    applied: list[Applied] = field(default_factory=list)


class Reconciler:
    """Sequences fetch, transform and converge for one GitRepository.

    Attributes:
        api: CustomObjectsApi (or compatible) client used for reads and writes
        fetcher: Artifact downloader/extractor
        transformer: Entry to target resource mapper
        converger: Target resource upserter
    """

    def __init__(
        self,
        api: Any,
        fetcher: ArchiveFetcher | None = None,
        transformer: BundleTransformer | None = None,
        converger: ConvergenceClient | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.api = api
        self.fetcher = fetcher or ArchiveFetcher(self._settings.fetch)
        self.transformer = transformer or BundleTransformer(self._settings.target)
        self.converger = converger or ConvergenceClient(api, self._settings.target)

    async def reconcile(self, namespace: str, name: str) -> ReconcileResult:
        """Converge the targets for the GitRepository ``namespace/name``.

        Raises:
            SourceWatchError: Any failure of the pipeline, including
                ``ReconcileTimeoutError`` when the time budget runs out.
        """
        bind_reconcile_context(namespace=namespace, name=name)
        try:
            with reconcile_duration_seconds.time():
                async with asyncio.timeout(self._settings.reconcile_timeout):
                    result = await self._reconcile(namespace, name)
        except TimeoutError as e:
            reconciliations_total.labels(result="timeout").inc()
            log.error("reconcile_timed_out", timeout=self._settings.reconcile_timeout)
            raise ReconcileTimeoutError(
                f"reconciliation of {namespace}/{name} exceeded "
                f"{self._settings.reconcile_timeout}s",
                details={"namespace": namespace, "name": name},
            ) from e
        except SourceWatchError as e:
            reconciliations_total.labels(result=e.code).inc()
            log.error("reconcile_failed", error=e.message, code=e.code, retryable=e.retryable)
            raise
        finally:
            clear_reconcile_context("namespace", "name", "revision")

        reconciliations_total.labels(result="success").inc()
        return result

    async def _reconcile(self, namespace: str, name: str) -> ReconcileResult:
        repository = await run_in_thread(read_git_repository, self.api, namespace, name)
        if repository is None:
            log.info("source_not_found")
            return ReconcileResult()

        artifact = repository.artifact
        if artifact is None or not artifact.url:
            log.info("artifact_not_ready")
            return ReconcileResult()

        bind_reconcile_context(revision=artifact.revision)
        log.info("new_revision_detected", url=artifact.url)

        applied: list[Applied] = []
        with scratch_area(repository.metadata.name) as tmp_dir:
            await self.fetcher.fetch(artifact.url, artifact.digest, tmp_dir)

            entries = await run_in_thread(list_entries, tmp_dir)
            specs = self.transformer.transform(entries)

            for spec in specs:
                applied.append(await run_in_thread(self.converger.upsert, spec))

        log.info(
            "reconcile_succeeded",
            entries=len(entries),
            created=sum(a.created for a in applied),
            updated=sum(not a.created for a in applied),
        )
        return ReconcileResult(requeue=False, revision=artifact.revision, applied=applied)


__all__ = ["ReconcileResult", "Reconciler"]
