"""Target resource convergence.

``ConvergenceClient.upsert`` makes the cluster hold the given
``TargetResourceSpec``:

1. get the object at the spec's identity
2. not found: create it from the spec as is
3. found: copy its ``metadata.resourceVersion`` onto the spec and replace

A replace rejected with 409 means someone else wrote the object since the
get. That is reported as ``ConflictError`` and not retried here; the
operator requeues the whole reconciliation instead.
"""

from dataclasses import dataclass
from typing import Any

from kubernetes.client.rest import ApiException

from sourcewatch.config.settings import TargetSettings, get_settings
from sourcewatch.crd import TargetResourceSpec
from sourcewatch.errors import ConflictError, FatalAPIError
from sourcewatch.kubernetes.client import HTTP_404_NOT_FOUND, HTTP_409_CONFLICT
from sourcewatch.observability._logging import get_logger
from sourcewatch.observability._metrics import target_upserts_total


log = get_logger(__name__)


@dataclass(frozen=True)
class Applied:
    """Outcome of a successful upsert."""

    created: bool
    name: str
    namespace: str
    resource_version: str | None = None


class ConvergenceClient:
    """Idempotent get-or-create-or-update for target resources.

    Attributes:
        api: Object exposing the CustomObjectsApi get/create/replace methods
    """

    def __init__(self, api: Any, config: TargetSettings | None = None) -> None:
        self.api = api
        self._config = config or get_settings().target

    def _resource_args(self, namespace: str) -> dict[str, str]:
        return {
            "group": self._config.group,
            "version": self._config.version,
            "namespace": namespace,
            "plural": self._config.plural,
        }

    def upsert(self, spec: TargetResourceSpec) -> Applied:
        """Create or update the resource described by ``spec``.

        Raises:
            ConflictError: The object changed between lookup and write.
            FatalAPIError: Any other API failure.
        """
        namespace, name = spec.identity
        resource = f"{spec.kind}/{name}"

        try:
            existing = self.api.get_namespaced_custom_object(
                name=name, **self._resource_args(namespace)
            )
        except ApiException as e:
            if e.status != HTTP_404_NOT_FOUND:
                target_upserts_total.labels(operation="get", result="error").inc()
                log.error("target_get_failed", resource=resource, namespace=namespace, error=e.reason)
                raise FatalAPIError(
                    f"failed to get {resource} in {namespace}: {e.reason}",
                    status=e.status,
                    reason=e.reason,
                ) from e
            return self._create(spec)

        token = (existing.get("metadata") or {}).get("resourceVersion")
        return self._update(spec.with_resource_version(token))

    def _create(self, spec: TargetResourceSpec) -> Applied:
        namespace, name = spec.identity
        resource = f"{spec.kind}/{name}"

        try:
            created = self.api.create_namespaced_custom_object(
                body=spec.to_manifest(), **self._resource_args(namespace)
            )
        except ApiException as e:
            if e.status == HTTP_409_CONFLICT:
                # Created by another writer after our lookup
                target_upserts_total.labels(operation="create", result="conflict").inc()
                log.warning("target_create_conflict", resource=resource, namespace=namespace)
                raise ConflictError(
                    f"{resource} in {namespace} was created concurrently",
                    details={"name": name, "namespace": namespace},
                ) from e
            target_upserts_total.labels(operation="create", result="error").inc()
            log.error("target_create_failed", resource=resource, namespace=namespace, error=e.reason)
            raise FatalAPIError(
                f"failed to create {resource} in {namespace}: {e.reason}",
                status=e.status,
                reason=e.reason,
            ) from e

        target_upserts_total.labels(operation="create", result="success").inc()
        log.info("target_created", resource=resource, namespace=namespace)
        return Applied(
            created=True,
            name=name,
            namespace=namespace,
            resource_version=_resource_version(created),
        )

    def _update(self, spec: TargetResourceSpec) -> Applied:
        namespace, name = spec.identity
        resource = f"{spec.kind}/{name}"

        try:
            updated = self.api.replace_namespaced_custom_object(
                name=name, body=spec.to_manifest(), **self._resource_args(namespace)
            )
        except ApiException as e:
            if e.status == HTTP_409_CONFLICT:
                target_upserts_total.labels(operation="update", result="conflict").inc()
                log.warning(
                    "target_update_conflict",
                    resource=resource,
                    namespace=namespace,
                    resource_version=spec.resource_version,
                )
                raise ConflictError(
                    f"{resource} in {namespace} was modified concurrently",
                    details={
                        "name": name,
                        "namespace": namespace,
                        "resource_version": spec.resource_version,
                    },
                ) from e
            target_upserts_total.labels(operation="update", result="error").inc()
            log.error("target_update_failed", resource=resource, namespace=namespace, error=e.reason)
            raise FatalAPIError(
                f"failed to update {resource} in {namespace}: {e.reason}",
                status=e.status,
                reason=e.reason,
            ) from e

        target_upserts_total.labels(operation="update", result="success").inc()
        log.info("target_updated", resource=resource, namespace=namespace)
        return Applied(
            created=False,
            name=name,
            namespace=namespace,
            resource_version=_resource_version(updated),
        )


def _resource_version(obj: Any) -> str | None:
    if isinstance(obj, dict):
        return (obj.get("metadata") or {}).get("resourceVersion")
    return None
