"""Kubernetes API access.

Credential resolution and the read of the watched GitRepository. The rest
of the operator only needs an object with the ``CustomObjectsApi``
methods, which keeps fakes simple in tests.
"""

from typing import Any

from kubernetes import client
from kubernetes import config as k8s_config
from kubernetes.client.rest import ApiException
from pydantic import ValidationError

from sourcewatch.config.settings import KubernetesSettings, get_settings
from sourcewatch.crd import (
    FLUX_SOURCE_API_GROUP,
    FLUX_SOURCE_API_VERSION,
    GITREPOSITORY_PLURAL,
    GitRepository,
)
from sourcewatch.errors import FatalAPIError, InvalidSourceError
from sourcewatch.observability._logging import get_logger


log = get_logger(__name__)

# HTTP Status Constants
HTTP_404_NOT_FOUND = 404
HTTP_409_CONFLICT = 409


def load_custom_objects_api(config: KubernetesSettings | None = None) -> client.CustomObjectsApi:
    """Load cluster credentials and return a CustomObjectsApi client.

    In-cluster service account credentials are tried first unless a
    kubeconfig path is configured; otherwise the kubeconfig (and optional
    context) is used.
    """
    config = config or get_settings().kubernetes

    if config.in_cluster or not config.kubeconfig:
        try:
            k8s_config.load_incluster_config()
        except k8s_config.ConfigException:
            if config.in_cluster:
                raise
            k8s_config.load_kube_config(context=config.context)
        else:
            log.debug("kubernetes_config_loaded", source="in-cluster")
            return client.CustomObjectsApi()
    else:
        k8s_config.load_kube_config(config_file=config.kubeconfig, context=config.context)

    log.debug("kubernetes_config_loaded", source="kubeconfig", context=config.context)
    return client.CustomObjectsApi()


def read_git_repository(api: Any, namespace: str, name: str) -> GitRepository | None:
    """Read a GitRepository, returning None when it no longer exists.

    Raises:
        FatalAPIError: For any error other than not-found.
        InvalidSourceError: The object does not parse as a GitRepository.
    """
    try:
        obj = api.get_namespaced_custom_object(
            group=FLUX_SOURCE_API_GROUP,
            version=FLUX_SOURCE_API_VERSION,
            namespace=namespace,
            plural=GITREPOSITORY_PLURAL,
            name=name,
        )
    except ApiException as e:
        if e.status == HTTP_404_NOT_FOUND:
            return None
        raise FatalAPIError(
            f"failed to get GitRepository {namespace}/{name}: {e.reason}",
            status=e.status,
            reason=e.reason,
        ) from e
    try:
        return GitRepository.from_kubernetes_object(obj)
    except ValidationError as e:
        raise InvalidSourceError(
            f"GitRepository {namespace}/{name} cannot be read: {e.error_count()} invalid field(s)",
            details={"namespace": namespace, "name": name, "errors": e.errors(include_url=False, include_input=False)},
        ) from e
