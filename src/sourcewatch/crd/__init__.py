"""sourcewatch Custom Resource Models.

Pydantic models for the resources the operator reads and writes:
- Flux GitRepository (source.toolkit.fluxcd.io/v1), read only
- Radius ApplicationDeployment (radapp.io/v1alpha3), synthesized
"""

from sourcewatch.crd.gitrepository_models import (
    FLUX_SOURCE_API_GROUP,
    FLUX_SOURCE_API_VERSION,
    GITREPOSITORY_KIND,
    GITREPOSITORY_PLURAL,
    Artifact,
    GitRepository,
    GitRepositoryMetadata,
    GitRepositoryStatus,
)
from sourcewatch.crd.target_models import (
    TargetMetadata,
    TargetResourceSpec,
    TargetSpec,
)


__all__ = [
    "FLUX_SOURCE_API_GROUP",
    "FLUX_SOURCE_API_VERSION",
    "GITREPOSITORY_KIND",
    "GITREPOSITORY_PLURAL",
    "Artifact",
    "GitRepository",
    "GitRepositoryMetadata",
    "GitRepositoryStatus",
    "TargetMetadata",
    "TargetResourceSpec",
    "TargetSpec",
]
