"""Pydantic models for the Flux GitRepository Custom Resource.

The Flux source-controller owns these objects and publishes each fetched
revision as an artifact in ``status.artifact``. sourcewatch only reads them.

API Group: source.toolkit.fluxcd.io
API Version: v1
Kind: GitRepository
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# Flux source CRD Constants
FLUX_SOURCE_API_GROUP = "source.toolkit.fluxcd.io"
FLUX_SOURCE_API_VERSION = "v1"
GITREPOSITORY_PLURAL = "gitrepositories"
GITREPOSITORY_KIND = "GitRepository"


class Artifact(BaseModel):
    """Artifact published by the source-controller.

    ``revision`` changes if and only if ``url``/``digest`` point to new
    content, which is what the revision-change filter relies on.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    url: str = Field(default="", description="HTTP address of the artifact tarball")
    digest: str = Field(default="", description="Digest of the tarball, e.g. sha256:<hex>")
    revision: str = Field(default="", description="Source revision, e.g. main@sha1:<commit>")
    path: str = Field(default="", description="Relative path of the artifact in storage")
    size: int | None = Field(default=None, description="Size of the tarball in bytes")
    last_update_time: datetime | None = Field(default=None, alias="lastUpdateTime")


class GitRepositoryStatus(BaseModel):
    """Observed state of a GitRepository (only the parts sourcewatch reads)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    artifact: Artifact | None = Field(default=None)
    observed_generation: int | None = Field(default=None, alias="observedGeneration")


class GitRepositoryMetadata(BaseModel):
    """Metadata for a GitRepository."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str = Field(description="Name of the GitRepository")
    namespace: str = Field(default="default", description="Namespace")
    uid: str | None = Field(default=None)
    resource_version: str | None = Field(default=None, alias="resourceVersion")


class GitRepository(BaseModel):
    """Flux GitRepository, the watched source resource."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    api_version: str = Field(
        default=f"{FLUX_SOURCE_API_GROUP}/{FLUX_SOURCE_API_VERSION}", alias="apiVersion"
    )
    kind: str = Field(default=GITREPOSITORY_KIND)
    metadata: GitRepositoryMetadata
    status: GitRepositoryStatus = Field(default_factory=GitRepositoryStatus)

    @property
    def artifact(self) -> Artifact | None:
        """Return the published artifact, if the source has produced one."""
        return self.status.artifact

    @property
    def revision(self) -> str:
        """Return the artifact revision, or an empty string if none."""
        return self.status.artifact.revision if self.status.artifact else ""

    @classmethod
    def from_kubernetes_object(cls, obj: dict[str, Any]) -> "GitRepository":
        """Create a GitRepository from a raw Kubernetes API response or kopf body."""
        return cls.model_validate(
            {
                "apiVersion": obj.get(
                    "apiVersion", f"{FLUX_SOURCE_API_GROUP}/{FLUX_SOURCE_API_VERSION}"
                ),
                "kind": obj.get("kind", GITREPOSITORY_KIND),
                "metadata": dict(obj.get("metadata") or {}),
                "status": dict(obj.get("status") or {}),
            }
        )
