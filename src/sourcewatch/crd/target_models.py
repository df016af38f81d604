"""Pydantic models for the synthesized target resource.

The operator builds one envelope per artifact entry::

    {kind, apiVersion, metadata{name, namespace}, spec{template}}

``spec.template`` carries the entry payload verbatim. Its schema is opaque
here; the envelope is only the minimal shape the cluster API needs.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class TargetMetadata(BaseModel):
    """Identity of the target resource plus its optimistic-concurrency token."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    namespace: str
    resource_version: str | None = Field(default=None, alias="resourceVersion")


class TargetSpec(BaseModel):
    """Desired state: the raw entry payload."""

    template: str


class TargetResourceSpec(BaseModel):
    """Desired-state document submitted to the cluster API."""

    model_config = ConfigDict(populate_by_name=True)

    kind: str
    api_version: str = Field(alias="apiVersion")
    metadata: TargetMetadata
    spec: TargetSpec

    @property
    def identity(self) -> tuple[str, str]:
        """Return ``(namespace, name)``."""
        return (self.metadata.namespace, self.metadata.name)

    @property
    def resource_version(self) -> str | None:
        """Return the optimistic-concurrency token, if one is attached."""
        return self.metadata.resource_version

    def with_resource_version(self, resource_version: str | None) -> "TargetResourceSpec":
        """Return a copy carrying ``resource_version`` as its token."""
        metadata = self.metadata.model_copy(update={"resource_version": resource_version})
        return self.model_copy(update={"metadata": metadata})

    def same_desired_state(self, other: "TargetResourceSpec") -> bool:
        """Compare kind, apiVersion, identity and spec, ignoring the token."""
        return (
            self.kind == other.kind
            and self.api_version == other.api_version
            and self.identity == other.identity
            and self.spec == other.spec
        )

    def to_manifest(self) -> dict[str, Any]:
        """Return the JSON-compatible wire form (camelCase keys, no empty token)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_kubernetes_object(cls, obj: dict[str, Any]) -> "TargetResourceSpec":
        """Parse a stored object, keeping only the envelope fields."""
        return cls.model_validate(
            {
                "kind": obj.get("kind", ""),
                "apiVersion": obj.get("apiVersion", ""),
                "metadata": obj.get("metadata") or {},
                "spec": {"template": (obj.get("spec") or {}).get("template", "")},
            }
        )
