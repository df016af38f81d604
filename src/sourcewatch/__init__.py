"""sourcewatch - Flux artifact to ApplicationDeployment operator.

A Kubernetes operator that watches Flux GitRepository objects for new
artifact revisions and converges ApplicationDeployment resources from
the artifact's content.
"""

from sourcewatch.version import __version__


__all__ = ["__version__"]
