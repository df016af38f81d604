"""Kubernetes API access and target resource convergence."""

from sourcewatch.kubernetes.client import load_custom_objects_api, read_git_repository
from sourcewatch.kubernetes.convergence import Applied, ConvergenceClient


__all__ = [
    "Applied",
    "ConvergenceClient",
    "load_custom_objects_api",
    "read_git_repository",
]
