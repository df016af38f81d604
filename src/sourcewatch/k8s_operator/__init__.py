"""sourcewatch Operator package.

Kopf handlers, the revision-change filter and the reconcile orchestrator.
"""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    """Lazy-load the handlers module so importing the package registers nothing."""
    if name == "handlers":
        return import_module("sourcewatch.k8s_operator.handlers")
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = ["handlers"]
