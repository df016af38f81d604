"""sourcewatch Utilities package.

Common helpers used across the sourcewatch codebase.
"""

from sourcewatch.utils.threads import run_in_thread, settle

__all__ = ["run_in_thread", "settle"]
