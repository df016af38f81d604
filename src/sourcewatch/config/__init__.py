"""sourcewatch configuration package.

Centralized configuration management using Pydantic Settings.
"""

from sourcewatch.config.settings import Settings, get_settings

__all__: list[str] = ["Settings", "get_settings"]
