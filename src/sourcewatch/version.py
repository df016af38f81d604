"""Version information for sourcewatch."""

__version__ = "0.1.0"
