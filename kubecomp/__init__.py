"""Build version information, a version flag, terminal sizing and metrics support for components."""

__version__ = "0.1.0"