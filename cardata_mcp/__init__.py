"""Vehicle reference-data lookup and cache service."""

__version__ = "0.1.0"
