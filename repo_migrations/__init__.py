"""Repository migration downloaders for remote source-control services."""

__version__ = "0.1.0"
