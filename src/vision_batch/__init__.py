"""Batch image labeling with a remote vision service and CSV reporting."""

__version__ = "0.1.0"
