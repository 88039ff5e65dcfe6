"""Incremental interpretation change detection and e-mail notifications."""

__version__ = "0.1.0"
