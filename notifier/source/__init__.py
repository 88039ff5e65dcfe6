"""Remote interpretation source."""

from notifier.source.client import RecordSourceClient

__all__ = ["RecordSourceClient"]
