"""Error taxonomy for sync and dispatch runs."""

from __future__ import annotations


class NotifierError(Exception):
    """Base class for notifier errors."""


class ConfigError(NotifierError):
    """Configuration file is missing or invalid."""


class SourceFetchError(NotifierError):
    """Remote record source request failed or returned a malformed payload."""


class PersistenceError(NotifierError):
    """Reading or writing a cache, log or watermark store failed."""


class MissingReferenceError(NotifierError):
    """An event refers to a record that can no longer be resolved."""


class UnknownEventModelError(NotifierError):
    """A stored event carries a model or type outside the known set."""


class TransmissionError(NotifierError):
    """A single message could not be transmitted."""
