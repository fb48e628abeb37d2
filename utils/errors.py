# utils/errors.py
"""
Error taxonomy for the chat identity migration.

ConfigurationError and FetchError abort the run. EntityError and ValidationError
are scoped to a single chat and end up in the summary report.
"""
from typing import Optional


class MigrationError(Exception):
    """Base class for every migration failure."""


class ConfigurationError(MigrationError):
    """Required settings are missing or malformed."""


class FetchError(MigrationError):
    """Listing a collection failed; the entity set cannot be trusted."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class EntityError(MigrationError):
    """A single chat could not be planned or migrated."""

    def __init__(self, message: str, chat_id: Optional[str] = None, canonical_id: Optional[str] = None):
        super().__init__(message)
        self.chat_id = chat_id
        self.canonical_id = canonical_id


class ValidationError(MigrationError):
    """A chat document is malformed (not a pair, self-referential, empty ids)."""
