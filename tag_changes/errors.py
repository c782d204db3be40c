from __future__ import annotations

from typing import Any


class TagChangesError(RuntimeError):
    """Base class for every failure the pipeline reports to the caller."""

    def __init__(self, message: str, cause: Any = None):
        super().__init__(message)
        self.message = message
        self.cause = cause


class ConfigurationError(TagChangesError):
    pass


class TransportError(TagChangesError):
    pass


class NotFoundError(TagChangesError):
    pass


class DataIntegrityError(TagChangesError):
    pass
