"""Exceptions raised by catrecon."""

from __future__ import annotations


class CatalogReconError(Exception):
    """Base class for catrecon errors."""


class InvalidBatchError(CatalogReconError, ValueError):
    """The candidate item batch violates the input contract."""

    def __init__(self, message: str, errors: list[str] | None = None) -> None:
        self.errors = errors or []
        if self.errors:
            message = f"{message}: " + "; ".join(self.errors)
        super().__init__(message)


class CatalogLookupError(CatalogReconError):
    """A catalog query failed."""
