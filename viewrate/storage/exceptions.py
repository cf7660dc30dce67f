"""Persistence exceptions."""

from __future__ import annotations


class StorageError(Exception):
    """The backing store is unreachable or rejected an operation."""


class UnknownItemError(StorageError):
    """No tracked item exists with the requested id."""


class DuplicateItemError(StorageError):
    """A tracked item with the same id already exists."""
