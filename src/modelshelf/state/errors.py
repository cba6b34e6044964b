"""Errors raised by the collection store and the components built on it."""


class ModelshelfError(Exception):
    """Base exception for modelshelf operations."""


class StoreError(ModelshelfError):
    """Raised when the persisted collection store cannot be read or written."""


class CollectionNotFoundError(ModelshelfError):
    """Raised when an operation references a collection or folder that does not exist."""


class ValidationError(ModelshelfError):
    """Raised when caller input is rejected before any filesystem work happens."""
