"""Exceptions raised by the practice core."""
from __future__ import annotations


class TrainerError(Exception):
    pass


class NotFoundError(TrainerError, LookupError):
    """A referenced unit, word or test paper does not exist."""


class InvalidArgumentError(TrainerError, ValueError):
    """Rejected input; raised before any state is mutated."""


class StorageError(TrainerError):
    """The underlying store failed a read or write. Fatal for the request."""
