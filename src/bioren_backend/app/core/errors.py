# src/bioren_backend/app/core/errors.py
from __future__ import annotations


class DirectoryError(Exception):
    """Base class for errors raised by the user directory and its adapters."""


class Unauthorized(DirectoryError):
    """Missing, malformed, invalid or expired bearer token."""


class MalformedAuthorization(Unauthorized):
    """Authorization header absent, without the 'Bearer ' prefix, or with an empty token."""


class StorageError(DirectoryError):
    """The document store could not be reached or answered with an error."""
