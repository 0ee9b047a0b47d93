"""
Error taxonomy surfaced by the strip and account services.

Each error carries the HTTP status and the message the caller is allowed to
see. Internal failure details stay in the logs.
"""

from __future__ import annotations


class PhotoboothError(Exception):
    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(PhotoboothError):
    status_code = 400
    default_message = "Invalid request"


class Unauthorized(PhotoboothError):
    status_code = 401
    default_message = "Invalid credentials"


class Forbidden(PhotoboothError):
    status_code = 403
    default_message = "You do not have permission to update this memory"


class NotFound(PhotoboothError):
    status_code = 404
    default_message = "Strip not found"


class Conflict(PhotoboothError):
    status_code = 409
    default_message = "Resource already exists"


class Expired(PhotoboothError):
    """The record still exists but is logically gone."""

    status_code = 410
    default_message = "This memory has expired"


class StorageUploadFailed(PhotoboothError):
    default_message = "Failed to upload to storage"


class StorageDeleteFailed(PhotoboothError):
    default_message = "Failed to delete from storage"


class PersistFailed(PhotoboothError):
    default_message = "Failed to save to database"
