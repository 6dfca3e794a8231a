"""
Application errors raised by the order core and the upload proxy.

Each error carries the HTTP status it is rendered with; `main` registers
a single handler that turns them into `{"detail": message}` responses.
"""
from typing import Optional


class AppError(Exception):
    status_code = 500
    default_message = "An unexpected error occurred"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AppError):
    """Malformed or missing input, e.g. an empty cart."""
    status_code = 400
    default_message = "Invalid request"


class InvalidRequest(ValidationError):
    """The request is well-formed but carries no usable instruction."""


class NotFound(AppError):
    status_code = 404
    default_message = "Not found"


class Unauthorized(AppError):
    status_code = 401
    default_message = "Unauthorized"


class UploadFailed(AppError):
    status_code = 500
    default_message = "Image upload failed"
