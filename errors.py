"""
Application errors

Every failure the backend reports is one of these. Each carries the HTTP
status it is surfaced with.
"""

from typing import Dict, Iterable


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(AppError):
    """A required environment value is missing. Never retried."""
    status_code = 500


class ClientError(AppError):
    """The request itself is malformed."""
    status_code = 400


class MethodNotAllowed(ClientError):
    status_code = 405

    def __init__(self, message: str, allow: Iterable[str]):
        super().__init__(message)
        self.allow = ", ".join(allow)


class NotFoundError(AppError):
    """An operation expected a matching document (or upstream resource) and found none."""
    status_code = 404


class UpstreamError(AppError):
    """The document store or a third-party API reported a failure."""
    status_code = 502


class ContactValidationError(ClientError):
    def __init__(self, message: str, errors: Dict[str, str]):
        super().__init__(message)
        self.errors = errors


class Unauthorized(AppError):
    status_code = 401
