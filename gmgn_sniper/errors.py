from __future__ import annotations


class AppError(Exception):
    status_code = 500

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(AppError):
    status_code = 400


class NotFoundError(AppError):
    status_code = 404


class ConflictError(AppError):
    status_code = 409


class GMGNError(AppError):
    """Upstream GMGN API returned something we could not use."""

    status_code = 502


class OperationTimeout(AppError):
    """A queued request ran longer than the client's per-operation timeout."""

    status_code = 504


class ClientClosed(AppError):
    status_code = 503

    def __init__(self, message: str = "Rate-limited client is closed"):
        super().__init__(message)
