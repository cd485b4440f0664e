"""Error types raised by the models and rendered by the API error handlers."""

from __future__ import annotations

from typing import Any


class JoblyError(Exception):
    status_code = 500

    def __init__(self, message: Any = "Internal Server Error") -> None:
        super().__init__(message)
        self.message = message

    def to_body(self) -> dict[str, dict[str, Any]]:
        return {"error": {"message": self.message, "status": self.status_code}}


class BadRequestError(JoblyError):
    status_code = 400

    def __init__(self, message: Any = "Bad Request") -> None:
        super().__init__(message)


class UnauthorizedError(JoblyError):
    status_code = 401

    def __init__(self, message: Any = "Unauthorized") -> None:
        super().__init__(message)


class NotFoundError(JoblyError):
    status_code = 404

    def __init__(self, message: Any = "Not Found") -> None:
        super().__init__(message)
