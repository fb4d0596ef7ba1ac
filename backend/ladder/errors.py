"""
Domain errors raised by the services layer.

Each error carries the HTTP status it maps to; ladder.main renders them as
JSON ``{"error": message, **extra}``.
"""
from typing import Any, Dict, Optional


class LadderError(Exception):
    status_code = 500

    def __init__(self, message: str, extra: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.extra = extra or {}

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.message, **self.extra}


class BadRequestError(LadderError):
    status_code = 400


class UnauthorizedError(LadderError):
    status_code = 401


class ForbiddenError(LadderError):
    status_code = 403


class NotFoundError(LadderError):
    status_code = 404


class ConflictError(LadderError):
    status_code = 409
