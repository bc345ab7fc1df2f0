"""
Application error types.

Three runtime outcomes besides "allowed" leave the authorization engine:

* ``AuthenticationError`` - no verified identity on the request (401).
* ``AuthorizationError`` - identity present, permission missing (403). The
  missing-policy and failed-context cases share one public message so callers
  cannot probe which resources exist.
* ``InternalError`` - the data store failed while resolving context (500).

Each carries a stable ``error_code`` and an audit ``context`` mapping. The
context is meant for server-side logs only; the HTTP layer drops it unless
``expose_error_details`` is enabled.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any


class AppError(Exception):
    """Base class for operational errors rendered by the API error handler."""

    status_code: int = 500
    error_code: str = "INTERNAL_SERVER_ERROR"
    public_message: str | None = None

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = dict(context or {})
        self.timestamp = datetime.now(timezone.utc).isoformat()

    @property
    def status(self) -> str:
        return "fail" if 400 <= self.status_code < 500 else "error"

    def to_dict(self, include_context: bool = False) -> dict[str, Any]:
        body: dict[str, Any] = {
            "status": self.status,
            "error_code": self.error_code,
            "message": self.public_message or self.message,
            "timestamp": self.timestamp,
        }
        if include_context:
            body["context"] = self.context
        return body


class AuthenticationError(AppError):
    status_code = 401
    error_code = "AUTHENTICATION_ERROR"


class AuthorizationError(AppError):
    status_code = 403
    error_code = "AUTHORIZATION_ERROR"


class InternalError(AppError):
    status_code = 500
    error_code = "INTERNAL_SERVER_ERROR"
    public_message = "Internal server error"


class PolicyConfigError(ValueError):
    """Raised when the policy YAML configuration is invalid."""
