"""
Error taxonomy shared by every component.

Each error carries the HTTP status and the stable ``error`` string the API
returns, plus an optional short ``details`` string. Nothing in here ever
includes upstream stack traces or credentials.
"""
from __future__ import annotations

_MAX_DETAILS = 200


def _bounded(details: str | None) -> str | None:
    if details is None:
        return None
    return details[:_MAX_DETAILS]


class LunchboxError(Exception):
    status_code: int = 500
    error: str = "Internal server error."

    def __init__(
        self,
        error: str | None = None,
        details: str | None = None,
        status_code: int | None = None,
    ) -> None:
        if error is not None:
            self.error = error
        if status_code is not None:
            self.status_code = status_code
        self.details = _bounded(details)
        super().__init__(self.error if not self.details else f"{self.error}: {self.details}")

    def to_body(self) -> dict[str, str]:
        body = {"error": self.error}
        if self.details:
            body["details"] = self.details
        return body


class ConfigurationError(LunchboxError):
    status_code = 500
    error = "Server configuration error."


class ValidationError(LunchboxError):
    status_code = 400
    error = "Missing or invalid request parameters"


class RateLimitExceeded(LunchboxError):
    status_code = 429
    error = "Too many requests. Please wait a moment."


class UpstreamError(LunchboxError):
    status_code = 500
    error = "AI Processing Failed"


class ParseError(LunchboxError):
    """Model output was not valid JSON or did not match the output schema."""

    status_code = 500
    error = "AI Processing Failed"
