from __future__ import annotations

from typing import Iterable, Optional


class IntakeError(Exception):
    """Base for failures that end a request with a non-200 response."""

    status = 500


class MissingFieldError(IntakeError):
    status = 400

    def __init__(self, names: Iterable[str]):
        self.names = list(names)
        super().__init__(f"Question {', '.join(self.names)} not found")


class InvalidFieldError(IntakeError):
    status = 400

    def __init__(self, name: str, reason: str):
        self.name = name
        super().__init__(f"Question {name} has an invalid answer: {reason}")


class InvalidPayloadError(IntakeError):
    status = 400


class WebhookAuthError(IntakeError):
    status = 401


class SecretNotFoundError(IntakeError):
    status = 500

    def __init__(self, name: str, reason: str = "not found"):
        self.name = name
        super().__init__(f"Secret {name}: {reason}")


class StoreError(IntakeError):
    status = 502

    def __init__(self, message: str, *, timeout: bool = False, response_status: Optional[int] = None):
        self.timeout = timeout
        self.response_status = response_status
        if timeout:
            self.status = 504
        super().__init__(message)


class GeocodeError(Exception):
    """County lookup failed. Never ends a request."""
