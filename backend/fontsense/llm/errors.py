"""Typed failures raised by inference clients."""

from __future__ import annotations


class InferenceError(Exception):
    """A failed call to the inference service.

    ``status`` follows HTTP semantics so the retry engine can classify it.
    """

    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        finish_reason: str | None = None,
    ) -> None:
        self.status = status
        self.finish_reason = finish_reason
        super().__init__(message)


class SafetyRejection(InferenceError):
    """The service refused to answer on safety or policy grounds. Never retried."""

    def __init__(self, message: str = "response blocked by safety policy", *, finish_reason: str = "SAFETY") -> None:
        super().__init__(message, status=None, finish_reason=finish_reason)


class InferenceUnavailable(InferenceError):
    """Inference is switched off or no credentials are configured."""
