"""Error taxonomy for the analysis pipeline."""

from __future__ import annotations

GENERIC_FAILURE_MESSAGE = "An unexpected error occurred during analysis. Please try again."
INVALID_INPUT_MESSAGE = "Invalid form data."


class AnalysisError(Exception):
    kind = "unexpected"
    user_message = GENERIC_FAILURE_MESSAGE


class ValidationError(AnalysisError):
    """Malformed image URI or dimensions; raised before any external call."""

    kind = "validation"
    user_message = INVALID_INPUT_MESSAGE

    def __init__(self, errors: list[str]) -> None:
        super().__init__("; ".join(errors) or "invalid request")
        self.errors = errors


class ExternalServiceError(AnalysisError):
    """Generation call failed, timed out, or returned an unusable payload."""

    kind = "external_service"

    def __init__(self, service: str, message: str) -> None:
        super().__init__(f"{service}: {message}")
        self.service = service


class UnexpectedError(AnalysisError):
    kind = "unexpected"
