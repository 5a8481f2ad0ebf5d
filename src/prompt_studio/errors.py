"""Error taxonomy for the generation pipeline."""

from __future__ import annotations


class PromptStudioError(Exception):
    """Base class for pipeline errors."""


class NotAuthorizedError(PromptStudioError):
    """No authenticated user, or the user's plan does not include AI features."""


class InsufficientCreditsError(PromptStudioError):
    def __init__(self, required: int, message: str | None = None) -> None:
        self.required = required
        super().__init__(message or f"Insufficient credits: {required} required")


class UnknownFeatureError(PromptStudioError):
    def __init__(self, feature_type: str) -> None:
        self.feature_type = feature_type
        super().__init__(f"Unknown feature type: {feature_type}")


class GenerationError(PromptStudioError):
    """Terminal failure of one generation attempt. The attempt is still billed."""

    def __init__(self, message: str, provider: str, code: str = "GENERATION_FAILED") -> None:
        self.message = message
        self.code = code
        self.provider = provider
        super().__init__(message)

    def as_dict(self) -> dict:
        return {"message": self.message, "code": self.code, "provider": self.provider}


class GenerationCancelledError(PromptStudioError):
    """Attempt cancelled before the paid provider call."""


class ContentValidationError(ValueError):
    """Model output is not valid structured prompt content."""


class LedgerError(PromptStudioError):
    """The credits backend answered with an application-level error."""
