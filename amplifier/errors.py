"""Exception hierarchy for the amplifier pipeline.

Policy refusals are not exceptions: the validator reports them and the
orchestrator substitutes a canned response.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from amplifier.models import Usage


class AmplifierError(Exception):
    """Base class for every error raised by amplifier."""


class PreconditionError(AmplifierError):
    """A request cannot start: no API key, unknown provider, unkeyed post."""


class ProviderError(AmplifierError):
    """The upstream LLM API rejected the call or could not be reached.

    Carries the upstream message verbatim so callers can show it.
    """

    def __init__(self, message: str, provider: str | None = None, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.status_code = status_code


class ValidationFailure(AmplifierError):
    """Soft failure: a generated result broke a format or policy rule."""


class InvalidResponseFormat(ValidationFailure):
    """The provider answered, but not with a parseable JSON object.

    ``usage`` holds the tokens consumed by the failed call so they can still
    be accounted for.
    """

    def __init__(self, message: str = "Failed to parse API response as JSON", usage: Usage | None = None):
        super().__init__(message)
        self.usage = usage
