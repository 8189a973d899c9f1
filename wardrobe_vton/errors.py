"""Error taxonomy and user-facing classification of synthesis failures."""

from dataclasses import dataclass
from enum import Enum
from typing import Callable

import httpx


class WardrobeError(Exception):
    """Base class for problems with the wardrobe handed to a run."""


class InsufficientInputError(WardrobeError):
    """Raised when a wardrobe cannot produce a single combination."""


class DuplicateItemError(WardrobeError):
    """Raised when two items of the same role share an id."""


class InvalidTransitionError(Exception):
    """Raised when a task is moved to a phase its current phase cannot reach."""


class RunInProgressError(Exception):
    """Raised when a run is started while the previous one is still going."""


class ProfileDetectionError(Exception):
    """Raised when body stats could not be estimated from an image."""


class SynthesisError(Exception):
    """A visual synthesis call could not produce an image.

    Args:
        message: Human readable summary of the failure
        status_code: HTTP status returned by the upstream service, if any
        kind: Upstream error type (e.g. ComfyUI's ``error.type``), if any
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        kind: str | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.kind = kind


class QuotaExceededError(SynthesisError):
    """The upstream service refused the call because of rate or usage limits."""


class InvalidInputError(SynthesisError):
    """The upstream service rejected the reference images or request."""


class ErrorCategory(str, Enum):
    QUOTA_EXCEEDED = "quota_exceeded"
    INVALID_INPUT = "invalid_input"
    GENERIC = "generic"


QUOTA_MESSAGE = (
    "Generation quota exceeded. The image service is limiting requests right now; "
    "this is temporary and will likely affect the remaining looks in this batch. "
    "Please try again later."
)
INVALID_INPUT_MESSAGE = "Invalid request. Please check your image inputs."
GENERIC_MESSAGE = "Failed to generate look."

QUOTA_STATUS_CODES = frozenset({429})
INVALID_INPUT_STATUS_CODES = frozenset({400, 413, 415, 422})
QUOTA_KINDS = frozenset({"quota_exceeded", "rate_limited", "resource_exhausted"})
INVALID_INPUT_KINDS = frozenset({
    "invalid_input",
    "invalid_prompt",
    "prompt_outputs_failed_validation",
    "prompt_no_outputs",
})


@dataclass(frozen=True)
class ClassifiedError:
    """A failure mapped onto a user-facing category and message."""
    category: ErrorCategory
    message: str


def _status_code(exc: BaseException) -> int | None:
    if isinstance(exc, SynthesisError):
        return exc.status_code
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code
    return None


def _kind(exc: BaseException) -> str | None:
    kind = getattr(exc, "kind", None)
    return kind.lower() if isinstance(kind, str) else None


def _is_quota(exc: BaseException) -> bool:
    return (
        isinstance(exc, QuotaExceededError)
        or _status_code(exc) in QUOTA_STATUS_CODES
        or _kind(exc) in QUOTA_KINDS
    )


def _is_invalid_input(exc: BaseException) -> bool:
    return (
        isinstance(exc, InvalidInputError)
        or _status_code(exc) in INVALID_INPUT_STATUS_CODES
        or _kind(exc) in INVALID_INPUT_KINDS
    )


def _generic_message(exc: BaseException) -> str:
    message = getattr(exc, "message", None) or str(exc)
    message = message.strip() if isinstance(message, str) else ""
    return message or GENERIC_MESSAGE


# Evaluated in order; the first matching predicate wins.
CLASSIFIERS: tuple[tuple[Callable[[BaseException], bool], ErrorCategory, Callable[[BaseException], str]], ...] = (
    (_is_quota, ErrorCategory.QUOTA_EXCEEDED, lambda _: QUOTA_MESSAGE),
    (_is_invalid_input, ErrorCategory.INVALID_INPUT, lambda _: INVALID_INPUT_MESSAGE),
)


def classify_error(exc: BaseException) -> ClassifiedError:
    """Map a failed synthesis call onto a category and a user message."""
    for matches, category, describe in CLASSIFIERS:
        if matches(exc):
            return ClassifiedError(category=category, message=describe(exc))
    return ClassifiedError(category=ErrorCategory.GENERIC, message=_generic_message(exc))
