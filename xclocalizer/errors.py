"""Error definitions for the xclocalizer translation pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional


class ErrorCategory(Enum):
    """Categorises handled errors for run summaries."""

    ARGUMENT = auto()
    TRANSLATION = auto()
    TIMEOUT = auto()
    CANCELLED = auto()
    CALLBACK = auto()
    OTHER = auto()


class LocalizerError(Exception):
    """Base exception for all custom errors."""


class InvalidArgument(LocalizerError, ValueError):
    """Raised when a run is configured with malformed values."""


class UnsupportedFileTypeError(LocalizerError):
    """Raised when a given file extension is not supported."""


class OverwriteRefusedError(LocalizerError):
    """Raised when attempting to overwrite an output without consent."""


class TranslationProviderConfigurationError(LocalizerError):
    """Raised when the translation provider is misconfigured."""


class TranslationProviderError(LocalizerError):
    """Raised when one provider call fails for a batch."""


class BatchTimeoutError(TranslationProviderError):
    """Raised when a provider call exceeds the per-call deadline."""


class RunCancelledError(LocalizerError):
    """Marks a batch that was never dispatched because the run was cancelled."""


@dataclass
class ErrorRecord:
    """Stores context for a handled error."""

    category: ErrorCategory
    message: str
    details: Optional[str] = None


def categorise(exc: BaseException) -> ErrorCategory:
    """Map an exception raised inside a run to its error category."""

    if isinstance(exc, BatchTimeoutError):
        return ErrorCategory.TIMEOUT
    if isinstance(exc, RunCancelledError):
        return ErrorCategory.CANCELLED
    if isinstance(exc, TranslationProviderError):
        return ErrorCategory.TRANSLATION
    if isinstance(exc, InvalidArgument):
        return ErrorCategory.ARGUMENT
    return ErrorCategory.OTHER


def describe(exc: BaseException) -> str:
    """Return a non-empty, human-readable message for an exception."""

    message = str(exc).strip()
    if message:
        return message
    return exc.__class__.__name__
