"""Core data structures for the xclocalizer translation pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Dict, FrozenSet, Iterable, List, Optional, Tuple

from .errors import ErrorRecord, InvalidArgument

if TYPE_CHECKING:  # pragma: no cover
    from .scheduler import CancellationToken


MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 10
DEFAULT_CONCURRENCY = 5

MIN_BATCH_SIZE = 1
MAX_BATCH_SIZE = 30
DEFAULT_BATCH_SIZE = 10

DEFAULT_RETRY_BACKOFF: Tuple[float, ...] = (1, 4, 9)


@dataclass(frozen=True)
class TranslatableItem:
    """A single source string ready for translation."""

    key: str
    source_text: str


@dataclass(frozen=True)
class Batch:
    """Items sharing one target language, sent in a single provider call."""

    batch_id: int
    target_language: str
    items: Tuple[TranslatableItem, ...]

    @property
    def texts(self) -> List[str]:
        return [item.source_text for item in self.items]


class ItemStatus(Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class ItemResult:
    """Outcome for one (item, target language) pair."""

    key: str
    target_language: str
    status: ItemStatus
    value: str
    error_message: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status is ItemStatus.SUCCESS


@dataclass(frozen=True)
class RunProgress:
    """Progress snapshot handed to the caller's callback."""

    current: int
    total: int
    current_label: str
    error: Optional[str] = None


@dataclass(frozen=True)
class ItemError:
    key: str
    target_language: str
    error: str


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _clamp(value: int, lower: int, upper: int) -> int:
    return max(lower, min(upper, value))


@dataclass(frozen=True)
class RunConfig:
    """Immutable settings for one translation run."""

    concurrency: int = DEFAULT_CONCURRENCY
    batch_size: int = DEFAULT_BATCH_SIZE
    protected_terms: FrozenSet[str] = frozenset()
    target_languages: Tuple[str, ...] = ()
    call_timeout: Optional[float] = None
    max_retries: int = 0
    retry_backoff: Tuple[float, ...] = DEFAULT_RETRY_BACKOFF
    cancel_token: Optional["CancellationToken"] = field(
        default=None, compare=False, repr=False
    )

    def __post_init__(self) -> None:
        # Callers may pass lists or sets.
        object.__setattr__(self, "protected_terms", frozenset(self.protected_terms))
        object.__setattr__(
            self, "target_languages", unique_languages(self.target_languages)
        )
        object.__setattr__(self, "retry_backoff", tuple(self.retry_backoff))

        errors: List[str] = []
        if not _is_int(self.concurrency) or not (
            MIN_CONCURRENCY <= self.concurrency <= MAX_CONCURRENCY
        ):
            errors.append(
                f"concurrency must be an integer between {MIN_CONCURRENCY} and "
                f"{MAX_CONCURRENCY} (got {self.concurrency!r})"
            )
        if not _is_int(self.batch_size) or not (
            MIN_BATCH_SIZE <= self.batch_size <= MAX_BATCH_SIZE
        ):
            errors.append(
                f"batch_size must be an integer between {MIN_BATCH_SIZE} and "
                f"{MAX_BATCH_SIZE} (got {self.batch_size!r})"
            )
        if self.call_timeout is not None and not self.call_timeout > 0:
            errors.append(
                f"call_timeout must be positive when set (got {self.call_timeout!r})"
            )
        if not _is_int(self.max_retries) or self.max_retries < 0:
            errors.append(
                f"max_retries must be a non-negative integer (got {self.max_retries!r})"
            )
        if any(delay < 0 for delay in self.retry_backoff):
            errors.append("retry_backoff delays must not be negative")
        if errors:
            raise InvalidArgument("Invalid run configuration: " + "; ".join(errors))

    @classmethod
    def clamped(
        cls,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        batch_size: int = DEFAULT_BATCH_SIZE,
        **kwargs,
    ) -> "RunConfig":
        """Build a config after clamping concurrency and batch size into range."""

        return cls(
            concurrency=_clamp(int(concurrency), MIN_CONCURRENCY, MAX_CONCURRENCY),
            batch_size=_clamp(int(batch_size), MIN_BATCH_SIZE, MAX_BATCH_SIZE),
            **kwargs,
        )


def unique_languages(languages: Iterable[str]) -> Tuple[str, ...]:
    """Drop repeated languages while keeping first-seen order."""

    seen: Dict[str, None] = {}
    for language in languages:
        seen.setdefault(language, None)
    return tuple(seen)


@dataclass
class RunSummary:
    """Aggregate report returned once a run completes."""

    total: int
    success_by_language: Dict[str, int] = field(default_factory=dict)
    failure_by_language: Dict[str, int] = field(default_factory=dict)
    errors: List[ItemError] = field(default_factory=list)
    records: List[ErrorRecord] = field(default_factory=list)
    elapsed_seconds: float = 0.0

    @property
    def success_count(self) -> int:
        return sum(self.success_by_language.values())

    @property
    def failure_count(self) -> int:
        return sum(self.failure_by_language.values())

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def is_partial_failure(self) -> bool:
        return self.has_errors and self.success_count > 0

    @property
    def is_total_failure(self) -> bool:
        return self.total > 0 and self.success_count == 0

    def completion_message(self) -> str:
        if not self.errors:
            return f"Translation completed: {self.success_count} of {self.total} items translated."
        count = len(self.errors)
        noun = "error" if count == 1 else "errors"
        return f"Translation completed with {count} {noun}; fields kept original text."


@dataclass
class RunOutcome:
    """Everything a caller receives once a run has finished."""

    results: List[ItemResult]
    translations: Dict[str, Dict[str, str]]
    summary: RunSummary
