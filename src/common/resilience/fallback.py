"""
Sequential Fallback

Runs an ordered list of fallible async operations and returns the first
result that succeeds and passes an optional acceptance check. Attempts
run strictly one after another; nothing after the winning attempt is
invoked.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Attempt = tuple[str, Callable[[], Awaitable[T]]]


class RejectedResult(Exception):
    """An attempt returned a value the acceptance check refused."""


@dataclass(frozen=True)
class FallbackAttemptError:
    """Why a single named attempt did not win."""

    name: str
    error: BaseException

    def describe(self) -> str:
        return f"{self.name}: {type(self.error).__name__}: {self.error}"


class FallbackExhausted(Exception):
    """Every attempt in a fallback chain failed or was rejected."""

    def __init__(self, label: str, failures: Sequence[FallbackAttemptError]):
        self.label = label
        self.failures = tuple(failures)
        detail = "; ".join(f.describe() for f in self.failures) or "no attempts"
        super().__init__(f"{label}: all attempts failed ({detail})")


@dataclass(frozen=True)
class FallbackOutcome(Generic[T]):
    """The winning value, which attempt produced it, and what failed before it."""

    value: T
    name: str
    failures: tuple[FallbackAttemptError, ...] = field(default_factory=tuple)


async def first_success(
    attempts: Sequence[Attempt[T]],
    *,
    accept: Callable[[T], bool] | None = None,
    label: str = "fallback",
    catch: tuple[type[Exception], ...] = (Exception,),
) -> FallbackOutcome[T]:
    """
    Return the first accepted result from an ordered list of attempts.

    Args:
        attempts: ``(name, thunk)`` pairs tried in order
        accept: Optional predicate; a False result counts as a failure
        label: Name of the chain, used in logs and the exhaustion error
        catch: Exception types converted into "try the next attempt"

    Returns:
        FallbackOutcome with the winning value and the earlier failures

    Raises:
        FallbackExhausted: If no attempt produced an accepted value
    """
    failures: list[FallbackAttemptError] = []

    for name, thunk in attempts:
        try:
            value = await thunk()
        except catch as e:
            logger.warning(f"{label}: attempt '{name}' failed: {e}")
            failures.append(FallbackAttemptError(name=name, error=e))
            continue

        if accept is not None and not accept(value):
            logger.info(f"{label}: attempt '{name}' returned an unusable result")
            failures.append(
                FallbackAttemptError(name=name, error=RejectedResult(f"{name} result rejected"))
            )
            continue

        logger.debug(f"{label}: attempt '{name}' succeeded")
        return FallbackOutcome(value=value, name=name, failures=tuple(failures))

    raise FallbackExhausted(label, failures)
