"""Explicit success/failure values for fault-isolated dashboard steps."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """
    Result of one step that is allowed to fail without aborting its caller.

    Exactly one of ``value`` (when ``ok``) or ``error`` is meaningful.
    """

    step: str
    value: T | None = None
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, step: str, value: T) -> "Outcome[T]":
        return cls(step=step, value=value)

    @classmethod
    def failure(cls, step: str, error: Exception) -> "Outcome[T]":
        return cls(step=step, error=error)


async def attempt(step: str, func: Callable[..., Awaitable[T]], *args, **kwargs) -> Outcome[T]:
    """
    Await ``func(*args, **kwargs)`` and capture any exception as a failed outcome.

    Cancellation is not captured so request timeouts still propagate.
    """
    try:
        return Outcome.success(step, await func(*args, **kwargs))
    except Exception as e:
        logger.warning(f"Step '{step}' failed: {e}")
        return Outcome.failure(step, e)
