"""Tagged results for collaborator calls.

Each source call is captured as `Ok(value)` or `Failed(source, reason)`; the caller then
decides per source whether a failure degrades gracefully or propagates.
"""
import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, TypeVar

from meetslot.core.errors import DependencyError, SchedulingError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failed:
    source: str
    reason: BaseException

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self):
        raise DependencyError(self.source, self.reason) from self.reason


Outcome = Ok[T] | Failed


async def capture(
    source: str,
    call: Awaitable[T],
    timeout: float | None = None,
    reraise: tuple[type[BaseException], ...] = (SchedulingError,),
) -> Outcome:
    """Await `call` and tag the result; a timeout counts as a failure.

    Exceptions listed in `reraise` are decisions, not failures, and propagate unchanged.
    """
    try:
        if timeout is not None:
            value = await asyncio.wait_for(call, timeout=timeout)
        else:
            value = await call
    except reraise:
        raise
    except Exception as e:
        return Failed(source, e)
    return Ok(value)


async def require(source: str, call: Awaitable[T]) -> T:
    """Shortcut for authoritative sources: failure raises DependencyError."""
    outcome = await capture(source, call)
    if not outcome.ok:
        logger.error("Required source %s failed: %s", source, outcome.reason)
    return outcome.unwrap()
