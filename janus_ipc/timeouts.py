"""Timeout tracking for commands, including paired request/response timeouts."""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from .errors import JSONRPCError, JSONRPCErrorCode

logger = logging.getLogger(__name__)

TimeoutHandler = Callable[[str, float], None]
ErrorTimeoutHandler = Callable[[str, float, BaseException], None]

_T = TypeVar("_T")
_HISTORY_LIMIT = 100


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_history() -> deque[tuple[str, float, datetime]]:
    return deque(maxlen=_HISTORY_LIMIT)


@dataclass
class TimeoutStats:
    """Counters and duration figures for registered and expired timeouts."""

    total_registered: int = 0
    total_cancelled: int = 0
    total_expired: int = 0
    total_timeouts: int = 0
    average_timeout_duration: float = 0.0
    longest_timeout: float = 0.0
    shortest_timeout: float = 3600.0
    last_timeout_command: str | None = None
    timeout_history: deque[tuple[str, float, datetime]] = field(default_factory=_new_history)

    def record_timeout(self, command_id: str, duration: float) -> None:
        """Record that the timeout of a command expired after the given seconds."""
        self.total_timeouts += 1
        self.total_expired += 1
        self.last_timeout_command = command_id
        self.longest_timeout = max(self.longest_timeout, duration)
        self.shortest_timeout = min(self.shortest_timeout, duration)
        previous_total = self.average_timeout_duration * (self.total_timeouts - 1)
        self.average_timeout_duration = (previous_total + duration) / self.total_timeouts
        self.timeout_history.append((command_id, duration, _now()))

    def recent_timeout_rate(self) -> float:
        """Number of timeouts recorded during the last minute."""
        cutoff = _now() - timedelta(minutes=1)
        return float(sum(1 for _, _, stamp in self.timeout_history if stamp > cutoff))

    def is_timeout_rate_concerning(self, threshold: float) -> bool:
        """True if the recent timeout rate exceeds the threshold."""
        return self.recent_timeout_rate() > threshold

    def copy(self) -> "TimeoutStats":
        """An independent snapshot of these statistics."""
        return replace(
            self, timeout_history=deque(self.timeout_history, maxlen=_HISTORY_LIMIT)
        )


@dataclass(frozen=True)
class TimeoutConfig:
    """Default and permitted timeout values, in seconds."""

    default_command_timeout: float = 30.0
    default_handler_timeout: float = 30.0
    connection_timeout: float = 10.0
    max_timeout: float = 300.0
    min_timeout: float = 0.1

    @classmethod
    def standard(cls) -> "TimeoutConfig":
        """The standard configuration."""
        return cls()

    @classmethod
    def aggressive(cls) -> "TimeoutConfig":
        """Short timeouts for high-performance scenarios."""
        return cls(5.0, 5.0, 2.0, 60.0, 0.05)

    @classmethod
    def relaxed(cls) -> "TimeoutConfig":
        """Long timeouts for development and testing."""
        return cls(120.0, 120.0, 30.0, 600.0, 1.0)

    def validate_timeout(self, timeout: float) -> float:
        """Return the timeout if within bounds; raise JSONRPCError otherwise."""
        if timeout < self.min_timeout:
            raise JSONRPCError(
                JSONRPCErrorCode.VALIDATION_FAILED,
                f"Timeout {timeout}s is below minimum {self.min_timeout}s",
            )
        if timeout > self.max_timeout:
            raise JSONRPCError(
                JSONRPCErrorCode.VALIDATION_FAILED,
                f"Timeout {timeout}s exceeds maximum {self.max_timeout}s",
            )
        return timeout


@dataclass
class _Entry:
    handle: asyncio.TimerHandle
    duration: float
    created_at: datetime


class TimeoutManager:
    """Tracks per-command timeouts on the running event loop."""

    def __init__(self) -> None:
        self._active: dict[str, _Entry] = {}
        self._stats = TimeoutStats()

    def _schedule(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)

    def _store(self, command_id: str, handle: asyncio.TimerHandle, duration: float) -> None:
        previous = self._active.get(command_id)
        if previous is not None:
            previous.handle.cancel()
        self._active[command_id] = _Entry(handle, duration, _now())

    def _discard(self, command_ids: Iterable[str]) -> None:
        for command_id in command_ids:
            entry = self._active.pop(command_id, None)
            if entry is not None:
                entry.handle.cancel()

    def _expire(
        self,
        command_id: str,
        duration: float,
        on_timeout: TimeoutHandler | None,
        on_error: ErrorTimeoutHandler | None,
        cleanup: tuple[str, ...],
    ) -> None:
        if on_timeout is not None:
            try:
                on_timeout(command_id, duration)
            except Exception as exc:
                if on_error is not None:
                    on_error(command_id, duration, exc)
                else:
                    logger.exception("Timeout handler for %s failed", command_id)
        self._stats.record_timeout(command_id, duration)
        self._discard(cleanup)

    def start_timeout(
        self,
        command_id: str,
        timeout: float,
        on_timeout: TimeoutHandler | None = None,
        on_error: ErrorTimeoutHandler | None = None,
    ) -> None:
        """Start a timeout; on expiry the handler runs and the entry is removed."""
        handle = self._schedule(
            timeout,
            lambda: self._expire(command_id, timeout, on_timeout, on_error, (command_id,)),
        )
        self._stats.total_registered += 1
        self._store(command_id, handle, timeout)

    def cancel_timeout(self, command_id: str) -> bool:
        """Cancel a command's timeout; False if it had none."""
        entry = self._active.pop(command_id, None)
        if entry is None:
            return False
        entry.handle.cancel()
        self._stats.total_cancelled += 1
        return True

    def extend_timeout(self, command_id: str, extension: float) -> bool:
        """Restart a timeout with its duration lengthened; False if it had none."""
        entry = self._active.pop(command_id, None)
        if entry is None:
            return False
        entry.handle.cancel()
        new_timeout = entry.duration + extension
        entry.duration = new_timeout
        entry.handle = self._schedule(
            new_timeout,
            lambda: self._expire(command_id, new_timeout, None, None, (command_id,)),
        )
        self._active[command_id] = entry
        return True

    def has_timeout(self, command_id: str) -> bool:
        """True if the command has an active timeout."""
        return command_id in self._active

    def active_timeout_count(self) -> int:
        """Number of active timeouts."""
        return len(self._active)

    def start_bilateral_timeout(
        self,
        base_command_id: str,
        timeout: float,
        on_timeout: TimeoutHandler | None = None,
    ) -> None:
        """Start paired '<id>-request' and '<id>-response' timeouts sharing one handler."""
        request_id = f"{base_command_id}-request"
        response_id = f"{base_command_id}-response"
        pair = (request_id, response_id)
        self._stats.total_registered += 1
        request_handle = self._schedule(
            timeout, lambda: self._expire(request_id, timeout, on_timeout, None, pair)
        )
        response_handle = self._schedule(timeout, lambda: self._discard(pair))
        self._store(request_id, request_handle, timeout)
        self._store(response_id, response_handle, timeout)

    def cancel_bilateral_timeout(self, base_command_id: str) -> int:
        """Cancel both halves of a paired timeout; returns how many were active."""
        return sum(
            self.cancel_timeout(f"{base_command_id}-{suffix}")
            for suffix in ("request", "response")
        )

    def cancel_all_timeouts(self) -> None:
        """Cancel every active timeout."""
        count = len(self._active)
        for entry in self._active.values():
            entry.handle.cancel()
        self._active.clear()
        self._stats.total_cancelled += count

    def statistics(self) -> TimeoutStats:
        """A snapshot of the timeout statistics."""
        return self._stats.copy()

    async def execute_with_timeout(
        self,
        command_id: str,
        timeout: float,
        operation: Awaitable[_T],
        on_timeout: TimeoutHandler | None = None,
    ) -> _T:
        """Await an operation under a tracked timeout; raise HANDLER_TIMEOUT on expiry."""
        self.start_timeout(command_id, timeout, on_timeout)
        try:
            return await asyncio.wait_for(operation, timeout)
        except asyncio.TimeoutError as exc:
            raise JSONRPCError(
                JSONRPCErrorCode.HANDLER_TIMEOUT,
                f"Command {command_id} timed out after {timeout}s",
            ) from exc
        finally:
            self.cancel_timeout(command_id)


def logging_timeout_handler(command_id: str, timeout: float) -> None:
    """A timeout handler that logs a warning."""
    logger.warning("Command %s timed out after %ss", command_id, timeout)


def stats_timeout_handler(stats: TimeoutStats) -> TimeoutHandler:
    """A timeout handler that records each timeout in the given statistics."""

    def handler(command_id: str, timeout: float) -> None:
        stats.record_timeout(command_id, timeout)

    return handler


__all__: list[Any] = [
    "ErrorTimeoutHandler",
    "TimeoutConfig",
    "TimeoutHandler",
    "TimeoutManager",
    "TimeoutStats",
    "logging_timeout_handler",
    "stats_timeout_handler",
]