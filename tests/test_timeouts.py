import asyncio
import logging
from datetime import datetime, timedelta, timezone

import pytest

from janus_ipc.errors import JSONRPCError, JSONRPCErrorCode
from janus_ipc.timeouts import (
    TimeoutConfig,
    TimeoutManager,
    TimeoutStats,
    logging_timeout_handler,
    stats_timeout_handler,
)


def _counter():
    calls = []

    def handler(command_id, timeout):
        calls.append((command_id, timeout))

    return calls, handler


@pytest.mark.asyncio
async def test_timeout_manager_creation():
    manager = TimeoutManager()
    assert manager.active_timeout_count() == 0


@pytest.mark.asyncio
async def test_timeout_execution():
    manager = TimeoutManager()
    calls, handler = _counter()
    manager.start_timeout("test-command", 0.05, handler)
    assert manager.has_timeout("test-command")
    await asyncio.sleep(0.15)
    assert calls == [("test-command", 0.05)]
    assert not manager.has_timeout("test-command")
    stats = manager.statistics()
    assert stats.total_registered == 1
    assert stats.total_expired == 1
    assert stats.last_timeout_command == "test-command"


@pytest.mark.asyncio
async def test_timeout_cancellation():
    manager = TimeoutManager()
    calls, handler = _counter()
    manager.start_timeout("test-command", 0.1, handler)
    assert manager.has_timeout("test-command")
    await asyncio.sleep(0.03)
    assert manager.cancel_timeout("test-command") is True
    assert not manager.has_timeout("test-command")
    await asyncio.sleep(0.15)
    assert calls == []
    assert manager.statistics().total_cancelled == 1


@pytest.mark.asyncio
async def test_cancel_unknown_timeout():
    manager = TimeoutManager()
    assert manager.cancel_timeout("missing") is False
    assert manager.statistics().total_cancelled == 0


@pytest.mark.asyncio
async def test_execute_with_timeout_success():
    manager = TimeoutManager()

    async def operation():
        await asyncio.sleep(0.02)
        return 42

    result = await manager.execute_with_timeout("test-command", 0.5, operation())
    assert result == 42
    assert manager.active_timeout_count() == 0


@pytest.mark.asyncio
async def test_execute_with_timeout_failure():
    manager = TimeoutManager()

    async def operation():
        await asyncio.sleep(0.3)
        return 42

    with pytest.raises(JSONRPCError) as info:
        await manager.execute_with_timeout("test-command", 0.05, operation())
    assert info.value.code is JSONRPCErrorCode.HANDLER_TIMEOUT
    assert "test-command" in info.value.details
    assert manager.active_timeout_count() == 0


@pytest.mark.asyncio
async def test_execute_with_timeout_propagates_operation_error():
    manager = TimeoutManager()

    async def operation():
        raise JSONRPCError(JSONRPCErrorCode.INVALID_PARAMS, "bad")

    with pytest.raises(JSONRPCError) as info:
        await manager.execute_with_timeout("cmd", 0.5, operation())
    assert info.value.code is JSONRPCErrorCode.INVALID_PARAMS
    assert not manager.has_timeout("cmd")


def test_timeout_config_validation():
    config = TimeoutConfig.standard()
    assert config.validate_timeout(30.0) == 30.0
    with pytest.raises(JSONRPCError) as short:
        config.validate_timeout(0.05)
    assert short.value.code is JSONRPCErrorCode.VALIDATION_FAILED
    with pytest.raises(JSONRPCError) as long:
        config.validate_timeout(600.0)
    assert long.value.code is JSONRPCErrorCode.VALIDATION_FAILED


def test_timeout_config_presets():
    assert TimeoutConfig() == TimeoutConfig.standard()
    aggressive = TimeoutConfig.aggressive()
    assert (aggressive.default_command_timeout, aggressive.max_timeout, aggressive.min_timeout) == (
        5.0,
        60.0,
        0.05,
    )
    relaxed = TimeoutConfig.relaxed()
    assert (relaxed.connection_timeout, relaxed.max_timeout, relaxed.min_timeout) == (
        30.0,
        600.0,
        1.0,
    )
    assert relaxed.validate_timeout(600.0) == 600.0


def test_timeout_stats():
    stats = TimeoutStats()
    stats.record_timeout("cmd1", 30.0)
    stats.record_timeout("cmd2", 60.0)
    assert stats.total_timeouts == 2
    assert stats.average_timeout_duration == 45.0
    assert stats.last_timeout_command == "cmd2"
    assert stats.longest_timeout == 60.0
    assert stats.shortest_timeout == 30.0


def test_timeout_history_keeps_last_hundred():
    stats = TimeoutStats()
    for index in range(105):
        stats.record_timeout(f"cmd{index}", 1.0)
    assert len(stats.timeout_history) == 100
    assert stats.timeout_history[0][0] == "cmd5"
    assert stats.total_timeouts == 105


def test_recent_timeout_rate_ignores_old_entries():
    stats = TimeoutStats()
    stats.timeout_history.append(
        ("old", 1.0, datetime.now(timezone.utc) - timedelta(minutes=5))
    )
    stats.record_timeout("a", 1.0)
    stats.record_timeout("b", 1.0)
    assert stats.recent_timeout_rate() == 2.0
    assert stats.is_timeout_rate_concerning(1.0)
    assert not stats.is_timeout_rate_concerning(2.0)


@pytest.mark.asyncio
async def test_extend_timeout():
    manager = TimeoutManager()
    manager.start_timeout("cmd", 0.05)
    assert manager.extend_timeout("cmd", 0.2) is True
    await asyncio.sleep(0.1)
    assert manager.has_timeout("cmd")
    await asyncio.sleep(0.3)
    assert not manager.has_timeout("cmd")
    stats = manager.statistics()
    assert stats.total_expired == 1
    assert stats.longest_timeout == pytest.approx(0.25)


@pytest.mark.asyncio
async def test_extend_unknown_timeout():
    manager = TimeoutManager()
    assert manager.extend_timeout("missing", 1.0) is False


@pytest.mark.asyncio
async def test_bilateral_timeout_fires_once():
    manager = TimeoutManager()
    calls, handler = _counter()
    manager.start_bilateral_timeout("base", 0.05, handler)
    assert manager.has_timeout("base-request")
    assert manager.has_timeout("base-response")
    assert manager.active_timeout_count() == 2
    await asyncio.sleep(0.15)
    assert calls == [("base-request", 0.05)]
    assert manager.active_timeout_count() == 0
    stats = manager.statistics()
    assert stats.total_registered == 1
    assert stats.total_timeouts == 1


@pytest.mark.asyncio
async def test_cancel_bilateral_timeout():
    manager = TimeoutManager()
    calls, handler = _counter()
    manager.start_bilateral_timeout("base", 0.05, handler)
    assert manager.cancel_bilateral_timeout("base") == 2
    assert manager.cancel_bilateral_timeout("base") == 0
    await asyncio.sleep(0.1)
    assert calls == []


@pytest.mark.asyncio
async def test_cancel_all_timeouts():
    manager = TimeoutManager()
    calls, handler = _counter()
    for name in ("a", "b", "c"):
        manager.start_timeout(name, 0.05, handler)
    manager.cancel_all_timeouts()
    assert manager.active_timeout_count() == 0
    assert manager.statistics().total_cancelled == 3
    await asyncio.sleep(0.1)
    assert calls == []


@pytest.mark.asyncio
async def test_statistics_is_a_snapshot():
    manager = TimeoutManager()
    manager.start_timeout("cmd", 5.0)
    snapshot = manager.statistics()
    snapshot.total_registered = 99
    snapshot.timeout_history.append(("x", 1.0, datetime.now(timezone.utc)))
    fresh = manager.statistics()
    assert fresh.total_registered == 1
    assert len(fresh.timeout_history) == 0
    manager.cancel_all_timeouts()


@pytest.mark.asyncio
async def test_error_handler_receives_handler_failure():
    manager = TimeoutManager()
    errors = []

    def failing(command_id, timeout):
        raise RuntimeError("boom")

    def on_error(command_id, timeout, exc):
        errors.append((command_id, timeout, str(exc)))

    manager.start_timeout("cmd", 0.02, failing, on_error)
    await asyncio.sleep(0.1)
    assert errors == [("cmd", 0.02, "boom")]
    assert manager.statistics().total_expired == 1


def test_start_timeout_needs_running_loop():
    with pytest.raises(RuntimeError):
        TimeoutManager().start_timeout("cmd", 1.0)


def test_stats_timeout_handler_records():
    stats = TimeoutStats()
    handler = stats_timeout_handler(stats)
    handler("cmd", 2.5)
    assert stats.total_timeouts == 1
    assert stats.last_timeout_command == "cmd"
    assert stats.average_timeout_duration == 2.5


def test_logging_timeout_handler(caplog):
    with caplog.at_level(logging.WARNING, logger="janus_ipc.timeouts"):
        logging_timeout_handler("cmd-42", 1.5)
    assert "cmd-42" in caplog.text
    assert "timed out" in caplog.text