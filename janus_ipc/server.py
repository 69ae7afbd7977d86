"""Datagram Unix-socket server that routes commands to handlers."""

from __future__ import annotations

import asyncio
import copy
import inspect
import json
import logging
import os
import socket
import time
from typing import Any, Callable, Mapping

from .errors import JSONRPCError, JSONRPCErrorCode
from .messages import JanusCommand, JanusResponse

logger = logging.getLogger(__name__)

CommandHandler = Callable[[JanusCommand], Any]

_MAX_DATAGRAM = 64 * 1024
_SLOW_PROCESS_SECONDS = 2.0
_MISSING = object()


def _test_echo_spec(description: str) -> dict[str, Any]:
    return {
        "description": description,
        "args": {
            "message": {
                "type": "string",
                "required": False,
                "description": "Message to echo back",
            }
        },
        "response": {"type": "object", "properties": {"echo": {"type": "string"}}},
    }


_SPEC: dict[str, Any] = {
    "version": "1.0.0",
    "channels": {
        "test": {
            "description": "Test channel for cross-platform communication",
            "commands": {"test_echo": _test_echo_spec("Echo test command")},
        },
        "test_channel": {
            "description": "Test channel for high-level API tests",
            "commands": {
                "test_echo": _test_echo_spec("Test echo command for high-level API tests")
            },
        },
    },
    "models": {},
}


def _message(command: JanusCommand, default: Any = _MISSING) -> Any:
    args = command.args or {}
    return args.get("message", default)


def _ping(command: JanusCommand) -> Any:
    return {"pong": True, "timestamp": time.time()}


def _echo(command: JanusCommand) -> Any:
    return {"echo": _message(command, "Hello from SOCK_DGRAM server!")}


def _get_info(command: JanusCommand) -> Any:
    return {
        "implementation": "Python",
        "version": "1.0.0",
        "protocol": "SOCK_DGRAM",
        "timestamp": time.time(),
    }


def _validate(command: JanusCommand) -> Any:
    message = _message(command)
    if not isinstance(message, str):
        return {"valid": False, "error": "No message provided for validation"}
    try:
        parsed = json.loads(message)
    except json.JSONDecodeError as exc:
        return {"valid": False, "error": "Invalid JSON format", "reason": str(exc)}
    return {"valid": True, "data": parsed}


async def _slow_process(command: JanusCommand) -> Any:
    await asyncio.sleep(_SLOW_PROCESS_SECONDS)
    result: dict[str, Any] = {"processed": True, "delay": "2000ms"}
    message = _message(command)
    if message is not _MISSING:
        result["message"] = message
    return result


def _spec(command: JanusCommand) -> Any:
    return copy.deepcopy(_SPEC)


def _test_echo(command: JanusCommand) -> Any:
    return {"echo": _message(command, "Hello Server!")}


_BUILTINS: dict[str, CommandHandler] = {
    "ping": _ping,
    "echo": _echo,
    "get_info": _get_info,
    "validate": _validate,
    "slow_process": _slow_process,
    "spec": _spec,
    "test_echo": _test_echo,
}


async def _call(handler: CommandHandler, command: JanusCommand) -> Any:
    result = handler(command)
    if inspect.isawaitable(result):
        result = await result
    return result


async def handle_command(
    command: JanusCommand, handlers: Mapping[str, CommandHandler] | None = None
) -> JanusResponse:
    """Run a command through a registered handler or a built-in one and build the reply."""
    handler = (handlers or {}).get(command.command)
    if handler is not None:
        try:
            result = await _call(handler, command)
        except Exception as exc:
            return JanusResponse.error_for(
                command, JSONRPCError(JSONRPCErrorCode.INTERNAL_ERROR, str(exc))
            )
        return JanusResponse.success_for(command, result)

    builtin = _BUILTINS.get(command.command)
    if builtin is None:
        return JanusResponse.error_for(
            command,
            JSONRPCError(
                JSONRPCErrorCode.METHOD_NOT_FOUND,
                f"Command '{command.command}' not registered",
            ),
        )
    return JanusResponse.success_for(command, await _call(builtin, command))


def _remove_file(path: str) -> None:
    try:
        os.unlink(path)
    except OSError:
        pass


def _send_response(response: JanusResponse, reply_to: str) -> None:
    try:
        payload = response.to_json().encode("utf-8")
    except (TypeError, ValueError) as exc:
        logger.error("Error serializing response: %s", exc)
        return
    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as out:
            out.sendto(payload, reply_to)
    except OSError as exc:
        logger.error("Error sending response: %s", exc)
    else:
        logger.info("Response sent to: %s", reply_to)


class JanusServer:
    """Receives command datagrams on a Unix socket and replies to their reply_to path."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._running = False
        self._socket_path: str | None = None
        self._socket: socket.socket | None = None
        self._task: asyncio.Task[None] | None = None

    def register_handler(self, command: str, handler: CommandHandler) -> None:
        """Register a handler for a command; it may return a value or an awaitable."""
        self._handlers[command] = handler

    async def start_listening(self, socket_path: str | os.PathLike[str]) -> None:
        """Bind the socket and serve in a background task on the running loop."""
        if self._running:
            self.stop()
        path = os.fspath(socket_path)
        _remove_file(path)
        sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
        try:
            sock.bind(path)
            sock.setblocking(False)
        except OSError as exc:
            sock.close()
            raise JSONRPCError(
                JSONRPCErrorCode.SOCKET_ERROR, f"Failed to bind socket: {exc}"
            ) from exc

        self._socket_path = path
        self._socket = sock
        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._listen(sock))
        logger.info("SOCK_DGRAM server listening on: %s", path)
        await asyncio.sleep(0)

    def stop(self) -> None:
        """Stop serving and remove the socket file."""
        self._running = False
        task, self._task = self._task, None
        sock, self._socket = self._socket, None
        if task is not None and not task.done() and not task.get_loop().is_closed():
            task.cancel()
        elif sock is not None:
            sock.close()
        if self._socket_path is not None:
            _remove_file(self._socket_path)
            self._socket_path = None

    def is_running(self) -> bool:
        """True between start_listening and stop."""
        return self._running

    def __enter__(self) -> "JanusServer":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.stop()

    async def _listen(self, sock: socket.socket) -> None:
        loop = asyncio.get_running_loop()
        try:
            while self._running:
                try:
                    data = await loop.sock_recv(sock, _MAX_DATAGRAM)
                except OSError as exc:
                    logger.error("Error receiving datagram: %s", exc)
                    await asyncio.sleep(0.1)
                    continue
                try:
                    await self._process_datagram(data)
                except Exception:
                    logger.exception("Error processing datagram")
        finally:
            sock.close()
            logger.info("SOCK_DGRAM server stopped")

    async def _process_datagram(self, data: bytes) -> None:
        try:
            command = JanusCommand.from_json(data)
        except JSONRPCError as exc:
            logger.error("Failed to parse datagram: %s", exc)
            return
        logger.info("Received SOCK_DGRAM command: %s (ID: %s)", command.command, command.id)
        if command.reply_to is None:
            return
        response = await handle_command(command, self._handlers)
        _send_response(response, command.reply_to)