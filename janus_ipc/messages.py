"""Command and response messages exchanged over datagram sockets."""

from __future__ import annotations

import json
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Mapping

from .errors import JSONRPCError, JSONRPCErrorCode


def _parse_error(details: str) -> JSONRPCError:
    return JSONRPCError(JSONRPCErrorCode.PARSE_ERROR, details)


def _reject_duplicates(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise _parse_error(f"duplicate field '{key}'")
        result[key] = value
    return result


def _load_object(text: str | bytes) -> dict[str, Any]:
    try:
        data = json.loads(text, object_pairs_hook=_reject_duplicates)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise _parse_error(str(exc)) from exc
    if not isinstance(data, dict):
        raise _parse_error("expected a JSON object")
    return data


def _required_str(data: Mapping[str, Any], key: str) -> str:
    if key not in data:
        raise _parse_error(f"missing field '{key}'")
    value = data[key]
    if not isinstance(value, str):
        raise _parse_error(f"field '{key}' must be a string")
    return value


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise _parse_error(f"field '{key}' must be a string")
    return value


def _number(data: Mapping[str, Any], key: str, *, required: bool) -> float | None:
    if key not in data or data[key] is None:
        if required:
            raise _parse_error(f"missing field '{key}'")
        return None
    value = data[key]
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _parse_error(f"field '{key}' must be a number")
    return float(value)


@dataclass
class JanusCommand:
    """A command sent to a channel, optionally asking for a reply."""

    channel_id: str
    command: str
    args: dict[str, Any] | None = None
    timeout: float | None = None
    reply_to: str | None = None
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form of the command."""
        data: dict[str, Any] = {
            "id": self.id,
            "channelId": self.channel_id,
            "command": self.command,
        }
        if self.reply_to is not None:
            data["reply_to"] = self.reply_to
        if self.args is not None:
            data["args"] = self.args
        if self.timeout is not None:
            data["timeout"] = self.timeout
        data["timestamp"] = self.timestamp
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JanusCommand":
        """Build a command from its wire form; raises JSONRPCError if malformed."""
        if not isinstance(data, Mapping):
            raise _parse_error("command must be an object")
        args = data.get("args")
        if args is not None and not isinstance(args, dict):
            raise _parse_error("field 'args' must be an object")
        return cls(
            channel_id=_required_str(data, "channelId"),
            command=_required_str(data, "command"),
            args=args,
            timeout=_number(data, "timeout", required=False),
            reply_to=_optional_str(data, "reply_to"),
            id=_required_str(data, "id"),
            timestamp=_number(data, "timestamp", required=True),
        )

    def to_json(self) -> str:
        """Serialise the command to JSON text."""
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str | bytes) -> "JanusCommand":
        """Parse a command from JSON text or bytes."""
        return cls.from_dict(_load_object(text))


@dataclass
class JanusResponse:
    """The reply to a command: a result on success, an error otherwise."""

    command_id: str
    channel_id: str
    success: bool
    result: Any = None
    error: JSONRPCError | None = None
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def success_for(cls, command: JanusCommand, result: Any) -> "JanusResponse":
        """A successful response to the given command."""
        return cls(command.id, command.channel_id, True, result=result)

    @classmethod
    def error_for(cls, command: JanusCommand, error: JSONRPCError) -> "JanusResponse":
        """A failed response to the given command."""
        return cls(command.id, command.channel_id, False, error=error)

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form of the response."""
        data: dict[str, Any] = {
            "commandId": self.command_id,
            "channelId": self.channel_id,
            "success": self.success,
        }
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error.to_dict()
        data["timestamp"] = self.timestamp
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JanusResponse":
        """Build a response from its wire form; raises JSONRPCError if malformed."""
        if not isinstance(data, Mapping):
            raise _parse_error("response must be an object")
        success = data.get("success")
        if not isinstance(success, bool):
            raise _parse_error("field 'success' must be a boolean")
        error = None
        if data.get("error") is not None:
            try:
                error = JSONRPCError.from_dict(data["error"])
            except ValueError as exc:
                raise _parse_error(f"invalid error: {exc}") from exc
        return cls(
            command_id=_required_str(data, "commandId"),
            channel_id=_required_str(data, "channelId"),
            success=success,
            result=data.get("result"),
            error=error,
            timestamp=_number(data, "timestamp", required=True),
        )

    def to_json(self) -> str:
        """Serialise the response to JSON text."""
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str | bytes) -> "JanusResponse":
        """Parse a response from JSON text or bytes."""
        return cls.from_dict(_load_object(text))