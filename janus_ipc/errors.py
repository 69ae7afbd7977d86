"""JSON-RPC 2.0 error codes and the error type raised throughout the package."""

from __future__ import annotations

from enum import IntEnum
from typing import Any, Mapping


class JSONRPCErrorCode(IntEnum):
    """Error codes carried on the wire, standard JSON-RPC and server-defined."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    SERVER_ERROR = -32000
    SOCKET_ERROR = -32001
    HANDLER_TIMEOUT = -32002
    VALIDATION_FAILED = -32003
    RESOURCE_NOT_FOUND = -32004
    CONFIGURATION_ERROR = -32005
    SECURITY_VIOLATION = -32006

    @property
    def message(self) -> str:
        """The standard human-readable message for this code."""
        return _MESSAGES[self]


_MESSAGES = {
    JSONRPCErrorCode.PARSE_ERROR: "Parse error",
    JSONRPCErrorCode.INVALID_REQUEST: "Invalid Request",
    JSONRPCErrorCode.METHOD_NOT_FOUND: "Method not found",
    JSONRPCErrorCode.INVALID_PARAMS: "Invalid params",
    JSONRPCErrorCode.INTERNAL_ERROR: "Internal error",
    JSONRPCErrorCode.SERVER_ERROR: "Server error",
    JSONRPCErrorCode.SOCKET_ERROR: "Socket error",
    JSONRPCErrorCode.HANDLER_TIMEOUT: "Handler timeout",
    JSONRPCErrorCode.VALIDATION_FAILED: "Validation failed",
    JSONRPCErrorCode.RESOURCE_NOT_FOUND: "Resource not found",
    JSONRPCErrorCode.CONFIGURATION_ERROR: "Configuration error",
    JSONRPCErrorCode.SECURITY_VIOLATION: "Security violation",
}


class JSONRPCError(Exception):
    """An error with a JSON-RPC code, a message and optional details."""

    def __init__(self, code: JSONRPCErrorCode | int, details: str | None = None) -> None:
        self.code = JSONRPCErrorCode(code)
        self.message = self.code.message
        self.details = details
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message

    def __repr__(self) -> str:
        return f"JSONRPCError(code={self.code.name}, details={self.details!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, JSONRPCError):
            return NotImplemented
        return (self.code, self.message, self.details) == (
            other.code,
            other.message,
            other.details,
        )

    def __hash__(self) -> int:
        return hash((self.code, self.message, self.details))

    def to_dict(self) -> dict[str, Any]:
        """Return the wire form of the error."""
        data: dict[str, Any] = {"code": int(self.code), "message": self.message}
        if self.details is not None:
            data["data"] = {"details": self.details}
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "JSONRPCError":
        """Build an error from its wire form; raises ValueError if malformed."""
        if not isinstance(data, Mapping):
            raise ValueError("error must be an object")
        raw_code = data.get("code")
        if not isinstance(raw_code, int) or isinstance(raw_code, bool):
            raise ValueError("error code must be an integer")
        try:
            code = JSONRPCErrorCode(raw_code)
        except ValueError as exc:
            raise ValueError(f"unknown error code: {raw_code}") from exc

        details = None
        extra = data.get("data")
        if isinstance(extra, Mapping):
            details = extra.get("details")
            if details is not None and not isinstance(details, str):
                details = str(details)

        error = cls(code, details)
        message = data.get("message")
        if isinstance(message, str) and message:
            error.message = message
            error.args = (str(error),)
        return error