"""Data model of a Manifest: channels, commands, arguments, responses and models."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Mapping, TypeVar

from .errors import JSONRPCError, JSONRPCErrorCode

_T = TypeVar("_T")


def _parse_error(details: str) -> JSONRPCError:
    return JSONRPCError(JSONRPCErrorCode.PARSE_ERROR, details)


def _require_mapping(data: Any, what: str) -> Mapping[str, Any]:
    if not isinstance(data, Mapping):
        raise _parse_error(f"{what} must be an object")
    return data


def _lookup(data: Mapping[str, Any], *keys: str) -> Any:
    """Return the first present, non-null value among the given key spellings."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return None


def _str(data: Mapping[str, Any], key: str, *, required: bool, default: str = "") -> str:
    if data.get(key) is None:
        if required:
            raise _parse_error(f"missing field '{key}'")
        return default
    value = data[key]
    if not isinstance(value, str):
        raise _parse_error(f"field '{key}' must be a string")
    return value


def _optional_str(data: Mapping[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is not None and not isinstance(value, str):
        raise _parse_error(f"field '{key}' must be a string")
    return value


def _bool(data: Mapping[str, Any], key: str) -> bool:
    value = data.get(key, False)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise _parse_error(f"field '{key}' must be a boolean")
    return value


def _number(value: Any, key: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _parse_error(f"field '{key}' must be a number")
    return value


def _length(value: Any, key: str) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise _parse_error(f"field '{key}' must be a non-negative integer")
    return value


def _map_of(
    value: Any, key: str, build: Callable[[Any], _T]
) -> dict[str, _T]:
    mapping = _require_mapping(value, f"field '{key}'")
    return {str(name): build(item) for name, item in mapping.items()}


@dataclass
class ValidationSpec:
    """Constraints placed on an argument's value."""

    minimum: float | None = None
    maximum: float | None = None
    min_length: int | None = None
    max_length: int | None = None
    pattern: str | None = None
    enum: list[Any] | None = None

    def with_length_range(
        self, min_length: int | None, max_length: int | None
    ) -> "ValidationSpec":
        """A copy with the given length bounds."""
        return replace(self, min_length=min_length, max_length=max_length)

    def with_range(
        self, minimum: float | None, maximum: float | None
    ) -> "ValidationSpec":
        """A copy with the given numeric bounds."""
        return replace(self, minimum=minimum, maximum=maximum)

    def to_dict(self) -> dict[str, Any]:
        """Return the serialised form, omitting unset constraints."""
        data: dict[str, Any] = {}
        if self.minimum is not None:
            data["minimum"] = self.minimum
        if self.maximum is not None:
            data["maximum"] = self.maximum
        if self.min_length is not None:
            data["minLength"] = self.min_length
        if self.max_length is not None:
            data["maxLength"] = self.max_length
        if self.pattern is not None:
            data["pattern"] = self.pattern
        if self.enum is not None:
            data["enum"] = list(self.enum)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ValidationSpec":
        """Build constraints from their serialised form."""
        data = _require_mapping(data, "validation")
        enum = data.get("enum")
        if enum is not None and not isinstance(enum, list):
            raise _parse_error("field 'enum' must be an array")
        return cls(
            minimum=_number(data.get("minimum"), "minimum"),
            maximum=_number(data.get("maximum"), "maximum"),
            min_length=_length(_lookup(data, "minLength", "min_length"), "minLength"),
            max_length=_length(_lookup(data, "maxLength", "max_length"), "maxLength"),
            pattern=_optional_str(data, "pattern"),
            enum=list(enum) if enum is not None else None,
        )


@dataclass
class ArgumentSpec:
    """A named argument's declared type and constraints."""

    type: str
    required: bool = False
    description: str | None = None
    default_value: Any = None
    validation: ValidationSpec | None = None

    def as_required(self) -> "ArgumentSpec":
        """A copy marked as required."""
        return replace(self, required=True)

    def with_validation(self, validation: ValidationSpec) -> "ArgumentSpec":
        """A copy carrying the given constraints."""
        return replace(self, validation=validation)

    def to_dict(self) -> dict[str, Any]:
        """Return the serialised form."""
        data: dict[str, Any] = {"type": self.type, "required": self.required}
        if self.description is not None:
            data["description"] = self.description
        if self.default_value is not None:
            data["default"] = self.default_value
        if self.validation is not None:
            data["validation"] = self.validation.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ArgumentSpec":
        """Build an argument from its serialised form."""
        data = _require_mapping(data, "argument")
        validation = data.get("validation")
        return cls(
            type=_str(data, "type", required=True),
            required=_bool(data, "required"),
            description=_optional_str(data, "description"),
            default_value=_lookup(data, "default", "defaultValue", "default_value"),
            validation=ValidationSpec.from_dict(validation) if validation is not None else None,
        )


@dataclass
class ResponseSpec:
    """The declared shape of a command's result."""

    type: str
    properties: dict[str, ArgumentSpec] | None = None
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the serialised form."""
        data: dict[str, Any] = {"type": self.type}
        if self.properties is not None:
            data["properties"] = {
                name: prop.to_dict() for name, prop in self.properties.items()
            }
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ResponseSpec":
        """Build a response description from its serialised form."""
        data = _require_mapping(data, "response")
        properties = data.get("properties")
        return cls(
            type=_str(data, "type", required=True),
            properties=(
                _map_of(properties, "properties", ArgumentSpec.from_dict)
                if properties is not None
                else None
            ),
            description=_optional_str(data, "description"),
        )


@dataclass
class ErrorCodeSpec:
    """An error a command may report, with its HTTP-style status code."""

    code: int
    message: str
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the serialised form."""
        data: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ErrorCodeSpec":
        """Build an error code description from its serialised form."""
        data = _require_mapping(data, "error code")
        code = data.get("code")
        if code is None:
            raise _parse_error("missing field 'code'")
        if isinstance(code, bool) or not isinstance(code, int):
            raise _parse_error("field 'code' must be an integer")
        return cls(
            code=code,
            message=_str(data, "message", required=True),
            description=_optional_str(data, "description"),
        )


@dataclass
class CommandSpec:
    """A command: its description, arguments, result and possible errors."""

    description: str
    response: ResponseSpec
    args: dict[str, ArgumentSpec] = field(default_factory=dict)
    error_codes: dict[str, ErrorCodeSpec] | None = None

    def add_argument(self, name: str, argument: ArgumentSpec) -> None:
        """Add or replace an argument."""
        self.args[name] = argument

    def to_dict(self) -> dict[str, Any]:
        """Return the serialised form."""
        data: dict[str, Any] = {
            "description": self.description,
            "args": {name: arg.to_dict() for name, arg in self.args.items()},
            "response": self.response.to_dict(),
        }
        if self.error_codes is not None:
            data["errorCodes"] = {
                name: spec.to_dict() for name, spec in self.error_codes.items()
            }
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CommandSpec":
        """Build a command from its serialised form."""
        data = _require_mapping(data, "command")
        if data.get("response") is None:
            raise _parse_error("missing field 'response'")
        args = data.get("args")
        error_codes = _lookup(data, "errorCodes", "error_codes")
        return cls(
            description=_str(data, "description", required=False),
            response=ResponseSpec.from_dict(data["response"]),
            args=_map_of(args, "args", ArgumentSpec.from_dict) if args is not None else {},
            error_codes=(
                _map_of(error_codes, "errorCodes", ErrorCodeSpec.from_dict)
                if error_codes is not None
                else None
            ),
        )


@dataclass
class ChannelSpec:
    """A channel and the commands it offers."""

    description: str
    commands: dict[str, CommandSpec] = field(default_factory=dict)

    def add_command(self, name: str, command: CommandSpec) -> None:
        """Add or replace a command."""
        self.commands[name] = command

    def to_dict(self) -> dict[str, Any]:
        """Return the serialised form."""
        return {
            "description": self.description,
            "commands": {name: cmd.to_dict() for name, cmd in self.commands.items()},
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ChannelSpec":
        """Build a channel from its serialised form."""
        data = _require_mapping(data, "channel")
        commands = data.get("commands")
        return cls(
            description=_str(data, "description", required=False),
            commands=(
                _map_of(commands, "commands", CommandSpec.from_dict)
                if commands is not None
                else {}
            ),
        )


@dataclass
class ModelSpec:
    """A named data model with typed properties."""

    properties: dict[str, ArgumentSpec] = field(default_factory=dict)
    required: list[str] | None = None
    description: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Return the serialised form."""
        data: dict[str, Any] = {
            "properties": {name: p.to_dict() for name, p in self.properties.items()}
        }
        if self.required is not None:
            data["required"] = list(self.required)
        if self.description is not None:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ModelSpec":
        """Build a model from its serialised form."""
        data = _require_mapping(data, "model")
        properties = data.get("properties")
        required = data.get("required")
        if required is not None and (
            not isinstance(required, list)
            or not all(isinstance(item, str) for item in required)
        ):
            raise _parse_error("field 'required' must be an array of strings")
        return cls(
            properties=(
                _map_of(properties, "properties", ArgumentSpec.from_dict)
                if properties is not None
                else {}
            ),
            required=list(required) if required is not None else None,
            description=_optional_str(data, "description"),
        )


@dataclass
class Manifest:
    """A versioned set of channels and optional shared models."""

    version: str
    channels: dict[str, ChannelSpec] = field(default_factory=dict)
    models: dict[str, ModelSpec] | None = None

    def add_channel(self, name: str, channel: ChannelSpec) -> None:
        """Add or replace a channel."""
        self.channels[name] = channel

    def to_dict(self) -> dict[str, Any]:
        """Return the serialised form."""
        data: dict[str, Any] = {
            "version": self.version,
            "channels": {name: ch.to_dict() for name, ch in self.channels.items()},
        }
        if self.models is not None:
            data["models"] = {name: m.to_dict() for name, m in self.models.items()}
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Manifest":
        """Build a manifest from its serialised form; raises JSONRPCError if malformed."""
        data = _require_mapping(data, "manifest")
        if data.get("channels") is None:
            raise _parse_error("missing field 'channels'")
        models = data.get("models")
        return cls(
            version=_str(data, "version", required=True),
            channels=_map_of(data["channels"], "channels", ChannelSpec.from_dict),
            models=_map_of(models, "models", ModelSpec.from_dict) if models is not None else None,
        )