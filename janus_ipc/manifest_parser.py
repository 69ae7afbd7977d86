"""Loading, validating, serialising and merging Manifests in JSON and YAML."""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable

import yaml

from .errors import JSONRPCError, JSONRPCErrorCode
from .manifest import (
    ArgumentSpec,
    ChannelSpec,
    CommandSpec,
    ErrorCodeSpec,
    Manifest,
    ModelSpec,
    ResponseSpec,
    ValidationSpec,
)

logger = logging.getLogger(__name__)

RESERVED_COMMANDS = ("ping", "echo", "get_info", "validate", "slow_process", "spec")
VALID_TYPES = ("string", "integer", "number", "boolean", "array", "object")

_LARGE_FILE_BYTES = 10_000_000
_VERSION_PART = re.compile(r"\+?[0-9]+")
_U32_MAX = 2**32 - 1
_I64_MIN = -(2**63)
_I64_MAX = 2**63 - 1


def _context(file_path: str | None) -> str:
    return f" (file: {file_path})" if file_path else ""


def _preview(text: str) -> str:
    return f"{text[:200]}..." if len(text) > 200 else text


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid number literal '{name}'")


def _is_yaml_path(path: str) -> bool:
    return path.endswith(".yaml") or path.endswith(".yml")


def _log_parsed(manifest: Manifest, fmt: str, context: str) -> None:
    logger.info("Successfully parsed Manifest from %s%s", fmt, context)
    logger.debug("Parsed Manifest version: %s", manifest.version)
    logger.debug("Number of channels: %d", len(manifest.channels))


def from_json(text: str, file_path: str | None = None) -> Manifest:
    """Parse a Manifest from JSON text; raises JSONRPCError (PARSE_ERROR) on failure."""
    context = _context(file_path)
    logger.debug("Attempting to parse Manifest from JSON%s (%d bytes)", context, len(text))
    if not text.strip():
        logger.error("Manifest JSON string is empty%s", context)
        raise JSONRPCError(
            JSONRPCErrorCode.PARSE_ERROR,
            f"JSON parsing error{context}: input string is empty",
        )
    logger.debug("JSON content preview%s: %s", context, _preview(text))

    try:
        data = json.loads(text, parse_constant=_reject_constant)
    except json.JSONDecodeError as exc:
        if exc.pos >= len(text.rstrip()):
            details = f"JSON parsing error{context} - Unexpected end of file: {exc.msg}"
        else:
            details = (
                f"JSON parsing error{context} - Syntax error at line {exc.lineno}, "
                f"column {exc.colno}: {exc.msg}"
            )
        logger.error("Failed to parse Manifest from JSON%s: %s", context, exc)
        raise JSONRPCError(JSONRPCErrorCode.PARSE_ERROR, details) from exc
    except ValueError as exc:
        logger.error("Failed to parse Manifest from JSON%s: %s", context, exc)
        raise JSONRPCError(
            JSONRPCErrorCode.PARSE_ERROR, f"JSON parsing error{context} - Syntax error: {exc}"
        ) from exc

    try:
        manifest = Manifest.from_dict(data)
    except JSONRPCError as exc:
        logger.error("JSON data structure error%s: %s", context, exc.details)
        raise JSONRPCError(
            JSONRPCErrorCode.PARSE_ERROR,
            f"JSON parsing error{context} - Invalid data structure: {exc.details}",
        ) from exc

    _log_parsed(manifest, "JSON", context)
    return manifest


def from_yaml(text: str, file_path: str | None = None) -> Manifest:
    """Parse a Manifest from YAML text; raises JSONRPCError (PARSE_ERROR) on failure."""
    context = _context(file_path)
    logger.debug("Attempting to parse Manifest from YAML%s (%d bytes)", context, len(text))
    if not text.strip():
        logger.error("Manifest YAML string is empty%s", context)
        raise JSONRPCError(
            JSONRPCErrorCode.PARSE_ERROR,
            f"YAML parsing error{context}: input string is empty",
        )
    logger.debug("YAML content preview%s: %s", context, _preview(text))

    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        if mark is not None:
            details = (
                f"YAML parsing error{context} - Syntax error at line {mark.line + 1}, "
                f"column {mark.column + 1}: {exc}"
            )
        else:
            details = f"YAML parsing error{context}: {exc}"
        logger.error("Failed to parse Manifest from YAML%s: %s", context, exc)
        raise JSONRPCError(JSONRPCErrorCode.PARSE_ERROR, details) from exc

    try:
        manifest = Manifest.from_dict(data)
    except JSONRPCError as exc:
        logger.error("Failed to parse Manifest from YAML%s: %s", context, exc.details)
        raise JSONRPCError(
            JSONRPCErrorCode.PARSE_ERROR, f"YAML parsing error{context}: {exc.details}"
        ) from exc

    _log_parsed(manifest, "YAML", context)
    return manifest


def from_file(path: str) -> Manifest:
    """Load a Manifest from a file, choosing YAML for .yaml/.yml and JSON otherwise."""
    logger.info("Loading Manifest from file: %s", path)
    if not str(path).strip():
        logger.error("Manifest file path is empty")
        raise JSONRPCError(JSONRPCErrorCode.INVALID_PARAMS, "File path cannot be empty")
    path = str(path)
    file = Path(path)

    try:
        size = file.stat().st_size
    except OSError as exc:
        logger.error("Cannot access Manifest file '%s': %s", path, exc)
        raise JSONRPCError(
            JSONRPCErrorCode.RESOURCE_NOT_FOUND, f"Failed to access file {path}: {exc}"
        ) from exc
    logger.debug("File found: %s (%d bytes)", path, size)
    if size == 0:
        logger.warning("Manifest file is empty: %s", path)
    if size > _LARGE_FILE_BYTES:
        logger.warning("Manifest file is very large (%d bytes): %s", size, path)

    try:
        content = file.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        logger.error("Failed to read Manifest file '%s': %s", path, exc)
        raise JSONRPCError(
            JSONRPCErrorCode.RESOURCE_NOT_FOUND, f"Failed to read file {path}: {exc}"
        ) from exc

    if _is_yaml_path(path):
        logger.info("Detected YAML format for file: %s", path)
        manifest = from_yaml(content, path)
    else:
        if not path.endswith(".json"):
            logger.info("Unknown file extension for %s, defaulting to JSON format", path)
        manifest = from_json(content, path)

    logger.info("Successfully loaded Manifest from %s", path)
    return manifest


def to_json(manifest: Manifest) -> str:
    """Serialise a Manifest to pretty-printed JSON."""
    try:
        return json.dumps(manifest.to_dict(), indent=2, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError) as exc:
        logger.error("Failed to serialize Manifest to JSON: %s", exc)
        raise JSONRPCError(
            JSONRPCErrorCode.INTERNAL_ERROR, f"JSON serialization error: {exc}"
        ) from exc


def to_yaml(manifest: Manifest) -> str:
    """Serialise a Manifest to YAML."""
    try:
        return yaml.safe_dump(manifest.to_dict(), sort_keys=False, allow_unicode=True)
    except yaml.YAMLError as exc:
        logger.error("Failed to serialize Manifest to YAML: %s", exc)
        raise JSONRPCError(
            JSONRPCErrorCode.INTERNAL_ERROR, f"YAML serialization error: {exc}"
        ) from exc


def to_file(manifest: Manifest, path: str) -> None:
    """Write a Manifest to a file, YAML for .yaml/.yml and JSON otherwise."""
    path = str(path)
    content = to_yaml(manifest) if _is_yaml_path(path) else to_json(manifest)
    try:
        Path(path).write_text(content, encoding="utf-8")
    except OSError as exc:
        raise JSONRPCError(
            JSONRPCErrorCode.RESOURCE_NOT_FOUND, f"Failed to write file {path}: {exc}"
        ) from exc


def is_valid_version(version: str) -> bool:
    """True if the version has exactly three dot-separated unsigned numbers."""
    parts = version.split(".")
    if len(parts) != 3:
        return False
    return all(
        _VERSION_PART.fullmatch(part) is not None and int(part) <= _U32_MAX
        for part in parts
    )


def _is_valid_name(name: str) -> bool:
    return all(c.isalnum() or c in "-_" for c in name)


def _value_type_name(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    return "object"


def validate_value_type(
    arg_name: str, value: Any, expected_type: str, file_path: str | None = None
) -> None:
    """Raise JSONRPCError (INVALID_PARAMS) unless the value has the expected type."""
    is_number = isinstance(value, (int, float)) and not isinstance(value, bool)
    checks = {
        "string": lambda: isinstance(value, str),
        "integer": lambda: isinstance(value, int)
        and not isinstance(value, bool)
        and _I64_MIN <= value <= _I64_MAX,
        "number": lambda: is_number,
        "boolean": lambda: isinstance(value, bool),
        "array": lambda: isinstance(value, list),
        "object": lambda: isinstance(value, dict),
    }
    check = checks.get(expected_type)
    if check is None or not check():
        raise JSONRPCError(
            JSONRPCErrorCode.INVALID_PARAMS,
            f"Value type mismatch: expected {expected_type}, "
            f"got {_value_type_name(value)}{_context(file_path)}",
        )


def _validate_validation_spec(spec: ValidationSpec, file_path: str | None) -> None:
    context = _context(file_path)
    if spec.minimum is not None and spec.maximum is not None and spec.minimum > spec.maximum:
        raise JSONRPCError(
            JSONRPCErrorCode.INVALID_PARAMS,
            f"Minimum value cannot be greater than maximum value{context}",
        )
    if (
        spec.min_length is not None
        and spec.max_length is not None
        and spec.min_length > spec.max_length
    ):
        raise JSONRPCError(
            JSONRPCErrorCode.INVALID_PARAMS,
            f"Minimum length cannot be greater than maximum length{context}",
        )
    if spec.pattern is not None:
        try:
            re.compile(spec.pattern)
        except re.error as exc:
            raise JSONRPCError(
                JSONRPCErrorCode.INVALID_PARAMS, f"Invalid regex pattern: {exc}{context}"
            ) from exc
    if spec.enum is not None and not spec.enum:
        raise JSONRPCError(
            JSONRPCErrorCode.INVALID_PARAMS, f"Enum values cannot be empty{context}"
        )


def _validate_argument(name: str, spec: ArgumentSpec, file_path: str | None) -> None:
    context = _context(file_path)
    if not name:
        raise JSONRPCError(
            JSONRPCErrorCode.INVALID_PARAMS, f"Argument name cannot be empty{context}"
        )
    if spec.type not in VALID_TYPES:
        raise JSONRPCError(
            JSONRPCErrorCode.INVALID_PARAMS, f"Invalid argument type: {spec.type}{context}"
        )
    if spec.validation is not None:
        _validate_validation_spec(spec.validation, file_path)
    if spec.default_value is not None:
        validate_value_type(name, spec.default_value, spec.type, file_path)


def _validate_response(spec: ResponseSpec, file_path: str | None) -> None:
    if spec.type not in VALID_TYPES:
        raise JSONRPCError(
            JSONRPCErrorCode.VALIDATION_FAILED,
            f"Invalid response type: {spec.type}{_context(file_path)}",
        )
    if spec.type == "object" and spec.properties is not None:
        for prop_name, prop in spec.properties.items():
            _validate_argument(prop_name, prop, file_path)


def _validate_error_code(name: str, spec: ErrorCodeSpec, file_path: str | None) -> None:
    context = _context(file_path)
    if not name:
        raise JSONRPCError(
            JSONRPCErrorCode.VALIDATION_FAILED, f"Error code name cannot be empty{context}"
        )
    if not spec.message:
        raise JSONRPCError(
            JSONRPCErrorCode.VALIDATION_FAILED,
            f"Error code '{name}' must have a message{context}",
        )
    if not 100 <= spec.code <= 599:
        raise JSONRPCError(
            JSONRPCErrorCode.VALIDATION_FAILED,
            f"Invalid HTTP status code: {spec.code}{context}",
        )


def _validate_command(
    channel_name: str, name: str, spec: CommandSpec, file_path: str | None
) -> None:
    context = _context(file_path)
    if not name:
        raise JSONRPCError(
            JSONRPCErrorCode.METHOD_NOT_FOUND, f"Command name cannot be empty{context}"
        )
    if not _is_valid_name(name):
        raise JSONRPCError(
            JSONRPCErrorCode.METHOD_NOT_FOUND, f"Invalid command name format: {name}{context}"
        )
    if name in RESERVED_COMMANDS:
        logger.error(
            "Command validation failed%s: '%s' is a reserved built-in command", context, name
        )
        raise JSONRPCError(
            JSONRPCErrorCode.METHOD_NOT_FOUND,
            f"Command '{name}' is reserved and cannot be defined in Manifest{context}. "
            f"Reserved commands: {', '.join(RESERVED_COMMANDS)}",
        )
    if not spec.description:
        raise JSONRPCError(
            JSONRPCErrorCode.METHOD_NOT_FOUND,
            f"Command '{name}' in channel '{channel_name}' must have a description{context}",
        )
    for arg_name, arg in spec.args.items():
        _validate_argument(arg_name, arg, file_path)
    _validate_response(spec.response, file_path)
    if spec.error_codes is not None:
        for error_name, error_spec in spec.error_codes.items():
            _validate_error_code(error_name, error_spec, file_path)


def _validate_channel(name: str, spec: ChannelSpec, file_path: str | None) -> None:
    context = _context(file_path)
    if not name:
        raise JSONRPCError(
            JSONRPCErrorCode.INVALID_REQUEST, f"Channel name cannot be empty{context}"
        )
    if not _is_valid_name(name):
        raise JSONRPCError(
            JSONRPCErrorCode.INVALID_REQUEST, f"Invalid channel name format: {name}{context}"
        )
    if not spec.description:
        raise JSONRPCError(
            JSONRPCErrorCode.INVALID_REQUEST,
            f"Channel '{name}' must have a description{context}",
        )
    if not spec.commands:
        raise JSONRPCError(
            JSONRPCErrorCode.INVALID_REQUEST,
            f"Channel '{name}' must define at least one command{context}",
        )
    for command_name, command in spec.commands.items():
        _validate_command(name, command_name, command, file_path)


def _validate_model(name: str, spec: ModelSpec, file_path: str | None) -> None:
    context = _context(file_path)
    if not name:
        raise JSONRPCError(
            JSONRPCErrorCode.VALIDATION_FAILED, f"Model name cannot be empty{context}"
        )
    for prop_name, prop in spec.properties.items():
        _validate_argument(prop_name, prop, file_path)
    for required_field in spec.required or ():
        if required_field not in spec.properties:
            raise JSONRPCError(
                JSONRPCErrorCode.VALIDATION_FAILED,
                f"Required field '{required_field}' not found in model '{name}'{context}",
            )


def validate(manifest: Manifest, file_path: str | None = None) -> None:
    """Check a Manifest's structure and content; raises JSONRPCError on the first problem."""
    context = _context(file_path)
    logger.info("Starting Manifest validation%s", context)

    if not manifest.version:
        raise JSONRPCError(
            JSONRPCErrorCode.VALIDATION_FAILED, f"Manifest version is required{context}"
        )
    if not is_valid_version(manifest.version):
        raise JSONRPCError(
            JSONRPCErrorCode.VALIDATION_FAILED,
            f"Invalid version format: {manifest.version}{context}",
        )
    if not manifest.channels:
        raise JSONRPCError(
            JSONRPCErrorCode.VALIDATION_FAILED,
            f"Manifest must define at least one channel{context}",
        )

    for channel_name, channel in manifest.channels.items():
        try:
            _validate_channel(channel_name, channel, file_path)
        except JSONRPCError as exc:
            logger.error(
                "Channel validation failed for '%s'%s: %s", channel_name, context, exc
            )
            raise

    for model_name, model in (manifest.models or {}).items():
        try:
            _validate_model(model_name, model, file_path)
        except JSONRPCError as exc:
            logger.error("Model validation failed for '%s'%s: %s", model_name, context, exc)
            raise

    logger.info(
        "Validated%s: version %s, %d channels, %d models",
        context,
        manifest.version,
        len(manifest.channels),
        len(manifest.models or {}),
    )


def load_and_validate(path: str) -> Manifest:
    """Load a Manifest from a file and validate it."""
    manifest = from_file(path)
    validate(manifest, str(path))
    logger.info("Successfully loaded and validated Manifest from: %s", path)
    return manifest


def load_and_validate_json(text: str, file_path: str | None = None) -> Manifest:
    """Parse a Manifest from JSON text and validate it."""
    manifest = from_json(text, file_path)
    validate(manifest, file_path)
    return manifest


def load_and_validate_yaml(text: str, file_path: str | None = None) -> Manifest:
    """Parse a Manifest from YAML text and validate it."""
    manifest = from_yaml(text, file_path)
    validate(manifest, file_path)
    return manifest


def validation_summary(manifest: Manifest) -> str:
    """A human-readable list of the problems found in a Manifest."""
    issues: list[str] = []

    if not manifest.version:
        issues.append("• Missing version")
    elif not is_valid_version(manifest.version):
        issues.append(f"• Invalid version format: {manifest.version}")

    if not manifest.channels:
        issues.append("• No channels defined")
    for channel_name, channel in manifest.channels.items():
        if not channel_name:
            issues.append("• Empty channel name found")
        if not channel.description:
            issues.append(f"• Channel '{channel_name}' missing description")
        if not channel.commands:
            issues.append(f"• Channel '{channel_name}' has no commands")

    for model_name, model in (manifest.models or {}).items():
        if not model_name:
            issues.append("• Empty model name found")
        if not model.properties:
            issues.append(f"• Model '{model_name}' has no properties")

    if not issues:
        return "Manifest appears to be valid"
    return "Manifest issues found:\n" + "\n".join(issues)


def merge_specifications(base: Manifest, additional: Manifest) -> None:
    """Add the channels and models of another Manifest to the base one, in place."""
    for channel_id, channel in additional.channels.items():
        if channel_id in base.channels:
            raise JSONRPCError(
                JSONRPCErrorCode.INVALID_REQUEST,
                f"Channel '{channel_id}' already exists in base specification",
            )
        base.channels[channel_id] = channel

    if additional.models is not None:
        if base.models is None:
            base.models = {}
        for model_name, model in additional.models.items():
            if model_name in base.models:
                raise JSONRPCError(
                    JSONRPCErrorCode.VALIDATION_FAILED,
                    f"Model '{model_name}' already exists in base specification",
                )
            base.models[model_name] = model


def parse_multiple_files(paths: Iterable[str]) -> Manifest:
    """Load several Manifest files, merge them into the first and validate the result."""
    paths = [str(p) for p in paths]
    if not paths:
        raise JSONRPCError(JSONRPCErrorCode.RESOURCE_NOT_FOUND, "No files provided")

    logger.info("Parsing %d Manifest files", len(paths))
    base, *rest = paths
    merged = from_file(base)
    for path in rest:
        logger.info("Merging specification from: %s", path)
        merge_specifications(merged, from_file(path))
    validate(merged)
    return merged