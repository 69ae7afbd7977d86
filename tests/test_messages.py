import json

import pytest

from janus_ipc.errors import JSONRPCError, JSONRPCErrorCode
from janus_ipc.messages import JanusCommand, JanusResponse


def _round_trip(command):
    return JanusCommand.from_json(command.to_json())


def test_null_values():
    cmd = JanusCommand("test", "echo", {"null_value": None})
    parsed = _round_trip(cmd)
    assert "null_value" in parsed.args
    assert parsed.args["null_value"] is None


def test_deeply_nested_structures():
    nested = {"level1": {"level2": {"level3": {"level4": {"data": "deeply nested value"}}}}}
    parsed = _round_trip(JanusCommand("test", "process_nested", {"nested": nested}))
    assert parsed.args is not None
    data = parsed.args["nested"]["level1"]["level2"]["level3"]["level4"]["data"]
    assert data == "deeply nested value"


def test_large_string_values():
    large = "x" * 10000
    parsed = _round_trip(JanusCommand("test", "process_large", {"large_data": large}))
    value = parsed.args["large_data"]
    assert len(value) == 10000
    assert value == large


@pytest.mark.parametrize(
    "text",
    ["🚀", "你好", "مرحبا", "🇺🇸🇯🇵", "©®™", "\u200b", "\n\t\r"],
)
def test_special_unicode_characters(text):
    parsed = _round_trip(JanusCommand("test", "unicode_test", {"unicode": text}))
    assert parsed.args["unicode"] == text


def test_array_with_mixed_types():
    mixed = [42, "string", True, None, {"nested": "object"}, [1, 2, 3]]
    parsed = _round_trip(JanusCommand("test", "mixed_array", {"mixed": mixed}))
    values = parsed.args["mixed"]
    assert len(values) == 6
    assert values[0] == 42
    assert values[1] == "string"
    assert values[2] is True
    assert values[3] is None


def test_empty_values_handling():
    args = {"empty_string": "", "empty_array": [], "empty_object": {}}
    parsed = _round_trip(JanusCommand("test", "empty_test", args))
    assert parsed.args["empty_string"] == ""
    assert len(parsed.args["empty_array"]) == 0
    assert len(parsed.args["empty_object"]) == 0


def test_numeric_edge_cases():
    max_int = 2**63 - 1
    min_int = -(2**63)
    args = {"max_int": max_int, "min_int": min_int, "zero": 0, "float": 3.14159}
    parsed = _round_trip(JanusCommand("test", "numeric_test", args))
    assert parsed.args["max_int"] == max_int
    assert parsed.args["min_int"] == min_int
    assert parsed.args["zero"] == 0
    assert abs(parsed.args["float"] - 3.14159) < 1e-6


@pytest.mark.parametrize(
    "malformed",
    [
        '{"incomplete": ',
        '{"duplicate": 1, "duplicate": 2}',
        '{"trailing": "comma",}',
        '{"unescaped": "quote"inside"}',
    ],
)
def test_malformed_json(malformed):
    with pytest.raises(JSONRPCError) as info:
        JanusCommand.from_json(malformed)
    assert info.value.code is JSONRPCErrorCode.PARSE_ERROR


@pytest.mark.parametrize(
    "name",
    [
        "",
        " ",
        "command-with-hyphens",
        "command_with_underscores",
        "CommandWithCamelCase",
        "123numeric_start",
        "very_long_command_name_that_exceeds_typical_lengths_and_tests_boundary_conditions",
    ],
)
def test_command_name_edge_cases(name):
    parsed = _round_trip(JanusCommand("test", name))
    assert parsed.command == name


def test_command_wire_field_names():
    cmd = JanusCommand("chan", "ping", reply_to="/tmp/reply.sock")
    data = json.loads(cmd.to_json())
    assert data["channelId"] == "chan"
    assert data["command"] == "ping"
    assert data["reply_to"] == "/tmp/reply.sock"
    assert data["id"] == cmd.id
    assert "args" not in data


def test_command_full_round_trip():
    cmd = JanusCommand("chan", "echo", {"message": "hi"}, timeout=5.0, reply_to="/tmp/r.sock")
    assert _round_trip(cmd) == cmd


def test_commands_get_distinct_ids():
    assert JanusCommand("c", "ping").id != JanusCommand("c", "ping").id or False
    assert len({JanusCommand("c", "ping").id for _ in range(20)}) == 20


def test_command_missing_field():
    with pytest.raises(JSONRPCError) as info:
        JanusCommand.from_dict({"id": "1", "command": "ping", "timestamp": 1.0})
    assert info.value.code is JSONRPCErrorCode.PARSE_ERROR


def test_command_args_must_be_object():
    with pytest.raises(JSONRPCError):
        JanusCommand.from_dict(
            {"id": "1", "channelId": "c", "command": "ping", "args": [1], "timestamp": 1.0}
        )


def test_command_from_bytes():
    cmd = JanusCommand("chan", "ping")
    assert JanusCommand.from_json(cmd.to_json().encode("utf-8")) == cmd


def test_success_response():
    cmd = JanusCommand("chan", "ping")
    resp = JanusResponse.success_for(cmd, {"pong": True})
    assert resp.success is True
    assert resp.command_id == cmd.id
    assert resp.channel_id == "chan"
    assert resp.result == {"pong": True}
    assert resp.error is None


def test_error_response_round_trip():
    cmd = JanusCommand("chan", "unknown_command")
    err = JSONRPCError(JSONRPCErrorCode.METHOD_NOT_FOUND, "Command 'unknown_command' not registered")
    resp = JanusResponse.error_for(cmd, err)
    parsed = JanusResponse.from_json(resp.to_json())
    assert parsed == resp
    assert parsed.success is False
    assert parsed.error.code is JSONRPCErrorCode.METHOD_NOT_FOUND
    assert "not registered" in str(parsed.error)


def test_response_wire_field_names():
    cmd = JanusCommand("chan", "ping")
    data = JanusResponse.success_for(cmd, {"echo": "x"}).to_dict()
    assert data["commandId"] == cmd.id
    assert data["channelId"] == "chan"
    assert data["success"] is True
    assert "error" not in data


def test_response_success_must_be_bool():
    with pytest.raises(JSONRPCError):
        JanusResponse.from_dict(
            {"commandId": "1", "channelId": "c", "success": "yes", "timestamp": 1.0}
        )


def test_response_invalid_error():
    with pytest.raises(JSONRPCError) as info:
        JanusResponse.from_dict(
            {
                "commandId": "1",
                "channelId": "c",
                "success": False,
                "error": {"code": 7},
                "timestamp": 1.0,
            }
        )
    assert info.value.code is JSONRPCErrorCode.PARSE_ERROR