# janus-ipc

This package exchanges commands over Unix datagram sockets without a
connection. A command is a JSON object sent to a server socket. When it names a
`reply_to` socket, the server runs the matching handler and sends a JSON
response to that socket.

## Modules

- `janus_ipc.errors`: `JSONRPCErrorCode`, an `IntEnum` of the JSON-RPC 2.0
  codes and the server-defined codes, and `JSONRPCError`, the exception the
  package raises. Responses also carry it in their wire form
  (`to_dict` / `from_dict`).
- `janus_ipc.messages`: `JanusCommand` and `JanusResponse`, the wire
  messages. Both have `to_dict`, `from_dict`, `to_json` and `from_json`. A
  malformed message raises `JSONRPCError` with code `PARSE_ERROR`. Duplicate
  keys count as malformed.
- `janus_ipc.manifest`: dataclasses for a Manifest. These are `Manifest`,
  `ChannelSpec`, `CommandSpec`, `ArgumentSpec`, `ValidationSpec`,
  `ResponseSpec`, `ErrorCodeSpec` and `ModelSpec`, each with `to_dict` and
  `from_dict`.
- `janus_ipc.manifest_parser`: reading and writing Manifests as JSON or YAML
  (`from_json`, `from_yaml`, `from_file`, `to_json`, `to_yaml`, `to_file`).
  It also holds validation (`validate`, `load_and_validate`,
  `load_and_validate_json`, `load_and_validate_yaml`, `validation_summary`,
  `is_valid_version`, `validate_value_type`) and merging
  (`merge_specifications`, `parse_multiple_files`).
- `janus_ipc.timeouts`: `TimeoutManager`, which tracks per-command timeouts on
  the running asyncio loop, including paired `<id>-request` / `<id>-response`
  timeouts. `TimeoutStats` holds the counters. `TimeoutConfig` offers the
  `standard`, `aggressive` and `relaxed` presets. There are also two ready-made
  handlers, `logging_timeout_handler` and `stats_timeout_handler`.
- `janus_ipc.server`: `JanusServer`, an asyncio datagram server, and
  `handle_command`, which routes a single command to a handler and builds the
  `JanusResponse`.

## Installing

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Building and checking a Manifest

```python
from janus_ipc.manifest import (
    Manifest, ChannelSpec, CommandSpec, ResponseSpec, ArgumentSpec, ValidationSpec,
)
from janus_ipc import manifest_parser

manifest = Manifest("1.0.0")
channel = ChannelSpec("Test channel")
command = CommandSpec("Test command", ResponseSpec("object"))
command.add_argument(
    "test_arg",
    ArgumentSpec("string").as_required().with_validation(
        ValidationSpec().with_length_range(1, 100)
    ),
)
channel.add_command("test_cmd", command)
manifest.add_channel("test_channel", channel)

manifest_parser.validate(manifest)          # raises JSONRPCError when invalid
text = manifest_parser.to_json(manifest)
again = manifest_parser.load_and_validate_json(text)
print(manifest_parser.validation_summary(again))
```

`from_file` and `to_file` pick the format from the file extension. `.yaml` or
`.yml` means YAML, and any other extension means JSON.

Validation stops at the first problem and raises `JSONRPCError`. It checks:

- the version is three dot-separated numbers;
- there is at least one channel;
- every channel has a description and at least one command;
- channel and command names contain only letters, digits, `-` and `_`;
- argument and response types are one of `string`, `integer`, `number`,
  `boolean`, `array` and `object`;
- constraints are consistent, regex patterns compile, and enums are not empty;
- default values match their declared type;
- error codes lie between 100 and 599;
- every required field of a model is among its properties.

The built-in command names `ping`, `echo`, `get_info`, `validate`,
`slow_process` and `spec` are reserved. A Manifest that defines one of them
does not pass validation.

`merge_specifications(base, additional)` adds channels and models to `base` in
place. It raises `JSONRPCError` when a name already exists.

## Running a server

```python
import asyncio
from janus_ipc.server import JanusServer

async def main():
    server = JanusServer()
    server.register_handler("greet", lambda cmd: {"hello": (cmd.args or {}).get("name")})
    await server.start_listening("/tmp/janus_demo.sock")
    try:
        await asyncio.sleep(60)
    finally:
        server.stop()

asyncio.run(main())
```

`start_listening` must be awaited inside a running event loop. It removes any
stale socket file, binds the socket and serves from a background task. A bind
failure raises `JSONRPCError` with code `SOCKET_ERROR`. `stop()` ends the task
and removes the socket file. `JanusServer` can also be used as a `with` block,
which calls `stop()` on exit.

A handler receives the `JanusCommand` and returns a JSON-compatible value or an
awaitable of one. If a handler raises, the reply has `success` set to false and
an `INTERNAL_ERROR` error. The server replies only to commands that name a
`reply_to` socket. It logs datagrams it cannot parse and drops them.

When no handler is registered for a command, these built-ins answer:

| command        | result                                                             |
|----------------|--------------------------------------------------------------------|
| `ping`         | `{"pong": true, "timestamp": ...}`                                 |
| `echo`         | `{"echo": <args.message>}`, or a default greeting                  |
| `get_info`     | implementation, version, protocol and timestamp                    |
| `validate`     | whether `args.message` parses as JSON, with the data or the reason |
| `slow_process` | after 2 seconds, `{"processed": true, "delay": "2000ms", ...}`     |
| `spec`         | a fixed Manifest describing the `test` and `test_channel` channels |
| `test_echo`    | `{"echo": <args.message>}`, or `"Hello Server!"`                   |

Any other command gets a `METHOD_NOT_FOUND` error.

## Sending a command

The package has no client. To talk to a server, bind a datagram socket of your
own and send it a `JanusCommand`:

```python
import os
import socket
from janus_ipc.messages import JanusCommand, JanusResponse

reply_path = "/tmp/janus_reply.sock"
with socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM) as sock:
    sock.bind(reply_path)
    try:
        command = JanusCommand("test_channel", "ping", reply_to=reply_path)
        sock.sendto(command.to_json().encode(), "/tmp/janus_demo.sock")
        response = JanusResponse.from_json(sock.recv(64 * 1024))
        print(response.success, response.result)
    finally:
        os.unlink(reply_path)
```

## Timeouts

Durations are in seconds, given as floats.

```python
import asyncio
from janus_ipc.timeouts import TimeoutManager, TimeoutConfig

async def main():
    manager = TimeoutManager()
    result = await manager.execute_with_timeout(
        "cmd-1", 1.0, asyncio.sleep(0.1, result=42)
    )
    print(result, manager.statistics().total_registered)

asyncio.run(main())
TimeoutConfig.standard().validate_timeout(30.0)
```

`execute_with_timeout` raises `JSONRPCError` with code `HANDLER_TIMEOUT` when
the operation does not finish in time.

`TimeoutConfig.validate_timeout` raises `VALIDATION_FAILED` when a value lies
outside `min_timeout` and `max_timeout`.

`start_timeout`, `extend_timeout`, `cancel_timeout`, `start_bilateral_timeout`,
`cancel_bilateral_timeout` and `cancel_all_timeouts` are ordinary methods, but
starting a timeout needs a running event loop.