# elitesdk

A pure-Python client library for Elite collaborative robot controllers. It
depends only on the standard library.

What it covers:

- **RTSI** real-time data exchange: `elitesdk.rtsi_client.RtsiClient` for
  the protocol, `elitesdk.recipe.RtsiRecipe` for recipes, and
  `elitesdk.rtsi_io.RtsiIOInterface` for a background-synchronised I/O view.
- **Primary port**: `elitesdk.primary.PrimaryPort` sends script lines and
  hands robot state sub-packages (such as `KinematicsInfo`) to waiters.
- **External control servers**: the robot's control script connects back to
  these sockets. They are `elitesdk.reverse.ReverseInterface`,
  `elitesdk.trajectory.TrajectoryInterface`,
  `elitesdk.script_command.ScriptCommandInterface` and
  `elitesdk.script_sender.ScriptSender`. All of them are built on
  `elitesdk.tcp_server.TcpServer`.
- **Shared pieces**: enums, zoom ratios and the `EliteError` exception
  (`elitesdk.datatypes`), big-endian packing (`elitesdk.endian`), logging
  (`elitesdk.log`) and `VersionInfo` (`elitesdk.version`).

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## RTSI input and output

A recipe file holds one variable name per line. One file lists outputs,
such as `actual_joint_positions` and `actual_digital_output_bits`. Another
lists inputs, such as `standard_digital_output_mask` and
`standard_digital_output`.

```python
from elitesdk.rtsi_io import RtsiIOInterface

with RtsiIOInterface("output_recipe.txt", "input_recipe.txt", 250) as io:
    if io.connect("192.168.1.10"):
        io.set_standard_digital(0, True)
        print(io.actual_joint_positions())
        print(bin(io.digital_output_bits()))
```

`connect` sets up both recipes and starts the data stream. It then starts a
thread that sends pending input changes and reads the newest output values.
The thread polls with a period of `1000 / frequency` ms, clamped to 4–1000 ms.
The RTSI port is taken from the `port` attribute, which defaults to 30004.

Values behave as follows:

- Getters return zeros until a value has arrived, and also when the variable
  is not in the output recipe.
- Setters return `False` when a variable is not in the input recipe.

`read_recipe(path)` raises `EliteError` with `ErrorCode.FILE_OPEN_FAIL` in two
cases: the file cannot be opened, or it is empty.

For lower-level access, use `RtsiClient` directly:

```python
from elitesdk.rtsi_client import RtsiClient

with RtsiClient() as client:
    client.connect("192.168.1.10", 30004)
    if client.is_connected() and client.negotiate_protocol_version(1):
        print(client.get_controller_version())
        recipe = client.setup_output_recipe(["timestamp", "actual_joint_positions"], 125)
        client.start()
        if client.receive_data(recipe, True):
            print(recipe.get_value("actual_joint_positions"))
```

`connect` does not raise when the connection is refused. It leaves
`is_connected()` false. A read that waits longer than `receive_timeout_ms`
(500 ms by default) drops the connection.

## Primary port

```python
from elitesdk.primary import PrimaryPort, KinematicsInfo

with PrimaryPort() as port:
    if port.connect("192.168.1.10", 30001):
        port.send_script('textmsg("hello")')
        info = KinematicsInfo()
        if port.get_package(info, 500):
            print(info.dh_a, info.dh_d, info.dh_alpha)
```

## External control servers

```python
from elitesdk.reverse import ReverseInterface
from elitesdk.datatypes import ControlMode

with ReverseInterface(50001) as reverse:
    if reverse.is_robot_connected():
        reverse.write_joint_command([0, -1.57, 0, -1.57, 0, 0], ControlMode.MODE_SERVOJ, 100)
```

Every command goes out as big-endian int32 words. Positions and other real
values are scaled by `POS_ZOOM_RATIO` or `COMMON_ZOOM_RATIO` (1 000 000), and
times by `TIME_ZOOM_RATIO` (1 000).

The servers share this behaviour:

- Each one keeps a single robot connection, and a newer connection replaces
  the older one.
- Port 0 picks a free port, which the `port` property reports.
- Each one has a `close()` method.

The individual servers work as follows:

- `TrajectoryInterface.set_motion_result_callback` receives a
  `TrajectoryMotionResult` for each result the robot sends back.
- `ScriptSender(port, program)` answers every `request_program` line with the
  program text.

## Logging

```python
from elitesdk.log import LogLevel, set_log_level

set_log_level(LogLevel.DEBUG)
```

By default, messages are written to stdout as `[LEVEL] file:line: message`.
To send them somewhere else, do one of the following:

- Subclass `LogHandler` and install it with `register_log_handler`.
- Pass a stream to `DefaultLogHandler`.

`unregister_log_handler()` restores the default handler.

## What this package does not do

The package is a library only, and it has no command-line tool. It also
lacks the following:

- A dashboard client, for power, brake or task control.
- A single driver object that opens all the servers together.
- Control script templates. `ScriptSender` serves whatever program text you
  pass it.