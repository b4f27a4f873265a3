"""High-level RTSI I/O: recipe files, a background sync thread and typed accessors."""

from __future__ import annotations

import inspect
import threading
import time
from enum import IntEnum
from pathlib import Path
from typing import Any, Sequence, TypeVar

from elitesdk.datatypes import (
    EliteError,
    ErrorCode,
    JointMode,
    RobotMode,
    SafetyMode,
    TaskStatus,
    ToolDigitalMode,
    ToolDigitalOutputMode,
    ToolMode,
)
from elitesdk.log import LogLevel, log
from elitesdk.recipe import RtsiRecipe
from elitesdk.rtsi_client import DEFAULT_PORT, RtsiClient
from elitesdk.version import VersionInfo

_MIN_PERIOD_MS = 4.0
_MAX_PERIOD_MS = 1000.0
_STARTUP_WAIT_S = 0.01

_E = TypeVar("_E", bound=IntEnum)


def _log(level: LogLevel, fmt: str, *args: object) -> None:
    frame = inspect.currentframe()
    caller = frame.f_back if frame is not None else None
    log(__name__, caller.f_lineno if caller is not None else 0, level, fmt, *args)


def _as_enum(enum_cls: type[_E], value: int) -> _E | int:
    """Return the enum member for value, or the plain int if it names none."""
    try:
        return enum_cls(value)
    except ValueError:
        return value


def _bit(index: int, width_mask: int, level: bool = True) -> int:
    if index < 0:
        raise ValueError(f"bit index must not be negative: {index}")
    return (int(bool(level)) << index) & width_mask


def read_recipe(path: str | Path) -> list[str]:
    """Read a recipe file, one variable name per line."""
    try:
        with open(path, encoding="utf-8") as handle:
            content = handle.read()
    except OSError as exc:
        raise EliteError(
            ErrorCode.FILE_OPEN_FAIL,
            f"Opening file '{path}' failed with error: {exc.strerror or exc}",
        ) from exc
    if not content:
        raise EliteError(ErrorCode.FILE_OPEN_FAIL, f"The recipe '{path}' file is empty exiting ")
    lines = content.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


class RtsiIOInterface:
    """Keeps RTSI input and output recipes in sync with the robot in a background thread."""

    def __init__(
        self,
        output_recipe_file: str | Path,
        input_recipe_file: str | Path,
        frequency: float,
    ) -> None:
        self._output_names = read_recipe(output_recipe_file)
        self._input_names = read_recipe(input_recipe_file)
        self._frequency = float(frequency)
        self.port = DEFAULT_PORT
        self._client = RtsiClient()
        self._input_recipe: RtsiRecipe | None = None
        self._output_recipe: RtsiRecipe | None = None
        self._controller_version = VersionInfo()
        self._input_dirty = threading.Event()
        self._alive = threading.Event()
        self._thread: threading.Thread | None = None

    def __enter__(self) -> "RtsiIOInterface":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()

    def connect(self, ip: str) -> bool:
        """Connect, set up both recipes, start the stream and the sync thread."""
        if self._client.is_connected() or self._thread is not None:
            self.disconnect()

        self._client.connect(ip, self.port)

        if not self._client.negotiate_protocol_version():
            _log(LogLevel.FATAL, "RTSI negitiate protocol version fail.")
            return False

        self._controller_version = self._client.get_controller_version()

        try:
            self._input_recipe = self._client.setup_input_recipe(self._input_names)
            self._output_recipe = self._client.setup_output_recipe(
                self._output_names, self._frequency
            )
            if not self._client.start():
                _log(LogLevel.FATAL, "RTSI start signal send fail.")
                return False
        except EliteError as exc:
            if exc.code is ErrorCode.RTSI_UNKNOWN_VARIABLE_TYPE:
                _log(LogLevel.FATAL, "RTSI setup recipe fail. Check recipe files.")
                self.disconnect()
                return False
            raise

        self._alive.set()
        self._thread = threading.Thread(target=self._recv_loop, name="rtsi-io-sync", daemon=True)
        self._thread.start()
        time.sleep(_STARTUP_WAIT_S)
        return True

    def disconnect(self) -> None:
        """Stop the sync thread and close the connection."""
        thread, self._thread = self._thread, None
        if thread is not None:
            self._alive.clear()
            if thread is not threading.current_thread():
                thread.join()
        self._client.disconnect()

    def get_controller_version(self) -> VersionInfo:
        """Return the controller version read at the last connect."""
        return self._controller_version

    # Inputs

    def _set_input(self, name: str, value: Any) -> bool:
        assert self._input_recipe is not None
        ok = self._input_recipe.set_value(name, value)
        self._input_dirty.set()
        return ok

    def _set_inputs(self, *items: tuple[str, Any]) -> bool:
        if self._input_recipe is None:
            return True
        return all(self._set_input(name, value) for name, value in items)

    def _set_analog_output(self, output_type: int, index: int, level: float) -> bool:
        items: list[tuple[str, Any]] = [("standard_analog_output_type", output_type)]
        if index == 0:
            items += [("standard_analog_output_mask", 1), ("standard_analog_output_0", level)]
        elif index == 1:
            items += [("standard_analog_output_mask", 2), ("standard_analog_output_1", level)]
        else:
            items.append(("standard_analog_output_mask", 0))
        return self._set_inputs(*items)

    def set_speed_scaling(self, slider: float) -> bool:
        return self._set_inputs(("speed_slider_mask", 1), ("speed_slider_fraction", slider))

    def set_standard_digital(self, index: int, level: bool) -> bool:
        return self._set_inputs(
            ("standard_digital_output_mask", _bit(index, 0xFFFF)),
            ("standard_digital_output", _bit(index, 0xFFFF, level)),
        )

    def set_configure_digital(self, index: int, level: bool) -> bool:
        return self._set_inputs(
            ("configurable_digital_output_mask", _bit(index, 0xFF)),
            ("configurable_digital_output", _bit(index, 0xFF, level)),
        )

    def set_analog_output_voltage(self, index: int, value: float) -> bool:
        """Set a standard analog output in voltage mode (0-10 V)."""
        return self._set_analog_output(3, index, value / 10.0)

    def set_analog_output_current(self, index: int, value: float) -> bool:
        """Set a standard analog output in current mode (0.004-0.02 A)."""
        return self._set_analog_output(0, index, (value - 0.004) / (0.02 - 0.004))

    def set_external_force_torque(self, value: Sequence[float]) -> bool:
        return self._set_inputs(("external_force_torque", value))

    def set_tool_digital_output(self, index: int, level: bool) -> bool:
        return self._set_inputs(
            ("tool_digital_output_mask", _bit(index, 0xFF)),
            ("tool_digital_output", _bit(index, 0xFF, level)),
        )

    # Outputs

    def _get(self, name: str, default: Any) -> Any:
        recipe = self._output_recipe
        if recipe is None:
            return default
        try:
            return recipe.get_value(name)
        except KeyError:
            return default

    def timestamp(self) -> float:
        return self._get("timestamp", 0.0)

    def payload_mass(self) -> float:
        return self._get("payload_mass", 0.0)

    def payload_cog(self) -> list[float]:
        return self._get("payload_cog", [0.0] * 3)

    def target_joint_positions(self) -> list[float]:
        return self._get("target_joint_positions", [0.0] * 6)

    def script_control_line(self) -> int:
        return self._get("script_control_line", 0)

    def target_joint_velocity(self) -> list[float]:
        return self._get("target_joint_speeds", [0.0] * 6)

    def actual_joint_positions(self) -> list[float]:
        return self._get("actual_joint_positions", [0.0] * 6)

    def actual_joint_torques(self) -> list[float]:
        return self._get("actual_joint_torques", [0.0] * 6)

    def actual_joint_velocity(self) -> list[float]:
        return self._get("actual_joint_speeds", [0.0] * 6)

    def actual_joint_current(self) -> list[float]:
        return self._get("actual_joint_current", [0.0] * 6)

    def actual_joint_temperatures(self) -> list[float]:
        return self._get("joint_temperatures", [0.0] * 6)

    def actual_tcp_pose(self) -> list[float]:
        return self._get("actual_TCP_pose", [0.0] * 6)

    def actual_tcp_velocity(self) -> list[float]:
        return self._get("actual_TCP_speed", [0.0] * 6)

    def actual_tcp_force(self) -> list[float]:
        return self._get("actual_TCP_force", [0.0] * 6)

    def target_tcp_pose(self) -> list[float]:
        return self._get("target_TCP_pose", [0.0] * 6)

    def target_tcp_velocity(self) -> list[float]:
        return self._get("target_TCP_speed", [0.0] * 6)

    def digital_input_bits(self) -> int:
        return self._get("actual_digital_input_bits", 0)

    def digital_output_bits(self) -> int:
        return self._get("actual_digital_output_bits", 0)

    def robot_mode(self) -> RobotMode | int:
        return _as_enum(RobotMode, self._get("robot_mode", 0))

    def joint_mode(self) -> list[JointMode | int]:
        return [_as_enum(JointMode, mode) for mode in self._get("joint_mode", [0] * 6)]

    def safety_status(self) -> SafetyMode | int:
        return _as_enum(SafetyMode, self._get("safety_status", 0))

    def actual_speed_scaling(self) -> float:
        return self._get("speed_scaling", 0.0)

    def target_speed_scaling(self) -> float:
        return self._get("target_speed_fraction", 0.0)

    def robot_voltage(self) -> float:
        return self._get("actual_robot_voltage", 0.0)

    def robot_current(self) -> float:
        return self._get("actual_robot_current", 0.0)

    def runtime_state(self) -> TaskStatus | int:
        return _as_enum(TaskStatus, self._get("runtime_state", 0))

    def elbow_position(self) -> list[float]:
        return self._get("elbow_position", [0.0] * 3)

    def elbow_velocity(self) -> list[float]:
        return self._get("elbow_velocity", [0.0] * 3)

    def robot_status(self) -> int:
        return self._get("robot_status_bits", 0)

    def safety_status_bits(self) -> int:
        return self._get("safety_status_bits", 0)

    def analog_io_types(self) -> int:
        return self._get("analog_io_types", 0)

    def analog_input(self, index: int) -> float:
        name = "standard_analog_input0" if index == 0 else "standard_analog_input1"
        return self._get(name, 0.0)

    def analog_output(self, index: int) -> float:
        name = "standard_analog_output0" if index == 0 else "standard_analog_output1"
        return self._get(name, 0.0)

    def io_current(self) -> float:
        return self._get("io_current", 0.0)

    def tool_mode(self) -> ToolMode | int:
        return _as_enum(ToolMode, self._get("tool_mode", 0))

    def tool_analog_input_type(self) -> int:
        return self._get("tool_analog_input_types", 0)

    def tool_analog_output_type(self) -> int:
        return self._get("tool_analog_output_types", 0)

    def tool_analog_input(self) -> float:
        return self._get("tool_analog_input", 0.0)

    def tool_analog_output(self) -> float:
        return self._get("tool_analog_output", 0.0)

    def tool_output_voltage(self) -> float:
        return self._get("tool_output_voltage", 0.0)

    def tool_output_current(self) -> float:
        return self._get("tool_output_current", 0.0)

    def tool_output_temperature(self) -> float:
        return self._get("tool_temperature", 0.0)

    def tool_digital_mode(self) -> ToolDigitalMode | int:
        return _as_enum(ToolDigitalMode, self._get("tool_digital_mode", 0))

    def tool_digital_output_mode(self, index: int) -> ToolDigitalOutputMode | int:
        if index not in range(4):
            return ToolDigitalOutputMode.PUSH_PULL_MODE
        return _as_enum(ToolDigitalOutputMode, self._get(f"tool_digital{index}_mode", 0))

    def out_bool_registers_0_to_31(self) -> int:
        return self._get("output_bit_registers0_to_31", 0)

    def out_bool_registers_32_to_63(self) -> int:
        return self._get("output_bit_registers32_to_63", 0)

    def in_bool_registers_0_to_31(self) -> int:
        return self._get("input_bit_registers0_to_31", 0)

    def in_bool_registers_32_to_63(self) -> int:
        return self._get("input_bit_registers32_to_63", 0)

    def in_bool_register(self, index: int) -> bool:
        return self._get(f"input_bit_register{index}", False)

    def out_bool_register(self, index: int) -> bool:
        return self._get(f"output_bit_register{index}", False)

    def in_int_register(self, index: int) -> int:
        return self._get(f"input_int_register{index}", 0)

    def out_int_register(self, index: int) -> int:
        return self._get(f"output_int_register{index}", 0)

    def in_double_register(self, index: int) -> float:
        return self._get(f"input_double_register{index}", 0.0)

    def out_double_register(self, index: int) -> float:
        return self._get(f"output_double_register{index}", 0.0)

    # Sync thread

    def _recv_loop(self) -> None:
        period_ms = 1000.0 / self._frequency if self._frequency > 0 else _MAX_PERIOD_MS
        period_ms = min(max(period_ms, _MIN_PERIOD_MS), _MAX_PERIOD_MS)
        _log(LogLevel.INFO, "RTSI IO interface sync thread start, period %lfms", period_ms)
        while self._alive.is_set():
            try:
                if self._client.is_read_available():
                    if self._input_dirty.is_set() and self._input_recipe is not None:
                        self._input_dirty.clear()
                        self._client.send(self._input_recipe)
                    if self._output_recipe is not None:
                        self._client.receive_data(self._output_recipe, True)
                else:
                    time.sleep(int(period_ms) / 1000)
            except (EliteError, OSError, ValueError):
                self._alive.clear()
        _log(LogLevel.INFO, "RTSI IO interface sync thread dropped")