"""Script command interface: sends one-shot script commands to the robot's control script."""

from __future__ import annotations

from enum import IntEnum
from typing import Sequence

from elitesdk.datatypes import COMMON_ZOOM_RATIO, ForceMode, ToolVoltage
from elitesdk.tcp_server import _RobotChannel

SCRIPT_COMMAND_DATA_SIZE = 26


class _Cmd(IntEnum):
    ZERO_FTSENSOR = 0
    SET_PAYLOAD = 1
    SET_TOOL_VOLTAGE = 2
    START_FORCE_MODE = 3
    END_FORCE_MODE = 4


def _scale(value: float) -> int:
    return int(round(float(value) * COMMON_ZOOM_RATIO))


def _vector(values: Sequence[float], size: int, what: str) -> list:
    items = list(values)
    if len(items) != size:
        raise ValueError(f"{what} needs {size} values, got {len(items)}")
    return items


class ScriptCommandInterface(_RobotChannel):
    """Server the robot's control script connects to; each command is 26 big-endian int32.

    The first word is the command, the rest its arguments, padded with zeros.
    """

    SCRIPT_COMMAND_DATA_SIZE = SCRIPT_COMMAND_DATA_SIZE

    def __init__(self, port: int) -> None:
        super().__init__(port)

    def _send_command(self, cmd: _Cmd, *args: int) -> bool:
        words = [int(cmd), *args]
        words += [0] * (SCRIPT_COMMAND_DATA_SIZE - len(words))
        return self._write_int32(words)

    def zero_ft_sensor(self) -> bool:
        """Zero the force/torque sensor reading at the TCP."""
        return self._send_command(_Cmd.ZERO_FTSENSOR)

    def set_payload(self, mass: float, cog: Sequence[float]) -> bool:
        """Set the payload mass and centre of gravity relative to the flange."""
        cog_values = _vector(cog, 3, "centre of gravity")
        return self._send_command(_Cmd.SET_PAYLOAD, _scale(mass), *(_scale(v) for v in cog_values))

    def set_tool_voltage(self, voltage: ToolVoltage) -> bool:
        """Set the tool supply voltage."""
        return self._send_command(
            _Cmd.SET_TOOL_VOLTAGE, int(ToolVoltage(voltage)) * COMMON_ZOOM_RATIO
        )

    def start_force_mode(
        self,
        reference_frame: Sequence[float],
        selection_vector: Sequence[int],
        wrench: Sequence[float],
        mode: ForceMode,
        limits: Sequence[float],
    ) -> bool:
        """Enable force control mode with the given frame, compliant axes, wrench and limits."""
        frame = [_scale(v) for v in _vector(reference_frame, 6, "reference frame")]
        selection = [int(v) for v in _vector(selection_vector, 6, "selection vector")]
        force = [_scale(v) for v in _vector(wrench, 6, "wrench")]
        speed = [_scale(v) for v in _vector(limits, 6, "limits")]
        return self._send_command(
            _Cmd.START_FORCE_MODE, *frame, *selection, *force, int(ForceMode(mode)), *speed
        )

    def end_force_mode(self) -> bool:
        """Disable force control mode."""
        return self._send_command(_Cmd.END_FORCE_MODE)

    def is_robot_connected(self) -> bool:
        """Return whether the robot is connected."""
        return super().is_robot_connected()

    def close(self) -> None:
        """Stop the server and drop the robot connection."""
        super().close()