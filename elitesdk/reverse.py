"""Reverse interface: streams joint and control commands to the robot script."""

from __future__ import annotations

from typing import Sequence

from elitesdk.datatypes import (
    POS_ZOOM_RATIO,
    ControlMode,
    TrajectoryControlAction,
)
from elitesdk.tcp_server import _RobotChannel

REVERSE_DATA_SIZE = 8


def _scale(value: float, ratio: int) -> int:
    return int(round(float(value) * ratio))


class ReverseInterface(_RobotChannel):
    """Server the robot's control script connects to; each command is 8 big-endian int32.

    Layout: read timeout in ms, six data words, control mode.
    """

    REVERSE_DATA_SIZE = REVERSE_DATA_SIZE

    def __init__(self, port: int) -> None:
        super().__init__(port)

    def write_joint_command(
        self, pos: Sequence[float] | None, mode: ControlMode, timeout_ms: int
    ) -> bool:
        """Send six positions or velocities with a control mode; return False on failure."""
        if pos is None:
            return False
        values = list(pos)
        if len(values) != 6:
            raise ValueError(f"joint command needs 6 values, got {len(values)}")
        words = [int(timeout_ms)]
        words += [_scale(value, POS_ZOOM_RATIO) for value in values]
        words.append(int(ControlMode(mode)))
        return self._write_int32(words)

    def write_trajectory_control_action(
        self, action: TrajectoryControlAction, point_number: int, timeout_ms: int
    ) -> bool:
        """Send a trajectory forwarding action with the number of points to follow."""
        words = [int(timeout_ms), int(TrajectoryControlAction(action)), int(point_number)]
        words += [0] * (REVERSE_DATA_SIZE - len(words) - 1)
        words.append(int(ControlMode.MODE_TRAJECTORY))
        return self._write_int32(words)

    def stop_control(self) -> bool:
        """Tell the robot script to stop and exit."""
        words = [0] * (REVERSE_DATA_SIZE - 1) + [int(ControlMode.MODE_STOPPED)]
        return self._write_int32(words)

    def is_robot_connected(self) -> bool:
        """Return whether the robot is connected."""
        return super().is_robot_connected()

    def close(self) -> None:
        """Stop the server and drop the robot connection."""
        super().close()