"""Trajectory interface: forwards trajectory points and reports motion results."""

from __future__ import annotations

import inspect
import threading
from enum import IntEnum
from typing import Callable, Sequence

from elitesdk.datatypes import POS_ZOOM_RATIO, TIME_ZOOM_RATIO, TrajectoryMotionResult
from elitesdk.endian import unpack
from elitesdk.log import LogLevel, log
from elitesdk.tcp_server import _RobotChannel

TRAJECTORY_MESSAGE_LEN = 21
_RESULT_SIZE = 4

MotionResultCallback = Callable[[TrajectoryMotionResult], None]


def _log(level: LogLevel, fmt: str, *args: object) -> None:
    frame = inspect.currentframe()
    caller = frame.f_back if frame is not None else None
    log(__name__, caller.f_lineno if caller is not None else 0, level, fmt, *args)


def _scale(value: float, ratio: int) -> int:
    return int(round(float(value) * ratio))


class TrajectoryMotionType(IntEnum):
    """How the robot moves to a trajectory point."""

    JOINT = 0
    CARTESIAN = 1
    SPLINE = 2


class TrajectoryInterface(_RobotChannel):
    """Server for trajectory points; each point is 21 big-endian int32.

    Layout: six positions, twelve reserved words, time, blend radius, motion type.
    The robot answers a finished trajectory with one big-endian int32 result.
    """

    TRAJECTORY_MESSAGE_LEN = TRAJECTORY_MESSAGE_LEN

    def __init__(self, port: int) -> None:
        self._callback: MotionResultCallback | None = None
        self._pending = bytearray()
        self._pending_lock = threading.Lock()
        super().__init__(port)

    def set_motion_result_callback(self, callback: MotionResultCallback | None) -> None:
        """Set the function called when the robot finishes a trajectory."""
        self._callback = callback

    def write_trajectory_point(
        self, positions: Sequence[float], time: float, blend_radius: float, cartesian: bool
    ) -> bool:
        """Send one trajectory point; return False on failure."""
        values = list(positions)
        if len(values) != 6:
            raise ValueError(f"trajectory point needs 6 values, got {len(values)}")
        words = [_scale(value, POS_ZOOM_RATIO) for value in values]
        words += [0] * 12
        words.append(_scale(time, TIME_ZOOM_RATIO))
        words.append(_scale(blend_radius, POS_ZOOM_RATIO))
        motion = TrajectoryMotionType.CARTESIAN if cartesian else TrajectoryMotionType.JOINT
        words.append(int(motion))
        return self._write_int32(words)

    def is_robot_connected(self) -> bool:
        """Return whether the robot is connected."""
        return super().is_robot_connected()

    def close(self) -> None:
        """Stop the server and drop the robot connection."""
        super().close()

    def _handle_data(self, data: bytes) -> None:
        results: list[int] = []
        with self._pending_lock:
            self._pending += data
            while len(self._pending) >= _RESULT_SIZE:
                value, _ = unpack("i", bytes(self._pending[:_RESULT_SIZE]), 0)
                del self._pending[:_RESULT_SIZE]
                results.append(value)
        for value in results:
            try:
                result = TrajectoryMotionResult(value)
            except ValueError:
                _log(LogLevel.WARN, "Unknown trajectory motion result: %d", value)
                continue
            callback = self._callback
            if callback is not None:
                callback(result)

    def _reset_receive_state(self) -> None:
        with self._pending_lock:
            self._pending.clear()