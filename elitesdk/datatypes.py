"""Robot state enumerations, control constants and the SDK error type."""

from __future__ import annotations

from enum import Enum, IntEnum, auto

POS_ZOOM_RATIO = 1_000_000
COMMON_ZOOM_RATIO = 1_000_000
TIME_ZOOM_RATIO = 1_000


class RobotMode(IntEnum):
    """Overall mode of the robot."""

    UNKNOWN = -2
    NO_CONTROLLER = -1
    DISCONNECTED = 0
    CONFIRM_SAFETY = 1
    BOOTING = 2
    POWER_OFF = 3
    POWER_ON = 4
    IDLE = 5
    BACKDRIVE = 6
    RUNNING = 7
    UPDATING_FIRMWARE = 8
    WAITING_CALIBRATION = 9


class JointMode(IntEnum):
    """Mode of a single joint."""

    MODE_RESET = 235
    MODE_SHUTTING_DOWN = 236
    MODE_BACKDRIVE = 238
    MODE_POWER_OFF = 239
    MODE_READY_FOR_POWEROFF = 240
    MODE_NOT_RESPONDING = 245
    MODE_MOTOR_INITIALISATION = 246
    MODE_BOOTING = 247
    MODE_BOOTLOADER = 249
    MODE_VIOLATION = 251
    MODE_FAULT = 252
    MODE_RUNNING = 253
    MODE_IDLE = 255


class SafetyMode(IntEnum):
    """Safety state reported by the controller."""

    UNKNOWN = -2
    NORMAL = 1
    REDUCED = 2
    PROTECTIVE_STOP = 3
    RECOVERY = 4
    SAFEGUARD_STOP = 5
    SYSTEM_EMERGENCY_STOP = 6
    ROBOT_EMERGENCY_STOP = 7
    VIOLATION = 8
    FAULT = 9
    VALIDATE_JOINT_ID = 10
    UNDEFINED_SAFETY_MODE = 11
    AUTOMATIC_MODE_SAFEGUARD_STOP = 12
    SYSTEM_THREE_POSITION_ENABLING_STOP = 13
    TP_THREE_POSITION_ENABLING_STOP = 14


class ToolMode(IntEnum):
    """Mode of the tool board."""

    MODE_RESET = 235
    MODE_SHUTTING_DOWN = 236
    MODE_POWER_OFF = 239
    MODE_NOT_RESPONDING = 245
    MODE_BOOTING = 247
    MODE_BOOTLOADER = 249
    MODE_FAULT = 252
    MODE_RUNNING = 253
    MODE_IDLE = 255


class ToolDigitalMode(IntEnum):
    """Needle configuration of the tool digital connector."""

    SINGLE_NEEDLE = 0
    DOUBLE_NEEDLE_1 = 1
    DOUBLE_NEEDLE_2 = 2
    TRIPLE_NEEDLE = 3


class ToolDigitalOutputMode(IntEnum):
    """Electrical mode of a tool digital output."""

    PUSH_PULL_MODE = 0
    SOURCING_PNP_MODE = 1
    SINKING_NPN_MODE = 2


class TaskStatus(IntEnum):
    """Runtime state of the robot task."""

    UNKNOWN = 0
    PLAYING = 1
    PAUSED = 2
    STOPPED = 3


class TrajectoryMotionResult(IntEnum):
    """Result of a forwarded trajectory."""

    SUCCESS = 0
    CANCELED = 1
    FAILURE = 2


class TrajectoryControlAction(IntEnum):
    """Control action in trajectory forwarding mode."""

    CANCEL = -1
    NOOP = 0
    START = 1


class ToolVoltage(IntEnum):
    """Tool supply voltage in volts."""

    OFF = 0
    V_12 = 12
    V_24 = 24


class ForceMode(IntEnum):
    """How the force frame is derived in force control mode."""

    FIX = 0
    POINT = 1
    MOTION = 2
    TCP = 3


class ControlMode(IntEnum):
    """Control mode sent to the external control script."""

    MODE_STOPPED = -2
    MODE_UNINITIALIZED = -1
    MODE_IDLE = 0
    MODE_SERVOJ = 1
    MODE_SPEEDJ = 2
    MODE_TRAJECTORY = 3
    MODE_SPEEDL = 4
    MODE_POSE = 5
    MODE_FREEDRIVE = 6
    MODE_TOOL_IN_CONTACT = 7


class ErrorCode(Enum):
    """Kinds of failure raised as EliteError."""

    SOCKET_CONNECT_FAIL = auto()
    SOCKET_FAIL = auto()
    SOCKET_OPT_CANCEL = auto()
    FILE_OPEN_FAIL = auto()
    RTSI_UNKNOWN_VARIABLE_TYPE = auto()
    RTSI_RECIPE_PARSER_FAIL = auto()


class EliteError(Exception):
    """Error raised by the SDK, carrying an ErrorCode."""

    def __init__(self, code: ErrorCode, message: str = "") -> None:
        self.code = ErrorCode(code)
        self.message = message
        super().__init__(f"{self.code.name}: {message}" if message else self.code.name)