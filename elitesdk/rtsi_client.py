"""Client for the RTSI real-time data exchange interface."""

from __future__ import annotations

import ipaddress
import select
import socket
from enum import Enum, IntEnum
from typing import Iterable, Sequence

from elitesdk.datatypes import EliteError, ErrorCode
from elitesdk.endian import pack, unpack, unpack_array
from elitesdk.recipe import RtsiRecipe
from elitesdk.version import VersionInfo

HEADER_SIZE = 3
DEFAULT_PORT = 30004
DEFAULT_PROTOCOL_VERSION = 1
DEFAULT_RECEIVE_TIMEOUT_MS = 500
_RECV_CHUNK = 4096
_STATUS_INDEX = 3
_MAX_MESSAGE_LEN = 0xFFFF


class PackageType(IntEnum):
    """Message type byte of an RTSI package."""

    REQUEST_PROTOCOL_VERSION = 86
    GET_ELITE_CONTROL_VERSION = 118
    TEXT_MESSAGE = 77
    DATA_PACKAGE = 85
    CONTROL_PACKAGE_SETUP_OUTPUTS = 79
    CONTROL_PACKAGE_SETUP_INPUTS = 73
    CONTROL_PACKAGE_START = 83
    CONTROL_PACKAGE_PAUSE = 80


class ConnectionState(Enum):
    """Where the client is in the RTSI session."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    STARTED = "started"
    STOPPED = "stopped"


def build_message(package_type: PackageType, payload: bytes = b"") -> bytes:
    """Frame a payload with the 3-byte RTSI header: big-endian length and type."""
    payload = bytes(payload)
    length = HEADER_SIZE + len(payload)
    if length > _MAX_MESSAGE_LEN:
        raise ValueError(f"RTSI message too long: {length} bytes")
    return pack("H", length) + bytes([int(package_type)]) + payload


def _recipe_payload(names: Sequence[str]) -> bytes:
    if not names:
        raise ValueError("recipe must name at least one variable")
    return ",".join(names).encode("ascii")


class RtsiClient:
    """Synchronous RTSI client: setup, start/pause and data exchange."""

    def __init__(self) -> None:
        self.receive_timeout_ms = DEFAULT_RECEIVE_TIMEOUT_MS
        self._socket: socket.socket | None = None
        self._buffer = bytearray()
        self._state = ConnectionState.DISCONNECTED

    def __enter__(self) -> "RtsiClient":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()

    @property
    def state(self) -> ConnectionState:
        return self._state

    def connect(self, ip: str, port: int = DEFAULT_PORT) -> None:
        """Open the TCP connection; the state stays disconnected if it is refused."""
        self._buffer.clear()
        self._socket_disconnect()
        try:
            address = str(ipaddress.IPv4Address(ip))
        except ValueError as exc:
            raise EliteError(ErrorCode.SOCKET_CONNECT_FAIL, str(exc)) from exc
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.connect((address, port))
        except OverflowError as exc:
            sock.close()
            raise EliteError(ErrorCode.SOCKET_CONNECT_FAIL, str(exc)) from exc
        except OSError:
            sock.close()
            return
        self._socket = sock
        self._state = ConnectionState.CONNECTED

    def disconnect(self) -> None:
        """Pause the data stream if it runs, then close the connection."""
        if self._state is ConnectionState.STARTED:
            try:
                self.pause()
            except EliteError:
                pass
        self._socket_disconnect()

    def negotiate_protocol_version(self, version: int = DEFAULT_PROTOCOL_VERSION) -> bool:
        """Ask the controller to use a protocol version; return whether it accepted."""
        self._send_all(PackageType.REQUEST_PROTOCOL_VERSION, pack("H", version))
        accepted = False
        for package in self._receive(PackageType.REQUEST_PROTOCOL_VERSION):
            accepted = len(package) > _STATUS_INDEX and bool(package[_STATUS_INDEX])
        return accepted

    def get_controller_version(self) -> VersionInfo:
        """Return the controller software version (zeros if no reply came)."""
        self._send_all(PackageType.GET_ELITE_CONTROL_VERSION)
        version = VersionInfo()
        for package in self._receive(PackageType.GET_ELITE_CONTROL_VERSION):
            try:
                parts, _ = unpack_array("I", package, HEADER_SIZE, 4)
            except ValueError as exc:
                raise EliteError(ErrorCode.SOCKET_FAIL, str(exc)) from exc
            version = VersionInfo(*parts)
        return version

    def setup_output_recipe(self, names: Iterable[str], frequency: float) -> RtsiRecipe:
        """Subscribe to output variables at the given frequency."""
        names = list(names)
        self._send_all(
            PackageType.CONTROL_PACKAGE_SETUP_OUTPUTS,
            pack("d", float(frequency)) + _recipe_payload(names),
        )
        return self._finish_setup(PackageType.CONTROL_PACKAGE_SETUP_OUTPUTS, names)

    def setup_input_recipe(self, names: Iterable[str]) -> RtsiRecipe:
        """Register input variables that this client will write."""
        names = list(names)
        self._send_all(PackageType.CONTROL_PACKAGE_SETUP_INPUTS, _recipe_payload(names))
        return self._finish_setup(PackageType.CONTROL_PACKAGE_SETUP_INPUTS, names)

    def start(self) -> bool:
        """Start the data stream; return whether the controller agreed."""
        self._send_all(PackageType.CONTROL_PACKAGE_START)
        started = False
        for package in self._receive(PackageType.CONTROL_PACKAGE_START):
            started = len(package) > _STATUS_INDEX and bool(package[_STATUS_INDEX])
            if started:
                self._state = ConnectionState.STARTED
        return started

    def pause(self) -> bool:
        """Pause the data stream; return whether the controller agreed."""
        self._send_all(PackageType.CONTROL_PACKAGE_PAUSE)
        paused = False
        for package in self._receive(PackageType.CONTROL_PACKAGE_PAUSE):
            paused = len(package) > _STATUS_INDEX and bool(package[_STATUS_INDEX])
            if paused:
                self._state = ConnectionState.STOPPED
        return paused

    def send(self, recipe: RtsiRecipe) -> None:
        """Send the current values of an input recipe."""
        self._send_all(PackageType.DATA_PACKAGE, recipe.pack_to_bytes())

    def receive_data(self, recipe: RtsiRecipe, read_newest: bool = False) -> bool:
        """Read data packages into the recipe; return whether one matched it."""
        result = False
        for package in self._receive(PackageType.DATA_PACKAGE, read_newest):
            if package[_STATUS_INDEX] == recipe.recipe_id:
                recipe.parse_data_package(package)
                result = True
        return result

    def receive_data_any(self, recipes: Iterable[RtsiRecipe], read_newest: bool = False) -> int:
        """Read data packages into whichever recipe matches; return its id or -1."""
        recipes = [recipe for recipe in recipes if recipe is not None]
        result_id = -1
        for package in self._receive(PackageType.DATA_PACKAGE, read_newest):
            recipe_id = package[_STATUS_INDEX]
            for recipe in recipes:
                if recipe.recipe_id == recipe_id:
                    recipe.parse_data_package(package)
                    result_id = recipe_id
                    break
        return result_id

    def is_connected(self) -> bool:
        return self._state is not ConnectionState.DISCONNECTED

    def is_started(self) -> bool:
        return self._state is ConnectionState.STARTED

    def is_read_available(self) -> bool:
        """Return whether data waits to be read."""
        if self._socket is None:
            return False
        if len(self._buffer) >= HEADER_SIZE:
            return True
        try:
            readable, _, _ = select.select([self._socket], [], [], 0)
        except (OSError, ValueError):
            return False
        return bool(readable)

    def _finish_setup(self, package_type: PackageType, names: list[str]) -> RtsiRecipe:
        recipe = RtsiRecipe(names)
        for package in self._receive(package_type):
            recipe.parse_type_package(package)
        return recipe

    def _send_all(self, package_type: PackageType, payload: bytes = b"") -> None:
        message = build_message(package_type, payload)
        if self._socket is None:
            raise EliteError(ErrorCode.SOCKET_FAIL, "not connected")
        try:
            self._socket.sendall(message)
        except OSError as exc:
            raise EliteError(ErrorCode.SOCKET_FAIL, str(exc)) from exc

    def _socket_disconnect(self) -> None:
        sock, self._socket = self._socket, None
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()
        self._state = ConnectionState.DISCONNECTED

    def _receive_to_buffer(self) -> int:
        """Read once into the buffer; on timeout drop the connection and return -1."""
        if self._socket is None:
            raise EliteError(ErrorCode.SOCKET_FAIL, "not connected")
        self._socket.settimeout(max(self.receive_timeout_ms, 0) / 1000)
        try:
            data = self._socket.recv(_RECV_CHUNK)
        except TimeoutError:
            self._socket_disconnect()
            return -1
        except OSError as exc:
            raise EliteError(ErrorCode.SOCKET_FAIL, str(exc)) from exc
        if not data:
            raise EliteError(ErrorCode.SOCKET_FAIL, "connection closed by peer")
        self._buffer += data
        return len(data)

    def _complete_package_ahead(self, target: PackageType) -> bool:
        if len(self._buffer) < HEADER_SIZE:
            return False
        length, _ = unpack("H", self._buffer, 0)
        return length <= len(self._buffer) and self._buffer[2] == target

    def _receive(self, target: PackageType, read_newest: bool = False) -> list[bytes]:
        """Return the whole target packages read, skipping packages of other types.

        Without read_newest the first target package ends the read; with it,
        further complete target packages already buffered are taken as well.
        An empty list means the read timed out.
        """
        matched: list[bytes] = []
        while True:
            while len(self._buffer) >= HEADER_SIZE:
                length, _ = unpack("H", self._buffer, 0)
                if length < HEADER_SIZE:
                    raise EliteError(ErrorCode.SOCKET_FAIL, f"bad package length {length}")
                if length > len(self._buffer):
                    break
                package = bytes(self._buffer[:length])
                del self._buffer[:length]
                if package[2] == target:
                    matched.append(package)
                    if not read_newest or not self._complete_package_ahead(target):
                        return matched
            if self._receive_to_buffer() <= 0:
                return matched