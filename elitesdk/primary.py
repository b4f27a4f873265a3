"""Client for the robot primary port: script sending and state sub-packages."""

from __future__ import annotations

import inspect
import ipaddress
import socket
import threading

from elitesdk.datatypes import EliteError, ErrorCode
from elitesdk.endian import unpack, unpack_array
from elitesdk.log import LogLevel, log

HEAD_LENGTH = 5
ROBOT_STATE_MSG_TYPE = 16
ROBOT_CONFIG_SUB_TYPE = 6
CONNECT_TIMEOUT_S = 0.5


def _log(level: LogLevel, fmt: str, *args: object) -> None:
    frame = inspect.currentframe()
    caller = frame.f_back if frame is not None else None
    log(__name__, caller.f_lineno if caller is not None else 0, level, fmt, *args)


class PrimaryPackage:
    """A robot state sub-package that can be requested from the primary port."""

    def __init__(self, package_type: int) -> None:
        self.package_type = int(package_type)
        self.raw = b""
        self._updated = threading.Event()

    def parse(self, body: bytes) -> None:
        """Take in a sub-package, starting at its length field."""
        self.raw = bytes(body)

    def wait_update(self, timeout_ms: int) -> bool:
        """Wait until the package is updated; return False on timeout."""
        updated = self._updated.wait(max(timeout_ms, 0) / 1000)
        if updated:
            self._updated.clear()
        return updated

    def notify_updated(self) -> None:
        """Wake whoever waits for this package."""
        self._updated.set()


class KinematicsInfo(PrimaryPackage):
    """Denavit-Hartenberg parameters from the configuration sub-package."""

    # length(4) + type(1) + joint limits(6*2*8) + joint max speed/acc(6*2*8) + 5 defaults(5*8)
    DH_PARAM_OFFSET = 237

    def __init__(self) -> None:
        super().__init__(ROBOT_CONFIG_SUB_TYPE)
        self.dh_a = [0.0] * 6
        self.dh_d = [0.0] * 6
        self.dh_alpha = [0.0] * 6

    def parse(self, body: bytes) -> None:
        super().parse(body)
        offset = self.DH_PARAM_OFFSET
        dh_a, offset = unpack_array("d", self.raw, offset, 6)
        dh_d, offset = unpack_array("d", self.raw, offset, 6)
        dh_alpha, _ = unpack_array("d", self.raw, offset, 6)
        self.dh_a, self.dh_d, self.dh_alpha = dh_a, dh_d, dh_alpha


def _recv_exact(sock: socket.socket, size: int) -> bytes:
    data = bytearray()
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            raise EliteError(ErrorCode.SOCKET_FAIL, "connection closed")
        data += chunk
    return bytes(data)


class PrimaryPort:
    """Connection to the primary port that hands state sub-packages to waiters."""

    def __init__(self) -> None:
        self._socket_lock = threading.Lock()
        self._packages_lock = threading.Lock()
        self._socket: socket.socket | None = None
        self._thread: threading.Thread | None = None
        self._packages: dict[int, PrimaryPackage] = {}

    def __enter__(self) -> "PrimaryPort":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.disconnect()

    def connect(self, ip: str, port: int) -> bool:
        """Connect and start reading; return False if the robot cannot be reached."""
        self.disconnect()
        try:
            address = str(ipaddress.IPv4Address(ip))
        except ValueError as exc:
            raise EliteError(ErrorCode.SOCKET_CONNECT_FAIL, str(exc)) from exc
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.settimeout(CONNECT_TIMEOUT_S)
            sock.connect((address, port))
        except OverflowError as exc:
            sock.close()
            raise EliteError(ErrorCode.SOCKET_CONNECT_FAIL, str(exc)) from exc
        except OSError as exc:
            sock.close()
            _log(LogLevel.ERROR, "Connect to robot primary port fail: %s", exc)
            return False
        sock.settimeout(None)
        with self._socket_lock:
            self._socket = sock
        self._thread = threading.Thread(
            target=self._read_loop, args=(sock,), name="primary-port-reader", daemon=True
        )
        self._thread.start()
        return True

    def disconnect(self) -> None:
        """Close the connection and stop the reader thread."""
        with self._socket_lock:
            sock, self._socket = self._socket, None
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()
        thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def send_script(self, script: str) -> bool:
        """Send a script line to the robot; return False on failure."""
        with self._socket_lock:
            if self._socket is None:
                _log(LogLevel.ERROR, "Don't connect to robot primary port")
                return False
            try:
                self._socket.sendall((script + "\n").encode("utf-8"))
            except OSError as exc:
                _log(LogLevel.ERROR, "Send script to robot fail: %s", exc)
                return False
        return True

    def get_package(self, package: PrimaryPackage, timeout_ms: int) -> bool:
        """Request the next sub-package of the package's type and wait for it."""
        package._updated.clear()
        with self._packages_lock:
            self._packages[package.package_type] = package
        return package.wait_update(timeout_ms)

    def dispatch_message(self, message: bytes) -> None:
        """Hand the sub-packages of one whole primary message to their waiters."""
        message = bytes(message)
        if len(message) < HEAD_LENGTH:
            raise EliteError(ErrorCode.SOCKET_FAIL, "truncated message header")
        length, _ = unpack("I", message, 0)
        if length <= HEAD_LENGTH or length > len(message):
            raise EliteError(ErrorCode.SOCKET_FAIL, f"bad message length {length}")
        if message[4] != ROBOT_STATE_MSG_TYPE:
            return
        offset = HEAD_LENGTH
        while offset < length:
            if length - offset < HEAD_LENGTH:
                raise EliteError(ErrorCode.SOCKET_FAIL, "truncated sub-package header")
            sub_len, _ = unpack("I", message, offset)
            if sub_len < HEAD_LENGTH or offset + sub_len > length:
                raise EliteError(ErrorCode.SOCKET_FAIL, f"bad sub-package length {sub_len}")
            sub_type = message[offset + 4]
            with self._packages_lock:
                package = self._packages.pop(sub_type, None)
            if package is not None:
                package.parse(message[offset:offset + sub_len])
                package.notify_updated()
            offset += sub_len

    def _read_loop(self, sock: socket.socket) -> None:
        try:
            while True:
                head = _recv_exact(sock, HEAD_LENGTH)
                length, _ = unpack("I", head, 0)
                if length <= HEAD_LENGTH:
                    raise EliteError(ErrorCode.SOCKET_FAIL, f"bad message length {length}")
                body = _recv_exact(sock, length - HEAD_LENGTH)
                self.dispatch_message(head + body)
        except (OSError, EliteError, ValueError) as exc:
            _log(LogLevel.DEBUG, "Primary port reader stopped: %s", exc)