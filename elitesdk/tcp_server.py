"""Threaded TCP server that hands accepted connections to a callback."""

from __future__ import annotations

import inspect
import socket
import threading
from typing import Callable, Iterable

from elitesdk.datatypes import EliteError, ErrorCode
from elitesdk.endian import pack_array
from elitesdk.log import LogLevel, log

_ACCEPT_POLL_S = 0.05
_RECV_CHUNK = 4096

ConnectCallback = Callable[[socket.socket], None]


def _log(level: LogLevel, fmt: str, *args: object) -> None:
    frame = inspect.currentframe()
    caller = frame.f_back if frame is not None else None
    log(__name__, caller.f_lineno if caller is not None else 0, level, fmt, *args)


class TcpServer:
    """Listens on a port and passes every new client socket to the connect callback.

    Port 0 picks a free port; the bound port is available as ``port``.
    A connection that arrives while no callback is set is closed at once.
    """

    def __init__(self, port: int) -> None:
        self._callback: ConnectCallback | None = None
        self._callback_lock = threading.Lock()
        listener = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind(("", port))
            listener.listen()
        except (OSError, OverflowError) as exc:
            listener.close()
            raise EliteError(ErrorCode.SOCKET_FAIL, str(exc)) from exc
        listener.settimeout(_ACCEPT_POLL_S)
        self._listener = listener
        self._port = listener.getsockname()[1]
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._accept_loop, name=f"tcp-server-{self._port}", daemon=True
        )
        self._thread.start()

    def __enter__(self) -> "TcpServer":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def port(self) -> int:
        return self._port

    def set_connect_callback(self, func: ConnectCallback | None) -> None:
        """Set the function called with each newly accepted client socket."""
        with self._callback_lock:
            self._callback = func

    def release_client(self, client: socket.socket | None) -> None:
        """Shut down and close a client socket."""
        if client is None:
            return
        try:
            client.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        client.close()

    def close(self) -> None:
        """Stop accepting connections and close the listening socket."""
        self._stop.set()
        if self._thread is not threading.current_thread():
            self._thread.join()
        self._listener.close()

    def _accept_loop(self) -> None:
        while not self._stop.is_set():
            try:
                client, _ = self._listener.accept()
            except TimeoutError:
                continue
            except OSError as exc:
                if not self._stop.is_set():
                    _log(LogLevel.ERROR, "TCP server on port %d stopped accepting: %s", self._port, exc)
                break
            client.settimeout(None)
            try:
                client.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
            except OSError:
                pass
            with self._callback_lock:
                callback = self._callback
            if callback is None:
                self.release_client(client)
                continue
            try:
                callback(client)
            except Exception as exc:  # a faulty callback must not stop the server
                _log(LogLevel.ERROR, "TCP server connect callback failed: %s", exc)
                self.release_client(client)


class _RobotChannel:
    """One-robot connection on a TcpServer: a newer connection replaces the older one."""

    def __init__(self, port: int) -> None:
        self._lock = threading.Lock()
        self._client: socket.socket | None = None
        self._readers: list[threading.Thread] = []
        self._server = TcpServer(port)
        self._server.set_connect_callback(self._on_connect)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def port(self) -> int:
        return self._server.port

    def is_robot_connected(self) -> bool:
        """Return whether a robot is connected."""
        with self._lock:
            return self._client is not None

    def close(self) -> None:
        """Stop the server and drop the robot connection."""
        self._server.close()
        with self._lock:
            client, self._client = self._client, None
            readers, self._readers = self._readers, []
        self._server.release_client(client)
        current = threading.current_thread()
        for reader in readers:
            if reader is not current:
                reader.join()

    def _on_connect(self, client: socket.socket) -> None:
        reader = threading.Thread(
            target=self._read_loop, args=(client,), name=f"robot-reader-{self.port}", daemon=True
        )
        with self._lock:
            old, self._client = self._client, client
            self._readers = [thread for thread in self._readers if thread.is_alive()]
            self._readers.append(reader)
        self._server.release_client(old)
        reader.start()

    def _read_loop(self, client: socket.socket) -> None:
        try:
            while True:
                data = client.recv(_RECV_CHUNK)
                if not data:
                    break
                self._handle_data(data)
        except OSError:
            pass
        finally:
            with self._lock:
                if self._client is client:
                    self._client = None
            self._server.release_client(client)
            self._reset_receive_state()

    def _handle_data(self, data: bytes) -> None:
        """Take in bytes sent by the robot; ignored unless overridden."""

    def _reset_receive_state(self) -> None:
        """Forget partially received data after a connection ends."""

    def _write_int32(self, values: Iterable[int]) -> bool:
        payload = pack_array("i", values)
        with self._lock:
            if self._client is None:
                _log(LogLevel.ERROR, "Robot is not connected to port %d", self.port)
                return False
            try:
                self._client.sendall(payload)
            except OSError as exc:
                _log(LogLevel.ERROR, "Write to robot on port %d failed: %s", self.port, exc)
                return False
        return True