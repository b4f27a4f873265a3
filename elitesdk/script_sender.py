"""Script sender: serves the control program to a robot that asks for it."""

from __future__ import annotations

import inspect
import socket
import threading

from elitesdk.log import LogLevel, log
from elitesdk.tcp_server import TcpServer

PROGRAM_REQUEST = "request_program"
_RECV_CHUNK = 4096


def _log(level: LogLevel, fmt: str, *args: object) -> None:
    frame = inspect.currentframe()
    caller = frame.f_back if frame is not None else None
    log(__name__, caller.f_lineno if caller is not None else 0, level, fmt, *args)


class ScriptSender:
    """Answers each "request_program" line from the robot with the program text.

    A newer connection replaces the older one.
    """

    PROGRAM_REQUEST = PROGRAM_REQUEST

    def __init__(self, port: int, program: str) -> None:
        self.program = program
        self._lock = threading.Lock()
        self._client: socket.socket | None = None
        self._readers: list[threading.Thread] = []
        self._server = TcpServer(port)
        self._server.set_connect_callback(self._on_connect)

    def __enter__(self) -> "ScriptSender":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def port(self) -> int:
        return self._server.port

    def close(self) -> None:
        """Stop the server and drop the connected client."""
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
            target=self._serve, args=(client,), name=f"script-sender-{self.port}", daemon=True
        )
        with self._lock:
            old, self._client = self._client, client
            self._readers = [thread for thread in self._readers if thread.is_alive()]
            self._readers.append(reader)
        self._server.release_client(old)
        reader.start()

    def _serve(self, client: socket.socket) -> None:
        pending = bytearray()
        try:
            while True:
                data = client.recv(_RECV_CHUNK)
                if not data:
                    break
                pending += data
                while b"\n" in pending:
                    line, _, rest = bytes(pending).partition(b"\n")
                    pending = bytearray(rest)
                    request = line.rstrip(b"\r").decode("utf-8", errors="replace")
                    if request == PROGRAM_REQUEST:
                        client.sendall(self.program.encode("utf-8"))
                    else:
                        _log(LogLevel.WARN, "Unexpected request on script port: %s", request)
        except OSError:
            pass
        finally:
            with self._lock:
                if self._client is client:
                    self._client = None
            self._server.release_client(client)