import socket
import struct
import threading
import time

import pytest

from elitesdk.datatypes import EliteError, ErrorCode
from elitesdk.tcp_server import TcpServer


def _wait_for(condition, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.005)
    return condition()


def _recv_until(sock, terminator=b"\n", timeout=2.0):
    sock.settimeout(timeout)
    data = b""
    while not data.endswith(terminator):
        chunk = sock.recv(4096)
        if not chunk:
            break
        data += chunk
    return data


@pytest.fixture
def server():
    srv = TcpServer(0)
    yield srv
    srv.close()


def _connect(port):
    return socket.create_connection(("127.0.0.1", port), timeout=2.0)


def test_callback_receives_client_and_data(server):
    accepted = []
    event = threading.Event()

    def on_connect(client):
        accepted.append(client)
        event.set()

    server.set_connect_callback(on_connect)
    client = _connect(server.port)
    try:
        assert event.wait(2.0)
        server_side = accepted[0]
        server_side.settimeout(2.0)
        client.sendall(struct.pack("<i", 1234))
        received = server_side.recv(4096)
        assert struct.unpack("<i", received[:4])[0] == 1234
        client.close()
        assert server_side.recv(4096) == b""
    finally:
        client.close()
        for sock in accepted:
            server.release_client(sock)


def test_multiple_connections_replace_stored_socket(server):
    current = {}
    lock = threading.Lock()

    def on_connect(client):
        with lock:
            old = current.get("sock")
            current["sock"] = client
        if old is not None:
            server.release_client(old)

    server.set_connect_callback(on_connect)
    line = b"client_send_string\n"

    client1 = _connect(server.port)
    client2 = None
    try:
        assert _wait_for(lambda: "sock" in current)
        first = current["sock"]
        client1.sendall(line)
        assert _recv_until(first) == line

        client2 = _connect(server.port)
        assert _wait_for(lambda: current["sock"] is not first)
        second = current["sock"]
        assert second is not first
        client2.sendall(line)
        assert _recv_until(second) == line

        client1.settimeout(2.0)
        assert client1.recv(4096) == b""
    finally:
        client1.close()
        if client2 is not None:
            client2.close()
        server.release_client(current.get("sock"))


def test_release_client_closes_connection(server):
    accepted = []
    server.set_connect_callback(accepted.append)
    client = _connect(server.port)
    try:
        assert _wait_for(lambda: accepted)
        server.release_client(accepted[0])
        client.settimeout(2.0)
        assert client.recv(4096) == b""
    finally:
        client.close()


def test_connection_without_callback_is_closed(server):
    client = _connect(server.port)
    try:
        client.settimeout(2.0)
        assert client.recv(4096) == b""
    finally:
        client.close()


def test_release_client_accepts_none(server):
    server.release_client(None)
    accepted = []
    server.set_connect_callback(accepted.append)
    client = _connect(server.port)
    try:
        assert _wait_for(lambda: len(accepted) == 1)
        assert len(accepted) == 1
        server.release_client(accepted[0])
        client.settimeout(2.0)
        assert client.recv(4096) == b""
    finally:
        client.close()


def test_close_stops_accepting():
    srv = TcpServer(0)
    port = srv.port
    srv.close()
    with pytest.raises(ConnectionRefusedError):
        socket.create_connection(("127.0.0.1", port), timeout=2.0)


def test_port_is_assigned():
    with TcpServer(0) as srv:
        assert 0 < srv.port <= 65535


def test_bind_to_used_port_fails():
    with TcpServer(0) as srv:
        holder = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        try:
            with pytest.raises(EliteError) as info:
                TcpServer(srv.port)
            assert info.value.code is ErrorCode.SOCKET_FAIL
        finally:
            holder.close()


def test_invalid_port_fails():
    with pytest.raises(EliteError) as info:
        TcpServer(70000)
    assert info.value.code is ErrorCode.SOCKET_FAIL