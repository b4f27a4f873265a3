import socket

import pytest

from elitesdk.script_sender import ScriptSender

PROGRAM = 'print("success recv")'
PROGRAM_REQUEST = b"request_program\n"


def _recv_exact(sock, size):
    data = bytearray()
    while len(data) < size:
        chunk = sock.recv(size - len(data))
        if not chunk:
            break
        data += chunk
    return bytes(data)


@pytest.fixture
def sender():
    script_sender = ScriptSender(0, PROGRAM)
    try:
        yield script_sender
    finally:
        script_sender.close()


def _connect(sender):
    return socket.create_connection(("127.0.0.1", sender.port), timeout=2)


def test_response_request(sender):
    with _connect(sender) as client:
        client.sendall(PROGRAM_REQUEST)
        assert _recv_exact(client, len(PROGRAM)).decode() == PROGRAM


def test_multi_clients(sender):
    with _connect(sender) as first, _connect(sender) as second:
        assert first.fileno() >= 0
        second.sendall(PROGRAM_REQUEST)
        assert _recv_exact(second, len(PROGRAM)).decode() == PROGRAM


def test_request_split_across_sends(sender):
    with _connect(sender) as client:
        client.sendall(b"request_")
        client.sendall(b"program\n")
        assert _recv_exact(client, len(PROGRAM)).decode() == PROGRAM


def test_other_lines_get_no_answer(sender):
    with _connect(sender) as client:
        client.sendall(b"hello\n" + PROGRAM_REQUEST)
        assert _recv_exact(client, len(PROGRAM)).decode() == PROGRAM
        client.settimeout(0.2)
        with pytest.raises(TimeoutError):
            client.recv(1)


def test_repeated_requests(sender):
    with _connect(sender) as client:
        client.sendall(PROGRAM_REQUEST * 2)
        assert _recv_exact(client, 2 * len(PROGRAM)).decode() == PROGRAM * 2