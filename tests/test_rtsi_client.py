import socket

import pytest

from elitesdk.datatypes import EliteError, ErrorCode
from elitesdk.endian import pack, pack_array
from elitesdk.recipe import RtsiType
from elitesdk.rtsi_client import (
    ConnectionState,
    PackageType,
    RtsiClient,
    build_message,
)
from elitesdk.version import VersionInfo


def _recv_exact(conn, size):
    data = bytearray()
    while len(data) < size:
        chunk = conn.recv(size - len(data))
        assert chunk, "connection closed"
        data += chunk
    return bytes(data)


def read_message(conn):
    head = _recv_exact(conn, 3)
    length = int.from_bytes(head[:2], "big")
    return head + _recv_exact(conn, length - 3)


@pytest.fixture
def link():
    server = socket.create_server(("127.0.0.1", 0))
    port = server.getsockname()[1]
    client = RtsiClient()
    client.receive_timeout_ms = 200
    client.connect("127.0.0.1", port)
    conn, _ = server.accept()
    conn.settimeout(2)
    yield client, conn
    client.receive_timeout_ms = 50
    client.disconnect()
    conn.close()
    server.close()


def _setup_output(client, conn, recipe_id, names, types):
    conn.sendall(
        build_message(
            PackageType.CONTROL_PACKAGE_SETUP_OUTPUTS,
            bytes([recipe_id]) + types.encode(),
        )
    )
    recipe = client.setup_output_recipe(names, 250.0)
    read_message(conn)
    return recipe


def test_build_message_header():
    message = build_message(PackageType.CONTROL_PACKAGE_START)
    assert message == b"\x00\x03" + bytes([PackageType.CONTROL_PACKAGE_START])
    framed = build_message(PackageType.DATA_PACKAGE, b"\x01\x02")
    assert framed[:2] == b"\x00\x05"
    assert framed[3:] == b"\x01\x02"


def test_build_message_too_long():
    with pytest.raises(ValueError):
        build_message(PackageType.DATA_PACKAGE, bytes(70000))


def test_connect_state(link):
    client, _ = link
    assert client.is_connected()
    assert not client.is_started()
    assert client.state is ConnectionState.CONNECTED


def test_connect_refused_stays_disconnected():
    server = socket.create_server(("127.0.0.1", 0))
    port = server.getsockname()[1]
    server.close()
    client = RtsiClient()
    client.connect("127.0.0.1", port)
    assert not client.is_connected()


def test_connect_invalid_ip():
    with pytest.raises(EliteError) as info:
        RtsiClient().connect("not-an-ip", 30004)
    assert info.value.code is ErrorCode.SOCKET_CONNECT_FAIL


def test_send_without_connection_raises():
    with pytest.raises(EliteError) as info:
        RtsiClient().start()
    assert info.value.code is ErrorCode.SOCKET_FAIL


def test_negotiate_protocol_version_accepted(link):
    client, conn = link
    conn.sendall(build_message(PackageType.REQUEST_PROTOCOL_VERSION, b"\x01"))
    assert client.negotiate_protocol_version(1) is True
    assert read_message(conn) == build_message(
        PackageType.REQUEST_PROTOCOL_VERSION, b"\x00\x01"
    )


def test_negotiate_protocol_version_rejected(link):
    client, conn = link
    conn.sendall(build_message(PackageType.REQUEST_PROTOCOL_VERSION, b"\x00"))
    assert client.negotiate_protocol_version(1) is False


def test_get_controller_version_skips_other_packages(link):
    client, conn = link
    conn.sendall(build_message(PackageType.TEXT_MESSAGE, b"hello"))
    conn.sendall(
        build_message(PackageType.GET_ELITE_CONTROL_VERSION, pack_array("I", [2, 11, 0, 5]))
    )
    assert client.get_controller_version() == VersionInfo(2, 11, 0, 5)
    assert read_message(conn) == build_message(PackageType.GET_ELITE_CONTROL_VERSION)


def test_setup_output_recipe(link):
    client, conn = link
    conn.sendall(
        build_message(PackageType.CONTROL_PACKAGE_SETUP_OUTPUTS, b"\x07DOUBLE,VECTOR3D")
    )
    recipe = client.setup_output_recipe(["timestamp", "payload_cog"], 125.0)
    assert recipe.recipe_id == 7
    assert recipe.types == {"timestamp": RtsiType.DOUBLE, "payload_cog": RtsiType.VECTOR3D}
    sent = read_message(conn)
    assert sent == build_message(
        PackageType.CONTROL_PACKAGE_SETUP_OUTPUTS,
        pack("d", 125.0) + b"timestamp,payload_cog",
    )


def test_setup_input_recipe_unknown_type(link):
    client, conn = link
    conn.sendall(build_message(PackageType.CONTROL_PACKAGE_SETUP_INPUTS, b"\x02NOT_FOUND"))
    with pytest.raises(EliteError) as info:
        client.setup_input_recipe(["speed_slider_mask"])
    assert info.value.code is ErrorCode.RTSI_UNKNOWN_VARIABLE_TYPE


def test_setup_recipe_needs_names(link):
    client, _ = link
    with pytest.raises(ValueError):
        client.setup_input_recipe([])


def test_start_and_pause(link):
    client, conn = link
    conn.sendall(build_message(PackageType.CONTROL_PACKAGE_START, b"\x01"))
    assert client.start() is True
    assert client.is_started()
    conn.sendall(build_message(PackageType.CONTROL_PACKAGE_PAUSE, b"\x01"))
    assert client.pause() is True
    assert not client.is_started()
    assert client.is_connected()
    assert client.state is ConnectionState.STOPPED


def test_start_rejected(link):
    client, conn = link
    conn.sendall(build_message(PackageType.CONTROL_PACKAGE_START, b"\x00"))
    assert client.start() is False
    assert not client.is_started()


def test_send_input_recipe(link):
    client, conn = link
    conn.sendall(
        build_message(PackageType.CONTROL_PACKAGE_SETUP_INPUTS, b"\x03UINT16,DOUBLE")
    )
    recipe = client.setup_input_recipe(["standard_digital_output_mask", "speed_slider_fraction"])
    read_message(conn)
    assert recipe.set_value("standard_digital_output_mask", 1)
    assert recipe.set_value("speed_slider_fraction", 0.5)
    client.send(recipe)
    assert read_message(conn) == build_message(PackageType.DATA_PACKAGE, recipe.pack_to_bytes())


def test_receive_data_one_at_a_time(link):
    client, conn = link
    recipe = _setup_output(client, conn, 4, ["timestamp"], "DOUBLE")
    conn.sendall(build_message(PackageType.DATA_PACKAGE, b"\x04" + pack("d", 1.5)))
    conn.sendall(build_message(PackageType.DATA_PACKAGE, b"\x04" + pack("d", 2.5)))
    assert client.receive_data(recipe, False) is True
    assert recipe.get_value("timestamp") == 1.5
    assert client.receive_data(recipe, False) is True
    assert recipe.get_value("timestamp") == 2.5


def test_receive_data_other_recipe(link):
    client, conn = link
    recipe = _setup_output(client, conn, 4, ["timestamp"], "DOUBLE")
    conn.sendall(build_message(PackageType.DATA_PACKAGE, b"\x09" + pack("d", 1.5)))
    assert client.receive_data(recipe, False) is False
    assert recipe.get_value("timestamp") == 0.0


def test_receive_data_any(link):
    client, conn = link
    first = _setup_output(client, conn, 1, ["timestamp"], "DOUBLE")
    second = _setup_output(client, conn, 2, ["robot_mode"], "INT32")
    conn.sendall(build_message(PackageType.DATA_PACKAGE, b"\x02" + pack("i", 7)))
    assert client.receive_data_any([first, second], False) == 2
    assert second.get_value("robot_mode") == 7
    assert first.get_value("timestamp") == 0.0


def test_is_read_available(link):
    client, conn = link
    assert client.is_read_available() is False
    conn.sendall(build_message(PackageType.TEXT_MESSAGE, b"x"))
    conn.sendall(b"")
    for _ in range(100):
        if client.is_read_available():
            break
        socket.socket  # keep looping briefly
    assert client.is_read_available() is True


def test_timeout_drops_connection(link):
    client, _ = link
    client.receive_timeout_ms = 50
    assert client.negotiate_protocol_version(1) is False
    assert not client.is_connected()


def test_peer_close_raises(link):
    client, conn = link
    conn.close()
    with pytest.raises(EliteError) as info:
        client.start()
    assert info.value.code is ErrorCode.SOCKET_FAIL


def test_disconnect(link):
    client, _ = link
    client.disconnect()
    assert not client.is_connected()
    assert client.is_read_available() is False