import pytest

from elitesdk.endian import pack, pack_array, split_string, unpack, unpack_array


def test_pack_is_big_endian():
    assert pack("H", 0x0102) == bytes([0x01, 0x02])
    assert pack("I", 1) == b"\x00\x00\x00\x01"


@pytest.mark.parametrize(
    "code, value",
    [("?", True), ("B", 200), ("H", 65535), ("i", -123456), ("I", 4000000000),
     ("Q", 2**63 + 5), ("d", 3.25), ("d", -0.5)],
)
def test_round_trip(code, value):
    data = pack(code, value)
    result, offset = unpack(code, data, 0)
    assert result == value
    assert offset == len(data)


def test_unpack_advances_offset():
    data = pack("H", 7) + pack("d", 1.5) + pack("i", -3)
    first, offset = unpack("H", data, 0)
    second, offset = unpack("d", data, offset)
    third, offset = unpack("i", data, offset)
    assert (first, second, third) == (7, 1.5, -3)
    assert offset == len(data)


def test_array_round_trip():
    values = [1.0, 2.0, 3.0, 4.0, 5.0, 6.0]
    data = pack_array("d", values)
    assert data == b"".join(pack("d", v) for v in values)
    result, offset = unpack_array("d", data, 0, 6)
    assert result == values
    assert offset == len(data)


def test_unpack_array_at_offset():
    data = b"\xff" + pack_array("i", [1, -2, 3])
    result, offset = unpack_array("i", data, 1, 3)
    assert result == [1, -2, 3]
    assert offset == len(data)


def test_unpack_short_data_raises():
    with pytest.raises(ValueError):
        unpack("I", b"\x00\x01", 0)
    with pytest.raises(ValueError):
        unpack_array("d", pack("d", 1.0), 0, 2)


def test_unknown_type_code_raises():
    with pytest.raises(ValueError):
        pack("x", 1)
    with pytest.raises(ValueError):
        unpack("zz", b"\x00", 0)


def test_out_of_range_value_raises():
    with pytest.raises(ValueError):
        pack("B", 256)


def test_split_string():
    assert split_string("DOUBLE,UINT32,VECTOR6D", ",") == ["DOUBLE", "UINT32", "VECTOR6D"]
    assert split_string("BOOL", ",") == ["BOOL"]


def test_split_string_multichar_delimiter():
    assert split_string("a::b::c", "::") == ["a", "b", "c"]


def test_split_string_empty_delimiter_raises():
    with pytest.raises(ValueError):
        split_string("abc", "")