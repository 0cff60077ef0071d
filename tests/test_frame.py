import pytest

from rcucontrol.io import (checksum, can_id_to_int, int_to_can_id, knx_address_to_int, int_to_knx_address,
                           ip_to_bytes, bytes_to_ip, name_to_bytes, bytes_to_name, format_bytes,
                           encode_frame, decode_frame, error_name, RcuErrorCode)
from rcucontrol.io.frame import declared_length, raw_payload
from rcucontrol.exceptions import (RcuDeviceError, RcuFrameTooShortError, RcuUnexpectedCommandError,
                                   RcuValidationError)


# ============================
# CODEC HELPERS
# ============================

def test_checksum_is_additive_and_truncated():
    assert checksum([1, 2, 3]) == 6
    assert checksum(b'\xFF' * 300) == (255 * 300) & 0xFFFF


@pytest.mark.parametrize("can_id", ["0.0.0.101", "1.2.3.4", "255.255.255.255", "0.0.0.0"])
def test_can_id_round_trip(can_id):
    assert int_to_can_id(can_id_to_int(can_id)) == can_id


def test_can_id_byte_order():
    assert can_id_to_int("1.2.3.4") == 0x01020304


@pytest.mark.parametrize("bad", ["", None, "1.2.3", "1.2.3.4.5", "a.b.c.d", "1.2.x.4"])
def test_malformed_can_id_falls_back(bad):
    assert can_id_to_int(bad) == 0x00000101


def test_knx_address():
    assert knx_address_to_int("1/2/3") == (1 << 11) | (2 << 8) | 3
    assert int_to_knx_address(knx_address_to_int("31/7/255")) == "31/7/255"
    assert knx_address_to_int("garbage") == 0
    assert knx_address_to_int("1/2") == 0
    assert int_to_knx_address(0) == ""


def test_ip_helpers():
    assert ip_to_bytes("192.168.1.50") == bytes([192, 168, 1, 50])
    assert bytes_to_ip([10, 0, 0, 1]) == "10.0.0.1"
    with pytest.raises(RcuValidationError):
        ip_to_bytes("300.1.1.1")


def test_names_are_fixed_width():
    assert name_to_bytes("Lobby") == b'Lobby' + bytes(10)
    assert len(name_to_bytes("A very long scene name indeed")) == 15
    assert bytes_to_name(b'Lobby\x00\x00junk') == "Lobby"
    assert name_to_bytes(None) == bytes(15)


def test_format_bytes():
    assert format_bytes(b'\x01\x0A') == "0x01, 0x0A"


# ============================
# FRAMES
# ============================

def test_encode_layout():
    wire = encode_frame(0x00000065, 1, 10, b'\x07')
    assert wire[:4] == b'\x65\x00\x00\x00'
    assert declared_length(wire) == 5
    assert wire[6:9] == bytes([1, 10, 7])
    assert wire[9:] == (1 + 10 + 7).to_bytes(2, 'little')


def test_checksum_can_include_length():
    plain = encode_frame(1, 1, 4)
    with_length = encode_frame(1, 1, 4, include_length=True)
    assert int.from_bytes(plain[-2:], 'little') == 5
    assert int.from_bytes(with_length[-2:], 'little') == 5 + 4


def test_decode_round_trip_keeps_checksum():
    payload = bytes(range(50))
    frame = decode_frame(encode_frame(7, 10, 65, payload), 10, 65, skip_status_check=True)
    assert frame.payload == payload
    assert frame.checksum == checksum(bytes([10, 65]) + payload)


def test_too_short():
    with pytest.raises(RcuFrameTooShortError):
        decode_frame(b'\x00' * 9, 1, 1)


@pytest.mark.parametrize("cmd1, cmd2", [(0x80 | 30, 22), (30, 0x80 | 22)])
def test_error_flag_is_a_device_error(cmd1, cmd2):
    wire = encode_frame(1, cmd1, cmd2, [RcuErrorCode.NO_SUPPORT])
    with pytest.raises(RcuDeviceError) as e:
        decode_frame(wire, 30, 22)
    assert e.value.code == RcuErrorCode.NO_SUPPORT
    assert e.value.name == "NO_SUPPORT"
    assert (e.value.cmd1, e.value.cmd2) == (30, 22)


def test_error_flag_beats_command_mismatch():
    wire = encode_frame(1, 0x80 | 50, 1, [RcuErrorCode.BUSY])
    with pytest.raises(RcuDeviceError) as e:
        decode_frame(wire, 30, 22)
    assert e.value.code == RcuErrorCode.BUSY


def test_unexpected_command():
    with pytest.raises(RcuUnexpectedCommandError) as e:
        decode_frame(encode_frame(1, 1, 9, [0]), 1, 10)
    assert e.value.expected == (1, 10)
    assert e.value.actual == (1, 9)


def test_status_byte():
    wire = encode_frame(1, 10, 62, [RcuErrorCode.LIMIT_OUTPUT_NUMBER])
    with pytest.raises(RcuDeviceError):
        decode_frame(wire, 10, 62)
    assert decode_frame(wire, 10, 62, skip_status_check=True).status == RcuErrorCode.LIMIT_OUTPUT_NUMBER


def test_sentinel_shape():
    assert decode_frame(encode_frame(1, 10, 9, [0]), 10, 9, skip_status_check=True).is_sentinel
    assert not decode_frame(encode_frame(1, 10, 9, [0, 0]), 10, 9, skip_status_check=True).is_sentinel
    assert not decode_frame(encode_frame(1, 10, 9, [1]), 10, 9, skip_status_check=True).is_sentinel


def test_inbound_checksum_not_verified():
    wire = bytearray(encode_frame(1, 1, 10, [0, 1, 2]))
    wire[-1] ^= 0xFF
    assert decode_frame(bytes(wire), 1, 10).payload == bytes([0, 1, 2])


def test_raw_payload_uses_declared_length():
    wire = encode_frame(1, 1, 4, b'abc')
    assert raw_payload(wire) == b'abc'
    assert raw_payload(b'\x00') == b''


def test_error_names():
    assert error_name(253) == "BUSY"
    assert error_name(11) == "HEX_FILE_CRC"
    assert error_name(99) == "Unknown error (99)"
