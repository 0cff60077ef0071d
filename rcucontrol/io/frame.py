"""
RCU wire frame codec.

Frame layout (all multi-byte fields little-endian):

    [address u32][length u16][cmd1][cmd2][payload ...][checksum u16]

- length counts cmd1 + cmd2 + payload + checksum, ie. 4 + len(payload)
- checksum is the additive sum of cmd1, cmd2 and payload, truncated to 16 bits
- bit 7 of cmd1 or cmd2 flags an error reply; payload[0] is then the error code
- non-GET replies carry a status byte in payload[0], zero meaning success

Inbound checksums are not verified.
"""
import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Optional

from .codec import checksum
from ..exceptions import RcuDeviceError, RcuFrameTooShortError, RcuUnexpectedCommandError


class FrameConst:
    HEADER_SIZE = 8             # address + length + cmd1 + cmd2
    MIN_SIZE = 10               # header + checksum
    LENGTH_OVERHEAD = 4         # cmd1 + cmd2 + checksum
    ERROR_FLAG = 0x80
    SENTINEL_LENGTH = 5         # One zero payload byte


class RcuErrorCode(IntEnum):
    """Error and status codes reported by a unit"""
    SUCCESS = 0
    ERR_CRC = 1
    NO_SUPPORT = 2
    LIMIT_FRAME_LEN = 3
    LIMIT_INPUT_NUMBER = 4
    LIMIT_OUTPUT_NUMBER = 5
    LIMIT_GROUP_PER_INPUT = 6
    ABSENT_UNIT = 7
    SLAVE_UNIT = 8
    LOWER_FIRMWARE = 9
    LICENSE_FAIL = 10
    HEX_FILE_CRC = 11
    BUSY = 253                  # Interim reply, the final one follows
    TRANSFERED_FAILED = 254
    OTHER = 255


def error_name(code: int) -> str:
    """Resolve an error code to its symbolic name, or 'Unknown error (N)'."""
    if code in RcuErrorCode._value2member_map_:
        return RcuErrorCode(code).name
    return f"Unknown error ({code})"


@dataclass
class Frame:
    """One decoded wire frame"""
    address: int
    length: int
    cmd1: int
    cmd2: int
    payload: bytes = b''
    checksum: int = 0

    @property
    def status(self) -> Optional[int]:
        """First payload byte, the status code for non-GET replies."""
        return self.payload[0] if self.payload else None

    @property
    def is_sentinel(self) -> bool:
        return self.length == FrameConst.SENTINEL_LENGTH and self.payload == b'\x00'

    def to_bytes(self) -> bytes:
        return (struct.pack('<IHBB', self.address, self.length, self.cmd1, self.cmd2)
                + self.payload + struct.pack('<H', self.checksum))


def encode_frame(address: int, cmd1: int, cmd2: int, payload: bytes | Iterable[int] = b'', include_length: bool = False) -> bytes:
    """Build an outbound frame.
    With include_length the checksum also covers the two length bytes, which some older units expect."""
    payload = bytes(payload)
    length = FrameConst.LENGTH_OVERHEAD + len(payload)
    if length > 0xFFFF:
        raise ValueError(f"Payload too large for one frame: {len(payload)} bytes")
    header = struct.pack('<IH', address & 0xFFFFFFFF, length)
    body = bytes([cmd1 & 0xFF, cmd2 & 0xFF]) + payload
    summed = header[4:] + body if include_length else body
    return header + body + struct.pack('<H', checksum(summed))


def declared_length(data: bytes) -> int:
    """The length field of a raw datagram, or 0 when there is no header."""
    if len(data) < 6: return 0
    return struct.unpack_from('<H', data, 4)[0]


def raw_payload(data: bytes) -> bytes:
    """Payload bytes of a raw datagram according to its declared length."""
    return bytes(data[FrameConst.HEADER_SIZE:FrameConst.HEADER_SIZE + max(0, declared_length(data) - FrameConst.LENGTH_OVERHEAD)])


def decode_frame(data: bytes, expected_cmd1: int, expected_cmd2: int, skip_status_check: bool = False) -> Frame:
    """Parse and validate an inbound frame against the expected command pair.

    Raises RcuFrameTooShortError, RcuDeviceError (error flag or non-zero status)
    or RcuUnexpectedCommandError, checked in that order.
    """
    if len(data) < FrameConst.MIN_SIZE:
        raise RcuFrameTooShortError(len(data))

    address, length, cmd1, cmd2 = struct.unpack_from('<IHBB', data, 0)
    payload = raw_payload(data)
    end = FrameConst.HEADER_SIZE + len(payload)
    received_checksum = struct.unpack_from('<H', data, end)[0] if len(data) >= end + 2 else 0

    if cmd1 & FrameConst.ERROR_FLAG or cmd2 & FrameConst.ERROR_FLAG:
        code = payload[0] if payload else int(RcuErrorCode.OTHER)
        raise RcuDeviceError(code, error_name(code), cmd1 & 0x7F, cmd2 & 0x7F)

    if cmd1 != expected_cmd1 or cmd2 != expected_cmd2:
        raise RcuUnexpectedCommandError((expected_cmd1, expected_cmd2), (cmd1, cmd2))

    if not skip_status_check and payload and payload[0] != RcuErrorCode.SUCCESS:
        raise RcuDeviceError(payload[0], error_name(payload[0]), cmd1, cmd2)

    return Frame(address=address, length=length, cmd1=cmd1, cmd2=cmd2, payload=payload, checksum=received_checksum)
