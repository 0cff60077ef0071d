"""
Pure helpers shared by the frame codec and the subsystem codecs.

- checksum: additive 16-bit sum (the units call it "CRC", it isn't one)
- CAN ID: dotted quad "a.b.c.d" <-> 32-bit device address
- KNX group address: "area/line/device" <-> 16-bit packed value
- IPv4: dotted string <-> 4 bytes
- Fixed-width names: str <-> zero-padded UTF-8
"""
import ipaddress
import struct
from typing import Iterable, Optional

from ..exceptions import RcuValidationError


class CodecConst:
    FALLBACK_ADDRESS = 0x00000101   # Used for malformed CAN IDs
    CHECKSUM_MASK = 0xFFFF


def format_bytes(data: bytes | Iterable[int]) -> str:
    """Render bytes for logs and traffic traces, eg. '0x01, 0x0A'."""
    return ', '.join(f'0x{b:02X}' for b in data)


def checksum(data: bytes | Iterable[int]) -> int:
    """Additive checksum of all bytes, truncated to 16 bits."""
    return sum(data) & CodecConst.CHECKSUM_MASK


def _parse_int(part: str) -> Optional[int]:
    part = part.strip()
    if not part.isdigit(): return None
    return int(part)


def can_id_to_int(can_id: Optional[str]) -> int:
    """Convert a dotted CAN ID to the 32-bit device address.
    Malformed input (wrong part count, non-numeric part) returns the fallback address 0x00000101."""
    if not can_id or not isinstance(can_id, str):
        return CodecConst.FALLBACK_ADDRESS
    parts = can_id.split(".")
    if len(parts) != 4:
        return CodecConst.FALLBACK_ADDRESS
    octets = [_parse_int(p) for p in parts]
    if any(o is None for o in octets):
        return CodecConst.FALLBACK_ADDRESS
    a, b, c, d = (o & 0xFF for o in octets)
    return (a << 24) | (b << 16) | (c << 8) | d


def int_to_can_id(address: int) -> str:
    return f"{(address >> 24) & 0xFF}.{(address >> 16) & 0xFF}.{(address >> 8) & 0xFF}.{address & 0xFF}"


def knx_address_to_int(address: Optional[str]) -> int:
    """Pack a KNX group address "area/line/device" (5/3/8 bits). Anything unparseable packs to 0."""
    if not address or not isinstance(address, str):
        return 0
    parts = address.split("/")
    if len(parts) != 3:
        return 0
    values = [_parse_int(p) for p in parts]
    if any(v is None for v in values):
        return 0
    area, line, device = values
    return ((area & 0x1F) << 11) | ((line & 0x07) << 8) | (device & 0xFF)


def knx_address_to_bytes(address: Optional[str]) -> bytes:
    return struct.pack('<H', knx_address_to_int(address))


def int_to_knx_address(value: int) -> str:
    """Unpack a 16-bit KNX group address. Zero means unassigned and returns ''."""
    if not value:
        return ""
    return f"{(value >> 11) & 0x1F}/{(value >> 8) & 0x07}/{value & 0xFF}"


def ip_to_bytes(ip: str, field: str = "ip") -> bytes:
    try:
        return ipaddress.IPv4Address(ip).packed
    except (ipaddress.AddressValueError, ValueError) as e:
        raise RcuValidationError(field, actual=ip, message=f"{field} must be a dotted IPv4 address, received {ip!r}") from e


def bytes_to_ip(data: bytes | Iterable[int]) -> str:
    return str(ipaddress.IPv4Address(bytes(data)[:4]))


def name_to_bytes(name: Optional[str], length: int = 15) -> bytes:
    """UTF-8 name truncated and zero-padded to a fixed width."""
    return (name or "").encode("utf-8")[:length].ljust(length, b'\x00')


def bytes_to_name(data: bytes) -> str:
    return bytes(data).split(b'\x00', 1)[0].decode("utf-8", errors="replace").strip()
