"""
RcuControl API-level models.

This module contains models that belong to the API layer:
- RcuUnit (a unit addressed by IP and CAN ID)
- RcuUnitInfo (what hardware info discovery reports about a unit)
- ProtocolConfig (per-protocol settings passed to every codec call)
"""

import ipaddress
import time
from dataclasses import dataclass, field
from typing import Optional, Self

from ..io import can_id_to_int, int_to_can_id
from .types import RcuHardwareConfig, RcuUnitMode, model_for_barcode


@dataclass
class ProtocolConfig:
    """Settings shared by every call made through one RcuProtocol"""
    port: int = 1234                        # Unit UDP port
    broadcast_port: int = 1234              # Port for limited-broadcast operations
    timeout: float = 5.0                    # Default single-exchange timeout (seconds)
    send_name: bool = False                 # Scenes and multi-scenes carry a 15-byte name
    checksum_includes_length: bool = False  # Older units sum the length bytes too

    def __post_init__(self):
        for name in ("port", "broadcast_port"):
            value = getattr(self, name)
            if not 1 <= value <= 65535:
                raise ValueError(f"{name} must be between 1 and 65535, received {value}")
        if self.timeout <= 0:
            raise ValueError(f"timeout must be positive, received {self.timeout}")


@dataclass
class RcuUnit:
    """Represents one RCU unit"""
    ip: str
    can_id: str
    name: Optional[str] = None
    barcode: Optional[str] = None
    port: Optional[int] = None      # Overrides ProtocolConfig.port

    def __post_init__(self):
        try:
            ipaddress.IPv4Address(self.ip)
        except ValueError as e:
            raise ValueError(f"Unit IP must be a dotted IPv4 address, received {self.ip!r}") from e

    @property
    def address(self) -> int:
        """32-bit wire address for the CAN ID."""
        return can_id_to_int(self.can_id)

    @property
    def model(self) -> str:
        return model_for_barcode(self.barcode)

    def __str__(self) -> str:
        return f"{self.name or self.model} ({self.ip}, {self.can_id})"


@dataclass
class RcuUnitInfo:
    """Hardware information broadcast by a unit in reply to discovery"""
    ip: str
    can_id: str
    barcode: str
    model: str
    hardware: RcuHardwareConfig
    hardware_version: str
    firmware_version: str
    manufacture_date: str
    discovered_at: float = field(default_factory=time.time)

    MIN_LENGTH = 91     # Replies with a declared length of 90 or less are not hardware info
    DATA = 7            # Field offsets below are relative to this raw position

    @property
    def mode(self) -> RcuUnitMode:
        return self.hardware.mode

    @classmethod
    def from_bytes(cls, raw: bytes, ip: str) -> Optional[Self]:
        """Parse a raw discovery reply. Returns None for anything that isn't a hardware info reply."""
        if len(raw) < 6: return None
        length = raw[4] | (raw[5] << 8)
        if length < cls.MIN_LENGTH: return None
        p = cls.DATA

        def digits(start: int, end: int) -> str:
            return ''.join(chr(b) for b in raw[start:end] if 0x30 <= b <= 0x39)

        barcode = digits(p + 70, p + 83) if p + 83 <= len(raw) else ""
        flags = raw[p + 84] if p + 84 < len(raw) else 0
        hw_version = f"{raw[p + 86]}.{raw[p + 85] >> 4}.{raw[p + 85] & 0x0F}" if p + 86 < len(raw) else "0.0.0"
        fw_version = f"{raw[p + 88]}.{raw[p + 87]}.0" if p + 88 < len(raw) else "0.0.0"
        return cls(
            ip = ip,
            can_id = int_to_can_id(int.from_bytes(raw[0:4], 'little')),
            barcode = barcode,
            model = model_for_barcode(barcode),
            hardware = RcuHardwareConfig.from_byte(flags),
            hardware_version = hw_version,
            firmware_version = fw_version,
            manufacture_date = digits(19, 27) if len(raw) >= 27 else "",
        )

    def unit(self, name: Optional[str] = None) -> RcuUnit:
        return RcuUnit(ip=self.ip, can_id=self.can_id, name=name, barcode=self.barcode or None)
