import logging
import struct
from dataclasses import dataclass, field
from typing import Self, TYPE_CHECKING

from .models import RcuUnit
from .types import RcuSubsystem
from .validators import validate_range, validate_value, validate_count
from ..exceptions import RcuResponseError

if TYPE_CHECKING:
    from .protocol import RcuProtocol


@dataclass
class Rs485Slave:
    """An aircon gateway on the RS-485 bus and the RCU groups of its indoor units"""
    id: int = 1
    group: int = 0
    indoor_count: int = 0
    indoor_groups: list[int] = field(default_factory=list)

    SIZE = 19
    INDOOR_SLOTS = 16

    def to_bytes(self) -> bytes:
        validate_count(self.indoor_groups, "indoor groups", self.INDOOR_SLOTS)
        data = bytes([validate_value(self.id, "slave id"), validate_value(self.group, "slave group"),
                      validate_value(self.indoor_count, "indoor count")])
        return data + bytes(validate_value(g, "indoor group") for g in self.indoor_groups).ljust(self.INDOOR_SLOTS, b'\x00')

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        return cls(id=data[0], group=data[1], indoor_count=data[2], indoor_groups=list(data[3:cls.SIZE]))


@dataclass
class Rs485Config:
    baudrate: int = 9600
    parity: int = 0             # 0 none
    stop_bits: int = 0          # 0 means one stop bit
    board_id: int = 1
    type: int = 0
    slave_count: int = 0
    slaves: list[Rs485Slave] = field(default_factory=list)

    SIZE = 204
    HEADER = '<I5B5x'
    SLAVE_SLOTS = 10

    def to_bytes(self) -> bytes:
        validate_range(self.baudrate, "baudrate", 0, 0xFFFFFFFF)
        for name in ("parity", "stop_bits", "board_id", "type", "slave_count"):
            validate_value(getattr(self, name), name.replace("_", " "))
        validate_count(self.slaves, "slaves", self.SLAVE_SLOTS)
        data = struct.pack(self.HEADER, self.baudrate, self.parity, self.stop_bits, self.board_id, self.type, self.slave_count)
        for i in range(self.SLAVE_SLOTS):
            data += (self.slaves[i] if i < len(self.slaves) else Rs485Slave()).to_bytes()
        return data

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        if len(data) < cls.SIZE:
            raise RcuResponseError(f"RS-485 config data too short: {len(data)} bytes, expected {cls.SIZE}")
        header = struct.unpack_from(cls.HEADER, data, 0)
        offset = struct.calcsize(cls.HEADER)
        slaves = [Rs485Slave.from_bytes(data[offset + i * Rs485Slave.SIZE:]) for i in range(cls.SLAVE_SLOTS)]
        return cls(*header, slaves=slaves)


class RcuRs485:
    """RS-485 aircon gateway settings, one configuration per channel."""

    CMD1 = RcuSubsystem.GENERAL
    CMD: dict[str, int] = {
        "GET_RS485_CH1": 13,
        "GET_RS485_CH2": 14,
        "SET_RS485_CH1": 15,
        "SET_RS485_CH2": 16,
    }

    def __init__(self, protocol: "RcuProtocol"):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger

    def _command(self, prefix: str, channel: int) -> int:
        return self.CMD[f"{prefix}_RS485_CH{validate_range(channel, 'RS-485 channel', 1, 2)}"]

    async def get_config(self, unit: RcuUnit, channel: int = 1) -> Rs485Config:
        frame = await self.protocol.send(unit, self.CMD1, self._command("GET", channel), skip_status_check=True)
        return Rs485Config.from_bytes(frame.payload)

    async def set_config(self, unit: RcuUnit, config: Rs485Config, channel: int = 1) -> bool:
        """Write the configuration of channel 1 or 2. Returns True."""
        return await self.protocol.send_ok(unit, self.CMD1, self._command("SET", channel), config.to_bytes())
