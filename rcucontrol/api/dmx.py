import logging
from dataclasses import dataclass, field
from typing import Optional, Self, TYPE_CHECKING

from .batch import RcuBatchResult, split_by_count, send_batches
from .models import RcuUnit
from .types import RcuSubsystem, Const
from .validators import validate_value, validate_count, validate_range
from ..exceptions import RcuResponseError

if TYPE_CHECKING:
    from .protocol import RcuProtocol


@dataclass
class DmxColor:
    r: int = 0
    g: int = 0
    b: int = 0
    w: int = 0

    @classmethod
    def parse(cls, text: Optional[str]) -> Self:
        """Parse "R,G,B,W". Anything that isn't four integers is black; values are clamped to 0-255."""
        if not text: return cls()
        parts = text.split(",")
        if len(parts) != 4: return cls()
        values = []
        for part in parts:
            try:
                values.append(max(0, min(255, int(part.strip()))))
            except ValueError:
                values.append(0)
        return cls(*values)

    def to_bytes(self) -> bytes:
        return bytes([validate_value(self.r, "red"), validate_value(self.g, "green"),
                      validate_value(self.b, "blue"), validate_value(self.w, "white")])

    def __str__(self) -> str:
        return f"{self.r},{self.g},{self.b},{self.w}"


@dataclass
class DmxDevice:
    """A DMX fixture with 16 colour presets"""
    address: int = 0
    colors: list[DmxColor] = field(default_factory=list)
    index: Optional[int] = None     # Global device index, filled in on read

    COLOR_SLOTS = 16
    SIZE = 66           # On write: [index, 16 x RGBW, address]
    READ_SIZE = 64      # On read: 16 x RGBW

    def to_bytes(self, index: int) -> bytes:
        validate_count(self.colors, "DMX colours", self.COLOR_SLOTS)
        colors = list(self.colors) + [DmxColor()] * (self.COLOR_SLOTS - len(self.colors))
        return bytes([index & 0xFF]) + b''.join(c.to_bytes() for c in colors) + bytes([validate_value(self.address, "DMX address")])

    @classmethod
    def from_bytes(cls, data: bytes, index: int) -> Self:
        colors = [DmxColor(*data[i * 4:i * 4 + 4]) for i in range(cls.COLOR_SLOTS)]
        return cls(colors=colors, index=index)


class RcuDmx:

    CMD1 = RcuSubsystem.DMX
    CMD: dict[str, int] = {
        "SET_TOTAL": 0,     # [count, 0]
        "SET_COLOR": 1,     # Up to 15 x 66-byte devices
        "GET_COLOR": 2,     # [0, 0], collector: [package, count, count x 64 bytes]
    }

    def __init__(self, protocol: "RcuProtocol"):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger

    async def set_total(self, unit: RcuUnit, count: int) -> bool:
        """Tell the unit how many DMX devices exist in total."""
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_TOTAL"], [validate_value(count, "DMX device count"), 0])

    async def set_colors(self, unit: RcuUnit, devices: list[DmxDevice], start_index: int = 0,
                         total_count: Optional[int] = None) -> bool:
        """Write up to 15 devices, numbered from start_index. The device total is sent first when given."""
        validate_count(devices, "DMX devices", Const.MAX_DMX_PER_PACKET, 1)
        validate_range(start_index, "DMX start index", 0, 255)
        data = b''.join(d.to_bytes(start_index + i) for i, d in enumerate(devices))
        if total_count is not None:
            await self.set_total(unit, total_count)
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_COLOR"], data)

    async def set_colors_batch(self, unit: RcuUnit, devices: list[DmxDevice], total_count: Optional[int] = None) -> RcuBatchResult:
        """Write any number of devices in chunks of 15."""
        for d in devices:
            d.to_bytes(0)
        if total_count is None: total_count = len(devices)
        per_batch = Const.MAX_DMX_PER_PACKET

        async def send(_, batch: list[tuple[int, DmxDevice]]):
            await self.set_colors(unit, [d for _, d in batch], start_index=batch[0][0], total_count=total_count)

        batches = split_by_count(list(enumerate(devices)), per_batch)
        return await send_batches(batches, send, lambda item: item[0], self.logger, "DMX device")

    async def get_colors(self, unit: RcuUnit, timeout: float = Const.DMX_TIMEOUT) -> list[DmxDevice]:
        """Read every device's colour presets. Device index = package x 16 + position."""
        result = await self.protocol.collect(unit, self.CMD1, self.CMD["GET_COLOR"], [0, 0], timeout=timeout)
        devices = []
        for frame in result.frames:
            data = frame.payload
            if len(data) < 2:
                self.logger.warning(f"Skipping short DMX package from {unit}: {len(data)} bytes")
                continue
            package, count = data[0], data[1]
            for i in range(count):
                start = 2 + i * DmxDevice.READ_SIZE
                if start + DmxDevice.READ_SIZE > len(data):
                    self.logger.warning(f"DMX package {package} from {unit} truncated at device {i}")
                    break
                devices.append(DmxDevice.from_bytes(data[start:start + DmxDevice.READ_SIZE], package * 16 + i))
        if not result.sentinel_seen:
            self.logger.warning(f"DMX colours from {unit} incomplete, {len(devices)} device(s) received")
        return devices
