import logging
import struct
from dataclasses import dataclass, field
from typing import Self, TYPE_CHECKING

from .models import RcuUnit
from .types import RcuSubsystem
from .validators import validate_range, validate_value, validate_delay
from ..exceptions import RcuResponseError

if TYPE_CHECKING:
    from .protocol import RcuProtocol


def validate_channel(channel) -> int:
    return validate_range(channel, "LED channel", 1, 2)


@dataclass
class LedHardwareConfig:
    """SPI pixel strip timing for one channel"""
    pixel_amount: int = 0
    custom: bool = False
    ic_type: int = 0
    color_type: int = 0
    direction: int = 0
    bit0_high_time: int = 0
    bit1_high_time: int = 0
    overall_bit_time: int = 0
    reset_cycle: int = 0

    FORMAT = '<HBBBBHHHH'   # After the channel byte

    def to_bytes(self, channel: int) -> bytes:
        validate_delay(self.pixel_amount, "pixel amount")
        for name in ("ic_type", "color_type", "direction"):
            validate_value(getattr(self, name), name.replace("_", " "))
        for name in ("bit0_high_time", "bit1_high_time", "overall_bit_time", "reset_cycle"):
            validate_delay(getattr(self, name), name.replace("_", " "))
        return bytes([validate_channel(channel)]) + struct.pack(
            self.FORMAT, self.pixel_amount, 1 if self.custom else 0, self.ic_type, self.color_type, self.direction,
            self.bit0_high_time, self.bit1_high_time, self.overall_bit_time, self.reset_cycle)

    @classmethod
    def from_bytes(cls, data: bytes, offset: int = 0) -> Self:
        fields = list(struct.unpack_from(cls.FORMAT, data, offset))
        fields[1] = fields[1] == 1
        return cls(*fields)


@dataclass
class LedEffect:
    effect: int = 0
    speed: int = 0
    brightness: int = 0
    red: int = 0
    green: int = 0
    blue: int = 0
    white: int = 0

    def to_bytes(self, channel: int) -> bytes:
        values = [validate_value(getattr(self, name), name) for name in
                  ("effect", "speed", "brightness", "red", "green", "blue", "white")]
        return bytes([validate_channel(channel), *values, 0])

    @classmethod
    def from_bytes(cls, data: bytes, offset: int = 0) -> Self:
        return cls(*data[offset:offset + 7])


@dataclass
class LedConfig:
    channel: int
    hardware: LedHardwareConfig = field(default_factory=LedHardwareConfig)
    effect: LedEffect = field(default_factory=LedEffect)

    SIZE = 23

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        if len(data) < cls.SIZE:
            raise RcuResponseError(f"LED config data too short: {len(data)} bytes, expected {cls.SIZE}")
        return cls(channel=data[0], hardware=LedHardwareConfig.from_bytes(data, 1), effect=LedEffect.from_bytes(data, 15))


class RcuLed:
    """Addressable LED strips on the two SPI channels."""

    CMD1 = RcuSubsystem.LED_SPI
    CMD: dict[str, int] = {
        "SET_HARDWARE_CONFIG": 0,   # 15 bytes
        "SET_EFFECT_CONTROL": 1,    # 9 bytes
        "GET_LED_CONFIG": 2,        # [channel, 0, 0, 0] -> 23 bytes
        "TRIGGER_LED": 3,           # [channel, on, 0, 0]
    }

    def __init__(self, protocol: "RcuProtocol"):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger

    async def set_hardware_config(self, unit: RcuUnit, channel: int, config: LedHardwareConfig) -> bool:
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_HARDWARE_CONFIG"], config.to_bytes(channel))

    async def set_effect(self, unit: RcuUnit, channel: int, effect: LedEffect) -> bool:
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_EFFECT_CONTROL"], effect.to_bytes(channel))

    async def get_config(self, unit: RcuUnit, channel: int) -> LedConfig:
        """Get hardware and effect settings of channel 1 or 2."""
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["GET_LED_CONFIG"], [validate_channel(channel), 0, 0, 0],
                                         skip_status_check=True)
        return LedConfig.from_bytes(frame.payload)

    async def trigger(self, unit: RcuUnit, channel: int, on: bool = True) -> bool:
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["TRIGGER_LED"],
                                           [validate_channel(channel), 1 if on else 0, 0, 0])
