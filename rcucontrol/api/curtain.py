import logging
import struct
from dataclasses import dataclass
from typing import Optional, Self, TYPE_CHECKING

from .models import RcuUnit
from .types import RcuSubsystem, CurtainAction, Const
from .validators import validate_curtain_index, validate_value, validate_range, validate_delay
from ..exceptions import RcuResponseError

if TYPE_CHECKING:
    from .protocol import RcuProtocol


@dataclass
class CurtainConfig:
    index: int
    address: int
    type: int = 0
    pause_period: int = 0           # Seconds
    transition_period: int = 0      # Seconds, 16 bit
    open_group: int = 0
    close_group: int = 0
    stop_group: int = 0

    SIZE = 15

    def to_bytes(self) -> bytes:
        validate_curtain_index(self.index)
        validate_value(self.address, "curtain address")
        validate_value(self.type, "curtain type")
        validate_value(self.pause_period, "pause period")
        validate_delay(self.transition_period, "transition period")
        for name in ("open_group", "close_group", "stop_group"):
            validate_value(getattr(self, name), name.replace("_", " "))
        return struct.pack('<BBBBH6xBBB', self.index, self.address, self.type, self.pause_period,
                           self.transition_period, self.open_group, self.close_group, self.stop_group)

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        if len(data) < cls.SIZE:
            raise RcuResponseError(f"Curtain config data too short: {len(data)} bytes, expected {cls.SIZE}")
        return cls(*struct.unpack_from('<BBBBH6xBBB', data, 0))


class RcuCurtain:

    CMD1 = RcuSubsystem.CURTAIN
    CMD: dict[str, int] = {
        "GET_CONFIG": 0,        # [index] for one, [] for all (collector)
        "SET_CONFIG": 1,        # 15-byte record
        "SET_CURTAIN": 2,       # [address, action]
        "CLEAR": 4,             # [index] for one, [] for all
    }

    def __init__(self, protocol: "RcuProtocol"):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger

    async def get_config(self, unit: RcuUnit, index: int) -> CurtainConfig:
        """Get one curtain configuration by index (0-31)."""
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["GET_CONFIG"], [validate_curtain_index(index)],
                                         skip_status_check=True)
        return CurtainConfig.from_bytes(frame.payload)

    async def get_configs(self, unit: RcuUnit, timeout: float = Const.GET_ALL_TIMEOUT) -> list[CurtainConfig]:
        """Get every curtain configuration. Returns whatever arrived if the unit stops early."""
        result = await self.protocol.collect(unit, self.CMD1, self.CMD["GET_CONFIG"], timeout=timeout)
        configs = []
        for frame in result.frames:
            try:
                configs.append(CurtainConfig.from_bytes(frame.payload))
            except RcuResponseError as e:
                self.logger.warning(f"Skipping curtain record from {unit}: {e}")
        if not result.sentinel_seen:
            self.logger.warning(f"Curtain configs from {unit} incomplete, {len(configs)} record(s) received")
        return configs

    async def set_config(self, unit: RcuUnit, config: CurtainConfig) -> bool:
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_CONFIG"], config.to_bytes())

    async def control(self, unit: RcuUnit, address: int, action: CurtainAction | int) -> bool:
        """Stop (0), open (1) or close (2) the curtain at address. Returns True."""
        action = validate_range(int(action), "curtain action", CurtainAction.STOP, CurtainAction.CLOSE)
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_CURTAIN"],
                                           [validate_value(address, "curtain address"), action])

    async def clear(self, unit: RcuUnit, index: Optional[int] = None) -> bool:
        """Delete one curtain configuration, or all of them when index is None."""
        data = [] if index is None else [validate_curtain_index(index)]
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["CLEAR"], data)
