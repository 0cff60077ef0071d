import logging
import struct
from dataclasses import dataclass
from typing import Optional, Self, TYPE_CHECKING

from ..io import knx_address_to_int, int_to_knx_address
from .models import RcuUnit
from .types import RcuSubsystem, Const
from .validators import validate_knx_address, validate_range, validate_value
from ..exceptions import RcuResponseError

if TYPE_CHECKING:
    from .protocol import RcuProtocol


@dataclass
class KnxConfig:
    """Mapping between an RCU group and up to three KNX group addresses ("area/line/device")"""
    address: int
    type: int = 0
    factor: int = 1
    feedback: int = 0
    rcu_group: int = 0
    switch_group: str = ""
    dimming_group: str = ""
    value_group: str = ""

    SIZE = 14
    FORMAT = '<HBBBxxBHHH'

    def to_bytes(self) -> bytes:
        validate_knx_address(self.address)
        validate_range(self.type, "KNX type", 0, Const.MAX_KNX_TYPE)
        validate_range(self.factor, "factor", 1, 255)
        validate_range(self.feedback, "KNX feedback", 0, Const.MAX_KNX_FEEDBACK)
        validate_value(self.rcu_group, "RCU group")
        return struct.pack(self.FORMAT, self.address, self.type, self.factor, self.feedback, self.rcu_group,
                           knx_address_to_int(self.switch_group),
                           knx_address_to_int(self.dimming_group),
                           knx_address_to_int(self.value_group))

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        if len(data) < cls.SIZE:
            raise RcuResponseError(f"KNX config data too short: {len(data)} bytes, expected {cls.SIZE}")
        address, type, factor, feedback, rcu_group, switch, dimming, value = struct.unpack_from(cls.FORMAT, data, 0)
        return cls(
            address = address,
            type = type,
            factor = factor,
            feedback = feedback,
            rcu_group = rcu_group,
            switch_group = int_to_knx_address(switch),
            dimming_group = int_to_knx_address(dimming),
            value_group = int_to_knx_address(value),
        )


class RcuKnx:

    CMD1 = RcuSubsystem.KNX
    CMD: dict[str, int] = {
        "GET_OUT_CONFIG": 0,    # [address LE] for one, [] for all (collector)
        "SET_OUT_CONFIG": 1,    # 14-byte record
        "SET_OUT": 2,           # [address LE]
        "CLEAR": 8,             # [address LE] for one, [] for all
    }

    def __init__(self, protocol: "RcuProtocol"):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger

    async def get_config(self, unit: RcuUnit, address: int) -> KnxConfig:
        """Get one KNX output configuration (address 0-511)."""
        data = struct.pack('<H', validate_knx_address(address))
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["GET_OUT_CONFIG"], data, skip_status_check=True)
        return KnxConfig.from_bytes(frame.payload)

    async def get_configs(self, unit: RcuUnit, timeout: float = Const.GET_ALL_TIMEOUT) -> list[KnxConfig]:
        """Get every KNX output configuration. Returns whatever arrived if the unit stops early."""
        result = await self.protocol.collect(unit, self.CMD1, self.CMD["GET_OUT_CONFIG"], timeout=timeout)
        configs = []
        for frame in result.frames:
            try:
                configs.append(KnxConfig.from_bytes(frame.payload))
            except RcuResponseError as e:
                self.logger.warning(f"Skipping KNX record from {unit}: {e}")
        if not result.sentinel_seen:
            self.logger.warning(f"KNX configs from {unit} incomplete, {len(configs)} record(s) received")
        return configs

    async def set_config(self, unit: RcuUnit, config: KnxConfig) -> bool:
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_OUT_CONFIG"], config.to_bytes())

    async def trigger(self, unit: RcuUnit, address: int) -> bool:
        """Fire the KNX output at address. Returns True."""
        data = struct.pack('<H', validate_knx_address(address))
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_OUT"], data)

    async def clear(self, unit: RcuUnit, address: Optional[int] = None) -> bool:
        """Delete one KNX output configuration, or all of them when address is None."""
        data = b'' if address is None else struct.pack('<H', validate_knx_address(address))
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["CLEAR"], data)
