import contextlib
import logging
from typing import Optional, TYPE_CHECKING

from ..io import PacketKind, can_id_to_int, ip_to_bytes
from ..exceptions import RcuTimeoutError
from .models import RcuUnit, RcuUnitInfo
from .types import RcuSubsystem, RcuHardwareConfig, Const
from .validators import validate_range

if TYPE_CHECKING:
    from .protocol import RcuProtocol


class RcuGeneral:
    """Unit identity and network settings: discovery, IP, CAN ID and hardware configuration."""

    CMD1 = RcuSubsystem.GENERAL
    CMD: dict[str, int] = {
        "REQUEST_UNIT": 1,          # Unit status, first byte >= 10 once the application is running
        "HARDWARE_INFO": 4,         # Broadcast discovery
        "CHANGE_IP": 7,             # [new ip x4, old ip x4]
        "CHANGE_ID": 8,             # [last CAN ID octet]
        "HARDWARE_CONFIG": 12,      # [mode | can load | recovery]
    }

    def __init__(self, protocol: "RcuProtocol"):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger

    async def discover(self, timeout: float = Const.DISCOVERY_TIMEOUT, broadcast_ip: Optional[str] = None,
                       can_id: str = "0.0.0.0") -> list[RcuUnitInfo]:
        """Broadcast a hardware info request and return every unit that answers before the timeout."""
        result = await self.protocol.collect(None, self.CMD1, self.CMD["HARDWARE_INFO"], b'',
                                             timeout=timeout,
                                             address=can_id_to_int(can_id) if can_id != "0.0.0.0" else 0,
                                             broadcast_ip=broadcast_ip,
                                             checksum_includes_length=True)
        units: dict[tuple[str, str], RcuUnitInfo] = {}
        for frame, sender in zip(result.frames, result.senders):
            info = RcuUnitInfo.from_bytes(frame.to_bytes(), sender[0])
            if info is None:
                self.logger.debug(f"Ignoring short hardware info reply from {sender[0]}")
                continue
            units.setdefault((info.ip, info.can_id), info)
        self.logger.info(f"Discovery found {len(units)} unit(s)")
        return list(units.values())

    async def request_unit(self, unit: RcuUnit, timeout: Optional[float] = None) -> bytes:
        """Query the unit's status block. Returns the raw payload."""
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["REQUEST_UNIT"], skip_status_check=True, timeout=timeout)
        return frame.payload

    async def change_ip(self, unit: RcuUnit, new_ip: str, broadcast: bool = False) -> bool:
        """Change a unit's IP address. With broadcast the request goes to the limited broadcast
        address, which reaches units on another subnet. Returns True."""
        data = ip_to_bytes(new_ip, "new ip") + ip_to_bytes(unit.ip, "old ip")
        self.logger.info(f"Changing IP of {unit} to {new_ip}{' via broadcast' if broadcast else ''}")
        if broadcast:
            return await self.protocol.send_ok(None, self.CMD1, self.CMD["CHANGE_IP"], data, address=unit.address)
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["CHANGE_IP"], data)

    async def change_can_id(self, unit: RcuUnit, last_octet: int) -> str:
        """Change the last octet of a unit's CAN ID (1-255). Returns the new CAN ID."""
        last_octet = validate_range(last_octet, "CAN ID last part", 1, 255)
        await self.protocol.send_ok(unit, self.CMD1, self.CMD["CHANGE_ID"], [last_octet])
        prefix = unit.can_id.rsplit(".", 1)[0]
        return f"{prefix}.{last_octet}"

    async def set_hardware_config(self, unit: RcuUnit, config: RcuHardwareConfig) -> bool:
        """Set action mode, CAN load and recovery. Returns True."""
        self.logger.info(f"Setting hardware config of {unit}: {config.mode.label}, CAN load {config.can_load}, recovery {config.recovery}")
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["HARDWARE_CONFIG"], [config.bitmask()])

    async def get_info(self, unit: RcuUnit, timeout: float = Const.DISCOVERY_TIMEOUT) -> RcuUnitInfo:
        """Ask one unit for its hardware info. Returns the first valid reply."""
        async with contextlib.aclosing(self.protocol.packets(unit, self.CMD1, self.CMD["HARDWARE_INFO"], b'',
                                                             timeout=timeout, checksum_includes_length=True)) as packets:
            async for packet in packets:
                if packet.kind != PacketKind.DATA: continue
                info = RcuUnitInfo.from_bytes(packet.frame.to_bytes(), unit.ip)
                if info is not None:
                    return info
        raise RcuTimeoutError(f"No hardware info from {unit} within {timeout:.1f}s")

    async def get_hardware_config(self, unit: RcuUnit, timeout: float = Const.DISCOVERY_TIMEOUT) -> RcuHardwareConfig:
        """Get action mode, CAN load and recovery from the unit's hardware info."""
        return (await self.get_info(unit, timeout)).hardware
