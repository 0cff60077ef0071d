"""
DALI gateway control.

Commissioning and scan are long multi-reply exchanges. Besides device data the
unit interleaves two notification shapes, told apart by payload length:

    2 bytes             [old count, new count]      device count changed
    4 bytes FF FF FF a  address conflict on a       two devices answered as a
    anything else       [package, count, count x 37-byte device records]

events() yields these as tagged DaliEvent items in arrival order; commission()
and scan() drain that stream into a DaliScanResult.
"""
import contextlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncGenerator, Callable, Optional, Self, TYPE_CHECKING

from ..io import PacketKind
from ..io.collector import PacketObserver
from .models import RcuUnit
from .types import RcuSubsystem, Const
from .validators import validate_range, validate_value, validate_count
from ..exceptions import RcuCancelledError, RcuError, RcuConflictUnresolvedError

if TYPE_CHECKING:
    from .protocol import RcuProtocol


MAX_ADDRESS = 63
MAX_GROUP = 15
MAX_SCENE = 15
SCENE_NOT_SET = 0xFF
CONFLICT_MARKER = b'\xFF\xFF\xFF'


def validate_dali_address(address) -> int:
    return validate_range(address, "DALI address", 0, MAX_ADDRESS)


@dataclass
class DaliDevice:
    """One ballast or driver as reported by commissioning or scan"""
    index: int                  # Global position across reply frames
    address: int
    online: bool
    status: int
    device_type: int
    color_feature: int
    current_level: int
    min_level: int
    max_level: int
    fade_time: int
    fade_rate: int
    scene_levels: list[int]     # 16 entries, 0xFF = not in scene
    group_mask: int             # Bit N set = member of group N
    group_address: int          # Lighting group the device answers to

    SIZE = 37

    @property
    def groups(self) -> list[int]:
        return [i for i in range(16) if self.group_mask & (1 << i)]

    @classmethod
    def from_bytes(cls, data: bytes, index: int) -> Self:
        return cls(
            index = index,
            address = data[0],
            online = data[1] != 0,
            status = data[2],
            device_type = data[3],
            color_feature = data[4],
            current_level = data[5],
            min_level = data[6],
            max_level = data[7],
            fade_time = data[8],
            fade_rate = data[9],
            scene_levels = list(data[10:26]),
            group_mask = int.from_bytes(data[26:28], 'big'),
            group_address = data[28],
        )


@dataclass
class DaliDeviceConfig:
    """Scene levels and group membership to program into one device"""
    index: int
    address: int
    scene_levels: dict[int, int] = field(default_factory=dict)     # scene 0-15 -> level
    groups: list[int] = field(default_factory=list)                # 0-15

    SIZE = 20

    def to_bytes(self) -> bytes:
        validate_value(self.index, "DALI device index")
        validate_dali_address(self.address)
        levels = [SCENE_NOT_SET] * 16
        for scene, level in self.scene_levels.items():
            levels[validate_range(scene, "DALI scene", 0, MAX_SCENE)] = validate_value(level, "scene level")
        mask = 0
        for group in self.groups:
            mask |= 1 << validate_range(group, "DALI group", 0, MAX_GROUP)
        return bytes([self.index, self.address, *levels]) + mask.to_bytes(2, 'big')


class DaliEventKind(Enum):
    DEVICES = "devices"             # Device records from one reply frame
    DEVICE_COUNT = "device_count"   # Count changed during commissioning
    CONFLICT = "conflict"           # Two devices share an address
    DONE = "done"                   # Unit sent the end-of-exchange sentinel


@dataclass
class DaliEvent:
    kind: DaliEventKind
    devices: list[DaliDevice] = field(default_factory=list)
    old_count: Optional[int] = None
    new_count: Optional[int] = None
    address: Optional[int] = None


@dataclass
class DaliScanResult:
    success: bool = False
    devices: list[DaliDevice] = field(default_factory=list)
    conflict_addresses: list[int] = field(default_factory=list)
    packets_received: int = 0


@dataclass
class DaliConflictResult:
    address: int
    success: bool
    error: Optional[RcuError] = None


@dataclass
class DaliConflictResolution:
    results: list[DaliConflictResult] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return all(r.success for r in self.results)

    @property
    def failed_addresses(self) -> list[int]:
        return [r.address for r in self.results if not r.success]


@dataclass
class DaliTimings:
    commissioning_timeout: float = Const.DALI_COMMISSIONING_TIMEOUT
    scan_timeout: float = Const.DALI_SCAN_TIMEOUT
    keepalive_interval: float = Const.DALI_KEEPALIVE
    command_timeout: float = Const.DALI_TIMEOUT


DeviceCountObserver = Callable[[int, int], None]


class RcuDali:

    CMD1 = RcuSubsystem.DALI
    CMD: dict[str, int] = {
        "COMMISSIONING": 0,     # [0x00 reset | 0xFF extend | 0xFE resolve, addr, 0, 0]
        "SCAN": 1,              # [0, 0]
        "BROADCAST_ON": 2,      # [0, 0]
        "BROADCAST_OFF": 3,     # [0, 0]
        "TRIGGER_DEVICE": 4,    # [address, level, 0, 0]
        "TRIGGER_GROUP": 5,     # [group, level, 0, 0]
        "TRIGGER_SCENE": 6,     # [scene, 0, 0, 0]
        "MAPPING_ADDRESS": 7,   # 64 addresses
        "DEVICE_CONFIG": 8,     # Up to 16 x 20-byte records
        "APPLY_CONFIG": 9,      # [0, 0]
    }

    def __init__(self, protocol: "RcuProtocol", timings: Optional[DaliTimings] = None):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger
        self.timings = timings or DaliTimings()

    # ============================
    # COMMISSIONING AND SCAN
    # ============================

    async def events(self, unit: RcuUnit, command: str, data: bytes | list[int], timeout: float,
                     keepalive_interval: Optional[float] = None,
                     on_packet: Optional[PacketObserver] = None) -> AsyncGenerator[DaliEvent, None]:
        """Tagged stream of one commissioning or scan exchange. on_packet sees every datagram first."""
        device_index = 0
        async with contextlib.aclosing(self.protocol.packets(unit, self.CMD1, self.CMD[command], data, timeout=timeout,
                                                             keepalive_interval=keepalive_interval)) as packets:
            async for packet in packets:
                if on_packet: on_packet(packet.raw, packet.declared_length, packet.payload)
                if packet.kind == PacketKind.REJECTED:
                    continue
                if packet.kind == PacketKind.SENTINEL:
                    yield DaliEvent(DaliEventKind.DONE)
                    return
                payload = packet.frame.payload
                if len(payload) == 2:
                    self.logger.info(f"DALI device count on {unit} changed from {payload[0]} to {payload[1]}")
                    yield DaliEvent(DaliEventKind.DEVICE_COUNT, old_count=payload[0], new_count=payload[1])
                elif len(payload) == 4 and payload[:3] == CONFLICT_MARKER:
                    self.logger.warning(f"DALI address conflict on {unit}: address {payload[3]}")
                    yield DaliEvent(DaliEventKind.CONFLICT, address=payload[3])
                else:
                    devices = self._parse_devices(payload, device_index)
                    device_index += len(devices)
                    yield DaliEvent(DaliEventKind.DEVICES, devices=devices)

    def _parse_devices(self, payload: bytes, first_index: int) -> list[DaliDevice]:
        if len(payload) < 2:
            return []
        package, count = payload[0], payload[1]
        devices = []
        for i in range(min(count, Const.MAX_DALI_DEVICES_PER_FRAME)):
            start = 2 + i * DaliDevice.SIZE
            if start + 29 > len(payload):
                self.logger.warning(f"DALI package {package} truncated at device {i}")
                break
            devices.append(DaliDevice.from_bytes(payload[start:start + DaliDevice.SIZE], first_index + len(devices)))
        return devices

    async def _drain(self, events: AsyncGenerator[DaliEvent, None],
                     on_device_count: Optional[DeviceCountObserver]) -> DaliScanResult:
        result = DaliScanResult()
        async with contextlib.aclosing(events):
            async for event in events:
                if event.kind != DaliEventKind.DONE: result.packets_received += 1
                match event.kind:
                    case DaliEventKind.DONE:
                        result.success = True
                    case DaliEventKind.DEVICE_COUNT:
                        if on_device_count: on_device_count(event.old_count, event.new_count)
                    case DaliEventKind.CONFLICT:
                        if event.address not in result.conflict_addresses:
                            result.conflict_addresses.append(event.address)
                    case DaliEventKind.DEVICES:
                        result.devices.extend(event.devices)
        return result

    async def commission(self, unit: RcuUnit, extend: bool = False,
                         on_device_count: Optional[DeviceCountObserver] = None,
                         on_packet: Optional[PacketObserver] = None) -> DaliScanResult:
        """Reset (or extend) commissioning: the gateway readdresses the bus and reports every device.
        Takes minutes; a keepalive holds the UDP flow open."""
        self.logger.info(f"Starting DALI {'extend' if extend else 'reset'} commissioning on {unit}")
        events = self.events(unit, "COMMISSIONING", [0xFF if extend else 0x00, 0, 0, 0],
                             timeout=self.timings.commissioning_timeout,
                             keepalive_interval=self.timings.keepalive_interval, on_packet=on_packet)
        result = await self._drain(events, on_device_count)
        self.logger.info(f"DALI commissioning on {unit} {'completed' if result.success else 'timed out'}: "
                         f"{len(result.devices)} device(s), {len(result.conflict_addresses)} conflict(s)")
        return result

    async def scan(self, unit: RcuUnit, on_packet: Optional[PacketObserver] = None) -> DaliScanResult:
        """Re-read the devices already on the bus without readdressing them."""
        events = self.events(unit, "SCAN", [0, 0], timeout=self.timings.scan_timeout, on_packet=on_packet)
        result = await self._drain(events, None)
        self.logger.info(f"DALI scan on {unit} {'completed' if result.success else 'timed out'}: {len(result.devices)} device(s)")
        return result

    async def resolve_conflicts(self, unit: RcuUnit, addresses: list[int], strict: bool = False) -> DaliConflictResolution:
        """Ask the gateway to readdress each conflicting address, one at a time.
        With strict, raises RcuConflictUnresolvedError naming any address that failed."""
        for address in addresses:
            validate_dali_address(address)
        resolution = DaliConflictResolution()
        for address in addresses:
            try:
                await self.protocol.send(unit, self.CMD1, self.CMD["COMMISSIONING"], [0xFE, address, 0, 0],
                                         timeout=self.timings.command_timeout)
            except RcuCancelledError:
                raise
            except RcuError as e:
                self.logger.warning(f"Could not resolve DALI conflict on address {address}: {e}")
                resolution.results.append(DaliConflictResult(address, False, e))
                continue
            resolution.results.append(DaliConflictResult(address, True))
        if strict and not resolution.success:
            raise RcuConflictUnresolvedError(resolution.failed_addresses)
        return resolution

    # ============================
    # CONTROL
    # ============================

    async def broadcast(self, unit: RcuUnit, on: bool) -> bool:
        """Switch every device on the bus on or off."""
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["BROADCAST_ON" if on else "BROADCAST_OFF"], [0, 0])

    async def trigger_device(self, unit: RcuUnit, address: int, level: int) -> bool:
        data = [validate_dali_address(address), validate_value(level, "level"), 0, 0]
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["TRIGGER_DEVICE"], data)

    async def trigger_group(self, unit: RcuUnit, group: int, level: int) -> bool:
        data = [validate_range(group, "DALI group", 0, MAX_GROUP), validate_value(level, "level"), 0, 0]
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["TRIGGER_GROUP"], data)

    async def trigger_scene(self, unit: RcuUnit, scene: int) -> bool:
        data = [validate_range(scene, "DALI scene", 0, MAX_SCENE), 0, 0, 0]
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["TRIGGER_SCENE"], data)

    # ============================
    # CONFIGURATION
    # ============================

    async def set_address_mapping(self, unit: RcuUnit, mapping: list[int]) -> bool:
        """Send the full 64-entry address map; mapping[i] is the new address of device i."""
        validate_count(mapping, "DALI address mapping", Const.DALI_ADDRESS_COUNT, Const.DALI_ADDRESS_COUNT)
        data = [validate_range(a, f"DALI address at index {i}", 0, MAX_ADDRESS) for i, a in enumerate(mapping)]
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["MAPPING_ADDRESS"], data,
                                           timeout=self.timings.command_timeout)

    async def configure_devices(self, unit: RcuUnit, configs: list[DaliDeviceConfig]) -> bool:
        """Program scene levels and groups into up to 16 devices, then apply. Returns True."""
        validate_count(configs, "DALI device configs", Const.MAX_DALI_DEVICES_PER_FRAME, 1)
        data = b''.join(c.to_bytes() for c in configs)
        await self.protocol.send(unit, self.CMD1, self.CMD["DEVICE_CONFIG"], data, timeout=self.timings.command_timeout)
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["APPLY_CONFIG"], [0, 0],
                                           timeout=self.timings.command_timeout)
