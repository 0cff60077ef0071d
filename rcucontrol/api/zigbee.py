"""
Zigbee coordinator on the unit.

Pairing is a single-device workflow:

    OPENING -> AWAITING_DEVICE -> CLOSING -> DONE
    OPENING -> AWAITING_DEVICE -> (timeout) CLOSING -> TIMED_OUT

The network is opened, the first NEW_DEVICE announcement is taken, and the
network is closed again whatever happened. explore() never returns more than
one device; no device is a normal outcome, not an error.
"""
import contextlib
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Self, TYPE_CHECKING

from ..io import PacketKind, error_name
from .models import RcuUnit
from .types import RcuSubsystem, ZigbeeCommand, Const
from .validators import validate_range, validate_value
from ..exceptions import RcuCancelledError, RcuDeviceError, RcuError, RcuResponseError, RcuTimeoutError, RcuValidationError

if TYPE_CHECKING:
    from .protocol import RcuProtocol


@dataclass
class ZigbeeEndpoint:
    id: int
    value: int
    address: int = 0        # RCU group bound to the endpoint


@dataclass
class ZigbeeDevice:
    ieee_address: str       # "00:11:22:33:44:55:66:77"
    device_type: int
    num_endpoints: int = 0
    endpoints: list[ZigbeeEndpoint] = field(default_factory=list)
    rssi: int = 0
    status: int = 0

    MIN_SIZE = 10
    FULL_SIZE = 28

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        if len(data) < cls.MIN_SIZE:
            raise RcuResponseError(f"Zigbee device data too short: {len(data)} bytes, expected at least {cls.MIN_SIZE}")
        endpoints = []
        for i in range(4):
            base = 10 + i * 3
            if base + 2 >= len(data): break
            address = data[22 + i] if 22 + i < len(data) else 0
            endpoints.append(ZigbeeEndpoint(id=data[base], value=data[base + 1] | (data[base + 2] << 8), address=address))
        return cls(
            ieee_address = ":".join(f"{b:02X}" for b in data[0:8]),
            device_type = data[8],
            num_endpoints = data[9],
            endpoints = endpoints,
            rssi = data[26] if len(data) > 26 else 0,
            status = data[27] if len(data) > 27 else 0,
        )


def ieee_to_bytes(ieee_address: str) -> bytes:
    parts = ieee_address.split(":") if isinstance(ieee_address, str) else []
    try:
        if len(parts) != 8: raise ValueError(ieee_address)
        return bytes(int(p, 16) for p in parts)
    except ValueError as e:
        raise RcuValidationError("IEEE address", actual=ieee_address,
                                 message=f"IEEE address must be 8 hex bytes separated by ':', received {ieee_address!r}") from e


class ExploreState(Enum):
    OPENING = "opening"
    AWAITING_DEVICE = "awaiting_device"
    CLOSING = "closing"
    DONE = "done"
    TIMED_OUT = "timed_out"


@dataclass
class ZigbeeExploreResult:
    success: bool
    device: Optional[ZigbeeDevice] = None
    state: ExploreState = ExploreState.TIMED_OUT
    close_error: Optional[RcuError] = None


@dataclass
class ZigbeeTimings:
    explore_timeout: float = Const.ZIGBEE_EXPLORE_TIMEOUT
    close_flush: float = 0.1        # Time allowed for the close command to leave before the socket goes


DeviceFoundObserver = Callable[[ZigbeeDevice], None]


class RcuZigbee:

    CMD1 = RcuSubsystem.ZIGBEE
    CMD: dict[str, int] = {
        "GET_DEVICES": 0,       # Collector, one device per frame
        "SEND_CMD": 1,          # [ieee x8, device type, endpoint, command]
        "OPEN_NETWORK": 2,
        "CLOSE_NETWORK": 3,
        "NEW_DEVICE": 4,        # Unsolicited, sent while the network is open
    }

    def __init__(self, protocol: "RcuProtocol", timings: Optional[ZigbeeTimings] = None):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger
        self.timings = timings or ZigbeeTimings()

    async def get_devices(self, unit: RcuUnit, timeout: float = Const.GET_ALL_TIMEOUT) -> list[ZigbeeDevice]:
        """Get every device paired with the unit's coordinator."""
        result = await self.protocol.collect(unit, self.CMD1, self.CMD["GET_DEVICES"], timeout=timeout)
        devices = []
        for frame in result.frames:
            if len(frame.payload) < ZigbeeDevice.FULL_SIZE:
                self.logger.warning(f"Skipping short Zigbee device record from {unit}: {len(frame.payload)} bytes")
                continue
            devices.append(ZigbeeDevice.from_bytes(frame.payload))
        if not result.sentinel_seen:
            self.logger.warning(f"Zigbee devices from {unit} incomplete, {len(devices)} device(s) received")
        return devices

    async def send_command(self, unit: RcuUnit, ieee_address: str, device_type: int, endpoint: int,
                           command: ZigbeeCommand | int) -> bool:
        """Switch a device endpoint off (0), on (1) or toggle it (2)."""
        data = ieee_to_bytes(ieee_address) + bytes([
            validate_value(device_type, "device type"),
            validate_value(endpoint, "endpoint"),
            validate_range(int(command), "Zigbee command", ZigbeeCommand.OFF, ZigbeeCommand.TOGGLE),
        ])
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SEND_CMD"], data)

    async def open_network(self, unit: RcuUnit) -> bool:
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["OPEN_NETWORK"])

    async def close_network(self, unit: RcuUnit) -> bool:
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["CLOSE_NETWORK"])

    async def _close_after_explore(self, unit: RcuUnit) -> Optional[RcuError]:
        """Close the network without waiting longer than the flush time for an acknowledgement."""
        try:
            await self.protocol.send(unit, self.CMD1, self.CMD["CLOSE_NETWORK"], timeout=self.timings.close_flush)
        except RcuTimeoutError:
            self.logger.debug(f"No acknowledgement of Zigbee network close from {unit}")
        except RcuCancelledError:
            raise
        except RcuError as e:
            self.logger.warning(f"Closing Zigbee network on {unit} failed: {e}")
            return e
        return None

    async def explore(self, unit: RcuUnit, timeout: Optional[float] = None,
                      on_device_found: Optional[DeviceFoundObserver] = None) -> ZigbeeExploreResult:
        """Open the network, wait for one device to join, then close the network.
        Returns success False with no device if nothing joined before the timeout."""
        if timeout is None: timeout = self.timings.explore_timeout
        state = ExploreState.OPENING
        device: Optional[ZigbeeDevice] = None
        self.logger.info(f"Opening Zigbee network on {unit} for {timeout:.0f}s")
        packets = self.protocol.packets(unit, self.CMD1, self.CMD["OPEN_NETWORK"], timeout=timeout,
                                        extra_commands=[(self.CMD1, self.CMD["NEW_DEVICE"])], stop_at_sentinel=False)
        async with contextlib.aclosing(packets):
            async for packet in packets:
                if packet.kind == PacketKind.REJECTED:
                    # The unit refuses to open with an error-flagged acknowledgement
                    error = packet.error
                    if isinstance(error, RcuDeviceError) and (error.cmd1, error.cmd2) == (self.CMD1, self.CMD["OPEN_NETWORK"]):
                        raise error
                    continue
                frame = packet.frame
                if frame.cmd2 == self.CMD["OPEN_NETWORK"]:
                    if frame.status:
                        raise RcuDeviceError(frame.status, error_name(frame.status), frame.cmd1, frame.cmd2)
                    if state == ExploreState.OPENING:
                        state = ExploreState.AWAITING_DEVICE
                        self.logger.debug(f"Zigbee network open on {unit}, waiting for a device")
                    continue
                if state != ExploreState.AWAITING_DEVICE:
                    self.logger.warning(f"Ignoring Zigbee announcement from {unit} before the network open acknowledgement")
                    continue
                try:
                    device = ZigbeeDevice.from_bytes(frame.payload)
                except RcuResponseError as e:
                    self.logger.warning(f"Ignoring malformed Zigbee announcement from {unit}: {e}")
                    continue
                break

        self.logger.debug(f"Closing Zigbee network on {unit}")
        close_error = await self._close_after_explore(unit)

        if device is None:
            self.logger.info(f"No Zigbee device joined {unit} within {timeout:.0f}s")
            return ZigbeeExploreResult(success=False, state=ExploreState.TIMED_OUT, close_error=close_error)
        self.logger.info(f"Zigbee device {device.ieee_address} (type {device.device_type}) joined {unit}")
        if on_device_found: on_device_found(device)
        return ZigbeeExploreResult(success=True, device=device, state=ExploreState.DONE, close_error=close_error)
