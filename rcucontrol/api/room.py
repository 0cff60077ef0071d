"""
Hotel room controller settings.

The unit runs up to five rooms. Each room moves between occupancy states
(unrent, unoccupied, check-in, welcome, welcome night, staff, out of service),
and every state carries its own aircon settings and scene list.

Wire layout of the room configuration:

    [room amount, room mode, client mode, 0]
    IP_CONF  [tcp mode, slave amount, port LE, 4 x slave ip]     20 bytes
    [client ip x4, client port LE, 14 x 0]
    5 x ROOM_C                                                  210 bytes each

Room status is [aircon mode, 11 x 0] followed by 5 x [rent, guest, 18 x 0].
"""
import logging
import struct
from dataclasses import dataclass, field
from typing import Self, TYPE_CHECKING

from ..io import ip_to_bytes, bytes_to_ip
from .models import RcuUnit
from .types import RcuSubsystem, RoomState, Const
from .validators import validate_value, validate_delay, validate_count, validate_range
from ..exceptions import RcuResponseError

if TYPE_CHECKING:
    from .protocol import RcuProtocol


MAX_SLAVES = 4
MAX_STATE_SCENES = 20
STATE_COUNT = len(RoomState)


def _ip(ip: str, field: str) -> bytes:
    return ip_to_bytes(ip, field) if ip else bytes(4)


@dataclass
class RoomStateConfig:
    """Aircon settings and scenes applied when a room enters one occupancy state"""
    aircon_active: bool = False
    aircon_mode: int = 0
    aircon_fan_speed: int = 0
    aircon_cool_setpoint: int = 0
    aircon_heat_setpoint: int = 0
    scenes: list[int] = field(default_factory=list)


@dataclass
class RoomConfig:
    address: int = 0
    occupancy_type: int = 0
    occupancy_scene_type: int = 0
    enable_welcome_night: bool = False
    pir_init_time: int = 0
    pir_verify_time: int = 0
    unrent_period: int = 0
    standby_time: int = 0
    period: int = 0
    states: dict[RoomState, RoomStateConfig] = field(default_factory=dict)

    SIZE = 210
    HEADER = '<6BHHH8x'

    def state(self, state: RoomState) -> RoomStateConfig:
        return self.states.get(state) or RoomStateConfig()

    def to_bytes(self) -> bytes:
        for name in ("address", "occupancy_type", "occupancy_scene_type", "pir_init_time", "pir_verify_time"):
            validate_value(getattr(self, name), f"room {name.replace('_', ' ')}")
        for name in ("unrent_period", "standby_time", "period"):
            validate_delay(getattr(self, name), f"room {name.replace('_', ' ')}")
        data = bytearray(struct.pack(self.HEADER, self.address, self.occupancy_type, self.occupancy_scene_type,
                                     1 if self.enable_welcome_night else 0, self.pir_init_time, self.pir_verify_time,
                                     self.unrent_period, self.standby_time, self.period))
        states = [self.state(s) for s in RoomState]
        for s in states:
            data += bytes([1 if s.aircon_active else 0,
                           validate_value(s.aircon_mode, "aircon mode"),
                           validate_value(s.aircon_fan_speed, "aircon fan speed"),
                           validate_value(s.aircon_cool_setpoint, "aircon cool setpoint"),
                           validate_value(s.aircon_heat_setpoint, "aircon heat setpoint")])
        for s in states:
            data.append(validate_count(s.scenes, "state scenes", MAX_STATE_SCENES))
        data += bytes(8)
        for s in states:
            data += bytes(validate_value(a, "scene address") for a in s.scenes).ljust(MAX_STATE_SCENES, b'\x00')
        return bytes(data)

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        if len(data) < cls.SIZE:
            raise RcuResponseError(f"Room config data too short: {len(data)} bytes, expected {cls.SIZE}")
        header = struct.unpack_from(cls.HEADER, data, 0)
        pos = struct.calcsize(cls.HEADER)
        states: dict[RoomState, RoomStateConfig] = {}
        for s in RoomState:
            active, mode, fan, cool, heat = data[pos:pos + 5]
            states[s] = RoomStateConfig(active != 0, mode, fan, cool, heat)
            pos += 5
        amounts = data[pos:pos + STATE_COUNT]
        pos += STATE_COUNT + 8
        for s, amount in zip(RoomState, amounts):
            states[s].scenes = list(data[pos:pos + min(amount, MAX_STATE_SCENES)])
            pos += MAX_STATE_SCENES
        return cls(*header[:3], header[3] != 0, *header[4:], states=states)


@dataclass
class RoomGeneralConfig:
    room_amount: int = 0            # 0 means len(rooms)
    room_mode: int = 0
    client_mode: int = 0
    tcp_mode: int = 0
    slave_amount: int = 0
    port: int = 0
    slave_ips: list[str] = field(default_factory=list)
    client_ip: str = ""
    client_port: int = 0

    SIZE = 44


@dataclass
class RoomConfiguration:
    general: RoomGeneralConfig = field(default_factory=RoomGeneralConfig)
    rooms: list[RoomConfig] = field(default_factory=list)

    def to_bytes(self) -> bytes:
        g = self.general
        validate_count(self.rooms, "rooms", Const.MAX_ROOMS)
        validate_count(g.slave_ips, "slave IPs", MAX_SLAVES)
        data = bytearray([validate_value(g.room_amount or len(self.rooms), "room amount"),
                          validate_value(g.room_mode, "room mode"),
                          validate_value(g.client_mode, "client mode"), 0])
        data += bytes([validate_value(g.tcp_mode, "tcp mode"), validate_value(g.slave_amount, "slave amount")])
        data += struct.pack('<H', validate_range(g.port, "port", 0, 0xFFFF))
        for i in range(MAX_SLAVES):
            data += _ip(g.slave_ips[i], f"slave ip {i + 1}") if i < len(g.slave_ips) else bytes(4)
        data += _ip(g.client_ip, "client ip")
        data += struct.pack('<H', validate_range(g.client_port, "client port", 0, 0xFFFF))
        data += bytes(14)
        for i in range(Const.MAX_ROOMS):
            data += self.rooms[i].to_bytes() if i < len(self.rooms) else bytes(RoomConfig.SIZE)
        return bytes(data)

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        size = RoomGeneralConfig.SIZE + Const.MAX_ROOMS * RoomConfig.SIZE
        if len(data) < size:
            raise RcuResponseError(f"Room configuration too short: {len(data)} bytes, expected {size}")
        room_amount, room_mode, client_mode = data[0], data[1], data[2]
        tcp_mode, slave_amount = data[4], data[5]
        port = struct.unpack_from('<H', data, 6)[0]
        slave_ips = [bytes_to_ip(data[8 + 4 * i:12 + 4 * i]) for i in range(MAX_SLAVES)]
        client_ip = bytes_to_ip(data[24:28])
        client_port = struct.unpack_from('<H', data, 28)[0]
        rooms = []
        for i in range(min(room_amount, Const.MAX_ROOMS)):
            start = RoomGeneralConfig.SIZE + i * RoomConfig.SIZE
            rooms.append(RoomConfig.from_bytes(data[start:start + RoomConfig.SIZE]))
        general = RoomGeneralConfig(room_amount, room_mode, client_mode, tcp_mode, slave_amount, port,
                                    slave_ips, client_ip, client_port)
        return cls(general=general, rooms=rooms)


@dataclass
class RoomStatus:
    rent: int = 0
    guest: int = 0


@dataclass
class RoomStatuses:
    aircon_mode: int = 0            # 0 cool, 1 heat
    rooms: list[RoomStatus] = field(default_factory=list)

    SIZE = 12 + 5 * 20

    def to_bytes(self) -> bytes:
        validate_count(self.rooms, "rooms", Const.MAX_ROOMS)
        data = bytearray([validate_value(self.aircon_mode, "aircon mode")]) + bytes(11)
        for i in range(Const.MAX_ROOMS):
            room = self.rooms[i] if i < len(self.rooms) else RoomStatus()
            data += bytes([validate_value(room.rent, "rent status"), validate_value(room.guest, "guest status")]) + bytes(18)
        return bytes(data)

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        if len(data) < cls.SIZE:
            raise RcuResponseError(f"Room status too short: {len(data)} bytes, expected {cls.SIZE}")
        rooms = [RoomStatus(rent=data[12 + 20 * i], guest=data[13 + 20 * i]) for i in range(Const.MAX_ROOMS)]
        return cls(aircon_mode=data[0], rooms=rooms)


class RcuRoom:

    CMD1 = RcuSubsystem.GENERAL
    CMD: dict[str, int] = {
        "GET_ROOM_CONFIG": 34,
        "SET_ROOM_CONFIG": 35,
        "GET_ROOM_STATUS": 36,
        "SET_ROOM_STATUS": 37,
    }

    def __init__(self, protocol: "RcuProtocol"):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger

    async def get_config(self, unit: RcuUnit) -> RoomConfiguration:
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["GET_ROOM_CONFIG"], skip_status_check=True)
        return RoomConfiguration.from_bytes(frame.payload)

    async def set_config(self, unit: RcuUnit, config: RoomConfiguration) -> bool:
        """Write the general settings and up to five rooms. Returns True."""
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_ROOM_CONFIG"], config.to_bytes())

    async def get_status(self, unit: RcuUnit) -> RoomStatuses:
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["GET_ROOM_STATUS"], skip_status_check=True)
        return RoomStatuses.from_bytes(frame.payload)

    async def set_status(self, unit: RcuUnit, status: RoomStatuses) -> bool:
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_ROOM_STATUS"], status.to_bytes())
