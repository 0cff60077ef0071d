import logging
import struct
from dataclasses import dataclass, field
from typing import Optional, Self, TYPE_CHECKING

from .models import RcuUnit
from .types import RcuSubsystem, Const
from .validators import (validate_schedule_index, validate_hour, validate_minute, validate_value, validate_delay,
                         validate_count)
from ..exceptions import RcuResponseError

if TYPE_CHECKING:
    from .protocol import RcuProtocol


WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")


@dataclass
class Schedule:
    """Fires a list of scenes at a time of day on selected weekdays"""
    index: int
    enabled: bool = True
    weekdays: list[bool] = field(default_factory=lambda: [False] * 7)     # Mon..Sun
    hour: int = 0
    minute: int = 0
    second: int = 0                 # Always sent as 0
    scene_addresses: list[int] = field(default_factory=list)
    mode: int = 0
    dmx_duration: int = 0
    interval: int = 0

    HEADER = '<BBBBH6x7BBBBB'
    HEADER_SIZE = 23

    def to_bytes(self) -> bytes:
        validate_schedule_index(self.index)
        validate_hour(self.hour)
        validate_minute(self.minute)
        validate_value(self.mode, "schedule mode")
        validate_value(self.dmx_duration, "DMX duration")
        validate_delay(self.interval, "interval")
        validate_count(self.weekdays, "weekdays", 7, 7)
        validate_count(self.scene_addresses, "schedule scenes", Const.MAX_SCHEDULE_SCENES)
        addresses = [validate_value(a, "scene address") for a in self.scene_addresses]
        header = struct.pack(self.HEADER, self.index, 1 if self.enabled else 0, self.mode, self.dmx_duration,
                             self.interval, *[1 if d else 0 for d in self.weekdays],
                             self.hour, self.minute, 0, len(addresses))
        return header + bytes(addresses)

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        if len(data) < cls.HEADER_SIZE:
            raise RcuResponseError(f"Schedule data too short: {len(data)} bytes, expected at least {cls.HEADER_SIZE}")
        fields = struct.unpack_from(cls.HEADER, data, 0)
        index, enabled, mode, dmx_duration, interval = fields[:5]
        weekdays = [d == 1 for d in fields[5:12]]
        hour, minute, second, count = fields[12:16]
        count = min(count, Const.MAX_SCHEDULE_SCENES)
        addresses = list(data[cls.HEADER_SIZE:cls.HEADER_SIZE + count])
        return cls(index=index, enabled=enabled == 1, weekdays=weekdays, hour=hour, minute=minute, second=second,
                   scene_addresses=addresses, mode=mode, dmx_duration=dmx_duration, interval=interval)

    @property
    def time(self) -> str:
        return f"{self.hour:02d}:{self.minute:02d}"

    @property
    def days(self) -> str:
        return ",".join(d for d, on in zip(WEEKDAYS, self.weekdays) if on)


class RcuSchedules:

    CMD1 = RcuSubsystem.GENERAL
    CMD: dict[str, int] = {
        "SETUP_SCHEDULE": 21,
        "GET_SCHEDULE_INFOR": 22,   # [index] for one, [] for all (collector)
        "CLEAR_SCHEDULE": 33,       # [index] for one, [] for all
    }

    def __init__(self, protocol: "RcuProtocol"):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger

    async def setup(self, unit: RcuUnit, schedule: Schedule) -> bool:
        """Write a schedule (up to 32 scenes). Returns True."""
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SETUP_SCHEDULE"], schedule.to_bytes())

    async def get(self, unit: RcuUnit, index: int) -> Schedule:
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["GET_SCHEDULE_INFOR"], [validate_schedule_index(index)],
                                         skip_status_check=True)
        return Schedule.from_bytes(frame.payload)

    async def get_all(self, unit: RcuUnit, timeout: float = Const.GET_ALL_TIMEOUT) -> list[Schedule]:
        """Get every schedule, sorted by index."""
        result = await self.protocol.collect(unit, self.CMD1, self.CMD["GET_SCHEDULE_INFOR"], timeout=timeout)
        schedules = []
        for frame in result.frames:
            try:
                schedules.append(Schedule.from_bytes(frame.payload))
            except RcuResponseError as e:
                self.logger.warning(f"Skipping schedule record from {unit}: {e}")
        if not result.sentinel_seen:
            self.logger.warning(f"Schedules from {unit} incomplete, {len(schedules)} record(s) received")
        return sorted(schedules, key=lambda s: s.index)

    async def clear(self, unit: RcuUnit, index: Optional[int] = None) -> bool:
        """Delete one schedule, or every schedule when index is None."""
        data = [] if index is None else [validate_schedule_index(index)]
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["CLEAR_SCHEDULE"], data)
