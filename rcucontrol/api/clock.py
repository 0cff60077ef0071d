import datetime
from dataclasses import dataclass
from typing import Optional, Self, TYPE_CHECKING

from .models import RcuUnit
from .types import RcuSubsystem
from .validators import validate_range, validate_hour, validate_minute, validate_second
from ..exceptions import RcuResponseError

if TYPE_CHECKING:
    from .protocol import RcuProtocol


@dataclass
class RcuClockTime:
    """A unit's real-time clock. day_of_week is 0 for Sunday."""
    year: int       # 0-99, years since 2000
    month: int
    day: int
    day_of_week: int
    hour: int
    minute: int
    second: int

    def validate(self) -> None:
        validate_range(self.year, "year", 0, 99)
        validate_range(self.month, "month", 1, 12)
        validate_range(self.day, "day", 1, 31)
        validate_range(self.day_of_week, "day of week", 0, 6)
        validate_hour(self.hour)
        validate_minute(self.minute)
        validate_second(self.second)

    @classmethod
    def from_datetime(cls, when: datetime.datetime) -> Self:
        return cls(year=when.year % 100, month=when.month, day=when.day, day_of_week=when.isoweekday() % 7,
                   hour=when.hour, minute=when.minute, second=when.second)

    def to_bytes(self) -> bytes:
        self.validate()
        return bytes([self.year, self.month, self.day, self.day_of_week, self.hour, self.minute, self.second])

    def to_datetime(self) -> datetime.datetime:
        return datetime.datetime(2000 + self.year, self.month, self.day, self.hour, self.minute, self.second)


class RcuClock:

    CMD1 = RcuSubsystem.GENERAL
    CMD: dict[str, int] = {
        "SYNC_CLOCK": 9,    # [yy, mm, dd, dow, hh, mi, ss]
        "GET_CLOCK": 10,
    }

    def __init__(self, protocol: "RcuProtocol"):
        self.protocol = protocol

    async def sync_clock(self, unit: RcuUnit, when: Optional[datetime.datetime | RcuClockTime] = None) -> bool:
        """Set the unit's clock, to local time now unless given. Returns True."""
        if when is None: when = datetime.datetime.now()
        clock = when if isinstance(when, RcuClockTime) else RcuClockTime.from_datetime(when)
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SYNC_CLOCK"], clock.to_bytes())

    async def get_clock(self, unit: RcuUnit) -> RcuClockTime:
        """Read the unit's clock. Returns RcuClockTime, use to_datetime() for a full year."""
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["GET_CLOCK"], skip_status_check=True)
        data = frame.payload
        if len(data) < 7:
            raise RcuResponseError(f"Clock reply too short: {len(data)} bytes")
        return RcuClockTime(year=data[0], month=data[1], day=data[2], day_of_week=data[3],
                            hour=data[4], minute=data[5], second=data[6])
