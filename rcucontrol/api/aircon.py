import dataclasses
import logging
import struct
from dataclasses import dataclass
from typing import Optional, Self, TYPE_CHECKING

from .models import RcuUnit
from .types import RcuSubsystem, AcFanSpeed, AcMode, Const
from .validators import validate_group, validate_value, validate_range, validate_count
from ..exceptions import RcuResponseError

if TYPE_CHECKING:
    from .protocol import RcuProtocol


@dataclass
class AcStatus:
    """Live state of an aircon group"""
    group: int
    status: int
    power: bool
    fan_speed: int
    mode: int
    swing: int
    temperature: float          # Setpoint, degrees
    room_temperature: float

    SIZE = 10

    @classmethod
    def from_bytes(cls, data: bytes, group: int = 0) -> Self:
        if len(data) < cls.SIZE:
            raise RcuResponseError(f"AC status data too short: {len(data)} bytes, expected {cls.SIZE}")
        status, power, fan, mode, swing, _, temp, room = struct.unpack_from('<6Bhh', data, 0)
        return cls(group=group, status=status, power=power == 1, fan_speed=fan, mode=mode, swing=swing,
                   temperature=temp / 10, room_temperature=room / 10)

    @property
    def fan_speed_label(self) -> str:
        return AcFanSpeed(self.fan_speed).name.title() if self.fan_speed in AcFanSpeed._value2member_map_ else "Unknown"

    @property
    def mode_label(self) -> str:
        return AcMode(self.mode).name.title() if self.mode in AcMode._value2member_map_ else "Unknown"


@dataclass
class AcGroupValue:
    """Reply to a single-value aircon query"""
    group: int
    value: int | float | bool


@dataclass
class LocalAcConfig:
    """Configuration of one of the unit's 10 local FCU outputs (64 bytes on the wire)"""
    address: int = 0
    enable: bool = False
    window_mode: int = 0            # 0 off, 1 save energy
    fan_type: int = 0               # 0 on/off, 1 analog
    temp_type: int = 0              # 0 thermostat, 1 RCU
    temp_unit: int = 0              # 0 C, 1 F
    valve_contact: int = 0          # 0 NO, 1 NC
    valve_type: int = 0             # 0 on/off, 1 analog, 2 on and off
    deadband: int = 0
    low_fcu_group: int = 0
    med_fcu_group: int = 0
    high_fcu_group: int = 0
    fan_analog_group: int = 0
    analog_cool_group: int = 0
    analog_heat_group: int = 0
    valve_cool_open_group: int = 0
    valve_cool_close_group: int = 0
    valve_heat_open_group: int = 0
    valve_heat_close_group: int = 0
    window_bypass: int = 0
    set_point_offset: int = 0
    unoccupy_power: int = 0
    occupy_power: int = 0
    standby_power: int = 0
    unoccupy_mode: int = 0
    occupy_mode: int = 0
    standby_mode: int = 0
    unoccupy_fan_speed: int = 0
    occupy_fan_speed: int = 0
    standby_fan_speed: int = 0
    unoccupy_cool_set_point: int = 0
    occupy_cool_set_point: int = 0
    standby_cool_set_point: int = 0
    unoccupy_heat_set_point: int = 0
    occupy_heat_set_point: int = 0
    standby_heat_set_point: int = 0

    SIZE = 64
    FORMAT = '<21B10x9B6H12x'

    def to_bytes(self) -> bytes:
        values = [int(v) for v in dataclasses.astuple(self)]
        for f, v in zip(dataclasses.fields(self)[:30], values[:30]):
            validate_value(v, f.name)
        for f, v in zip(dataclasses.fields(self)[30:], values[30:]):
            validate_range(v, f.name, 0, 0xFFFF)
        return struct.pack(self.FORMAT, *values)

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        values = list(struct.unpack_from(cls.FORMAT, data, 0))
        values[1] = values[1] == 1
        return cls(*values)


class RcuAircon:
    """Aircon groups and the unit's local FCU configuration."""

    CMD1 = RcuSubsystem.AC
    CMD: dict[str, int] = {
        "GET_LOCAL_AC_CONFIG": 0,       # 10 x 64-byte records
        "SET_LOCAL_AC_CONFIG": 1,
        "GET_AC_GROUP": 14,             # [group] -> 10-byte status
        "GET_ROOM_TEMP": 21,            # [group] -> [group, temp LE/10]
        "SET_SETTING_ROOM_TEMP": 22,    # [group, temp*10 LE]
        "GET_SETTING_ROOM_TEMP": 23,
        "SET_FAN": 24,                  # [group, speed, 0]
        "GET_FAN": 25,
        "SET_POWER": 28,                # [group, on, 0]
        "GET_POWER": 29,
        "SET_OPERATE": 30,              # [group, mode, 0]
        "GET_OPERATE": 31,
        "SET_ECO": 32,                  # [group, on, 0]
        "GET_ECO": 33,
    }

    def __init__(self, protocol: "RcuProtocol"):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger

    async def get_status(self, unit: RcuUnit, group: int = 1) -> AcStatus:
        """Get power, fan, mode and temperatures of an aircon group."""
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["GET_AC_GROUP"], [validate_group(group)], skip_status_check=True)
        return AcStatus.from_bytes(frame.payload, group)

    async def _get(self, unit: RcuUnit, command: str, group: int) -> bytes:
        frame = await self.protocol.send(unit, self.CMD1, self.CMD[command], [validate_group(group)], skip_status_check=True)
        if len(frame.payload) < 2:
            raise RcuResponseError(f"AC {command} reply too short: {len(frame.payload)} bytes")
        return frame.payload

    async def _get_temperature(self, unit: RcuUnit, command: str, group: int) -> AcGroupValue:
        data = await self._get(unit, command, group)
        if len(data) < 3:
            raise RcuResponseError(f"AC {command} reply too short: {len(data)} bytes")
        return AcGroupValue(group=data[0], value=struct.unpack_from('<h', data, 1)[0] / 10)

    async def _set(self, unit: RcuUnit, command: str, group: int, value: int) -> bool:
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD[command], [validate_group(group), value, 0])

    async def get_room_temperature(self, unit: RcuUnit, group: int = 1) -> AcGroupValue:
        """Measured room temperature in degrees."""
        return await self._get_temperature(unit, "GET_ROOM_TEMP", group)

    async def get_setpoint(self, unit: RcuUnit, group: int = 1) -> AcGroupValue:
        return await self._get_temperature(unit, "GET_SETTING_ROOM_TEMP", group)

    async def set_setpoint(self, unit: RcuUnit, group: int, temperature: float) -> bool:
        """Set the target temperature in degrees, sent in tenths."""
        tenths = validate_range(round(temperature * 10), "temperature (tenths)", -32768, 32767)
        data = bytes([validate_group(group)]) + struct.pack('<h', tenths)
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_SETTING_ROOM_TEMP"], data)

    async def set_fan_speed(self, unit: RcuUnit, group: int, speed: AcFanSpeed | int) -> bool:
        return await self._set(unit, "SET_FAN", group, validate_range(int(speed), "fan speed", 0, AcFanSpeed.OFF))

    async def get_fan_speed(self, unit: RcuUnit, group: int = 1) -> AcGroupValue:
        data = await self._get(unit, "GET_FAN", group)
        return AcGroupValue(group=data[0], value=data[1])

    async def set_power(self, unit: RcuUnit, group: int, power: bool) -> bool:
        return await self._set(unit, "SET_POWER", group, 1 if power else 0)

    async def get_power(self, unit: RcuUnit, group: int = 1) -> AcGroupValue:
        data = await self._get(unit, "GET_POWER", group)
        return AcGroupValue(group=data[0], value=data[1] == 1)

    async def set_mode(self, unit: RcuUnit, group: int, mode: AcMode | int) -> bool:
        return await self._set(unit, "SET_OPERATE", group, validate_range(int(mode), "mode", 0, AcMode.DRY))

    async def get_mode(self, unit: RcuUnit, group: int = 1) -> AcGroupValue:
        data = await self._get(unit, "GET_OPERATE", group)
        return AcGroupValue(group=data[0], value=data[1])

    async def set_eco(self, unit: RcuUnit, group: int, eco: bool) -> bool:
        return await self._set(unit, "SET_ECO", group, 1 if eco else 0)

    async def get_eco(self, unit: RcuUnit, group: int = 1) -> AcGroupValue:
        data = await self._get(unit, "GET_ECO", group)
        return AcGroupValue(group=data[0], value=data[1] == 1)

    async def get_local_config(self, unit: RcuUnit) -> list[LocalAcConfig]:
        """Get the 10 local FCU configurations. Records missing from a short reply are left out."""
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["GET_LOCAL_AC_CONFIG"], skip_status_check=True)
        data = frame.payload
        size = LocalAcConfig.SIZE
        return [LocalAcConfig.from_bytes(data[i * size:(i + 1) * size])
                for i in range(Const.AC_CONFIG_COUNT) if (i + 1) * size <= len(data)]

    async def set_local_config(self, unit: RcuUnit, configs: list[LocalAcConfig]) -> bool:
        """Write all 10 local FCU configurations in one frame."""
        validate_count(configs, "AC configurations", Const.AC_CONFIG_COUNT, Const.AC_CONFIG_COUNT)
        data = b''.join(c.to_bytes() for c in configs)
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_LOCAL_AC_CONFIG"], data)
