import struct

import pytest

from rcucontrol.api.aircon import AcStatus, LocalAcConfig
from rcucontrol.api.types import AcFanSpeed, AcMode
from rcucontrol.exceptions import RcuResponseError, RcuValidationError

from conftest import frame


def test_status_parse():
    status = AcStatus.from_bytes(bytes([0, 1, 2, 1, 0, 0, 0xB4, 0x00, 0xFA, 0x00]), group=3)
    assert status.power is True
    assert status.fan_speed == 2
    assert status.mode == 1
    assert status.temperature == 18.0
    assert status.room_temperature == 25.0
    assert status.fan_speed_label == "High"
    assert status.mode_label == "Heat"


def test_status_negative_temperature():
    status = AcStatus.from_bytes(bytes([0, 0, 4, 0, 0, 0]) + struct.pack('<hh', -25, 215))
    assert status.temperature == -2.5
    assert status.power is False
    assert status.fan_speed_label == "Off"


def test_status_too_short():
    with pytest.raises(RcuResponseError):
        AcStatus.from_bytes(bytes(9))


async def test_get_status(fake_unit, unit, protocol):
    fake_unit.on(30, 14, frame(30, 14, [0, 1, 3, 0, 1, 0, 0xE1, 0x00, 0xEB, 0x00]))
    status = await protocol.aircon.get_status(unit, 7)
    assert fake_unit.payloads(30, 14) == [bytes([7])]
    assert status.group == 7
    assert status.fan_speed_label == "Auto"
    assert status.temperature == 22.5
    assert status.room_temperature == 23.5


async def test_setpoint(fake_unit, unit, protocol):
    fake_unit.on_ok(30, 22)
    fake_unit.on(30, 23, frame(30, 23, [2, 0xDC, 0x00]))
    await protocol.aircon.set_setpoint(unit, 2, 21.5)
    assert fake_unit.payloads(30, 22) == [bytes([2, 0xD7, 0x00])]
    setpoint = await protocol.aircon.get_setpoint(unit, 2)
    assert (setpoint.group, setpoint.value) == (2, 22.0)


async def test_getters_skip_status_check(fake_unit, unit, protocol):
    # The first byte of a getter reply is the group, not a status
    fake_unit.on(30, 29, frame(30, 29, [4, 1]))
    fake_unit.on(30, 21, frame(30, 21, [4, 0xFA, 0x00]))
    power = await protocol.aircon.get_power(unit, 4)
    assert (power.group, power.value) == (4, True)
    room = await protocol.aircon.get_room_temperature(unit, 4)
    assert room.value == 25.0


async def test_setters(fake_unit, unit, protocol):
    for cmd2 in (24, 28, 30, 32):
        fake_unit.on_ok(30, cmd2)
    await protocol.aircon.set_fan_speed(unit, 1, AcFanSpeed.LOW)
    await protocol.aircon.set_power(unit, 1, True)
    await protocol.aircon.set_mode(unit, 1, AcMode.DRY)
    await protocol.aircon.set_eco(unit, 1, False)
    assert fake_unit.payloads(30, 24) == [bytes([1, 0, 0])]
    assert fake_unit.payloads(30, 28) == [bytes([1, 1, 0])]
    assert fake_unit.payloads(30, 30) == [bytes([1, 3, 0])]
    assert fake_unit.payloads(30, 32) == [bytes([1, 0, 0])]


async def test_setter_validation(fake_unit, unit, protocol):
    with pytest.raises(RcuValidationError):
        await protocol.aircon.set_fan_speed(unit, 1, 5)
    with pytest.raises(RcuValidationError):
        await protocol.aircon.set_mode(unit, 0, AcMode.COOL)
    assert fake_unit.requests() == []


def test_local_config_layout():
    config = LocalAcConfig(address=1, enable=True, deadband=2, unoccupy_cool_set_point=260, standby_heat_set_point=180)
    data = config.to_bytes()
    assert len(data) == 64
    assert data[0:2] == bytes([1, 1])
    assert data[8] == 2
    assert data[21:31] == bytes(10)
    assert struct.unpack_from('<6H', data, 40) == (260, 0, 0, 0, 0, 180)
    assert LocalAcConfig.from_bytes(data) == config


async def test_local_config_round_trip(fake_unit, unit, protocol):
    configs = [LocalAcConfig(address=i, enable=i % 2 == 0) for i in range(10)]
    fake_unit.on(30, 0, frame(30, 0, b''.join(c.to_bytes() for c in configs)))
    fake_unit.on_ok(30, 1)
    assert await protocol.aircon.get_local_config(unit) == configs
    await protocol.aircon.set_local_config(unit, configs)
    assert len(fake_unit.payloads(30, 1)[0]) == 640
    with pytest.raises(RcuValidationError):
        await protocol.aircon.set_local_config(unit, configs[:9])
