import struct

import pytest

from rcucontrol.api.dmx import DmxColor, DmxDevice
from rcucontrol.api.led import LedConfig, LedEffect, LedHardwareConfig
from rcucontrol.api.rs485 import Rs485Config, Rs485Slave
from rcucontrol.exceptions import RcuResponseError, RcuValidationError

from conftest import frame, sentinel


# ============================
# LED SPI
# ============================

def test_led_hardware_layout():
    config = LedHardwareConfig(pixel_amount=300, custom=True, ic_type=2, color_type=1, direction=0,
                               bit0_high_time=300, bit1_high_time=900, overall_bit_time=1250, reset_cycle=80)
    data = config.to_bytes(2)
    assert len(data) == 15
    assert data[0] == 2
    assert struct.unpack_from('<H', data, 1)[0] == 300
    assert LedHardwareConfig.from_bytes(data, 1) == config


def test_led_effect_layout():
    assert LedEffect(3, 10, 200, 255, 0, 128, 0).to_bytes(1) == bytes([1, 3, 10, 200, 255, 0, 128, 0, 0])
    with pytest.raises(RcuValidationError):
        LedEffect().to_bytes(3)


async def test_led_get_config(fake_unit, unit, protocol):
    hardware = LedHardwareConfig(pixel_amount=60, ic_type=1)
    effect = LedEffect(effect=4, brightness=100, red=255)
    payload = hardware.to_bytes(1) + effect.to_bytes(1)[1:8] + b'\x00'
    fake_unit.on(90, 2, frame(90, 2, payload))
    config = await protocol.led.get_config(unit, 1)
    assert config == LedConfig(channel=1, hardware=hardware, effect=effect)
    assert fake_unit.payloads(90, 2) == [bytes([1, 0, 0, 0])]


async def test_led_trigger(fake_unit, unit, protocol):
    fake_unit.on_ok(90, 3)
    await protocol.led.trigger(unit, 2, on=False)
    assert fake_unit.payloads(90, 3) == [bytes([2, 0, 0, 0])]


def test_led_config_too_short():
    with pytest.raises(RcuResponseError):
        LedConfig.from_bytes(bytes(22))


# ============================
# DMX
# ============================

@pytest.mark.parametrize("text, expected", [
    ("255,128,0,10", DmxColor(255, 128, 0, 10)),
    (" 1, 2 ,3,4 ", DmxColor(1, 2, 3, 4)),
    ("300,-5,0,0", DmxColor(255, 0, 0, 0)),
    ("1,2,3", DmxColor()),
    ("a,b,c,d", DmxColor()),
    ("", DmxColor()),
])
def test_dmx_color_parse(text, expected):
    assert DmxColor.parse(text) == expected


def test_dmx_device_layout():
    device = DmxDevice(address=7, colors=[DmxColor(1, 2, 3, 4)])
    data = device.to_bytes(20)
    assert len(data) == DmxDevice.SIZE
    assert data[0] == 20
    assert data[1:5] == bytes([1, 2, 3, 4])
    assert data[5:65] == bytes(60)
    assert data[65] == 7


async def test_dmx_set_colors_with_total(fake_unit, unit, protocol):
    fake_unit.on_ok(70, 0)
    fake_unit.on_ok(70, 1)
    devices = [DmxDevice(address=i) for i in range(2)]
    await protocol.dmx.set_colors(unit, devices, start_index=30, total_count=40)
    assert fake_unit.payloads(70, 0) == [bytes([40, 0])]
    payload = fake_unit.payloads(70, 1)[0]
    assert len(payload) == 2 * 66
    assert (payload[0], payload[66]) == (30, 31)


async def test_dmx_set_colors_limit(fake_unit, unit, protocol):
    with pytest.raises(RcuValidationError):
        await protocol.dmx.set_colors(unit, [DmxDevice()] * 16)


async def test_dmx_batch_uses_global_indices(fake_unit, unit, protocol):
    fake_unit.on_ok(70, 0)
    fake_unit.on_ok(70, 1)
    result = await protocol.dmx.set_colors_batch(unit, [DmxDevice() for _ in range(20)])
    assert result.success and result.total_batches == 2
    first, second = fake_unit.payloads(70, 1)
    assert (len(first), len(second)) == (15 * 66, 5 * 66)
    assert second[0] == 15
    assert fake_unit.payloads(70, 0) == [bytes([20, 0])] * 2


async def test_dmx_get_colors(fake_unit, unit, protocol):
    device = bytes([9, 9, 9, 9]) + bytes(60)
    fake_unit.on(70, 2, frame(70, 2, bytes([0, 2]) + device + device), frame(70, 2, bytes([1, 1]) + device),
                 sentinel(70, 2))
    devices = await protocol.dmx.get_colors(unit, timeout=1)
    assert [d.index for d in devices] == [0, 1, 16]
    assert str(devices[0].colors[0]) == "9,9,9,9"
    assert fake_unit.payloads(70, 2) == [bytes([0, 0])]


# ============================
# RS-485
# ============================

def test_rs485_layout():
    config = Rs485Config(baudrate=19200, parity=2, stop_bits=1, board_id=3, type=4, slave_count=1,
                         slaves=[Rs485Slave(id=5, group=10, indoor_count=2, indoor_groups=[11, 12])])
    data = config.to_bytes()
    assert len(data) == Rs485Config.SIZE
    assert struct.unpack_from('<I', data, 0)[0] == 19200
    assert data[4:9] == bytes([2, 1, 3, 4, 1])
    assert data[14:19] == bytes([5, 10, 2, 11, 12])
    parsed = Rs485Config.from_bytes(data)
    assert parsed.baudrate == 19200
    assert parsed.slaves[0].indoor_groups[:3] == [11, 12, 0]
    assert len(parsed.slaves) == 10


async def test_rs485_channels(fake_unit, unit, protocol):
    fake_unit.on(1, 14, frame(1, 14, Rs485Config().to_bytes()))
    fake_unit.on_ok(1, 15)
    config = await protocol.rs485.get_config(unit, channel=2)
    assert config.baudrate == 9600
    await protocol.rs485.set_config(unit, config, channel=1)
    assert len(fake_unit.payloads(1, 15)[0]) == 204
    with pytest.raises(RcuValidationError):
        await protocol.rs485.get_config(unit, channel=3)
