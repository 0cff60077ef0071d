import pytest

from rcucontrol.api.curtain import CurtainConfig
from rcucontrol.api.knx import KnxConfig
from rcucontrol.api.types import CurtainAction
from rcucontrol.exceptions import RcuValidationError

from conftest import frame, sentinel


# ============================
# CURTAIN
# ============================

def test_curtain_layout():
    config = CurtainConfig(index=2, address=10, type=1, pause_period=3, transition_period=300,
                           open_group=20, close_group=21, stop_group=22)
    data = config.to_bytes()
    assert data == bytes([2, 10, 1, 3, 0x2C, 0x01, 0, 0, 0, 0, 0, 0, 20, 21, 22])
    assert CurtainConfig.from_bytes(data) == config


def test_curtain_index_range():
    with pytest.raises(RcuValidationError):
        CurtainConfig(index=32, address=1).to_bytes()


async def test_curtain_get_all(fake_unit, unit, protocol):
    records = [CurtainConfig(index=i, address=i + 1) for i in range(3)]
    fake_unit.on(40, 0, *[frame(40, 0, r.to_bytes()) for r in records], sentinel(40, 0))
    assert await protocol.curtain.get_configs(unit, timeout=1) == records
    assert fake_unit.payloads(40, 0) == [b'']


async def test_curtain_get_one(fake_unit, unit, protocol):
    record = CurtainConfig(index=5, address=9, open_group=1)
    fake_unit.on(40, 0, frame(40, 0, record.to_bytes()))
    assert await protocol.curtain.get_config(unit, 5) == record
    assert fake_unit.payloads(40, 0) == [bytes([5])]


async def test_curtain_control_and_clear(fake_unit, unit, protocol):
    fake_unit.on_ok(40, 2)
    fake_unit.on_ok(40, 4)
    await protocol.curtain.control(unit, 9, CurtainAction.CLOSE)
    await protocol.curtain.clear(unit, 3)
    await protocol.curtain.clear(unit)
    assert fake_unit.payloads(40, 2) == [bytes([9, 2])]
    assert fake_unit.payloads(40, 4) == [bytes([3]), b'']
    with pytest.raises(RcuValidationError):
        await protocol.curtain.control(unit, 9, 3)


# ============================
# KNX
# ============================

def test_knx_layout():
    config = KnxConfig(address=300, type=11, factor=2, feedback=1, rcu_group=40,
                       switch_group="1/2/3", dimming_group="", value_group="31/7/255")
    data = config.to_bytes()
    assert len(data) == 14
    assert data[0:2] == (300).to_bytes(2, 'little')
    assert data[2:7] == bytes([11, 2, 1, 0, 0])
    assert data[7] == 40
    assert data[8:10] == ((1 << 11) | (2 << 8) | 3).to_bytes(2, 'little')
    assert data[10:12] == b'\x00\x00'
    assert KnxConfig.from_bytes(data) == config


def test_knx_invalid_group_address_packs_to_zero():
    assert KnxConfig(address=1, switch_group="not/an/address").to_bytes()[8:10] == b'\x00\x00'


@pytest.mark.parametrize("field, value", [("address", 512), ("type", 12), ("factor", 0), ("feedback", 3)])
def test_knx_validation(field, value):
    config = KnxConfig(address=1)
    setattr(config, field, value)
    with pytest.raises(RcuValidationError):
        config.to_bytes()


async def test_knx_commands(fake_unit, unit, protocol):
    record = KnxConfig(address=258, rcu_group=5, switch_group="0/0/1")
    fake_unit.on(50, 0, frame(50, 0, record.to_bytes()))
    fake_unit.on_ok(50, 2)
    fake_unit.on_ok(50, 8)
    assert await protocol.knx.get_config(unit, 258) == record
    await protocol.knx.trigger(unit, 258)
    await protocol.knx.clear(unit)
    assert fake_unit.payloads(50, 0) == [bytes([2, 1])]
    assert fake_unit.payloads(50, 2) == [bytes([2, 1])]
    assert fake_unit.payloads(50, 8) == [b'']


async def test_knx_get_all_skips_short_records(fake_unit, unit, protocol):
    fake_unit.on(50, 0, frame(50, 0, KnxConfig(address=1).to_bytes()), frame(50, 0, [1, 2]), sentinel(50, 0))
    configs = await protocol.knx.get_configs(unit, timeout=1)
    assert [c.address for c in configs] == [1]
