import pytest

from rcucontrol.api.validators import (validate_range, validate_group, validate_value, validate_scene_index,
                                       validate_schedule_index, validate_multi_scene_index, validate_sequence_index,
                                       validate_curtain_index, validate_knx_address, validate_delay, validate_hour,
                                       validate_minute, validate_second, validate_count, validate_name,
                                       validate_optional)
from rcucontrol.api.clock import RcuClockTime
from rcucontrol.api.curtain import CurtainConfig
from rcucontrol.api.dali import DaliDeviceConfig
from rcucontrol.api.knx import KnxConfig
from rcucontrol.api.scene import Scene, SceneItem
from rcucontrol.api.schedule import Schedule
from rcucontrol.exceptions import RcuValidationError


@pytest.mark.parametrize("check, low, high", [
    (validate_group, 1, 255),
    (validate_value, 0, 255),
    (validate_scene_index, 0, 99),
    (validate_schedule_index, 0, 31),
    (validate_multi_scene_index, 0, 39),
    (validate_sequence_index, 0, 19),
    (validate_curtain_index, 0, 31),
    (validate_knx_address, 0, 511),
    (validate_delay, 0, 65535),
    (validate_hour, 0, 23),
    (validate_minute, 0, 59),
    (validate_second, 0, 59),
])
def test_boundaries(check, low, high):
    assert check(low) == low
    assert check(high) == high
    with pytest.raises(RcuValidationError):
        check(low - 1)
    with pytest.raises(RcuValidationError):
        check(high + 1)


def test_error_carries_field_and_range():
    with pytest.raises(RcuValidationError) as e:
        validate_group(256)
    assert (e.value.field, e.value.min, e.value.max, e.value.actual) == ("group", 1, 255, 256)
    assert isinstance(e.value, ValueError)


@pytest.mark.parametrize("bad", [True, 1.5, 3.0, "7", "abc", None])
def test_non_integers_rejected(bad):
    with pytest.raises(RcuValidationError, match="must be an integer"):
        validate_range(bad, "value", 0, 255)


@pytest.mark.parametrize("record", [
    CurtainConfig(index=1.0, address=2),
    CurtainConfig(index=1, address="2"),
    Schedule(index="3"),
    Schedule(index=3, hour=6.0),
    KnxConfig(address=5, factor=2.0),
    DaliDeviceConfig(index=0, address=1, groups=["4"]),
    Scene(index=1, address=5, items=[SceneItem(2, 3.0, 1)]),
    RcuClockTime(year=24.0, month=1, day=1, day_of_week=0, hour=0, minute=0, second=0),
])
def test_records_reject_non_integer_fields(record):
    with pytest.raises(RcuValidationError):
        record.to_bytes()


def test_optional():
    assert validate_optional(None, "value", 0, 1) is None
    assert validate_optional(1, "value", 0, 1) == 1


def test_count():
    assert validate_count([1, 2], "items", 2) == 2
    with pytest.raises(RcuValidationError):
        validate_count([1, 2, 3], "items", 2)
    with pytest.raises(RcuValidationError):
        validate_count([], "items", 2, min=1)


def test_name():
    assert validate_name("Lobby") == "Lobby"
    assert validate_name(None, required=False) == ""
    with pytest.raises(RcuValidationError):
        validate_name("")
    with pytest.raises(RcuValidationError):
        validate_name("x" * 16)
    with pytest.raises(RcuValidationError):
        validate_name("é" * 8)  # 16 bytes in UTF-8
