"""
Range checks for caller-supplied values.

Every check raises RcuValidationError naming the field and its valid range,
and runs before anything is sent to a unit.
"""
from typing import Optional

from .types import Const
from ..exceptions import RcuValidationError


def validate_range(value, field: str, min: int, max: int) -> int:
    # Callers pack the field itself, so only real ints get through
    if isinstance(value, bool) or not isinstance(value, int):
        raise RcuValidationError(field, min, max, value,
                                 message=f"{field} must be an integer between {min} and {max}, received {value!r}")
    if not min <= value <= max:
        raise RcuValidationError(field, min, max, value)
    return value


def validate_optional(value, field: str, min: int, max: int) -> Optional[int]:
    if value is None: return None
    return validate_range(value, field, min, max)


def validate_group(group, field: str = "group") -> int:
    return validate_range(group, field, Const.MIN_GROUP, Const.MAX_GROUP)

def validate_value(value, field: str = "value") -> int:
    return validate_range(value, field, 0, Const.MAX_VALUE)

def validate_index(index, field: str = "index") -> int:
    return validate_range(index, field, 0, 255)

def validate_scene_index(index) -> int:
    return validate_range(index, "scene index", 0, Const.MAX_SCENE_INDEX)

def validate_schedule_index(index) -> int:
    return validate_range(index, "schedule index", 0, Const.MAX_SCHEDULE_INDEX)

def validate_multi_scene_index(index) -> int:
    return validate_range(index, "multi-scene index", 0, Const.MAX_MULTI_SCENE_INDEX)

def validate_sequence_index(index) -> int:
    return validate_range(index, "sequence index", 0, Const.MAX_SEQUENCE_INDEX)

def validate_curtain_index(index) -> int:
    return validate_range(index, "curtain index", 0, Const.MAX_CURTAIN_INDEX)

def validate_knx_address(address) -> int:
    return validate_range(address, "KNX address", 0, Const.MAX_KNX_ADDRESS)

def validate_delay(delay, field: str = "delay") -> int:
    return validate_range(delay, field, 0, Const.MAX_DELAY)

def validate_hour(hour) -> int:
    return validate_range(hour, "hour", 0, 23)

def validate_minute(minute) -> int:
    return validate_range(minute, "minute", 0, 59)

def validate_second(second) -> int:
    return validate_range(second, "second", 0, 59)


def validate_count(items, field: str, max: int, min: int = 0) -> int:
    """Check the length of a list against a per-call limit."""
    if not min <= len(items) <= max:
        raise RcuValidationError(field, min, max, len(items), message=f"{field} must have between {min} and {max} entries, received {len(items)}")
    return len(items)


def validate_name(name: Optional[str], field: str = "name", required: bool = True) -> str:
    """Names go on the wire as 15 zero-padded UTF-8 bytes."""
    name = name or ""
    if required and not name:
        raise RcuValidationError(field, message=f"{field} must be provided")
    if len(name.encode("utf-8")) > Const.NAME_LENGTH:
        raise RcuValidationError(field, 0, Const.NAME_LENGTH, len(name), message=f"{field} must not exceed {Const.NAME_LENGTH} bytes, received {name!r}")
    return name
