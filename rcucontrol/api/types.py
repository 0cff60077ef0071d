"""
API-level type definitions.

This module contains types and enums that belong to the API layer:
- Subsystem command codes (cmd1)
- Unit modes and hardware configuration flags
- Aircon, curtain, Zigbee and room enums
- Barcode to unit model registry
- Constants used by the API layer
"""

from enum import Enum, IntEnum
from typing import Optional, Self
from dataclasses import dataclass


class RcuSubsystem(IntEnum):
    """First command byte, selects the subsystem"""
    GENERAL = 1
    LIGHTING = 10
    AC = 30
    CURTAIN = 40
    KNX = 50
    DALI = 60
    DMX = 70
    ZIGBEE = 80
    LED_SPI = 90


class RcuUnitMode(Enum):
    STAND_ALONE = 0
    SLAVE = 1
    MASTER = 2

    @property
    def label(self) -> str:
        return {0: "Stand-Alone", 1: "Slave", 2: "Master"}[self.value]


@dataclass
class RcuHardwareConfig:
    """The unit's hardware configuration byte"""
    mode: RcuUnitMode = RcuUnitMode.STAND_ALONE
    can_load: bool = False
    recovery: bool = False

    def bitmask(self) -> int:
        flags = self.mode.value & 0x03
        if self.can_load: flags |= 0x04
        if self.recovery: flags |= 0x40
        return flags

    @classmethod
    def from_byte(cls, flags: int) -> Self:
        match flags & 0x03:
            case 0: mode = RcuUnitMode.STAND_ALONE
            case 1: mode = RcuUnitMode.SLAVE
            case _: mode = RcuUnitMode.MASTER
        return cls(
            mode = mode,
            can_load = (flags & 0x04) != 0,
            recovery = (flags & 0x40) != 0,
        )


class AcFanSpeed(IntEnum):
    LOW = 0
    MED = 1
    HIGH = 2
    AUTO = 3
    OFF = 4


class AcMode(IntEnum):
    COOL = 0
    HEAT = 1
    VENTILATION = 2
    DRY = 3


class CurtainAction(IntEnum):
    STOP = 0
    OPEN = 1
    CLOSE = 2


class ZigbeeCommand(IntEnum):
    OFF = 0
    ON = 1
    TOGGLE = 2


class InputType(IntEnum):
    KEY_CARD = 4    # Always carries 20 group slots


class SceneObject(IntEnum):
    LIGHTING = 1    # Values are percentages, sent as 0-255


class RoomState(IntEnum):
    UNRENT = 0
    UNOCCUPY = 1
    CHECKIN = 2
    WELCOME = 3
    WELCOME_NIGHT = 4
    STAFF = 5
    OUT_OF_SERVICE = 6


# Barcode -> unit model, as reported by hardware info discovery
UNIT_MODELS: dict[str, str] = {
    "8930000000019": "Room Logic Controller",
    "8930000000200": "Bedside-17T",
    "8930000100214": "Bedside-12T",
    "8930000100221": "BSP_R14_OL",
    "8930000000026": "RLC-I16",
    "8930000000033": "RLC-I20",
    "8930000200013": "RCU-32AO",
    "8930000200020": "RCU-8RL-24AO",
    "8930000200037": "RCU-16RL-16AO",
    "8930000200044": "RCU-24RL-8AO",
    "8930000210005": "RCU-11IN-4RL",
    "8930000210012": "RCU-21IN-10RL",
    "8930000210036": "RCU-30IN-10RL",
    "8930000210043": "RCU-48IN-16RL",
    "8930000210050": "RCU-48IN-16RL-4AO",
    "8930000210067": "RCU-48IN-16RL-4AI",
    "8930000210074": "RCU-48IN-16RL-K",
    "8930000210081": "RCU-48IN-16RL-DL",
    "8930000210111": "RCU-21IN-8RL",
    "8930000210128": "RCU-21IN-8RL-4AO",
    "8930000210135": "RCU-21IN-8RL-4AI",
    "8930000210142": "RCU-21IN-8RL-K",
    "8930000210159": "RCU-21IN-8RL-DL",
    "8930000200051": "GNT-EXT-6RL",
    "8930000200068": "GNT-EXT-8RL",
    "8930000200075": "GNT-EXT-10AO",
    "8930000200082": "GNT-EXT-28AO",
    "8930000200105": "GNT-EXT-12RL",
    "8930000200112": "GNT-EXT-20RL",
    "8930000200099": "GNT-EXT-12RL-12AO",
    "8930000220011": "GNT-EXT-24IN",
    "8930000220028": "GNT-EXT-48IN",
    "8930000230003": "GNT-ETH2KDL",
}


def model_for_barcode(barcode: Optional[str]) -> str:
    if not barcode: return "Unknown"
    return UNIT_MODELS.get(barcode.strip(), f"Unknown ({barcode.strip()})")


class Const:
    # Ranges
    MIN_GROUP = 1
    MAX_GROUP = 255
    MAX_VALUE = 255
    MAX_SCENE_INDEX = 99
    MAX_SCHEDULE_INDEX = 31
    MAX_MULTI_SCENE_INDEX = 39
    MAX_SEQUENCE_INDEX = 19
    MAX_CURTAIN_INDEX = 31
    MAX_KNX_ADDRESS = 511
    MAX_KNX_TYPE = 11
    MAX_KNX_FEEDBACK = 2
    MAX_DELAY = 65535
    # Per-call limits
    MAX_SCENE_ITEMS = 85
    MAX_SCHEDULE_SCENES = 32
    MAX_MULTI_SCENE_SCENES = 20
    MAX_SEQUENCE_MULTI_SCENES = 20
    MAX_BATCH_BYTES = 900
    MAX_DMX_PER_PACKET = 15
    MAX_DALI_DEVICES_PER_FRAME = 16
    DALI_ADDRESS_COUNT = 64
    MAX_ROOMS = 5
    AC_CONFIG_COUNT = 10
    KEY_CARD_GROUPS = 20
    NAME_LENGTH = 15
    # Timeouts (seconds)
    GET_ALL_TIMEOUT = 15.0
    INPUT_CONFIG_TIMEOUT = 10.0
    DMX_TIMEOUT = 10.0
    DALI_TIMEOUT = 60.0
    DALI_COMMISSIONING_TIMEOUT = 360.0
    DALI_SCAN_TIMEOUT = 180.0
    DALI_KEEPALIVE = 60.0
    ZIGBEE_EXPLORE_TIMEOUT = 200.0
    DISCOVERY_TIMEOUT = 3.0
