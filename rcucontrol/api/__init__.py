"""
API-level models and protocol implementation.

This module contains models and types that belong to the API layer:
- RcuUnit, RcuUnitInfo, ProtocolConfig (API-level concepts)
- RcuProtocol (the facade every subsystem sends through)
- Subsystem records: inputs, outputs, scenes, schedules, aircon, curtains, KNX,
  room, RS-485, LED, DMX, DALI and Zigbee
- Workflow results for firmware updates, DALI commissioning and Zigbee pairing
- Types and enums used by the API layer
"""

from .models import RcuUnit, RcuUnitInfo, ProtocolConfig
from .protocol import RcuProtocol
from .types import (RcuSubsystem, RcuUnitMode, RcuHardwareConfig, AcFanSpeed, AcMode, CurtainAction, ZigbeeCommand,
                    InputType, SceneObject, RoomState, UNIT_MODELS, model_for_barcode, Const)
from .batch import RcuBatchResult, RcuBatchError
from .clock import RcuClockTime
from .lighting import ChannelState, InputLedStatus, InputGroup, InputConfig, OutputAssignment, OutputConfig
from .aircon import AcStatus, AcGroupValue, LocalAcConfig
from .curtain import CurtainConfig
from .knx import KnxConfig
from .scene import Scene, SceneItem
from .schedule import Schedule
from .multiscene import MultiScene
from .sequence import Sequence
from .room import RoomConfiguration, RoomGeneralConfig, RoomConfig, RoomStateConfig, RoomStatuses, RoomStatus
from .rs485 import Rs485Config, Rs485Slave
from .led import LedConfig, LedHardwareConfig, LedEffect
from .dmx import DmxColor, DmxDevice
from .dali import (DaliDevice, DaliDeviceConfig, DaliEvent, DaliEventKind, DaliScanResult, DaliConflictResult,
                   DaliConflictResolution, DaliTimings)
from .zigbee import ZigbeeDevice, ZigbeeEndpoint, ZigbeeExploreResult, ExploreState, ZigbeeTimings
from .firmware import FirmwareImage, FirmwareState, FirmwareTimings, FirmwareUpdateResult

__all__ = [
    # API-level models
    "RcuUnit",
    "RcuUnitInfo",
    "ProtocolConfig",
    "RcuProtocol",
    "RcuBatchResult",
    "RcuBatchError",

    # Subsystem records
    "RcuClockTime",
    "ChannelState",
    "InputLedStatus",
    "InputGroup",
    "InputConfig",
    "OutputAssignment",
    "OutputConfig",
    "AcStatus",
    "AcGroupValue",
    "LocalAcConfig",
    "CurtainConfig",
    "KnxConfig",
    "Scene",
    "SceneItem",
    "Schedule",
    "MultiScene",
    "Sequence",
    "RoomConfiguration",
    "RoomGeneralConfig",
    "RoomConfig",
    "RoomStateConfig",
    "RoomStatuses",
    "RoomStatus",
    "Rs485Config",
    "Rs485Slave",
    "LedConfig",
    "LedHardwareConfig",
    "LedEffect",
    "DmxColor",
    "DmxDevice",
    "DaliDevice",
    "DaliDeviceConfig",
    "ZigbeeDevice",
    "ZigbeeEndpoint",
    "FirmwareImage",

    # Workflows
    "DaliEvent",
    "DaliEventKind",
    "DaliScanResult",
    "DaliConflictResult",
    "DaliConflictResolution",
    "DaliTimings",
    "ZigbeeExploreResult",
    "ExploreState",
    "ZigbeeTimings",
    "FirmwareState",
    "FirmwareTimings",
    "FirmwareUpdateResult",

    # API-level types
    "RcuSubsystem",
    "RcuUnitMode",
    "RcuHardwareConfig",
    "AcFanSpeed",
    "AcMode",
    "CurtainAction",
    "ZigbeeCommand",
    "InputType",
    "SceneObject",
    "RoomState",
    "UNIT_MODELS",
    "model_for_barcode",
    "Const",
]
