"""
RcuControl Python Library

A Python library for configuring and controlling RCU building automation units over UDP.

This library provides two distinct layers of abstraction:

1. **io**: Wire-level protocol implementation (UDP endpoints, frame codec, multi-reply collection)
2. **api**: RCU commands using io (lighting, aircon, scenes, DALI, Zigbee, firmware and the rest)

Example usage:
    import rcucontrol

    async with rcucontrol.RcuProtocol() as protocol:
        units = await protocol.general.discover()
        unit = units[0].unit()
        await protocol.lighting.set_group_state(unit, 12, 255)
        status = await protocol.aircon.get_status(unit)

    # Low-level access (for advanced users)
    client = rcucontrol.RcuClient(("192.168.1.50", 1234))
    response = await client.send_request(rcucontrol.Request(address=0x65000000, cmd1=1, cmd2=10))
"""

# API-level models
from .api.models import RcuUnit, RcuUnitInfo, ProtocolConfig
from .api.protocol import RcuProtocol
from .api import (AcStatus, Scene, SceneItem, Schedule, MultiScene, Sequence, InputConfig, OutputConfig,
                  OutputAssignment, CurtainConfig, KnxConfig, DmxColor, DmxDevice, DaliDevice, DaliScanResult,
                  ZigbeeDevice, ZigbeeExploreResult, FirmwareUpdateResult, FirmwareTimings, DaliTimings, ZigbeeTimings)

# Low-level models
from .io import RcuClient, RcuCollector, Request, Response, Frame, PacketKind, CollectedPacket, CollectResult

# Shared types and exceptions
from .api.types import RcuSubsystem, RcuUnitMode, RcuHardwareConfig, AcFanSpeed, AcMode, CurtainAction, ZigbeeCommand, RoomState
from .io.frame import RcuErrorCode
from .exceptions import (RcuError, RcuTimeoutError, RcuConnectionError, RcuCancelledError, RcuResponseError,
                         RcuFrameTooShortError, RcuUnexpectedCommandError, RcuDeviceError, RcuValidationError,
                         RcuFirmwareError, RcuFirmwareImageError, RcuBoardMismatchError, RcuTransferFailedError,
                         RcuFirmwareNotConfirmedError, RcuConflictUnresolvedError, RcuConfigurationError)

# Configuration and utilities
from .config import RcuConfig
from .utils import run_with_keyboard_interrupt, setup_logging

__version__ = "0.0.0"
__author__ = "Simon Wright"

# Public API - these are the main classes users should import
__all__ = [
    # API-level models (recommended)
    "RcuProtocol",
    "RcuUnit",
    "RcuUnitInfo",
    "ProtocolConfig",

    # Subsystem records
    "AcStatus",
    "Scene",
    "SceneItem",
    "Schedule",
    "MultiScene",
    "Sequence",
    "InputConfig",
    "OutputConfig",
    "OutputAssignment",
    "CurtainConfig",
    "KnxConfig",
    "DmxColor",
    "DmxDevice",
    "DaliDevice",
    "DaliScanResult",
    "ZigbeeDevice",
    "ZigbeeExploreResult",
    "FirmwareUpdateResult",
    "FirmwareTimings",
    "DaliTimings",
    "ZigbeeTimings",

    # Low-level models (for advanced users)
    "RcuClient",
    "RcuCollector",
    "Request",
    "Response",
    "Frame",
    "PacketKind",
    "CollectedPacket",
    "CollectResult",

    # Exceptions
    "RcuError",
    "RcuTimeoutError",
    "RcuConnectionError",
    "RcuCancelledError",
    "RcuResponseError",
    "RcuFrameTooShortError",
    "RcuUnexpectedCommandError",
    "RcuDeviceError",
    "RcuValidationError",
    "RcuFirmwareError",
    "RcuFirmwareImageError",
    "RcuBoardMismatchError",
    "RcuTransferFailedError",
    "RcuFirmwareNotConfirmedError",
    "RcuConflictUnresolvedError",
    "RcuConfigurationError",

    # Types and enums
    "RcuSubsystem",
    "RcuUnitMode",
    "RcuHardwareConfig",
    "RcuErrorCode",
    "AcFanSpeed",
    "AcMode",
    "CurtainAction",
    "ZigbeeCommand",
    "RoomState",

    # Configuration and utilities
    "RcuConfig",
    "run_with_keyboard_interrupt",
    "setup_logging",
]
