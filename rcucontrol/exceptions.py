"""
RcuControl library exceptions.

This module defines all custom exceptions used throughout the library.

Transport:   RcuTimeoutError, RcuConnectionError, RcuCancelledError
Frame:       RcuResponseError and its subclasses
Validation:  RcuValidationError (raised before anything is sent)
Workflow:    RcuFirmwareError family, RcuConflictUnresolvedError
"""
import asyncio
from typing import Optional


class RcuError(Exception):
    """Base exception for RCU protocol errors"""
    pass


# ============================
# Transport
# ============================

class RcuTimeoutError(RcuError):
    """Raised when a command times out"""
    pass


class RcuConnectionError(RcuError):
    """Raised when the UDP endpoint cannot be opened or reports a socket error"""
    pass


class RcuCancelledError(RcuError, asyncio.CancelledError):
    """Raised when a pending exchange is cancelled from outside the running task. A cancelled task
    (including one under asyncio.timeout) gets the original asyncio.CancelledError instead."""
    pass


# ============================
# Frame
# ============================

class RcuResponseError(RcuError):
    """Raised when receiving an invalid response"""
    pass


class RcuFrameTooShortError(RcuResponseError):
    """Raised when a datagram is shorter than the minimum frame size"""

    def __init__(self, length: int):
        self.length = length
        super().__init__(f"Frame too short: {length} bytes (minimum 10)")


class RcuUnexpectedCommandError(RcuResponseError):
    """Raised when a reply carries a different command pair than the request"""

    def __init__(self, expected: tuple[int, int], actual: tuple[int, int]):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Unexpected command: expected {expected[0]}/{expected[1]}, received {actual[0]}/{actual[1]}")


class RcuDeviceError(RcuResponseError):
    """Raised when the unit reports a failure, either via the error flag or a non-zero status byte"""

    def __init__(self, code: int, name: str, cmd1: Optional[int] = None, cmd2: Optional[int] = None):
        self.code = code
        self.name = name
        self.cmd1 = cmd1
        self.cmd2 = cmd2
        where = f" (command {cmd1}/{cmd2})" if cmd1 is not None else ""
        super().__init__(f"Device error {code}: {name}{where}")


# ============================
# Validation
# ============================

class RcuValidationError(RcuError, ValueError):
    """Raised when a caller-supplied value is outside its valid range"""

    def __init__(self, field: str, min: Optional[int] = None, max: Optional[int] = None, actual=None, message: Optional[str] = None):
        self.field = field
        self.min = min
        self.max = max
        self.actual = actual
        if message is None:
            message = f"{field} must be between {min} and {max}, received {actual}"
        super().__init__(message)


# ============================
# Workflow
# ============================

class RcuFirmwareError(RcuError):
    """Base exception for firmware update failures"""
    pass


class RcuFirmwareImageError(RcuFirmwareError):
    """Raised when a firmware image is malformed"""
    pass


class RcuBoardMismatchError(RcuFirmwareError):
    """Raised when the firmware image targets a different board"""

    def __init__(self, expected: str, actual: str):
        self.expected = expected
        self.actual = actual
        super().__init__(f"Firmware is for {actual}, but the unit is a {expected}")


class RcuTransferFailedError(RcuFirmwareError):
    """Raised when a firmware packet could not be delivered after all retries"""
    pass


class RcuFirmwareNotConfirmedError(RcuFirmwareError):
    """Raised when the unit does not confirm the update after rebooting"""
    pass


class RcuConflictUnresolvedError(RcuError):
    """Raised when one or more DALI address conflicts could not be resolved"""

    def __init__(self, addresses: list[int]):
        self.addresses = addresses
        super().__init__(f"Unresolved DALI address conflicts: {addresses}")


class RcuConfigurationError(RcuError):
    """Raised when configuration is invalid"""
    pass
