"""
Firmware update over GENERAL/UPDATE_FIRMWARE.

An image is a text file of colon-prefixed hex lines. The first line is normally a
header ":VVVV,barcode" (major and minor version as two hex bytes, then the target
board's barcode). Every other line is raw bytes in hex.

    VALIDATING_IMAGE -> SENDING_HEADER -> STREAMING_BODY -> SENDING_CHECKSUM -> AWAITING_REBOOT -> DONE
                                                  (any failure) -> FAILED

The header packet is not part of the checksum. Body lines are packed into packets
of at most 1000 bytes without splitting a line, and the 16-bit sum of every body
byte is sent last, low byte first. After a settle delay the unit is polled until
its status byte shows the application is running again.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, TYPE_CHECKING

from .models import RcuUnit
from .types import RcuSubsystem, model_for_barcode
from ..exceptions import (RcuCancelledError, RcuError, RcuFirmwareError, RcuFirmwareImageError, RcuBoardMismatchError,
                          RcuTransferFailedError, RcuFirmwareNotConfirmedError)

if TYPE_CHECKING:
    from .protocol import RcuProtocol


class FirmwareState(Enum):
    VALIDATING_IMAGE = "ValidatingImage"
    SENDING_HEADER = "SendingHeader"
    STREAMING_BODY = "StreamingBody"
    SENDING_CHECKSUM = "SendingChecksum"
    AWAITING_REBOOT = "AwaitingReboot"
    DONE = "Done"
    FAILED = "Failed"


@dataclass
class FirmwareTimings:
    packet_retries: int = 6
    retry_backoff: float = 0.3
    packet_timeout: Optional[float] = None      # None uses ProtocolConfig.timeout
    settle_min: float = 5.0
    settle_max: float = 30.0
    settle_per_line: float = 0.05
    confirm_attempts: int = 10
    confirm_interval: float = 1.0
    confirm_timeout: Optional[float] = None
    slave_grace: float = 8.0
    slave_grace_attempts: int = 3               # Confirmation within this many polls earns the grace period


@dataclass
class FirmwareImage:
    """A parsed firmware image"""
    body: list[bytes]
    version: Optional[tuple[int, int]] = None
    barcode: Optional[str] = None
    first_line: bytes = b''         # Sent as the header packet

    @property
    def has_header(self) -> bool:
        return self.version is not None

    @property
    def version_label(self) -> str:
        return f"{self.version[0]}.{self.version[1]}" if self.version else "unknown"

    @property
    def model(self) -> str:
        return model_for_barcode(self.barcode)

    @property
    def line_count(self) -> int:
        return len(self.body) + 1

    @property
    def checksum(self) -> int:
        return sum(sum(line) for line in self.body) & 0xFFFF

    @classmethod
    def parse(cls, text: str) -> "FirmwareImage":
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        if not lines: raise RcuFirmwareImageError("Firmware image is empty")
        for number, line in enumerate(lines, start=1):
            if not line.startswith(":"):
                raise RcuFirmwareImageError(f"Invalid firmware image at line {number}: must start with ':'")

        first = lines[0][1:]
        version = barcode = None
        if "," in first:
            parts = first.split(",")
            if len(parts) != 2 or len(parts[0]) != 4:
                raise RcuFirmwareImageError(f"Invalid firmware header {lines[0]!r}")
            first_line = _hex_line(parts[0], 1)
            version = (first_line[0], first_line[1])
            barcode = parts[1].strip()
        else:
            first_line = _hex_line(first, 1)

        body = [_hex_line(line[1:], number) for number, line in enumerate(lines[1:], start=2)]
        return cls(body=body, version=version, barcode=barcode, first_line=first_line)


def _hex_line(content: str, number: int) -> bytes:
    try:
        return bytes.fromhex(content)
    except ValueError as e:
        raise RcuFirmwareImageError(f"Invalid hex at line {number}: {e}") from e


ProgressCallback = Callable[[int, str], None]


@dataclass
class FirmwareUpdateResult:
    success: bool
    version: str
    packets_sent: int = 0
    checksum: int = 0
    states: list[FirmwareState] = field(default_factory=list)


class RcuFirmware:

    CMD1 = RcuSubsystem.GENERAL
    CMD: dict[str, int] = {
        "REQUEST_UNIT": 1,          # Polled after the update, first byte >= 10 once running
        "UPDATE_FIRMWARE": 6,       # Header, body packets and checksum
    }

    MAX_PACKET_SIZE = 1000
    RUNNING_STATUS = 10

    def __init__(self, protocol: "RcuProtocol", timings: Optional[FirmwareTimings] = None):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger
        self.timings = timings or FirmwareTimings()

    def validate_image(self, text: str, expected_barcode: Optional[str] = None) -> FirmwareImage:
        """Parse an image and check it targets the expected board."""
        image = FirmwareImage.parse(text)
        if not image.has_header:
            self.logger.warning("First firmware line is not a header, version detection skipped")
            return image
        self.logger.info(f"Firmware version {image.version_label} for {image.model} ({image.barcode})")
        if image.model.startswith("Unknown"):
            self.logger.warning(f"Unknown unit barcode in firmware header: {image.barcode}")
        if expected_barcode and image.barcode != str(expected_barcode).strip():
            raise RcuBoardMismatchError(f"{model_for_barcode(expected_barcode)} ({str(expected_barcode).strip()})",
                                        f"{image.model} ({image.barcode})")
        return image

    async def send_packet(self, unit: RcuUnit, data: bytes | list[int]) -> None:
        """Send one firmware packet, retrying with a fixed backoff."""
        retries = self.timings.packet_retries
        for attempt in range(1, retries + 1):
            try:
                await self.protocol.send(unit, self.CMD1, self.CMD["UPDATE_FIRMWARE"], data,
                                         timeout=self.timings.packet_timeout)
                return
            except RcuCancelledError:
                raise
            except RcuError as e:
                self.logger.warning(f"Firmware packet attempt {attempt}/{retries} to {unit} failed: {e}")
                if attempt == retries:
                    raise RcuTransferFailedError(f"Firmware packet not accepted by {unit} after {retries} attempts: {e}") from e
                await asyncio.sleep(self.timings.retry_backoff)

    async def confirm(self, unit: RcuUnit) -> bool:
        """Poll the unit after an update. True once its status byte shows it is running."""
        t = self.timings
        failures = 0
        for attempt in range(1, t.confirm_attempts + 1):
            try:
                status = await self.protocol.send(unit, self.CMD1, self.CMD["REQUEST_UNIT"], skip_status_check=True,
                                                  timeout=t.confirm_timeout)
            except RcuCancelledError:
                raise
            except RcuError as e:
                self.logger.warning(f"Unit request attempt {attempt} after firmware update failed: {e}")
                failures += 1
            else:
                if status.payload and status.payload[0] >= self.RUNNING_STATUS:
                    if failures < t.slave_grace_attempts:
                        self.logger.info(f"{unit} answered, waiting {t.slave_grace:.0f}s for slave units to finish")
                        await asyncio.sleep(t.slave_grace)
                    return True
            await asyncio.sleep(t.confirm_interval)
        return False

    def settle_time(self, lines: int) -> float:
        t = self.timings
        return max(t.settle_min, min(t.settle_max, lines * t.settle_per_line))

    async def update(self, unit: RcuUnit, image_text: str,
                     on_progress: Optional[ProgressCallback] = None,
                     expected_barcode: Optional[str] = None) -> FirmwareUpdateResult:
        """Flash a firmware image to a unit.

        The image header must match expected_barcode, which defaults to the unit's barcode
        (no check when neither is known). on_progress(percent, label) is called at each step.

        Raises RcuFirmwareImageError, RcuBoardMismatchError, RcuTransferFailedError or
        RcuFirmwareNotConfirmedError. Nothing is sent when the image fails validation."""
        states: list[FirmwareState] = []

        def enter(state: FirmwareState) -> None:
            states.append(state)
            self.logger.debug(f"Firmware update of {unit}: {state.value}")

        def progress(percent: int, label: str) -> None:
            if on_progress: on_progress(percent, label)

        try:
            enter(FirmwareState.VALIDATING_IMAGE)
            image = self.validate_image(image_text, expected_barcode or unit.barcode)

            enter(FirmwareState.SENDING_HEADER)
            await self.send_packet(unit, image.first_line)
            progress(5, f"Sending firmware version {image.version_label}...")

            enter(FirmwareState.STREAMING_BODY)
            total = image.line_count
            processed = 1
            packets_sent = 1
            current = bytearray()
            for line in image.body:
                if current and len(current) + len(line) > self.MAX_PACKET_SIZE:
                    await self.send_packet(unit, bytes(current))
                    packets_sent += 1
                    current = bytearray()
                current.extend(line)
                processed += 1
                progress(min(round(processed / total * 90), 90), f"Processing line {processed}/{total}")
            if current:
                await self.send_packet(unit, bytes(current))
                packets_sent += 1

            enter(FirmwareState.SENDING_CHECKSUM)
            progress(95, "Sending firmware checksum...")
            checksum = image.checksum
            await self.send_packet(unit, [checksum & 0xFF, (checksum >> 8) & 0xFF])
            packets_sent += 1

            enter(FirmwareState.AWAITING_REBOOT)
            progress(98, "Unit is updating firmware, please wait...")
            await asyncio.sleep(self.settle_time(processed))
            progress(99, "Verifying firmware update...")
            if not await self.confirm(unit):
                raise RcuFirmwareNotConfirmedError(f"{unit} did not respond after the firmware update")
        except RcuFirmwareError as e:
            enter(FirmwareState.FAILED)
            self.logger.error(f"Firmware update of {unit} failed: {e}")
            raise

        enter(FirmwareState.DONE)
        progress(100, "Firmware update completed successfully")
        self.logger.info(f"Firmware {image.version_label} installed on {unit}")
        return FirmwareUpdateResult(True, image.version_label, packets_sent, checksum, states)
