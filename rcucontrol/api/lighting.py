import logging
import struct
from dataclasses import dataclass, field
from typing import Iterable, Optional, Self, TYPE_CHECKING

from .batch import RcuBatchResult, split_by_count, split_by_size, send_batches
from .models import RcuUnit
from .types import RcuSubsystem, InputType, Const
from .validators import (validate_group, validate_value, validate_index, validate_delay, validate_hour,
                         validate_minute, validate_range)
from ..exceptions import RcuResponseError, RcuValidationError

if TYPE_CHECKING:
    from .protocol import RcuProtocol


@dataclass
class ChannelState:
    """Level of one group, output or input channel"""
    index: int
    value: int

    @property
    def active(self) -> bool:
        return self.value > 0


@dataclass
class InputLedStatus:
    display_mode: int = 0       # Bits 0-1
    nightlight: bool = False    # Bit 4
    backlight: bool = False     # Bit 5

    def bitmask(self) -> int:
        flags = self.display_mode & 0x03
        if self.nightlight: flags |= 0x10
        if self.backlight: flags |= 0x20
        return flags

    @classmethod
    def from_byte(cls, flags: int) -> Self:
        return cls(
            display_mode = flags & 0x03,
            nightlight = (flags & 0x10) != 0,
            backlight = (flags & 0x20) != 0,
        )


@dataclass
class InputGroup:
    group: int
    preset: int = 0


@dataclass
class InputConfig:
    """Configuration of one input. Key card inputs always carry 20 group slots."""
    input: int
    type: int
    ramp: int = 0
    preset: int = 255
    led_status: InputLedStatus = field(default_factory=InputLedStatus)
    auto_mode: bool = False
    delay_off: int = 0
    delay_on: int = 0           # Not settable, always sent as 0
    groups: list[InputGroup] = field(default_factory=list)

    FIXED_SIZE = 39
    AUTO_TIME_SIZE = 28

    @property
    def is_key_card(self) -> bool:
        return self.type == InputType.KEY_CARD

    @property
    def group_slots(self) -> int:
        return Const.KEY_CARD_GROUPS if self.is_key_card else len(self.groups)

    @property
    def size(self) -> int:
        return self.FIXED_SIZE + 2 * self.group_slots

    def to_bytes(self) -> bytes:
        validate_index(self.input, "input")
        validate_value(self.type, "input type")
        validate_value(self.ramp, "ramp")
        validate_value(self.preset, "preset")
        validate_delay(self.delay_off, "delay off")
        if self.is_key_card and len(self.groups) > Const.KEY_CARD_GROUPS:
            raise RcuValidationError("groups", 0, Const.KEY_CARD_GROUPS, len(self.groups),
                                     message=f"Key card inputs take at most {Const.KEY_CARD_GROUPS} groups, received {len(self.groups)}")
        validate_range(len(self.groups), "group count", 0, 255)
        data = bytearray([self.input, self.type, self.ramp, self.preset, self.led_status.bitmask(), 1 if self.auto_mode else 0])
        data += bytes(self.AUTO_TIME_SIZE)
        data += struct.pack('<HH', self.delay_off, 0)
        data.append(self.group_slots)
        for i in range(self.group_slots):
            if i < len(self.groups):
                g = self.groups[i]
                data += bytes([validate_value(g.group, "group"), validate_value(g.preset, "preset brightness")])
            else:
                data += b'\x00\x00'
        return bytes(data)

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        if len(data) < cls.FIXED_SIZE:
            raise RcuResponseError(f"Input config data too short: {len(data)} bytes, expected at least {cls.FIXED_SIZE}")
        input_type = data[1]
        delay_off, delay_on = struct.unpack_from('<HH', data, 34)
        group_count = data[38]
        slots = Const.KEY_CARD_GROUPS if input_type == InputType.KEY_CARD else group_count
        groups = []
        offset = cls.FIXED_SIZE
        for _ in range(slots):
            if offset + 1 >= len(data): break
            if data[offset] > 0:
                groups.append(InputGroup(group=data[offset], preset=data[offset + 1]))
            offset += 2
        return cls(
            input = data[0],
            type = input_type,
            ramp = data[2],
            preset = data[3],
            led_status = InputLedStatus.from_byte(data[4]),
            auto_mode = data[5] != 0,
            delay_off = delay_off,
            delay_on = delay_on,
            groups = groups,
        )


@dataclass
class OutputAssignment:
    output: int
    address: int        # Lighting group, 0 when unassigned
    delay_off: int = 0  # Seconds
    delay_on: int = 0

    SIZE = 6

    @property
    def assigned(self) -> bool:
        return self.address > 0

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        output, address, delay_off, delay_on = struct.unpack_from('<BBHH', data, 0)
        return cls(output=output, address=address, delay_off=delay_off, delay_on=delay_on)


@dataclass
class OutputConfig:
    output: int
    min_level: int = 0
    max_level: int = 255
    auto_trigger: int = 0
    on_hour: int = 0
    on_minute: int = 0
    off_hour: int = 0
    off_minute: int = 0

    SIZE = 8

    def to_bytes(self) -> bytes:
        validate_index(self.output, "output")
        validate_value(self.min_level, "min level")
        validate_value(self.max_level, "max level")
        if self.min_level > self.max_level:
            raise RcuValidationError("min level", 0, self.max_level, self.min_level,
                                     message=f"Min level {self.min_level} cannot be greater than max level {self.max_level}")
        validate_value(self.auto_trigger, "auto trigger")
        for hour in (self.on_hour, self.off_hour): validate_hour(hour)
        for minute in (self.on_minute, self.off_minute): validate_minute(minute)
        return bytes([self.output, self.min_level, self.max_level, self.auto_trigger,
                      self.on_hour, self.on_minute, self.off_hour, self.off_minute])

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        return cls(*data[:cls.SIZE])

    @property
    def on_time(self) -> str:
        return f"{self.on_hour:02d}:{self.on_minute:02d}"

    @property
    def off_time(self) -> str:
        return f"{self.off_hour:02d}:{self.off_minute:02d}"


class RcuLighting:
    """Lighting groups, outputs and inputs."""

    CMD1 = RcuSubsystem.LIGHTING
    CMD: dict[str, int] = {
        "SETUP_INPUT": 0,               # One or more input config records
        "GET_INPUT_CONFIG": 9,          # Collector, one record per frame
        "SET_OUTPUT_ASSIGN": 20,        # [output, group] pairs
        "GET_OUTPUT_ASSIGN": 31,        # 6-byte records
        "SET_OUTPUT_DELAY_OFF": 32,     # [output, delay LE] triples
        "SET_OUTPUT_DELAY_ON": 33,      # [output, delay LE] triples
        "GET_OUTPUT_CONFIG": 34,        # 8-byte records
        "SET_OUTPUT_CONFIG": 35,        # 8-byte records
        "SET_INPUT_STATE": 60,          # [input, value]
        "SET_OUTPUT_STATE": 61,         # [output, value]
        "SET_GROUP_STATE": 62,          # [group, value] pairs
        "GET_INPUT_STATE": 63,          # One byte per input
        "GET_OUTPUT_STATE": 64,         # One byte per output
        "GET_GROUP_STATE": 65,          # One byte per group, indexed by group number
    }

    def __init__(self, protocol: "RcuProtocol"):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger

    # ============================
    # STATES
    # ============================

    async def set_group_state(self, unit: RcuUnit, group: int, value: int) -> bool:
        """Set a lighting group level (group 1-255, value 0-255). Returns True."""
        data = [validate_group(group), validate_value(value)]
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_GROUP_STATE"], data)

    async def set_group_states(self, unit: RcuUnit, states: Iterable[tuple[int, int]]) -> bool:
        """Set several groups in one frame. Out-of-range pairs are dropped; at least one must remain."""
        data = []
        for group, value in states:
            if Const.MIN_GROUP <= group <= Const.MAX_GROUP and 0 <= value <= Const.MAX_VALUE:
                data += [group, value]
            else:
                self.logger.warning(f"Dropping invalid group state {group}={value}")
        if not data:
            raise RcuValidationError("states", message="No valid group states to set")
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_GROUP_STATE"], data)

    async def set_output_state(self, unit: RcuUnit, output: int, value: int) -> bool:
        data = [validate_index(output, "output"), validate_value(value)]
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_OUTPUT_STATE"], data)

    async def set_input_state(self, unit: RcuUnit, input: int, value: int) -> bool:
        data = [validate_index(input, "input"), validate_value(value)]
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_INPUT_STATE"], data)

    async def _get_states(self, unit: RcuUnit, command: str) -> list[ChannelState]:
        frame = await self.protocol.send(unit, self.CMD1, self.CMD[command], skip_status_check=True)
        return [ChannelState(index=i, value=v) for i, v in enumerate(frame.payload)]

    async def get_group_states(self, unit: RcuUnit) -> list[ChannelState]:
        """Get every group level. Returns a list indexed by group number."""
        return await self._get_states(unit, "GET_GROUP_STATE")

    async def get_output_states(self, unit: RcuUnit) -> list[ChannelState]:
        """Get every output level, starting from output 0."""
        return await self._get_states(unit, "GET_OUTPUT_STATE")

    async def get_input_states(self, unit: RcuUnit) -> list[ChannelState]:
        """Get every input level, starting from input 0."""
        return await self._get_states(unit, "GET_INPUT_STATE")

    # ============================
    # INPUT CONFIGURATION
    # ============================

    async def get_input_configs(self, unit: RcuUnit, timeout: float = Const.INPUT_CONFIG_TIMEOUT) -> list[InputConfig]:
        """Get the configuration of every input. Returns whatever arrived if the unit stops early."""
        result = await self.protocol.collect(unit, self.CMD1, self.CMD["GET_INPUT_CONFIG"], timeout=timeout)
        if not result.sentinel_seen:
            self.logger.warning(f"Input config from {unit} incomplete, {len(result.frames)} record(s) received")
        configs = []
        for frame in result.frames:
            try:
                configs.append(InputConfig.from_bytes(frame.payload))
            except RcuResponseError as e:
                self.logger.warning(f"Skipping input config record from {unit}: {e}")
        return configs

    async def setup_input(self, unit: RcuUnit, config: InputConfig) -> bool:
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SETUP_INPUT"], config.to_bytes())

    async def setup_inputs(self, unit: RcuUnit, configs: list[InputConfig], max_bytes: int = Const.MAX_BATCH_BYTES) -> RcuBatchResult:
        """Send many input configs, packed into frames of at most max_bytes."""
        encoded = {id(c): c.to_bytes() for c in configs}

        async def send(_, batch: list[InputConfig]):
            await self.protocol.send(unit, self.CMD1, self.CMD["SETUP_INPUT"], b''.join(encoded[id(c)] for c in batch))

        batches = split_by_size(configs, lambda c: c.size, max_bytes)
        return await send_batches(batches, send, lambda c: c.input, self.logger, "input config")

    # ============================
    # OUTPUT ASSIGNMENT AND CONFIGURATION
    # ============================

    async def get_output_assignments(self, unit: RcuUnit) -> list[OutputAssignment]:
        """Get the group assigned to every output, with its delays."""
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["GET_OUTPUT_ASSIGN"], skip_status_check=True)
        data = frame.payload
        if len(data) % OutputAssignment.SIZE:
            self.logger.warning(f"Output assignment data length {len(data)} is not a multiple of {OutputAssignment.SIZE}")
        return [OutputAssignment.from_bytes(data[i:i + OutputAssignment.SIZE])
                for i in range(0, len(data) - OutputAssignment.SIZE + 1, OutputAssignment.SIZE)]

    async def set_output_assignment(self, unit: RcuUnit, output: int, address: int) -> bool:
        data = [validate_index(output, "output"), validate_value(address, "lighting address")]
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_OUTPUT_ASSIGN"], data)

    async def set_output_assignments(self, unit: RcuUnit, addresses: list[int]) -> bool:
        """Assign every output in one frame; addresses[i] is the group for output i."""
        if not addresses: return True
        validate_range(len(addresses), "output count", 1, 256)
        data = []
        for output, address in enumerate(addresses):
            data += [output, validate_value(address, f"lighting address for output {output}")]
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_OUTPUT_ASSIGN"], data)

    async def set_output_delay_off(self, unit: RcuUnit, output: int, delay: int) -> bool:
        return await self._set_output_delays(unit, "SET_OUTPUT_DELAY_OFF", [(output, delay)])

    async def set_output_delay_on(self, unit: RcuUnit, output: int, delay: int) -> bool:
        return await self._set_output_delays(unit, "SET_OUTPUT_DELAY_ON", [(output, delay)])

    async def _set_output_delays(self, unit: RcuUnit, command: str, delays: list[tuple[int, int]]) -> bool:
        data = b''.join(struct.pack('<BH', validate_index(o, "output"), validate_delay(d)) for o, d in delays)
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD[command], data)

    async def set_output_delays_batch(self, unit: RcuUnit, delays: list[tuple[int, int]], delay_on: bool = False,
                                      max_bytes: int = Const.MAX_BATCH_BYTES) -> RcuBatchResult:
        """Set delay-off (or delay-on) for many outputs, 3 bytes per output."""
        for o, d in delays:
            validate_index(o, "output")
            validate_delay(d)
        command = "SET_OUTPUT_DELAY_ON" if delay_on else "SET_OUTPUT_DELAY_OFF"

        async def send(_, batch):
            await self._set_output_delays(unit, command, batch)

        return await send_batches(split_by_count(delays, max_bytes // 3), send, lambda d: d[0], self.logger, "output delay")

    async def get_output_configs(self, unit: RcuUnit) -> list[OutputConfig]:
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["GET_OUTPUT_CONFIG"], skip_status_check=True)
        data = frame.payload
        if len(data) % OutputConfig.SIZE:
            self.logger.warning(f"Output config data length {len(data)} is not a multiple of {OutputConfig.SIZE}")
        return [OutputConfig.from_bytes(data[i:i + OutputConfig.SIZE])
                for i in range(0, len(data) - OutputConfig.SIZE + 1, OutputConfig.SIZE)]

    async def set_output_config(self, unit: RcuUnit, config: OutputConfig) -> bool:
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SET_OUTPUT_CONFIG"], config.to_bytes())

    async def set_output_configs(self, unit: RcuUnit, configs: list[OutputConfig], max_bytes: int = Const.MAX_BATCH_BYTES) -> RcuBatchResult:
        encoded = {id(c): c.to_bytes() for c in configs}

        async def send(_, batch: list[OutputConfig]):
            await self.protocol.send(unit, self.CMD1, self.CMD["SET_OUTPUT_CONFIG"], b''.join(encoded[id(c)] for c in batch))

        batches = split_by_count(configs, max_bytes // OutputConfig.SIZE)
        return await send_batches(batches, send, lambda c: c.output, self.logger, "output config")
