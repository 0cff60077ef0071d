import logging
from dataclasses import dataclass, field
from typing import Optional, Self, TYPE_CHECKING

from .models import RcuUnit
from .types import RcuSubsystem, Const
from .validators import validate_sequence_index, validate_group, validate_value, validate_count

if TYPE_CHECKING:
    from .protocol import RcuProtocol


@dataclass
class Sequence:
    """Steps through a list of multi-scenes, one per trigger"""
    index: int
    address: int
    multi_scene_addresses: list[int] = field(default_factory=list)

    HEADER_SIZE = 5

    def to_bytes(self) -> bytes:
        validate_sequence_index(self.index)
        validate_group(self.address, "sequence address")
        validate_count(self.multi_scene_addresses, "multi-scene addresses", Const.MAX_SEQUENCE_MULTI_SCENES)
        data = bytearray([self.index, self.address, 0, 0, len(self.multi_scene_addresses)])
        data += bytes(validate_value(a, "multi-scene address") for a in self.multi_scene_addresses)
        return bytes(data)

    @classmethod
    def parse_all(cls, data: bytes) -> list[Self]:
        """Records are packed back to back; a truncated trailing record keeps what is there."""
        sequences = []
        offset = 0
        while offset + cls.HEADER_SIZE <= len(data):
            index, address, count = data[offset], data[offset + 1], data[offset + 4]
            offset += cls.HEADER_SIZE
            sequences.append(cls(index=index, address=address, multi_scene_addresses=list(data[offset:offset + count])))
            offset += count
        return sequences


class RcuSequences:

    CMD1 = RcuSubsystem.GENERAL
    CMD: dict[str, int] = {
        "SETUP_SEQUENCE": 27,
        "GET_SEQUENCE": 28,         # [index] for one, [] for all (collector)
        "TRIGGER_SEQUENCE": 29,     # [address]
        "CLEAR_SEQUENCE": 32,       # [index] for one, [] for all
    }

    def __init__(self, protocol: "RcuProtocol"):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger

    async def setup(self, unit: RcuUnit, sequence: Sequence) -> bool:
        """Write a sequence (up to 20 multi-scenes). Returns True."""
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SETUP_SEQUENCE"], sequence.to_bytes())

    async def get(self, unit: RcuUnit, index: int) -> Optional[Sequence]:
        """Get one sequence. Returns None if the reply holds no record for index."""
        index = validate_sequence_index(index)
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["GET_SEQUENCE"], [index], skip_status_check=True)
        for sequence in Sequence.parse_all(frame.payload):
            if sequence.index == index:
                return sequence
        return None

    async def get_all(self, unit: RcuUnit, timeout: float = Const.GET_ALL_TIMEOUT) -> list[Sequence]:
        result = await self.protocol.collect(unit, self.CMD1, self.CMD["GET_SEQUENCE"], timeout=timeout)
        sequences = [s for frame in result.frames for s in Sequence.parse_all(frame.payload)]
        if not result.sentinel_seen:
            self.logger.warning(f"Sequences from {unit} incomplete, {len(sequences)} record(s) received")
        return sequences

    async def trigger(self, unit: RcuUnit, address: int) -> bool:
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["TRIGGER_SEQUENCE"],
                                           [validate_group(address, "sequence address")])

    async def clear(self, unit: RcuUnit, index: Optional[int] = None) -> bool:
        """Delete one sequence, or all of them when index is None."""
        data = [] if index is None else [validate_sequence_index(index)]
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["CLEAR_SEQUENCE"], data)
