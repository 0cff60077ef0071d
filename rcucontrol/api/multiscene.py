import logging
from dataclasses import dataclass, field
from typing import Optional, Self, TYPE_CHECKING

from ..io import name_to_bytes, bytes_to_name
from .models import RcuUnit
from .types import RcuSubsystem, Const
from .validators import validate_multi_scene_index, validate_group, validate_value, validate_count, validate_name
from ..exceptions import RcuResponseError

if TYPE_CHECKING:
    from .protocol import RcuProtocol


@dataclass
class MultiScene:
    """A list of scene addresses fired together (or in turn) by one address"""
    index: int
    address: int
    name: str = ""
    type: int = 0
    scene_addresses: list[int] = field(default_factory=list)

    def to_bytes(self, send_name: bool = False) -> bytes:
        validate_multi_scene_index(self.index)
        validate_group(self.address, "multi-scene address")
        validate_value(self.type, "multi-scene type")
        validate_count(self.scene_addresses, "scene addresses", Const.MAX_MULTI_SCENE_SCENES)
        data = bytearray([self.index])
        if send_name:
            data += name_to_bytes(validate_name(self.name, "multi-scene name"), Const.NAME_LENGTH)
        data += bytes([self.address, self.type])
        data += bytes(5)
        data.append(len(self.scene_addresses))
        data += bytes(validate_value(a, "scene address") for a in self.scene_addresses)
        return bytes(data)

    @classmethod
    def from_bytes(cls, data: bytes, send_name: bool = False) -> Self:
        min_size = 9 + (Const.NAME_LENGTH if send_name else 0)
        if len(data) < min_size:
            raise RcuResponseError(f"Multi-scene data too short: {len(data)} bytes, expected at least {min_size}")
        offset = 1
        name = ""
        if send_name:
            name = bytes_to_name(data[offset:offset + Const.NAME_LENGTH])
            offset += Const.NAME_LENGTH
        address, type = data[offset], data[offset + 1]
        offset += 2 + 5
        count = data[offset]
        offset += 1
        return cls(
            index = data[0],
            address = address,
            name = name or f"Multi-Scene {data[0]}",
            type = type,
            scene_addresses = list(data[offset:offset + count]),
        )


class RcuMultiScenes:

    CMD1 = RcuSubsystem.GENERAL
    CMD: dict[str, int] = {
        "SETUP_MULTI_SCENE": 24,
        "GET_MULTI_SCENE": 25,          # [index] for one, [] for all (collector)
        "TRIGGER_MULTI_SCENE": 26,      # [address]
        "CLEAR_MULTI_SCENE": 31,        # [index] for one, [] for all
    }

    def __init__(self, protocol: "RcuProtocol"):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger

    async def setup(self, unit: RcuUnit, multi_scene: MultiScene) -> bool:
        """Write a multi-scene (up to 20 scene addresses). Returns True."""
        data = multi_scene.to_bytes(self.protocol.config.send_name)
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SETUP_MULTI_SCENE"], data)

    async def get(self, unit: RcuUnit, index: int) -> MultiScene:
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["GET_MULTI_SCENE"], [validate_multi_scene_index(index)],
                                         skip_status_check=True)
        return MultiScene.from_bytes(frame.payload, self.protocol.config.send_name)

    async def get_all(self, unit: RcuUnit, timeout: float = Const.GET_ALL_TIMEOUT) -> list[MultiScene]:
        result = await self.protocol.collect(unit, self.CMD1, self.CMD["GET_MULTI_SCENE"], timeout=timeout)
        multi_scenes = []
        for frame in result.frames:
            try:
                multi_scenes.append(MultiScene.from_bytes(frame.payload, self.protocol.config.send_name))
            except RcuResponseError as e:
                self.logger.warning(f"Skipping multi-scene record from {unit}: {e}")
        if not result.sentinel_seen:
            self.logger.warning(f"Multi-scenes from {unit} incomplete, {len(multi_scenes)} record(s) received")
        return multi_scenes

    async def trigger(self, unit: RcuUnit, address: int) -> bool:
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["TRIGGER_MULTI_SCENE"],
                                           [validate_group(address, "multi-scene address")])

    async def clear(self, unit: RcuUnit, index: Optional[int] = None) -> bool:
        """Delete one multi-scene, or all of them when index is None."""
        data = [] if index is None else [validate_multi_scene_index(index)]
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["CLEAR_MULTI_SCENE"], data)
