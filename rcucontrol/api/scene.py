import logging
from dataclasses import dataclass, field
from typing import Optional, Self, TYPE_CHECKING

from ..io import name_to_bytes, bytes_to_name
from .models import RcuUnit
from .types import RcuSubsystem, SceneObject, Const
from .validators import validate_scene_index, validate_group, validate_value, validate_count, validate_name
from ..exceptions import RcuResponseError, RcuValidationError

if TYPE_CHECKING:
    from .protocol import RcuProtocol


@dataclass
class SceneItem:
    """One action of a scene. Lighting values are percentages, everything else is sent as-is."""
    object: int
    address: int
    value: int | float

    @property
    def is_lighting(self) -> bool:
        return self.object == SceneObject.LIGHTING

    def to_bytes(self) -> bytes:
        validate_value(self.object, "scene item object")
        validate_value(self.address, "scene item address")
        if self.is_lighting:
            if isinstance(self.value, bool) or not isinstance(self.value, (int, float)) or not 0 <= self.value <= 100:
                raise RcuValidationError("lighting level (%)", 0, 100, self.value)
            value = round(self.value / 100 * 255)
        else:
            value = validate_value(self.value, "scene item value")
        return bytes([self.object, self.address, value])

    @classmethod
    def from_bytes(cls, data: bytes) -> Self:
        obj, address, value = data[0], data[1], data[2]
        if obj == SceneObject.LIGHTING:
            value = round(value / 255 * 100)
        return cls(object=obj, address=address, value=value)


@dataclass
class Scene:
    index: int
    address: int
    name: str = ""
    items: list[SceneItem] = field(default_factory=list)
    item_count: Optional[int] = None    # As reported by the unit, may exceed len(items) on a short reply

    def to_bytes(self, send_name: bool = False) -> bytes:
        validate_scene_index(self.index)
        validate_group(self.address, "scene address")
        validate_count(self.items, "scene items", Const.MAX_SCENE_ITEMS)
        data = bytearray([self.index])
        if send_name:
            data += name_to_bytes(validate_name(self.name, "scene name"), Const.NAME_LENGTH)
        data += bytes([self.address, len(self.items)])
        data += bytes(7)
        for item in self.items:
            data += item.to_bytes()
        return bytes(data)

    @classmethod
    def from_bytes(cls, data: bytes, send_name: bool = False) -> Self:
        header = 1 + (Const.NAME_LENGTH if send_name else 0) + 2
        if len(data) < header:
            raise RcuResponseError(f"Scene data too short: {len(data)} bytes, expected at least {header}")
        offset = 1
        name = ""
        if send_name:
            name = bytes_to_name(data[offset:offset + Const.NAME_LENGTH])
            offset += Const.NAME_LENGTH
        address, count = data[offset], data[offset + 1]
        offset += 2 + 7
        items = []
        for i in range(count):
            start = offset + 3 * i
            if start + 3 > len(data): break
            items.append(SceneItem.from_bytes(data[start:start + 3]))
        return cls(index=data[0], address=address, name=name, items=items, item_count=count)

    @property
    def is_empty(self) -> bool:
        return not self.name and not self.item_count


class RcuScenes:
    """Scenes: a named list of group/aircon/curtain actions fired by one address."""

    CMD1 = RcuSubsystem.GENERAL
    CMD: dict[str, int] = {
        "SETUP_SCENE": 19,
        "GET_SCENE_INFOR": 20,      # [index] for one, [] for all (collector)
        "TRIGGER_SCENE": 23,        # [address]
        "CLEAR_SCENE": 30,          # [index] for one, [] for all
    }

    def __init__(self, protocol: "RcuProtocol"):
        self.protocol = protocol
        self.logger: logging.Logger = protocol.logger

    @property
    def send_name(self) -> bool:
        return self.protocol.config.send_name

    async def setup(self, unit: RcuUnit, scene: Scene) -> bool:
        """Write a scene (up to 85 items). Returns True."""
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["SETUP_SCENE"], scene.to_bytes(self.send_name))

    async def get(self, unit: RcuUnit, index: int) -> Scene:
        frame = await self.protocol.send(unit, self.CMD1, self.CMD["GET_SCENE_INFOR"], [validate_scene_index(index)],
                                         skip_status_check=True)
        return Scene.from_bytes(frame.payload, self.send_name)

    async def get_all(self, unit: RcuUnit, timeout: float = Const.GET_ALL_TIMEOUT) -> list[Scene]:
        """Get every configured scene. Empty slots are left out."""
        result = await self.protocol.collect(unit, self.CMD1, self.CMD["GET_SCENE_INFOR"], timeout=timeout)
        scenes = []
        for frame in result.frames:
            try:
                scene = Scene.from_bytes(frame.payload, self.send_name)
            except RcuResponseError as e:
                self.logger.warning(f"Skipping scene record from {unit}: {e}")
                continue
            if scene.is_empty: continue
            if not scene.name: scene.name = f"Scene {scene.index}"
            scenes.append(scene)
        if not result.sentinel_seen:
            self.logger.warning(f"Scenes from {unit} incomplete, {len(scenes)} scene(s) received")
        return scenes

    async def trigger(self, unit: RcuUnit, address: int) -> bool:
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["TRIGGER_SCENE"], [validate_group(address, "scene address")])

    async def clear(self, unit: RcuUnit, index: Optional[int] = None) -> bool:
        """Delete one scene, or every scene when index is None."""
        data = [] if index is None else [validate_scene_index(index)]
        return await self.protocol.send_ok(unit, self.CMD1, self.CMD["CLEAR_SCENE"], data)
