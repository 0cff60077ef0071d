"""
YAML configuration for tools built on the library.

    protocol:
      port: 1234
      broadcast_port: 1234
      timeout: 5.0
      send_name: false
      checksum_includes_length: false
    units:
      - name: lobby
        ip: 192.168.1.50
        can_id: 0.0.0.101
        barcode: "8930000210043"
    logging:
      file: rcucontrol.log
      debug_file: rcucontrol-debug.log
      level: INFO

Every section is optional. Unknown keys and malformed values raise RcuConfigurationError.
"""
import dataclasses
import ipaddress
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Self

import yaml

from .api.models import ProtocolConfig, RcuUnit
from .exceptions import RcuConfigurationError


CAN_ID_PATTERN = re.compile(r'^\d{1,3}(\.\d{1,3}){3}$')


@dataclass
class LoggingConfig:
    file: Optional[str] = None
    debug_file: Optional[str] = None
    level: str = "INFO"


@dataclass
class RcuConfig:
    protocol: ProtocolConfig = field(default_factory=ProtocolConfig)
    units: list[RcuUnit] = field(default_factory=list)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    SECTIONS = ("protocol", "units", "logging")
    UNIT_REQUIRED = ("name", "ip", "can_id")
    UNIT_OPTIONAL = ("barcode", "port")

    def unit(self, name: str) -> RcuUnit:
        """Look up a unit by name. Raises RcuConfigurationError if there is no such unit."""
        for unit in self.units:
            if unit.name == name:
                return unit
        raise RcuConfigurationError(f"No unit named {name!r} in config, known units: {', '.join(u.name or '' for u in self.units) or 'none'}")

    @classmethod
    def load(cls, path: str) -> Self:
        try:
            with open(path) as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise RcuConfigurationError(f"Unable to read config file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise RcuConfigurationError(f"Invalid YAML in config file {path}: {e}") from e
        return cls.from_dict(data or {})

    @classmethod
    def from_dict(cls, data: Any) -> Self:
        if not isinstance(data, dict):
            raise RcuConfigurationError("Config must be a mapping")
        unknown = [k for k in data if k not in cls.SECTIONS]
        if unknown:
            raise RcuConfigurationError(f"Unknown config sections: {', '.join(map(str, unknown))}")
        return cls(
            protocol = cls._protocol(data.get("protocol") or {}),
            units = cls._units(data.get("units") or []),
            logging = cls._logging(data.get("logging") or {}),
        )

    @staticmethod
    def _fields(section: str, data: Any, known: tuple[str, ...]) -> dict:
        if not isinstance(data, dict):
            raise RcuConfigurationError(f"{section} config must be a mapping")
        unknown = [k for k in data if k not in known]
        if unknown:
            raise RcuConfigurationError(f"Unknown {section} config fields: {', '.join(map(str, unknown))}")
        return data

    @classmethod
    def _protocol(cls, data: Any) -> ProtocolConfig:
        known = tuple(f.name for f in dataclasses.fields(ProtocolConfig))
        data = cls._fields("protocol", data, known)
        try:
            return ProtocolConfig(**data)
        except (TypeError, ValueError) as e:
            raise RcuConfigurationError(f"Invalid protocol config: {e}") from e

    @classmethod
    def _units(cls, data: Any) -> list[RcuUnit]:
        if not isinstance(data, list):
            raise RcuConfigurationError("units config must be a list")
        units = []
        names = set()
        for i, entry in enumerate(data):
            entry = cls._fields(f"unit {i}", entry, cls.UNIT_REQUIRED + cls.UNIT_OPTIONAL)

            # Check for required fields
            missing = [f for f in cls.UNIT_REQUIRED if f not in entry]
            if missing:
                raise RcuConfigurationError(f"Missing unit config fields in entry {i}: {', '.join(missing)}")

            name = str(entry["name"])
            if name in names:
                raise RcuConfigurationError(f"Duplicate unit name in entry {i}: {name}")
            names.add(name)

            ip = str(entry["ip"])
            try:
                ipaddress.IPv4Address(ip)
            except ValueError:
                raise RcuConfigurationError(f"Invalid IP address in unit config {i}: {ip}")

            can_id = str(entry["can_id"])
            if not CAN_ID_PATTERN.match(can_id) or any(int(part) > 255 for part in can_id.split(".")):
                raise RcuConfigurationError(f"Invalid CAN ID in unit config {i}: {can_id}")

            port = entry.get("port")
            if port is not None and (not isinstance(port, int) or isinstance(port, bool) or not 1 <= port <= 65535):
                raise RcuConfigurationError(f"Invalid port number in unit config {i}: {port}")

            barcode = entry.get("barcode")
            units.append(RcuUnit(ip=ip, can_id=can_id, name=name,
                                 barcode=str(barcode) if barcode is not None else None, port=port))
        return units

    @classmethod
    def _logging(cls, data: Any) -> LoggingConfig:
        data = cls._fields("logging", data, tuple(f.name for f in dataclasses.fields(LoggingConfig)))
        config = LoggingConfig(**data)
        config.level = str(config.level).upper()
        if not isinstance(logging.getLevelName(config.level), int):
            raise RcuConfigurationError(f"Invalid logging level: {config.level}")
        return config
