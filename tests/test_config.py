import pytest

from rcucontrol.config import RcuConfig
from rcucontrol.exceptions import RcuConfigurationError


EXAMPLE = """
protocol:
  port: 1234
  broadcast_port: 4321
  timeout: 2.5
  send_name: false
units:
  - name: lobby
    ip: 192.168.1.50
    can_id: 0.0.0.101
    barcode: 8930000210043
  - name: pool
    ip: 192.168.1.51
    can_id: 0.0.1.2
    port: 5000
logging:
  file: rcucontrol.log
  level: debug
"""


def write(tmp_path, text: str) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return str(path)


def test_load(tmp_path):
    config = RcuConfig.load(write(tmp_path, EXAMPLE))
    assert config.protocol.broadcast_port == 4321
    assert config.protocol.timeout == 2.5
    assert config.protocol.send_name is False
    assert [u.name for u in config.units] == ["lobby", "pool"]
    lobby = config.unit("lobby")
    assert lobby.barcode == "8930000210043"
    assert lobby.model == "RCU-48IN-16RL"
    assert lobby.address == 0x65
    assert config.unit("pool").port == 5000
    assert config.logging.file == "rcucontrol.log"
    assert config.logging.level == "DEBUG"


def test_empty_file_is_defaults(tmp_path):
    config = RcuConfig.load(write(tmp_path, ""))
    assert config.protocol.port == 1234
    assert config.units == []
    assert config.logging.level == "INFO"


def test_unknown_unit_name(tmp_path):
    config = RcuConfig.load(write(tmp_path, EXAMPLE))
    with pytest.raises(RcuConfigurationError, match="lobby, pool"):
        config.unit("kitchen")


def test_missing_file(tmp_path):
    with pytest.raises(RcuConfigurationError):
        RcuConfig.load(str(tmp_path / "missing.yaml"))


def test_invalid_yaml(tmp_path):
    with pytest.raises(RcuConfigurationError, match="Invalid YAML"):
        RcuConfig.load(write(tmp_path, "units: [\n"))


def unit_entry(**overrides) -> dict:
    entry = {"name": "lobby", "ip": "10.0.0.5", "can_id": "0.0.0.101"}
    entry.update(overrides)
    return {k: v for k, v in entry.items() if v is not None}


@pytest.mark.parametrize("data", [
    [],
    {"mqtt": {}},
    {"protocol": {"port": 0}},
    {"protocol": {"timeout": -1}},
    {"protocol": {"retries": 3}},
    {"units": {"name": "lobby"}},
    {"units": [unit_entry(ip=None)]},
    {"units": [unit_entry(ip="10.0.0")]},
    {"units": [unit_entry(can_id="0.0.0.256")]},
    {"units": [unit_entry(can_id="1.2.3")]},
    {"units": [unit_entry(port=0)]},
    {"units": [unit_entry(port=True)]},
    {"units": [unit_entry(colour="red")]},
    {"units": [unit_entry(), unit_entry(ip="10.0.0.6")]},
    {"logging": {"level": "LOUD"}},
    {"logging": {"rotate": True}},
])
def test_invalid_config(data):
    with pytest.raises(RcuConfigurationError):
        RcuConfig.from_dict(data)
