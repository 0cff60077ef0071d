import pytest

from rcucontrol.cli import build_parser, main, resolve_unit, run
from rcucontrol.config import RcuConfig
from rcucontrol.exceptions import RcuConfigurationError

from conftest import UNIT_CAN_ID, frame, ok


def write_config(tmp_path, port: int) -> str:
    path = tmp_path / "config.yaml"
    path.write_text(f"units:\n  - name: lobby\n    ip: 127.0.0.1\n    can_id: {UNIT_CAN_ID}\n    port: {port}\n"
                    f"protocol:\n  timeout: 0.5\n")
    return str(path)


def test_parser():
    args = build_parser().parse_args(["--verbose", "dali-scan", "lobby", "--extend"])
    assert (args.command, args.unit, args.extend, args.commission, args.verbose) == \
        ("dali-scan", "lobby", True, False, True)
    with pytest.raises(SystemExit):
        build_parser().parse_args(["dali-scan", "lobby", "--extend", "--commission"])
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_resolve_unit():
    config = RcuConfig.from_dict({"units": [{"name": "lobby", "ip": "10.0.0.5", "can_id": "0.0.0.7"}]})
    assert resolve_unit(config, "lobby").ip == "10.0.0.5"
    unit = resolve_unit(config, "10.0.0.9, 0.0.0.8")
    assert (unit.ip, unit.can_id) == ("10.0.0.9", "0.0.0.8")
    with pytest.raises(RcuConfigurationError):
        resolve_unit(config, "nowhere,0.0.0.1")
    with pytest.raises(RcuConfigurationError):
        resolve_unit(config, "pool")


async def test_clock_command(fake_unit, tmp_path, capsys):
    fake_unit.on(1, 10, frame(1, 10, [24, 12, 31, 2, 23, 59, 58]))
    args = build_parser().parse_args(["--config", write_config(tmp_path, fake_unit.port), "clock", "lobby"])
    assert await run(args) == 0
    assert "2024-12-31 23:59:58" in capsys.readouterr().out
    assert fake_unit.requests(1, 9) == []


async def test_zigbee_explore_without_device(fake_unit, tmp_path, capsys):
    fake_unit.on(80, 2, ok(80, 2))
    args = build_parser().parse_args(["--config", write_config(tmp_path, fake_unit.port),
                                      "zigbee-explore", "lobby", "--timeout", "0.2"])
    assert await run(args) == 1
    assert "No device joined" in capsys.readouterr().out
    assert len(fake_unit.requests(80, 3)) == 1


def test_main_reports_errors(tmp_path, capsys):
    path = tmp_path / "config.yaml"
    path.write_text("units: []\n")
    with pytest.raises(SystemExit) as e:
        main(["--config", str(path), "info", "lobby"])
    assert e.value.code == 1
    assert "No unit named 'lobby'" in capsys.readouterr().out
