#!/usr/bin/env python3
"""
rcucontrol command line tool.

    rcucontrol discover
    rcucontrol info lobby
    rcucontrol clock lobby --sync
    rcucontrol firmware lobby RCU-48IN-16RL_v2.3.hex
    rcucontrol dali-scan lobby --commission
    rcucontrol zigbee-explore 192.168.1.50,0.0.0.101

A unit is a name from the config file, or "ip,can_id".
"""
import argparse
import os
from typing import Optional

from .api.models import RcuUnit
from .api.protocol import RcuProtocol
from .api.dali import DaliScanResult
from .config import RcuConfig
from .exceptions import RcuConfigurationError
from .utils import run_with_keyboard_interrupt, setup_logging


DEFAULT_CONFIG = "config.yaml"


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="rcucontrol", description="Talk to RCU building automation units over UDP")
    ap.add_argument("--config", default=DEFAULT_CONFIG, help=f"YAML config file (default: {DEFAULT_CONFIG})")
    ap.add_argument("--verbose", action="store_true", help="Print every frame sent and received")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("discover", help="Broadcast a hardware info request and list the units that answer")
    p.add_argument("--timeout", type=float, default=3.0, help="Seconds to wait for replies (default: 3)")
    p.add_argument("--broadcast-ip", default=None, help="Directed broadcast address (default: 255.255.255.255)")

    p = sub.add_parser("info", help="Show one unit's hardware information")
    p.add_argument("unit")

    p = sub.add_parser("clock", help="Show a unit's clock, or set it to local time")
    p.add_argument("unit")
    p.add_argument("--sync", action="store_true", help="Set the clock to local time first")

    p = sub.add_parser("firmware", help="Flash a firmware image")
    p.add_argument("unit")
    p.add_argument("file")

    p = sub.add_parser("dali-scan", help="List DALI devices, optionally commissioning the bus first")
    p.add_argument("unit")
    mode = p.add_mutually_exclusive_group()
    mode.add_argument("--commission", action="store_true", help="Reset commissioning, readdressing every device")
    mode.add_argument("--extend", action="store_true", help="Extend commissioning to devices without an address")

    p = sub.add_parser("zigbee-explore", help="Open the Zigbee network and wait for one device to join")
    p.add_argument("unit")
    p.add_argument("--timeout", type=float, default=None, help="Seconds to keep the network open (default: 200)")
    return ap


def load_config(path: str) -> RcuConfig:
    """Load the config file. A missing default config is an empty config."""
    if path == DEFAULT_CONFIG and not os.path.exists(path):
        return RcuConfig()
    return RcuConfig.load(path)


def resolve_unit(config: RcuConfig, text: str) -> RcuUnit:
    if "," in text:
        ip, can_id = (part.strip() for part in text.split(",", 1))
        try:
            return RcuUnit(ip=ip, can_id=can_id)
        except ValueError as e:
            raise RcuConfigurationError(str(e)) from e
    return config.unit(text)


def print_scan(result: DaliScanResult) -> None:
    for d in result.devices:
        print(f"{d.index:3d}  address {d.address:2d}  {'online ' if d.online else 'offline'}  type {d.device_type:3d}  "
              f"level {d.current_level:3d} ({d.min_level}-{d.max_level})  groups {d.groups or '-'}")
    if result.conflict_addresses:
        print(f"Address conflicts: {', '.join(str(a) for a in result.conflict_addresses)}")
    print(f"{len(result.devices)} device(s){'' if result.success else ', incomplete (timed out)'}")


async def run(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    logger = setup_logging(file=config.logging.file, debug_file=config.logging.debug_file,
                           level=config.logging.level, console=False)
    protocol = RcuProtocol(config.protocol, logger=logger, print_spam=args.verbose)
    unit: Optional[RcuUnit] = resolve_unit(config, args.unit) if hasattr(args, "unit") else None

    match args.command:
        case "discover":
            units = await protocol.general.discover(timeout=args.timeout, broadcast_ip=args.broadcast_ip)
            for info in sorted(units, key=lambda u: tuple(int(p) for p in u.ip.split("."))):
                print(f"{info.ip:<16} {info.can_id:<14} {info.model:<22} {info.mode.label:<12} "
                      f"hw {info.hardware_version}  fw {info.firmware_version}")
            print(f"{len(units)} unit(s) found")

        case "info":
            info = await protocol.general.get_info(unit)
            print(f"Model:            {info.model} ({info.barcode})")
            print(f"CAN ID:           {info.can_id}")
            print(f"Mode:             {info.mode.label}")
            print(f"CAN load:         {info.hardware.can_load}")
            print(f"Recovery:         {info.hardware.recovery}")
            print(f"Hardware version: {info.hardware_version}")
            print(f"Firmware version: {info.firmware_version}")
            print(f"Manufactured:     {info.manufacture_date}")

        case "clock":
            if args.sync:
                await protocol.clock.sync_clock(unit)
            clock = await protocol.clock.get_clock(unit)
            print(clock.to_datetime().strftime("%Y-%m-%d %H:%M:%S"))

        case "firmware":
            with open(args.file) as f:
                image = f.read()

            def progress(percent: int, label: str) -> None:
                print(f"[{percent:3d}%] {label}")

            result = await protocol.firmware.update(unit, image, on_progress=progress)
            print(f"Firmware {result.version} installed, {result.packets_sent} packet(s) sent")

        case "dali-scan":
            if args.commission or args.extend:
                result = await protocol.dali.commission(
                    unit, extend=args.extend,
                    on_device_count=lambda old, new: print(f"Device count {old} -> {new}"))
            else:
                result = await protocol.dali.scan(unit)
            print_scan(result)
            return 0 if result.success else 1

        case "zigbee-explore":
            print("Zigbee network open, put the device into pairing mode...")
            result = await protocol.zigbee.explore(unit, timeout=args.timeout)
            if not result.success:
                print("No device joined")
                return 1
            device = result.device
            print(f"Joined: {device.ieee_address}  type {device.device_type}")
            for ep in device.endpoints:
                print(f"  endpoint {ep.id}: value {ep.value}, group {ep.address}")
    return 0


def main(argv: Optional[list[str]] = None) -> None:
    args = build_parser().parse_args(argv)

    async def _main() -> None:
        status = await run(args)
        if status: raise SystemExit(status)

    run_with_keyboard_interrupt(_main)


if __name__ == "__main__":
    main()
