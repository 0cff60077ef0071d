import contextlib
import logging
import time
from typing import AsyncGenerator, Iterable, Optional

from colorama import Fore, Style

from ..io import (RcuClient, RcuCollector, Request, Response, Frame, CollectResult, CollectedPacket, PacketKind,
                  format_bytes)
from ..io.collector import PacketObserver, collect_packets
from ..exceptions import RcuError
from .models import RcuUnit, ProtocolConfig
from .general import RcuGeneral
from .clock import RcuClock
from .lighting import RcuLighting
from .aircon import RcuAircon
from .curtain import RcuCurtain
from .knx import RcuKnx
from .scene import RcuScenes
from .schedule import RcuSchedules
from .multiscene import RcuMultiScenes
from .sequence import RcuSequences
from .room import RcuRoom
from .rs485 import RcuRs485
from .led import RcuLed
from .dmx import RcuDmx
from .dali import RcuDali
from .zigbee import RcuZigbee
from .firmware import RcuFirmware

"""
===================================================================================
This module implements the RCU command API on top of RcuClient and RcuCollector.
===================================================================================
"""


class RcuProtocol:

    BROADCAST_IP = "255.255.255.255"

    def __init__(self,
                 config: Optional[ProtocolConfig] = None,
                 logger: Optional[logging.Logger] = None,
                 print_spam: bool = False):
        self.config = config or ProtocolConfig()
        self.logger = logger or logging.getLogger('null')
        if logger is None:
            self.logger.addHandler(logging.NullHandler())
        self.print_spam = print_spam

        # Subsystems
        self.general = RcuGeneral(self)
        self.clock = RcuClock(self)
        self.lighting = RcuLighting(self)
        self.aircon = RcuAircon(self)
        self.curtain = RcuCurtain(self)
        self.knx = RcuKnx(self)
        self.scenes = RcuScenes(self)
        self.schedules = RcuSchedules(self)
        self.multi_scenes = RcuMultiScenes(self)
        self.sequences = RcuSequences(self)
        self.room = RcuRoom(self)
        self.rs485 = RcuRs485(self)
        self.led = RcuLed(self)
        self.dmx = RcuDmx(self)
        self.dali = RcuDali(self)
        self.zigbee = RcuZigbee(self)
        self.firmware = RcuFirmware(self)

    async def __aenter__(self):
        """Async context manager entry"""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Nothing to release, every call owns its own endpoint"""
        pass

    # ============================
    # PACKET SENDING
    # ============================

    def _server(self, unit: RcuUnit) -> tuple[str, int]:
        return (unit.ip, unit.port or self.config.port)

    def client(self, unit: Optional[RcuUnit] = None) -> RcuClient:
        """Single-exchange client for a unit, or for the limited broadcast address when unit is None."""
        if unit is None:
            return RcuClient((self.BROADCAST_IP, self.config.broadcast_port), logger=self.logger,
                             include_length_in_checksum=self.config.checksum_includes_length, allow_broadcast=True)
        return RcuClient(self._server(unit), logger=self.logger,
                         include_length_in_checksum=self.config.checksum_includes_length)

    def collector(self, unit: Optional[RcuUnit] = None, broadcast_ip: Optional[str] = None,
                  checksum_includes_length: Optional[bool] = None) -> RcuCollector:
        if checksum_includes_length is None: checksum_includes_length = self.config.checksum_includes_length
        if unit is None:
            return RcuCollector((broadcast_ip or self.BROADCAST_IP, self.config.broadcast_port), logger=self.logger,
                                include_length_in_checksum=checksum_includes_length, allow_broadcast=True)
        return RcuCollector(self._server(unit), logger=self.logger, include_length_in_checksum=checksum_includes_length)

    async def send(self,
                   unit: Optional[RcuUnit],
                   cmd1: int,
                   cmd2: int,
                   data: bytes | list[int] = b'',
                   *,
                   skip_status_check: bool = False,
                   wait_after_busy: bool = False,
                   timeout: Optional[float] = None,
                   address: Optional[int] = None) -> Frame:
        """Send one frame and return the decoded reply. unit=None sends to the limited broadcast address."""
        if address is None: address = unit.address if unit else 0
        request = Request(address=address, cmd1=cmd1, cmd2=cmd2, data=data)
        target = f"{unit.ip}:{unit.port or self.config.port}" if unit else f"{self.BROADCAST_IP}:{self.config.broadcast_port}"
        try:
            response: Response = await self.client(unit).send_request(
                request,
                skip_status_check=skip_status_check,
                wait_after_busy=wait_after_busy,
                timeout=self.config.timeout if timeout is None else timeout,
            )
        except RcuError as e:
            if self.print_spam: self._print_failure(request, e)
            self.logger.error(f"Command {cmd1}/{cmd2} to {target} failed: {e}")
            raise
        if self.print_spam: self._print_exchange(response)
        return response.frame

    async def send_ok(self, unit: Optional[RcuUnit], cmd1: int, cmd2: int, data: bytes | list[int] = b'', **kwargs) -> bool:
        """Send a command whose reply is a status byte. Returns True, device errors are raised."""
        await self.send(unit, cmd1, cmd2, data, **kwargs)
        return True

    async def collect(self,
                      unit: Optional[RcuUnit],
                      cmd1: int,
                      cmd2: int,
                      data: bytes | list[int] = b'',
                      *,
                      timeout: float,
                      keepalive_interval: Optional[float] = None,
                      on_packet: Optional[PacketObserver] = None,
                      address: Optional[int] = None,
                      broadcast_ip: Optional[str] = None,
                      checksum_includes_length: Optional[bool] = None) -> CollectResult:
        """Send one frame and collect replies until the sentinel or the timeout."""
        result = await collect_packets(self.packets(unit, cmd1, cmd2, data, timeout=timeout,
                                                    keepalive_interval=keepalive_interval,
                                                    address=address, broadcast_ip=broadcast_ip,
                                                    checksum_includes_length=checksum_includes_length), on_packet)
        self.logger.debug(f"Collected {len(result.frames)} frame(s) for {cmd1}/{cmd2}, sentinel {'seen' if result.sentinel_seen else 'not seen'}")
        return result

    async def packets(self,
                      unit: Optional[RcuUnit],
                      cmd1: int,
                      cmd2: int,
                      data: bytes | list[int] = b'',
                      *,
                      timeout: float,
                      keepalive_interval: Optional[float] = None,
                      address: Optional[int] = None,
                      broadcast_ip: Optional[str] = None,
                      checksum_includes_length: Optional[bool] = None,
                      extra_commands: Iterable[tuple[int, int]] = (),
                      stop_at_sentinel: bool = True) -> AsyncGenerator[CollectedPacket, None]:
        """Stream of tagged packets for one collector exchange."""
        if address is None: address = unit.address if unit else 0
        request = Request(address=address, cmd1=cmd1, cmd2=cmd2, data=data)
        collector = self.collector(unit, broadcast_ip, checksum_includes_length)
        async with contextlib.aclosing(collector.packets(request, timeout=timeout, keepalive_interval=keepalive_interval,
                                                           extra_commands=extra_commands,
                                                           stop_at_sentinel=stop_at_sentinel)) as packets:
            async for packet in packets:
                if self.print_spam: self._print_packet(request, packet)
                yield packet

    # ============================
    # TRAFFIC TRACING
    # ============================

    def _print_exchange(self, response: Response) -> None:
        rtt_ms = (response.timestamp - response.request.timestamp) * 1000
        print(Fore.MAGENTA + f"REQUEST: [{format_bytes(response.request.raw_sent or b'')}]  "
            + Fore.WHITE + Style.DIM + f"RTT: {rtt_ms:.0f}ms".ljust(10)
            + Style.BRIGHT + Fore.CYAN + f"  RESPONSE: [{format_bytes(response.raw_rcvd)}]"
            + (Fore.YELLOW + "  (after busy)" if response.busy_seen else "")
            + Style.RESET_ALL)

    def _print_failure(self, request: Request, error: Exception) -> None:
        wait_ms = (time.time() - request.timestamp) * 1000
        print(Fore.MAGENTA + f"REQUEST: [{format_bytes(request.raw_sent or b'')}]  "
            + Fore.WHITE + Style.DIM + f"{wait_ms:.0f}ms".ljust(10)
            + Style.BRIGHT + Fore.RED + f"  {type(error).__name__}: {error}"
            + Style.RESET_ALL)

    def _print_packet(self, request: Request, packet: CollectedPacket) -> None:
        elapsed_ms = (packet.timestamp - request.timestamp) * 1000
        colour = {PacketKind.DATA: Fore.CYAN, PacketKind.SENTINEL: Fore.GREEN, PacketKind.REJECTED: Fore.RED}[packet.kind]
        print(Fore.MAGENTA + f"COLLECT: {request.cmd1}/{request.cmd2}  "
            + Fore.WHITE + Style.DIM + f"+{elapsed_ms:.0f}ms".ljust(10)
            + Style.BRIGHT + colour + f"  {packet.kind.name}: [{format_bytes(packet.raw)}]"
            + Style.RESET_ALL)
