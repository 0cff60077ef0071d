"""
RCU multi-exchange collector.

Sends one frame and then gathers every reply for the same command pair until the
unit sends the success sentinel (length 5, single 0x00 payload byte) or the
overall timeout elapses. Status checks are always skipped: replies here are data.

Two ways to consume an exchange:

    # Stream of tagged packets, in arrival order
    async with contextlib.aclosing(collector.packets(req, timeout=15)) as packets:
        async for packet in packets:
            if packet.kind == PacketKind.DATA:
                print(packet.frame.payload.hex())

    # Collected result, with an optional observer called for every datagram
    result = await collector.collect(req, timeout=15, on_packet=observer)
    print(len(result.frames), result.sentinel_seen)

A timeout is not an error for a collector: the frames received so far are
returned with sentinel_seen False.
"""

import asyncio
import contextlib
import logging
import struct
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import AsyncGenerator, Callable, Iterable, Optional, Tuple

from .codec import format_bytes
from .command import ClientConst, Request, open_endpoint, task_cancelling
from .frame import Frame, declared_length, decode_frame, raw_payload
from ..exceptions import RcuCancelledError, RcuConnectionError, RcuResponseError, RcuUnexpectedCommandError


class CollectorConst:
    DEFAULT_TIMEOUT = 15.0


class PacketKind(Enum):
    DATA = "data"           # Decoded frame to keep
    SENTINEL = "sentinel"   # End of exchange
    REJECTED = "rejected"   # Could not be decoded for this command pair


@dataclass
class CollectedPacket:
    """One inbound datagram, tagged by how the collector classified it"""
    kind: PacketKind
    raw: bytes
    declared_length: int
    payload: bytes
    frame: Optional[Frame] = None
    error: Optional[RcuResponseError] = None
    addr: Optional[Tuple[str, int]] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class CollectResult:
    frames: list[Frame] = field(default_factory=list)
    sentinel_seen: bool = False
    packets_received: int = 0
    senders: list[Tuple[str, int]] = field(default_factory=list)  # Parallel to frames


PacketObserver = Callable[[bytes, int, bytes], None]


class RcuCollector:
    """Multi-reply exchanges against one unit (or a broadcast address)"""

    def __init__(self, server: Tuple[str, int], logger: Optional[logging.Logger] = None,
                 include_length_in_checksum: bool = False, allow_broadcast: bool = False):
        self.server = server
        self.logger = logger or logging.getLogger(__name__)
        self.include_length_in_checksum = include_length_in_checksum
        self.allow_broadcast = allow_broadcast

    @staticmethod
    def _decode(data: bytes, req: Request, extra_commands: Iterable[Tuple[int, int]]) -> Frame:
        """Decode against the request's command pair, then any extra pairs the exchange also accepts."""
        try:
            return decode_frame(data, req.cmd1, req.cmd2, skip_status_check=True)
        except RcuUnexpectedCommandError as e:
            for cmd1, cmd2 in extra_commands:
                with contextlib.suppress(RcuUnexpectedCommandError):
                    return decode_frame(data, cmd1, cmd2, skip_status_check=True)
            raise e

    def _classify(self, req: Request, data: bytes, addr: Tuple[str, int],
                  extra_commands: Iterable[Tuple[int, int]] = ()) -> CollectedPacket:
        length = declared_length(data)
        payload = raw_payload(data)
        try:
            frame = self._decode(data, req, extra_commands)
        except RcuResponseError as e:
            self.logger.warning(f"Ignoring reply from {addr[0]} during {req.cmd1}/{req.cmd2} collection: {e}")
            return CollectedPacket(PacketKind.REJECTED, bytes(data), length, payload, error=e, addr=addr)
        kind = PacketKind.SENTINEL if frame.is_sentinel else PacketKind.DATA
        return CollectedPacket(kind, bytes(data), length, payload, frame=frame, addr=addr)

    async def _keepalive(self, transport: asyncio.DatagramTransport, address: int, interval: float) -> None:
        keepalive = struct.pack('<I', address & 0xFFFFFFFF)
        while True:
            await asyncio.sleep(interval)
            if transport.is_closing():
                return
            self.logger.debug(f"Keepalive to {self.server[0]}:{self.server[1]} [{format_bytes(keepalive)}]")
            transport.sendto(keepalive, self.server)

    async def packets(self, req: Request, *, timeout: float = CollectorConst.DEFAULT_TIMEOUT,
                      keepalive_interval: Optional[float] = None,
                      extra_commands: Iterable[Tuple[int, int]] = (),
                      stop_at_sentinel: bool = True) -> AsyncGenerator[CollectedPacket, None]:
        """Async generator yielding every inbound datagram as a tagged packet.
        Ends after the sentinel (unless stop_at_sentinel is False) or when the timeout elapses.
        Frames for any of extra_commands are accepted as well as the request's own pair.
        The endpoint closes with the generator."""
        loop = asyncio.get_running_loop()
        queue: asyncio.Queue = asyncio.Queue()

        def on_datagram(data: bytes, addr: Tuple[str, int]) -> None:
            queue.put_nowait((data, addr))

        def on_error(exc: Exception) -> None:
            queue.put_nowait(RcuConnectionError(f"Socket error talking to {self.server[0]}:{self.server[1]}: {exc}"))

        transport = await open_endpoint(on_datagram, on_error, self.logger, allow_broadcast=self.allow_broadcast)
        keepalive_task: Optional[asyncio.Task] = None
        try:
            wire = req.to_bytes(include_length=self.include_length_in_checksum)
            req.timestamp = time.time()
            self.logger.debug(f"Collecting from {self.server[0]}:{self.server[1]} [{format_bytes(wire)}]")
            try:
                transport.sendto(wire, self.server)
            except OSError as e:
                raise RcuConnectionError(f"Unable to send to {self.server[0]}:{self.server[1]}: {e}") from e
            if keepalive_interval:
                keepalive_task = asyncio.create_task(self._keepalive(transport, req.address, keepalive_interval))

            deadline = loop.time() + max(ClientConst.MIN_TIMEOUT, timeout)
            while True:
                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                try:
                    item = await asyncio.wait_for(queue.get(), timeout=remaining)
                except asyncio.TimeoutError:
                    break
                if isinstance(item, RcuConnectionError):
                    raise item
                data, addr = item
                self.logger.debug(f"Received from {addr[0]}:{addr[1]} [{format_bytes(data)}]")
                packet = self._classify(req, data, addr, extra_commands)
                yield packet
                if stop_at_sentinel and packet.kind == PacketKind.SENTINEL:
                    return
            self.logger.info(f"Collection of {req.cmd1}/{req.cmd2} from {self.server[0]} ended by timeout after {timeout:.1f}s")
        except RcuCancelledError:
            raise
        except asyncio.CancelledError as e:
            if task_cancelling():
                raise
            raise RcuCancelledError(f"Collection of {req.cmd1}/{req.cmd2} from {self.server[0]} cancelled") from e
        finally:
            if keepalive_task:
                keepalive_task.cancel()
            transport.close()

    async def collect(self, req: Request, *, timeout: float = CollectorConst.DEFAULT_TIMEOUT,
                      keepalive_interval: Optional[float] = None,
                      on_packet: Optional[PacketObserver] = None) -> CollectResult:
        """Run a full exchange. on_packet(raw, declared_length, payload) sees every datagram before it is classified."""
        return await collect_packets(self.packets(req, timeout=timeout, keepalive_interval=keepalive_interval), on_packet)


async def collect_packets(packets: AsyncGenerator[CollectedPacket, None],
                          on_packet: Optional[PacketObserver] = None) -> CollectResult:
    """Drain a packet stream into a CollectResult, closing the stream when done."""
    result = CollectResult()
    async with contextlib.aclosing(packets):
        async for packet in packets:
            result.packets_received += 1
            if on_packet: on_packet(packet.raw, packet.declared_length, packet.payload)
            match packet.kind:
                case PacketKind.SENTINEL:
                    result.sentinel_seen = True
                case PacketKind.DATA:
                    result.frames.append(packet.frame)
                    result.senders.append(packet.addr)
    return result
