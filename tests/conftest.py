"""Fixtures for testing: a scripted fake unit on a loopback UDP port."""

import asyncio
import struct
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import pytest

from rcucontrol import ProtocolConfig, RcuProtocol, RcuUnit
from rcucontrol.io.frame import FrameConst, RcuErrorCode, encode_frame


UNIT_CAN_ID = "0.0.0.101"
UNIT_ADDRESS = 0x00000065


@dataclass
class Received:
    """One datagram the fake unit received"""
    raw: bytes
    address: int
    cmd1: int = 0
    cmd2: int = 0
    payload: bytes = b''

    @property
    def is_keepalive(self) -> bool:
        return len(self.raw) == 4


Handler = Callable[[Received], list[bytes]]


def frame(cmd1: int, cmd2: int, payload: bytes | list[int] = b'', address: int = UNIT_ADDRESS) -> bytes:
    return encode_frame(address, cmd1, cmd2, bytes(payload))


def ok(cmd1: int, cmd2: int) -> bytes:
    return frame(cmd1, cmd2, [RcuErrorCode.SUCCESS])


def error(cmd1: int, cmd2: int, code: int) -> bytes:
    return frame(cmd1 | FrameConst.ERROR_FLAG, cmd2, [code])


def sentinel(cmd1: int, cmd2: int) -> bytes:
    return frame(cmd1, cmd2, [0])


class FakeUnit(asyncio.DatagramProtocol):
    """Answers each command pair with scripted replies and records everything it receives.

    fake.on(1, 10, frame(1, 10, [...]))     static replies, sent in order
    fake.on(1, 6, handler)                   handler(received) -> list of replies
    Unscripted commands get no reply.
    """

    def __init__(self):
        self.transport: Optional[asyncio.DatagramTransport] = None
        self.received: list[Received] = []
        self.handlers: dict[Tuple[int, int], Handler] = {}

    @property
    def port(self) -> int:
        return self.transport.get_extra_info("sockname")[1]

    def on(self, cmd1: int, cmd2: int, *replies: bytes | Handler) -> None:
        if len(replies) == 1 and callable(replies[0]):
            self.handlers[(cmd1, cmd2)] = replies[0]
        else:
            self.handlers[(cmd1, cmd2)] = lambda _: list(replies)

    def on_ok(self, cmd1: int, cmd2: int) -> None:
        self.on(cmd1, cmd2, ok(cmd1, cmd2))

    def requests(self, cmd1: Optional[int] = None, cmd2: Optional[int] = None) -> list[Received]:
        return [r for r in self.received if not r.is_keepalive
                and (cmd1 is None or r.cmd1 == cmd1) and (cmd2 is None or r.cmd2 == cmd2)]

    def payloads(self, cmd1: int, cmd2: int) -> list[bytes]:
        return [r.payload for r in self.requests(cmd1, cmd2)]

    @property
    def keepalives(self) -> list[Received]:
        return [r for r in self.received if r.is_keepalive]

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        if len(data) == 4:
            self.received.append(Received(raw=bytes(data), address=struct.unpack('<I', data)[0]))
            return
        address, length, cmd1, cmd2 = struct.unpack_from('<IHBB', data, 0)
        payload = bytes(data[8:8 + length - 4])
        received = Received(raw=bytes(data), address=address, cmd1=cmd1, cmd2=cmd2, payload=payload)
        self.received.append(received)
        handler = self.handlers.get((cmd1, cmd2))
        if handler is None:
            return
        for reply in handler(received):
            self.transport.sendto(reply, addr)


@pytest.fixture()
async def fake_unit() -> AsyncGenerator[FakeUnit, None]:
    loop = asyncio.get_running_loop()
    transport, fake = await loop.create_datagram_endpoint(FakeUnit, local_addr=("127.0.0.1", 0))
    try:
        yield fake
    finally:
        transport.close()


@pytest.fixture()
def unit(fake_unit: FakeUnit) -> RcuUnit:
    return RcuUnit(ip="127.0.0.1", can_id=UNIT_CAN_ID, name="test", barcode="8930000210043", port=fake_unit.port)


@pytest.fixture()
def protocol() -> RcuProtocol:
    return RcuProtocol(ProtocolConfig(timeout=0.5))
