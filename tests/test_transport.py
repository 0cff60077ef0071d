import asyncio
import contextlib

import pytest

from rcucontrol import ProtocolConfig, PacketKind, RcuClient, RcuCollector, RcuProtocol, Request
from rcucontrol.io.frame import RcuErrorCode
from rcucontrol.exceptions import (RcuCancelledError, RcuDeviceError, RcuTimeoutError, RcuUnexpectedCommandError)

from conftest import UNIT_ADDRESS, error, frame, ok, sentinel


def client_for(fake_unit, **kwargs) -> RcuClient:
    return RcuClient(("127.0.0.1", fake_unit.port), **kwargs)


def collector_for(fake_unit, **kwargs) -> RcuCollector:
    return RcuCollector(("127.0.0.1", fake_unit.port), **kwargs)


# ============================
# SINGLE EXCHANGE
# ============================

async def test_request_reply(fake_unit):
    fake_unit.on(1, 10, frame(1, 10, [24, 5, 17, 0, 12, 30, 0]))
    response = await client_for(fake_unit).send_request(Request(UNIT_ADDRESS, 1, 10), skip_status_check=True, timeout=1)
    assert response.payload == bytes([24, 5, 17, 0, 12, 30, 0])
    assert not response.busy_seen
    sent = fake_unit.requests(1, 10)[0]
    assert sent.address == UNIT_ADDRESS


async def test_checksum_flag_is_applied_to_outbound_frames(fake_unit):
    fake_unit.on_ok(1, 12)
    await client_for(fake_unit, include_length_in_checksum=True).send_request(Request(UNIT_ADDRESS, 1, 12, [2]), timeout=1)
    raw = fake_unit.requests(1, 12)[0].raw
    assert int.from_bytes(raw[-2:], 'little') == 5 + 1 + 12 + 2


async def test_timeout(fake_unit):
    with pytest.raises(RcuTimeoutError):
        await client_for(fake_unit).send_request(Request(UNIT_ADDRESS, 1, 10), timeout=0.1)


async def test_device_error(fake_unit):
    fake_unit.on(30, 22, error(30, 22, RcuErrorCode.NO_SUPPORT))
    with pytest.raises(RcuDeviceError) as e:
        await client_for(fake_unit).send_request(Request(UNIT_ADDRESS, 30, 22, [1, 200, 0]), timeout=1)
    assert e.value.name == "NO_SUPPORT"


async def test_busy_then_final_reply(fake_unit):
    # The final reply carries a non-zero first byte, status checking is off after busy
    fake_unit.on(60, 7, error(60, 7, RcuErrorCode.BUSY), frame(60, 7, [3, 1]))
    response = await client_for(fake_unit).send_request(Request(UNIT_ADDRESS, 60, 7), wait_after_busy=True, timeout=1)
    assert response.busy_seen
    assert response.payload == bytes([3, 1])


async def test_busy_without_waiting_fails(fake_unit):
    fake_unit.on(60, 7, error(60, 7, RcuErrorCode.BUSY), ok(60, 7))
    with pytest.raises(RcuDeviceError) as e:
        await client_for(fake_unit).send_request(Request(UNIT_ADDRESS, 60, 7), timeout=1)
    assert e.value.code == RcuErrorCode.BUSY


async def test_unexpected_command(fake_unit):
    fake_unit.on(1, 10, frame(1, 9, [0]))
    with pytest.raises(RcuUnexpectedCommandError):
        await client_for(fake_unit).send_request(Request(UNIT_ADDRESS, 1, 10), timeout=1)


async def test_cancel_is_distinct_from_timeout(fake_unit):
    task = asyncio.create_task(client_for(fake_unit).send_request(Request(UNIT_ADDRESS, 1, 10), timeout=5))
    await asyncio.sleep(0.05)
    task.cancel()
    with pytest.raises(asyncio.CancelledError) as e:
        await task
    assert not isinstance(e.value, RcuTimeoutError)


async def test_cancelled_error_is_both_kinds():
    assert issubclass(RcuCancelledError, asyncio.CancelledError)


async def test_outer_timeout_surfaces_as_timeout(fake_unit):
    with pytest.raises(TimeoutError) as e:
        async with asyncio.timeout(0.1):
            await client_for(fake_unit).send_request(Request(UNIT_ADDRESS, 1, 10), timeout=5)
    assert not isinstance(e.value, RcuTimeoutError)


async def test_outer_wait_for_surfaces_as_timeout(fake_unit, unit):
    protocol = RcuProtocol(ProtocolConfig(timeout=5))
    with pytest.raises(TimeoutError):
        await asyncio.wait_for(protocol.general.request_unit(unit), timeout=0.1)


# ============================
# COLLECTOR
# ============================

async def test_collect_until_sentinel(fake_unit):
    fake_unit.on(10, 9, frame(10, 9, [1] * 40), frame(10, 9, [2] * 40), sentinel(10, 9), frame(10, 9, [3] * 40))
    result = await collector_for(fake_unit).collect(Request(UNIT_ADDRESS, 10, 9), timeout=1)
    assert result.sentinel_seen
    assert [f.payload[0] for f in result.frames] == [1, 2]
    assert result.packets_received == 3


async def test_collect_timeout_returns_partial(fake_unit):
    fake_unit.on(10, 9, frame(10, 9, [1] * 40))
    result = await collector_for(fake_unit).collect(Request(UNIT_ADDRESS, 10, 9), timeout=0.2)
    assert not result.sentinel_seen
    assert len(result.frames) == 1


async def test_collect_observer_sees_every_datagram(fake_unit):
    fake_unit.on(10, 9, frame(10, 9, [1, 2]), frame(1, 1, [5]), sentinel(10, 9))
    seen = []
    result = await collector_for(fake_unit).collect(Request(UNIT_ADDRESS, 10, 9), timeout=1,
                                                    on_packet=lambda raw, length, payload: seen.append((length, payload)))
    assert seen == [(6, b'\x01\x02'), (5, b'\x05'), (5, b'\x00')]
    assert len(result.frames) == 1
    assert result.packets_received == 3


async def test_packet_stream_tags_rejected(fake_unit):
    fake_unit.on(10, 9, frame(1, 1, [5]), frame(10, 9, [1, 2]), sentinel(10, 9))
    kinds = []
    async with contextlib.aclosing(collector_for(fake_unit).packets(Request(UNIT_ADDRESS, 10, 9), timeout=1)) as packets:
        async for packet in packets:
            kinds.append(packet.kind)
    assert kinds == [PacketKind.REJECTED, PacketKind.DATA, PacketKind.SENTINEL]


async def test_packet_stream_extra_commands(fake_unit):
    fake_unit.on(80, 2, ok(80, 2), frame(80, 4, bytes(28)))
    packets = collector_for(fake_unit).packets(Request(UNIT_ADDRESS, 80, 2), timeout=0.5,
                                               extra_commands=[(80, 4)], stop_at_sentinel=False)
    frames = []
    async with contextlib.aclosing(packets):
        async for packet in packets:
            frames.append((packet.kind, packet.frame.cmd2))
            if len(frames) == 2: break
    assert frames == [(PacketKind.SENTINEL, 2), (PacketKind.DATA, 4)]


async def test_collect_outer_timeout_surfaces_as_timeout(fake_unit):
    fake_unit.on(10, 9, frame(10, 9, [1] * 40))
    with pytest.raises(TimeoutError):
        async with asyncio.timeout(0.2):
            await collector_for(fake_unit).collect(Request(UNIT_ADDRESS, 10, 9), timeout=5)


async def test_keepalive_is_address_only(fake_unit):
    result = await collector_for(fake_unit).collect(Request(UNIT_ADDRESS, 60, 0, [0, 0, 0, 0]),
                                                    timeout=0.35, keepalive_interval=0.1)
    assert not result.sentinel_seen
    assert len(fake_unit.keepalives) >= 2
    assert all(k.raw == UNIT_ADDRESS.to_bytes(4, 'little') for k in fake_unit.keepalives)
