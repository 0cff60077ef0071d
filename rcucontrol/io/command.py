"""
RCU wire-level command client (single exchange).

Each call to RcuClient.send_request opens its own ephemeral UDP endpoint, sends
one frame and waits for the matching reply or the timeout. The endpoint is
always closed before the call returns, whether it succeeded, failed, timed out
or was cancelled.

Terms:
- Request = A frame sent by the Client to a unit
- Response = The decoded reply to a Request
- Busy = An interim device error; when wait_after_busy is set the client keeps
  listening for the final reply instead of failing

Example usage:
async def main():
    client = RcuClient(("192.168.1.50", 1234))
    req = Request(address=can_id_to_int("1.0.0.5"), cmd1=1, cmd2=10)
    resp = await client.send_request(req, skip_status_check=True)
    print("Clock:", list(resp.frame.payload))

asyncio.run(main())
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

from .codec import format_bytes
from .frame import Frame, RcuErrorCode, decode_frame, encode_frame
from ..exceptions import RcuCancelledError, RcuConnectionError, RcuDeviceError, RcuResponseError, RcuTimeoutError


# Constants
class ClientConst:
    """Constants for the RcuClient"""
    DEFAULT_TIMEOUT = 5.0
    MIN_TIMEOUT = 0.01
    LOCAL_ADDR = ("0.0.0.0", 0)


@dataclass
class Request:
    """Represents a request to be sent to a unit"""
    address: int
    cmd1: int
    cmd2: int
    data: bytes | list[int] = b''
    raw_sent: Optional[bytes] = None
    timestamp: float = field(default_factory=time.time)

    def __post_init__(self):
        # If data is a list, convert it to a bytes object
        if isinstance(self.data, (list, tuple)):
            for d in self.data:
                if not 0 <= d <= 255:
                    raise ValueError(f"Request data values must be 0-255, received {d}")
            self.data = bytes(self.data)
        if not 0 <= self.cmd1 <= 255 or not 0 <= self.cmd2 <= 255:
            raise ValueError(f"Command pair must be 0-255, received {self.cmd1}/{self.cmd2}")

    def to_bytes(self, include_length: bool = False) -> bytes:
        """Convert request to wire format"""
        self.raw_sent = encode_frame(self.address, self.cmd1, self.cmd2, self.data, include_length=include_length)
        return self.raw_sent


@dataclass()
class Response:
    frame: Frame
    raw_rcvd: bytes
    request: Request
    addr: Optional[Tuple[str, int]] = None
    busy_seen: bool = False
    timestamp: float = field(default_factory=time.time)

    @property
    def payload(self) -> bytes:
        return self.frame.payload


# Protocol classes
class RcuRequestProtocol(asyncio.DatagramProtocol):
    """Hands every datagram to a plain callback, in arrival order."""

    def __init__(self,
                 datagram_handler: Callable[[bytes, Tuple[str, int]], None],
                 error_handler: Optional[Callable[[Exception], None]] = None,
                 logger: Optional[logging.Logger] = None):
        self.datagram_handler = datagram_handler
        self.error_handler = error_handler
        self.logger = logger or logging.getLogger(__name__)
        self.transport: Optional[asyncio.transports.DatagramTransport] = None

    def connection_made(self, transport):
        self.transport = transport

    def datagram_received(self, data, addr):
        self.datagram_handler(data, addr)

    def error_received(self, exc):
        self.logger.error(f"Request protocol error: {exc}")
        if self.error_handler: self.error_handler(exc)

    def connection_lost(self, exc):
        if exc:
            self.logger.error(f"Request connection lost: {exc}")
        else:
            self.logger.debug("Request endpoint closed")


def task_cancelling() -> bool:
    """True when the running task itself was cancelled, e.g. by an enclosing asyncio.timeout().
    Such a CancelledError must propagate as-is for the canceller to recognise it."""
    task = asyncio.current_task()
    return task is not None and task.cancelling() > 0


async def open_endpoint(datagram_handler: Callable[[bytes, Tuple[str, int]], None],
                        error_handler: Optional[Callable[[Exception], None]] = None,
                        logger: Optional[logging.Logger] = None,
                        allow_broadcast: bool = False) -> asyncio.DatagramTransport:
    """Open an ephemeral UDP endpoint. Raises RcuConnectionError if the socket cannot be created."""
    loop = asyncio.get_running_loop()
    try:
        transport, _ = await loop.create_datagram_endpoint(
            lambda: RcuRequestProtocol(datagram_handler, error_handler, logger),
            local_addr=ClientConst.LOCAL_ADDR,
            allow_broadcast=allow_broadcast,
        )
    except OSError as e:
        raise RcuConnectionError(f"Unable to open UDP endpoint: {e}") from e
    return transport


class RcuClient:
    """
    Request:  [address u32 LE, length u16 LE, cmd1, cmd2, data..., checksum u16 LE]
    Response: same layout; cmd1/cmd2 must match the request unless the error flag is set
      - exactly one Response or one exception per call
      - the endpoint lives only for the duration of a call
    """

    def __init__(self, server: Tuple[str, int], logger: Optional[logging.Logger] = None,
                 include_length_in_checksum: bool = False, allow_broadcast: bool = False):
        self.server = server
        self.logger = logger or logging.getLogger(__name__)
        self.include_length_in_checksum = include_length_in_checksum
        self.allow_broadcast = allow_broadcast

    async def send_request(self, req: Request, *,
                           skip_status_check: bool = False,
                           wait_after_busy: bool = False,
                           timeout: Optional[float] = None) -> Response:
        if timeout is None: timeout = ClientConst.DEFAULT_TIMEOUT
        timeout = max(ClientConst.MIN_TIMEOUT, timeout)

        loop = asyncio.get_running_loop()
        fut: asyncio.Future = loop.create_future()
        busy_seen = False

        def on_datagram(data: bytes, addr: Tuple[str, int]) -> None:
            nonlocal busy_seen
            if fut.done():
                return
            self.logger.debug(f"Received from {addr[0]}:{addr[1]} [{format_bytes(data)}]")
            try:
                frame = decode_frame(data, req.cmd1, req.cmd2, skip_status_check=skip_status_check or busy_seen)
            except RcuDeviceError as e:
                if e.code == RcuErrorCode.BUSY and wait_after_busy and not busy_seen:
                    busy_seen = True
                    self.logger.info(f"Unit {self.server[0]} busy with {req.cmd1}/{req.cmd2}, waiting for final reply")
                    return
                self.logger.warning(f"Device error from {self.server[0]}: {e}")
                fut.set_exception(e)
                return
            except RcuResponseError as e:
                self.logger.warning(f"Invalid reply from {self.server[0]}: {e}")
                fut.set_exception(e)
                return
            fut.set_result(Response(frame=frame, raw_rcvd=bytes(data), request=req, addr=addr, busy_seen=busy_seen))

        def on_error(exc: Exception) -> None:
            if not fut.done():
                fut.set_exception(RcuConnectionError(f"Socket error talking to {self.server[0]}:{self.server[1]}: {exc}"))

        transport = await open_endpoint(on_datagram, on_error, self.logger, allow_broadcast=self.allow_broadcast)
        try:
            wire = req.to_bytes(include_length=self.include_length_in_checksum)
            req.timestamp = time.time() # Update timestamp when sending the request
            self.logger.debug(f"Sending to {self.server[0]}:{self.server[1]} [{format_bytes(wire)}]")
            try:
                transport.sendto(wire, self.server)
            except OSError as e:
                raise RcuConnectionError(f"Unable to send to {self.server[0]}:{self.server[1]}: {e}") from e
            return await asyncio.wait_for(fut, timeout=timeout)
        except asyncio.TimeoutError:
            self.logger.error(f"No response from {self.server[0]}:{self.server[1]} for {req.cmd1}/{req.cmd2} after {timeout:.1f}s")
            raise RcuTimeoutError(f"No response from {self.server[0]}:{self.server[1]} after {timeout:.1f}s") from None
        except RcuCancelledError:
            raise
        except asyncio.CancelledError as e:
            self.logger.info(f"Request {req.cmd1}/{req.cmd2} to {self.server[0]} cancelled")
            if task_cancelling():
                raise
            raise RcuCancelledError(f"Request {req.cmd1}/{req.cmd2} to {self.server[0]} cancelled") from e
        finally:
            if not fut.done(): fut.cancel()
            transport.close()
