"""
Wire-level protocol implementation.

This module contains the lowest-level communication components:
- checksum, CAN ID, KNX group address and IPv4 helpers
- Frame encoding/decoding and the device error taxonomy
- RcuClient - single request/response exchange over an ephemeral UDP endpoint
- RcuCollector - multi-reply exchanges ending in a sentinel frame
"""

from .codec import (checksum, can_id_to_int, int_to_can_id, knx_address_to_int, knx_address_to_bytes,
                    int_to_knx_address, ip_to_bytes, bytes_to_ip, name_to_bytes, bytes_to_name, format_bytes,
                    CodecConst)
from .frame import Frame, FrameConst, RcuErrorCode, encode_frame, decode_frame, error_name
from .command import RcuClient, Request, Response, ClientConst, open_endpoint
from .collector import RcuCollector, CollectedPacket, CollectResult, PacketKind, CollectorConst

__all__ = [
    "checksum",
    "can_id_to_int",
    "int_to_can_id",
    "knx_address_to_int",
    "knx_address_to_bytes",
    "int_to_knx_address",
    "ip_to_bytes",
    "bytes_to_ip",
    "name_to_bytes",
    "bytes_to_name",
    "format_bytes",
    "CodecConst",
    "Frame",
    "FrameConst",
    "RcuErrorCode",
    "encode_frame",
    "decode_frame",
    "error_name",
    "RcuClient",
    "Request",
    "Response",
    "ClientConst",
    "open_endpoint",
    "RcuCollector",
    "CollectedPacket",
    "CollectResult",
    "PacketKind",
    "CollectorConst",
]
