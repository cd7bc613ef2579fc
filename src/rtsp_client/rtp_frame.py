#!/usr/bin/env python3
"""
RTP frame decoding

One datagram carries exactly one frame: a fixed 12-byte header followed
by the raw payload. Only the fields the client consumes are decoded;
byte 0 (version/flags) and bytes 8-11 (SSRC) are skipped.
"""

import struct
from dataclasses import dataclass

from .errors import ShortPacket

RTP_HEADER_SIZE = 12

_HEADER = struct.Struct('>xBHI')   # skip byte 0, marker/PT, sequence, timestamp


@dataclass(frozen=True)
class Frame:
    """Decoded media frame"""
    payload_type: int       # 7 bits
    marker: bool
    sequence_number: int    # 16-bit, wraps
    timestamp: int          # 32-bit, wraps
    payload: bytes

    @property
    def payload_length(self) -> int:
        return len(self.payload)


def decode_frame(datagram: bytes) -> Frame:
    """
    Decode a datagram into a Frame.

    Args:
        datagram: Raw datagram bytes

    Returns:
        Frame

    Raises:
        ShortPacket: datagram shorter than the 12-byte header
    """
    if len(datagram) < RTP_HEADER_SIZE:
        raise ShortPacket(len(datagram), RTP_HEADER_SIZE)

    b1, seq, ts = _HEADER.unpack_from(datagram, 0)

    return Frame(
        payload_type=b1 & 0x7F,
        marker=bool((b1 >> 7) & 0x1),
        sequence_number=seq,
        timestamp=ts,
        payload=bytes(datagram[RTP_HEADER_SIZE:]),
    )
