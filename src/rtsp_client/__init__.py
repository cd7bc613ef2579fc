"""
RTSP Client - streaming session control with RTP frame reception

Drives an RTSP session (SETUP / PLAY / PAUSE / TEARDOWN) over a persistent
control connection and, while playing, receives RTP datagrams on a local
UDP port, delivering each decoded Frame to an application-supplied sink.

Quick Start:
    from rtsp_client import RTSPSession, QueueFrameSink

    sink = QueueFrameSink()
    with RTSPSession("media.example.org", 554, sink=sink) as session:
        session.setup("movie.Mjpeg")
        session.play()
        frame = sink.get(timeout=2.0)
        session.teardown()
"""

__version__ = "0.3.0"
__author__ = "RTSP Client Project"

# Codec
from .rtsp_codec import RTSPRequest, RTSPResponse, encode_request, decode_response, RTSP_VERSION
from .rtp_frame import Frame, decode_frame, RTP_HEADER_SIZE

# Transport
from .control_channel import ControlChannel
from .datagram_endpoint import DatagramEndpoint
from .frame_receiver import FrameReceiver, ReceiverHandle
from .frame_sink import FrameSink, QueueFrameSink
from .stream_stats import StreamStats

# Session
from .session import RTSPSession, SessionState, ConnectionState
from .config import ClientConfig, load_config

from .errors import (
    RTSPError,
    RTSPConnectionError,
    ConnectionLost,
    ProtocolError,
    MalformedStatusLine,
    MalformedHeader,
    UnexpectedEndOfStream,
    SequenceMismatch,
    SessionMismatch,
    InvalidSessionHeader,
    UnexpectedStatus,
    InvalidStateTransition,
    FrameDecodeError,
    ShortPacket,
    EndpointClosed,
)

__all__ = [
    # === Session API (primary interface) ===
    "RTSPSession",
    "SessionState",
    "ConnectionState",
    "FrameSink",
    "QueueFrameSink",
    "ClientConfig",
    "load_config",
    # === Codec ===
    "RTSPRequest",
    "RTSPResponse",
    "encode_request",
    "decode_response",
    "RTSP_VERSION",
    "Frame",
    "decode_frame",
    "RTP_HEADER_SIZE",
    # === Lower-level (advanced use) ===
    "ControlChannel",
    "DatagramEndpoint",
    "FrameReceiver",
    "ReceiverHandle",
    "StreamStats",
    # === Errors ===
    "RTSPError",
    "RTSPConnectionError",
    "ConnectionLost",
    "ProtocolError",
    "MalformedStatusLine",
    "MalformedHeader",
    "UnexpectedEndOfStream",
    "SequenceMismatch",
    "SessionMismatch",
    "InvalidSessionHeader",
    "UnexpectedStatus",
    "InvalidStateTransition",
    "FrameDecodeError",
    "ShortPacket",
    "EndpointClosed",
]
