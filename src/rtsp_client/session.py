#!/usr/bin/env python3
"""
RTSP Session

Public entry point. Maps lifecycle operations to control-channel
exchanges and starts/stops the frame receiver:

    IDLE --setup--> READY --play--> PLAYING
    PLAYING --pause--> READY
    READY|PLAYING --teardown--> IDLE
    any --close--> CLOSED (terminal)

The session owns the datagram endpoint: it opens it for SETUP and closes
it on teardown/close, always after the receiver has been joined.
"""

import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from .config import ClientConfig
from .control_channel import ControlChannel
from .datagram_endpoint import DatagramEndpoint
from .errors import (
    ConnectionLost, InvalidSessionHeader, InvalidStateTransition,
    RTSPConnectionError, SessionMismatch, UnexpectedStatus,
)
from .frame_receiver import FrameReceiver, ReceiverHandle
from .frame_sink import FrameSink
from .rtp_frame import Frame
from .rtsp_codec import RTSPRequest, RTSPResponse, parse_session_id

logger = logging.getLogger(__name__)


class SessionState(Enum):
    """Session lifecycle states"""
    IDLE = "idle"          # Connected, no stream set up
    READY = "ready"        # Stream set up, not playing
    PLAYING = "playing"    # Frames being received
    CLOSED = "closed"      # Terminal


# operation -> (legal source states, target state on success)
TRANSITIONS = {
    'setup': (frozenset({SessionState.IDLE}), SessionState.READY),
    'play': (frozenset({SessionState.READY}), SessionState.PLAYING),
    'pause': (frozenset({SessionState.PLAYING}), SessionState.READY),
    'teardown': (frozenset({SessionState.READY, SessionState.PLAYING}), SessionState.IDLE),
}


@dataclass
class ConnectionState:
    """Mutable per-connection state, guarded by the session lock"""
    state: SessionState = SessionState.IDLE
    cseq: int = 0                       # last CSeq issued; never decreases
    session_id: Optional[int] = None    # set by SETUP, cleared by TEARDOWN
    resource: Optional[str] = None

    def next_cseq(self) -> int:
        self.cseq += 1
        return self.cseq


class _DiscardSink:
    """Default sink: frames are only counted in the receive statistics"""

    def on_frame(self, frame: Frame) -> None:
        pass


class RTSPSession:
    """
    Streaming session over one RTSP control connection.

    Example:
        with RTSPSession('media.example.org', 554, sink=my_sink) as session:
            session.setup('movie.Mjpeg')
            session.play()
            ...
            session.pause()
            session.teardown()
    """

    def __init__(self, host: str, port: int,
                 sink: Optional[FrameSink] = None,
                 config: Optional[ClientConfig] = None,
                 channel: Optional[ControlChannel] = None,
                 receiver: Optional[FrameReceiver] = None):
        """
        Connect to the server. No request is sent.

        Args:
            host: Server hostname or address
            port: Server TCP port
            sink: Receives decoded frames while playing
            config: Client configuration (defaults if None)
            channel: Pre-built control channel (connects to host:port if None)
            receiver: Frame receiver (a new one if None)

        Raises:
            RTSPConnectionError: connection could not be established
        """
        self.host = host
        self.port = port
        self.config = config or ClientConfig()
        # Sized sinks (QueueFrameSink) are falsy while empty
        self.sink: FrameSink = sink if sink is not None else _DiscardSink()

        self.channel = channel or ControlChannel(host, port, connect_timeout=self.config.connect_timeout_sec)
        self.receiver = receiver or FrameReceiver(stats_window=self.config.stats_window)

        self.conn = ConnectionState()
        self.endpoint: Optional[DatagramEndpoint] = None
        self._handle: Optional[ReceiverHandle] = None
        self._last_stats: Optional[Dict[str, Any]] = None

        # One lock for every lifecycle operation
        self._lock = threading.Lock()

        logger.info(f"RTSPSession created for {host}:{port}")

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self.conn.state

    @property
    def session_id(self) -> Optional[int]:
        return self.conn.session_id

    @property
    def cseq(self) -> int:
        return self.conn.cseq

    @property
    def resource(self) -> Optional[str]:
        return self.conn.resource

    @property
    def local_port(self) -> Optional[int]:
        if self.endpoint is None or not self.endpoint.is_open:
            return None
        return self.endpoint.port

    def get_state(self) -> SessionState:
        """Current state, read under the session lock"""
        with self._lock:
            return self.conn.state

    def get_stats(self) -> Optional[Dict[str, Any]]:
        """Receive statistics of the current or most recent playback"""
        handle = self._handle
        if handle is not None:
            return handle.stats.to_dict()
        return self._last_stats

    def register_sink(self, sink: Optional[FrameSink]):
        """Replace the frame sink; takes effect on the next play()"""
        self.sink = sink if sink is not None else _DiscardSink()

    # ------------------------------------------------------------------
    # Lifecycle operations
    # ------------------------------------------------------------------

    def setup(self, resource: str):
        """
        Set up a stream for resource.

        Opens a local datagram endpoint and advertises its port in the
        Transport header. State stays IDLE on any failure.

        Raises:
            InvalidStateTransition: not IDLE
            RTSPConnectionError: local RTP endpoint could not be bound
            UnexpectedStatus: server answered non-200
            InvalidSessionHeader: Session header missing or not a positive integer
            ConnectionLost, ProtocolError: exchange failed
        """
        with self._lock:
            self._check_transition('setup')

            endpoint = DatagramEndpoint(
                host=self.config.rtp_bind_address,
                port=self.config.rtp_port,
                receive_timeout=self.config.receive_timeout_sec,
                max_datagram_size=self.config.max_datagram_size,
                receive_buffer_bytes=self.config.receive_buffer_bytes,
            )
            try:
                endpoint.open()
            except OSError as e:
                raise RTSPConnectionError(
                    f"Cannot bind RTP endpoint {self.config.rtp_bind_address or '0.0.0.0'}:"
                    f"{self.config.rtp_port}: {e}") from e

            try:
                response = self._exchange('SETUP', resource, include_session=False,
                                          extra=[('Transport', self.config.transport_for(endpoint.port))])
                raw_session = response.header('Session')
                session_id = parse_session_id(raw_session)
                if session_id is None:
                    raise InvalidSessionHeader(raw_session)
            except Exception:
                endpoint.close()
                raise

            self.endpoint = endpoint
            self.conn.resource = resource
            self.conn.session_id = session_id
            self._advance('setup')
            logger.info(f"Session {session_id} set up for {resource} (RTP port {endpoint.port})")

    def play(self):
        """
        Start playback; frames flow to the sink until pause/teardown/close.

        If the receiver cannot be started after the server accepted PLAY,
        the error propagates and the state stays READY although the server
        is streaming; pause() is then illegal, teardown() or close() recover.

        Raises:
            InvalidStateTransition: not READY
            UnexpectedStatus, SessionMismatch, ConnectionLost, ProtocolError
        """
        with self._lock:
            self._check_transition('play')
            self._exchange('PLAY', self.conn.resource)

            try:
                self._handle = self.receiver.start(self.endpoint, self.sink)
            except Exception as e:
                logger.error(f"PLAY accepted for session {self.conn.session_id} "
                             f"but frame receiver failed to start: {e}")
                raise
            self._advance('play')

    def pause(self):
        """
        Pause playback. The receiver is stopped before this returns.

        On failure the state stays PLAYING and frames keep flowing.
        """
        with self._lock:
            self._check_transition('pause')
            self._exchange('PAUSE', self.conn.resource)

            self._stop_receiver()
            self._advance('pause')

    def teardown(self):
        """
        Tear down the stream. The control connection stays open and a new
        setup() is allowed afterwards.

        On failure the state is unchanged.
        """
        with self._lock:
            self._check_transition('teardown')
            session_id = self.conn.session_id
            self._exchange('TEARDOWN', self.conn.resource)

            self._stop_receiver()
            self._close_endpoint()
            self.conn.session_id = None
            self.conn.resource = None
            self._advance('teardown')
            logger.info(f"Session {session_id} torn down")

    def close(self):
        """
        Release every resource and enter CLOSED. Never raises; idempotent.

        No TEARDOWN is sent.
        """
        with self._lock:
            if self.conn.state == SessionState.CLOSED:
                return

            try:
                self._stop_receiver()
            except Exception as e:
                logger.warning(f"Error stopping frame receiver during close: {e}")
            try:
                self._close_endpoint()
            except Exception as e:
                logger.warning(f"Error closing datagram endpoint during close: {e}")
            try:
                self.channel.close()
            except Exception as e:
                logger.warning(f"Error closing control channel during close: {e}")

            previous = self.conn.state
            self.conn.state = SessionState.CLOSED
            self.conn.session_id = None
            logger.info(f"Session closed (was {previous.value})")

    def __enter__(self) -> 'RTSPSession':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False

    # ------------------------------------------------------------------
    # Internals (caller holds self._lock)
    # ------------------------------------------------------------------

    def _check_transition(self, operation: str):
        """Reject an illegal operation before any network activity"""
        legal_from, _target = TRANSITIONS[operation]
        if self.conn.state not in legal_from:
            raise InvalidStateTransition(operation, self.conn.state)
        if self.channel.lost:
            raise ConnectionLost(f"Control connection lost; only close() is permitted (attempted {operation})")

    def _advance(self, operation: str):
        _legal_from, target = TRANSITIONS[operation]
        logger.info(f"State {self.conn.state.value} -> {target.value} ({operation})")
        self.conn.state = target

    def _exchange(self, method: str, resource: str, include_session: bool = True,
                  extra=None) -> RTSPResponse:
        """
        Issue one request with the next CSeq and require status 200.

        Raises:
            UnexpectedStatus: non-200 status
            SessionMismatch: response names a different session
        """
        headers = list(extra or [])
        if self.config.user_agent:
            headers.append(('User-Agent', self.config.user_agent))

        request = RTSPRequest(
            method=method,
            resource=resource,
            cseq=self.conn.next_cseq(),
            session_id=self.conn.session_id if include_session else None,
            headers=tuple(headers),
            version=self.config.rtsp_version,
        )
        response = self.channel.send(request)

        if response.status != 200:
            logger.warning(f"{method} {resource} rejected: {response.status} {response.reason}")
            raise UnexpectedStatus(method, response.status, response.reason)

        if include_session and self.conn.session_id is not None:
            echoed = response.session_id
            if echoed is not None and echoed != self.conn.session_id:
                raise SessionMismatch(self.conn.session_id, echoed)

        return response

    def _stop_receiver(self):
        handle = self._handle
        if handle is None:
            return
        self._handle = None
        try:
            self.receiver.cancel(handle)
        finally:
            self._last_stats = handle.stats.to_dict()

    def _close_endpoint(self):
        endpoint = self.endpoint
        if endpoint is None:
            return
        self.endpoint = None
        endpoint.close()

    def __repr__(self):
        return (f"RTSPSession({self.host}:{self.port}, state={self.conn.state.value}, "
                f"session={self.conn.session_id}, cseq={self.conn.cseq})")
