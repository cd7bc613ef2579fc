#!/usr/bin/env python3
"""
RTSP Control Channel

Owns the persistent TCP connection to the RTSP server and performs one
request/response exchange at a time. The protocol has no request
identifiers beyond CSeq, so concurrent callers are serialized.
"""

import socket
import logging
import threading
from typing import Optional

from .errors import ConnectionLost, RTSPConnectionError, SequenceMismatch
from .rtsp_codec import RTSPRequest, RTSPResponse, decode_response

logger = logging.getLogger(__name__)


class ControlChannel:
    """
    Persistent RTSP control connection.

    Example:
        channel = ControlChannel('media.example.org', 554)
        response = channel.send(RTSPRequest('OPTIONS', '*', cseq=1))
        channel.close()
    """

    def __init__(self, host: str, port: int, connect_timeout: Optional[float] = 10.0):
        """
        Connect to the server. No request is sent.

        Args:
            host: Server hostname or address
            port: Server TCP port
            connect_timeout: Seconds allowed for DNS + TCP connect (None = OS default)

        Raises:
            RTSPConnectionError: host/port invalid or unreachable
        """
        self.host = host
        self.port = port
        self._lock = threading.Lock()
        self._lost = False
        self._closed = False

        try:
            self.socket = socket.create_connection((host, port), timeout=connect_timeout)
            # Exchanges block until the server answers; only connect is bounded
            self.socket.settimeout(None)
        except (OSError, OverflowError, TypeError) as e:
            raise RTSPConnectionError(f"Cannot connect to {host}:{port}: {e}") from e

        self._reader = self.socket.makefile('rb')
        logger.info(f"Control connection established to {host}:{port}")

    @property
    def is_open(self) -> bool:
        return not self._closed and not self._lost

    @property
    def lost(self) -> bool:
        return self._lost

    def send(self, request: RTSPRequest) -> RTSPResponse:
        """
        Send a request and block until its response is parsed.

        Raises:
            ConnectionLost: transport failure; channel unusable afterwards
            MalformedStatusLine, MalformedHeader, UnexpectedEndOfStream:
                malformed response; channel remains usable
            SequenceMismatch: response CSeq differs from the request
        """
        wire = request.encode()

        with self._lock:
            if self._closed:
                raise ConnectionLost(f"Control connection to {self.host}:{self.port} is closed")
            if self._lost:
                raise ConnectionLost(f"Control connection to {self.host}:{self.port} was lost")

            logger.debug(f"> {request.method} {request.resource} CSeq={request.cseq}")
            try:
                self.socket.sendall(wire)
            except OSError as e:
                self._mark_lost(e)
                raise ConnectionLost(f"Write to {self.host}:{self.port} failed: {e}") from e

            try:
                first = self._reader.peek(1)
            except OSError as e:
                self._mark_lost(e)
                raise ConnectionLost(f"Read from {self.host}:{self.port} failed: {e}") from e

            # An empty read before any byte means the server hung up
            if not first:
                self._mark_lost("end of stream")
                raise ConnectionLost(f"Server {self.host}:{self.port} closed the connection")

            try:
                response = decode_response(self._reader)
            except OSError as e:
                self._mark_lost(e)
                raise ConnectionLost(f"Read from {self.host}:{self.port} failed: {e}") from e

        logger.debug(f"< {response.status} {response.reason} CSeq={response.cseq}")

        if response.cseq is not None and response.cseq != request.cseq:
            raise SequenceMismatch(request.cseq, response.cseq)

        return response

    def _mark_lost(self, reason):
        self._lost = True
        logger.error(f"Control connection to {self.host}:{self.port} lost: {reason}")

    def close(self):
        """Close the connection; best effort, never raises"""
        if self._closed:
            return
        self._closed = True
        for closer in (self._reader.close, self._shutdown, self.socket.close):
            try:
                closer()
            except OSError as e:
                logger.debug(f"Ignoring error while closing control connection: {e}")
        logger.info(f"Control connection to {self.host}:{self.port} closed")

    def _shutdown(self):
        self.socket.shutdown(socket.SHUT_RDWR)

    def __repr__(self):
        state = 'open' if self.is_open else ('lost' if self._lost else 'closed')
        return f"ControlChannel({self.host}:{self.port}, {state})"
