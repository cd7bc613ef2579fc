#!/usr/bin/env python3
"""
UDP datagram endpoint

Opened and closed by the session; borrowed by the frame receiver while
playback is active. Reads are bounded by a timeout so the receiver can
poll its cancellation token.
"""

import socket
import logging
import threading
from typing import Optional

from .errors import EndpointClosed

logger = logging.getLogger(__name__)


class DatagramEndpoint:
    """
    Local UDP endpoint for the RTP stream.

    Example:
        endpoint = DatagramEndpoint(receive_timeout=2.0)
        endpoint.open()
        port = endpoint.port        # advertised in the SETUP Transport header
        data = endpoint.receive()   # None on timeout
        endpoint.close()
    """

    def __init__(self, host: str = "", port: int = 0,
                 receive_timeout: float = 2.0,
                 max_datagram_size: int = 0x10000,
                 receive_buffer_bytes: Optional[int] = None):
        """
        Args:
            host: Local bind address ("" = all interfaces)
            port: Local port, 0 = ephemeral
            receive_timeout: Seconds a single receive() may block
            max_datagram_size: Largest datagram accepted
            receive_buffer_bytes: SO_RCVBUF to request, None = OS default
        """
        self.host = host
        self.port = port
        self.receive_timeout = receive_timeout
        self.max_datagram_size = max_datagram_size
        self.receive_buffer_bytes = receive_buffer_bytes
        self.socket: Optional[socket.socket] = None
        self._closed = False
        self._lock = threading.Lock()

    @property
    def is_open(self) -> bool:
        return self.socket is not None and not self._closed

    def open(self) -> 'DatagramEndpoint':
        """Bind the socket; no-op if already open"""
        with self._lock:
            if self.is_open:
                return self

            sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
            try:
                if self.receive_buffer_bytes:
                    try:
                        sock.setsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF, self.receive_buffer_bytes)
                        actual_size = sock.getsockopt(socket.SOL_SOCKET, socket.SO_RCVBUF)
                        logger.debug(f"UDP receive buffer: requested {self.receive_buffer_bytes}, got {actual_size}")
                    except OSError as e:
                        logger.warning(f"Could not set UDP buffer size: {e}")

                sock.bind((self.host, self.port))
                sock.settimeout(self.receive_timeout)
            except OSError:
                sock.close()
                raise

            self.socket = sock
            self._closed = False
            self.port = sock.getsockname()[1]
            logger.info(f"Datagram endpoint open on {self.host or '0.0.0.0'}:{self.port}")
            return self

    def receive(self) -> Optional[bytes]:
        """
        Read one datagram.

        Returns:
            Datagram bytes, or None if the bounded wait expired

        Raises:
            EndpointClosed: endpoint closed before or during the read
            OSError: transport error on an open endpoint
        """
        sock = self.socket
        if sock is None or self._closed:
            raise EndpointClosed("Datagram endpoint is closed")

        try:
            data, _addr = sock.recvfrom(self.max_datagram_size)
        except socket.timeout:
            return None
        except OSError as e:
            if self._closed:
                raise EndpointClosed("Datagram endpoint closed during read") from e
            raise

        if self._closed:
            # Close raced the read; the caller must not see data after close()
            raise EndpointClosed("Datagram endpoint closed during read")
        return data

    def close(self):
        """Close the socket; idempotent. Wakes a blocked receive()."""
        with self._lock:
            sock = self.socket
            if sock is None or self._closed:
                return
            self._closed = True
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError as e:
                # Unconnected UDP sockets may refuse shutdown; close still applies
                logger.debug(f"Datagram endpoint shutdown: {e}")
            sock.close()
            logger.info(f"Datagram endpoint on port {self.port} closed")

    def __repr__(self):
        state = 'open' if self.is_open else 'closed'
        return f"DatagramEndpoint({self.host or '0.0.0.0'}:{self.port}, {state})"
