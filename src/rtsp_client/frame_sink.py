"""
Frame sinks

The receiver depends only on the FrameSink protocol. Applications supply
their own implementation (a decoder, a player, a test recorder).
"""

import queue
import logging
import threading
from typing import Optional, Protocol

from .errors import FrameDecodeError
from .rtp_frame import Frame

logger = logging.getLogger(__name__)


class FrameSink(Protocol):
    """
    Consumer of decoded frames - applications implement this.

    on_frame is called from the receiver thread, once per decoded datagram,
    in arrival order. A sink may additionally define

        on_decode_error(self, error: FrameDecodeError, datagram: bytes) -> None

    to be told about datagrams that could not be decoded.
    """

    def on_frame(self, frame: Frame) -> None:
        """Called for each decoded frame"""
        ...


class QueueFrameSink:
    """
    Bounded queue between the receiver thread and a consumer thread.

    When the queue is full the oldest frame is discarded so a slow consumer
    never stalls the receive loop.
    """

    def __init__(self, maxsize: int = 256):
        self.frames: queue.Queue = queue.Queue(maxsize=maxsize)
        self.dropped = 0
        self.decode_errors = 0
        self._lock = threading.Lock()

    def on_frame(self, frame: Frame) -> None:
        with self._lock:
            while True:
                try:
                    self.frames.put_nowait(frame)
                    return
                except queue.Full:
                    try:
                        self.frames.get_nowait()
                        self.dropped += 1
                    except queue.Empty:
                        continue

    def on_decode_error(self, error: FrameDecodeError, datagram: bytes) -> None:
        with self._lock:
            self.decode_errors += 1

    def get(self, timeout: Optional[float] = None) -> Optional[Frame]:
        """Next frame, or None if none arrives within timeout"""
        try:
            return self.frames.get(timeout=timeout)
        except queue.Empty:
            return None

    def __len__(self):
        return self.frames.qsize()
