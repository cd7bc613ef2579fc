#!/usr/bin/env python3
"""
Frame Receiver

Background thread that reads RTP datagrams from a DatagramEndpoint,
decodes each into a Frame and hands it to a FrameSink in arrival order.

The endpoint is borrowed, never closed here: the session owns its
lifecycle. Cancellation is cooperative via a threading.Event checked
after every bounded read, so cancel() returns within one receive timeout.
"""

import logging
import threading
from typing import Optional

from .datagram_endpoint import DatagramEndpoint
from .errors import EndpointClosed, FrameDecodeError
from .frame_sink import FrameSink
from .rtp_frame import decode_frame
from .stream_stats import StreamStats

logger = logging.getLogger(__name__)

# Decode errors logged individually before switching to periodic summaries
DECODE_ERROR_LOG_LIMIT = 10


class ReceiverHandle:
    """One running receive loop; returned by FrameReceiver.start()"""

    def __init__(self, endpoint: DatagramEndpoint, sink: FrameSink, stats: StreamStats):
        self.endpoint = endpoint
        self.sink = sink
        self.stats = stats
        self.cancel_event = threading.Event()
        self.thread: Optional[threading.Thread] = None

    @property
    def is_alive(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()


class FrameReceiver:
    """
    Starts and cancels the receive loop. At most one loop is active at a time.

    Example:
        receiver = FrameReceiver()
        handle = receiver.start(endpoint, sink)
        # ... sink.on_frame(frame) called from the receiver thread ...
        receiver.cancel(handle)     # no on_frame calls after this returns
    """

    def __init__(self, stats_window: int = 1024, join_warning_interval: float = 5.0):
        """
        Args:
            stats_window: Inter-arrival samples kept per playback
            join_warning_interval: Seconds between warnings while cancel() waits
        """
        self.stats_window = stats_window
        self.join_warning_interval = join_warning_interval
        self._active: Optional[ReceiverHandle] = None
        self._lock = threading.Lock()

    @property
    def active(self) -> Optional[ReceiverHandle]:
        with self._lock:
            if self._active is not None and not self._active.is_alive:
                self._active = None
            return self._active

    def start(self, endpoint: DatagramEndpoint, sink: FrameSink) -> ReceiverHandle:
        """
        Start the receive loop on a background thread.

        The endpoint is opened if it is not already.

        Raises:
            RuntimeError: a receive loop is already active
        """
        with self._lock:
            if self._active is not None and self._active.is_alive:
                raise RuntimeError("Frame receiver already running")

            endpoint.open()
            handle = ReceiverHandle(endpoint, sink, StreamStats(window=self.stats_window))
            handle.thread = threading.Thread(
                target=self._receive_loop,
                args=(handle,),
                name=f"frame-receiver-{endpoint.port}",
                daemon=True,
            )
            self._active = handle
            handle.thread.start()

        logger.info(f"Frame receiver started on port {endpoint.port}")
        return handle

    def cancel(self, handle: ReceiverHandle):
        """
        Signal the loop to stop and wait until it has exited.

        When called from the receiver thread itself (e.g. from inside the
        sink), the loop is signalled but not joined; it exits as soon as the
        current callback returns.
        """
        handle.cancel_event.set()
        thread = handle.thread

        if thread is not None and thread is not threading.current_thread():
            while thread.is_alive():
                thread.join(timeout=self.join_warning_interval)
                if thread.is_alive():
                    logger.warning(f"Still waiting for frame receiver on port {handle.endpoint.port} to stop")

        with self._lock:
            if self._active is handle:
                self._active = None

        logger.info(f"Frame receiver on port {handle.endpoint.port} stopped "
                    f"({handle.stats.frames_received} frames, {handle.stats.decode_errors} decode errors)")

    def _receive_loop(self, handle: ReceiverHandle):
        """Main datagram reception loop"""
        endpoint = handle.endpoint
        sink = handle.sink
        stats = handle.stats
        on_decode_error = getattr(sink, 'on_decode_error', None)

        while not handle.cancel_event.is_set():
            try:
                data = endpoint.receive()
            except EndpointClosed:
                logger.debug(f"Endpoint closed, receive loop on port {endpoint.port} exiting")
                break
            except OSError as e:
                if handle.cancel_event.is_set():
                    break
                logger.error(f"Error receiving datagram: {e}")
                continue

            if data is None:
                continue  # bounded wait expired; re-check cancellation

            try:
                frame = decode_frame(data)
            except FrameDecodeError as e:
                stats.record_decode_error()
                if stats.decode_errors <= DECODE_ERROR_LOG_LIMIT:
                    logger.warning(f"Dropping undecodable datagram ({len(data)} bytes): {e}")
                elif stats.decode_errors % 1000 == 0:
                    logger.warning(f"{stats.decode_errors} undecodable datagrams so far")
                if on_decode_error is not None and not handle.cancel_event.is_set():
                    try:
                        on_decode_error(e, data)
                    except Exception as sink_error:
                        logger.error(f"Sink on_decode_error failed: {sink_error}", exc_info=True)
                continue

            if stats.frames_received == 0:
                logger.debug(f"First frame: pt={frame.payload_type}, seq={frame.sequence_number}, "
                             f"ts={frame.timestamp}, payload={frame.payload_length} bytes")

            stats.record_frame(frame)

            if handle.cancel_event.is_set():
                break

            try:
                sink.on_frame(frame)
            except Exception as e:
                logger.error(f"Sink on_frame failed for seq {frame.sequence_number}: {e}", exc_info=True)
            del frame

        logger.debug(f"Receive loop on port {endpoint.port} exited")
