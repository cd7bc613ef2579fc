#!/usr/bin/env python3
"""
Receive statistics for one playback

Tracks frame counts, RTP sequence continuity (16-bit wrap aware) and
datagram inter-arrival timing. Written by the receiver thread, read by
any thread via to_dict().
"""

import time
import logging
import threading
from collections import deque
from typing import Any, Dict, Optional

import numpy as np

from .rtp_frame import Frame

logger = logging.getLogger(__name__)

SEQ_MOD = 1 << 16
SEQ_HALF = 1 << 15


class StreamStats:
    """
    Per-playback receive statistics.

    Sequence accounting:
    - delta == 1: in order
    - delta == 0: duplicate
    - 1 < delta < 32768: forward jump, delta - 1 frames counted lost
    - otherwise: late (reordered) frame, does not move the expected sequence
    """

    def __init__(self, window: int = 1024):
        self._lock = threading.Lock()
        self._intervals: deque = deque(maxlen=window)

        self.frames_received = 0
        self.bytes_received = 0
        self.marker_frames = 0
        self.decode_errors = 0
        self.sequence_gaps = 0
        self.frames_lost = 0
        self.duplicates = 0
        self.reordered = 0

        self.first_sequence: Optional[int] = None
        self.highest_sequence: Optional[int] = None
        self.first_arrival: Optional[float] = None
        self.last_arrival: Optional[float] = None

    def record_frame(self, frame: Frame, arrival: Optional[float] = None):
        """Account for a delivered frame"""
        now = arrival if arrival is not None else time.monotonic()
        with self._lock:
            self.frames_received += 1
            self.bytes_received += frame.payload_length
            if frame.marker:
                self.marker_frames += 1

            self._record_arrival(now)
            self._record_sequence(frame.sequence_number)

    def record_decode_error(self, arrival: Optional[float] = None):
        now = arrival if arrival is not None else time.monotonic()
        with self._lock:
            self.decode_errors += 1
            self._record_arrival(now)

    def _record_arrival(self, now: float):
        if self.first_arrival is None:
            self.first_arrival = now
        elif self.last_arrival is not None:
            self._intervals.append(now - self.last_arrival)
        self.last_arrival = now

    def _record_sequence(self, seq: int):
        if self.highest_sequence is None:
            self.first_sequence = seq
            self.highest_sequence = seq
            return

        delta = (seq - self.highest_sequence) % SEQ_MOD
        if delta == 0:
            self.duplicates += 1
        elif delta == 1:
            self.highest_sequence = seq
        elif delta < SEQ_HALF:
            self.sequence_gaps += 1
            self.frames_lost += delta - 1
            logger.debug(f"Sequence gap: {self.highest_sequence} -> {seq} ({delta - 1} missing)")
            self.highest_sequence = seq
        else:
            self.reordered += 1

    def interarrival_ms(self) -> Dict[str, float]:
        """Mean/std/max of datagram inter-arrival time in ms"""
        with self._lock:
            intervals = np.fromiter(self._intervals, dtype=np.float64, count=len(self._intervals))
        if intervals.size == 0:
            return {'mean_ms': 0.0, 'std_ms': 0.0, 'max_ms': 0.0}
        intervals_ms = intervals * 1000.0
        return {
            'mean_ms': float(np.mean(intervals_ms)),
            'std_ms': float(np.std(intervals_ms)),
            'max_ms': float(np.max(intervals_ms)),
        }

    def to_dict(self) -> Dict[str, Any]:
        timing = self.interarrival_ms()
        with self._lock:
            duration = 0.0
            if self.first_arrival is not None and self.last_arrival is not None:
                duration = self.last_arrival - self.first_arrival
            expected = self.frames_received - self.duplicates + self.frames_lost
            loss_percent = (100.0 * self.frames_lost / expected) if expected else 0.0
            return {
                'frames_received': self.frames_received,
                'bytes_received': self.bytes_received,
                'marker_frames': self.marker_frames,
                'decode_errors': self.decode_errors,
                'sequence_gaps': self.sequence_gaps,
                'frames_lost': self.frames_lost,
                'loss_percent': loss_percent,
                'duplicates': self.duplicates,
                'reordered': self.reordered,
                'first_sequence': self.first_sequence,
                'highest_sequence': self.highest_sequence,
                'duration_seconds': duration,
                'interarrival_mean_ms': timing['mean_ms'],
                'interarrival_std_ms': timing['std_ms'],
                'interarrival_max_ms': timing['max_ms'],
            }
