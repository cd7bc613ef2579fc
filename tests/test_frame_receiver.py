import socket
import struct
import threading
import time
import unittest
from pathlib import Path

# Adjust path to import the actual classes
import sys
src_path = str(Path(__file__).parent.parent / 'src')
if src_path not in sys.path:
    sys.path.append(src_path)

from rtsp_client.datagram_endpoint import DatagramEndpoint
from rtsp_client.frame_receiver import FrameReceiver
from rtsp_client.errors import EndpointClosed, ShortPacket


def rtp(seq: int, payload: bytes = b'', marker: bool = False, pt: int = 26) -> bytes:
    return struct.pack('>BBHII', 0x80, (0x80 if marker else 0) | pt, seq, seq * 90, 7) + payload


class RecordingSink:
    """Records every callback; signals when `expected` frames have arrived"""

    def __init__(self, expected: int = 0):
        self.frames = []
        self.errors = []
        self.threads = set()
        self.expected = expected
        self.done = threading.Event()
        self._lock = threading.Lock()

    def on_frame(self, frame):
        with self._lock:
            self.frames.append(frame)
            self.threads.add(threading.current_thread().name)
            if self.expected and len(self.frames) >= self.expected:
                self.done.set()

    def on_decode_error(self, error, datagram):
        with self._lock:
            self.errors.append((error, datagram))


class FrameOnlySink:
    def __init__(self):
        self.frames = []

    def on_frame(self, frame):
        self.frames.append(frame)


class TestFrameReceiver(unittest.TestCase):

    def setUp(self):
        self.endpoint = DatagramEndpoint(host='127.0.0.1', receive_timeout=0.1).open()
        self.sender = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.receiver = FrameReceiver()
        self.handles = []

    def tearDown(self):
        for handle in self.handles:
            self.receiver.cancel(handle)
        self.endpoint.close()
        self.sender.close()

    def send(self, data: bytes):
        self.sender.sendto(data, ('127.0.0.1', self.endpoint.port))

    def start(self, sink):
        handle = self.receiver.start(self.endpoint, sink)
        self.handles.append(handle)
        return handle

    def test_frames_delivered_in_arrival_order(self):
        sink = RecordingSink(expected=50)
        self.start(sink)
        for seq in range(1, 51):
            self.send(rtp(seq, b'p%d' % seq))

        self.assertTrue(sink.done.wait(5.0))
        self.assertEqual([f.sequence_number for f in sink.frames], list(range(1, 51)))
        self.assertEqual(sink.frames[9].payload, b'p10')
        # Delivered on the receiver thread, not the caller's
        self.assertNotIn(threading.current_thread().name, sink.threads)

    def test_corrupt_datagram_does_not_stop_stream(self):
        sink = RecordingSink(expected=2)
        handle = self.start(sink)
        self.send(rtp(1))
        self.send(b'\x80\x00\x01')       # 3 bytes, undecodable
        self.send(rtp(2))

        self.assertTrue(sink.done.wait(5.0))
        self.assertEqual([f.sequence_number for f in sink.frames], [1, 2])
        self.assertEqual(len(sink.errors), 1)
        error, datagram = sink.errors[0]
        self.assertIsInstance(error, ShortPacket)
        self.assertEqual(datagram, b'\x80\x00\x01')
        self.assertEqual(handle.stats.decode_errors, 1)
        self.assertTrue(handle.is_alive)

    def test_sink_without_error_hook_is_supported(self):
        sink = FrameOnlySink()
        handle = self.start(sink)
        self.send(b'short')
        self.send(rtp(9))
        deadline = time.monotonic() + 5.0
        while not sink.frames and time.monotonic() < deadline:
            time.sleep(0.01)
        self.assertEqual([f.sequence_number for f in sink.frames], [9])
        self.assertEqual(handle.stats.decode_errors, 1)

    def test_failing_sink_does_not_stop_stream(self):
        calls = []
        done = threading.Event()

        class ExplodingSink:
            def on_frame(self, frame):
                calls.append(frame.sequence_number)
                if len(calls) == 2:
                    done.set()
                if frame.sequence_number == 1:
                    raise RuntimeError("boom")

        self.start(ExplodingSink())
        self.send(rtp(1))
        self.send(rtp(2))
        self.assertTrue(done.wait(5.0))
        self.assertEqual(calls, [1, 2])

    def test_cancel_blocks_until_stopped(self):
        sink = RecordingSink(expected=1)
        handle = self.start(sink)
        self.send(rtp(1))
        self.assertTrue(sink.done.wait(5.0))

        started = time.monotonic()
        self.receiver.cancel(handle)
        elapsed = time.monotonic() - started

        self.assertFalse(handle.is_alive)
        self.assertTrue(handle.cancelled)
        # Bounded by one receive timeout plus scheduling slack
        self.assertLess(elapsed, 2.0)

        # Endpoint is still open (session owns it) but nothing more is delivered
        self.assertTrue(self.endpoint.is_open)
        count = len(sink.frames)
        self.send(rtp(2))
        time.sleep(0.3)
        self.assertEqual(len(sink.frames), count)

    def test_second_start_while_active_is_an_error(self):
        self.start(RecordingSink())
        with self.assertRaises(RuntimeError):
            self.receiver.start(self.endpoint, RecordingSink())

    def test_restart_after_cancel(self):
        first = self.start(RecordingSink())
        self.receiver.cancel(first)
        self.assertIsNone(self.receiver.active)

        sink = RecordingSink(expected=1)
        second = self.start(sink)
        self.send(rtp(5))
        self.assertTrue(sink.done.wait(5.0))
        self.assertIsNot(first.stats, second.stats)
        self.assertEqual(second.stats.frames_received, 1)

    def test_endpoint_close_is_a_normal_exit(self):
        handle = self.start(RecordingSink())
        self.endpoint.close()
        handle.thread.join(timeout=2.0)
        self.assertFalse(handle.is_alive)

    def test_cancel_from_inside_sink(self):
        receiver = self.receiver
        holder = {}
        stopped = threading.Event()

        class SelfCancellingSink:
            def __init__(self):
                self.frames = []

            def on_frame(self, frame):
                self.frames.append(frame)
                receiver.cancel(holder['handle'])
                stopped.set()

        sink = SelfCancellingSink()
        holder['handle'] = self.start(sink)
        self.send(rtp(1))
        self.send(rtp(2))
        self.assertTrue(stopped.wait(5.0))
        holder['handle'].thread.join(timeout=2.0)
        self.assertFalse(holder['handle'].is_alive)
        self.assertEqual(len(sink.frames), 1)


class TestDatagramEndpoint(unittest.TestCase):

    def test_ephemeral_port_and_timeout(self):
        endpoint = DatagramEndpoint(host='127.0.0.1', receive_timeout=0.05).open()
        try:
            self.assertTrue(endpoint.is_open)
            self.assertGreater(endpoint.port, 0)
            self.assertIsNone(endpoint.receive())
        finally:
            endpoint.close()

    def test_close_is_idempotent_and_receive_after_close_raises(self):
        endpoint = DatagramEndpoint(host='127.0.0.1', receive_timeout=0.05).open()
        endpoint.close()
        endpoint.close()
        self.assertFalse(endpoint.is_open)
        with self.assertRaises(EndpointClosed):
            endpoint.receive()

    def test_close_wakes_blocked_reader(self):
        endpoint = DatagramEndpoint(host='127.0.0.1', receive_timeout=0.5).open()
        outcome = []

        def reader():
            try:
                while True:
                    endpoint.receive()
            except EndpointClosed:
                outcome.append('closed')

        thread = threading.Thread(target=reader, daemon=True)
        thread.start()
        time.sleep(0.1)
        endpoint.close()
        thread.join(timeout=3.0)
        self.assertEqual(outcome, ['closed'])


if __name__ == '__main__':
    unittest.main()
