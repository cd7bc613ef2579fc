import unittest
from pathlib import Path

# Adjust path to import the actual classes
import sys
src_path = str(Path(__file__).parent.parent / 'src')
if src_path not in sys.path:
    sys.path.append(src_path)

from rtsp_client.rtp_frame import Frame, decode_frame, RTP_HEADER_SIZE
from rtsp_client.errors import ShortPacket, FrameDecodeError


class TestDecodeFrame(unittest.TestCase):

    def test_reference_datagram(self):
        data = bytes([0x80, 0x00, 0x00, 0x01,
                      0x00, 0x00, 0x00, 0x64,
                      0x00, 0x00, 0x00, 0x00]) + b'abc'
        frame = decode_frame(data)
        self.assertEqual(frame.payload_type, 0)
        self.assertFalse(frame.marker)
        self.assertEqual(frame.sequence_number, 1)
        self.assertEqual(frame.timestamp, 100)
        self.assertEqual(frame.payload, b'abc')
        self.assertEqual(frame.payload_length, 3)

    def test_marker_and_payload_type_share_byte_one(self):
        data = bytes([0x80, 0x81]) + bytes(10)
        frame = decode_frame(data)
        self.assertTrue(frame.marker)
        self.assertEqual(frame.payload_type, 1)

    def test_payload_type_uses_seven_bits(self):
        frame = decode_frame(bytes([0x00, 0x7F]) + bytes(10))
        self.assertEqual(frame.payload_type, 127)
        self.assertFalse(frame.marker)

    def test_big_endian_maximums(self):
        data = bytes([0x80, 0x1A, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xFF, 0xDE, 0xAD, 0xBE, 0xEF])
        frame = decode_frame(data)
        self.assertEqual(frame.sequence_number, 0xFFFF)
        self.assertEqual(frame.timestamp, 0xFFFFFFFF)
        self.assertEqual(frame.payload, b'')

    def test_byte_zero_and_ssrc_are_ignored(self):
        a = decode_frame(bytes([0x00, 0x1A, 0, 5, 0, 0, 1, 0, 1, 2, 3, 4]) + b'x')
        b = decode_frame(bytes([0xFF, 0x1A, 0, 5, 0, 0, 1, 0, 9, 9, 9, 9]) + b'x')
        self.assertEqual(a, b)

    def test_header_only_datagram_has_empty_payload(self):
        frame = decode_frame(bytes(RTP_HEADER_SIZE))
        self.assertEqual(frame.payload, b'')

    def test_ten_byte_datagram_is_short(self):
        with self.assertRaises(ShortPacket) as ctx:
            decode_frame(bytes(10))
        self.assertEqual(ctx.exception.length, 10)
        self.assertIsInstance(ctx.exception, FrameDecodeError)

    def test_accepts_memoryview(self):
        buf = bytearray([0x80, 0x60, 0x00, 0x02, 0, 0, 0, 1, 0, 0, 0, 0]) + b'zz'
        frame = decode_frame(memoryview(buf))
        self.assertEqual(frame.payload, b'zz')
        self.assertIsInstance(frame.payload, bytes)

    def test_frame_is_immutable(self):
        frame = Frame(payload_type=26, marker=False, sequence_number=1, timestamp=0, payload=b'')
        with self.assertRaises(Exception):
            frame.marker = True


if __name__ == '__main__':
    unittest.main()
