#!/usr/bin/env python3
"""
Command Line Interface for RTSP Client
"""

import sys
import time
import logging
import argparse
from typing import Any, Dict

from .config import ClientConfig, load_config
from .errors import RTSPError
from .frame_sink import QueueFrameSink
from .session import RTSPSession

logger = logging.getLogger(__name__)


def configure_logging(debug: bool = False):
    """Configure root logging (INFO, or DEBUG with --debug)"""
    level = logging.DEBUG if debug else logging.INFO
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Add handler if none exists
    if not root_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(asctime)s %(levelname)s:%(name)s:%(message)s'))
        root_logger.addHandler(handler)

    for handler in root_logger.handlers:
        handler.setLevel(level)


def format_stream_summary(stats: Dict[str, Any]) -> str:
    """Format receive statistics for console display"""
    lines = [f"\n{'='*60}"]
    lines.append(f"Frames received: {stats['frames_received']:,} "
                 f"({stats['bytes_received']:,} payload bytes, {stats['marker_frames']:,} marker)")
    lines.append(f"Duration: {stats['duration_seconds']:.2f} s")
    lines.append(f"Sequence: first={stats['first_sequence']}, highest={stats['highest_sequence']}")
    lines.append(f"Loss: {stats['frames_lost']:,} frames in {stats['sequence_gaps']:,} gaps "
                 f"({stats['loss_percent']:.3f}%)")
    if stats['duplicates'] or stats['reordered']:
        lines.append(f"Duplicates: {stats['duplicates']:,}, reordered: {stats['reordered']:,}")
    if stats['decode_errors']:
        lines.append(f"Undecodable datagrams: {stats['decode_errors']:,}")
    lines.append(f"Inter-arrival: mean {stats['interarrival_mean_ms']:.2f} ms, "
                 f"std {stats['interarrival_std_ms']:.2f} ms, max {stats['interarrival_max_ms']:.2f} ms")
    lines.append(f"{'='*60}")
    return "\n".join(lines)


def run_play(args) -> int:
    """setup -> play for a while -> teardown, then print statistics"""
    if args.config:
        try:
            config = load_config(args.config)
        except FileNotFoundError:
            print(f"❌ Configuration file not found: {args.config}")
            return 1
        except ValueError as e:
            print(f"❌ Error loading configuration: {e}")
            return 1
    else:
        config = ClientConfig()

    sink = QueueFrameSink(maxsize=args.queue_size)

    try:
        with RTSPSession(args.host, args.port, sink=sink, config=config) as session:
            session.setup(args.resource)
            session.play()

            consumed = 0
            deadline = time.monotonic() + args.duration
            while time.monotonic() < deadline:
                frame = sink.get(timeout=min(0.5, max(0.0, deadline - time.monotonic())))
                if frame is not None:
                    consumed += 1

            session.teardown()
            stats = session.get_stats()
    except RTSPError as e:
        logger.error(f"Session failed: {e}")
        return 1

    if stats:
        print(format_stream_summary(stats))
    print(f"Consumed {consumed} frames ({sink.dropped} dropped by queue)")
    return 0


def main():
    """Main entry point for rtsp-client command"""
    parser = argparse.ArgumentParser(
        description='RTSP streaming session client',
        formatter_class=argparse.RawDescriptionHelpFormatter
    )

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Play command
    play_parser = subparsers.add_parser('play', help='Set up and play a stream, then report statistics')
    play_parser.add_argument('host', help='RTSP server host')
    play_parser.add_argument('port', type=int, help='RTSP server TCP port')
    play_parser.add_argument('resource', help='Resource (video) name to set up')
    play_parser.add_argument('--duration', '-t', type=float, default=5.0,
                             help='Seconds to play before teardown (default 5)')
    play_parser.add_argument('--queue-size', type=int, default=256,
                             help='Frames buffered between receiver and consumer')
    play_parser.add_argument('--config', '-c', help='Configuration file path (TOML)')
    play_parser.add_argument('--debug', '-d', action='store_true', help='Enable DEBUG logging')

    args = parser.parse_args()

    # If no command specified, show help
    if not args.command:
        parser.print_help()
        sys.exit(1)

    configure_logging(debug=getattr(args, 'debug', False))

    if args.command == 'play':
        sys.exit(run_play(args))


if __name__ == '__main__':
    main()
