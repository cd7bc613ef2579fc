#!/usr/bin/env python3
"""
RTSP message codec

Encodes control requests to wire bytes and decodes responses from any
line source with a binary readline() (typically socket.makefile('rb')).

Framing:
    METHOD resource RTSP/1.0\\r\\n
    CSeq: 1\\r\\n
    Session: 4093545028\\r\\n
    \\r\\n

Responses are read leniently: a bare LF terminates a line just like CRLF.
"""

import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping, Optional, Tuple

from .errors import MalformedHeader, MalformedStatusLine, UnexpectedEndOfStream

logger = logging.getLogger(__name__)

RTSP_VERSION = "RTSP/1.0"
CRLF = "\r\n"

# Upper bound on a single header/status line, guards against a peer that never sends LF
MAX_LINE_LENGTH = 8192


@dataclass(frozen=True)
class RTSPRequest:
    """Immutable control request"""
    method: str
    resource: str
    cseq: int
    session_id: Optional[int] = None
    headers: Tuple[Tuple[str, str], ...] = ()   # extra headers, in send order
    version: str = RTSP_VERSION

    def encode(self) -> bytes:
        return encode_request(
            self.method, self.resource, self.cseq,
            session_id=self.session_id,
            extra_headers=self.headers,
            version=self.version,
        )


@dataclass(frozen=True)
class RTSPResponse:
    """
    Immutable control response.

    Header names are stored lower-cased; use header() for lookups so
    callers never depend on the server's casing.
    """
    version: str
    status: int
    reason: str
    headers: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        # Freeze the mapping so the response cannot be modified after parsing
        frozen = MappingProxyType({k.lower(): v for k, v in dict(self.headers).items()})
        object.__setattr__(self, 'headers', frozen)

    @property
    def ok(self) -> bool:
        return self.status == 200

    def header(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.headers.get(name.lower(), default)

    @property
    def cseq(self) -> Optional[int]:
        value = self.header('CSeq')
        if value is None:
            return None
        try:
            return int(value)
        except ValueError:
            return None

    @property
    def session_id(self) -> Optional[int]:
        """Session header as a positive integer, None if absent or unusable"""
        return parse_session_id(self.header('Session'))


def parse_session_id(value: Optional[str]) -> Optional[int]:
    """
    Parse a Session header value.

    Servers may append parameters ("12345678;timeout=60"); only the
    identifier before the first ';' is used.

    Returns:
        Positive integer session id, or None
    """
    if value is None:
        return None
    token = value.split(';', 1)[0].strip()
    try:
        session_id = int(token)
    except ValueError:
        return None
    return session_id if session_id > 0 else None


def _check_token(kind: str, value: str):
    if not value or any(ch.isspace() for ch in value):
        raise ValueError(f"Invalid {kind}: {value!r}")


def _check_header(name: str, value: str):
    if not name or ':' in name or any(ch.isspace() for ch in name):
        raise ValueError(f"Invalid header name: {name!r}")
    if '\r' in value or '\n' in value:
        raise ValueError(f"Header {name} value contains a line break")


def encode_request(method: str, resource: str, sequence: int,
                   session_id: Optional[int] = None,
                   extra_headers: Optional[Iterable[Tuple[str, str]]] = None,
                   version: str = RTSP_VERSION) -> bytes:
    """
    Encode an RTSP request.

    Args:
        method: Method token (SETUP, PLAY, ...)
        resource: Resource identifier, no whitespace
        sequence: CSeq value, always the first header
        session_id: Session header value, emitted second when given
        extra_headers: Further (name, value) pairs, emitted in order
        version: Protocol version token

    Returns:
        Wire bytes, CRLF line endings, terminated by an empty line
    """
    _check_token("method", method)
    _check_token("resource", resource)
    _check_token("version", version)

    headers = [("CSeq", str(int(sequence)))]
    if session_id is not None:
        headers.append(("Session", str(int(session_id))))
    if extra_headers:
        if isinstance(extra_headers, Mapping):
            extra_headers = extra_headers.items()
        headers.extend((str(name), str(value)) for name, value in extra_headers)

    lines = [f"{method} {resource} {version}"]
    for name, value in headers:
        _check_header(name, value)
        lines.append(f"{name}: {value}")

    return (CRLF.join(lines) + CRLF + CRLF).encode('utf-8')


def _read_line(source, too_long) -> Optional[str]:
    """
    Read one line without its terminator; None at end of stream.

    Args:
        source: Binary line source
        too_long: Exception class raised (with a line excerpt) when the line
            exceeds MAX_LINE_LENGTH
    """
    raw = source.readline(MAX_LINE_LENGTH)
    if not raw:
        return None
    if len(raw) >= MAX_LINE_LENGTH and not raw.endswith(b'\n'):
        # Consume the remainder so it is never parsed as a line of its own
        while True:
            rest = source.readline(MAX_LINE_LENGTH)
            if not rest or rest.endswith(b'\n'):
                break
        excerpt = raw[:64].decode('utf-8', errors='replace')
        raise too_long(f"{excerpt}... (line exceeds {MAX_LINE_LENGTH} bytes)")
    return raw.decode('utf-8', errors='replace').rstrip('\r\n')


def decode_response(source) -> RTSPResponse:
    """
    Read and parse one RTSP response.

    Args:
        source: Object with a binary readline(), e.g. socket.makefile('rb')

    Returns:
        Parsed RTSPResponse

    Raises:
        UnexpectedEndOfStream: source closed before the terminating blank line
        MalformedStatusLine: status line is not "VERSION code reason" or too long
        MalformedHeader: header line lacks a colon or is too long
    """
    status_line = _read_line(source, MalformedStatusLine)
    if status_line is None:
        raise UnexpectedEndOfStream("Stream closed before status line")

    parts = status_line.split(' ', 2)
    if len(parts) != 3:
        raise MalformedStatusLine(status_line)
    version, code, reason = parts
    try:
        status = int(code)
    except ValueError:
        raise MalformedStatusLine(status_line) from None

    headers = {}
    while True:
        line = _read_line(source, MalformedHeader)
        if line is None:
            raise UnexpectedEndOfStream(f"Stream closed inside headers of '{status_line}'")
        if line == '':
            break
        name, sep, value = line.partition(':')
        if not sep or not name.strip():
            raise MalformedHeader(line)
        headers[name.strip().lower()] = value.strip()

    logger.debug(f"Response: {status} {reason} {headers}")
    return RTSPResponse(version=version, status=status, reason=reason, headers=headers)
