"""
Exception taxonomy for the RTSP client

Control-channel errors surface synchronously to the caller of a session
operation. Frame decode errors are reported to the sink and never stop the
receive loop.
"""

from typing import Optional


class RTSPError(Exception):
    """Base class for every error raised by rtsp_client"""


class RTSPConnectionError(RTSPError, ConnectionError):
    """The control connection could not be established"""


class ConnectionLost(RTSPConnectionError):
    """The control transport failed mid-use; the channel is unusable"""


class ProtocolError(RTSPError):
    """A well-formed transport delivered a malformed or inconsistent message"""


class MalformedStatusLine(ProtocolError):
    """Status line did not split into version, numeric code and reason"""

    def __init__(self, line: str):
        super().__init__(f"Malformed status line: {line!r}")
        self.line = line


class MalformedHeader(ProtocolError):
    """Header line without a colon"""

    def __init__(self, line: str):
        super().__init__(f"Malformed header line: {line!r}")
        self.line = line


class UnexpectedEndOfStream(ProtocolError):
    """Source closed before the blank line terminating a response"""


class SequenceMismatch(ProtocolError):
    """Response CSeq does not match the request"""

    def __init__(self, expected: int, received: int):
        super().__init__(f"CSeq mismatch: sent {expected}, server answered {received}")
        self.expected = expected
        self.received = received


class SessionMismatch(ProtocolError):
    """Response Session id differs from the one assigned by SETUP"""

    def __init__(self, expected: int, received: int):
        super().__init__(f"Session mismatch: expected {expected}, server answered {received}")
        self.expected = expected
        self.received = received


class InvalidSessionHeader(ProtocolError):
    """SETUP response lacks a usable Session header"""

    def __init__(self, value: Optional[str]):
        if value is None:
            message = "SETUP response has no Session header"
        else:
            message = f"Invalid Session header: {value!r}"
        super().__init__(message)
        self.value = value


class UnexpectedStatus(RTSPError):
    """Server answered with a status other than 200"""

    def __init__(self, method: str, status: int, reason: str):
        super().__init__(f"{method} failed: {status} {reason}")
        self.method = method
        self.status = status
        self.reason = reason


class InvalidStateTransition(RTSPError):
    """Operation is not permitted from the current lifecycle state"""

    def __init__(self, operation: str, state):
        state_name = getattr(state, 'value', state)
        super().__init__(f"Cannot {operation}() in state {state_name!r}")
        self.operation = operation
        self.state = state


class FrameDecodeError(RTSPError):
    """A single datagram could not be decoded"""


class ShortPacket(FrameDecodeError):
    """Datagram shorter than the fixed RTP header"""

    def __init__(self, length: int, required: int = 12):
        super().__init__(f"Datagram too short: {length} bytes, need at least {required}")
        self.length = length
        self.required = required


class EndpointClosed(RTSPError):
    """Datagram endpoint was closed while (or before) reading"""
