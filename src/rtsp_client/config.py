"""
Client configuration

Settings come from a TOML file with two sections:

    [rtsp]
    version = "RTSP/1.0"
    connect_timeout_sec = 10.0
    user_agent = "rtsp-client"

    [rtp]
    bind_address = ""
    port = 0                      # 0 = ephemeral
    receive_timeout_sec = 2.0
    max_datagram_size = 65536
    receive_buffer_bytes = 1048576
    transport_template = "RTP/UDP; client_port= {port}"
    stats_window = 1024

Every key is optional; missing keys keep the dataclass defaults.
"""

import os
import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Union

import toml

logger = logging.getLogger(__name__)


@dataclass
class ClientConfig:
    """Configuration for an RTSP session"""
    # Control channel
    rtsp_version: str = "RTSP/1.0"
    connect_timeout_sec: Optional[float] = 10.0   # None = OS default
    user_agent: Optional[str] = None              # sent on every request when set

    # Data plane
    rtp_bind_address: str = ""
    rtp_port: int = 0
    receive_timeout_sec: float = 2.0              # bounded read, cancellation latency
    max_datagram_size: int = 0x10000
    receive_buffer_bytes: Optional[int] = None    # SO_RCVBUF request, None = OS default
    transport_template: str = "RTP/UDP; client_port= {port}"

    # Statistics
    stats_window: int = 1024                      # inter-arrival samples kept

    def __post_init__(self):
        if self.connect_timeout_sec is not None and self.connect_timeout_sec <= 0:
            raise ValueError("connect_timeout_sec must be positive or None")
        if self.receive_timeout_sec <= 0:
            raise ValueError("receive_timeout_sec must be positive")
        if not 0 <= self.rtp_port <= 65535:
            raise ValueError(f"rtp_port out of range: {self.rtp_port}")
        if self.max_datagram_size < 12:
            raise ValueError("max_datagram_size must hold at least an RTP header")
        if self.receive_buffer_bytes is not None and self.receive_buffer_bytes <= 0:
            raise ValueError("receive_buffer_bytes must be positive or None")
        if '{port}' not in self.transport_template:
            raise ValueError("transport_template must contain '{port}'")
        if self.stats_window < 2:
            raise ValueError("stats_window must be at least 2")

    # TOML key -> dataclass field, per section
    _SECTIONS = {
        'rtsp': {
            'version': 'rtsp_version',
            'connect_timeout_sec': 'connect_timeout_sec',
            'user_agent': 'user_agent',
        },
        'rtp': {
            'bind_address': 'rtp_bind_address',
            'port': 'rtp_port',
            'receive_timeout_sec': 'receive_timeout_sec',
            'max_datagram_size': 'max_datagram_size',
            'receive_buffer_bytes': 'receive_buffer_bytes',
            'transport_template': 'transport_template',
            'stats_window': 'stats_window',
        },
    }

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'ClientConfig':
        """
        Build from a parsed TOML document.

        Args:
            config: Parsed configuration ([rtsp] and [rtp] sections)

        Raises:
            ValueError: unknown key or invalid value
        """
        kwargs = {}
        for section, keys in cls._SECTIONS.items():
            values = config.get(section, {})
            for key, value in values.items():
                if key not in keys:
                    raise ValueError(f"Unknown configuration key [{section}] {key}")
                kwargs[keys[key]] = value

        unknown = set(config) - set(cls._SECTIONS)
        if unknown:
            logger.warning(f"Ignoring unknown configuration sections: {sorted(unknown)}")

        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        return {
            section: {key: values[attr] for key, attr in keys.items()
                      if values[attr] is not None}
            for section, keys in self._SECTIONS.items()
        }

    def transport_for(self, port: int) -> str:
        return self.transport_template.format(port=port)


def load_config(path: Union[str, Path]) -> ClientConfig:
    """
    Load configuration from a TOML file.

    Environment variables and ~ in the path are expanded.

    Raises:
        FileNotFoundError: file does not exist
        ValueError: malformed TOML or invalid values
    """
    resolved = Path(os.path.expanduser(os.path.expandvars(str(path))))
    try:
        with open(resolved, 'r') as f:
            data = toml.load(f)
    except toml.TomlDecodeError as e:
        raise ValueError(f"Invalid TOML in {resolved}: {e}") from e

    config = ClientConfig.from_dict(data)
    logger.info(f"Loaded configuration from {resolved}")
    return config
