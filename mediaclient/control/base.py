"""
Control plane
=============

Contract of the remote media server API. The client prepares a
session, tells the server where it sends from, starts it, and keeps
a signaling channel alive while media flows.
"""
from __future__ import annotations

import enum
import random
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, List, Optional, Union


class CodecType(enum.Enum):
    PCM_ALAW = 'PCMA'
    H264 = 'H264'


class SystemCommand(enum.Enum):
    REGISTER = 'REGISTER'
    KEEPALIVE = 'KEEPALIVE'
    SESSION_INFO = 'SESSION_INFO'


@dataclass(frozen=True)
class CodecInfo:
    payload_number: int
    codec_type: CodecType
    codec_param: str = ''


@dataclass(frozen=True)
class PreparedSession:
    """Server answer to a session preparation: where to send media"""
    session_id: str
    local_ip: str
    local_rtp_port: int


@dataclass(frozen=True)
class SystemEvent:
    """Message on the signaling channel"""
    cmd: SystemCommand
    instance_id: str = ''
    session_id: str = ''


EventHandler = Callable[[SystemEvent], Union[None, Awaitable[None]]]


def generate_session_id(length: int = 10) -> str:
    """
    Generate a unique session identifier
    """
    return "".join(
        [random.choice(string.ascii_lowercase + string.digits) for _ in range(length)]
    )


class ControlPlane(ABC):
    """
    Media server control API.

    Every call raises :class:`mediaclient.errors.ControlPlaneError`
    on failure.
    """

    @abstractmethod
    async def connect(self, instance_id: str, on_event: Optional[EventHandler] = None):
        """
        Open the signaling channel for `instance_id`; registration is
        sent by the caller as a REGISTER event.

        :param on_event: called for every event pushed by the server
        """

    @abstractmethod
    async def prepare_session(
            self,
            peer_ip: str,
            peer_port: int,
            codecs: List[CodecInfo],
            graph_desc: str,
            instance_id: str,
    ) -> PreparedSession:
        """Create a session on the server"""

    @abstractmethod
    async def update_session(self, session_id: str, peer_port: int):
        """Update the port the peer sends from"""

    @abstractmethod
    async def start_session(self, session_id: str):
        """Start media processing"""

    @abstractmethod
    async def stop_session(self, session_id: str):
        """Stop and destroy the session"""

    @abstractmethod
    async def execute_action(self, session_id: str, cmd: str, cmd_arg: str):
        """Run a command on the session processing graph"""

    @abstractmethod
    async def send_event(self, event: SystemEvent):
        """Push an event on the signaling channel"""

    @abstractmethod
    async def close(self):
        """Close the signaling channel and connection"""

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
