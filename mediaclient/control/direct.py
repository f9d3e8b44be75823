"""
Direct mode: no media server, RTP goes straight to a known peer.
"""
import logging
from typing import List, Optional

from .base import CodecInfo, ControlPlane, EventHandler, PreparedSession, SystemEvent, generate_session_id

_logger = logging.getLogger(__name__)


class DirectControlPlane(ControlPlane):
    """
    Control plane answering locally.

    Session preparation always points to `remote_ip`:`remote_port`,
    every other call is only logged. Useful to blast traffic at any RTP
    receiver (ffplay, gstreamer, a media server already set up...).
    """

    def __init__(self, remote_ip: str, remote_port: int, logger: logging.Logger = None):
        self.remote_ip = remote_ip
        self.remote_port = remote_port
        self.logger = logger or _logger
        self.instance_id: Optional[str] = None

    async def connect(self, instance_id: str, on_event: Optional[EventHandler] = None):
        self.instance_id = instance_id

    async def prepare_session(self, peer_ip: str, peer_port: int, codecs: List[CodecInfo],
                              graph_desc: str, instance_id: str) -> PreparedSession:
        session = PreparedSession(generate_session_id(), self.remote_ip, self.remote_port)
        self.logger.info('direct session %s for %s: sending to %s:%s',
                         session.session_id, instance_id, self.remote_ip, self.remote_port)
        return session

    async def update_session(self, session_id: str, peer_port: int):
        self.logger.debug('session %s: peer port %s', session_id, peer_port)

    async def start_session(self, session_id: str):
        self.logger.debug('session %s: start', session_id)

    async def stop_session(self, session_id: str):
        self.logger.debug('session %s: stop', session_id)

    async def execute_action(self, session_id: str, cmd: str, cmd_arg: str):
        self.logger.debug('session %s: ignoring action %s %r', session_id, cmd, cmd_arg)

    async def send_event(self, event: SystemEvent):
        self.logger.debug('event %s', event)

    async def close(self):
        self.instance_id = None
