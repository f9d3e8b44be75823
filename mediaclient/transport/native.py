"""
RTP backend packing with the built-in RTP header class, sending
through a plain non-blocking UDP socket.
"""
import socket
from typing import Optional, Tuple

from mediaclient.rtp import RTP
from .base import OutboundStream, RTPBackend


class NativeRTPBackend(RTPBackend):
    """
    Native backend
    --------------

    No third party packing, one non blocking socket.
    """

    name = 'native'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.sock: Optional[socket.socket] = None
        self._packet: Optional[RTP] = None

    async def _open(self, local_addr: Tuple[str, int]):
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.setblocking(False)
            sock.bind(local_addr)
        except OSError:
            sock.close()
            raise
        self.sock = sock

    def _new_packet(self, stream: OutboundStream, timestamp: int):
        self._packet = RTP.build(pt=stream.payload_type, seq=stream.seq, ts=timestamp, ssrc=stream.ssrc)

    def set_payload(self, payload: bytes):
        self._check_packet()
        self._packet.data = payload

    def set_marker(self, marker: bool):
        self._check_packet()
        self._packet.m = marker

    def set_payload_type(self, payload_type: int):
        self._check_packet()
        self._packet.pt = payload_type

    def _pack(self) -> bytes:
        return bytes(self._packet)

    def _send(self, data: bytes, remote: Tuple[str, int]):
        self.sock.sendto(data, remote)

    def _close(self):
        self._packet = None
        if self.sock is not None:
            self.sock.close()
            self.sock = None
