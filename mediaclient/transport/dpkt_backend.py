"""
RTP backend packing with dpkt, sending through an asyncio
datagram endpoint.
"""
import asyncio
from typing import Optional, Tuple

from dpkt.rtp import RTP

from mediaclient.errors import TransportError
from .base import OutboundStream, RTPBackend


class _SenderProtocol(asyncio.DatagramProtocol):
    """Keeps track of asynchronous socket errors"""

    def __init__(self):
        self.error: Optional[Exception] = None

    def error_received(self, exc):
        self.error = exc

    def datagram_received(self, data, addr):
        """Incoming traffic (RTCP from peer) is ignored"""


class DpktRTPBackend(RTPBackend):
    """
    dpkt backend
    ------------

    Packets are :class:`dpkt.rtp.RTP` objects.
    """

    name = 'dpkt'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._transport: Optional[asyncio.DatagramTransport] = None
        self._protocol: Optional[_SenderProtocol] = None
        self._packet: Optional[RTP] = None

    async def _open(self, local_addr: Tuple[str, int]):
        loop = asyncio.get_running_loop()
        self._transport, self._protocol = await loop.create_datagram_endpoint(
            _SenderProtocol, local_addr=local_addr)

    def _new_packet(self, stream: OutboundStream, timestamp: int):
        self._packet = RTP(seq=stream.seq, ts=timestamp & 0xFFFFFFFF, ssrc=stream.ssrc)
        self._packet.pt = stream.payload_type

    def set_payload(self, payload: bytes):
        self._check_packet()
        self._packet.data = bytes(payload)

    def set_marker(self, marker: bool):
        self._check_packet()
        self._packet.m = int(bool(marker))

    def set_payload_type(self, payload_type: int):
        self._check_packet()
        self._packet.pt = payload_type

    def _pack(self) -> bytes:
        return bytes(self._packet)

    def _send(self, data: bytes, remote: Tuple[str, int]):
        if self._transport is None or self._transport.is_closing():
            raise TransportError('datagram endpoint closed')
        error, self._protocol.error = self._protocol.error, None
        if error:
            raise error
        self._transport.sendto(data, remote)

    def _close(self):
        self._packet = None
        if self._transport is not None:
            self._transport.close()
            self._transport = None
