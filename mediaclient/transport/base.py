"""
RTP transport backend
=====================

Common interface of the RTP session implementations. A session
owns outbound streams (one SSRC each), a set of remote peers, and
builds packets one at a time:

.. code-block::

    idx = backend.create_outbound_stream(('127.0.0.1', 20000))
    backend.set_profile(idx, 'PCMA', 8)
    backend.add_remote('127.0.0.1', 30000)
    await backend.start()

    backend.new_packet(timestamp)
    backend.set_payload_type(8)
    backend.set_payload(frame)
    backend.write()
"""
import ipaddress
import logging
import random
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from mediaclient.errors import TransportError

_logger = logging.getLogger(__name__)

#: Known profiles: codec name -> clock rate
CLOCK_RATES = {
    'PCMA': 8000,
    'H264': 90000,
}


class OutboundStream:
    """
    One outgoing RTP stream: SSRC, sequence numbering and profile.
    """

    def __init__(self, local_addr: Tuple[str, int], ssrc: Optional[int] = None):
        self.local_addr = local_addr
        self.ssrc = ssrc if ssrc is not None else random.getrandbits(32)
        self.seq = random.getrandbits(16)
        self.codec_name: Optional[str] = None
        self.payload_type = 0
        self.clock_rate = 0

    def next_seq(self) -> int:
        seq = self.seq
        self.seq = (self.seq + 1) & 0xFFFF
        return seq

    def __repr__(self):
        return f'<OutboundStream ssrc={self.ssrc:08x} {self.codec_name}/{self.payload_type}>'


class RTPBackend(ABC):
    """
    Base class for RTP session backends.

    The orchestration code only talks to this interface; concrete
    classes decide how packets are packed and how they reach the wire.
    """

    #: name used to select the backend
    name: str = ''

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or _logger
        self.streams: List[OutboundStream] = []
        self.remotes: List[Tuple[str, int]] = []
        self.running = False
        self.current: Optional[OutboundStream] = None
        self.packets_sent = 0
        self.octets_sent = 0

    @property
    def local_addr(self) -> Optional[Tuple[str, int]]:
        """Address packets are sent from (first stream)"""
        return self.streams[0].local_addr if self.streams else None

    def create_outbound_stream(self, local_addr: Tuple[str, int], ssrc: Optional[int] = None) -> int:
        """
        Register a new outgoing stream.

        :param local_addr: (ip, port) to send from
        :param ssrc: force SSRC, random otherwise
        :return: stream index
        """
        if self.streams and tuple(local_addr) != self.streams[0].local_addr:
            raise TransportError(f'all streams must share local address {self.streams[0].local_addr}')

        self.streams.append(OutboundStream(tuple(local_addr), ssrc))
        return len(self.streams) - 1

    def stream(self, index: int) -> OutboundStream:
        try:
            return self.streams[index]
        except IndexError:
            raise TransportError(f'no outbound stream #{index}') from None

    def set_profile(self, index: int, codec_name: str, payload_type: int):
        """
        Assign codec and payload type to a stream.
        """
        stream = self.stream(index)
        stream.codec_name = codec_name
        stream.payload_type = payload_type
        stream.clock_rate = CLOCK_RATES.get(codec_name.upper(), 0)
        self.logger.debug('stream %s profile: %s/%s', index, codec_name, payload_type)

    def add_remote(self, ip: str, port: int):
        """
        Add a peer receiving every packet written.

        :raises TransportError: on invalid address
        """
        try:
            ipaddress.IPv4Address(ip)
        except ValueError as ex:
            raise TransportError(f'invalid remote address {ip!r}: {ex}') from ex
        if port not in range(1, 65536):
            raise TransportError(f'invalid remote port {port}')

        self.remotes.append((ip, port))
        self.logger.info('added remote %s:%s', ip, port)

    async def start(self):
        """
        Open the transport. Needs an outbound stream and a remote.
        """
        if self.running:
            return
        if not self.streams:
            raise TransportError('no outbound stream created')
        if not self.remotes:
            raise TransportError('no remote registered')

        try:
            await self._open(self.local_addr)
        except OSError as ex:
            raise TransportError(f'cannot open transport on {self.local_addr}: {ex}') from ex

        self.running = True
        self.logger.info('%s transport started from %s to %s', self.name, self.local_addr, self.remotes)

    def new_packet(self, timestamp: int, index: int = 0):
        """
        Start a new packet on a stream, with the stream profile.
        """
        self.current = self.stream(index)
        self._new_packet(self.current, timestamp)

    def _check_packet(self):
        if self.current is None:
            raise TransportError('no packet in progress, call new_packet() first')

    def write(self) -> int:
        """
        Send the current packet to every remote.

        :return: size of the packet sent
        :raises TransportError: if not started or on socket error
        """
        if not self.running:
            raise TransportError('transport not started')
        self._check_packet()

        data = self._pack()
        for remote in self.remotes:
            try:
                self._send(data, remote)
            except OSError as ex:
                raise TransportError(f'failed sending to {remote}: {ex}') from ex

        # Consumed only once sent, so a failed packet keeps its number
        self.current.next_seq()
        self.packets_sent += 1
        self.octets_sent += len(data)
        return len(data)

    def close(self):
        """Close the transport. Safe to call more than once."""
        if self.running:
            self.logger.info('%s transport closed after %s packets (%s bytes)',
                             self.name, self.packets_sent, self.octets_sent)
        self.running = False
        self.current = None
        self._close()

    @abstractmethod
    async def _open(self, local_addr: Tuple[str, int]):
        """Open underlying socket"""

    @abstractmethod
    def _new_packet(self, stream: OutboundStream, timestamp: int):
        """Create packet for stream, with its next sequence number"""

    @abstractmethod
    def set_payload(self, payload: bytes):
        """Set payload of the current packet"""

    @abstractmethod
    def set_marker(self, marker: bool):
        """Set marker bit of the current packet"""

    @abstractmethod
    def set_payload_type(self, payload_type: int):
        """Override payload type of the current packet"""

    @abstractmethod
    def _pack(self) -> bytes:
        """Pack the current packet"""

    @abstractmethod
    def _send(self, data: bytes, remote: Tuple[str, int]):
        """Send packed data to a remote"""

    @abstractmethod
    def _close(self):
        """Release underlying socket"""
