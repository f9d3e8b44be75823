"""
Packet pump
===========

Drains the framed units produced by a pacer and sends them through an
RTP backend, one ``write()`` per RTP packet.
"""
import asyncio
import logging
from typing import Optional

from mediaclient.errors import TransportError
from mediaclient.framing import AUDIO_FRAME_SIZE, AudioFrame, FramedUnit, NalUnit
from mediaclient.rtp.h264 import DEFAULT_MTU, NON_INTERLEAVED_MODE, packetize
from mediaclient.transport.base import RTPBackend

_logger = logging.getLogger(__name__)

PCMA_PAYLOAD_TYPE = 8
H264_PAYLOAD_TYPE = 123
MAX_WRITE_FAILURES = 10


class RTPSender:
    """
    Send audio frames or NAL units over a started backend.

    Audio: payload type 8, timestamp starting at 0 and moving 160 per
    frame. Video: each NAL unit is packetized at its own timestamp.

    A failed write drops the packet; too many failures in a row
    abort the pump with a TransportError.
    """

    def __init__(
            self,
            backend: RTPBackend,
            is_audio: bool,
            payload_type: Optional[int] = None,
            mtu: int = DEFAULT_MTU,
            mode: int = NON_INTERLEAVED_MODE,
            max_write_failures: int = MAX_WRITE_FAILURES,
            samples_per_frame: int = AUDIO_FRAME_SIZE,
            logger: logging.Logger = None,
    ):
        self.backend = backend
        self.is_audio = is_audio
        if payload_type is None:
            payload_type = PCMA_PAYLOAD_TYPE if is_audio else H264_PAYLOAD_TYPE
        self.payload_type = payload_type
        self.mtu = mtu
        self.mode = mode
        self.max_write_failures = max_write_failures
        self.samples_per_frame = samples_per_frame
        self.logger = logger or _logger

        self.audio_ts = 0
        self.units = 0
        self.failures = 0
        self.total_failures = 0

    def _write(self, payload: bytes, timestamp: int, marker: bool = False):
        self.backend.new_packet(timestamp)
        self.backend.set_marker(marker)
        self.backend.set_payload_type(self.payload_type)
        self.backend.set_payload(payload)
        try:
            self.backend.write()
        except TransportError as ex:
            self.failures += 1
            self.total_failures += 1
            self.logger.warning('write failed (%s in a row): %s', self.failures, ex)
            if self.failures >= self.max_write_failures:
                raise TransportError(f'{self.failures} consecutive write failures') from ex
        else:
            self.failures = 0

    def send_audio(self, frame: AudioFrame):
        self._write(frame.payload, self.audio_ts)
        self.audio_ts = (self.audio_ts + self.samples_per_frame) & 0xFFFFFFFF

    def send_nal(self, unit: NalUnit):
        for pkt in packetize(unit.payload, unit.timestamp, self.payload_type, self.mtu, self.mode):
            self._write(pkt.payload, pkt.timestamp, pkt.marker)

    def send(self, unit: FramedUnit):
        self.units += 1
        if isinstance(unit, NalUnit):
            self.send_nal(unit)
        else:
            self.send_audio(unit)

    async def run(self, queue: asyncio.Queue):
        """
        Pump the queue until end of stream (``None``) or cancellation.

        The backend is closed on the way out, whatever the reason.
        """
        try:
            while True:
                unit = await queue.get()
                if unit is None:
                    self.logger.info('end of stream after %s units', self.units)
                    return
                self.send(unit)
        finally:
            self.backend.close()
