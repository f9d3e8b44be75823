"""
Media framing
=============

Cut raw elementary streams into units ready to be sent:

- H.264 Annex-B byte streams are split on start codes into NAL units,
- raw audio (PCMA) is sliced into fixed size frames.
"""
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple, Union

_logger = logging.getLogger(__name__)

START_CODE_4 = b'\x00\x00\x00\x01'
START_CODE_3 = b'\x00\x00\x01'

#: Synthetic clock step per NAL unit: 90kHz / 25fps
TICKS_PER_UNIT = 3600

#: One 20ms PCMA packet at 8kHz
AUDIO_FRAME_SIZE = 160

#: Bytes that may hold the start of a start code split between chunks
KEEP_BYTES = len(START_CODE_4) - 1


@dataclass(frozen=True)
class NalUnit:
    """H.264 NAL unit, start code stripped"""
    payload: bytes
    timestamp: int


@dataclass(frozen=True)
class AudioFrame:
    """Fixed size slice of raw audio"""
    payload: bytes


FramedUnit = Union[NalUnit, AudioFrame]


def find_start_code(buf, pos: int = 0) -> Tuple[int, int]:
    """
    Look for the earliest start code, 4 or 3 bytes long.

    :param buf: bytes-like buffer to search
    :param pos: where to start searching
    :return: (index, start code length), or (-1, 0) if none found
    """
    idx4 = buf.find(START_CODE_4, pos)
    idx3 = buf.find(START_CODE_3, pos)

    if idx4 != -1 and (idx3 == -1 or idx4 < idx3):
        return idx4, len(START_CODE_4)
    if idx3 != -1:
        return idx3, len(START_CODE_3)
    return -1, 0


class H264Framer:
    """
    Incremental Annex-B parser.

    Data is fed in arbitrary chunks; a NAL unit is only emitted once the
    next start code has been seen, so partial units are never produced.
    Bytes found before the first start code are a unit of their own;
    a stream without any start code is passed on as it comes, minus
    the few bytes that could start one.
    Each unit gets a timestamp from a synthetic clock running at
    TICKS_PER_UNIT per unit.
    """

    def __init__(self, ticks_per_unit: int = TICKS_PER_UNIT):
        self.ticks_per_unit = ticks_per_unit
        self.clock = 0
        self._buffer = bytearray()

    @property
    def pending(self) -> int:
        """Number of bytes waiting for the next start code"""
        return len(self._buffer)

    def feed(self, data: bytes):
        self._buffer.extend(data)

    def push(self, data: bytes) -> List[NalUnit]:
        """Feed a chunk and return every unit it completes"""
        self.feed(data)
        return self.extract_units()

    def _make_unit(self, payload: bytes) -> NalUnit:
        self.clock += self.ticks_per_unit
        return NalUnit(payload=payload, timestamp=self.clock)

    def extract_units(self) -> List[NalUnit]:
        """
        Extract all complete units from the buffer.

        The consumed bytes are dropped; the remainder, starting at the
        last start code seen, stays buffered for the next chunk.
        """
        buf = self._buffer
        units = []
        pos = 0

        while True:
            start, length = find_start_code(buf, pos)
            if start == -1:
                # No start code at all: keep only what may be the
                # beginning of one
                if len(buf) > KEEP_BYTES:
                    pos = len(buf) - KEEP_BYTES
                    units.append(self._make_unit(bytes(buf[:pos])))
                break

            if start > pos:
                # Leading bytes of the stream, not preceded by any start code
                units.append(self._make_unit(bytes(buf[pos:start])))

            payload_start = start + length
            end, _ = find_start_code(buf, payload_start)
            if end == -1:
                # Unit not finished yet, keep its start code
                pos = start
                break

            if end > payload_start:
                units.append(self._make_unit(bytes(buf[payload_start:end])))
            pos = end

        if pos:
            del buf[:pos]

        return units

    def flush(self) -> List[NalUnit]:
        """
        End of stream: emit the buffered tail as the last unit.

        Only meant for when no more data will ever come.
        """
        units = self.extract_units()

        start, length = find_start_code(self._buffer)
        tail = self._buffer[start + length:] if start != -1 else self._buffer
        if tail:
            units.append(self._make_unit(bytes(tail)))

        self._buffer.clear()
        return units

    def reset(self):
        self._buffer.clear()
        self.clock = 0


class ChunkReader:
    """
    Read a shared buffer in contiguous windows of `size` bytes,
    the last one possibly shorter.
    """

    def __init__(self, data: bytes, size: int):
        if size <= 0:
            raise ValueError(f'invalid window size {size}')
        self.data = data
        self.size = size
        self.cursor = 0

    @property
    def exhausted(self) -> bool:
        return self.cursor >= len(self.data)

    def next_chunk(self) -> Optional[bytes]:
        """
        :return: next window, or None when the end has been reached
        """
        if self.exhausted:
            return None
        chunk = self.data[self.cursor:self.cursor + self.size]
        self.cursor += len(chunk)
        return chunk

    def rewind(self):
        self.cursor = 0


class AudioFramer(ChunkReader):
    """
    Slice raw audio in AUDIO_FRAME_SIZE frames.

    A 500 bytes buffer gives frames [0:160), [160:320), [320:480)
    and a 20 bytes tail [480:500).
    """

    def __init__(self, data: bytes, frame_size: int = AUDIO_FRAME_SIZE):
        super().__init__(data, frame_size)

    def next_frame(self) -> Optional[AudioFrame]:
        chunk = self.next_chunk()
        if chunk is None:
            return None
        return AudioFrame(chunk)

    def __iter__(self) -> Iterator[AudioFrame]:
        while True:
            frame = self.next_frame()
            if frame is None:
                return
            yield frame
