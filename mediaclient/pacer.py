"""
Real-time pacing
================

A pacer releases media from a cache at a fixed cadence, as a live
source would, and pushes the framed units to a bounded queue consumed
by the packet pump.

When the cache is exhausted, the pacer either stops (and puts ``None``
on the queue to signal the end of stream) or, when looping, waits a
moment and starts over from the beginning.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

from mediaclient.cache import MediaCache
from mediaclient.framing import AUDIO_FRAME_SIZE, AudioFrame, AudioFramer, ChunkReader, H264Framer

_logger = logging.getLogger(__name__)

AUDIO_INTERVAL = 0.020
VIDEO_INTERVAL = 1 / 25
VIDEO_WINDOW = 4096
LOOP_PAUSE = 1.0


class Pacer(ABC):
    """
    Periodic driver reading a cache window per tick.

    The stop token is only looked at between ticks: a window being
    processed is never interrupted, so stopping takes at most one tick
    (or the loop pause).
    """

    def __init__(
            self,
            cache: MediaCache,
            queue: asyncio.Queue,
            reader: ChunkReader,
            interval: float,
            loop: bool = False,
            stop_event: Optional[asyncio.Event] = None,
            loop_pause: float = LOOP_PAUSE,
            logger: logging.Logger = None,
    ):
        self.cache = cache
        self.queue = queue
        self.reader = reader
        self.interval = interval
        self.loop = loop
        self.stop_event = stop_event or asyncio.Event()
        self.loop_pause = loop_pause
        self.logger = logger or _logger
        self.windows = 0
        self.loops = 0

    def stop(self):
        self.stop_event.set()

    @property
    def stopped(self) -> bool:
        return self.stop_event.is_set()

    async def _sleep(self, delay: float) -> bool:
        """
        Sleep until delay expires or stop is requested.

        :return: True if stop was requested
        """
        if delay > 0 and not self.stopped:
            try:
                await asyncio.wait_for(self.stop_event.wait(), delay)
            except asyncio.TimeoutError:
                pass
        return self.stopped

    def _next_window(self):
        return self.reader.next_chunk()

    @abstractmethod
    async def _emit(self, window):
        """Frame a window and queue the resulting units"""

    async def _end_of_stream(self):
        await self.queue.put(None)

    async def run(self):
        """
        Pace the cache until it is exhausted (no loop) or stop is requested.
        """
        if not len(self.cache):
            self.logger.warning('cache %r is empty, nothing to pace', self.cache)
            return

        clock = asyncio.get_running_loop()
        deadline = clock.time()

        while True:
            deadline += self.interval
            if await self._sleep(deadline - clock.time()):
                break

            window = self._next_window()
            if window is not None:
                self.windows += 1
                await self._emit(window)

            if not self.reader.exhausted:
                continue

            if not self.loop:
                self.logger.info('end of %r reached after %s windows', self.cache, self.windows)
                await self._end_of_stream()
                return

            self.loops += 1
            self.logger.debug('end of %r, looping (#%s) in %ss', self.cache, self.loops, self.loop_pause)
            if await self._sleep(self.loop_pause):
                break
            self.reader.rewind()
            deadline = clock.time()

        self.logger.info('pacing stopped after %s windows', self.windows)


class AudioPacer(Pacer):
    """Release one audio frame every 20ms"""

    def __init__(self, cache: MediaCache, queue: asyncio.Queue, frame_size: int = AUDIO_FRAME_SIZE,
                 interval: float = AUDIO_INTERVAL, **kwargs):
        super().__init__(cache, queue, AudioFramer(cache.data, frame_size), interval, **kwargs)

    def _next_window(self) -> Optional[AudioFrame]:
        return self.reader.next_frame()

    async def _emit(self, frame: AudioFrame):
        await self.queue.put(frame)


class VideoPacer(Pacer):
    """
    Feed a 4096 bytes window of H.264 to the framer every 40ms,
    queueing every NAL unit completed by it.
    """

    def __init__(self, cache: MediaCache, queue: asyncio.Queue, window: int = VIDEO_WINDOW,
                 interval: float = VIDEO_INTERVAL, framer: H264Framer = None, **kwargs):
        super().__init__(cache, queue, ChunkReader(cache.data, window), interval, **kwargs)
        # Kept across loops: the last unit of the file is completed by
        # the first start code of the next pass.
        self.framer = framer or H264Framer()

    async def _emit(self, chunk: bytes):
        for unit in self.framer.push(chunk):
            await self.queue.put(unit)

    async def _end_of_stream(self):
        for unit in self.framer.flush():
            await self.queue.put(unit)
        await super()._end_of_stream()
