"""
Media session
=============

One end to end session against the media server:

1. negotiation: ports are taken from the pool, the session is prepared,
   updated and started on the server, and the RTP transport is opened;
2. streaming: a keepalive task, an optional session info task, the
   pacer and the packet pump run until the configured run time is over;
3. draining: the pacer is asked to stop, queued packets get a grace
   period to leave, then the pump is cancelled;
4. closing: the server session is stopped, ports are given back and the
   active session counter is decremented.

A failure raises :class:`SessionError` telling which stage failed,
always after everything acquired so far has been released.
"""
import asyncio
import enum
import logging
from dataclasses import dataclass
from typing import Callable, List, Optional

from mediaclient.cache import MediaCache
from mediaclient.control import CodecInfo, CodecType, ControlPlane, PreparedSession, SystemCommand, SystemEvent
from mediaclient.errors import ControlPlaneError, PortExhausted, SessionError
from mediaclient.framing import AUDIO_FRAME_SIZE
from mediaclient.pacer import AUDIO_INTERVAL, LOOP_PAUSE, VIDEO_INTERVAL, VIDEO_WINDOW, AudioPacer, Pacer, VideoPacer
from mediaclient.port import NO_PORT, PortPool
from mediaclient.rtp.h264 import DEFAULT_MTU, NON_INTERLEAVED_MODE
from mediaclient.sdp import SDP
from mediaclient.sender import H264_PAYLOAD_TYPE, MAX_WRITE_FAILURES, PCMA_PAYLOAD_TYPE, RTPSender
from mediaclient.transport import DEFAULT_BACKEND, RTPBackend, backend_for_name

_logger = logging.getLogger(__name__)

RECORD_SINK = '[h264_file_sink]'


class SessionState(enum.Enum):
    IDLE = 'idle'
    NEGOTIATED = 'negotiated'
    STREAMING = 'streaming'
    DRAINING = 'draining'
    CLOSED = 'closed'


@dataclass
class SessionConfig:
    """Everything needed to run one session"""
    instance_id: str
    is_audio: bool = True
    graph_desc: str = ''
    run_time: float = 10
    loop: bool = False
    backend: str = DEFAULT_BACKEND
    report_info: bool = True
    record_video: bool = False

    local_ip: str = '127.0.0.1'
    peer_ip: str = '127.0.0.1'
    codec_param: str = ''
    audio_payload_type: int = PCMA_PAYLOAD_TYPE
    video_payload_type: int = H264_PAYLOAD_TYPE

    mtu: int = DEFAULT_MTU
    packetization_mode: int = NON_INTERLEAVED_MODE
    queue_size: int = 32
    max_write_failures: int = MAX_WRITE_FAILURES

    audio_frame_size: int = AUDIO_FRAME_SIZE
    audio_interval: float = AUDIO_INTERVAL
    video_window: int = VIDEO_WINDOW
    video_interval: float = VIDEO_INTERVAL

    keepalive_interval: float = 2
    report_interval: float = 5
    settle_time: float = 1
    grace_period: float = 1
    loop_pause: float = LOOP_PAUSE

    @property
    def codec(self) -> CodecInfo:
        if self.is_audio:
            return CodecInfo(self.audio_payload_type, CodecType.PCM_ALAW, self.codec_param)
        return CodecInfo(self.video_payload_type, CodecType.H264, self.codec_param)


class SessionCounter:
    """
    Count of sessions currently streaming.

    Owned by the supervisor; listeners get the new count on every change.
    Not thread safe: meant to be used from one event loop.
    """

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or _logger
        self.active = 0
        self.peak = 0
        self.total = 0
        self._listeners: List[Callable[[int], None]] = []

    def subscribe(self, callback: Callable[[int], None]):
        self._listeners.append(callback)

    def _notify(self):
        for callback in self._listeners:
            callback(self.active)

    def increment(self):
        self.active += 1
        self.total += 1
        self.peak = max(self.peak, self.active)
        self.logger.info('session started, active sessions: %s', self.active)
        self._notify()

    def decrement(self):
        self.active -= 1
        self.logger.info('session destroyed, active sessions: %s', self.active)
        self._notify()


async def _cancel(*tasks: Optional[asyncio.Task]) -> list:
    """Cancel tasks and wait for them, returning their results or errors"""
    tasks = [task for task in tasks if task is not None]
    for task in tasks:
        task.cancel()
    return await asyncio.gather(*tasks, return_exceptions=True)


class MediaSession:
    """
    Drives one session through its life cycle, see module doc.

    Usage:

    .. code-block::

        session = MediaSession(config, pool, control, cache, counter)
        await session.run()
    """

    def __init__(
            self,
            config: SessionConfig,
            pool: PortPool,
            control: ControlPlane,
            cache: MediaCache,
            counter: Optional[SessionCounter] = None,
            logger: logging.Logger = None,
    ):
        self.config = config
        self.pool = pool
        self.control = control
        self.cache = cache
        self.counter = counter or SessionCounter()
        self.logger = logger or _logger

        self.state = SessionState.IDLE
        self.peer_port = NO_PORT
        self.local_port = NO_PORT
        self.prepared: Optional[PreparedSession] = None
        self.backend: Optional[RTPBackend] = None
        self.pacer: Optional[Pacer] = None
        self.sender: Optional[RTPSender] = None

        # End of read token, checked by the pacer at every tick
        self.stop_event = asyncio.Event()
        self.queue: asyncio.Queue = asyncio.Queue(config.queue_size)

        self._connected = False
        self._started = False
        self._counted = False
        self._recording = False
        self._keepalive_task: Optional[asyncio.Task] = None
        self._report_task: Optional[asyncio.Task] = None
        self._pacer_task: Optional[asyncio.Task] = None
        self._pump_task: Optional[asyncio.Task] = None

    @property
    def instance_id(self) -> str:
        return self.config.instance_id

    @property
    def session_id(self) -> Optional[str]:
        return self.prepared.session_id if self.prepared else None

    def _set_state(self, state: SessionState):
        self.logger.info('session %s: %s -> %s', self.instance_id, self.state.value, state.value)
        self.state = state

    def handle_event(self, event: SystemEvent):
        """Events pushed by the server on the signaling channel"""
        self.logger.debug('session %s: received %s', self.instance_id, event)

    # --- Life cycle ---

    async def run(self):
        """
        Run the session to completion.

        :raises SessionError: with stage ``negotiation``, ``streaming``
            or ``teardown``
        """
        stage = 'negotiation'
        try:
            await self._negotiate()
            stage = 'streaming'
            await self._stream()
            stage = 'teardown'
        except Exception as ex:  # pylint: disable=broad-except
            self.logger.error('session %s failed during %s: %r', self.instance_id, stage, ex)
            raise SessionError(stage, self.instance_id, f'{stage} failed for {self.instance_id}: {ex}') from ex
        finally:
            teardown_error = await self._close()

        if teardown_error:
            raise SessionError(stage, self.instance_id, f'teardown failed for {self.instance_id}: {teardown_error}') \
                from teardown_error

    def _acquire_port(self) -> int:
        port = self.pool.acquire()
        if port == NO_PORT:
            raise PortExhausted(f'no port available for session {self.instance_id}')
        return port

    async def _negotiate(self):
        cfg = self.config
        codec = cfg.codec

        self.peer_port = self._acquire_port()
        self.local_port = self._acquire_port()

        await self.control.connect(self.instance_id, self.handle_event)
        self._connected = True
        await self.control.send_event(SystemEvent(SystemCommand.REGISTER, instance_id=self.instance_id))

        self.prepared = await self.control.prepare_session(
            cfg.peer_ip, self.peer_port, [codec], cfg.graph_desc, self.instance_id)
        await self.control.update_session(self.session_id, self.local_port)
        await self.control.start_session(self.session_id)
        self._started = True
        self.logger.info('session %s started on server as %s, remote %s:%s', self.instance_id,
                         self.session_id, self.prepared.local_ip, self.prepared.local_rtp_port)

        self.backend = backend_for_name(cfg.backend)(logger=self.logger)
        index = self.backend.create_outbound_stream((cfg.local_ip, self.local_port))
        self.backend.set_profile(index, codec.codec_type.value, codec.payload_number)
        self.backend.add_remote(self.prepared.local_ip, self.prepared.local_rtp_port)
        await self.backend.start()

        self._set_state(SessionState.NEGOTIATED)

    def _make_pacer(self) -> Pacer:
        cfg = self.config
        kwargs = dict(loop=cfg.loop, stop_event=self.stop_event, loop_pause=cfg.loop_pause, logger=self.logger)
        if cfg.is_audio:
            return AudioPacer(self.cache, self.queue, frame_size=cfg.audio_frame_size,
                              interval=cfg.audio_interval, **kwargs)
        return VideoPacer(self.cache, self.queue, window=cfg.video_window,
                          interval=cfg.video_interval, **kwargs)

    async def _stream(self):
        cfg = self.config
        loop = asyncio.get_running_loop()

        self._keepalive_task = asyncio.create_task(self._keepalive())
        await asyncio.sleep(cfg.settle_time)

        self.sender = RTPSender(
            self.backend, cfg.is_audio, cfg.codec.payload_number,
            mtu=cfg.mtu, mode=cfg.packetization_mode,
            max_write_failures=cfg.max_write_failures,
            samples_per_frame=cfg.audio_frame_size, logger=self.logger,
        )
        self._pump_task = asyncio.create_task(self.sender.run(self.queue))

        if cfg.report_info:
            self._report_task = asyncio.create_task(self._report_info())

        self.pacer = self._make_pacer()
        self._pacer_task = asyncio.create_task(self.pacer.run())

        self.counter.increment()
        self._counted = True
        self._set_state(SessionState.STREAMING)

        if cfg.record_video and not cfg.is_audio:
            await self.start_video_record()

        deadline = loop.time() + cfg.run_time
        await asyncio.wait({self._pump_task}, timeout=cfg.run_time)
        if self._pump_task.done():
            # Raises if the pump failed
            self._pump_task.result()
            # End of stream: the server session lives until the run time is over
            await asyncio.sleep(max(0.0, deadline - loop.time()))

        await self._drain()

    async def _drain(self):
        cfg = self.config
        self._set_state(SessionState.DRAINING)

        self.stop_event.set()
        await asyncio.wait({self._pacer_task}, timeout=cfg.grace_period)
        await _cancel(self._pacer_task)

        # Producer is gone: end the stream and let queued packets go
        if not self._pump_task.done():
            try:
                self.queue.put_nowait(None)
            except asyncio.QueueFull:
                pass
            await asyncio.wait({self._pump_task}, timeout=cfg.grace_period)

        for result in await _cancel(self._pump_task):
            if isinstance(result, Exception):
                self.logger.warning('session %s: pump ended with %r while draining', self.instance_id, result)

        if self._recording:
            await self.stop_video_record()

    async def _close(self) -> Optional[Exception]:
        """
        Release everything, whatever state the session is in.

        :return: error from the server stop call, if any
        """
        teardown_error = None
        self.stop_event.set()
        await _cancel(self._pacer_task, self._pump_task)
        if self.backend:
            self.backend.close()

        if self._started:
            try:
                await self.control.stop_session(self.session_id)
                self.logger.info('session %s stopped on server (%s)', self.instance_id, self.session_id)
            except Exception as ex:  # pylint: disable=broad-except
                self.logger.error('session %s: stop failed for %s: %r', self.instance_id, self.session_id, ex)
                teardown_error = ex
            self._started = False

        await _cancel(self._keepalive_task, self._report_task)

        if self._connected:
            try:
                await self.control.close()
            except Exception as ex:  # pylint: disable=broad-except
                self.logger.warning('session %s: error closing control plane: %r', self.instance_id, ex)
            self._connected = False

        self.pool.release(self.peer_port)
        self.pool.release(self.local_port)
        self.peer_port = self.local_port = NO_PORT

        if self._counted:
            self.counter.decrement()
            self._counted = False

        self._set_state(SessionState.CLOSED)
        return teardown_error

    # --- Signaling ---

    async def _keepalive(self):
        event = SystemEvent(SystemCommand.KEEPALIVE, instance_id=self.instance_id)
        while True:
            await asyncio.sleep(self.config.keepalive_interval)
            try:
                await self.control.send_event(event)
            except ControlPlaneError as ex:
                self.logger.warning('session %s: keepalive failed: %s', self.instance_id, ex)

    async def _report_info(self):
        event = SystemEvent(SystemCommand.SESSION_INFO, instance_id=self.instance_id, session_id=self.session_id)
        while True:
            await asyncio.sleep(self.config.report_interval)
            try:
                await self.control.send_event(event)
            except ControlPlaneError as ex:
                self.logger.warning('session %s: session info failed: %s', self.instance_id, ex)

    # --- Server graph actions ---

    async def update_media_graph(self, graph_desc: str):
        """Reconfigure the server side processing graph"""
        if not self.session_id:
            raise ControlPlaneError(f'session {self.instance_id} not prepared')
        await self.control.execute_action(self.session_id, 'exec', graph_desc)

    async def start_video_record(self):
        await self.update_media_graph(f"{RECORD_SINK} <-> 'play'")
        self._recording = True

    async def stop_video_record(self):
        self._recording = False
        await self.update_media_graph(f"{RECORD_SINK} <-> 'stop'")

    def describe(self) -> SDP:
        """
        SDP of the stream sent by this session, once negotiated.
        """
        if not self.prepared:
            raise ControlPlaneError(f'session {self.instance_id} not prepared')
        codec = self.config.codec
        return SDP.for_stream(
            'audio' if self.config.is_audio else 'video',
            self.prepared.local_ip,
            self.prepared.local_rtp_port,
            codec.payload_number,
            codec.codec_type.value,
            codec.codec_param,
        )
