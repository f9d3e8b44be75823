"""
Session fleet
=============

Run many sessions in parallel against a media server. Sessions share
the port pool and the (frozen) media caches, nothing else.
"""
import asyncio
import logging
from typing import Callable, Iterable, List, Optional

from mediaclient.cache import MediaCache
from mediaclient.control import ControlPlane
from mediaclient.errors import SessionError
from mediaclient.port import PortPool
from mediaclient.session import MediaSession, SessionConfig, SessionCounter

_logger = logging.getLogger(__name__)


class SessionFleet:
    """
    Supervisor of concurrent sessions.

    Each session gets its own control plane from `control_factory`.
    A failing session is reported in the results; with `abort_on_error`
    it also cancels every other session of the fleet.
    """

    def __init__(
            self,
            pool: PortPool,
            control_factory: Callable[[SessionConfig], ControlPlane],
            audio_cache: Optional[MediaCache] = None,
            video_cache: Optional[MediaCache] = None,
            counter: Optional[SessionCounter] = None,
            abort_on_error: bool = False,
            stagger: float = 0,
            logger: logging.Logger = None,
    ):
        self.pool = pool
        self.control_factory = control_factory
        self.audio_cache = audio_cache or MediaCache(name='audio')
        self.video_cache = video_cache or MediaCache(name='video')
        self.logger = logger or _logger
        self.counter = counter or SessionCounter(logger=self.logger)
        self.abort_on_error = abort_on_error
        self.stagger = stagger
        self.sessions: List[MediaSession] = []

    def create_session(self, config: SessionConfig) -> MediaSession:
        cache = self.audio_cache if config.is_audio else self.video_cache
        session = MediaSession(config, self.pool, self.control_factory(config), cache,
                               counter=self.counter, logger=self.logger)
        self.sessions.append(session)
        return session

    async def _run_one(self, config: SessionConfig, delay: float) -> Optional[SessionError]:
        if delay:
            await asyncio.sleep(delay)
        try:
            try:
                session = self.create_session(config)
            except Exception as ex:  # pylint: disable=broad-except
                raise SessionError('negotiation', config.instance_id,
                                   f'cannot create session {config.instance_id}: {ex}') from ex
            await session.run()
        except SessionError as ex:
            self.logger.error('session %s failed at %s stage: %s', ex.instance_id, ex.stage, ex)
            if self.abort_on_error:
                raise
            return ex
        return None

    @staticmethod
    async def _cancel(tasks: List[asyncio.Task]):
        pending = [task for task in tasks if not task.done()]
        for task in pending:
            task.cancel()
        await asyncio.gather(*pending, return_exceptions=True)

    async def run(self, configs: Iterable[SessionConfig]) -> List[Optional[SessionError]]:
        """
        Run all sessions to completion.

        Caches are frozen first: no reload may happen while sessions read them.

        :return: per session, None on success or the SessionError
        """
        self.audio_cache.freeze()
        self.video_cache.freeze()

        configs = list(configs)
        self.logger.info('starting %s sessions', len(configs))
        tasks = [
            asyncio.create_task(self._run_one(config, idx * self.stagger))
            for idx, config in enumerate(configs)
        ]

        try:
            if not self.abort_on_error:
                results = await asyncio.gather(*tasks)
            else:
                results = [None] * len(tasks)
                try:
                    await asyncio.gather(*tasks)
                except SessionError as ex:
                    self.logger.error('aborting fleet after failure of %s', ex.instance_id)
                    await self._cancel(tasks)
                for idx, task in enumerate(tasks):
                    if task.cancelled():
                        results[idx] = SessionError('aborted', configs[idx].instance_id)
                    elif task.exception() is not None:
                        results[idx] = task.exception()
        finally:
            await self._cancel(tasks)

        failed = sum(1 for result in results if result is not None)
        self.logger.info('fleet done: %s sessions, %s failed, peak %s active',
                         len(results), failed, self.counter.peak)
        return results
