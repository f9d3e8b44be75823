"""
In-memory media cache
=====================

A media file is loaded once, before any session starts, then shared
read-only by every pacer. Each pacer keeps its own read cursor.
"""
import logging

from mediaclient.errors import CacheError

_logger = logging.getLogger(__name__)


class MediaCache:
    """
    Immutable snapshot of an elementary media file (raw PCMA or
    Annex-B H.264).

    Loading is single writer: call :meth:`load_into_cache` (or build from
    bytes) then :meth:`freeze` before handing the cache out to sessions.
    """

    def __init__(self, data: bytes = b'', name: str = ''):
        self._data = bytes(data)
        self.name = name
        self.frozen = False

    @classmethod
    def from_file(cls, path: str) -> 'MediaCache':
        cache = cls(name=path)
        cache.load_into_cache(path)
        return cache

    def load_into_cache(self, path: str):
        """
        Read a whole file into the cache.

        :raises CacheError: if the cache is frozen or the file cannot be read
        """
        if self.frozen:
            raise CacheError(f'cache {self.name or path} is frozen, sessions may be reading it')

        try:
            with open(path, 'rb') as f:
                data = f.read()
        except OSError as ex:
            raise CacheError(f'failed to load {path}: {ex}') from ex

        self._data = data
        self.name = path
        _logger.info('loaded %s bytes from %s', len(data), path)

    def freeze(self):
        """No more loading from now on; readers may start."""
        self.frozen = True

    @property
    def data(self) -> bytes:
        return self._data

    def __len__(self):
        return len(self._data)

    def __repr__(self):
        return f'<MediaCache {self.name!r} {len(self._data)} bytes{" frozen" if self.frozen else ""}>'
