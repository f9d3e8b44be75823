"""
RTP port pool
=============

RTP uses even ports (the odd one above is left for RTCP).
The pool hands out even ports from a configured range.
"""
import logging
import threading
from typing import Set

_logger = logging.getLogger(__name__)

#: Returned by :meth:`PortPool.acquire` when the pool is empty.
#: Port 0 is never used by applications.
NO_PORT = 0


class PortPool:
    """
    Thread safe allocator of even transport ports.

    A single lock protects every operation: ports are taken and given
    back once per session, far from packet rate.
    """

    def __init__(self, start: int = 0, end: int = 0):
        self._lock = threading.Lock()
        self._free: Set[int] = set()
        self.start = 0
        self.end = 0
        if end > start:
            self.init(start, end)

    def init(self, start: int, end: int):
        """
        Fill the pool with every even port in ``[start, end)``.

        :param start: first port, rounded up to even
        :param end: upper bound, rounded down to even
        """
        if start & 0x01:
            start += 1
        if end & 0x01:
            end -= 1

        with self._lock:
            self._free.update(range(start, end, 2))
            self.start = start
            self.end = end

        _logger.info('port pool ready: [%s, %s), %s ports', start, end, len(self._free))

    def acquire(self) -> int:
        """
        Take an arbitrary free port.

        :return: the port, or NO_PORT if the pool is exhausted
        """
        with self._lock:
            if not self._free:
                _logger.warning('port pool [%s, %s) exhausted', self.start, self.end)
                return NO_PORT
            return self._free.pop()

    def release(self, port: int):
        """
        Give a port back. Releasing a port already free is ignored.
        """
        if port == NO_PORT:
            return

        with self._lock:
            if port in self._free:
                _logger.warning('put port %s to pool but it is already in it', port)
                return
            self._free.add(port)

    @property
    def free_count(self) -> int:
        with self._lock:
            return len(self._free)

    def __len__(self):
        return self.free_count

    def __contains__(self, port: int) -> bool:
        with self._lock:
            return port in self._free
