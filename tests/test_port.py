"""
Testing the RTP port pool
"""
import logging
import threading

import pytest

from mediaclient.port import NO_PORT, PortPool


def drain(pool: PortPool) -> list:
    ports = []
    while True:
        port = pool.acquire()
        if port == NO_PORT:
            return ports
        ports.append(port)


@pytest.mark.parametrize('start, end, expected', [
    (10000, 10010, [10000, 10002, 10004, 10006, 10008]),
    (10001, 10011, [10002, 10004, 10006, 10008]),
    (10000, 10001, []),
    (7, 8, []),
    (20001, 20004, [20002]),
])
def test_init_gives_even_ports_in_range(start, end, expected):
    pool = PortPool()
    pool.init(start, end)
    assert pool.free_count == len(expected)
    assert sorted(drain(pool)) == expected


def test_exhausted_pool_returns_sentinel():
    pool = PortPool(30000, 30006)
    assert pool.free_count == 3

    ports = [pool.acquire() for _ in range(5)]
    assert all(port != NO_PORT for port in ports[:3])
    assert ports[3:] == [NO_PORT, NO_PORT]
    assert len(set(ports[:3])) == 3
    assert pool.free_count == 0


def test_release_makes_port_available_again():
    pool = PortPool(30000, 30002)
    port = pool.acquire()
    assert pool.acquire() == NO_PORT

    pool.release(port)
    assert port in pool
    assert pool.acquire() == port


def test_duplicate_release_is_ignored(caplog):
    pool = PortPool(30000, 30004)
    port = pool.acquire()
    pool.release(port)

    with caplog.at_level(logging.WARNING, logger='mediaclient.port'):
        pool.release(port)
        pool.release(port)

    assert pool.free_count == 2
    assert 'already in it' in caplog.text


def test_release_sentinel_is_noop():
    pool = PortPool(30000, 30004)
    pool.release(NO_PORT)
    assert NO_PORT not in pool
    assert len(pool) == 2


def test_concurrent_acquire_release_never_duplicates():
    pool = PortPool(40000, 40020)
    in_use = set()
    lock = threading.Lock()
    errors = []

    def worker():
        for _ in range(500):
            port = pool.acquire()
            if port == NO_PORT:
                continue
            with lock:
                if port in in_use:
                    errors.append(port)
                in_use.add(port)
            if port % 2 or not 40000 <= port < 40020:
                errors.append(port)
            with lock:
                in_use.discard(port)
            pool.release(port)

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert not errors
    assert pool.free_count == 10
