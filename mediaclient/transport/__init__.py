"""
RTP transport backends.
"""
from typing import Type

from .base import RTPBackend, OutboundStream
from .dpkt_backend import DpktRTPBackend
from .native import NativeRTPBackend

BACKENDS = {
    backend.name: backend
    for backend in (DpktRTPBackend, NativeRTPBackend)
}

DEFAULT_BACKEND = DpktRTPBackend.name


def backend_for_name(name: str) -> Type[RTPBackend]:
    """
    Get the backend class registered under a name.

    :raises ValueError: unknown backend
    """
    try:
        return BACKENDS[name]
    except KeyError:
        raise ValueError(f'unknown RTP backend {name!r}, expected one of {sorted(BACKENDS)}') from None


__all__ = [
    'RTPBackend', 'OutboundStream', 'DpktRTPBackend', 'NativeRTPBackend',
    'BACKENDS', 'DEFAULT_BACKEND', 'backend_for_name',
]
