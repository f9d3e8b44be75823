"""
Synthetic RTP traffic generator driving a media server.
"""
from .__version__ import __version__
from .cache import MediaCache
from .errors import (
    CacheError, ControlPlaneError, MediaClientError, PortExhausted, SessionError, TransportError,
)
from .fleet import SessionFleet
from .port import NO_PORT, PortPool
from .session import MediaSession, SessionConfig, SessionCounter, SessionState

__all__ = [
    '__version__', 'MediaCache', 'CacheError', 'ControlPlaneError', 'MediaClientError',
    'PortExhausted', 'SessionError', 'TransportError', 'SessionFleet', 'NO_PORT', 'PortPool',
    'MediaSession', 'SessionConfig', 'SessionCounter', 'SessionState',
]
