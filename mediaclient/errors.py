"""
Errors raised by the media client
"""
from typing import Optional


class MediaClientError(Exception):
    """Base error for media client issues"""


class PortExhausted(MediaClientError):
    """No free port left in the pool"""


class CacheError(MediaClientError):
    """Media cache could not be loaded"""


class ControlPlaneError(MediaClientError):
    """A control plane call failed"""


class TransportError(MediaClientError):
    """RTP transport setup or emission failed"""


class SessionError(MediaClientError):
    """
    A session failed. `stage` tells where:
    ``negotiation`` (before any media was sent), ``streaming``
    or ``teardown``.
    """

    def __init__(self, stage: str, instance_id: str, msg: Optional[str] = None):
        super().__init__(msg or f'session {instance_id} failed during {stage}')
        self.stage = stage
        self.instance_id = instance_id
