"""
Media server control plane.
"""
from .base import (
    CodecInfo, CodecType, ControlPlane, EventHandler, PreparedSession,
    SystemCommand, SystemEvent, generate_session_id,
)
from .direct import DirectControlPlane

__all__ = [
    'CodecInfo', 'CodecType', 'ControlPlane', 'DirectControlPlane', 'EventHandler',
    'PreparedSession', 'SystemCommand', 'SystemEvent', 'generate_session_id',
]
