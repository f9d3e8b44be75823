"""
RTP packet building
"""
from __future__ import annotations

from struct import Struct
from typing import Optional

_VERSION_MASK = 0xC000
_CC_MASK = 0x0F00
_M_MASK = 0x0080
_PT_MASK = 0x007F
_VERSION_SHIFT = 14
_CC_SHIFT = 8
_M_SHIFT = 7
_PT_SHIFT = 0

VERSION = 2
HEADER_SIZE = 12


class RTP:
    """
    Real-Time Transport Protocol packet (RFC 3550).

    Either wraps received bytes, or is built from scratch with
    :meth:`build` and filled in before being packed with ``bytes()``.
    """

    hdr_struct = Struct("!HHII")

    def __init__(self, data: bytes):
        """
        :param data: Full RTP packet bytes
        """
        self._data = memoryview(data)
        self._new_data: Optional[bytes] = None
        self._type, self.seq, self.ts, self.ssrc = self.hdr_struct.unpack(self._data[:HEADER_SIZE])

    @classmethod
    def build(cls, pt: int, seq: int, ts: int, ssrc: int, data: bytes = b"", m: bool = False) -> RTP:
        """
        Build an outgoing packet, no CSRC, no padding, no extension.
        """
        pkt = cls(cls.hdr_struct.pack(VERSION << _VERSION_SHIFT, seq & 0xFFFF, ts & 0xFFFFFFFF, ssrc))
        pkt.pt = pt
        pkt.m = m
        pkt.data = data
        return pkt

    @property
    def v(self) -> int:
        """
        :return: RTP version number
        """
        return (self._type & _VERSION_MASK) >> _VERSION_SHIFT

    @property
    def cc(self) -> int:
        """
        :return: Number of CSRC headers
        """
        return (self._type & _CC_MASK) >> _CC_SHIFT

    @property
    def m(self) -> bool:
        """
        For H.264, set on the last packet of an access unit.

        :return: True if marker bit is set
        """
        return bool((self._type & _M_MASK) >> _M_SHIFT)

    @m.setter
    def m(self, m: bool) -> None:
        self._type = (bool(m) << _M_SHIFT) | (self._type & ~_M_MASK)

    @property
    def pt(self) -> int:
        """
        :return: payload type
        """
        return (self._type & _PT_MASK) >> _PT_SHIFT

    @pt.setter
    def pt(self, pt: int) -> None:
        if pt not in range(128):
            raise ValueError(f"invalid payload type {pt}")
        self._type = (pt << _PT_SHIFT) | (self._type & ~_PT_MASK)

    @property
    def data(self) -> bytes:
        """
        Getter for payload data.
        """
        if self._new_data is not None:
            return self._new_data
        return self._data[HEADER_SIZE + self.cc * 4:]

    @data.setter
    def data(self, value: bytes) -> None:
        self._new_data = bytes(value)

    @property
    def csrc(self) -> bytes:
        return self._data[HEADER_SIZE:HEADER_SIZE + self.cc * 4]

    def __len__(self):
        return HEADER_SIZE + self.cc * 4 + len(self.data)

    def __bytes__(self):
        return b"".join([self.pack_hdr(), self.csrc, self.data])

    def __repr__(self):
        return f"<RTP pt={self.pt} seq={self.seq} ts={self.ts} m={int(self.m)} len={len(self)}>"

    def pack_hdr(self) -> bytes:
        """
        Pack RTP fixed header
        """
        return self.hdr_struct.pack(self._type, self.seq, self.ts, self.ssrc)
