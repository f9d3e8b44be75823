"""
H.264 RTP payload format (RFC 6184)
===================================

Turn a NAL unit into one or more RTP payloads.

5.3.  NAL Unit Header Usage

      +---------------+
      |0|1|2|3|4|5|6|7|
      +-+-+-+-+-+-+-+-+
      |F|NRI|  Type   |
      +---------------+

Two packetization modes are supported:

- 0, single NAL unit mode: one NAL unit per packet, whatever its size,
- 1, non-interleaved mode: NAL units larger than the MTU are split in
  FU-A fragmentation units.
"""
import logging
from typing import List, NamedTuple

_logger = logging.getLogger(__name__)

DEFAULT_MTU = 1200

SINGLE_NAL_MODE = 0
NON_INTERLEAVED_MODE = 1

FU_A = 28

F_NRI_MASK = 0xE0
NAL_TYPE_MASK = 0x1F
FU_START_BIT = 0x80
FU_END_BIT = 0x40


class RTPPayload(NamedTuple):
    """One RTP payload ready to be written"""
    payload: bytes
    payload_type: int
    timestamp: int
    marker: bool


def fragment(nal: bytes, mtu: int = DEFAULT_MTU) -> List[bytes]:
    """
    Split a NAL unit in FU-A fragments, each at most `mtu` bytes long.

    The NAL header is not sent as is: its F and NRI bits go to the FU
    indicator, its type to the FU header of every fragment.
    """
    if mtu <= 2:
        raise ValueError(f'MTU {mtu} too small for FU-A')

    nal_header = nal[0]
    fu_indicator = (nal_header & F_NRI_MASK) | FU_A
    nal_type = nal_header & NAL_TYPE_MASK

    fragments = []
    offset = 1
    size = mtu - 2
    while offset < len(nal):
        chunk = nal[offset:offset + size]
        fu_header = nal_type
        if offset == 1:
            fu_header |= FU_START_BIT
        if offset + len(chunk) >= len(nal):
            fu_header |= FU_END_BIT
        fragments.append(bytes([fu_indicator, fu_header]) + chunk)
        offset += len(chunk)

    return fragments


def packetize(
        nal: bytes,
        timestamp: int,
        payload_type: int,
        mtu: int = DEFAULT_MTU,
        mode: int = NON_INTERLEAVED_MODE,
) -> List[RTPPayload]:
    """
    Build the RTP payloads carrying a NAL unit.

    Every payload shares the unit timestamp; only the last one has
    the marker bit set.

    :param nal: NAL unit, without start code
    :param timestamp: RTP timestamp of the unit
    :param payload_type: dynamic payload type negotiated for H264
    :param mtu: largest payload size
    :param mode: packetization mode (0 or 1)
    :return: list of payloads, empty for an empty unit
    """
    if not nal:
        return []

    if mode not in (SINGLE_NAL_MODE, NON_INTERLEAVED_MODE):
        raise ValueError(f'unsupported packetization mode {mode}')

    if len(nal) <= mtu or mode == SINGLE_NAL_MODE:
        if len(nal) > mtu:
            _logger.warning('NAL unit of %s bytes exceeds MTU %s in single NAL mode', len(nal), mtu)
        return [RTPPayload(bytes(nal), payload_type, timestamp, True)]

    fragments = fragment(nal, mtu)
    last = len(fragments) - 1
    return [
        RTPPayload(frag, payload_type, timestamp, idx == last)
        for idx, frag in enumerate(fragments)
    ]
