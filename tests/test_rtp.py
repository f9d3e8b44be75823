"""
Testing RTP packet building and H.264 packetization
"""
import dpkt
import pytest

from mediaclient.rtp import RTP
from mediaclient.rtp.h264 import FU_A, RTPPayload, fragment, packetize


def test_build_and_parse_back():
    pkt = RTP.build(pt=8, seq=65535, ts=123456, ssrc=0xDEADBEEF, data=b'\xd5' * 160, m=True)
    assert len(pkt) == 172

    raw = bytes(pkt)
    parsed = dpkt.rtp.RTP(raw)
    assert parsed.version == 2
    assert parsed.pt == 8
    assert parsed.m == 1
    assert parsed.seq == 65535
    assert parsed.ts == 123456
    assert parsed.ssrc == 0xDEADBEEF
    assert parsed.data == b'\xd5' * 160

    again = RTP(raw)
    assert (again.v, again.pt, again.m, again.seq, again.ts, again.ssrc) == (2, 8, True, 65535, 123456, 0xDEADBEEF)
    assert bytes(again.data) == b'\xd5' * 160


def test_fields_can_be_changed():
    pkt = RTP.build(pt=123, seq=1, ts=2, ssrc=3)
    pkt.m = True
    pkt.pt = 96
    pkt.data = b'\x65\x88'

    parsed = dpkt.rtp.RTP(bytes(pkt))
    assert (parsed.m, parsed.pt, parsed.data) == (1, 96, b'\x65\x88')

    pkt.m = False
    assert not pkt.m
    assert pkt.pt == 96


def test_invalid_payload_type():
    pkt = RTP.build(pt=8, seq=0, ts=0, ssrc=0)
    with pytest.raises(ValueError):
        pkt.pt = 128


def test_small_unit_single_packet():
    nal = b'\x67\x42\x00\x1f'
    assert packetize(nal, 3600, 123) == [RTPPayload(nal, 123, 3600, True)]


def test_empty_unit():
    assert packetize(b'', 3600, 123) == []


def test_large_unit_fragmented():
    nal = bytes([0x65]) + bytes(range(1, 256)) * 12
    payloads = packetize(nal, 7200, 123, mtu=1200)

    assert len(payloads) == 3
    assert all(len(p.payload) <= 1200 for p in payloads)
    assert all(p.timestamp == 7200 and p.payload_type == 123 for p in payloads)
    assert [p.marker for p in payloads] == [False, False, True]

    indicators = {p.payload[0] for p in payloads}
    assert indicators == {(0x65 & 0xE0) | FU_A}

    headers = [p.payload[1] for p in payloads]
    assert headers[0] & 0x80 and not headers[0] & 0x40
    assert not headers[1] & 0xC0
    assert headers[2] & 0x40 and not headers[2] & 0x80
    assert all(h & 0x1F == 0x05 for h in headers)

    # Reassemble
    first = payloads[0].payload
    rebuilt = bytes([(first[0] & 0xE0) | (first[1] & 0x1F)]) + b''.join(p.payload[2:] for p in payloads)
    assert rebuilt == nal


def test_unit_at_mtu_is_not_fragmented():
    nal = b'\x41' * 1200
    assert len(packetize(nal, 0, 123, mtu=1200)) == 1
    assert len(packetize(nal + b'\x01', 0, 123, mtu=1200)) == 2


def test_single_nal_mode_never_fragments():
    nal = b'\x65' + b'\x01' * 5000
    payloads = packetize(nal, 0, 123, mtu=1200, mode=0)
    assert payloads == [RTPPayload(nal, 123, 0, True)]


def test_invalid_mode():
    with pytest.raises(ValueError):
        packetize(b'\x65\x01', 0, 123, mode=2)


def test_fragment_sizes():
    frags = fragment(b'\x7c' + b'\x01' * 10, mtu=6)
    assert [len(f) for f in frags] == [6, 6, 4]
    with pytest.raises(ValueError):
        fragment(b'\x65\x01', mtu=2)
