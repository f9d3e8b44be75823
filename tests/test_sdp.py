import pytest

from mediaclient.sdp import SDP


def test_sdp_simple():

    sdp = SDP(
        """v=0\r
o=- 0 0 IN IP4 10.0.0.5\r
s=media server\r
c=IN IP4 10.0.0.5\r
t=0 0\r
m=video 30000 RTP/AVP             123\r
a=rtpmap:123 H264/90000\r
a=fmtp:123  packetization-mode=1 ; profile-level-id=42e01f ; sprop-parameter-sets=Z0IAKeKQFoJNgScFAQXh4kRU,aM48gA==  \r
a=recvonly\r
"""
    )

    assert sdp.content["version"] == 0
    assert len(sdp.content["media"]) == 1
    med = sdp.content["media"][0]

    assert med == sdp.get_media()
    assert sdp.media_clock_rate() == 90000
    assert sdp.media_payload_type() == 123
    assert med["protocol"] == "RTP/AVP"
    assert med["port"] == 30000

    # fmtp
    assert len(med["fmtp"]) == 1
    assert med["fmtp"][0]["payload"] == 123
    assert (
        med["fmtp"][0]["options"]["sprop-parameter-sets"]
        == "Z0IAKeKQFoJNgScFAQXh4kRU,aM48gA=="
    )
    assert med["fmtp"][0]["options"]["profile-level-id"] == "42e01f"
    assert med["fmtp"][0]["options"]["packetization-mode"] == "1"


def test_sdp_errors():
    """
    Add specially crafter errors which we want the parser to be robust about:
        - a trailing `;` at the end of `fmtp`
        - an empty line at the end and garbage
    """

    sdp = SDP(
        """v=0\r
o=- 0 0 IN IP4 0.0.0.0\r
s=\r
c=IN IP4 0.0.0.0\r
t=0 0\r
m=video 0 RTP/AVP             96\r
a=rtpmap:96 H264/90000\r
a=fmtp:96  packetization-mode=0 ; profile-level-id=420029 ; \r
hello=world\r
\r
"""
    )

    med = sdp.get_media()
    assert med["fmtp"][0]["options"] == {"packetization-mode": "0", "profile-level-id": "420029"}
    assert sdp.media_payload_type() == 96


def test_multiple_media():
    sdp = SDP(
        """v=0
o=- 2890844256 2890842807 IN IP4 204.34.34.32
s=two streams
t=0 0
c=IN IP4 0.0.0.0
m=video 8002 RTP/AVP 123
a=rtpmap:123 H264/90000
a=fmtp:123 foo=bar;toto=42
m=audio 8004 RTP/AVP 8
a=rtpmap:8 PCMA/8000
"""
    )
    assert sdp.get_media(media_type="video", media_idx=0)["payloads"] == 123
    assert sdp.get_media(media_type="audio", media_idx=0)["payloads"] == 8
    assert sdp.get_media(media_type="audio", media_idx=1) is None
    assert sdp.get_media(media_type="video", media_idx=10) is None
    assert sdp.media_clock_rate("audio") == 8000

    packed = sdp.pack()
    assert "a=rtpmap:123 H264/90000" in packed
    assert "a=fmtp:123 foo=bar;toto=42" in packed

    sdp2 = SDP("")
    assert sdp2.media_clock_rate() is None
    assert sdp2.media_payload_type() is None

    sdp2.set_origin(username="toto")
    assert sdp2.content["origin"]["username"] == "toto"
    assert "o=toto" in sdp2.pack()


def test_audio_stream():
    sdp = SDP.for_stream("audio", "192.168.1.20", 30000, 8, "PCMA")
    packed = str(sdp)

    assert "c=IN IP4 192.168.1.20" in packed
    assert "m=audio 30000 RTP/AVP 8" in packed
    assert "a=rtpmap:8 PCMA/8000" in packed
    assert "a=recvonly" in packed
    assert "s=mediaclient" in packed
    assert "a=fmtp" not in packed


def test_video_stream_reparsed():
    sdp = SDP.for_stream(
        "video", "127.0.0.1", 31000, 123, "H264",
        codec_param="packetization-mode=1;profile-level-id=42e01f",
        name="load test",
    )
    assert sdp.get_media()["fmtp"][0]["options"]["packetization-mode"] == "1"

    packed = sdp.pack()
    assert "a=fmtp:123 packetization-mode=1;profile-level-id=42e01f" in packed
    assert "options" not in packed

    parsed = SDP(packed)
    assert parsed.content["name"] == "load test"
    assert parsed.media_clock_rate("video") == 90000
    assert parsed.media_payload_type("video") == 123
    assert parsed.get_media("video")["port"] == 31000
    assert parsed.get_media("video")["fmtp"][0]["options"]["profile-level-id"] == "42e01f"
    assert parsed.get_media("audio") is None


@pytest.mark.parametrize(
    "data",
    [
        """v=0
o=mhandley 2890844526 2890842807 IN IP4 126.16.64.4
s=SDP Seminar
i=A Seminar on the session description protocol
c=IN IP4 224.2.17.12/127
t=2873397496 2873404696
a=recvonly
m=audio 3456 RTP/AVP 0
m=video 2232 RTP/AVP 31
""",
        """v=0
o=- 872653257 872653257 IN IP4 172.16.2.187
s=mu-law wave file
i=audio test
t=0 0
m=audio 0 RTP/AVP 0
""",
        """v=0
o=camera1 3080117314 3080118787 IN IP4 195.27.192.36
s=IETF Meeting, Munich - 1
c=IN IP4 224.0.1.11/127
t=3080271600 3080703600
a=tool:sdr v2.4a6
m=audio 21010 RTP/AVP 5
c=IN IP4 224.0.1.11/127
a=ptime:40
m=video 61010 RTP/AVP 31
c=IN IP4 224.0.1.12/127
""",
    ],
)
def test_sdps(data):
    """
    Simple check it parses without problem SDP from the RFCs
    """
    sdp = SDP(data)
    sdp.pack()
