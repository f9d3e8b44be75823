"""
Session Description - RFC 4566
==============================

Describe the traffic sent by a session, so that a plain RTP receiver
(``ffplay -protocol_whitelist file,udp,rtp stream.sdp``) can decode it.
"""
from time import time
from typing import Optional

import sdp_transform

from mediaclient.transport.base import CLOCK_RATES


class SDP:
    """
    Thin wrapper around an `sdp_transform` session dictionary.
    """

    def __init__(self, data: Optional[str] = None):
        self.content = sdp_transform.parse(data) if data else {}

        for media in self.content.get("media", []):
            for fmtp in media.get("fmtp", []):
                self.parse_fmtp(fmtp)

    @classmethod
    def for_stream(
            cls,
            media_type: str,
            address: str,
            port: int,
            payload_type: int,
            codec: str,
            codec_param: str = "",
            name: str = "mediaclient",
    ) -> "SDP":
        """
        Build the description of one outgoing RTP stream.

        :param media_type: audio|video
        :param address: address the stream is sent to
        :param port: RTP port the stream is sent to
        :param payload_type: RTP payload type
        :param codec: codec name (PCMA, H264)
        :param codec_param: fmtp parameters, ``key=value;key=value``
        """
        sdp = cls()
        sdp.set_origin(unicast_address=address)
        sdp.content.update({
            "version": 0,
            "name": name,
            "timing": {"start": 0, "stop": 0},
            "connection": {"version": 4, "ip": address},
        })

        media = {
            "type": media_type,
            "port": port,
            "protocol": "RTP/AVP",
            "payloads": str(payload_type),
            "rtp": [{"payload": payload_type, "codec": codec, "rate": CLOCK_RATES.get(codec.upper(), 90000)}],
            "direction": "recvonly",
        }
        if codec_param:
            fmtp = {"payload": payload_type, "config": codec_param}
            cls.parse_fmtp(fmtp)
            media["fmtp"] = [fmtp]

        sdp.content["media"] = [media]
        return sdp

    def set_origin(
        self,
        username: str = None,
        session_id: int = None,
        session_version: int = None,
        net_type: str = "IN",
        addr_type: int = 4,
        unicast_address: str = "0.0.0.0",
    ):
        """
        Set origin content to SDP
        """
        now = int(time())
        self.content["origin"] = {
            "username": username or "-",
            "sessionId": session_id or now,
            "sessionVersion": session_version or now,
            "netType": net_type,
            "ipVer": addr_type,
            "address": unicast_address,
        }

    @staticmethod
    def parse_fmtp(fmtp: dict):
        """
        Parse fmtp config into individual options
        """
        options = {}
        for opt in fmtp.get("config", "").split(";"):
            if not opt.strip():
                # Empty, probably a wrong semicolon at the end...
                continue
            k, _, v = opt.partition("=")
            options[k.strip()] = v.strip()
        fmtp["options"] = options

    def get_media(self, media_type="video", media_idx=0) -> Optional[dict]:
        """
        Return the Nth media description matching requested type
        """
        medias = [m for m in self.content.get("media", []) if m["type"] == media_type]
        if media_idx < len(medias):
            return medias[media_idx]
        return None

    def media_clock_rate(self, media_type="video", media_idx=0) -> Optional[int]:
        media = self.get_media(media_type, media_idx)
        if media and media.get("rtp"):
            return media["rtp"][0]["rate"]
        return None

    def media_payload_type(self, media_type="video", media_idx=0) -> Optional[int]:
        media = self.get_media(media_type, media_idx)
        if media and media.get("rtp"):
            return media["rtp"][0]["payload"]
        return None

    def pack(self) -> str:
        """
        Build back the content as SDP
        """
        content = dict(self.content)
        content["media"] = [
            {**media, "fmtp": [{k: v for k, v in fmtp.items() if k != "options"} for fmtp in media.get("fmtp", [])]}
            for media in content.get("media", [])
        ]
        return sdp_transform.write(content)

    def __str__(self):
        return self.pack()
