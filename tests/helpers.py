"""
Test doubles shared by the test modules
"""
import asyncio
from typing import List, Optional

from mediaclient.control import CodecInfo, ControlPlane, PreparedSession, SystemEvent
from mediaclient.errors import ControlPlaneError
from mediaclient.session import SessionConfig
from mediaclient.transport.base import OutboundStream, RTPBackend

START_CODE = b'\x00\x00\x00\x01'


class Receiver(asyncio.DatagramProtocol):
    """UDP sink queueing every datagram"""

    def __init__(self):
        self.queue = asyncio.Queue()

    def datagram_received(self, data, addr):
        self.queue.put_nowait(data)

    def drain(self) -> List[bytes]:
        packets = []
        while not self.queue.empty():
            packets.append(self.queue.get_nowait())
        return packets


async def open_receiver():
    """
    :return: (transport, receiver, port)
    """
    loop = asyncio.get_running_loop()
    transport, receiver = await loop.create_datagram_endpoint(Receiver, local_addr=('127.0.0.1', 0))
    return transport, receiver, transport.get_extra_info('sockname')[1]


class FakeControlPlane(ControlPlane):
    """
    Media server stand-in recording every call.

    `fail_on` names RPCs (PrepareSession, StopSession...) to fail.
    """

    def __init__(self, remote_ip: str = '127.0.0.1', remote_port: int = 9, fail_on=()):
        self.remote_ip = remote_ip
        self.remote_port = remote_port
        self.fail_on = set(fail_on)
        self.calls = []
        self.events: List[SystemEvent] = []
        self.connected = False

    def _call(self, name: str, *args):
        self.calls.append((name, *args))
        if name in self.fail_on:
            raise ControlPlaneError(f'{name} refused')

    @property
    def rpc_calls(self) -> List[str]:
        return [call[0] for call in self.calls if call[0][0].isupper()]

    def args(self, name: str) -> tuple:
        return next(call[1:] for call in self.calls if call[0] == name)

    async def connect(self, instance_id, on_event=None):
        self._call('connect', instance_id)
        self.connected = True

    async def prepare_session(self, peer_ip, peer_port, codecs: List[CodecInfo], graph_desc, instance_id):
        self._call('PrepareSession', peer_ip, peer_port, codecs, graph_desc, instance_id)
        return PreparedSession(f'session-{instance_id}', self.remote_ip, self.remote_port)

    async def update_session(self, session_id, peer_port):
        self._call('UpdateSession', session_id, peer_port)

    async def start_session(self, session_id):
        self._call('StartSession', session_id)

    async def stop_session(self, session_id):
        self._call('StopSession', session_id)

    async def execute_action(self, session_id, cmd, cmd_arg):
        self._call('ExecuteAction', session_id, cmd, cmd_arg)

    async def send_event(self, event: SystemEvent):
        self.events.append(event)

    async def close(self):
        self._call('close')
        self.connected = False


class RecordingBackend(RTPBackend):
    """
    Backend keeping packets in memory.

    :param fail: number of writes to fail before succeeding, -1 for always
    """

    name = 'recording'

    def __init__(self, fail: int = 0, **kwargs):
        super().__init__(**kwargs)
        self.fail = fail
        self.sent = []
        self.packet: Optional[dict] = None
        self.closed = False

    async def _open(self, local_addr):
        pass

    def _new_packet(self, stream: OutboundStream, timestamp: int):
        self.packet = {'ts': timestamp, 'pt': stream.payload_type, 'm': False, 'payload': b'', 'seq': stream.seq}

    def set_payload(self, payload):
        self._check_packet()
        self.packet['payload'] = bytes(payload)

    def set_marker(self, marker):
        self._check_packet()
        self.packet['m'] = bool(marker)

    def set_payload_type(self, payload_type):
        self._check_packet()
        self.packet['pt'] = payload_type

    def _pack(self):
        return bytes(12) + self.packet['payload']

    def _send(self, data, remote):
        if self.fail:
            self.fail -= 1
            raise OSError('network is unreachable')
        self.sent.append(dict(self.packet))

    def _close(self):
        self.closed = True


async def started_backend(backend: RTPBackend, codec: str = 'PCMA', pt: int = 8) -> RTPBackend:
    index = backend.create_outbound_stream(('127.0.0.1', 0))
    backend.set_profile(index, codec, pt)
    backend.add_remote('127.0.0.1', 9)
    await backend.start()
    return backend


def fast_config(instance_id: str, **kwargs) -> SessionConfig:
    """Session config with all timings shrunk for tests"""
    params = dict(
        run_time=0.3,
        settle_time=0.02,
        grace_period=0.1,
        keepalive_interval=0.05,
        report_interval=0.1,
        loop_pause=0.05,
        audio_interval=0.002,
        video_interval=0.002,
    )
    params.update(kwargs)
    return SessionConfig(instance_id, **params)


def annexb(*payloads: bytes, code: bytes = START_CODE) -> bytes:
    """Build an Annex-B stream"""
    return b''.join(code + payload for payload in payloads)
