import asyncio
import contextlib
import logging

from mediaclient import MediaCache, PortPool, SessionConfig, SessionFleet
from mediaclient.control import DirectControlPlane
from mediaclient.sdp import SDP
from mediaclient.transport import BACKENDS, DEFAULT_BACKEND

logger = logging.getLogger('media_client')
logging.basicConfig(format='%(asctime)s %(levelname)s %(message)s')


def parse_address(value: str):
    host, _, port = value.rpartition(':')
    return host or '127.0.0.1', int(port)


async def main():
    import argparse

    parser = argparse.ArgumentParser(description='Send synthetic RTP traffic')
    parser.add_argument('-l', '--logging', type=int, default=20, help='log level')
    parser.add_argument('-n', '--sessions', type=int, default=1, help='number of parallel sessions')
    parser.add_argument('-t', '--run-time', type=float, default=10, help='seconds each session streams')
    parser.add_argument('--video', action='store_true', help='send H264 instead of PCMA')
    parser.add_argument('--audio-file', default='audio.pcma', help='raw PCMA file')
    parser.add_argument('--video-file', default='video.h264', help='Annex-B H264 file')
    parser.add_argument('--loop', action='store_true', help='replay media until run time is over')
    parser.add_argument('-b', '--backend', choices=sorted(BACKENDS), default=DEFAULT_BACKEND)
    parser.add_argument('-r', '--remote', type=parse_address, required=True, help='receiver ip:port')
    parser.add_argument('--ports', default='20000-30000', help='local port range')
    parser.add_argument('--stagger', type=float, default=0, help='delay between session starts')
    parser.add_argument('--sdp', help='write the SDP of the stream to this file')
    parser.add_argument('--abort-on-error', action='store_true', help='stop all sessions on first failure')
    args = parser.parse_args()

    logger.setLevel(args.logging)

    start, _, end = args.ports.partition('-')
    pool = PortPool(int(start), int(end))

    audio_cache = video_cache = None
    if args.video:
        video_cache = MediaCache.from_file(args.video_file)
    else:
        audio_cache = MediaCache.from_file(args.audio_file)

    remote_ip, remote_port = args.remote
    configs = [
        SessionConfig(
            instance_id=f'client-{idx}',
            is_audio=not args.video,
            run_time=args.run_time,
            loop=args.loop,
            backend=args.backend,
            report_info=False,
        )
        for idx in range(args.sessions)
    ]

    if args.sdp:
        codec = configs[0].codec
        sdp = SDP.for_stream(
            'video' if args.video else 'audio', remote_ip, remote_port,
            codec.payload_number, codec.codec_type.value)
        with open(args.sdp, 'w') as f:
            f.write(str(sdp))

    fleet = SessionFleet(
        pool,
        lambda _: DirectControlPlane(remote_ip, remote_port, logger=logger),
        audio_cache=audio_cache,
        video_cache=video_cache,
        abort_on_error=args.abort_on_error,
        stagger=args.stagger,
        logger=logger,
    )
    fleet.counter.subscribe(lambda active: logger.debug('active sessions: %s', active))

    results = await fleet.run(configs)
    for config, error in zip(configs, results):
        if error:
            logger.error('%s: %s', config.instance_id, error)


if __name__ == '__main__':
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(main())
