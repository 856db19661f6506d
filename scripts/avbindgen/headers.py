"""
Header resolution and feature gating

Maps enabled capability flags to groups of FFmpeg headers and resolves each
header against the configured include roots.
"""

import logging
import os
from dataclasses import dataclass
from typing import Iterable, Sequence

logger = logging.getLogger(__name__)

FALLBACK_INCLUDE = '/usr/include'


@dataclass(frozen=True)
class HeaderGroup:
    """Headers translated together for one capability"""
    name: str
    headers: tuple[str, ...]


# Capability -> headers, in output order
FEATURE_GROUPS = (
    HeaderGroup('avcodec', (
        'libavcodec/avcodec.h',
        'libavcodec/dv_profile.h',
        'libavcodec/avfft.h',
        'libavcodec/vaapi.h',
        'libavcodec/vorbis_parser.h',
    )),
    HeaderGroup('avdevice', ('libavdevice/avdevice.h',)),
    HeaderGroup('avfilter', (
        'libavfilter/buffersink.h',
        'libavfilter/buffersrc.h',
        'libavfilter/avfilter.h',
    )),
    HeaderGroup('avformat', ('libavformat/avformat.h', 'libavformat/avio.h')),
    HeaderGroup('avresample', ('libavresample/avresample.h',)),
    HeaderGroup('postproc', ('libpostproc/postprocess.h',)),
    HeaderGroup('swresample', ('libswresample/swresample.h',)),
    HeaderGroup('swscale', ('libswscale/swscale.h',)),
    HeaderGroup('lib_drm', ('libavutil/hwcontext_drm.h',)),
)

BASE_GROUP = HeaderGroup('avutil', tuple(f'libavutil/{name}.h' for name in (
    'adler32', 'aes', 'audio_fifo', 'base64', 'blowfish', 'bprint', 'buffer',
    'camellia', 'cast5', 'channel_layout', 'cpu', 'crc', 'dict', 'display',
    'downmix_info', 'error', 'eval', 'fifo', 'file', 'frame', 'hash', 'hmac',
    'imgutils', 'lfg', 'log', 'lzo', 'macros', 'mathematics', 'md5', 'mem',
    'motion_vector', 'murmur3', 'opt', 'parseutils', 'pixdesc', 'pixfmt',
    'random_seed', 'rational', 'replaygain', 'ripemd', 'samplefmt', 'sha',
    'sha512', 'stereo3d', 'avstring', 'threadmessage', 'time', 'timecode',
    'twofish', 'avutil', 'xtea', 'hwcontext',
)))

# Flags that are understood but select no extra headers
NON_HEADER_FEATURES = ('avutil', 'serde')

KNOWN_FEATURES = frozenset([g.name for g in FEATURE_GROUPS] + list(NON_HEADER_FEATURES))


def search_include(include_paths: Sequence[str], header: str) -> str:
    """Find the first include root containing header

    Falls back to /usr/include when no root has it; the miss surfaces later
    as a clang error.
    """
    for root in include_paths:
        path = os.path.join(root, header)
        if os.path.isfile(path):
            return path
    return os.path.join(FALLBACK_INCLUDE, header)


def select_header_groups(flags: Iterable[str]) -> list[HeaderGroup]:
    """Header groups for the enabled flags, base group last"""
    flags = set(flags)
    for name in sorted(flags - KNOWN_FEATURES):
        logger.debug('feature %s selects no headers', name)
    groups = [g for g in FEATURE_GROUPS if g.name in flags]
    groups.append(BASE_GROUP)
    return groups
