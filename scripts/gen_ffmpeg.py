#!/usr/bin/env python3
"""
gen_ffmpeg.py - FFmpeg ctypes binding generator entry point

Reads the build configuration from the environment, prints the linker
directives and writes bindings.py.

Usage:
    python scripts/gen_ffmpeg.py [--out-dir PATH] [--feature NAME ...] [--verbose]
"""

import argparse
import dataclasses
import logging
import os
import sys
from pathlib import Path

# Add scripts directory to path
script_dir = os.path.dirname(os.path.abspath(__file__))
if script_dir not in sys.path:
    sys.path.insert(0, script_dir)

from avbindgen import BindgenError, BuildConfig
from avbindgen.build import DIRECTIVE_PREFIX, run_in_worker, run_pipeline
from avbindgen.headers import KNOWN_FEATURES

logger = logging.getLogger('gen_ffmpeg')


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Generate ctypes bindings for FFmpeg')
    parser.add_argument('--out-dir', default=None,
                        help='Output directory (default: $AVBINDGEN_OUT_DIR or <project>/gen)')
    parser.add_argument('--feature', action='append', default=[], metavar='NAME',
                        help='Enable a capability in addition to $AVBINDGEN_FEATURE_*; '
                             f'known: {", ".join(sorted(KNOWN_FEATURES))}')
    parser.add_argument('--stack-size', type=int, default=None,
                        help='Worker stack size in bytes (default: $AVBINDGEN_BUILD_STACK_SIZE)')
    parser.add_argument('--clang', default=None,
                        help='clang executable (default: $AVBINDGEN_CLANG or clang)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log debug messages')
    return parser.parse_args(argv)


def load_config(args: argparse.Namespace) -> BuildConfig:
    """Environment configuration with command line overrides applied"""
    config = BuildConfig.from_env()
    overrides = {}
    if args.out_dir:
        overrides['out_dir'] = Path(args.out_dir)
    if args.feature:
        overrides['features'] = config.features | {f.lower() for f in args.feature}
    if args.stack_size is not None:
        overrides['stack_size'] = args.stack_size
    if args.clang:
        overrides['clang'] = args.clang
    return dataclasses.replace(config, **overrides)


def main(argv=None) -> int:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(levelname)s %(name)s: %(message)s',
        stream=sys.stderr,
    )

    try:
        config = load_config(args)
        for name in sorted(config.features - KNOWN_FEATURES):
            logger.warning('unknown feature %s is ignored', name)
        logger.info('using stack size: %d', config.stack_size)
        output = run_in_worker(lambda: run_pipeline(config), config.stack_size)
    except BindgenError as e:
        logger.error('%s', e)
        return 1

    print(f'{DIRECTIVE_PREFIX}bindings.py={output}')
    return 0


if __name__ == '__main__':
    sys.exit(main())
