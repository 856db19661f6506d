"""
Build orchestration

Emits the linker directives, translates the selected headers, post-processes
the module and writes it atomically.
"""

import concurrent.futures
import logging
import os
import sys
import tempfile
import threading
from pathlib import Path
from typing import Callable, TypeVar, TYPE_CHECKING

from bindings import ffmpeg

from .errors import ConfigError, OutputError
from .generator import build_bindings
from .headers import select_header_groups
from .postprocess import SERDE_FEATURE, postprocess

if TYPE_CHECKING:
    from .clang import ClangRunner
    from .config import BuildConfig

logger = logging.getLogger(__name__)

DIRECTIVE_PREFIX = 'avbindgen:'

# Approximate stack bytes used per Python frame
FRAME_BYTES = 512
DEFAULT_RECURSION_LIMIT = 1000

T = TypeVar('T')


def link_directives(config: 'BuildConfig') -> list[str]:
    """Linker directives for the build tool, always emitted"""
    directives = [f'link-lib=static={lib}' for lib in ffmpeg.LINK_LIBRARIES]
    directives.append(f'link-search=native={config.lib_dir}')
    return directives


def write_atomic(path: Path, text: str):
    """Replace path with text, never leaving a partially written file"""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f'.{path.name}.', suffix='.tmp')
    except OSError as e:
        raise OutputError(f'cannot write {path}: {e}') from e
    replaced = False
    try:
        with os.fdopen(fd, 'w', encoding='utf-8', newline='\n') as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
        replaced = True
    except (OSError, UnicodeError) as e:
        raise OutputError(f'cannot write {path}: {e}') from e
    finally:
        if not replaced:
            try:
                os.unlink(tmp)
            except FileNotFoundError:
                pass


def run_pipeline(config: 'BuildConfig', runner: 'ClangRunner' = None) -> Path:
    """Run one full generation, returns the written module path"""
    for directive in link_directives(config):
        print(f'{DIRECTIVE_PREFIX}{directive}', flush=True)

    groups = select_header_groups(config.features)
    logger.info('header groups: %s', ', '.join(g.name for g in groups))

    text = build_bindings(config, groups, configure=ffmpeg.configure, runner=runner)
    text = postprocess(text, SERDE_FEATURE in config.features)

    write_atomic(config.output_path, text)
    logger.info('wrote %s', config.output_path)
    return config.output_path


def run_in_worker(func: Callable[[], T], stack_size: int) -> T:
    """Run func on a single worker thread with an enlarged stack

    Exceptions raised by func propagate unchanged.
    """
    try:
        old_size = threading.stack_size(stack_size)
    except ValueError as e:
        raise ConfigError(f'invalid stack size {stack_size}: {e}') from e
    try:
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix='avbindgen')
        # The thread is created on first submit, while the size is in effect
        future = executor.submit(_with_recursion_limit, func, stack_size)
    finally:
        threading.stack_size(old_size)
    with executor:
        return future.result()


def _with_recursion_limit(func: Callable[[], T], stack_size: int) -> T:
    old_limit = sys.getrecursionlimit()
    sys.setrecursionlimit(max(old_limit, stack_size // FRAME_BYTES, DEFAULT_RECURSION_LIMIT))
    try:
        return func()
    finally:
        sys.setrecursionlimit(old_limit)
