"""
Build configuration

Read once from the environment at startup and passed explicitly to every
component.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

from .errors import ConfigError

FEATURE_PREFIX = 'AVBINDGEN_FEATURE_'
DEFAULT_STACK_SIZE = 3 * 1024 * 1024


@dataclass(frozen=True)
class BuildConfig:
    """Inputs of one generator run"""
    ffmpeg_dir: Path
    emsdk_dir: Path
    project_root: Path
    out_dir: Path
    features: frozenset[str] = field(default_factory=frozenset)
    stack_size: int = DEFAULT_STACK_SIZE
    clang: str = 'clang'
    target: Optional[str] = None

    @property
    def sysroot(self) -> Path:
        return self.emsdk_dir / 'upstream' / 'emscripten' / 'cache' / 'sysroot'

    @property
    def include_paths(self) -> tuple[str, ...]:
        """Include roots in priority order"""
        return (str(self.ffmpeg_dir / 'include'), str(self.sysroot / 'include'))

    @property
    def lib_dir(self) -> Path:
        return self.ffmpeg_dir / 'lib'

    @property
    def output_path(self) -> Path:
        return self.out_dir / 'bindings.py'

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'BuildConfig':
        """Read the configuration from environment variables

        Raises ConfigError naming the first missing or malformed variable.
        """
        env = os.environ if environ is None else environ

        def required(name: str) -> Path:
            value = env.get(name, '')
            if not value:
                raise ConfigError(f'environment variable {name} is not set')
            return Path(value)

        ffmpeg_dir = required('FFMPEG_DIR')
        emsdk_dir = required('EMSDK')
        project_root = required('AVBINDGEN_PROJECT_ROOT')
        out_dir = env.get('AVBINDGEN_OUT_DIR') or project_root / 'gen'

        stack_size = env.get('AVBINDGEN_BUILD_STACK_SIZE') or DEFAULT_STACK_SIZE
        try:
            stack_size = int(stack_size)
        except ValueError:
            raise ConfigError(
                f'AVBINDGEN_BUILD_STACK_SIZE must be an integer, got {stack_size!r}') from None

        features = frozenset(
            name[len(FEATURE_PREFIX):].lower()
            for name in env if name.startswith(FEATURE_PREFIX) and len(name) > len(FEATURE_PREFIX)
        )

        return cls(
            ffmpeg_dir=ffmpeg_dir,
            emsdk_dir=emsdk_dir,
            project_root=project_root,
            out_dir=Path(out_dir),
            features=features,
            stack_size=stack_size,
            clang=env.get('AVBINDGEN_CLANG') or 'clang',
            target=env.get('AVBINDGEN_TARGET') or None,
        )
