from pathlib import Path

import pytest

from avbindgen import BuildConfig, ConfigError
from avbindgen.config import DEFAULT_STACK_SIZE

ENV = {
    "FFMPEG_DIR": "/opt/ffmpeg",
    "EMSDK": "/opt/emsdk",
    "AVBINDGEN_PROJECT_ROOT": "/src/project",
}


def test_from_env_defaults() -> None:
    config = BuildConfig.from_env(ENV)
    assert config.ffmpeg_dir == Path("/opt/ffmpeg")
    assert config.out_dir == Path("/src/project/gen")
    assert config.output_path == Path("/src/project/gen/bindings.py")
    assert config.stack_size == DEFAULT_STACK_SIZE == 3 * 1024 * 1024
    assert config.features == frozenset()
    assert config.clang == "clang"
    assert config.target is None


def test_derived_paths() -> None:
    config = BuildConfig.from_env(ENV)
    sysroot = Path("/opt/emsdk/upstream/emscripten/cache/sysroot")
    assert config.sysroot == sysroot
    assert config.include_paths == ("/opt/ffmpeg/include", str(sysroot / "include"))
    assert config.lib_dir == Path("/opt/ffmpeg/lib")


def test_from_env_overrides_and_features() -> None:
    env = dict(ENV,
               AVBINDGEN_OUT_DIR="/tmp/out",
               AVBINDGEN_BUILD_STACK_SIZE="8388608",
               AVBINDGEN_FEATURE_AVCODEC="1",
               AVBINDGEN_FEATURE_SERDE="1",
               AVBINDGEN_FEATURE_="1",
               AVBINDGEN_CLANG="clang-17",
               AVBINDGEN_TARGET="wasm32-unknown-emscripten")
    config = BuildConfig.from_env(env)
    assert config.out_dir == Path("/tmp/out")
    assert config.stack_size == 8 * 1024 * 1024
    assert config.features == frozenset(["avcodec", "serde"])
    assert config.clang == "clang-17"
    assert config.target == "wasm32-unknown-emscripten"


@pytest.mark.parametrize("missing", ["FFMPEG_DIR", "EMSDK", "AVBINDGEN_PROJECT_ROOT"])
def test_missing_variable_is_named(missing) -> None:
    env = {k: v for k, v in ENV.items() if k != missing}
    with pytest.raises(ConfigError, match=missing):
        BuildConfig.from_env(env)


def test_empty_variable_counts_as_missing() -> None:
    with pytest.raises(ConfigError, match="FFMPEG_DIR"):
        BuildConfig.from_env(dict(ENV, FFMPEG_DIR=""))


def test_bad_stack_size() -> None:
    with pytest.raises(ConfigError, match="AVBINDGEN_BUILD_STACK_SIZE"):
        BuildConfig.from_env(dict(ENV, AVBINDGEN_BUILD_STACK_SIZE="3MiB"))
