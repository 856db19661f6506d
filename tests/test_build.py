import dataclasses
import sys
import threading

import pytest

from avbindgen import BuildConfig, ConfigError, OutputError, TranslationError
from avbindgen.build import link_directives, run_in_worker, run_pipeline, write_atomic
from conftest import FakeRunner, ffmpeg_tree, load_module

AST = {
    "kind": "TranslationUnitDecl",
    "inner": [
        {"kind": "EnumDecl", "name": "AVMediaType", "inner": [
            {"kind": "EnumConstantDecl", "name": "AVMEDIA_TYPE_VIDEO"},
            {"kind": "EnumConstantDecl", "name": "AVMEDIA_TYPE_AUDIO"},
        ]},
        {"kind": "FunctionDecl", "name": "avutil_version", "type": {"qualType": "unsigned int (void)"}},
    ],
}

MACROS = """\
# 1 "/inc/libavutil/version.h" 1
#define LIBAVUTIL_VERSION_MAJOR 56
"""


@pytest.fixture
def config(tmp_path) -> BuildConfig:
    return BuildConfig(
        ffmpeg_dir=ffmpeg_tree(tmp_path / "ffmpeg", {}),
        emsdk_dir=tmp_path / "emsdk",
        project_root=tmp_path,
        out_dir=tmp_path / "gen",
    )


def test_link_directives(config) -> None:
    assert link_directives(config) == [
        "link-lib=static=avcodec",
        "link-lib=static=avfilter",
        "link-lib=static=avformat",
        "link-lib=static=avutil",
        "link-lib=static=swresample",
        f"link-search=native={config.ffmpeg_dir / 'lib'}",
    ]


def test_write_atomic_creates_directory_and_replaces(tmp_path) -> None:
    target = tmp_path / "gen" / "bindings.py"
    write_atomic(target, "A = 1\n")
    write_atomic(target, "A = 2\n")
    assert target.read_text() == "A = 2\n"
    assert [p.name for p in target.parent.iterdir()] == ["bindings.py"]


def test_write_atomic_failure_keeps_previous_file(tmp_path, monkeypatch) -> None:
    target = tmp_path / "bindings.py"
    target.write_text("OLD = 1\n")

    def fail(src, dst):
        raise OSError("disk full")

    monkeypatch.setattr("avbindgen.build.os.replace", fail)
    with pytest.raises(OutputError, match="disk full"):
        write_atomic(target, "NEW = 1\n")
    assert target.read_text() == "OLD = 1\n"
    assert [p.name for p in tmp_path.iterdir()] == ["bindings.py"]


def test_write_atomic_encoding_failure_removes_temporary_file(tmp_path) -> None:
    target = tmp_path / "bindings.py"
    target.write_text("OLD = 1\n")

    with pytest.raises(OutputError, match="cannot write"):
        write_atomic(target, "NAME = '\ud800'\n")
    assert target.read_text() == "OLD = 1\n"
    assert [p.name for p in tmp_path.iterdir()] == ["bindings.py"]


def test_write_atomic_writes_utf8(tmp_path) -> None:
    target = tmp_path / "bindings.py"
    write_atomic(target, "# généré\n")
    assert target.read_bytes() == "# généré\n".encode("utf-8")


def test_run_in_worker_uses_named_thread_and_restores_state() -> None:
    before_size = threading.stack_size()
    before_limit = sys.getrecursionlimit()
    seen = {}

    def task():
        seen["thread"] = threading.current_thread().name
        seen["limit"] = sys.getrecursionlimit()
        return 42

    assert run_in_worker(task, 3 * 1024 * 1024) == 42
    assert seen["thread"].startswith("avbindgen")
    assert seen["limit"] >= 3 * 1024 * 1024 // 512
    assert threading.stack_size() == before_size
    assert sys.getrecursionlimit() == before_limit


def test_run_in_worker_propagates_errors() -> None:
    def task():
        raise TranslationError("clang failed")

    with pytest.raises(TranslationError, match="clang failed"):
        run_in_worker(task, 3 * 1024 * 1024)


def test_run_in_worker_rejects_invalid_stack_size() -> None:
    with pytest.raises(ConfigError):
        run_in_worker(lambda: None, 1)


def test_run_pipeline_writes_module_and_prints_directives(config, capsys) -> None:
    runner = FakeRunner(AST, MACROS)

    path = run_pipeline(config, runner=runner)

    assert path == config.out_dir / "bindings.py"
    out = capsys.readouterr().out.splitlines()
    assert out[0] == "avbindgen:link-lib=static=avcodec"
    assert out[5] == f"avbindgen:link-search=native={config.ffmpeg_dir / 'lib'}"
    text = path.read_text()
    assert "LIBAVUTIL_VERSION_MAJOR: Annotated[int, ctypes.c_int] = 56" in text
    assert "_cfg_attr(\"serde\"" not in text

    module = load_module(text, path, "pipeline_bindings")
    assert module.AVMediaType.AVMEDIA_TYPE_AUDIO == 1
    assert "avutil_version" in module._PROTOTYPES


def test_run_pipeline_with_serde_feature(config) -> None:
    config = dataclasses.replace(config, features=frozenset(["serde"]))

    path = run_pipeline(config, runner=FakeRunner(AST, MACROS))

    text = path.read_text()
    lines = text.splitlines()
    idx = lines.index("class AVMediaType(enum.IntEnum):")
    assert lines[idx - 2:idx] == [
        '@_cfg_attr("serde", _rt.derive("serialize", "deserialize"))',
        '@_cfg_attr("serde", _rt.serde(rename_all="kebab-case"))',
    ]
    module = load_module(text, path, "serde_pipeline_bindings")
    assert module.AVMediaType.AVMEDIA_TYPE_VIDEO.serialize() == "avmedia-type-video"


def test_run_pipeline_failure_leaves_previous_output(config) -> None:
    config.out_dir.mkdir()
    config.output_path.write_text("PREVIOUS = 1\n")
    empty = FakeRunner({"kind": "TranslationUnitDecl", "inner": []}, "")

    with pytest.raises(TranslationError):
        run_pipeline(config, runner=empty)
    assert config.output_path.read_text() == "PREVIOUS = 1\n"
