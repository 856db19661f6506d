import importlib.util
import shutil
import sys
from pathlib import Path

import pytest


def _add_scripts_to_path() -> None:
    root = Path(__file__).resolve().parents[1]
    scripts_path = root / "scripts"
    if str(scripts_path) not in sys.path:
        sys.path.insert(0, str(scripts_path))


_add_scripts_to_path()

requires_clang = pytest.mark.skipif(shutil.which("clang") is None, reason="clang not on PATH")


class FakeRunner:
    """Stands in for ClangRunner with canned clang output"""

    def __init__(self, ast: dict, macros: str = "") -> None:
        self.ast = ast
        self.macros = macros
        self.calls = []
        self.stub = None

    def ast_dump(self, source_path, args):
        self.calls.append(("ast", list(args)))
        self.stub = Path(source_path).read_text()
        return self.ast

    def macro_dump(self, source_path, args):
        self.calls.append(("macro", list(args)))
        return self.macros


def load_module(text: str, path: Path, name: str = "bindings_under_test"):
    """Import generated module source from path"""
    path.write_text(text)
    spec = importlib.util.spec_from_file_location(name, path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def ffmpeg_tree(root: Path, headers: dict) -> Path:
    """FFmpeg include tree with every base header plus the given ones"""
    from avbindgen.headers import BASE_GROUP

    include = root / "include"
    for header in BASE_GROUP.headers:
        path = include / header
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("")
    for header, content in headers.items():
        path = include / header
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
    return root
