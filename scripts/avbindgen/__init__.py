"""
avbindgen - ctypes binding generation for the FFmpeg C libraries

This framework translates C headers into a Python module of ctypes
declarations using clang's JSON AST dump. Library-specific policy is
supplied through ParseCallbacks and the fluent Builder options.
"""

from .callbacks import (
    ParseCallbacks, DefaultCallbacks, IntKind,
    MacroParsingBehavior, EnumVariantCustomBehavior,
)
from .errors import BindgenError, ConfigError, TranslationError, OutputError
from .ir import IR, StructInfo, FieldInfo, FuncInfo, EnumInfo, EnumItem, MacroInfo
from .types import TypeConverter, parse_c_type
from .codegen import CodeGen
from .generator import Builder, build_bindings
from .config import BuildConfig

__all__ = [
    'ParseCallbacks', 'DefaultCallbacks', 'IntKind',
    'MacroParsingBehavior', 'EnumVariantCustomBehavior',
    'BindgenError', 'ConfigError', 'TranslationError', 'OutputError',
    'IR', 'StructInfo', 'FieldInfo', 'FuncInfo', 'EnumInfo', 'EnumItem', 'MacroInfo',
    'TypeConverter', 'parse_c_type',
    'CodeGen',
    'Builder', 'build_bindings',
    'BuildConfig',
]
