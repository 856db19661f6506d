"""
Main generator module

Orchestrates all components to generate the ctypes binding module.
"""

import logging
import os
import re
import tempfile
from typing import Callable, Iterable, Optional, TYPE_CHECKING

from .callbacks import DefaultCallbacks, MacroParsingBehavior, ParseCallbacks
from .clang import ClangRunner
from .codegen import CodeGen, safe_name
from .const import ConstGenerator
from .enum import EnumGenerator
from .errors import TranslationError
from .func import FuncGenerator
from .headers import search_include
from .ir import IR, FieldInfo, StructInfo
from .macros import read_macro_definitions
from .struct import StructGenerator
from .types import TypeConverter

if TYPE_CHECKING:
    from .config import BuildConfig
    from .headers import HeaderGroup

logger = logging.getLogger(__name__)

MODULE_HEADER = (
    '# machine generated by avbindgen, do not edit',
    'import ctypes',
    'import enum',
    'from typing import Annotated',
    '',
    'from avbindgen import runtime as _rt',
)


class Builder:
    """Collects translation options for one run

    Every option method returns the builder so calls can be chained.
    """

    def __init__(self, runner: Optional[ClangRunner] = None):
        self.runner = runner or ClangRunner()
        self.args: list[str] = []
        self.headers: list[str] = []
        self.blocklisted_types: set[str] = set()
        self.blocklisted_functions: list[str] = []
        self.opaque_types: set[str] = set()
        self.intenum_patterns: list[str] = []
        self.prepend_enum_names = True
        self.derive_eq_enabled = False
        self.size_t_usize = False
        self.callbacks: ParseCallbacks = DefaultCallbacks()
        self.enabled_features: frozenset[str] = frozenset()

    def clang_arg(self, arg: str) -> 'Builder':
        self.args.append(arg)
        return self

    def clang_args(self, args: Iterable[str]) -> 'Builder':
        self.args.extend(args)
        return self

    def header(self, path: str) -> 'Builder':
        self.headers.append(path)
        return self

    def blocklist_type(self, name: str) -> 'Builder':
        self.blocklisted_types.add(name)
        return self

    def blocklist_function(self, pattern: str) -> 'Builder':
        """Suppress functions whose whole name matches the regex pattern"""
        self.blocklisted_functions.append(pattern)
        return self

    def opaque_type(self, name: str) -> 'Builder':
        self.opaque_types.add(name)
        return self

    def intenum(self, pattern: str) -> 'Builder':
        """Emit enums matching pattern as enum.IntEnum classes"""
        self.intenum_patterns.append(pattern)
        return self

    def prepend_enum_name(self, enabled: bool) -> 'Builder':
        self.prepend_enum_names = enabled
        return self

    def derive_eq(self, enabled: bool) -> 'Builder':
        self.derive_eq_enabled = enabled
        return self

    def size_t_is_usize(self, enabled: bool) -> 'Builder':
        self.size_t_usize = enabled
        return self

    def parse_callbacks(self, callbacks: ParseCallbacks) -> 'Builder':
        self.callbacks = callbacks
        return self

    def features(self, flags: Iterable[str]) -> 'Builder':
        self.enabled_features = frozenset(flags)
        return self

    def generate(self) -> str:
        """Translate the headers and return the module source

        Raises TranslationError when clang fails or nothing is translated.
        """
        if not self.headers:
            raise TranslationError('no headers requested')
        ast, macro_text = self._run_clang()

        macro_defs = [
            m for m in read_macro_definitions(macro_text)
            if self.callbacks.will_parse_macro(m.name) is not MacroParsingBehavior.IGNORE
        ]
        ir = IR.from_clang_ast(ast, macro_defs)
        self._suppress(ir)
        if ir.is_empty:
            raise TranslationError('translation produced no declarations')
        return self._emit(ir)

    def _run_clang(self) -> tuple[dict, str]:
        with tempfile.TemporaryDirectory(prefix='avbindgen-') as tmp:
            stub = os.path.join(tmp, 'avbindgen_stub.c')
            with open(stub, 'w', encoding='utf-8', newline='\n') as f:
                for header in self.headers:
                    f.write(f'#include "{os.path.abspath(header)}"\n')
            logger.info('translating %d headers', len(self.headers))
            ast = self.runner.ast_dump(stub, self.args)
            macro_text = self.runner.macro_dump(stub, self.args)
        return ast, macro_text

    def _suppress(self, ir: IR):
        """Drop blocklisted declarations and give opaque typedefs a record layout"""
        for name in self.blocklisted_types:
            ir.structs.pop(name, None)
            ir.typedefs.pop(name, None)
            ir.enums.pop(name, None)

        patterns = [re.compile(p) for p in self.blocklisted_functions]
        for name in list(ir.funcs):
            if any(p.fullmatch(name) for p in patterns):
                del ir.funcs[name]

        # Opaque types keep their definition only to size the byte blob
        for name in self.opaque_types:
            if name in ir.structs or name not in ir.typedefs:
                continue
            typedef = ir.typedefs.pop(name)
            ir.structs[name] = StructInfo(name=name, fields=[FieldInfo('value', typedef.type)],
                                          file=typedef.file)

    def _emit(self, ir: IR) -> str:
        gen = CodeGen()
        type_conv = TypeConverter(ir, size_t_is_usize=self.size_t_usize,
                                  blocklisted=self.blocklisted_types)
        derives = ('debug', 'eq') if self.derive_eq_enabled else ('debug',)
        enum_gen = EnumGenerator(self.callbacks, self.intenum_patterns,
                                 prepend_enum_name=self.prepend_enum_names)
        const_gen = ConstGenerator(self.callbacks)
        struct_gen = StructGenerator(ir, type_conv, derives, opaque=self.opaque_types)
        func_gen = FuncGenerator(type_conv)

        gen.lines(*MODULE_HEADER)
        gen.line()
        gen.line(f'FEATURES = frozenset({sorted(self.enabled_features)!r})')
        gen.line('_cfg_attr = _rt.cfg_attr(FEATURES)')
        gen.line()

        # Macros
        taken = set(ir.structs) | set(ir.typedefs) | set(ir.enums) | set(ir.enum_constants())
        macro_count = 0
        for macro in ir.macros.values():
            if macro.name in taken:
                continue
            if const_gen.generate(macro, gen):
                macro_count += 1
        if macro_count:
            gen.line()

        # Enums
        for enum in ir.enums.values():
            enum_gen.generate(enum, gen)
        for const in ir.consts:
            enum_gen.generate_consts(const, gen)

        # Records are declared before typedefs so aliases can name them
        structs = list(ir.structs.values())
        for struct in structs:
            struct_gen.generate_declaration(struct, gen)

        deferred = []
        for typedef in list(ir.typedefs.values()):
            try:
                ctype = type_conv.ctype(typedef.type)
                by_value = type_conv.value_deps(typedef.type)
            except ValueError as e:
                logger.debug('typedef %s skipped: %s', typedef.name, e)
                del ir.typedefs[typedef.name]
                continue
            line = f'{safe_name(typedef.name)} = {ctype}'
            if by_value and ctype.startswith('('):
                deferred.append(line)
            else:
                gen.line(line)
        gen.line()

        for struct in struct_gen.resolve(structs):
            struct_gen.generate_fields(struct, gen)
        if deferred:
            gen.lines(*deferred)
            gen.line()

        # Functions
        func_gen.generate_table(gen)
        func_count = sum(1 for func in ir.funcs.values() if func_gen.generate(func, gen))
        func_gen.generate_loader(gen)

        logger.info('emitted %d macros, %d enums, %d records, %d functions',
                    macro_count, len(ir.enums), len(structs), func_count)
        return gen.output()


def build_bindings(config: 'BuildConfig', groups: list['HeaderGroup'],
                   configure: Optional[Callable[[Builder], None]] = None,
                   runner: Optional[ClangRunner] = None) -> str:
    """Translate the headers of the selected groups into module source"""
    builder = Builder(runner or ClangRunner(config.clang))
    for root in config.include_paths:
        builder.clang_arg(f'-I{root}')
    builder.clang_arg('-fvisibility=default')
    builder.clang_arg(f'--sysroot={config.sysroot}')
    if config.target:
        builder.clang_arg(f'--target={config.target}')

    for group in groups:
        for header in group.headers:
            path = search_include(config.include_paths, header)
            logger.debug('%s => %s', header, path)
            builder.header(path)

    if configure is not None:
        configure(builder)
    builder.features(config.features)
    return builder.generate()
