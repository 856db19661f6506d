"""
Function binding generation module

Generates prototype registrations for C functions. Prototypes are bound to
a shared library by the generated `load()` function.
"""

import logging
from typing import TYPE_CHECKING

from .codegen import CodeGen
from .types import Array, Pointer

if TYPE_CHECKING:
    from .ir import FuncInfo
    from .types import TypeConverter

logger = logging.getLogger(__name__)


class FuncGenerator:
    """Generates function prototype bindings"""

    def __init__(self, type_conv: 'TypeConverter'):
        self.type_conv = type_conv

    def prototype(self, func: 'FuncInfo') -> str:
        """Build the registration line, raises ValueError for unusable types"""
        signature = func.signature
        restype = self.type_conv.ctype(signature.result, is_return=True)
        # Array parameters decay to pointers
        params = [Pointer(p.elem) if isinstance(p, Array) else p for p in signature.params]
        argtypes = ', '.join(self.type_conv.ctype(p) for p in params)
        line = f'_rt.prototype(_PROTOTYPES, "{func.name}", {restype}, [{argtypes}]'
        if signature.is_variadic:
            line += ', variadic=True'
        return line + ')'

    def generate(self, func: 'FuncInfo', gen: CodeGen) -> bool:
        """Generate one function prototype, False if its types are unusable"""
        try:
            line = self.prototype(func)
        except ValueError as e:
            logger.debug('function %s skipped: %s', func.name, e)
            return False
        gen.line(line)
        return True

    def generate_table(self, gen: CodeGen):
        gen.line('_PROTOTYPES = {}')

    def generate_loader(self, gen: CodeGen):
        """Generate the load() entry point of the module"""
        gen.line()
        gen.line()
        with gen.block('def load(path):'):
            gen.line('"""Bind every prototype onto the shared library at path"""')
            gen.line('return _rt.load_library(path, _PROTOTYPES)')
