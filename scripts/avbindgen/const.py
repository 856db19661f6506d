"""
Macro constant generation module

Generates module constants for evaluated object-like macros.
"""

import logging
from typing import TYPE_CHECKING

from .callbacks import IntKind
from .codegen import CodeGen, py_literal, safe_name
from .enum import const_line

if TYPE_CHECKING:
    from .callbacks import ParseCallbacks
    from .ir import MacroInfo

logger = logging.getLogger(__name__)


class ConstGenerator:
    """Generates macro constant bindings"""

    def __init__(self, callbacks: 'ParseCallbacks'):
        self.callbacks = callbacks

    def int_kind(self, name: str, value: int):
        """Integer kind for an integer macro, None when it is excluded

        Without an override a macro is kept only when it fits c_int.
        """
        kind = self.callbacks.int_macro(name, value)
        if kind is None and IntKind.INT.fits(value):
            kind = IntKind.INT
        return kind

    def generate(self, macro: 'MacroInfo', gen: CodeGen) -> bool:
        """Generate one macro constant, False if it was excluded"""
        name = safe_name(macro.name)
        value = macro.value
        if isinstance(value, bytes):
            gen.line(f'{name}: bytes = {py_literal(value)}')
        elif isinstance(value, float):
            gen.line(f'{name}: float = {py_literal(value)}')
        else:
            kind = self.int_kind(macro.name, value)
            if kind is None:
                logger.debug('macro %s = %d has no integer kind, skipped', macro.name, value)
                return False
            gen.line(const_line(name, f'ctypes.{kind.ctype}', kind.normalize(value)))
        return True
