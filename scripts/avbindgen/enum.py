"""
Enum binding generation module

Generates IntEnum classes, constified variants and anonymous enum constants.
"""

import logging
import re
from typing import Optional, TYPE_CHECKING

from .callbacks import EnumVariantCustomBehavior
from .codegen import CodeGen, safe_name

if TYPE_CHECKING:
    from .callbacks import ParseCallbacks
    from .ir import EnumInfo

logger = logging.getLogger(__name__)

ENUM_DERIVES = ('debug', 'eq', 'hash')


def derive_line(traits) -> str:
    args = ', '.join(f'"{t}"' for t in traits)
    return f'@_rt.derive({args})'


def const_line(name: str, ctype: str, value: int) -> str:
    return f'{name}: Annotated[int, {ctype}] = {value}'


def _is_member_name(name: str) -> bool:
    """Names enum.Enum accepts as plain members"""
    return not name.startswith('_') and name not in ('mro',)


class EnumGenerator:
    """Generates enum bindings"""

    def __init__(self, callbacks: 'ParseCallbacks', intenum_patterns: list[str],
                 prepend_enum_name: bool = False):
        self.callbacks = callbacks
        self._intenum = [re.compile(p) for p in intenum_patterns]
        self.prepend_enum_name = prepend_enum_name

    def is_intenum(self, name: str) -> bool:
        return any(p.fullmatch(name) for p in self._intenum)

    def _behavior(self, enum_name: Optional[str], item) -> Optional[EnumVariantCustomBehavior]:
        return self.callbacks.enum_variant_behavior(enum_name, item.name, item.value)

    def _const_name(self, enum_name: str, item_name: str) -> str:
        if self.prepend_enum_name:
            return safe_name(f'{enum_name}_{item_name}')
        return safe_name(item_name)

    def generate(self, enum: 'EnumInfo', gen: CodeGen):
        """Generate an enum, as an IntEnum class or as plain constants"""
        if not self.is_intenum(enum.name):
            self._generate_alias(enum, gen)
            return

        members = []
        consts = []
        for item in enum.items:
            behavior = self._behavior(enum.name, item)
            if behavior is EnumVariantCustomBehavior.HIDE:
                continue
            if behavior is EnumVariantCustomBehavior.CONSTIFY or not _is_member_name(item.name):
                consts.append(item)
            else:
                members.append(item)

        gen.line(derive_line(ENUM_DERIVES))
        with gen.block(f'class {safe_name(enum.name)}(enum.IntEnum):'):
            if not members:
                gen.line('pass')
            for item in members:
                gen.line(f'{safe_name(item.name)} = {item.value}')
        gen.line()

        for item in consts:
            gen.line(const_line(self._const_name(enum.name, item.name), enum.ctype, item.value))
        if consts:
            gen.line()

    def _generate_alias(self, enum: 'EnumInfo', gen: CodeGen):
        """Enum as an integer type alias plus one constant per variant"""
        gen.line(f'{safe_name(enum.name)} = {enum.ctype}')
        for item in enum.items:
            if self._behavior(enum.name, item) is EnumVariantCustomBehavior.HIDE:
                continue
            gen.line(const_line(self._const_name(enum.name, item.name), enum.ctype, item.value))
        gen.line()

    def generate_consts(self, enum: 'EnumInfo', gen: CodeGen):
        """Generate module constants for an anonymous enum"""
        emitted = False
        for item in enum.items:
            if self._behavior(None, item) is EnumVariantCustomBehavior.HIDE:
                continue
            gen.line(const_line(safe_name(item.name), enum.ctype, item.value))
            emitted = True
        if emitted:
            gen.line()
