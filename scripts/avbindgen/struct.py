"""
Struct binding generation module

Generates ctypes Structure/Union classes. Classes are declared first and
completed with `_fields_` later so that records can point at each other.
"""

import logging
from typing import TYPE_CHECKING

from .codegen import CodeGen, safe_name
from .enum import derive_line
from .types import TypeParseError

if TYPE_CHECKING:
    from .ir import IR, StructInfo
    from .types import TypeConverter

logger = logging.getLogger(__name__)


class StructGenerator:
    """Generates struct bindings"""

    def __init__(self, ir: 'IR', type_conv: 'TypeConverter', derives: tuple[str, ...],
                 opaque: set[str] = None):
        self.ir = ir
        self.type_conv = type_conv
        self.derives = derives
        self.opaque = set(opaque or ())
        self._fields: dict[str, list[str]] = {}

    def base_class(self, struct: 'StructInfo') -> str:
        return 'ctypes.Union' if struct.kind == 'union' else 'ctypes.Structure'

    def generate_declaration(self, struct: 'StructInfo', gen: CodeGen):
        """Generate the class statement, fields are assigned later"""
        if self.derives:
            gen.line(derive_line(self.derives))
        with gen.block(f'class {safe_name(struct.name)}({self.base_class(struct)}):'):
            gen.line('pass')
        gen.line()

    def field_order(self, structs: list['StructInfo']) -> list['StructInfo']:
        """Order records so every by-value dependency is completed first"""
        by_name = {s.name: s for s in structs}
        ordered = []
        state: dict[str, int] = {}  # 1 visiting, 2 done

        def visit(struct: 'StructInfo'):
            if state.get(struct.name) == 2:
                return
            state[struct.name] = 1
            for dep in sorted(self._deps(struct)):
                if dep in by_name and state.get(dep) != 1:
                    visit(by_name[dep])
            state[struct.name] = 2
            ordered.append(struct)

        for struct in structs:
            visit(struct)
        return ordered

    def _deps(self, struct: 'StructInfo') -> set[str]:
        deps = set()
        for f in struct.fields:
            try:
                deps |= self.type_conv.value_deps(f.type)
            except TypeParseError:
                pass
        deps.discard(struct.name)
        return deps

    def resolve(self, structs: list['StructInfo']) -> list['StructInfo']:
        """Convert field types, returns records in field assignment order

        A record whose fields cannot all be converted, or that holds an
        incomplete record by value, stays opaque. Records named opaque by
        the caller keep only their size and alignment.
        """
        ordered = self.field_order(structs)
        incomplete = set()
        for struct in ordered:
            if struct.is_opaque:
                incomplete.add(struct.name)
                continue
            missing = self._deps(struct) & incomplete
            if missing:
                logger.debug('%s holds incomplete %s by value, left opaque',
                             struct.name, ', '.join(sorted(missing)))
                incomplete.add(struct.name)
                continue
            try:
                self._fields[struct.name] = [self._field_entry(f) for f in struct.fields]
            except TypeParseError as e:
                logger.debug('%s left opaque: %s', struct.name, e)
                incomplete.add(struct.name)
        return [s for s in ordered if s.name in self._fields]

    def _field_entry(self, f) -> str:
        ctype = self.type_conv.ctype(f.type)
        if f.bit_width is not None:
            return f'("{f.name}", {ctype}, {f.bit_width})'
        return f'("{f.name}", {ctype})'

    def generate_fields(self, struct: 'StructInfo', gen: CodeGen):
        """Generate the `_fields_` assignment of a resolved record"""
        name = safe_name(struct.name)
        if struct.name in self.opaque:
            self._generate_blob(struct, gen)
            return
        if struct.is_packed:
            gen.line(f'{name}._pack_ = 1')
        anonymous = [f.name for f in struct.fields if f.is_anonymous]
        if anonymous:
            names = ''.join(f'"{n}", ' for n in anonymous)
            gen.line(f'{name}._anonymous_ = ({names.rstrip()})')
        entries = self._fields[struct.name]
        if not entries:
            gen.line(f'{name}._fields_ = []')
        else:
            with gen.block(f'{name}._fields_ = [', ']'):
                for entry in entries:
                    gen.line(f'{entry},')
        gen.line()

    def _generate_blob(self, struct: 'StructInfo', gen: CodeGen):
        name = safe_name(struct.name)
        layout = f'_{name}_layout'
        with gen.block(f'class {layout}({self.base_class(struct)}):'):
            if struct.is_packed:
                gen.line('_pack_ = 1')
            anonymous = [f.name for f in struct.fields if f.is_anonymous]
            if anonymous:
                names = ''.join(f'"{n}", ' for n in anonymous)
                gen.line(f'_anonymous_ = ({names.rstrip()})')
            with gen.block('_fields_ = [', ']'):
                for entry in self._fields[struct.name]:
                    gen.line(f'{entry},')
        gen.line()
        gen.line(f'{name}._fields_ = _rt.opaque_fields({layout})')
        gen.line()
