"""
IR (Intermediate Representation) module

Reads and represents the clang JSON AST dump and macro definitions of the
translated headers.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional, Union, TYPE_CHECKING

from .macros import MacroValue, evaluate
from .types import Function, parse_c_type

if TYPE_CHECKING:
    from .macros import MacroDef

logger = logging.getLogger(__name__)

# clang's spelling of an anonymous tag type inside a qualType
_ANON_TAG_RE = re.compile(r'\b(struct|union|enum) \((?:unnamed|anonymous)[^()]*\)')


@dataclass
class MacroInfo:
    """Evaluated object-like macro"""
    name: str
    value: MacroValue
    file: str = ''


@dataclass
class FieldInfo:
    """Struct field information"""
    name: str
    type: str
    bit_width: Optional[int] = None
    is_anonymous: bool = False


@dataclass
class StructInfo:
    """Struct or union type information"""
    name: str
    fields: list[FieldInfo]
    kind: str = 'struct'
    is_opaque: bool = False   # declared but never defined
    is_packed: bool = False
    file: str = ''


@dataclass
class FuncInfo:
    """Function declaration information"""
    name: str
    type: str  # Full function type signature
    file: str = ''

    @property
    def signature(self) -> Function:
        """Parsed function type"""
        t = parse_c_type(self.type)
        if not isinstance(t, Function):
            raise ValueError(f'{self.name} has no function type: {self.type}')
        return t


@dataclass
class EnumItem:
    """Enum item (constant)"""
    name: str
    value: int = 0


@dataclass
class EnumInfo:
    """Enum type information"""
    name: str
    items: list[EnumItem]
    is_anonymous: bool = False
    file: str = ''

    @property
    def is_signed(self) -> bool:
        return any(item.value < 0 for item in self.items)

    @property
    def ctype(self) -> str:
        """ctypes type matching the enum's underlying integer"""
        return 'ctypes.c_int' if self.is_signed else 'ctypes.c_uint'


@dataclass
class TypedefInfo:
    """Typedef information"""
    name: str
    type: str
    file: str = ''


@dataclass
class IR:
    """Intermediate representation of the translated headers"""
    structs: dict[str, StructInfo] = field(default_factory=dict)
    funcs: dict[str, FuncInfo] = field(default_factory=dict)
    enums: dict[str, EnumInfo] = field(default_factory=dict)
    consts: list[EnumInfo] = field(default_factory=list)  # Anonymous enums
    typedefs: dict[str, TypedefInfo] = field(default_factory=dict)
    macros: dict[str, MacroInfo] = field(default_factory=dict)

    @classmethod
    def from_clang_ast(cls, ast: dict, macro_defs: Optional[list['MacroDef']] = None) -> 'IR':
        """Create IR from a `clang -Xclang -ast-dump=json` translation unit"""
        ir = cls()
        reader = _AstReader(ir)
        for decl in ast.get('inner', []):
            reader.read_decl(decl)
        ir._read_macros(macro_defs or [])
        logger.debug('read %d structs, %d enums, %d typedefs, %d functions, %d macros',
                     len(ir.structs), len(ir.enums), len(ir.typedefs),
                     len(ir.funcs), len(ir.macros))
        return ir

    @property
    def is_empty(self) -> bool:
        return not (self.structs or self.funcs or self.enums or self.consts
                    or self.typedefs or self.macros)

    def enum_constants(self) -> dict[str, int]:
        """All enumerator values by name"""
        values = {}
        for enum in list(self.enums.values()) + self.consts:
            for item in enum.items:
                values.setdefault(item.name, item.value)
        return values

    def _read_macros(self, macro_defs: list['MacroDef']):
        """Evaluate macros in definition order

        Macros may refer to enumerators and to earlier macros.
        """
        scope: dict[str, MacroValue] = dict(self.enum_constants())
        for macro in macro_defs:
            value = evaluate(macro.body, scope)
            if value is None:
                continue
            scope[macro.name] = value
            self.macros[macro.name] = MacroInfo(name=macro.name, value=value, file=macro.file)


def _find_constant_value(node: dict) -> Optional[str]:
    """Recursively find ConstantExpr with evaluated value"""
    if node.get('kind') == 'ConstantExpr' and 'value' in node:
        return node['value']
    for child in node.get('inner', []):
        val = _find_constant_value(child)
        if val is not None:
            return val
    return None


def _owned_tag_ids(node: dict) -> list[str]:
    """Ids of tag declarations a typedef refers to, outermost first"""
    ids = []
    for key in ('ownedTagDecl', 'decl'):
        if key in node and 'id' in node[key]:
            ids.append(node[key]['id'])
    for child in node.get('inner', []):
        ids.extend(_owned_tag_ids(child))
    return ids


def _tag_name(qual_type: str, name: str) -> str:
    """Replace the first anonymous tag placeholder with a real name"""
    return _ANON_TAG_RE.sub(lambda m: f'{m.group(1)} {name}', qual_type, count=1)


TagInfo = Union[StructInfo, EnumInfo]


class _AstReader:
    """Walks top level declarations of the clang JSON AST

    clang elides `loc.file` when it is unchanged from the previous node, so
    the current file is carried from declaration to declaration.
    """

    def __init__(self, ir: IR):
        self.ir = ir
        self.current_file = ''
        self._anon: dict[str, TagInfo] = {}  # node id -> unnamed record/enum
        self._last_anon: Optional[TagInfo] = None
        # unnamed record -> [(field, nested record/enum, position)]
        self._nested: dict[int, list[tuple[FieldInfo, TagInfo, int]]] = {}

    def read_decl(self, decl: dict):
        self._track_file(decl)
        if decl.get('isImplicit'):
            return
        kind = decl.get('kind')
        if kind == 'RecordDecl':
            self._read_record(decl)
        elif kind == 'EnumDecl':
            self._read_enum(decl)
        elif kind == 'TypedefDecl':
            self._read_typedef(decl)
        elif kind == 'FunctionDecl':
            self._read_func(decl)

    def _track_file(self, decl: dict):
        loc = decl.get('loc', {})
        loc = loc.get('expansionLoc', loc)
        if 'file' in loc:
            self.current_file = loc['file']

    def _read_record(self, decl: dict) -> StructInfo:
        name = decl.get('name', '')
        kind = decl.get('tagUsed', 'struct')
        is_definition = decl.get('completeDefinition', False)

        if not name:
            struct = StructInfo(name='', fields=[], kind=kind,
                                is_opaque=not is_definition, file=self.current_file)
            if is_definition:
                self._read_fields(struct, decl)
            self._anon[decl.get('id', '')] = struct
            self._last_anon = struct
            return struct

        existing = self.ir.structs.get(name)
        if not is_definition:
            if existing is None:
                self.ir.structs[name] = StructInfo(name=name, fields=[], kind=kind,
                                                   is_opaque=True, file=self.current_file)
            return self.ir.structs[name]
        if existing is not None and not existing.is_opaque:
            return existing

        struct = StructInfo(name=name, fields=[], kind=kind, file=self.current_file)
        # Register before reading fields so self references resolve
        self.ir.structs[name] = struct
        self._read_fields(struct, decl)
        self._adopt_nested(struct)
        return struct

    def _read_fields(self, struct: StructInfo, decl: dict):
        pending: list[TagInfo] = []
        nested = []
        pad_count = 0
        for item in decl.get('inner', []):
            kind = item.get('kind')
            if kind == 'PackedAttr':
                struct.is_packed = True
            elif kind == 'RecordDecl':
                record = self._read_record(item)
                if not item.get('name'):
                    pending.append(record)
            elif kind == 'EnumDecl':
                enum = self._read_enum(item)
                if enum.is_anonymous:
                    pending.append(enum)
            elif kind == 'FieldDecl':
                field_type = item['type']['qualType']
                bit_width = None
                if item.get('isBitfield'):
                    value = _find_constant_value(item)
                    bit_width = int(value) if value is not None else None
                info = FieldInfo(name=item.get('name', ''), type=field_type,
                                 bit_width=bit_width)
                if _ANON_TAG_RE.search(field_type) and pending:
                    nested.append((info, pending.pop(0), len(nested) + 1))
                    if not info.name:
                        info.name = f'_anon{len(nested)}'
                        info.is_anonymous = True
                if not info.name:
                    if bit_width is None:
                        continue
                    pad_count += 1
                    info.name = f'_pad{pad_count}'
                struct.fields.append(info)
        if nested:
            self._nested[id(struct)] = nested

    def _adopt_nested(self, struct: StructInfo):
        """Name nested anonymous records and enums after their outer record"""
        for info, tag, position in self._nested.pop(id(struct), []):
            self._name_anonymous(tag, f'{struct.name}_anon{position}')
            info.type = _tag_name(info.type, tag.name)

    def _name_anonymous(self, tag: TagInfo, name: str):
        tag.name = name
        if isinstance(tag, StructInfo):
            self.ir.structs.setdefault(name, tag)
            self._adopt_nested(tag)
        else:
            tag.is_anonymous = False
            if tag in self.ir.consts:
                self.ir.consts.remove(tag)
            self.ir.enums.setdefault(name, tag)

    def _read_enum(self, decl: dict) -> EnumInfo:
        name = decl.get('name', '')
        items = []
        next_value = 0
        for item_decl in decl.get('inner', []):
            if item_decl.get('kind') != 'EnumConstantDecl':
                continue
            value = _find_constant_value(item_decl)
            if value is not None:
                next_value = int(value)
            items.append(EnumItem(name=item_decl['name'], value=next_value))
            next_value += 1

        if name:
            existing = self.ir.enums.get(name)
            if existing is not None and existing.items:
                return existing
            enum = EnumInfo(name=name, items=items, file=self.current_file)
            self.ir.enums[name] = enum
            return enum

        enum = EnumInfo(name='', items=items, is_anonymous=True, file=self.current_file)
        if items:
            self.ir.consts.append(enum)
        self._anon[decl.get('id', '')] = enum
        self._last_anon = enum
        return enum

    def _find_owned_tag(self, decl: dict, qual_type: str) -> Optional[TagInfo]:
        for tag_id in _owned_tag_ids(decl):
            if tag_id in self._anon:
                return self._anon.pop(tag_id)
        if _ANON_TAG_RE.search(qual_type):
            return self._last_anon
        return None

    def _read_typedef(self, decl: dict):
        name = decl['name']
        qual_type = decl['type']['qualType']

        target = self._find_owned_tag(decl, qual_type)
        if target is not None:
            self._last_anon = None
            bare = (_ANON_TAG_RE.fullmatch(qual_type.strip()) is not None
                    or qual_type in (name, f'struct {name}', f'union {name}', f'enum {name}'))
            if not target.name:
                self._name_anonymous(target, name if bare else f'{name}_anon')
            if bare and target.name == name:
                return
            if _ANON_TAG_RE.search(qual_type):
                qual_type = _tag_name(qual_type, target.name)
            elif bare:
                tag = target.kind if isinstance(target, StructInfo) else 'enum'
                qual_type = f'{tag} {target.name}'
        elif _ANON_TAG_RE.search(qual_type):
            logger.debug('typedef %s refers to an unknown anonymous type', name)
            return

        if qual_type in (f'struct {name}', f'union {name}', f'enum {name}'):
            return
        if name not in self.ir.typedefs:
            self.ir.typedefs[name] = TypedefInfo(name=name, type=qual_type, file=self.current_file)

    def _read_func(self, decl: dict):
        name = decl['name']
        if decl.get('storageClass') == 'static' or name in self.ir.funcs:
            return
        self.ir.funcs[name] = FuncInfo(
            name=name,
            type=decl['type']['qualType'],
            file=self.current_file,
        )
