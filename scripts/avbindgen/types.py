"""
Type conversion module

Parses clang qualType strings and converts them to ctypes expressions.
"""

import re
from dataclasses import dataclass, field
from typing import Callable, Optional, Union, TYPE_CHECKING

if TYPE_CHECKING:
    from .ir import IR

QUALIFIERS = {
    'const', 'volatile', 'restrict', '__restrict', '__restrict__',
    '_Nonnull', '_Nullable', '_Null_unspecified', '_Atomic', '__unaligned',
}
TAGS = {'struct', 'union', 'enum'}

# C builtin spelling (canonical word order) -> ctypes
BUILTIN_CTYPES = {
    '_Bool': 'ctypes.c_bool',
    'bool': 'ctypes.c_bool',
    'char': 'ctypes.c_char',
    'signed char': 'ctypes.c_byte',
    'unsigned char': 'ctypes.c_ubyte',
    'short': 'ctypes.c_short',
    'unsigned short': 'ctypes.c_ushort',
    'int': 'ctypes.c_int',
    'unsigned': 'ctypes.c_uint',
    'long': 'ctypes.c_long',
    'unsigned long': 'ctypes.c_ulong',
    'long long': 'ctypes.c_longlong',
    'unsigned long long': 'ctypes.c_ulonglong',
    'float': 'ctypes.c_float',
    'double': 'ctypes.c_double',
    'long double': 'ctypes.c_longdouble',
    '__int128': '(ctypes.c_ubyte * 16)',
    'unsigned __int128': '(ctypes.c_ubyte * 16)',
    '__int128_t': '(ctypes.c_ubyte * 16)',
    '__uint128_t': '(ctypes.c_ubyte * 16)',
    '__builtin_va_list': 'ctypes.c_void_p',
    'va_list': 'ctypes.c_void_p',
    '__gnuc_va_list': 'ctypes.c_void_p',
}

_TOKEN_RE = re.compile(r'\s*(\.\.\.|[A-Za-z_][A-Za-z0-9_]*|\d+|[*()\[\],])')


@dataclass
class Named:
    """Builtin, typedef or tagged type"""
    name: str
    tag: Optional[str] = None


@dataclass
class Pointer:
    target: 'CType'


@dataclass
class Array:
    elem: 'CType'
    size: Optional[int] = None


@dataclass
class Function:
    result: 'CType'
    params: list['CType'] = field(default_factory=list)
    is_variadic: bool = False


CType = Union[Named, Pointer, Array, Function]


class TypeParseError(ValueError):
    pass


def canonical_builtin(words: list[str]) -> str:
    """Normalize builtin type words

    Examples:
        ['long', 'unsigned', 'int'] -> 'unsigned long'
        ['signed', 'char'] -> 'signed char'
        ['short', 'int'] -> 'short'
    """
    words = list(words)
    unsigned = 'unsigned' in words
    words = [w for w in words if w != 'unsigned']
    if 'char' not in words:
        words = [w for w in words if w != 'signed']
    if 'int' in words and len(words) > 1:
        words.remove('int')
    if not words:
        words = ['int']
    if unsigned:
        if words == ['int']:
            return 'unsigned'
        return 'unsigned ' + ' '.join(sorted(words, key=_word_rank))
    return ' '.join(sorted(words, key=_word_rank))


def _word_rank(word: str) -> int:
    return {'signed': 0, 'long': 1, 'short': 1}.get(word, 2)


class _Parser:
    """Recursive descent parser for C abstract declarators"""

    def __init__(self, text: str):
        self.text = text
        self.tokens = self._tokenize(text)
        self.pos = 0

    @staticmethod
    def _tokenize(text: str) -> list[str]:
        tokens = []
        pos = 0
        text = text.rstrip()
        while pos < len(text):
            m = _TOKEN_RE.match(text, pos)
            if not m:
                raise TypeParseError(f'unexpected character in type {text!r} at {pos}')
            tokens.append(m.group(1))
            pos = m.end()
        return tokens

    def peek(self, offset: int = 0) -> Optional[str]:
        idx = self.pos + offset
        return self.tokens[idx] if idx < len(self.tokens) else None

    def advance(self) -> str:
        tok = self.peek()
        if tok is None:
            raise TypeParseError(f'unexpected end of type {self.text!r}')
        self.pos += 1
        return tok

    def expect(self, tok: str):
        got = self.advance()
        if got != tok:
            raise TypeParseError(f'expected {tok!r}, got {got!r} in {self.text!r}')

    def parse(self) -> CType:
        result = self.type_name()
        if self.peek() is not None:
            raise TypeParseError(f'trailing tokens in type {self.text!r}')
        return result

    def type_name(self) -> CType:
        base = self.specifiers()
        return self.declarator()(base)

    def specifiers(self) -> Named:
        tag = None
        words = []
        while True:
            tok = self.peek()
            if tok is None or not (tok[0].isalpha() or tok[0] == '_'):
                break
            self.advance()
            if tok in QUALIFIERS:
                continue
            if tok in TAGS:
                tag = tok
                continue
            words.append(tok)
        if not words:
            raise TypeParseError(f'missing type name in {self.text!r}')
        if tag or len(words) == 1 and words[0] not in ('unsigned', 'signed', 'short', 'long'):
            return Named(' '.join(words), tag)
        return Named(canonical_builtin(words))

    def declarator(self) -> Callable[[CType], CType]:
        if self.peek() == '*':
            self.advance()
            while self.peek() in QUALIFIERS:
                self.advance()
            inner = self.declarator()
            return lambda t: inner(Pointer(t))
        return self.direct_declarator()

    def direct_declarator(self) -> Callable[[CType], CType]:
        inner = None
        if self.peek() == '(' and self.peek(1) in ('*', '(', '['):
            self.advance()
            inner = self.declarator()
            self.expect(')')
        suffixes = []
        while self.peek() in ('[', '('):
            if self.advance() == '[':
                size = None
                if self.peek() != ']':
                    size = int(self.advance())
                self.expect(']')
                suffixes.append(('array', size))
            else:
                suffixes.append(('func',) + self.parameters())

        def apply(t: CType) -> CType:
            for suffix in reversed(suffixes):
                if suffix[0] == 'array':
                    t = Array(t, suffix[1])
                else:
                    t = Function(t, suffix[1], suffix[2])
            return inner(t) if inner else t
        return apply

    def parameters(self) -> tuple[list[CType], bool]:
        params = []
        variadic = False
        if self.peek() == ')':
            self.advance()
            return params, variadic
        while True:
            if self.peek() == '...':
                self.advance()
                variadic = True
            else:
                params.append(self.type_name())
            tok = self.advance()
            if tok == ')':
                break
            if tok != ',':
                raise TypeParseError(f'expected , or ) in {self.text!r}')
        if len(params) == 1 and params[0] == Named('void'):
            params = []
        return params, variadic


def parse_c_type(qual_type: str) -> CType:
    """Parse a clang qualType string

    Examples:
        'const char *' -> Pointer(Named('char'))
        'int (*)(void *, int)' -> Pointer(Function(Named('int'), [...]))
        'uint8_t *[8]' -> Array(Pointer(Named('uint8_t')), 8)
    """
    return _Parser(qual_type).parse()


class TypeConverter:
    """Converts parsed C types to ctypes expressions"""

    def __init__(self, ir: 'IR', size_t_is_usize: bool = True,
                 blocklisted: Optional[set[str]] = None):
        self.ir = ir
        self.size_t_is_usize = size_t_is_usize
        self.blocklisted = blocklisted or set()

    def ctype(self, t: Union[str, CType], is_return: bool = False) -> str:
        """Get the ctypes expression for a C type"""
        if isinstance(t, str):
            t = parse_c_type(t)

        if isinstance(t, Named):
            if t.name == 'void' and t.tag is None:
                return 'None' if is_return else 'ctypes.c_void_p'
            return self._named(t)

        if isinstance(t, Array):
            elem = self.ctype(t.elem)
            return f'({elem} * {t.size or 0})'

        if isinstance(t, Function):
            return self._function(t)

        # Pointer
        target = t.target
        if isinstance(target, Function):
            return self._function(target)
        if isinstance(target, Named):
            if target.tag is None and target.name == 'char':
                return 'ctypes.c_char_p'
            if target.tag is None and target.name == 'void':
                return 'ctypes.c_void_p'
            if not self._is_known(target):
                return 'ctypes.c_void_p'
            typedef = self._typedef_target(target)
            if isinstance(typedef, Function):
                return self._named(target)
        return f'ctypes.POINTER({self.ctype(target)})'

    def value_deps(self, t: Union[str, CType]) -> set[str]:
        """Names of records that must be complete before a value of type t"""
        if isinstance(t, str):
            t = parse_c_type(t)
        if isinstance(t, Array):
            return self.value_deps(t.elem)
        if not isinstance(t, Named):
            return set()
        if t.tag is None and t.name in self.ir.typedefs:
            return self.value_deps(self.ir.typedefs[t.name].type)
        if t.tag in (None, 'struct', 'union') and t.name in self.ir.structs:
            return {t.name}
        return set()

    def _function(self, t: Function) -> str:
        result = self.ctype(t.result, is_return=True)
        args = [self.ctype(p) for p in t.params]
        return f'ctypes.CFUNCTYPE({", ".join([result] + args)})'

    def _typedef_target(self, t: Named) -> Optional[CType]:
        if t.tag is not None or t.name not in self.ir.typedefs:
            return None
        return parse_c_type(self.ir.typedefs[t.name].type)

    def _is_known(self, t: Named) -> bool:
        if t.name in self.blocklisted:
            return False
        if t.tag in ('struct', 'union'):
            return t.name in self.ir.structs
        if t.tag == 'enum':
            return True
        return (t.name in self.ir.typedefs or t.name in self.ir.structs
                or t.name in BUILTIN_CTYPES or t.name == 'size_t')

    def _named(self, t: Named) -> str:
        if t.tag == 'enum':
            enum = self.ir.enums.get(t.name)
            return enum.ctype if enum else 'ctypes.c_int'
        if t.tag in ('struct', 'union'):
            if t.name in self.ir.structs and t.name not in self.blocklisted:
                return t.name
            raise TypeParseError(f'record {t.tag} {t.name} is not translated')
        if t.name == 'size_t' and self.size_t_is_usize:
            return 'ctypes.c_size_t'
        if t.name in self.blocklisted:
            raise TypeParseError(f'type {t.name} is blocklisted')
        if t.name in self.ir.typedefs:
            target = self._typedef_target(t)
            if isinstance(target, Array) and self.value_deps(target):
                # Arrays of records are only usable once the records are complete
                return self.ctype(target)
            return t.name
        if t.name in self.ir.structs:
            return t.name
        if t.name in self.ir.enums:
            return self.ir.enums[t.name].ctype
        if t.name in BUILTIN_CTYPES:
            return BUILTIN_CTYPES[t.name]
        raise TypeParseError(f'unknown type {t.name}')
