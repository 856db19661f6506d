"""
Macro module

Reads `#define` lines from `clang -E -dD` output and evaluates the
object-like ones as C constant expressions.
"""

import codecs
import logging
import re
from dataclasses import dataclass
from typing import Optional, Union

logger = logging.getLogger(__name__)

MacroValue = Union[int, float, bytes]

# Pseudo files clang uses for predefined and -D macros
BUILTIN_FILES = {'<built-in>', '<command line>', '<scratch space>'}

_LINE_MARKER_RE = re.compile(r'^#\s*(?:line\s+)?\d+\s+"((?:\\.|[^"\\])*)"')
_DEFINE_RE = re.compile(r'^#\s*define\s+([A-Za-z_][A-Za-z0-9_]*)(\(?)(.*)$')
_UNDEF_RE = re.compile(r'^#\s*undef\s+([A-Za-z_][A-Za-z0-9_]*)')

_TOKEN_RE = re.compile(r'''
    (?P<float>(?:\d+\.\d*|\.\d+)(?:[eE][+-]?\d+)?[fFlL]?|\d+[eE][+-]?\d+[fFlL]?)
  | (?P<int>(?:0[xX][0-9a-fA-F]+|0[bB][01]+|\d+)[uUlL]*)
  | (?P<char>(?:u8|u|U|L)?'(?:\\.|[^\\'])+')
  | (?P<string>(?:u8|u|U|L)?"(?:\\.|[^\\"])*")
  | (?P<ident>[A-Za-z_][A-Za-z0-9_]*)
  | (?P<op><<|>>|<=|>=|==|!=|&&|\|\||[-+*/%&|^~!<>()?:])
''', re.VERBOSE)

BINARY_PRECEDENCE = {
    '||': 1, '&&': 2, '|': 3, '^': 4, '&': 5,
    '==': 6, '!=': 6, '<': 7, '<=': 7, '>': 7, '>=': 7,
    '<<': 8, '>>': 8, '+': 9, '-': 9, '*': 10, '/': 10, '%': 10,
}


@dataclass
class MacroDef:
    """Object-like macro definition"""
    name: str
    body: str
    file: str


def read_macro_definitions(text: str) -> list[MacroDef]:
    """Collect object-like macro definitions from `clang -E -dD` output

    Definitions from builtin pseudo files, function-like macros, empty
    macros and macros that are #undef'd later are dropped. A redefinition
    replaces the earlier one.
    """
    defs: dict[str, MacroDef] = {}
    current_file = None
    for line in text.splitlines():
        if not line.startswith('#'):
            continue
        marker = _LINE_MARKER_RE.match(line)
        if marker:
            current_file = marker.group(1)
            continue
        undef = _UNDEF_RE.match(line)
        if undef:
            defs.pop(undef.group(1), None)
            continue
        define = _DEFINE_RE.match(line)
        if not define:
            continue
        name, paren, body = define.groups()
        if current_file is None or current_file in BUILTIN_FILES:
            continue
        defs.pop(name, None)
        if paren:
            continue
        body = body.strip()
        if body:
            defs[name] = MacroDef(name=name, body=body, file=current_file)
    return list(defs.values())


class MacroEvalError(ValueError):
    pass


def tokenize(body: str) -> list[tuple[str, str]]:
    tokens = []
    pos = 0
    body = body.strip()
    while pos < len(body):
        if body[pos].isspace():
            pos += 1
            continue
        m = _TOKEN_RE.match(body, pos)
        if not m:
            raise MacroEvalError(f'unsupported character {body[pos]!r}')
        tokens.append((m.lastgroup, m.group(m.lastgroup)))
        pos = m.end()
    return tokens


def wrap_i64(value: int) -> int:
    """Wrap an integer to signed 64 bits

    Examples:
        0xFFFFFFFFFFFFFFFF -> -1
        0x8000000000000000 -> -9223372036854775808
    """
    return ((value + (1 << 63)) % (1 << 64)) - (1 << 63)


def _decode_escapes(text: str) -> bytes:
    try:
        return codecs.decode(text.encode('utf-8'), 'unicode_escape').encode('latin-1')
    except (UnicodeError, ValueError) as e:
        raise MacroEvalError(f'bad escape sequence in {text!r}') from e


def _strip_prefix(literal: str, quote: str) -> str:
    return literal[literal.index(quote) + 1:-1]


class _Evaluator:
    """Pratt parser evaluating a C constant expression"""

    def __init__(self, tokens: list[tuple[str, str]], scope: dict[str, MacroValue]):
        self.tokens = tokens
        self.scope = scope
        self.pos = 0

    def peek(self) -> Optional[tuple[str, str]]:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def advance(self) -> tuple[str, str]:
        tok = self.peek()
        if tok is None:
            raise MacroEvalError('unexpected end of expression')
        self.pos += 1
        return tok

    def expect(self, op: str):
        kind, text = self.advance()
        if kind != 'op' or text != op:
            raise MacroEvalError(f'expected {op!r}, got {text!r}')

    def evaluate(self) -> MacroValue:
        value = self.expression(0)
        if self.peek() is not None:
            raise MacroEvalError(f'trailing token {self.peek()[1]!r}')
        return value

    def expression(self, min_prec: int) -> MacroValue:
        left = self.unary()
        while True:
            tok = self.peek()
            if tok is None or tok[0] != 'op':
                break
            op = tok[1]
            if op == '?' and min_prec == 0:
                self.advance()
                then = self.expression(0)
                self.expect(':')
                other = self.expression(0)
                left = then if left else other
                continue
            prec = BINARY_PRECEDENCE.get(op)
            if prec is None or prec < min_prec:
                break
            self.advance()
            right = self.expression(prec + 1)
            left = self.binary(op, left, right)
        return left

    def unary(self) -> MacroValue:
        kind, text = self.advance()
        if kind == 'op':
            if text == '(':
                value = self.expression(0)
                self.expect(')')
                return value
            if text in ('-', '+', '~', '!'):
                value = self.numeric(self.unary())
                if text == '-':
                    return -value
                if text == '+':
                    return value
                if text == '!':
                    return int(not value)
                if isinstance(value, float):
                    raise MacroEvalError('~ applied to a float')
                return ~value
            raise MacroEvalError(f'unexpected operator {text!r}')
        if kind == 'int':
            return self.int_literal(text)
        if kind == 'float':
            return float(text.rstrip('fFlL'))
        if kind == 'char':
            raw = _decode_escapes(_strip_prefix(text, "'"))
            return int.from_bytes(raw, 'big')
        if kind == 'string':
            value = _decode_escapes(_strip_prefix(text, '"'))
            while self.peek() is not None and self.peek()[0] == 'string':
                value += _decode_escapes(_strip_prefix(self.advance()[1], '"'))
            return value
        if text in self.scope:
            return self.scope[text]
        raise MacroEvalError(f'unknown identifier {text!r}')

    @staticmethod
    def int_literal(text: str) -> int:
        digits = text.rstrip('uUlL')
        if digits[:2] in ('0x', '0X'):
            return int(digits[2:], 16)
        if digits[:2] in ('0b', '0B'):
            return int(digits[2:], 2)
        if len(digits) > 1 and digits[0] == '0':
            return int(digits, 8)
        return int(digits)

    @staticmethod
    def numeric(value: MacroValue) -> Union[int, float]:
        if isinstance(value, bytes):
            raise MacroEvalError('string used in arithmetic')
        return value

    def binary(self, op: str, left: MacroValue, right: MacroValue) -> MacroValue:
        left = self.numeric(left)
        right = self.numeric(right)
        if op == '&&':
            return int(bool(left) and bool(right))
        if op == '||':
            return int(bool(left) or bool(right))
        if op in ('==', '!=', '<', '<=', '>', '>='):
            return int({
                '==': left == right, '!=': left != right,
                '<': left < right, '<=': left <= right,
                '>': left > right, '>=': left >= right,
            }[op])
        if op == '+':
            return left + right
        if op == '-':
            return left - right
        if op == '*':
            return left * right
        if op in ('/', '%'):
            if right == 0:
                raise MacroEvalError('division by zero')
            if isinstance(left, float) or isinstance(right, float):
                if op == '%':
                    raise MacroEvalError('% applied to a float')
                return left / right
            quotient = abs(left) // abs(right)
            if (left < 0) != (right < 0):
                quotient = -quotient
            return quotient if op == '/' else left - quotient * right
        if isinstance(left, float) or isinstance(right, float):
            raise MacroEvalError(f'{op} applied to a float')
        if op in ('<<', '>>') and not 0 <= right < 128:
            raise MacroEvalError(f'shift count {right} out of range')
        if op == '<<':
            return wrap_i64(left << right)
        if op == '>>':
            return left >> right
        if op == '&':
            return left & right
        if op == '|':
            return left | right
        return left ^ right


def evaluate(body: str, scope: Optional[dict[str, MacroValue]] = None) -> Optional[MacroValue]:
    """Evaluate a macro body, None if it is not a constant expression

    Examples:
        '0x0000000800000000ULL' -> 34359738368
        '(AV_CH_FRONT_LEFT|AV_CH_FRONT_RIGHT)' -> 3 (with both in scope)
        '"lavc" "58"' -> b'lavc58'
    """
    try:
        value = _Evaluator(tokenize(body), scope or {}).evaluate()
    except (ValueError, IndexError) as e:
        logger.debug('macro body %r not evaluated: %s', body, e)
        return None
    if isinstance(value, int):
        return wrap_i64(value)
    return value
