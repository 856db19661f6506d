"""
Parse callbacks module

Hooks consulted while translating headers. A library-specific subclass of
ParseCallbacks decides how macros, macro integer kinds and enum variants
are represented in the generated module.
"""

import enum
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

INT32_MIN = -(1 << 31)
INT32_MAX = (1 << 31) - 1
INT64_MIN = -(1 << 63)
INT64_MAX = (1 << 63) - 1


def fits_i32(value: int) -> bool:
    return INT32_MIN <= value <= INT32_MAX


def fits_i64(value: int) -> bool:
    return INT64_MIN <= value <= INT64_MAX


class MacroParsingBehavior(enum.Enum):
    """Whether a macro takes part in translation at all"""
    DEFAULT = 'default'
    IGNORE = 'ignore'


class EnumVariantCustomBehavior(enum.Enum):
    """Override for how a single enum variant is emitted"""
    CONSTIFY = 'constify'   # module level constant instead of enum member
    HIDE = 'hide'           # dropped entirely


@dataclass(frozen=True)
class IntKind:
    """Target integer representation of a macro constant

    bits is None for pointer-sized kinds (resolved by the host).
    """
    ctype: str
    is_signed: bool
    bits: Optional[int] = 32

    @classmethod
    def custom(cls, ctype: str, is_signed: bool) -> 'IntKind':
        """Named ctypes integer type, pointer sized"""
        return cls(ctype=ctype, is_signed=is_signed, bits=None)

    def width(self, pointer_bits: int = 64) -> int:
        return self.bits if self.bits is not None else pointer_bits

    def fits(self, value: int, pointer_bits: int = 64) -> bool:
        """Check if value is representable without wrapping"""
        bits = self.width(pointer_bits)
        if self.is_signed:
            return -(1 << (bits - 1)) <= value < (1 << (bits - 1))
        return 0 <= value < (1 << bits)

    def normalize(self, value: int, pointer_bits: int = 64) -> int:
        """Wrap value into this kind's range (two's complement)

        Examples (ULONGLONG):
            -1 -> 18446744073709551615
            5 -> 5
        """
        bits = self.width(pointer_bits)
        value &= (1 << bits) - 1
        if self.is_signed and value >= 1 << (bits - 1):
            value -= 1 << bits
        return value


IntKind.INT = IntKind('c_int', True, 32)
IntKind.UINT = IntKind('c_uint', False, 32)
IntKind.ULONGLONG = IntKind('c_ulonglong', False, 64)


class ParseCallbacks(ABC):
    """Translation policy consulted by the generator

    Implementations must be free of mutable state so that each rule can be
    unit tested without running clang.
    """

    @abstractmethod
    def will_parse_macro(self, name: str) -> MacroParsingBehavior:
        """Decide whether macro `name` is translated"""
        pass

    @abstractmethod
    def int_macro(self, name: str, value: int) -> Optional[IntKind]:
        """Pick the integer kind for an integer macro, None for the default"""
        pass

    @abstractmethod
    def enum_variant_behavior(self, enum_name: Optional[str], variant_name: str,
                              value: int) -> Optional[EnumVariantCustomBehavior]:
        """Override emission of one enum variant, None keeps it a member"""
        pass


class DefaultCallbacks(ParseCallbacks):
    """Callbacks that never override anything"""

    def will_parse_macro(self, name: str) -> MacroParsingBehavior:
        return MacroParsingBehavior.DEFAULT

    def int_macro(self, name: str, value: int) -> Optional[IntKind]:
        return None

    def enum_variant_behavior(self, enum_name, variant_name, value):
        return None
