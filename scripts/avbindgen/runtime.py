"""
Runtime support for generated binding modules

Generated modules import this as `_rt`. It provides the derive/serde
decorators, feature gated decorators and shared library loading.
"""

import ctypes
import enum
import logging

logger = logging.getLogger(__name__)

_RECORD_TYPES = (ctypes.Structure, ctypes.Union)


def as_kebab_case(name: str) -> str:
    """Kebab-case spelling of a C identifier

    Examples:
        AV_CODEC_ID_H264 -> av-codec-id-h264
        _INTERNAL_ -> internal
    """
    return name.strip('_').lower().replace('_', '-')


def as_snake_case(name: str) -> str:
    return name.strip('_').lower()


RENAME_RULES = {
    'kebab-case': as_kebab_case,
    'snake_case': as_snake_case,
    'lowercase': str.lower,
}


def _rename(cls, name: str) -> str:
    rule = getattr(cls, '__serde_rename__', None)
    return RENAME_RULES[rule](name) if rule else name


def _record_eq(self, other):
    if type(self) is not type(other):
        return NotImplemented
    return all(_value(getattr(self, f[0])) == _value(getattr(other, f[0]))
               for f in self._fields_)


def _record_repr(self):
    fields = ', '.join(f'{f[0]}={_value(getattr(self, f[0]))!r}' for f in self._fields_)
    return f'{type(self).__name__}({fields})'


def _value(value):
    """Plain Python value of a field, arrays become lists"""
    if isinstance(value, ctypes.Array):
        return [_value(v) for v in value]
    return value


def _serialize(self):
    if isinstance(self, enum.Enum):
        return _rename(type(self), self.name)
    return {_rename(type(self), f[0]): _serialize_value(getattr(self, f[0]))
            for f in self._fields_}


def _serialize_value(value):
    if isinstance(value, _RECORD_TYPES + (enum.Enum,)) and hasattr(value, 'serialize'):
        return value.serialize()
    if isinstance(value, ctypes.Array):
        return [_serialize_value(v) for v in value]
    return value


def _deserialize(cls, data):
    if issubclass(cls, enum.Enum):
        for member in cls:
            if _rename(cls, member.name) == data:
                return member
        raise ValueError(f'{data!r} is not a valid {cls.__name__}')
    obj = cls()
    for f in cls._fields_:
        key = _rename(cls, f[0])
        if key in data:
            ftype = f[1]
            value = data[key]
            if isinstance(value, dict) and hasattr(ftype, 'deserialize'):
                value = ftype.deserialize(value)
            elif isinstance(value, list):
                value = ftype(*value)
            setattr(obj, f[0], value)
    return obj


def derive(*traits: str):
    """Class decorator recording derived traits

    `eq` and `debug` add field-wise __eq__ and __repr__ to records,
    `serialize` and `deserialize` add the serde methods.
    """
    def decorator(cls):
        cls.__derives__ = frozenset(getattr(cls, '__derives__', ())) | frozenset(traits)
        if issubclass(cls, _RECORD_TYPES):
            if 'eq' in traits:
                cls.__eq__ = _record_eq
                cls.__hash__ = None
            if 'debug' in traits:
                cls.__repr__ = _record_repr
        if 'serialize' in traits:
            cls.serialize = _serialize
        if 'deserialize' in traits:
            cls.deserialize = classmethod(_deserialize)
        return cls
    return decorator


def serde(rename_all: str = None):
    """Class decorator selecting how names are spelled when serialized"""
    if rename_all is not None and rename_all not in RENAME_RULES:
        raise ValueError(f'unknown rename rule {rename_all!r}')

    def decorator(cls):
        cls.__serde_rename__ = rename_all
        return cls
    return decorator


def cfg_attr(features):
    """Build a decorator factory applying decorators only for enabled features"""
    features = frozenset(features)

    def apply(feature: str, decorator):
        if feature in features:
            return decorator
        return lambda cls: cls
    return apply


def prototype(table: dict, name: str, restype, argtypes, variadic: bool = False):
    """Record a function prototype for load_library()"""
    table[name] = (restype, list(argtypes), variadic)


def opaque_fields(layout) -> list:
    """Fields of a byte blob with the size and alignment of layout

    The zero length array of layout only contributes its alignment.
    """
    return [('_opaque_align', layout * 0),
            ('_opaque_blob', ctypes.c_ubyte * ctypes.sizeof(layout))]


def load_library(path, table: dict) -> ctypes.CDLL:
    """Open a shared library and bind the recorded prototypes

    Symbols the library does not export are skipped.
    """
    lib = ctypes.CDLL(str(path))
    missing = 0
    for name, (restype, argtypes, variadic) in table.items():
        try:
            func = getattr(lib, name)
        except AttributeError:
            missing += 1
            continue
        func.restype = restype
        if not variadic:
            func.argtypes = argtypes
    if missing:
        logger.debug('%s: %d of %d functions not exported', path, missing, len(table))
    return lib
