import ctypes
import ctypes.util
import enum

import pytest

from avbindgen import runtime as rt


def test_as_kebab_case() -> None:
    assert rt.as_kebab_case("AV_CODEC_ID_H264") == "av-codec-id-h264"
    assert rt.as_kebab_case("AVMEDIA_TYPE_NB") == "avmedia-type-nb"
    assert rt.as_kebab_case("_INTERNAL_") == "internal"


@rt.derive("debug", "eq")
class Rational(ctypes.Structure):
    pass


Rational._fields_ = [("num", ctypes.c_int), ("den", ctypes.c_int)]


@rt.derive("debug", "eq", "serialize", "deserialize")
class Packet(ctypes.Structure):
    pass


Packet._fields_ = [("pts", ctypes.c_longlong), ("time_base", Rational),
                   ("data", ctypes.c_int * 3)]


@rt.derive("serialize", "deserialize")
@rt.serde(rename_all="kebab-case")
class MediaType(enum.IntEnum):
    AVMEDIA_TYPE_VIDEO = 0
    AVMEDIA_TYPE_AUDIO = 1


def test_record_eq_and_repr() -> None:
    assert Rational(1, 2) == Rational(1, 2)
    assert Rational(1, 2) != Rational(2, 1)
    assert repr(Rational(3, 4)) == "Rational(num=3, den=4)"
    assert Rational.__hash__ is None
    assert Rational.__derives__ == frozenset(["debug", "eq"])


def test_record_eq_compares_arrays_by_value() -> None:
    a = Packet(1, Rational(1, 25), (ctypes.c_int * 3)(1, 2, 3))
    b = Packet(1, Rational(1, 25), (ctypes.c_int * 3)(1, 2, 3))
    assert a == b
    b.data[2] = 4
    assert a != b


def test_enum_serde_round_trip() -> None:
    assert MediaType.AVMEDIA_TYPE_AUDIO.serialize() == "avmedia-type-audio"
    assert MediaType.deserialize("avmedia-type-video") is MediaType.AVMEDIA_TYPE_VIDEO
    with pytest.raises(ValueError):
        MediaType.deserialize("AVMEDIA_TYPE_VIDEO")


def test_record_serialize() -> None:
    packet = Packet(7, Rational(1, 25), (ctypes.c_int * 3)(1, 2, 3))
    assert packet.serialize() == {
        "pts": 7,
        "time_base": Rational(1, 25),
        "data": [1, 2, 3],
    }
    restored = Packet.deserialize({"pts": 7, "data": [4, 5, 6]})
    assert restored.pts == 7
    assert list(restored.data) == [4, 5, 6]


def test_serde_rejects_unknown_rule() -> None:
    with pytest.raises(ValueError):
        rt.serde(rename_all="SCREAMING")


def test_cfg_attr_applies_only_enabled_features() -> None:
    def mark(cls):
        cls.marked = True
        return cls

    enabled = rt.cfg_attr(["serde"])
    disabled = rt.cfg_attr([])

    @enabled("serde", mark)
    class A:
        pass

    @disabled("serde", mark)
    class B:
        pass

    assert A.marked
    assert not hasattr(B, "marked")


def test_prototype_table() -> None:
    table = {}
    rt.prototype(table, "av_log", None, [ctypes.c_void_p, ctypes.c_int], variadic=True)
    rt.prototype(table, "av_version_info", ctypes.c_char_p, [])
    assert table == {
        "av_log": (None, [ctypes.c_void_p, ctypes.c_int], True),
        "av_version_info": (ctypes.c_char_p, [], False),
    }


def test_opaque_fields_match_layout() -> None:
    class Layout(ctypes.Structure):
        _fields_ = [("a", ctypes.c_double), ("b", ctypes.c_char)]

    class Blob(ctypes.Structure):
        _fields_ = rt.opaque_fields(Layout)

    assert ctypes.sizeof(Blob) == ctypes.sizeof(Layout)
    assert ctypes.alignment(Blob) == ctypes.alignment(Layout)
    assert bytes(Blob()._opaque_blob) == bytes(ctypes.sizeof(Layout))


@pytest.mark.skipif(ctypes.util.find_library("c") is None, reason="no C library found")
def test_load_library_binds_exported_and_skips_missing() -> None:
    table = {}
    rt.prototype(table, "abs", ctypes.c_int, [ctypes.c_int])
    rt.prototype(table, "printf", ctypes.c_int, [ctypes.c_char_p], variadic=True)
    rt.prototype(table, "av_not_exported_anywhere", None, [])

    lib = rt.load_library(ctypes.util.find_library("c"), table)

    assert tuple(lib.abs.argtypes) == (ctypes.c_int,)
    assert lib.abs(-5) == 5
    assert lib.printf.restype is ctypes.c_int
    assert lib.printf.argtypes is None
