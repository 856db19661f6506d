import pytest

from avbindgen import Builder
from avbindgen.callbacks import (
    EnumVariantCustomBehavior, IntKind, MacroParsingBehavior, ParseCallbacks,
)
from bindings import ffmpeg


@pytest.mark.parametrize("name", ["FP_INFINITE", "FP_NAN", "FP_NORMAL", "FP_SUBNORMAL", "FP_ZERO"])
def test_math_classification_macros_are_ignored(name) -> None:
    assert ffmpeg.will_parse_macro(name) is MacroParsingBehavior.IGNORE


@pytest.mark.parametrize("name", ["AV_CH_FRONT_LEFT", "FP_ILOGB0", "FP_NANX", "fp_nan", ""])
def test_other_macros_are_parsed(name) -> None:
    assert ffmpeg.will_parse_macro(name) is MacroParsingBehavior.DEFAULT


def test_channel_macros_are_unsigned_64_bit() -> None:
    assert ffmpeg.int_macro("AV_CH_FRONT_LEFT", 1) == IntKind.ULONGLONG
    assert ffmpeg.int_macro("AV_CH_LOW_FREQUENCY_2", 0x0000000800000000) == IntKind.ULONGLONG
    # 0x8000000000000000ULL arrives wrapped to i64 min
    assert ffmpeg.int_macro("AV_CH_LAYOUT_NATIVE", -(1 << 63)) == IntKind.ULONGLONG


def test_channel_rule_wins_over_default_for_small_values() -> None:
    assert ffmpeg.int_macro("AV_CH_LAYOUT_MONO", 4) == IntKind.ULONGLONG


def test_codec_flags_and_caps_are_unsigned_32_bit() -> None:
    assert ffmpeg.int_macro("AV_CODEC_FLAG_GLOBAL_HEADER", 1 << 22) == IntKind.UINT
    assert ffmpeg.int_macro("AV_CODEC_CAP_DELAY", 1 << 5) == IntKind.UINT
    assert ffmpeg.int_macro("AV_CODEC_FLAG2_FAST", 1) == IntKind.INT


def test_codec_flag_out_of_i32_range_falls_through_to_exclusion() -> None:
    assert ffmpeg.int_macro("AV_CODEC_FLAG_HUGE", 1 << 31) is None


def test_error_string_size_is_pointer_sized_unsigned() -> None:
    kind = ffmpeg.int_macro("AV_ERROR_MAX_STRING_SIZE", 64)
    assert kind == IntKind.custom("c_size_t", False)
    assert kind.bits is None


def test_default_int_and_exclusion() -> None:
    assert ffmpeg.int_macro("LIBAVCODEC_VERSION_MAJOR", 58) == IntKind.INT
    assert ffmpeg.int_macro("AV_NEG", -(1 << 31)) == IntKind.INT
    assert ffmpeg.int_macro("AV_TOO_BIG", 1 << 31) is None
    assert ffmpeg.int_macro("AV_TOO_SMALL", -(1 << 31) - 1) is None


def test_codec_id_first_markers_are_constified() -> None:
    assert (ffmpeg.enum_variant_behavior("AVCodecID", "AV_CODEC_ID_FIRST_AUDIO", 0x10000)
            is EnumVariantCustomBehavior.CONSTIFY)
    assert (ffmpeg.enum_variant_behavior(None, "AV_CODEC_ID_FIRST_SUBTITLE", 0x17000)
            is EnumVariantCustomBehavior.CONSTIFY)
    assert ffmpeg.enum_variant_behavior("AVCodecID", "AV_CODEC_ID_PCM_S16LE", 0x10000) is None
    assert ffmpeg.enum_variant_behavior("AVCodecID", "AV_CODEC_ID_FIRST", 0) is None


def test_callbacks_delegate_to_rules() -> None:
    callbacks = ffmpeg.FfmpegCallbacks()
    assert isinstance(callbacks, ParseCallbacks)
    assert callbacks.will_parse_macro("FP_NAN") is MacroParsingBehavior.IGNORE
    assert callbacks.int_macro("AV_CH_FRONT_LEFT", 1) == IntKind.ULONGLONG
    assert (callbacks.enum_variant_behavior("AVCodecID", "AV_CODEC_ID_FIRST_AUDIO", 1)
            is EnumVariantCustomBehavior.CONSTIFY)


def test_long_double_function_list() -> None:
    assert len(ffmpeg.LONG_DOUBLE_FUNCTIONS) == 81
    assert len(set(ffmpeg.LONG_DOUBLE_FUNCTIONS)) == 81
    assert "sqrtl" in ffmpeg.LONG_DOUBLE_FUNCTIONS
    assert "strtold" in ffmpeg.LONG_DOUBLE_FUNCTIONS


def test_configure_registers_suppression_and_options() -> None:
    builder = Builder()
    ffmpeg.configure(builder)

    assert builder.blocklisted_types == {"max_align_t"}
    assert builder.opaque_types == {"__mingw_ldbl_type_t"}
    assert builder.blocklisted_functions[0] == "_.*"
    assert set(builder.blocklisted_functions[1:]) == set(ffmpeg.LONG_DOUBLE_FUNCTIONS)
    assert builder.intenum_patterns == [".*"]
    assert builder.prepend_enum_names is False
    assert builder.derive_eq_enabled is True
    assert builder.size_t_usize is True
    assert isinstance(builder.callbacks, ffmpeg.FfmpegCallbacks)


def test_link_libraries_order() -> None:
    assert ffmpeg.LINK_LIBRARIES == ("avcodec", "avfilter", "avformat", "avutil", "swresample")
