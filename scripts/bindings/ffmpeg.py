"""
FFmpeg binding configuration

Configures the binding generator with FFmpeg-specific customizations:
- macro filtering and integer kinds for channel layouts and codec flags
- constified AV_CODEC_ID_FIRST_* markers
- suppression of long double and reserved-name declarations
"""

from typing import Optional

from avbindgen import Builder
from avbindgen.callbacks import (
    EnumVariantCustomBehavior, IntKind, MacroParsingBehavior, ParseCallbacks,
    fits_i32, fits_i64,
)


# ==============================================================================
# Policy Rules
# ==============================================================================

# Classification macros from math.h that collide with FFmpeg's own
IGNORED_MACROS = frozenset([
    'FP_INFINITE',
    'FP_NAN',
    'FP_NORMAL',
    'FP_SUBNORMAL',
    'FP_ZERO',
])

CHANNEL_PREFIX = 'AV_CH_'
CODEC_FLAG_PREFIXES = ('AV_CODEC_CAP_', 'AV_CODEC_FLAG_')
SIZE_MACROS = frozenset(['AV_ERROR_MAX_STRING_SIZE'])
CONSTIFIED_VARIANT_PREFIX = 'AV_CODEC_ID_FIRST_'

SIZE_KIND = IntKind.custom('c_size_t', False)


def will_parse_macro(name: str) -> MacroParsingBehavior:
    if name in IGNORED_MACROS:
        return MacroParsingBehavior.IGNORE
    return MacroParsingBehavior.DEFAULT


def int_macro(name: str, value: int) -> Optional[IntKind]:
    """Integer kind for a macro, first matching rule wins

    Examples:
        AV_CH_LOW_FREQUENCY_2, 0x0000000800000000 -> ULONGLONG
        AV_CODEC_FLAG_GLOBAL_HEADER, 1 << 22 -> UINT
        AV_ERROR_MAX_STRING_SIZE, 64 -> c_size_t
        LIBAVCODEC_VERSION_MAJOR, 58 -> INT
    """
    if name.startswith(CHANNEL_PREFIX) and fits_i64(value):
        return IntKind.ULONGLONG
    if name.startswith(CODEC_FLAG_PREFIXES) and fits_i32(value):
        return IntKind.UINT
    if name in SIZE_MACROS:
        return SIZE_KIND
    if fits_i32(value):
        return IntKind.INT
    return None


def enum_variant_behavior(enum_name: Optional[str], variant_name: str,
                          value: int) -> Optional[EnumVariantCustomBehavior]:
    # AV_CODEC_ID_FIRST_AUDIO etc. share values with real codec ids
    if variant_name.startswith(CONSTIFIED_VARIANT_PREFIX):
        return EnumVariantCustomBehavior.CONSTIFY
    return None


class FfmpegCallbacks(ParseCallbacks):
    """Stateless callbacks delegating to the module level rules"""

    def will_parse_macro(self, name):
        return will_parse_macro(name)

    def int_macro(self, name, value):
        return int_macro(name, value)

    def enum_variant_behavior(self, enum_name, variant_name, value):
        return enum_variant_behavior(enum_name, variant_name, value)


# ==============================================================================
# Suppression
# ==============================================================================

BLOCKLISTED_TYPES = ('max_align_t',)
OPAQUE_TYPES = ('__mingw_ldbl_type_t',)

# Reserved names
BLOCKLISTED_FUNCTION_PATTERNS = ('_.*',)

# Functions taking or returning long double
LONG_DOUBLE_FUNCTIONS = (
    'acoshl', 'acosl', 'asinhl', 'asinl', 'atan2l', 'atanhl', 'atanl',
    'cbrtl', 'ceill', 'copysignl', 'coshl', 'cosl', 'dreml', 'ecvt_r',
    'erfcl', 'erfl', 'exp2l', 'expl', 'expm1l', 'fabsl', 'fcvt_r', 'fdiml',
    'finitel', 'floorl', 'fmal', 'fmaxl', 'fminl', 'fmodl', 'frexpl',
    'gammal', 'hypotl', 'ilogbl', 'isinfl', 'isnanl', 'j0l', 'j1l', 'jnl',
    'ldexpl', 'lgammal', 'lgammal_r', 'llrintl', 'llroundl', 'log10l',
    'log1pl', 'log2l', 'logbl', 'logl', 'lrintl', 'lroundl', 'modfl', 'nanl',
    'nearbyintl', 'nextafterl', 'nexttoward', 'nexttowardf', 'nexttowardl',
    'powl', 'qecvt', 'qecvt_r', 'qfcvt', 'qfcvt_r', 'qgcvt', 'remainderl',
    'remquol', 'rintl', 'roundl', 'scalbl', 'scalblnl', 'scalbnl',
    'significandl', 'sinhl', 'sinl', 'sqrtl', 'strtold', 'tanhl', 'tanl',
    'tgammal', 'truncl', 'y0l', 'y1l', 'ynl',
)

# Static libraries the bindings link against, in order
LINK_LIBRARIES = ('avcodec', 'avfilter', 'avformat', 'avutil', 'swresample')


# ==============================================================================
# Configuration
# ==============================================================================

def configure(builder: Builder):
    """Configure builder with FFmpeg-specific settings"""

    for name in BLOCKLISTED_TYPES:
        builder.blocklist_type(name)
    for name in OPAQUE_TYPES:
        builder.opaque_type(name)
    for pattern in BLOCKLISTED_FUNCTION_PATTERNS:
        builder.blocklist_function(pattern)
    for name in LONG_DOUBLE_FUNCTIONS:
        builder.blocklist_function(name)

    (builder
        .intenum('.*')
        .prepend_enum_name(False)
        .derive_eq(True)
        .size_t_is_usize(True)
        .parse_callbacks(FfmpegCallbacks()))
