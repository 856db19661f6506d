"""
Error types

Every error raised here is fatal for the build; there is no recovery tier.
"""


class BindgenError(Exception):
    """Base class for all build-fatal generator errors"""


class ConfigError(BindgenError):
    """A required environment input is missing or malformed"""


class TranslationError(BindgenError):
    """clang could not parse the headers or produced no declarations"""


class OutputError(BindgenError):
    """The generated module could not be written"""
