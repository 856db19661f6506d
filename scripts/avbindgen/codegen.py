"""
Code generation utilities

Provides helpers for generating Python source.
"""

import keyword


class CodeGen:
    """Code generation helper with indentation support"""

    def __init__(self):
        self._lines: list[str] = []
        self._indent: int = 0
        self._indent_str: str = '    '  # 4 spaces

    def line(self, text: str = ''):
        """Add a line with current indentation"""
        if text:
            self._lines.append(self._indent_str * self._indent + text)
        else:
            self._lines.append('')

    def lines(self, *texts: str):
        """Add multiple lines"""
        for text in texts:
            self.line(text)

    def indent(self):
        """Increase indentation"""
        self._indent += 1

    def dedent(self):
        """Decrease indentation"""
        if self._indent > 0:
            self._indent -= 1

    def block(self, header: str, footer: str = ''):
        """Context manager for code blocks"""
        return _BlockContext(self, header, footer)

    def output(self) -> str:
        """Get generated code as string"""
        return '\n'.join(self._lines) + '\n'


class _BlockContext:
    """Context manager for indented code blocks"""

    def __init__(self, gen: CodeGen, header: str, footer: str):
        self._gen = gen
        self._header = header
        self._footer = footer

    def __enter__(self):
        self._gen.line(self._header)
        self._gen.indent()
        return self

    def __exit__(self, *args):
        self._gen.dedent()
        if self._footer:
            self._gen.line(self._footer)


def safe_name(name: str) -> str:
    """Make a C identifier usable as a Python identifier

    Examples:
        pass -> pass_
        None -> None_
        time_base -> time_base
    """
    if keyword.iskeyword(name):
        return name + '_'
    return name


def py_literal(value) -> str:
    """Render a constant value as Python source"""
    if isinstance(value, bytes):
        return repr(value)
    if isinstance(value, float):
        if value != value or value in (float('inf'), float('-inf')):
            return f'float({str(value)!r})'
        return repr(value)
    return str(int(value))

