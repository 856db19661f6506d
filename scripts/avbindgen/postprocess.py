"""
Post-processing of the generated module

Adds the optional serialization decorators to every IntEnum class. The
module is located with `ast` and rewritten line by line so the generated
formatting is kept.
"""

import ast
import logging

logger = logging.getLogger(__name__)

SERDE_FEATURE = 'serde'
SERDE_LINES = (
    '@_cfg_attr("serde", _rt.derive("serialize", "deserialize"))',
    '@_cfg_attr("serde", _rt.serde(rename_all="kebab-case"))',
)


def _is_intenum(node: ast.ClassDef) -> bool:
    for base in node.bases:
        if isinstance(base, ast.Attribute) and base.attr == 'IntEnum':
            return True
        if isinstance(base, ast.Name) and base.id == 'IntEnum':
            return True
    return False


def _is_call_of(node: ast.expr, owner: str, attr: str) -> bool:
    """Check for a call to owner.attr(...)"""
    return (isinstance(node, ast.Call)
            and isinstance(node.func, ast.Attribute)
            and node.func.attr == attr
            and isinstance(node.func.value, ast.Name)
            and node.func.value.id == owner)


def _has_serde(node: ast.ClassDef) -> bool:
    for deco in node.decorator_list:
        if (isinstance(deco, ast.Call) and isinstance(deco.func, ast.Name)
                and deco.func.id == '_cfg_attr' and deco.args
                and isinstance(deco.args[0], ast.Constant)
                and deco.args[0].value == SERDE_FEATURE):
            return True
    return False


def find_insertion_points(text: str) -> list[tuple[int, int]]:
    """(line index after the derive decorator, indent) per IntEnum class"""
    points = []
    for node in ast.walk(ast.parse(text)):
        if not isinstance(node, ast.ClassDef) or not _is_intenum(node):
            continue
        if not node.decorator_list or _has_serde(node):
            continue
        last = node.decorator_list[-1]
        if not _is_call_of(last, '_rt', 'derive'):
            continue
        points.append((last.end_lineno, node.col_offset))
    return sorted(points)


def postprocess(text: str, enabled: bool) -> str:
    """Add serde decorators to IntEnum classes when enabled"""
    if not enabled:
        return text
    points = find_insertion_points(text)
    lines = text.splitlines(keepends=True)
    for line_no, indent in reversed(points):
        lines[line_no:line_no] = [' ' * indent + line + '\n' for line in SERDE_LINES]
    logger.debug('added serde decorators to %d enums', len(points))
    return ''.join(lines)
