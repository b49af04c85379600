"""Arithmetic/string expressions over the fields of the current record.

Supported: numbers, strings, booleans, None, names (record fields, `value`
for the current value), attribute access for nested fields (`customer.name`),
subscripts, + - * / // % **, unary +/-/not, comparisons, and/or, conditional
expressions and a handful of whitelisted functions.
"""
from __future__ import annotations

import ast
import operator
from typing import Any, Dict

from .errors import TransformationError

_BINARY = {
    ast.Add: operator.add,
    ast.Sub: operator.sub,
    ast.Mult: operator.mul,
    ast.Div: operator.truediv,
    ast.FloorDiv: operator.floordiv,
    ast.Mod: operator.mod,
    ast.Pow: operator.pow,
}

_UNARY = {
    ast.UAdd: operator.pos,
    ast.USub: operator.neg,
    ast.Not: operator.not_,
}

_COMPARE = {
    ast.Eq: operator.eq,
    ast.NotEq: operator.ne,
    ast.Lt: operator.lt,
    ast.LtE: operator.le,
    ast.Gt: operator.gt,
    ast.GtE: operator.ge,
    ast.In: lambda a, b: a in b,
    ast.NotIn: lambda a, b: a not in b,
}

FUNCTIONS = {
    'abs': abs,
    'round': round,
    'min': min,
    'max': max,
    'len': len,
    'str': str,
    'int': int,
    'float': float,
    'upper': lambda s: str(s).upper(),
    'lower': lambda s: str(s).lower(),
    'concat': lambda *parts: ''.join('' if p is None else str(p) for p in parts),
}

_MAX_POWER = 1000
_MAX_RESULT_BITS = 10000
_MAX_REPEAT = 100000


def _check_size(op: ast.operator, left: Any, right: Any) -> None:
    """Reject powers and repetitions whose result would not fit the limits."""
    if isinstance(op, ast.Pow) and isinstance(right, (int, float)):
        if abs(right) > _MAX_POWER:
            raise TransformationError("Exponent too large")
        if isinstance(left, int) and isinstance(right, int) and right > 1 \
                and abs(left).bit_length() * right > _MAX_RESULT_BITS:
            raise TransformationError("Result too large")
    if isinstance(op, ast.Mult):
        for seq, count in ((left, right), (right, left)):
            if isinstance(seq, (str, list)) and isinstance(count, int) and len(seq) * count > _MAX_REPEAT:
                raise TransformationError("Repetition too large")


def _eval(node: ast.AST, names: Dict[str, Any]) -> Any:
    if isinstance(node, ast.Expression):
        return _eval(node.body, names)
    if isinstance(node, ast.Constant):
        return node.value
    if isinstance(node, ast.Name):
        if node.id in names:
            return names[node.id]
        raise TransformationError(f"Unknown field '{node.id}' in expression")
    if isinstance(node, ast.Attribute):
        base = _eval(node.value, names)
        if isinstance(base, dict):
            return base.get(node.attr)
        raise TransformationError(f"Cannot read '{node.attr}' from {type(base).__name__}")
    if isinstance(node, ast.Subscript):
        base = _eval(node.value, names)
        key = _eval(node.slice, names)
        try:
            return base[key]
        except (KeyError, IndexError, TypeError):
            return None
    if isinstance(node, ast.BinOp) and type(node.op) in _BINARY:
        left = _eval(node.left, names)
        right = _eval(node.right, names)
        _check_size(node.op, left, right)
        if isinstance(node.op, ast.Add) and (isinstance(left, str) or isinstance(right, str)):
            return f"{'' if left is None else left}{'' if right is None else right}"
        return _BINARY[type(node.op)](left, right)
    if isinstance(node, ast.UnaryOp) and type(node.op) in _UNARY:
        return _UNARY[type(node.op)](_eval(node.operand, names))
    if isinstance(node, ast.BoolOp):
        values = [_eval(v, names) for v in node.values]
        if isinstance(node.op, ast.And):
            return all(values)
        return any(values)
    if isinstance(node, ast.Compare):
        left = _eval(node.left, names)
        for op, comparator in zip(node.ops, node.comparators):
            right = _eval(comparator, names)
            if type(op) not in _COMPARE or not _COMPARE[type(op)](left, right):
                return False
            left = right
        return True
    if isinstance(node, ast.IfExp):
        return _eval(node.body, names) if _eval(node.test, names) else _eval(node.orelse, names)
    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name) and node.func.id in FUNCTIONS and not node.keywords:
        args = [_eval(a, names) for a in node.args]
        return FUNCTIONS[node.func.id](*args)
    if isinstance(node, (ast.List, ast.Tuple)):
        return [_eval(e, names) for e in node.elts]
    raise TransformationError(f"Unsupported expression element: {type(node).__name__}")


def evaluate_expression(expression: str, record: Dict[str, Any], value: Any = None) -> Any:
    """Evaluate `expression` with record fields and `value` in scope.

    Raises TransformationError on syntax errors, unknown names or
    unsupported constructs; arithmetic errors propagate as-is.
    """
    if not isinstance(expression, str) or not expression.strip():
        raise TransformationError("Empty expression")
    try:
        tree = ast.parse(expression.strip(), mode='eval')
    except SyntaxError as exc:
        raise TransformationError(f"Invalid expression: {exc.msg}") from exc

    names: Dict[str, Any] = {}
    if isinstance(record, dict):
        names.update(record)
    names['value'] = value
    names.setdefault('true', True)
    names.setdefault('false', False)
    names.setdefault('null', None)
    return _eval(tree, names)
