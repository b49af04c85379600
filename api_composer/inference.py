from __future__ import annotations

from typing import Any, Protocol

from .paths import last_segment_name

NO_VALUE = object()

# Ordered; first match wins.
_DATE_HINTS = ('date', 'time', 'created', 'updated', 'timestamp')
_NUMBER_HINTS = ('count', 'amount', 'price', 'quantity', 'total', 'sum', 'id')
_BOOLEAN_PREFIXES = ('is_', 'has_')
_BOOLEAN_HINTS = ('enabled', 'active', 'visible', 'completed')
_ARRAY_HINTS = ('items', 'tags', 'categories', 'list')
_URL_HINTS = ('url', 'link', 'href', 'uri')


class TypeInferencer(Protocol):
    def infer(self, path: str, value: Any = NO_VALUE) -> str: ...


def infer_from_name(path: str) -> str:
    """Classify a field purely by the name of its last path segment."""
    lower = last_segment_name(path or '').lower()
    if not lower:
        return 'string'

    if any(h in lower for h in _DATE_HINTS):
        return 'date'
    if any(h in lower for h in _NUMBER_HINTS) or lower.endswith('_id'):
        return 'number'
    if lower.startswith(_BOOLEAN_PREFIXES) or any(h in lower for h in _BOOLEAN_HINTS):
        return 'boolean'
    if any(h in lower for h in _ARRAY_HINTS):
        return 'array'
    return 'string'


def is_url_name(path: str) -> bool:
    lower = last_segment_name(path or '').lower()
    return any(h in lower for h in _URL_HINTS)


class HeuristicTypeInferencer:
    """Name- and value-based classifier. Never raises."""

    def infer(self, path: str, value: Any = NO_VALUE) -> str:
        try:
            if value is NO_VALUE:
                return infer_from_name(path)
            if value is None:
                return 'unknown'
            if isinstance(value, bool):
                return 'boolean'
            if isinstance(value, (int, float)):
                return 'number'
            if isinstance(value, list):
                return 'array'
            if isinstance(value, dict):
                return 'object'
            if isinstance(value, str):
                inferred = infer_from_name(path)
                # A concrete string is a scalar; never report it as an array.
                return 'string' if inferred == 'array' else inferred
            return 'unknown'
        except Exception:
            return 'unknown'


_default = HeuristicTypeInferencer()


def infer(path: str, value: Any = NO_VALUE) -> str:
    return _default.infer(path, value)
