from __future__ import annotations

from typing import Any


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, list, dict)):
        return len(value) == 0
    return value is False


def evaluate_condition(value: Any, operator: str, compare_value: Any = None) -> bool:
    """Evaluate a predicate; unknown operators and uncomparable values are False."""
    try:
        if operator == 'equals':
            return value == compare_value
        if operator == 'not_equals':
            return value != compare_value
        if operator == 'contains':
            if isinstance(value, (list, dict)):
                return compare_value in value
            return value is not None and str(compare_value) in str(value)
        if operator == 'not_contains':
            return not evaluate_condition(value, 'contains', compare_value)
        if operator == 'greater_than':
            return float(value) > float(compare_value)
        if operator == 'less_than':
            return float(value) < float(compare_value)
        if operator == 'starts_with':
            return value is not None and str(value).startswith(str(compare_value))
        if operator == 'ends_with':
            return value is not None and str(value).endswith(str(compare_value))
        if operator == 'is_empty':
            return _is_empty(value)
        if operator == 'is_not_empty':
            return not _is_empty(value)
        if operator == 'exists':
            return value is not None
        if operator == 'not_exists':
            return value is None
    except (TypeError, ValueError):
        return False
    return False
