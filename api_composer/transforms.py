"""Ordered, failure-tolerant transformation pipeline.

Each step kind is a function `(value, config, context) -> value`. A step
that cannot handle the current value raises; the pipeline then uses the
step's `config['fallback']` when declared, otherwise keeps the previous
value, and moves on. `apply` itself never raises.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from email.utils import format_datetime
from typing import Any, Callable, Dict, Iterable, Optional

from dateutil import parser as date_parser

from .accessors import get_value_by_path
from .conditions import evaluate_condition
from .errors import TransformationError
from .expressions import evaluate_expression
from .log import get_logger
from .models import TransformationStep
from .notify import LoggingNotifier, Notifier

logger = get_logger(__name__)

Transformer = Callable[[Any, Dict[str, Any], 'TransformContext'], Any]


@dataclass
class TransformContext:
    record: Dict[str, Any] = field(default_factory=dict)
    source: Any = None
    notifier: Optional[Notifier] = None


# --- helpers ----------------------------------------------------------------

def _require_str(value: Any, kind: str) -> str:
    if not isinstance(value, str):
        raise TransformationError(f"'{kind}' needs a string, got {type(value).__name__}")
    return value


def _to_number(value: Any) -> float:
    if isinstance(value, bool) or value is None:
        raise TransformationError(f"Not a number: {value!r}")
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        text = value.strip().replace(',', '')
        if not text:
            raise TransformationError("Empty string is not a number")
        try:
            number = float(text)
        except ValueError as exc:
            raise TransformationError(f"Not a number: {value!r}") from exc
        if math.isnan(number):
            raise TransformationError("NaN")
        return int(number) if number.is_integer() and re.fullmatch(r'[+-]?\d+', text) else number
    raise TransformationError(f"Not a number: {type(value).__name__}")


def _require_list(value: Any, kind: str) -> list:
    if not isinstance(value, list):
        raise TransformationError(f"'{kind}' needs an array, got {type(value).__name__}")
    return value


def _numbers(value: Any, kind: str) -> list:
    return [_to_number(v) for v in _require_list(value, kind) if v is not None]


def to_datetime(value: Any) -> datetime:
    """Parse ISO/locale date strings, epoch seconds/milliseconds and date objects."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool) or value is None:
        raise TransformationError(f"Not a date: {value!r}")
    if isinstance(value, (int, float)):
        seconds = value / 1000.0 if abs(value) > 1e11 else value
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    if isinstance(value, str) and value.strip():
        try:
            return date_parser.parse(value.strip())
        except (ValueError, OverflowError) as exc:
            raise TransformationError(f"Not a date: {value!r}") from exc
    raise TransformationError(f"Not a date: {value!r}")


def _string_map(fn: Callable[[str], str], kind: str) -> Transformer:
    def transform(value, config, context):
        if isinstance(value, list):
            return [fn(v) if isinstance(v, str) else v for v in value]
        return fn(_require_str(value, kind))
    return transform


# --- built-in kinds ---------------------------------------------------------

def _direct(value, config, context):
    return value


def _capitalize(s: str) -> str:
    return s[:1].upper() + s[1:].lower()


def _date_format(value, config, context):
    dt = to_datetime(value)
    fmt = config.get('format') or 'ISO8601'
    if fmt.upper() in ('ISO8601', 'ISO'):
        return dt.isoformat()
    if fmt.upper() in ('RFC822', 'RFC2822'):
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return format_datetime(dt)
    if fmt.lower() == 'date':
        return dt.date().isoformat()
    return dt.strftime(fmt)


def _parse_number(value, config, context):
    return _to_number(value)


def _round(value, config, context):
    number = _to_number(value)
    precision = int(config.get('precision') or 0)
    # Half-up, not Python's half-to-even.
    factor = 10 ** max(precision, 0)
    rounded = math.floor(number * factor + 0.5) / factor
    return int(rounded) if precision <= 0 else rounded


def _regex_extract(value, config, context):
    text = value if isinstance(value, str) else None
    if text is None:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            text = str(value)
        else:
            raise TransformationError("'regex-extract' needs a string")
    pattern = config.get('pattern')
    if not pattern:
        raise TransformationError("'regex-extract' needs a pattern")
    match = re.search(pattern, text, re.IGNORECASE if config.get('ignoreCase') else 0)
    if match is None:
        raise TransformationError(f"No match for {pattern!r}")
    if match.groups():
        return match.group(1)
    return match.group(0)


_PLACEHOLDER = re.compile(r'\{([^{}]+)\}')


def _string_format(value, config, context):
    template = config.get('template')
    if not isinstance(template, str):
        raise TransformationError("'string-format' needs a template")

    def substitute(match):
        name = match.group(1).strip()
        if name == 'value':
            found = value
        else:
            found = get_value_by_path(context.record, name)
        return '' if found is None else str(found)

    return _PLACEHOLDER.sub(substitute, template)


def _compute(value, config, context):
    return evaluate_expression(config.get('expression', ''), context.record, value)


def _conditional(value, config, context):
    for case in config.get('cases') or []:
        if not isinstance(case, dict):
            continue
        field_path = case.get('field') or case.get('when')
        subject = get_value_by_path(context.record, field_path) if field_path else value
        if evaluate_condition(subject, case.get('operator', 'equals'), case.get('value')):
            return case.get('then')
    if 'default' in config:
        return config['default']
    return value


def _lookup(value, config, context):
    table = config.get('table') or {}
    if not isinstance(table, dict):
        raise TransformationError("'lookup' needs a table")
    try:
        if value in table:
            return table[value]
    except TypeError:
        return value
    key = str(value).lower() if isinstance(value, bool) else str(value)
    return table.get(key, value)


def _substring(value, config, context):
    text = _require_str(value, 'substring')
    start = int(config.get('start') or 0)
    end = config.get('end')
    return text[start:int(end)] if end is not None else text[start:]


def _replace(value, config, context):
    text = _require_str(value, 'replace')
    find = config.get('find') or ''
    if not find:
        return text
    return text.replace(find, config.get('replace') or '', -1 if config.get('replaceAll') else 1)


def _floor(value, config, context):
    return math.floor(_to_number(value))


def _ceil(value, config, context):
    return math.ceil(_to_number(value))


def _abs(value, config, context):
    return abs(_to_number(value))


def _to_string(value, config, context):
    if value is None:
        raise TransformationError("Cannot stringify null")
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


def _split(value, config, context):
    return _require_str(value, 'split').split(config.get('delimiter') or ',')


def _join(value, config, context):
    items = _require_list(value, 'join')
    return (config.get('delimiter') or ',').join('' if v is None else str(v) for v in items)


def _first(value, config, context):
    items = _require_list(value, 'first')
    return items[0] if items else None


def _last(value, config, context):
    items = _require_list(value, 'last')
    return items[-1] if items else None


def _count(value, config, context):
    return len(_require_list(value, 'count'))


def _sum(value, config, context):
    return sum(_numbers(value, 'sum'))


def _average(value, config, context):
    numbers = _numbers(value, 'average')
    if not numbers:
        raise TransformationError("Average of an empty array")
    return sum(numbers) / len(numbers)


def _min(value, config, context):
    numbers = _numbers(value, 'min')
    if not numbers:
        raise TransformationError("Minimum of an empty array")
    return min(numbers)


def _max(value, config, context):
    numbers = _numbers(value, 'max')
    if not numbers:
        raise TransformationError("Maximum of an empty array")
    return max(numbers)


def _unique(value, config, context):
    out = []
    for v in _require_list(value, 'unique'):
        if v not in out:
            out.append(v)
    return out


def _length(value, config, context):
    if isinstance(value, (str, list, dict)):
        return len(value)
    raise TransformationError("'length' needs a string or array")


def _is_empty(value, config, context):
    return evaluate_condition(value, 'is_empty')


def _contains(value, config, context):
    return evaluate_condition(value, 'contains', config.get('text', config.get('value')))


def _timestamp(value, config, context):
    dt = to_datetime(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


BUILTIN_TRANSFORMATIONS: Dict[str, Transformer] = {
    'direct': _direct,
    'uppercase': _string_map(str.upper, 'uppercase'),
    'lowercase': _string_map(str.lower, 'lowercase'),
    'capitalize': _string_map(_capitalize, 'capitalize'),
    'trim': _string_map(str.strip, 'trim'),
    'date-format': _date_format,
    'parse-number': _parse_number,
    'round': _round,
    'regex-extract': _regex_extract,
    'string-format': _string_format,
    'compute': _compute,
    'conditional': _conditional,
    'lookup': _lookup,
    'substring': _substring,
    'replace': _replace,
    'floor': _floor,
    'ceil': _ceil,
    'abs': _abs,
    'to-string': _to_string,
    'split': _split,
    'join': _join,
    'first': _first,
    'last': _last,
    'count': _count,
    'sum': _sum,
    'average': _average,
    'min': _min,
    'max': _max,
    'unique': _unique,
    'length': _length,
    'is-empty': _is_empty,
    'contains': _contains,
    'timestamp': _timestamp,
}


class TransformationPipeline:
    def __init__(self, transformations: Optional[Dict[str, Transformer]] = None, notifier: Optional[Notifier] = None):
        self.transformations: Dict[str, Transformer] = dict(BUILTIN_TRANSFORMATIONS)
        if transformations:
            self.transformations.update(transformations)
        self.notifier = notifier or LoggingNotifier()

    def register(self, kind: str, fn: Transformer) -> None:
        self.transformations[kind] = fn

    def kinds(self):
        return sorted(self.transformations)

    def apply(self, value: Any, steps: Iterable[TransformationStep], context: Optional[TransformContext] = None) -> Any:
        context = context or TransformContext()
        notifier = context.notifier or self.notifier
        result = value

        for step in steps or ():
            kind = getattr(step, 'type', None)
            config = getattr(step, 'config', None) or {}
            fn = self.transformations.get(kind)
            if fn is None:
                notifier.warning(f"Unknown transformation type: {kind}")
                continue
            try:
                result = fn(result, config, context)
            except Exception as exc:
                if 'fallback' in config:
                    result = config['fallback']
                notifier.warning(f"Transformation {kind} skipped: {exc}")

        return result


_default_pipeline = TransformationPipeline()


def register_transformation(kind: str, fn: Transformer) -> None:
    """Register a step kind on the module-level default pipeline."""
    _default_pipeline.register(kind, fn)


def default_pipeline() -> TransformationPipeline:
    return _default_pipeline


def apply(value: Any, steps: Iterable[TransformationStep], context: Optional[TransformContext] = None) -> Any:
    return _default_pipeline.apply(value, steps, context)
