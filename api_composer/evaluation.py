from __future__ import annotations

import csv
import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence

from dateutil import parser as date_parser

from .accessors import get_value_by_path, set_value_by_path
from .log import get_logger
from .mapper import UNMAPPED, FieldMapper
from .models import DataSource, EndpointConfiguration, JoinedRecord, OutputWrapper
from .paths import has_wildcard
from .relationships import RelationshipResolver

logger = get_logger(__name__)


def _sort_timestamp(record: JoinedRecord) -> float:
    value = record.record.get('pubDate') if isinstance(record.record, dict) else None
    if not value:
        return 0.0
    try:
        dt = date_parser.parse(str(value))
    except (ValueError, OverflowError):
        return 0.0
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.timestamp()


def apply_merge_strategy(records: List[JoinedRecord], strategy: str) -> List[JoinedRecord]:
    if strategy == 'chronological':
        return sorted(records, key=_sort_timestamp, reverse=True)
    if strategy == 'interleaved':
        groups: Dict[str, List[JoinedRecord]] = {}
        for rec in records:
            groups.setdefault(rec.origin or 'default', []).append(rec)
        out: List[JoinedRecord] = []
        longest = max((len(g) for g in groups.values()), default=0)
        for i in range(longest):
            for group in groups.values():
                if i < len(group):
                    out.append(group[i])
        return out
    # 'priority' keeps source order, as does 'sequential'.
    return list(records)


def map_record(mapper: FieldMapper, record: JoinedRecord, fan_out: bool = False) -> List[Dict[str, Any]]:
    """Build the output record(s) for one joined record.

    Without fan-out every wildcard binding reads its first element and one
    record is produced. With fan-out one record is produced per element of
    the longest wildcard binding; shorter ones contribute their fallback.
    When every wildcard array is empty no record is produced.
    """
    targets = mapper.configuration.target_paths()
    values: Dict[str, Any] = {}
    fanned: Dict[str, List[Any]] = {}

    for target in targets:
        value = mapper.resolve(target, record, fan_out=fan_out)
        if value is UNMAPPED:
            continue
        mapping = mapper.select_mapping(target, record.origin)
        if fan_out and mapping is not None and has_wildcard(mapping.source_path):
            fanned[target] = value
        else:
            values[target] = value

    count = max(len(v) for v in fanned.values()) if fanned else 1
    rows: List[Dict[str, Any]] = []
    for i in range(count):
        row: Dict[str, Any] = {}
        for target in targets:
            if target in fanned:
                items = fanned[target]
                if i < len(items):
                    value = items[i]
                else:
                    mapping = mapper.select_mapping(target, record.origin)
                    value = mapping.fallback_value if mapping is not None else None
            elif target in values:
                value = values[target]
            else:
                continue
            row = set_value_by_path(row, target, value)
        rows.append(row)
    return rows


def evaluate(
    configuration: EndpointConfiguration,
    records_by_source: Dict[str, Sequence[Any]],
    sources: Optional[Iterable[DataSource]] = None,
    fan_out: bool = True,
    limit: Optional[int] = None,
    mapper: Optional[FieldMapper] = None,
) -> List[Dict[str, Any]]:
    """Join the sources, order by merge strategy and map every record."""
    mapper = mapper or FieldMapper(configuration, sources=sources)
    joined = RelationshipResolver(configuration.relationships).resolve(records_by_source)
    joined = apply_merge_strategy(joined, configuration.merge_strategy)

    rows: List[Dict[str, Any]] = []
    for record in joined:
        for row in map_record(mapper, record, fan_out=fan_out):
            rows.append(row)
            if limit is not None and len(rows) >= max(1, int(limit)):
                return rows
    logger.debug("Evaluated %d joined records into %d rows", len(joined), len(rows))
    return rows


def preview(
    configuration: EndpointConfiguration,
    records_by_source: Dict[str, Sequence[Any]],
    sources: Optional[Iterable[DataSource]] = None,
    limit: Optional[int] = None,
) -> List[Dict[str, Any]]:
    if limit is None:
        from .settings import get_settings
        limit = get_settings().preview_limit
    return evaluate(configuration, records_by_source, sources, fan_out=False, limit=limit)


def wrap_output(
    rows: Any,
    wrapper: OutputWrapper,
    sources: Optional[Iterable[DataSource]] = None,
    now: Optional[datetime] = None,
) -> Any:
    if not wrapper.enabled:
        return rows

    result: Dict[str, Any] = {wrapper.wrapper_key or 'data': rows}
    if wrapper.include_metadata:
        metadata: Dict[str, Any] = {}
        if wrapper.timestamp:
            metadata['timestamp'] = (now or datetime.now(timezone.utc)).isoformat()
        if wrapper.source and sources is not None:
            metadata['sources'] = [{'id': s.id, 'name': s.name, 'type': s.type} for s in sources]
        if wrapper.count and isinstance(rows, list):
            metadata['count'] = len(rows)
        if metadata:
            result['metadata'] = metadata
    return result


def _flatten_value(val: Any) -> Any:
    if isinstance(val, list):
        if all(isinstance(v, (str, int, float, bool)) or v is None for v in val):
            return ", ".join(["" if v is None else str(v) for v in val])
        try:
            return json.dumps(val, ensure_ascii=False)
        except TypeError:
            return str(val)
    if isinstance(val, dict):
        try:
            return json.dumps(val, ensure_ascii=False)
        except TypeError:
            return str(val)
    return val


def flatten_for_export(rows: List[Dict[str, Any]], columns: Sequence[str]) -> List[Dict[str, Any]]:
    """One flat dict per row keyed by target path, for CSV output."""
    flat: List[Dict[str, Any]] = []
    for row in rows:
        flat.append({col: _flatten_value(get_value_by_path(row, col)) for col in columns})
    return flat


def export_rows(rows: List[Dict[str, Any]], path: str, output_format: str, columns: Optional[Sequence[str]] = None) -> str:
    if output_format.upper() == "CSV":
        columns = list(columns or (rows[0].keys() if rows else []))
        with open(path, 'w', newline='', encoding='utf-8') as f:
            writer = csv.DictWriter(f, fieldnames=columns)
            writer.writeheader()
            if rows:
                writer.writerows(flatten_for_export(rows, columns))
    else:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(rows, f, indent=2, ensure_ascii=False)
    return path
