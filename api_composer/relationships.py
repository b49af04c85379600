from __future__ import annotations

import json
from copy import deepcopy
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .accessors import get_value_by_path, set_value_by_path
from .log import get_logger
from .models import JoinedRecord, Relationship

logger = get_logger(__name__)


def normalize_key_component(value):
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, (dict, list)):
        try:
            return json.dumps(value, sort_keys=True)
        except TypeError:
            return str(value)
    return value


def join_key(record: Any, path: str):
    """Normalized join key for a record, or None when the key is absent."""
    if not isinstance(record, dict) or not path:
        return None
    value = get_value_by_path(record, path)
    if value is None:
        return None
    key = normalize_key_component(value)
    # Compare "42" and 42 as equal: sources disagree on id types.
    if isinstance(key, int) and not isinstance(key, bool):
        return str(key)
    return key


def _unwrap(record: Any) -> Any:
    return record.record if isinstance(record, JoinedRecord) else record


def build_child_index(child_records: Iterable[Any], foreign_key: str) -> Dict[Any, List[Dict[str, Any]]]:
    index: Dict[Any, List[Dict[str, Any]]] = {}
    for child in child_records:
        child = _unwrap(child)
        key = join_key(child, foreign_key)
        if key is None:
            continue
        index.setdefault(key, []).append(child)
    return index


def join(parent_records: Sequence[Any], child_records: Sequence[Any], relationship: Relationship) -> List[JoinedRecord]:
    """Embed matching child records into each parent under `embed_as`.

    `one-to-one` embeds the first match (child input order) or None;
    `one-to-many` and `many-to-many` embed every match as a list. Parents
    without matches are dropped unless `include_orphans` is set. Missing
    keys on either side simply do not match.
    """
    index = build_child_index(child_records or [], relationship.foreign_key)
    singular = relationship.cardinality == 'one-to-one'

    joined: List[JoinedRecord] = []
    orphans = 0
    for parent in parent_records or []:
        parent = _unwrap(parent)
        if not isinstance(parent, dict):
            continue
        key = join_key(parent, relationship.parent_key)
        matches = index.get(key, []) if key is not None else []

        if not matches:
            orphans += 1
            if not relationship.include_orphans:
                continue

        record = deepcopy(parent)
        if singular:
            embedded = deepcopy(matches[0]) if matches else None
        else:
            embedded = [deepcopy(m) for m in matches]
        record = set_value_by_path(record, relationship.embed_as, embedded)
        joined.append(JoinedRecord(record=record, origin=relationship.parent_source_id))

    logger.debug(
        "Relationship %s joined %d parents (%d orphans, kept=%s)",
        relationship.id, len(joined), orphans, relationship.include_orphans,
    )
    return joined


class RelationshipResolver:
    """Applies a list of relationships to per-source record sets."""

    def __init__(self, relationships: Optional[Iterable[Relationship]] = None):
        self.relationships = list(relationships or [])

    def join(self, parent_records, child_records, relationship: Relationship) -> List[JoinedRecord]:
        return join(parent_records, child_records, relationship)

    def resolve(self, records_by_source: Dict[str, Sequence[Any]]) -> List[JoinedRecord]:
        """Join all sources and return the top-level records tagged with their origin.

        Relationships apply in declared order; a parent's records are replaced
        by their joined form. A source consumed as a child does not appear on
        its own in the result.
        """
        current: Dict[str, List[Any]] = {sid: list(recs or []) for sid, recs in records_by_source.items()}
        consumed = set()

        for rel in self.relationships:
            if rel.parent_source_id not in current:
                logger.debug("Relationship %s skipped: parent %s has no records", rel.id, rel.parent_source_id)
                continue
            children = current.get(rel.child_source_id, [])
            current[rel.parent_source_id] = join(current[rel.parent_source_id], children, rel)
            consumed.add(rel.child_source_id)

        out: List[JoinedRecord] = []
        for sid, records in current.items():
            if sid in consumed:
                continue
            for rec in records:
                if isinstance(rec, JoinedRecord):
                    out.append(rec)
                elif isinstance(rec, dict):
                    out.append(JoinedRecord(record=rec, origin=sid))
        return out
