from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .accessors import get_value_by_path
from .conditions import evaluate_condition
from .errors import AmbiguousOriginError, ConfigurationError
from .log import get_logger
from .models import DataSource, EndpointConfiguration, FieldMapping, JoinedRecord
from .notify import LoggingNotifier, Notifier
from .paths import has_wildcard, is_valid_source_path
from .transforms import TransformContext, TransformationPipeline, default_pipeline

logger = get_logger(__name__)

SOURCE_METADATA_PREFIX = '_source.'


class _Unmapped:
    def __repr__(self) -> str:
        return 'UNMAPPED'

    def __bool__(self) -> bool:
        return False


UNMAPPED = _Unmapped()


def source_metadata_value(key: str, source: Optional[DataSource], source_id: Optional[str] = None) -> Any:
    """Value for a `_source.<key>` path."""
    if key == 'id':
        return source.id if source is not None else source_id
    if source is None:
        return datetime.now(timezone.utc).isoformat() if key == 'timestamp' else None
    if key == 'name':
        return source.name
    if key == 'type':
        return source.type
    if key == 'category':
        return source.category
    if key == 'timestamp':
        return source.fetched_at or datetime.now(timezone.utc).isoformat()
    if key.startswith('metadata.'):
        return get_value_by_path(source.metadata, key[len('metadata.'):])
    return None


class FieldMapper:
    """Holds the bindings of an endpoint and resolves them against records."""

    def __init__(
        self,
        configuration: Optional[EndpointConfiguration] = None,
        pipeline: Optional[TransformationPipeline] = None,
        sources: Optional[Iterable[DataSource]] = None,
        ambiguity_policy: Optional[str] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.configuration = configuration or EndpointConfiguration()
        self.pipeline = pipeline or default_pipeline()
        self.sources: Dict[str, DataSource] = {s.id: s for s in (sources or [])}
        if ambiguity_policy is None:
            from .settings import get_settings
            ambiguity_policy = get_settings().ambiguity_policy
        self.ambiguity_policy = ambiguity_policy
        self.notifier = notifier or LoggingNotifier()

    @property
    def mappings(self) -> List[FieldMapping]:
        return list(self.configuration.mappings)

    def bind(self, target_path: str, source_id: str, source_path: str) -> FieldMapping:
        """Create or replace the binding for (target_path, source_id).

        The path does not have to exist in the current catalogue; it only has
        to follow the source path grammar.
        """
        if not source_path.startswith(SOURCE_METADATA_PREFIX) and not is_valid_source_path(source_path):
            raise ConfigurationError(f"Invalid source path '{source_path}'", {'source_path': source_path})
        if not is_valid_source_path(target_path) or has_wildcard(target_path):
            raise ConfigurationError(f"Invalid target path '{target_path}'", {'target_path': target_path})

        self.configuration = self.configuration.with_binding(target_path, source_id, source_path)
        return self.configuration.mapping_for(target_path, source_id)

    def unbind(self, mapping_id: str) -> bool:
        before = len(self.configuration.mappings)
        self.configuration = self.configuration.without_mapping(mapping_id)
        return len(self.configuration.mappings) < before

    def mapping_for(self, target_path: str, source_id: str) -> Optional[FieldMapping]:
        return self.configuration.mapping_for(target_path, source_id)

    def select_mapping(self, target_path: str, source_id: Optional[str]) -> Optional[FieldMapping]:
        if source_id is not None:
            return self.configuration.mapping_for(target_path, source_id)

        candidates = self.configuration.mappings_for_target(target_path)
        if len(candidates) <= 1:
            return candidates[0] if candidates else None
        if self.ambiguity_policy == 'error':
            raise AmbiguousOriginError(
                f"Record origin unknown and {len(candidates)} sources map '{target_path}'",
                {'target_path': target_path, 'source_ids': sorted(m.source_id for m in candidates)},
            )
        return min(candidates, key=lambda m: m.source_id)

    def read_source(self, record: Dict[str, Any], path: str, source_id: Optional[str], fan_out: bool = False) -> Any:
        if path.startswith(SOURCE_METADATA_PREFIX):
            value = source_metadata_value(path[len(SOURCE_METADATA_PREFIX):], self.sources.get(source_id), source_id)
            return [value] if fan_out else value
        return get_value_by_path(record, path, fan_out=fan_out)

    def _finish(self, raw: Any, mapping: FieldMapping, record: Dict[str, Any], source_id: Optional[str]) -> Any:
        if raw is None:
            # Fallback stands in for a missing read and is emitted as-is.
            value = mapping.fallback_value
        else:
            context = TransformContext(record=record, source=self.sources.get(source_id), notifier=self.notifier)
            value = self.pipeline.apply(raw, mapping.transformations, context)

        cond = mapping.conditional
        if cond is not None:
            subject = self.read_source(record, cond.when, source_id)
            if evaluate_condition(subject, cond.operator, cond.value):
                value = cond.then
            elif cond.has_otherwise:
                value = cond.otherwise
        return value

    def resolve(self, target_path: str, record: Any, source_id: Optional[str] = None, fan_out: bool = False) -> Any:
        """Resolve one output field for a record.

        Returns UNMAPPED when no binding applies to the record's source. In
        fan-out mode a wildcard binding yields a list with one transformed
        value per array element.
        """
        if isinstance(record, JoinedRecord):
            if source_id is None:
                source_id = record.origin
            record = record.record

        mapping = self.select_mapping(target_path, source_id)
        if mapping is None:
            return UNMAPPED
        origin = source_id if source_id is not None else mapping.source_id

        if fan_out and has_wildcard(mapping.source_path):
            raws = self.read_source(record, mapping.source_path, origin, fan_out=True)
            return [self._finish(raw, mapping, record, origin) for raw in raws]

        raw = self.read_source(record, mapping.source_path, origin)
        return self._finish(raw, mapping, record, origin)

    def resolve_record(self, record: Any, source_id: Optional[str] = None) -> Dict[str, Any]:
        """Preview helper: {target_path: value} for every mapped target."""
        out: Dict[str, Any] = {}
        for target in self.configuration.target_paths():
            value = self.resolve(target, record, source_id)
            if value is not UNMAPPED:
                out[target] = value
        return out
