"""Value objects shared by the indexer, mapper, resolver and synthesizer.

Everything here is immutable. Configuration changes go through the named
`with_*` / `without_*` operations on `EndpointConfiguration`, each of which
returns a new configuration.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from .errors import ConfigurationError
from .paths import split_path

SEMANTIC_TYPES = ('string', 'number', 'boolean', 'date', 'url', 'array', 'object', 'unknown')
CARDINALITIES = ('one-to-one', 'one-to-many', 'many-to-many')
MERGE_STRATEGIES = ('sequential', 'priority', 'chronological', 'interleaved')
OUTPUT_FORMATS = ('json', 'xml', 'csv', 'rss', 'atom')


def new_id(prefix: str) -> str:
    return f"{prefix}_{uuid4().hex[:12]}"


@dataclass(frozen=True)
class DataSource:
    id: str
    name: str
    type: str = 'api'
    sample_document: Any = None
    category: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)
    fetched_at: Optional[str] = None


@dataclass(frozen=True)
class CatalogueEntry:
    path: str
    semantic_type: str
    sample_value: Any = None
    source_id: str = ''
    source_name: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return {
            'path': self.path,
            'semanticType': self.semantic_type,
            'sampleValue': self.sample_value,
            'sourceId': self.source_id,
            'sourceName': self.source_name,
        }


@dataclass(frozen=True)
class OutputFieldNode:
    key: str
    type: str = 'string'
    required: bool = False
    children: Tuple['OutputFieldNode', ...] = ()
    format: Optional[str] = None
    description: Optional[str] = None
    namespace: Optional[str] = None
    enum: Optional[Tuple[Any, ...]] = None
    ref: Optional[str] = None

    def child(self, key: str) -> Optional['OutputFieldNode']:
        for c in self.children:
            if c.key == key:
                return c
        return None

    def find(self, path: str) -> Optional['OutputFieldNode']:
        """Find a descendant by dot path relative to this node."""
        node: Optional[OutputFieldNode] = self
        for part in split_path(path):
            node = node.child(part) if node is not None else None
        return node

    def leaf_paths(self, prefix: str = '') -> List[Tuple[str, 'OutputFieldNode']]:
        """Dot paths of every leaf below this node (the node's own key excluded)."""
        out: List[Tuple[str, OutputFieldNode]] = []
        for c in self.children:
            path = f"{prefix}.{c.key}" if prefix else c.key
            if c.children:
                out.extend(c.leaf_paths(path))
            else:
                out.append((path, c))
        return out

    def to_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {'key': self.key, 'type': self.type, 'required': self.required}
        if self.children:
            d['children'] = [c.to_dict() for c in self.children]
        for name in ('format', 'description', 'namespace', 'ref'):
            value = getattr(self, name)
            if value is not None:
                d[name] = value
        if self.enum is not None:
            d['enum'] = list(self.enum)
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OutputFieldNode':
        children = data.get('children') or data.get('columns') or []
        enum = data.get('enum')
        return cls(
            key=str(data.get('key', '')),
            type=data.get('type') or 'string',
            required=bool(data.get('required', False)),
            children=tuple(cls.from_dict(c) for c in children if isinstance(c, dict)),
            format=data.get('format'),
            description=data.get('description'),
            namespace=data.get('namespace'),
            enum=tuple(enum) if isinstance(enum, list) else None,
            ref=data.get('ref'),
        )


@dataclass(frozen=True)
class TransformationStep:
    type: str
    config: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {'type': self.type, 'config': dict(self.config)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TransformationStep':
        return cls(type=data.get('type', 'direct'), config=dict(data.get('config') or {}))


@dataclass(frozen=True)
class MappingConditional:
    when: str
    operator: str
    value: Any = None
    then: Any = None
    otherwise: Any = None
    has_otherwise: bool = False

    def to_dict(self) -> Dict[str, Any]:
        d = {'when': self.when, 'operator': self.operator, 'value': self.value, 'then': self.then}
        if self.has_otherwise:
            d['else'] = self.otherwise
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MappingConditional':
        return cls(
            when=data.get('when', ''),
            operator=data.get('operator', 'equals'),
            value=data.get('value'),
            then=data.get('then'),
            otherwise=data.get('else'),
            has_otherwise='else' in data,
        )


@dataclass(frozen=True)
class FieldMapping:
    id: str
    target_path: str
    source_id: str
    source_path: str
    transformations: Tuple[TransformationStep, ...] = ()
    fallback_value: Any = None
    conditional: Optional[MappingConditional] = None

    def with_step(self, step: TransformationStep) -> 'FieldMapping':
        return replace(self, transformations=self.transformations + (step,))

    def to_dict(self) -> Dict[str, Any]:
        d = {
            'id': self.id,
            'targetPath': self.target_path,
            'sourceId': self.source_id,
            'sourcePath': self.source_path,
            'transformations': [s.to_dict() for s in self.transformations],
        }
        if self.fallback_value is not None:
            d['fallbackValue'] = self.fallback_value
        if self.conditional is not None:
            d['conditional'] = self.conditional.to_dict()
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FieldMapping':
        conditional = data.get('conditional')
        return cls(
            id=data.get('id') or new_id('map'),
            target_path=data['targetPath'],
            source_id=data['sourceId'],
            source_path=data['sourcePath'],
            transformations=tuple(TransformationStep.from_dict(s) for s in data.get('transformations') or []),
            fallback_value=data.get('fallbackValue'),
            conditional=MappingConditional.from_dict(conditional) if isinstance(conditional, dict) else None,
        )


@dataclass(frozen=True)
class Relationship:
    id: str
    parent_source_id: str
    parent_key: str
    child_source_id: str
    foreign_key: str
    cardinality: str = 'one-to-many'
    embed_as: str = 'items'
    include_orphans: bool = False

    def __post_init__(self):
        if self.cardinality not in CARDINALITIES:
            raise ConfigurationError(
                f"Unknown cardinality '{self.cardinality}'",
                {'allowed': list(CARDINALITIES)},
            )
        if not split_path(self.embed_as):
            raise ConfigurationError(
                f"Relationship '{self.id}' needs a field to embed matches under",
                {'embed_as': self.embed_as},
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'parentSourceId': self.parent_source_id,
            'parentKey': self.parent_key,
            'childSourceId': self.child_source_id,
            'foreignKey': self.foreign_key,
            'cardinality': self.cardinality,
            'embedAs': self.embed_as,
            'includeOrphans': self.include_orphans,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Relationship':
        return cls(
            id=data.get('id') or new_id('rel'),
            parent_source_id=data['parentSourceId'],
            parent_key=data['parentKey'],
            child_source_id=data['childSourceId'],
            foreign_key=data['foreignKey'],
            cardinality=data.get('cardinality', 'one-to-many'),
            embed_as=data.get('embedAs', 'items'),
            include_orphans=bool(data.get('includeOrphans', False)),
        )


@dataclass(frozen=True)
class JoinedRecord:
    record: Dict[str, Any]
    origin: Optional[str] = None


@dataclass(frozen=True)
class OutputWrapper:
    enabled: bool = False
    wrapper_key: str = 'data'
    include_metadata: bool = False
    timestamp: bool = True
    source: bool = True
    count: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enabled': self.enabled,
            'wrapperKey': self.wrapper_key,
            'includeMetadata': self.include_metadata,
            'metadataFields': {'timestamp': self.timestamp, 'source': self.source, 'count': self.count},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OutputWrapper':
        fields = data.get('metadataFields') or {}
        return cls(
            enabled=bool(data.get('enabled', False)),
            wrapper_key=data.get('wrapperKey', 'data'),
            include_metadata=bool(data.get('includeMetadata', False)),
            timestamp=fields.get('timestamp', True) is not False,
            source=fields.get('source', True) is not False,
            count=fields.get('count', True) is not False,
        )


def _is_under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + '.')


@dataclass(frozen=True)
class EndpointConfiguration:
    output_format: str = 'json'
    schema: Optional[OutputFieldNode] = None
    mappings: Tuple[FieldMapping, ...] = ()
    relationships: Tuple[Relationship, ...] = ()
    wrapper: OutputWrapper = OutputWrapper()
    merge_strategy: str = 'sequential'

    # --- mappings ---------------------------------------------------------

    def mapping_for(self, target_path: str, source_id: str) -> Optional[FieldMapping]:
        for m in self.mappings:
            if m.target_path == target_path and m.source_id == source_id:
                return m
        return None

    def mappings_for_target(self, target_path: str) -> List[FieldMapping]:
        return [m for m in self.mappings if m.target_path == target_path]

    def target_paths(self) -> List[str]:
        seen: Dict[str, None] = {}
        for m in self.mappings:
            seen.setdefault(m.target_path, None)
        return list(seen)

    def with_mapping(self, mapping: FieldMapping) -> 'EndpointConfiguration':
        """Upsert keyed by (targetPath, sourceId); position of an existing binding is kept."""
        out: List[FieldMapping] = []
        replaced = False
        for m in self.mappings:
            if m.target_path == mapping.target_path and m.source_id == mapping.source_id:
                if not replaced:
                    out.append(mapping)
                    replaced = True
                continue
            out.append(m)
        if not replaced:
            out.append(mapping)
        return replace(self, mappings=tuple(out))

    def with_binding(self, target_path: str, source_id: str, source_path: str) -> 'EndpointConfiguration':
        existing = self.mapping_for(target_path, source_id)
        if existing is not None:
            return self.with_mapping(replace(existing, source_path=source_path))
        return self.with_mapping(FieldMapping(
            id=new_id('map'),
            target_path=target_path,
            source_id=source_id,
            source_path=source_path,
        ))

    def without_mapping(self, mapping_id: str) -> 'EndpointConfiguration':
        return replace(self, mappings=tuple(m for m in self.mappings if m.id != mapping_id))

    def _update_mapping(self, mapping_id: str, fn) -> 'EndpointConfiguration':
        found = False
        out = []
        for m in self.mappings:
            if m.id == mapping_id:
                m = fn(m)
                found = True
            out.append(m)
        if not found:
            raise ConfigurationError(f"Mapping '{mapping_id}' not found", {'mapping_id': mapping_id})
        return replace(self, mappings=tuple(out))

    def with_transformation_step(self, mapping_id: str, step: TransformationStep) -> 'EndpointConfiguration':
        return self._update_mapping(mapping_id, lambda m: m.with_step(step))

    def with_transformations(self, mapping_id: str, steps) -> 'EndpointConfiguration':
        return self._update_mapping(mapping_id, lambda m: replace(m, transformations=tuple(steps)))

    def with_fallback(self, mapping_id: str, fallback_value: Any) -> 'EndpointConfiguration':
        return self._update_mapping(mapping_id, lambda m: replace(m, fallback_value=fallback_value))

    def with_conditional(self, mapping_id: str, conditional: Optional[MappingConditional]) -> 'EndpointConfiguration':
        return self._update_mapping(mapping_id, lambda m: replace(m, conditional=conditional))

    # --- relationships ----------------------------------------------------

    def with_relationship(self, relationship: Relationship) -> 'EndpointConfiguration':
        if relationship.parent_source_id == relationship.child_source_id:
            raise ConfigurationError(
                "A relationship needs two different sources",
                {'source_id': relationship.parent_source_id},
            )
        others = tuple(r for r in self.relationships if r.id != relationship.id)
        return replace(self, relationships=others + (relationship,))

    def without_relationship(self, relationship_id: str) -> 'EndpointConfiguration':
        return replace(self, relationships=tuple(r for r in self.relationships if r.id != relationship_id))

    # --- cascades ---------------------------------------------------------

    def without_source(self, source_id: str) -> 'EndpointConfiguration':
        return replace(
            self,
            mappings=tuple(m for m in self.mappings if m.source_id != source_id),
            relationships=tuple(
                r for r in self.relationships
                if source_id not in (r.parent_source_id, r.child_source_id)
            ),
        )

    def without_target(self, target_path: str) -> 'EndpointConfiguration':
        return replace(self, mappings=tuple(m for m in self.mappings if not _is_under(m.target_path, target_path)))

    # --- misc -------------------------------------------------------------

    def with_schema(self, schema: OutputFieldNode, output_format: Optional[str] = None) -> 'EndpointConfiguration':
        return replace(self, schema=schema, output_format=output_format or self.output_format)

    def with_wrapper(self, wrapper: OutputWrapper) -> 'EndpointConfiguration':
        return replace(self, wrapper=wrapper)

    def with_merge_strategy(self, strategy: str) -> 'EndpointConfiguration':
        if strategy not in MERGE_STRATEGIES:
            raise ConfigurationError(f"Unknown merge strategy '{strategy}'", {'allowed': list(MERGE_STRATEGIES)})
        return replace(self, merge_strategy=strategy)

    def to_bundle(self) -> Dict[str, Any]:
        """The artifact handed to the storage collaborator."""
        return {
            'schema': self.schema.to_dict() if self.schema is not None else None,
            'mapping': [m.to_dict() for m in self.mappings],
            'relationships': [r.to_dict() for r in self.relationships],
            'outputFormat': self.output_format,
            'wrapper': self.wrapper.to_dict(),
            'mergeStrategy': self.merge_strategy,
        }

    @classmethod
    def from_bundle(cls, bundle: Dict[str, Any]) -> 'EndpointConfiguration':
        schema = bundle.get('schema')
        wrapper = bundle.get('wrapper')
        return cls(
            output_format=bundle.get('outputFormat', 'json'),
            schema=OutputFieldNode.from_dict(schema) if isinstance(schema, dict) else None,
            mappings=tuple(FieldMapping.from_dict(m) for m in bundle.get('mapping') or []),
            relationships=tuple(Relationship.from_dict(r) for r in bundle.get('relationships') or []),
            wrapper=OutputWrapper.from_dict(wrapper) if isinstance(wrapper, dict) else OutputWrapper(),
            merge_strategy=bundle.get('mergeStrategy', 'sequential'),
        )
