"""Output schema generation.

Auto mode builds a default tree per output format; import mode converts
OpenAPI 3 / Swagger 2 / JSON Schema documents into `OutputFieldNode` trees.
"""
from __future__ import annotations

import json
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence

import yaml

from .errors import UnreadableSchemaError, UnsupportedDialectError
from .indexer import PathIndexer
from .inference import is_url_name
from .log import get_logger
from .models import CatalogueEntry, DataSource, OutputFieldNode
from .notify import LoggingNotifier, Notifier
from .paths import last_segment_name

logger = get_logger(__name__)

ATOM_NAMESPACE = 'http://www.w3.org/2005/Atom'

N = OutputFieldNode

AutoSchemaGenerator = Callable[[Dict[str, List[CatalogueEntry]]], OutputFieldNode]


def rss_schema() -> OutputFieldNode:
    return N('rss', 'object', children=(
        N('channel', 'object', required=True, children=(
            N('title', 'string', required=True),
            N('link', 'url', required=True),
            N('description', 'string', required=True),
            N('language', 'string', required=False),
            N('pubDate', 'datetime', required=False, format='RFC822'),
            N('items', 'array', children=(
                N('item', 'object', children=(
                    N('title', 'string', required=True),
                    N('link', 'url', required=True),
                    N('description', 'string', required=False),
                    N('pubDate', 'datetime', required=False, format='RFC822'),
                    N('guid', 'string', required=False),
                )),
            )),
        )),
    ))


def atom_schema() -> OutputFieldNode:
    return N('feed', 'object', namespace=ATOM_NAMESPACE, children=(
        N('title', 'string', required=True),
        N('id', 'uri', required=True),
        N('updated', 'datetime', required=True, format='ISO8601'),
        N('author', 'object', required=False, children=(N('name', 'string'),)),
        N('entries', 'array', children=(
            N('entry', 'object', children=(
                N('title', 'string', required=True),
                N('id', 'uri', required=True),
                N('updated', 'datetime', required=True, format='ISO8601'),
                N('summary', 'string', required=False),
                N('link', 'url', required=False),
            )),
        )),
    ))


_OUTPUT_TYPES = {
    'string': 'string',
    'number': 'number',
    'boolean': 'boolean',
    'date': 'datetime',
    'url': 'url',
    'unknown': 'string',
}


def _output_type(entry: CatalogueEntry) -> str:
    if entry.semantic_type == 'string' and is_url_name(entry.path):
        return 'url'
    return _OUTPUT_TYPES.get(entry.semantic_type, 'string')


def fields_from_catalogue(entries: Iterable[CatalogueEntry]) -> List[OutputFieldNode]:
    """One flat field per scalar path, named after its last segment (first wins)."""
    fields: Dict[str, OutputFieldNode] = {}
    for entry in entries:
        if entry.semantic_type in ('object', 'array'):
            continue
        name = last_segment_name(entry.path)
        if not name or name in fields:
            continue
        fields[name] = N(name, _output_type(entry), description=entry.path)
    return list(fields.values())


def propose_flat_schema(catalogues: Dict[str, List[CatalogueEntry]]) -> OutputFieldNode:
    """Default JSON schema: a flat object over the scalar fields of every source."""
    merged: List[CatalogueEntry] = [e for entries in catalogues.values() for e in entries]
    return N('root', 'object', children=tuple(fields_from_catalogue(merged)))


class SchemaSynthesizer:
    def __init__(
        self,
        indexer: Optional[PathIndexer] = None,
        auto_schema: Optional[AutoSchemaGenerator] = None,
        notifier: Optional[Notifier] = None,
    ):
        self.indexer = indexer or PathIndexer()
        self.auto_schema = auto_schema or propose_flat_schema
        self.notifier = notifier or LoggingNotifier()

    def _catalogues(self, sources: Sequence[DataSource], catalogues: Optional[Dict[str, List[CatalogueEntry]]]):
        out: Dict[str, List[CatalogueEntry]] = {}
        for source in sources:
            if catalogues is not None and source.id in catalogues:
                out[source.id] = list(catalogues[source.id])
            else:
                out[source.id] = self.indexer.index(source.sample_document, source_id=source.id, source_name=source.name)
        return out

    def synthesize(
        self,
        output_format: str,
        sources: Sequence[DataSource] = (),
        catalogues: Optional[Dict[str, List[CatalogueEntry]]] = None,
    ) -> OutputFieldNode:
        fmt = (output_format or 'json').lower()
        sources = list(sources or [])

        if fmt == 'rss':
            return rss_schema()
        if fmt == 'atom':
            return atom_schema()

        if fmt == 'csv':
            columns: List[OutputFieldNode] = []
            if sources:
                first = self._catalogues(sources[:1], catalogues)[sources[0].id]
                columns = fields_from_catalogue(first)
            if not columns:
                columns = [N('id', 'number'), N('name', 'string'), N('value', 'string')]
            return N('csv', 'table', children=tuple(columns))

        if fmt == 'xml':
            children: List[OutputFieldNode] = []
            if sources:
                first = self._catalogues(sources[:1], catalogues)[sources[0].id]
                children = fields_from_catalogue(first)
            if not children:
                children = [N('data', 'string')]
            return N('root', 'element', children=tuple(children))

        return self.auto_schema(self._catalogues(sources, catalogues))

    # --- import -----------------------------------------------------------

    def convert(self, imported: Any, notifier: Optional[Notifier] = None) -> OutputFieldNode:
        """Convert an imported schema document (mapping, or JSON/YAML text/bytes).

        Raises UnreadableSchemaError or UnsupportedDialectError after
        reporting the failure to the notifier.
        """
        notifier = notifier or self.notifier
        try:
            document = parse_schema_document(imported)
            root = convert_document(document)
        except (UnreadableSchemaError, UnsupportedDialectError) as exc:
            notifier.error(exc.message)
            raise
        notifier.info(f"Schema imported with {len(root.children)} top-level fields")
        return root


def parse_schema_document(imported: Any) -> Dict[str, Any]:
    if isinstance(imported, dict):
        return imported
    if isinstance(imported, bytes):
        try:
            imported = imported.decode('utf-8')
        except UnicodeDecodeError as exc:
            raise UnreadableSchemaError("Schema file is not UTF-8 text") from exc
    if not isinstance(imported, str) or not imported.strip():
        raise UnreadableSchemaError("Schema file is empty or unreadable")

    try:
        document = json.loads(imported)
    except json.JSONDecodeError:
        try:
            document = yaml.safe_load(imported)
        except yaml.YAMLError as exc:
            raise UnreadableSchemaError(f"Schema file is neither JSON nor YAML: {exc}") from exc

    if not isinstance(document, dict):
        raise UnreadableSchemaError("Schema document must be an object at the top level")
    return document


def detect_dialect(document: Dict[str, Any]) -> str:
    openapi = document.get('openapi')
    if openapi is not None:
        return 'openapi3' if str(openapi).startswith('3.') else f"openapi-{openapi}"
    swagger = document.get('swagger')
    if swagger is not None:
        return 'swagger2' if str(swagger) == '2.0' else f"swagger-{swagger}"
    if '$schema' in document:
        return 'json-schema'
    return 'unknown'


def convert_schema_object(key: str, schema: Any, required: bool = False) -> OutputFieldNode:
    if not isinstance(schema, dict):
        return N(key, 'string', required=required)

    schema_type = schema.get('type')
    if isinstance(schema_type, list):
        schema_type = next((t for t in schema_type if t != 'null'), None)
    if schema_type is None:
        if 'properties' in schema:
            schema_type = 'object'
        elif 'items' in schema:
            schema_type = 'array'
        else:
            schema_type = 'object'

    children: tuple = ()
    ref = schema.get('$ref')
    if ref is None and schema_type == 'object' and isinstance(schema.get('properties'), dict):
        required_names = schema.get('required') if isinstance(schema.get('required'), list) else []
        children = tuple(
            convert_schema_object(name, prop, name in required_names)
            for name, prop in schema['properties'].items()
        )
    elif ref is None and schema_type == 'array' and schema.get('items') is not None:
        children = (convert_schema_object('item', schema['items']),)

    enum = schema.get('enum')
    return N(
        key,
        schema_type,
        required=required,
        children=children,
        format=schema.get('format'),
        description=schema.get('description'),
        enum=tuple(enum) if isinstance(enum, list) else None,
        ref=ref,
    )


def _named_schemas(document: Dict[str, Any], dialect: str, *keys: str) -> Dict[str, Any]:
    """The mapping at `keys` (e.g. components, schemas); a missing level is empty."""
    current: Any = document
    for depth, key in enumerate(keys, 1):
        current = current.get(key)
        if current is None:
            return {}
        if not isinstance(current, dict):
            where = '.'.join(keys[:depth])
            raise UnsupportedDialectError(
                f"Malformed schema document: '{where}' must be an object, not {type(current).__name__}",
                dialect,
                {'path': where},
            )
    return current


def _fallback_flatten(document: Dict[str, Any]) -> OutputFieldNode:
    schemas = (_named_schemas(document, 'unknown', 'components', 'schemas')
               or _named_schemas(document, 'unknown', 'definitions'))
    if not schemas:
        raise UnsupportedDialectError("Unrecognized schema format: no components.schemas or definitions found", 'unknown')

    children = []
    for name, schema in schemas.items():
        schema = schema if isinstance(schema, dict) else {}
        props = schema.get('properties') if isinstance(schema.get('properties'), dict) else {}
        required_names = schema.get('required') if isinstance(schema.get('required'), list) else []
        children.append(N(
            name,
            schema.get('type') or 'object',
            description=schema.get('description'),
            children=tuple(
                N(
                    prop,
                    (prop_schema.get('type') if isinstance(prop_schema, dict) else None) or 'string',
                    required=prop in required_names,
                    description=prop_schema.get('description') if isinstance(prop_schema, dict) else None,
                )
                for prop, prop_schema in props.items()
            ),
        ))
    return N('root', 'object', children=tuple(children))


def convert_document(document: Dict[str, Any]) -> OutputFieldNode:
    dialect = detect_dialect(document)
    logger.debug("Importing schema document, dialect=%s", dialect)

    if dialect == 'openapi3':
        schemas = _named_schemas(document, dialect, 'components', 'schemas')
        return N('root', 'object', children=tuple(convert_schema_object(k, v) for k, v in schemas.items()))
    if dialect == 'swagger2':
        definitions = _named_schemas(document, dialect, 'definitions')
        return N('root', 'object', children=tuple(convert_schema_object(k, v) for k, v in definitions.items()))
    if dialect == 'json-schema':
        return convert_schema_object('root', document)
    if dialect != 'unknown':
        raise UnsupportedDialectError(f"Unsupported schema dialect: {dialect}", dialect)
    return _fallback_flatten(document)


_default = SchemaSynthesizer()


def synthesize(output_format: str, sources: Sequence[DataSource] = ()) -> OutputFieldNode:
    return _default.synthesize(output_format, sources)


def convert(imported: Any, notifier: Optional[Notifier] = None) -> OutputFieldNode:
    return _default.convert(imported, notifier)
