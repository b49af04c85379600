from __future__ import annotations

import os
import tempfile
from typing import Any, Dict, List, Optional, Tuple

import gradio as gr

from .accessors import get_value_by_path
from .errors import ConfigurationError, SchemaImportError
from .evaluation import evaluate, export_rows
from .indexer import PathIndexer, find_list_paths
from .io_utils import read_json_content, read_text_content
from .mapper import FieldMapper
from .models import DataSource, EndpointConfiguration, OutputFieldNode, TransformationStep
from .notify import CollectingNotifier
from .synthesis import SchemaSynthesizer

SAMPLE_SOURCE_ID = 'sample'
MAPPING_HEADERS = ["Target Path", "Source Path", "Transformations", "Fallback"]


def records_at_root(data: Any, root_path: str = '(root)') -> List[Dict[str, Any]]:
    """Records found under the selected root (a list of objects, or one object)."""
    if data is None:
        return []

    if root_path in (None, '', '(root)'):
        target = data
    else:
        target = get_value_by_path(data, root_path)

    if isinstance(target, list):
        return [x for x in target if isinstance(x, dict)]
    if isinstance(target, dict):
        return [target]
    return []


def sample_source(data: Any, source_name: Optional[str] = None) -> DataSource:
    return DataSource(id=SAMPLE_SOURCE_ID, name=source_name or 'Sample', type='file', sample_document=data)


def catalogue_rows(data: Any, root_path: str = '(root)') -> List[List[Any]]:
    records = records_at_root(data, root_path)
    document = records[0] if records else data
    entries = PathIndexer().index(document, source_id=SAMPLE_SOURCE_ID)
    return [[e.path, e.semantic_type, "" if e.sample_value is None else str(e.sample_value)] for e in entries]


def load_sample_handler(file_obj):
    if file_obj is None:
        return None, [], gr.update(choices=["(root)"], value="(root)"), "No file uploaded."

    try:
        data = read_json_content(file_obj)
    except Exception as e:
        return None, [], gr.update(choices=["(root)"], value="(root)"), f"Error parsing JSON: {str(e)}"

    list_paths = [p for p in find_list_paths(data) if '[*]' not in p] or ["(root)"]
    default_root = "(root)" if "(root)" in list_paths else list_paths[0]
    rows = catalogue_rows(data, default_root)
    return data, rows, gr.update(choices=list_paths, value=default_root), f"Successfully loaded. Found {len(rows)} paths."


def handle_root_change(data: Any, root_path: str):
    if data is None:
        return [], ""
    records = records_at_root(data, root_path or '(root)')
    return catalogue_rows(data, root_path or '(root)'), f"Records: {len(records)}"


def _schema_mapping_rows(schema: OutputFieldNode) -> List[List[Any]]:
    return [[path, "", "", ""] for path, _ in schema.leaf_paths()]


def synthesize_schema_handler(output_format: str, data: Any, source_name: Optional[str] = None):
    sources = [sample_source(data, source_name)] if data is not None else []
    schema = SchemaSynthesizer().synthesize((output_format or 'json').lower(), sources)
    return schema.to_dict(), _schema_mapping_rows(schema)


def import_schema_handler(file_obj):
    if file_obj is None:
        return None, [], "No schema file uploaded."
    notifier = CollectingNotifier()
    try:
        content = read_text_content(file_obj)
    except (OSError, UnicodeDecodeError, ValueError) as e:
        return None, [], f"Could not read schema file: {str(e)}"

    try:
        schema = SchemaSynthesizer(notifier=notifier).convert(content)
    except SchemaImportError:
        return None, [], notifier.summary()
    return schema.to_dict(), _schema_mapping_rows(schema), notifier.summary()


def _mapping_table_rows(mapping_df) -> List[List[Any]]:
    if mapping_df is None:
        return []
    try:
        return mapping_df[MAPPING_HEADERS].values.tolist()
    except Exception:
        return [list(row) for row in mapping_df]


def build_configuration(mapping_df, output_format: str = 'json') -> Tuple[EndpointConfiguration, List[str]]:
    """Turn the mapping table into a configuration; returns it with any row errors."""
    mapper = FieldMapper(EndpointConfiguration(output_format=(output_format or 'json').lower()))
    problems: List[str] = []

    for row in _mapping_table_rows(mapping_df):
        row = (list(row) + ["", "", "", ""])[:4]
        target, source_path, steps, fallback = [("" if v is None else str(v)).strip() for v in row]
        if not target or not source_path:
            continue
        try:
            mapping = mapper.bind(target, SAMPLE_SOURCE_ID, source_path)
        except ConfigurationError as e:
            problems.append(e.message)
            continue
        config = mapper.configuration
        for kind in [k.strip() for k in steps.split(',') if k.strip()]:
            config = config.with_transformation_step(mapping.id, TransformationStep(kind))
        if fallback:
            config = config.with_fallback(mapping.id, fallback)
        mapper.configuration = config

    return mapper.configuration, problems


def preview_mapping_handler(data, mapping_df, root_path=None, limit: int = 3):
    if data is None or mapping_df is None:
        return None, ""

    configuration, problems = build_configuration(mapping_df)
    if not configuration.mappings:
        return None, "No fields mapped."

    notifier = CollectingNotifier()
    records = records_at_root(data, root_path or '(root)')
    mapper = FieldMapper(configuration, sources=[sample_source(data)], notifier=notifier)
    rows = evaluate(configuration, {SAMPLE_SOURCE_ID: records}, fan_out=False, limit=limit, mapper=mapper)
    messages = problems + [m for _, m in notifier.messages]
    return (rows if rows else None), "\n".join(messages)


def export_mapping_handler(data, mapping_df, output_format, file_name, root_path=None):
    if data is None:
        return None, "No data loaded."

    configuration, problems = build_configuration(mapping_df)
    if not configuration.mappings:
        return None, "No fields mapped."

    records = records_at_root(data, root_path or '(root)')
    rows = evaluate(configuration, {SAMPLE_SOURCE_ID: records}, sources=[sample_source(data)], fan_out=True)

    if not file_name or not file_name.strip():
        file_name = "output"

    ext = f".{output_format.lower()}"
    if not file_name.lower().endswith(ext):
        file_name += ext

    path = os.path.join(tempfile.gettempdir(), file_name)
    try:
        export_rows(rows, path, output_format, columns=configuration.target_paths())
    except OSError as e:
        return None, f"Error during export: {str(e)}"

    status = f"Export successful! {len(rows)} rows saved to {path}"
    if problems:
        status += "\n" + "\n".join(problems)
    return path, status
