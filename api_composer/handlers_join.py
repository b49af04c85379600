from __future__ import annotations

import json
import os
import tempfile
from typing import Any, List
from uuid import uuid4

import gradio as gr

from .accessors import get_value_by_path
from .errors import ConfigurationError
from .handlers_mapping import records_at_root
from .indexer import PathIndexer, find_list_paths
from .io_utils import read_json_content
from .models import Relationship, new_id
from .relationships import join


def record_key_paths(data: Any, root_path: str) -> List[str]:
    """Scalar paths of the first record under the root: join key candidates."""
    records = records_at_root(data, root_path)
    if not records:
        return []
    entries = PathIndexer().index(records[0])
    return sorted(e.path for e in entries if e.semantic_type not in ('object', 'array') and '[*]' not in e.path)


def handle_dataset_upload(file_obj, label_prefix):
    empty_root = gr.update(choices=["(root)"], value="(root)")
    empty_keys = gr.update(choices=[], value=None, interactive=False)
    if file_obj is None:
        return None, empty_root, f"{label_prefix}: No file uploaded.", empty_keys

    try:
        data = read_json_content(file_obj)
    except Exception as e:
        return None, empty_root, f"{label_prefix}: Error parsing JSON: {str(e)}", empty_keys

    list_paths = [p for p in find_list_paths(data) if '[*]' not in p] or ["(root)"]
    default_root = "(root)" if "(root)" in list_paths else list_paths[0]
    keys = record_key_paths(data, default_root)
    status_message = f"{label_prefix}: Successfully loaded. Found {len(keys)} key fields."
    key_update = gr.update(choices=keys, value=keys[0] if keys else None, interactive=bool(keys))
    return data, gr.update(choices=list_paths, value=default_root), status_message, key_update


def handle_parent_upload(file_obj):
    return handle_dataset_upload(file_obj, "Parent dataset")


def handle_child_upload(file_obj):
    return handle_dataset_upload(file_obj, "Child dataset")


def handle_root_change(data, root_path):
    keys = record_key_paths(data, root_path or '(root)')
    return gr.update(choices=keys, value=keys[0] if keys else None, interactive=bool(keys))


def join_datasets_handler(
    parent_data,
    child_data,
    parent_root,
    child_root,
    parent_key,
    foreign_key,
    cardinality,
    embed_as,
    include_orphans,
    file_name,
):
    if parent_data is None or child_data is None:
        return None, "Upload both datasets before joining.", None
    if not parent_key or not foreign_key:
        return None, "Select a parent key and a foreign key.", None

    try:
        relationship = Relationship(
            id=new_id('rel'),
            parent_source_id='parent',
            parent_key=parent_key,
            child_source_id='child',
            foreign_key=foreign_key,
            cardinality=cardinality or 'one-to-many',
            embed_as=(embed_as or 'items').strip() or 'items',
            include_orphans=bool(include_orphans),
        )
    except ConfigurationError as exc:
        return None, exc.message, None

    parents = records_at_root(parent_data, parent_root or '(root)')
    children = records_at_root(child_data, child_root or '(root)')
    joined = [j.record for j in join(parents, children, relationship)]

    if not joined:
        return None, "Join produced no rows.", None

    output_name = (file_name or f"joined_{uuid4().hex}").strip()
    if not output_name.lower().endswith('.json'):
        output_name += '.json'

    path = os.path.join(tempfile.gettempdir(), output_name)
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump(joined, f, indent=2)
    except OSError as exc:
        return None, f"Error writing joined file: {str(exc)}", None

    orphans = len(parents) - sum(
        1 for j in joined
        if get_value_by_path(j, relationship.embed_as) not in (None, [])
    )
    summary = (
        f"Parents: {len(parents)} | Children: {len(children)} | "
        f"Joined rows: {len(joined)} | Orphans: {orphans} "
        f"({'kept' if relationship.include_orphans else 'dropped'})."
    )
    return path, summary, joined[:3]
