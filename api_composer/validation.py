from __future__ import annotations

from collections import Counter
from typing import Any, Dict, List

from .mapper import SOURCE_METADATA_PREFIX
from .models import EndpointConfiguration
from .paths import is_valid_source_path


def validate_configuration(configuration: EndpointConfiguration) -> Dict[str, Any]:
    """Check an endpoint configuration before it is persisted.

    Returns {'valid': bool, 'errors': [...], 'warnings': [...]}.
    """
    errors: List[str] = []
    warnings: List[str] = []
    mapped_targets = set(configuration.target_paths())

    if configuration.schema is not None:
        for path, node in configuration.schema.leaf_paths():
            if path in mapped_targets:
                continue
            if node.required:
                errors.append(f'Required field "{path}" is not mapped')
            else:
                warnings.append(f'Optional field "{path}" is not mapped')

    pairs = Counter((m.target_path, m.source_id) for m in configuration.mappings)
    for (target, source_id), n in pairs.items():
        if n > 1:
            errors.append(f'Duplicate mappings for "{target}" from source {source_id}')

    for m in configuration.mappings:
        if m.source_path.startswith(SOURCE_METADATA_PREFIX):
            continue
        if not is_valid_source_path(m.source_path):
            errors.append(f'Invalid source path "{m.source_path}" for "{m.target_path}"')

    for rel in configuration.relationships:
        if rel.parent_source_id == rel.child_source_id:
            errors.append(f'Relationship {rel.id} joins a source to itself')
        if not rel.parent_key or not rel.foreign_key:
            errors.append(f'Relationship {rel.id} is missing a join key')

    if configuration.wrapper.enabled and not configuration.wrapper.wrapper_key:
        errors.append('Output wrapper is enabled but no wrapper key is specified')

    return {'valid': not errors, 'errors': errors, 'warnings': warnings}
