from __future__ import annotations

from typing import Any, Dict, List, Optional

from .inference import HeuristicTypeInferencer, TypeInferencer
from .log import get_logger
from .models import CatalogueEntry
from .paths import join_path

logger = get_logger(__name__)

DEFAULT_MAX_DEPTH = 4


def is_internal_key(key: Any) -> bool:
    """GraphQL/system noise such as `_links`, `$ref` or `__typename`."""
    if not isinstance(key, str):
        return False
    return key.startswith('_') or key.startswith('$') or key == '__typename'


class PathIndexer:
    """Walks a sample document depth-first and catalogues addressable paths."""

    def __init__(self, inferencer: Optional[TypeInferencer] = None, max_depth: int = DEFAULT_MAX_DEPTH):
        self.inferencer = inferencer or HeuristicTypeInferencer()
        self.max_depth = max_depth

    def index(
        self,
        document: Any,
        max_depth: Optional[int] = None,
        source_id: str = '',
        source_name: str = '',
    ) -> List[CatalogueEntry]:
        depth_limit = self.max_depth if max_depth is None else max_depth
        entries: Dict[str, CatalogueEntry] = {}

        root = document
        if isinstance(root, list):
            # A top-level array is a record list; catalogue its first record.
            root = next((x for x in root if isinstance(x, dict)), None)
        if not isinstance(root, dict):
            logger.debug("Nothing to index for source %r (root is %s)", source_id, type(document).__name__)
            return []

        def emit(path: str, value: Any) -> None:
            semantic_type = self.inferencer.infer(path, value)
            sample = None if isinstance(value, (dict, list)) else value
            entries[path] = CatalogueEntry(
                path=path,
                semantic_type=semantic_type,
                sample_value=sample,
                source_id=source_id,
                source_name=source_name,
            )

        def walk(obj: Dict[str, Any], prefix: str, depth: int) -> None:
            if depth >= depth_limit:
                return
            for key, value in obj.items():
                if is_internal_key(key):
                    continue
                path = join_path(prefix, key)
                emit(path, value)

                if isinstance(value, dict):
                    walk(value, path, depth + 1)
                elif isinstance(value, list) and value and isinstance(value[0], dict):
                    walk(value[0], join_path(prefix, key, wildcard=True), depth + 1)

        walk(root, '', 0)
        return list(entries.values())


def index(document: Any, max_depth: int = DEFAULT_MAX_DEPTH, source_id: str = '', source_name: str = '') -> List[CatalogueEntry]:
    return PathIndexer(max_depth=max_depth).index(document, source_id=source_id, source_name=source_name)


def find_list_paths(data: Any, parent_key: str = '') -> List[str]:
    """Find all paths in the JSON that point to a list (record-root candidates)."""
    paths: List[str] = []
    if isinstance(data, dict):
        for k, v in data.items():
            if is_internal_key(k):
                continue
            current_key = join_path(parent_key, k)
            if isinstance(v, list):
                paths.append(current_key)
                if v and isinstance(v[0], dict):
                    paths.extend(find_list_paths(v[0], join_path(parent_key, k, wildcard=True)))
            elif isinstance(v, dict):
                paths.extend(find_list_paths(v, current_key))
    elif isinstance(data, list):
        if not parent_key:
            paths.append("(root)")
            if data and isinstance(data[0], dict):
                paths.extend(find_list_paths(data[0], ""))
    return sorted(paths)

