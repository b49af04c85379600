from __future__ import annotations

from typing import Any, List

from .paths import parse_segment, split_path


def _lookup(container: Any, keys: List[str], i: int):
    """Look up keys[i] in a dict; returns (value, next_index) or (None, -1).

    Falls back to joining following segments for unescaped dotted keys
    (e.g. 'gpt-3.5-turbo' reached through 'responses.gpt-3.5-turbo.score').
    """
    key, _ = parse_segment(keys[i])
    if key in container:
        return container.get(key), i + 1

    candidate = key
    for j in range(i + 1, len(keys)):
        nxt, wildcard = parse_segment(keys[j])
        candidate = candidate + '.' + nxt
        if candidate in container:
            if wildcard:
                return None, -1
            return container.get(candidate), j + 1
    return None, -1


def _resolve(val: Any, keys: List[str], i: int, out: List[Any]) -> None:
    while i < len(keys):
        if not isinstance(val, dict):
            out.append(None)
            return

        _, wildcard = parse_segment(keys[i])
        nxt, j = _lookup(val, keys, i)
        if j < 0:
            out.append(None)
            return

        if wildcard:
            if not isinstance(nxt, list):
                out.append(None)
                return
            if j == len(keys):
                out.extend(nxt)
                return
            for element in nxt:
                _resolve(element, keys, j, out)
            return

        val, i = nxt, j

    out.append(val)


def get_all_values_by_path(data: Any, path: str) -> List[Any]:
    """Resolve a source path in fan-out mode: one result per wildcard element.

    Elements that do not contain the remaining path contribute None so the
    result stays aligned with the array. A path without wildcards yields a
    single-element list; a wildcard over a missing or non-array value yields [].
    """
    keys = split_path(path)
    if not keys:
        return [data]

    out: List[Any] = []
    try:
        _resolve(data, keys, 0, out)
    except (TypeError, AttributeError):
        return []

    if any(parse_segment(k)[1] for k in keys):
        # The wildcard prefix itself was missing: nothing to fan out over.
        if out == [None] and not _prefix_is_list(data, keys):
            return []
    return out


def _prefix_is_list(data: Any, keys: List[str]) -> bool:
    val = data
    for i, k in enumerate(keys):
        key, wildcard = parse_segment(k)
        if not isinstance(val, dict) or key not in val:
            return False
        val = val[key]
        if wildcard:
            return isinstance(val, list)
    return False


def get_value_by_path(data: Any, path: str, fan_out: bool = False) -> Any:
    """Retrieve a value from nested data using a source path.

    Wildcard segments (`orders[*]`) expand over array elements. In fan-out
    mode the list of per-element results is returned; otherwise the first
    element's result (preview semantics). Missing paths yield None.
    """
    values = get_all_values_by_path(data, path)
    if fan_out:
        return values
    return values[0] if values else None


def set_value_by_path(data: Any, path: str, value: Any):
    """Set a value in a nested dict by dot path (dict-only traversal).

    A root path (empty, `(root)` or one with no segments) replaces `data`.
    """
    if path in (None, '', '(root)'):
        return value

    if not isinstance(data, dict):
        return value

    parts = split_path(path)
    if not parts:
        return value
    current = data
    for part in parts[:-1]:
        nxt = current.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            current[part] = nxt
        current = nxt
    current[parts[-1]] = value
    return data
