from __future__ import annotations

import re
from typing import List

WILDCARD = '[*]'

_SPECIAL = ('\\', '.', '[', ']')
_SEGMENT_RE = re.compile(r'^(?:[^.\[\]\\]|\\.)+(?:\[\*\])?$')


def escape_path_segment(segment: str) -> str:
    """Backslash-escape backslashes, dots and brackets in an object key.

    Keys such as `gpt-3.5-turbo` or `a[b]` then stay a single segment and
    are never read as a wildcard; `split_path` undoes the escaping.
    """
    if not isinstance(segment, str):
        segment = str(segment)
    for ch in _SPECIAL:
        segment = segment.replace(ch, '\\' + ch)
    return segment


def unescape_path_segment(segment: str) -> str:
    if segment is None:
        return ''
    out: List[str] = []
    i = 0
    while i < len(segment):
        ch = segment[i]
        if ch == '\\' and i + 1 < len(segment):
            out.append(segment[i + 1])
            i += 2
        else:
            out.append(ch)
            i += 1
    return ''.join(out)


def _split_raw(path: str) -> List[str]:
    """Split on unescaped '.' keeping escape pairs intact."""
    parts: List[str] = []
    buf: List[str] = []
    escaping = False

    for ch in path:
        if escaping:
            buf.append('\\')
            buf.append(ch)
            escaping = False
            continue
        if ch == '\\':
            escaping = True
            continue
        if ch == '.':
            parts.append(''.join(buf))
            buf = []
            continue
        buf.append(ch)

    if escaping:
        # Trailing backslash; treat as literal.
        buf.append('\\')

    parts.append(''.join(buf))
    return parts


def split_path(path: str) -> List[str]:
    """Split a source path into segments.

    Wildcard segments keep their `[*]` suffix (`orders[*]`); key text is
    unescaped. Empty segments are dropped.
    """
    if path is None:
        return []
    if not isinstance(path, str):
        path = str(path)

    segments: List[str] = []
    for raw in _split_raw(path):
        if raw == '':
            continue
        if raw.endswith(WILDCARD) and not raw[:-len(WILDCARD)].endswith('\\'):
            segments.append(unescape_path_segment(raw[:-len(WILDCARD)]) + WILDCARD)
        else:
            segments.append(unescape_path_segment(raw))
    return segments


def parse_segment(segment: str):
    """Return (key, is_wildcard) for one split segment."""
    if segment.endswith(WILDCARD):
        return segment[:-len(WILDCARD)], True
    return segment, False


def join_path(parent: str, key: str, wildcard: bool = False) -> str:
    escaped = escape_path_segment(key)
    if wildcard:
        escaped += WILDCARD
    return f"{parent}.{escaped}" if parent else escaped


def has_wildcard(path: str) -> bool:
    return any(parse_segment(s)[1] for s in split_path(path))


def is_valid_source_path(path: str) -> bool:
    """Check `segment ('.' segment)*` where segment is `key` or `key[*]`."""
    if not isinstance(path, str) or not path:
        return False
    raw_parts = _split_raw(path)
    return all(_SEGMENT_RE.match(p) for p in raw_parts)


def last_segment_name(path: str) -> str:
    parts = split_path(path)
    if not parts:
        return path or ''
    return parse_segment(parts[-1])[0]
