from __future__ import annotations

import json
import os
from typing import Any, Union


def _upload_path(file_obj) -> str:
    # gradio hands over a str path, a NamedString or a tempfile wrapper
    if isinstance(file_obj, (str, os.PathLike)):
        return os.fspath(file_obj)
    return getattr(file_obj, 'name', None) or str(file_obj)


def read_upload_bytes(file_obj) -> bytes:
    if file_obj is None:
        raise ValueError("No file uploaded.")
    if isinstance(file_obj, (bytes, bytearray)):
        return bytes(file_obj)
    if hasattr(file_obj, 'read'):
        if hasattr(file_obj, 'seek'):
            file_obj.seek(0)
        data: Union[str, bytes] = file_obj.read()
        return data.encode('utf-8') if isinstance(data, str) else data
    with open(_upload_path(file_obj), 'rb') as f:
        return f.read()


def read_text_content(file_obj) -> str:
    """Uploaded sample or schema file as text; a UTF-8 BOM is dropped."""
    return read_upload_bytes(file_obj).decode('utf-8-sig')


def read_json_content(file_obj) -> Any:
    return json.loads(read_text_content(file_obj))
