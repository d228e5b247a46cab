from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ..errors import RunError


def ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def _replace_atomic(path: Path, payload: bytes) -> None:
    ensure_dir(path.parent)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(payload)
    tmp.replace(path)


def write_bytes(path: Path, data: bytes) -> Path:
    """Write ``data`` to ``path`` atomically; I/O errors become RunError."""

    try:
        _replace_atomic(path, data)
    except OSError as e:
        raise RunError(f"Cannot write output file '{path}': {e}") from e
    return path


def write_json(path: Path, data: Any) -> Path:
    txt = json.dumps(data, indent=2, sort_keys=False, default=_json_default)
    return write_bytes(path, txt.encode("utf-8"))


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Path):
        return str(obj)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")
