"""File helpers shared by the JSON adapters.

Every file gets one lock per resolved path, so adapters opened on the
same directory within a process serialize their writes.  Writes go to a
temp file that then replaces the target, so readers never see a
half-written document.
"""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any

_locks: dict[Path, threading.Lock] = {}
_locks_guard = threading.Lock()


def lock_for(path: Path) -> threading.Lock:
    with _locks_guard:
        return _locks.setdefault(path.resolve(), threading.Lock())


def load_json(path: Path) -> Any:
    return json.loads(path.read_text(encoding="utf-8"))


def persist_json(path: Path, data: Any) -> None:
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    os.replace(tmp, path)


def ensure_file(path: Path, empty: str) -> None:
    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(empty, encoding="utf-8")


def file_stamp(path: Path) -> tuple[int, int]:
    """Cheap change marker: modification time and size."""
    stat = path.stat()
    return (stat.st_mtime_ns, stat.st_size)
