"""File operations: fingerprinting, backup, atomic write, locking, grid files."""

from __future__ import annotations

import hashlib
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import orjson
import portalocker
from pydantic import ValidationError

from gridpilot.contracts.common import GridCorruptError
from gridpilot.contracts.grid import Grid


def fingerprint(path: str | Path) -> str:
    """Compute SHA-256 fingerprint of a file."""
    h = hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return f"sha256:{h.hexdigest()}"


def payload_fingerprint(data: Any) -> str:
    """SHA-256 fingerprint of a JSON-serializable value (keys sorted)."""
    raw = orjson.dumps(data, option=orjson.OPT_SORT_KEYS)
    return f"sha256:{hashlib.sha256(raw).hexdigest()}"


def grid_fingerprint(grid: Grid) -> str:
    """Content fingerprint of a grid snapshot, independent of file layout."""
    return payload_fingerprint(grid.model_dump(mode="json"))


def backup(path: str | Path) -> str:
    """Create a timestamped backup of a file. Returns backup path."""
    path = Path(path)
    ts = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
    backup_name = f"{path.stem}.{ts}.bak{path.suffix}"
    backup_path = path.parent / backup_name
    shutil.copy2(path, backup_path)
    return str(backup_path)


def atomic_write(target: str | Path, data: bytes) -> None:
    """Write data to target atomically via temp file + rename."""
    target = Path(target)
    fd, tmp_path = tempfile.mkstemp(
        dir=target.parent, suffix=target.suffix, prefix=".gp_tmp_"
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        shutil.move(tmp_path, target)
    except Exception:
        if os.path.exists(tmp_path):
            os.unlink(tmp_path)
        raise


class GridLock:
    """Exclusive ``<file>.gp.lock`` sidecar held while a grid file is rewritten.

    ``timeout`` is how long to keep retrying; ``0`` tries once. Contention
    raises ``portalocker.LockException`` (``AlreadyLocked``). The lock file
    records the holder's pid and start time and is left behind on release.
    """

    def __init__(self, grid_path: str | Path, *, timeout: float = 0) -> None:
        self.grid_path = Path(grid_path).resolve()
        self.timeout = timeout
        self._lock = portalocker.Lock(
            self.lock_path,
            mode="w",
            timeout=timeout,
            check_interval=min(0.1, max(0.01, timeout / 20)),
            fail_when_locked=False,
        )

    @property
    def lock_path(self) -> Path:
        return self.grid_path.with_name(self.grid_path.name + ".gp.lock")

    def __enter__(self) -> "GridLock":
        holder = self._lock.acquire()
        holder.write(f"pid={os.getpid()}\ntime={datetime.now(timezone.utc).isoformat()}\n")
        holder.flush()
        return self

    def __exit__(self, exc_type: object, exc_val: object, exc_tb: object) -> None:
        self._lock.release()


def read_text_safe(path: str | Path) -> str:
    """Read a text file with UTF-8 BOM tolerance."""
    return Path(path).read_text(encoding="utf-8-sig")


def load_json(path: str | Path) -> Any:
    return orjson.loads(read_text_safe(path))


def load_grid(path: str | Path) -> Grid:
    """Load a grid JSON file. Raises FileNotFoundError or GridCorruptError."""
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Grid not found: {p}")
    try:
        data = load_json(p)
        return Grid.model_validate(data)
    except (orjson.JSONDecodeError, ValidationError, UnicodeDecodeError) as e:
        raise GridCorruptError(f"Cannot read grid {p}: {e}") from e


def dump_grid(grid: Grid) -> bytes:
    return orjson.dumps(grid.model_dump(mode="json"), option=orjson.OPT_INDENT_2)


def save_grid(path: str | Path, grid: Grid) -> None:
    atomic_write(path, dump_grid(grid))
