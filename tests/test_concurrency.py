"""Tests for GridLock and concurrent file access safety."""

from __future__ import annotations

import json
import multiprocessing
import os
import time
from pathlib import Path

import portalocker
import pytest

from gridpilot.io.fileops import GridLock


def _lock_path(grid_file: Path) -> Path:
    return grid_file.parent / (grid_file.name + ".gp.lock")


# ---------------------------------------------------------------------------
# GridLock unit tests
# ---------------------------------------------------------------------------


class TestGridLock:
    """Unit tests for the GridLock context manager."""

    def test_basic_acquire_release(self, grid_file: Path):
        with GridLock(grid_file):
            assert _lock_path(grid_file).exists()
        # Released, so it can be taken again
        with GridLock(grid_file):
            pass

    def test_lock_file_remains_after_release(self, grid_file: Path):
        assert not _lock_path(grid_file).exists()
        with GridLock(grid_file):
            pass
        assert _lock_path(grid_file).exists()

    def test_lock_file_contains_pid(self, grid_file: Path):
        with GridLock(grid_file):
            pass
        content = _lock_path(grid_file).read_text()
        assert f"pid={os.getpid()}" in content
        assert "time=" in content

    def test_lock_path_property(self, grid_file: Path):
        assert GridLock(grid_file).lock_path == _lock_path(grid_file).resolve()

    def test_timeout_zero_fails_immediately(self, grid_file: Path):
        with GridLock(grid_file):
            with pytest.raises(portalocker.LockException):
                with GridLock(grid_file, timeout=0):
                    pass

    def test_timeout_expires(self, grid_file: Path):
        with GridLock(grid_file):
            start = time.monotonic()
            with pytest.raises(portalocker.LockException):
                with GridLock(grid_file, timeout=0.2):
                    pass
            assert time.monotonic() - start >= 0.1


# ---------------------------------------------------------------------------
# Multiprocessing concurrency tests
# ---------------------------------------------------------------------------


def _hold_lock(grid_path: str, ready_flag_path: str, done_flag_path: str):
    """Helper: acquire lock, signal ready, wait for done signal, release."""
    ready = Path(ready_flag_path)
    done = Path(done_flag_path)
    with GridLock(Path(grid_path), timeout=0):
        ready.write_text("ready")
        for _ in range(100):
            if done.exists():
                break
            time.sleep(0.1)


def _short_hold(grid_path: str, ready_path: str):
    """Hold lock briefly, then release. Module-level for pickling on Windows."""
    with GridLock(Path(grid_path), timeout=0):
        Path(ready_path).write_text("ready")
        time.sleep(0.5)


def _try_lock_in_subprocess(grid_path: str, timeout: float, result_path: str):
    out = Path(result_path)
    try:
        with GridLock(Path(grid_path), timeout=timeout):
            out.write_text("acquired")
    except portalocker.LockException:
        out.write_text("blocked")
    except Exception as e:
        out.write_text(f"error:{e}")


def _wait_for(flag: Path) -> None:
    for _ in range(50):
        if flag.exists():
            return
        time.sleep(0.1)
    raise AssertionError("Holder process did not signal ready")


class TestConcurrentAccess:
    """Cross-process concurrency tests using multiprocessing."""

    def test_concurrent_lock_rejection(self, grid_file: Path, tmp_path: Path):
        ready_flag = tmp_path / "ready.flag"
        done_flag = tmp_path / "done.flag"
        result_file = tmp_path / "result.txt"

        holder = multiprocessing.Process(
            target=_hold_lock, args=(str(grid_file), str(ready_flag), str(done_flag)),
        )
        holder.start()
        try:
            _wait_for(ready_flag)
            contender = multiprocessing.Process(
                target=_try_lock_in_subprocess, args=(str(grid_file), 0, str(result_file)),
            )
            contender.start()
            contender.join(timeout=10)
            assert result_file.read_text() == "blocked"
        finally:
            done_flag.write_text("done")
            holder.join(timeout=10)

    def test_lock_wait_success(self, grid_file: Path, tmp_path: Path):
        ready_flag = tmp_path / "ready.flag"
        result_file = tmp_path / "result.txt"

        holder = multiprocessing.Process(target=_short_hold, args=(str(grid_file), str(ready_flag)))
        holder.start()
        try:
            _wait_for(ready_flag)
            contender = multiprocessing.Process(
                target=_try_lock_in_subprocess, args=(str(grid_file), 5, str(result_file)),
            )
            contender.start()
            contender.join(timeout=15)
            assert result_file.read_text() == "acquired"
        finally:
            holder.join(timeout=10)


# ---------------------------------------------------------------------------
# CLI integration tests
# ---------------------------------------------------------------------------


class TestCLILocking:
    def test_mutating_command_leaves_lock_file(self, grid_file: Path):
        from typer.testing import CliRunner

        from gridpilot.cli import app

        result = CliRunner().invoke(app, ["grid", "edit", "-f", str(grid_file), "--ref", "A1", "--value", "x"])
        assert json.loads(result.output)["ok"] is True
        assert _lock_path(grid_file).exists()

    def test_read_commands_unaffected_by_lock(self, grid_file: Path):
        from typer.testing import CliRunner

        from gridpilot.cli import app

        runner = CliRunner()
        with GridLock(grid_file):
            for cmd in [
                ["grid", "show", "-f", str(grid_file)],
                ["suggest", "context", "-f", str(grid_file), "--ref", "A1"],
            ]:
                result = runner.invoke(app, cmd)
                assert json.loads(result.output)["ok"] is True, result.output
