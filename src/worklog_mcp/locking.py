"""Locked, atomic writes for small files shared between processes."""

from __future__ import annotations

import os
from contextlib import contextmanager
from pathlib import Path
from typing import Generator

import portalocker


@contextmanager
def file_lock(path: Path, timeout: float = 10.0) -> Generator[None, None, None]:
    """Hold an exclusive lock on ``<path>.lock`` for the duration of the block.

    Raises:
        portalocker.LockException: If the lock cannot be acquired in time
    """
    lock_path = path.with_suffix(path.suffix + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.touch(exist_ok=True)

    with portalocker.Lock(lock_path, timeout=timeout):
        yield


def write_text_atomic(path: Path, text: str, timeout: float = 10.0) -> None:
    """Replace ``path`` with ``text`` under the file lock.

    Readers see either the old or the new content, never a partial file.
    """
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    with file_lock(path, timeout=timeout):
        try:
            tmp_path.write_text(text, encoding="utf-8")
            os.replace(tmp_path, path)
        except Exception:
            if tmp_path.exists():
                tmp_path.unlink()
            raise


def remove_locked(path: Path, timeout: float = 10.0) -> bool:
    """Delete ``path`` under the file lock. Returns False if it did not exist."""
    with file_lock(path, timeout=timeout):
        if not path.exists():
            return False
        path.unlink()
        return True
