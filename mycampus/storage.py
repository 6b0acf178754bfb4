"""
Persistent storage for the campus snapshot.

The whole dataset is stored as ONE JSON document:

    {"version": 1, "users": [...], "courses": [...], ..., "messages": [...]}

Store contract:
- load()  -> snapshot dict, or None when nothing has been stored yet
- save(snapshot) -> None, raises PersistenceError on failure

A missing file means "first run" (the caller seeds demo data).
A corrupted file is NOT treated as missing: silently re-seeding would
overwrite the user's records, so it raises PersistenceError instead.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from mycampus.config import get_settings
from mycampus.credentials import CredentialVerifier
from mycampus.dataset import Dataset
from mycampus.errors import PersistenceError
from mycampus.seed import build_seed_dataset

logger = logging.getLogger(__name__)


class Store(Protocol):
    def load(self) -> dict[str, Any] | None: ...

    def save(self, snapshot: dict[str, Any]) -> None: ...


class JsonFileStore:
    """
    Snapshot kept in a JSON file. Writes go to a temp file in the same
    directory and are moved into place, so a crash never leaves half a file.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        # Use custom path if provided (mainly for tests),
        # otherwise fall back to the configured location
        self.path = Path(path) if path is not None else get_settings().data_path

    def load(self) -> dict[str, Any] | None:
        # First run: file does not exist yet
        if not self.path.exists():
            return None
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
            logger.error("Cannot read snapshot %s: %s", self.path, exc)
            raise PersistenceError(f"cannot read {self.path}: {exc}") from exc
        if not isinstance(data, dict):
            raise PersistenceError(f"{self.path} does not contain a snapshot object")
        return data

    def save(self, snapshot: dict[str, Any]) -> None:
        text = json.dumps(snapshot, indent=2, ensure_ascii=False)
        tmp_name: str | None = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(prefix=".campus-", suffix=".json", dir=self.path.parent)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(text)
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            logger.error("Cannot write snapshot %s: %s", self.path, exc)
            raise PersistenceError(f"cannot write {self.path}: {exc}") from exc
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)


class MemoryStore:
    """
    Keeps the snapshot in memory (tests, throwaway sessions).
    Snapshots are deep-copied in and out so callers cannot alias stored state.
    """

    def __init__(self, snapshot: dict[str, Any] | None = None) -> None:
        self.snapshot = copy.deepcopy(snapshot) if snapshot is not None else None
        self.saves = 0

    def load(self) -> dict[str, Any] | None:
        return copy.deepcopy(self.snapshot) if self.snapshot is not None else None

    def save(self, snapshot: dict[str, Any]) -> None:
        self.snapshot = copy.deepcopy(snapshot)
        self.saves += 1


def open_dataset(store: Store, verifier: CredentialVerifier, now: datetime) -> Dataset:
    """
    Load the stored dataset, or seed and persist the demo dataset on first run.
    """
    snapshot = store.load()
    if snapshot is not None:
        return Dataset.from_snapshot(snapshot)

    logger.info("Empty store, seeding demo data")
    ds = build_seed_dataset(verifier, now)
    store.save(ds.to_snapshot())
    return ds
