"""JSON-file-backed sudo list."""

from __future__ import annotations

import asyncio
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Iterable


def atomic_write(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except OSError:
            pass
        raise


class JsonSudoListStore:
    """Sudo ids persisted as ``{"sudo": [...]}``.

    Owners are implicit and cannot be stored or removed here.
    """

    def __init__(self, path: Path, *, owner_ids: Iterable[str] = ()) -> None:
        self._path = path
        self._owner_ids = frozenset(owner_ids)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    async def list(self) -> set[str]:
        return set(await asyncio.to_thread(self.load))

    def load(self) -> list[str]:
        if not self._path.exists():
            return []
        data = json.loads(self._path.read_text(encoding="utf-8") or "{}")
        entries = data.get("sudo") if isinstance(data, dict) else None
        if not isinstance(entries, list):
            raise ValueError(f"Sudo file must contain a 'sudo' list: {self._path}")
        return [str(item).strip() for item in entries if str(item).strip()]

    def add(self, subject_id: str) -> bool:
        subject_id = self._validate(subject_id)
        with self._lock:
            entries = self.load()
            if subject_id in entries:
                return False
            entries.append(subject_id)
            self._save(entries)
        return True

    def remove(self, subject_id: str) -> bool:
        subject_id = self._validate(subject_id)
        with self._lock:
            entries = self.load()
            if subject_id not in entries:
                return False
            entries.remove(subject_id)
            self._save(entries)
        return True

    def _validate(self, subject_id: str) -> str:
        token = str(subject_id or "").strip()
        if not token:
            raise ValueError("subject id must be non-empty")
        if token in self._owner_ids:
            raise ValueError("the owner is always privileged and cannot be edited")
        return token

    def _save(self, entries: list[str]) -> None:
        atomic_write(self._path, json.dumps({"sudo": entries}, indent=2) + "\n")
