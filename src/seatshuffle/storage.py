from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Dict, List, Protocol

from .models import ConfirmedLayoutRecord

logger = logging.getLogger(__name__)

MAX_RECORDS_PER_CLASS = 50


class UnreadableStoreError(ValueError):
    """A class file exists but cannot be parsed; it is left untouched."""


class ConfirmedLayoutStore(Protocol):
    def list(self, class_id: str) -> List[ConfirmedLayoutRecord]: ...

    def append(self, class_id: str, record: ConfirmedLayoutRecord) -> None: ...

    def delete(self, class_id: str, record_id: str) -> bool: ...


class InMemoryConfirmedLayoutStore:
    def __init__(self, limit: int = MAX_RECORDS_PER_CLASS) -> None:
        self.limit = limit
        self._records: Dict[str, List[ConfirmedLayoutRecord]] = {}

    def list(self, class_id: str) -> List[ConfirmedLayoutRecord]:
        return list(self._records.get(class_id, []))

    def append(self, class_id: str, record: ConfirmedLayoutRecord) -> None:
        self._records[class_id] = _newest_first(self.list(class_id) + [record], self.limit)

    def delete(self, class_id: str, record_id: str) -> bool:
        records = self.list(class_id)
        kept = [record for record in records if record.id != record_id]
        self._records[class_id] = kept
        return len(kept) != len(records)


class JsonConfirmedLayoutStore:
    """One JSON file per class under ``<base_dir>/data/confirmed``."""

    def __init__(self, base_dir: Path, limit: int = MAX_RECORDS_PER_CLASS) -> None:
        self.base_dir = Path(base_dir)
        self.limit = limit

    def storage_dir(self) -> Path:
        path = self.base_dir / "data" / "confirmed"
        path.mkdir(parents=True, exist_ok=True)
        return path

    def list(self, class_id: str) -> List[ConfirmedLayoutRecord]:
        try:
            return self._load(class_id)
        except UnreadableStoreError as exc:
            logger.warning("%s", exc)
            return []

    def append(self, class_id: str, record: ConfirmedLayoutRecord) -> None:
        self._write(class_id, _newest_first(self._load(class_id) + [record], self.limit))

    def delete(self, class_id: str, record_id: str) -> bool:
        records = self._load(class_id)
        kept = [record for record in records if record.id != record_id]
        if len(kept) == len(records):
            return False
        self._write(class_id, kept)
        return True

    def _load(self, class_id: str) -> List[ConfirmedLayoutRecord]:
        """Read a class file, raising ``UnreadableStoreError`` if the file itself is unreadable.

        Writers go through here so a corrupt file is never replaced.
        """
        path = self._path(class_id)
        if not path.exists():
            return []
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise UnreadableStoreError(f"Could not read confirmed layouts for {class_id}: {exc}") from exc
        if not isinstance(raw, list):
            raise UnreadableStoreError(f"Confirmed layouts for {class_id} are not a list")

        records: List[ConfirmedLayoutRecord] = []
        for entry in raw:
            try:
                records.append(ConfirmedLayoutRecord.from_dict(entry))
            except ValueError as exc:
                logger.warning("Skipping malformed confirmed layout for %s: %s", class_id, exc)
        return _newest_first(records, self.limit)

    def _write(self, class_id: str, records: List[ConfirmedLayoutRecord]) -> None:
        path = self._path(class_id)
        payload = [record.to_dict() for record in records]
        path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")

    def _path(self, class_id: str) -> Path:
        directory = self.storage_dir()
        path = directory / f"{sanitize_class_id(class_id)}.json"
        try:
            path.resolve().relative_to(directory.resolve())
        except ValueError as exc:
            raise ValueError("Invalid class id") from exc
        return path


def sanitize_class_id(class_id: str) -> str:
    if not class_id or not isinstance(class_id, str):
        raise ValueError("Invalid class id")
    cleaned = re.sub(r"[^a-zA-Z0-9\-_]", "", class_id).strip()
    if not cleaned:
        raise ValueError("Class id must contain at least one valid character")
    return cleaned[:60]


def _newest_first(records: List[ConfirmedLayoutRecord], limit: int) -> List[ConfirmedLayoutRecord]:
    ordered = sorted(records, key=lambda record: record.timestamp, reverse=True)
    return ordered[:limit]
