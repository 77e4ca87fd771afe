"""Persistent per-place interaction statistics (favorites, clicks, last seen)."""
from __future__ import annotations

import logging
import time
from dataclasses import replace
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional

from . import config
from .cache import KeyValueStore, load_json, save_json
from .models import InteractionRecord

logger = logging.getLogger(__name__)


class InteractionStore:
    """Owns every InteractionRecord, keyed by place identity key.

    Each mutation rewrites the whole namespace synchronously. Two processes
    sharing one store file race on that write; the last one wins.
    """

    def __init__(
        self,
        store: KeyValueStore,
        namespace: str = config.INTERACTIONS_NAMESPACE,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.namespace = namespace
        self.clock = clock
        self._records: Dict[str, InteractionRecord] = self._load()

    def _load(self) -> Dict[str, InteractionRecord]:
        raw = load_json(self.store, self.namespace, {})
        records: Dict[str, InteractionRecord] = {}
        for key, value in raw.items():
            record = record_from_dict(value)
            if record is None:
                logger.warning("Skipping malformed interaction record for %s", key)
                continue
            records[str(key)] = record
        return records

    def _persist(self) -> None:
        payload = {key: record_to_dict(rec) for key, rec in self._records.items()}
        save_json(self.store, self.namespace, payload)

    def get(self, key: str) -> Optional[InteractionRecord]:
        return self._records.get(key)

    def record_click(self, key: str) -> InteractionRecord:
        current = self._records.get(key) or InteractionRecord()
        updated = replace(
            current,
            click_count=current.click_count + 1,
            last_seen_at=self.clock(),
        )
        self._records[key] = updated
        self._persist()
        return updated

    def toggle_favorite(self, key: str) -> InteractionRecord:
        current = self._records.get(key) or InteractionRecord()
        updated = replace(current, favorite=not current.favorite)
        self._records[key] = updated
        self._persist()
        return updated

    def snapshot(self) -> Mapping[str, InteractionRecord]:
        return MappingProxyType(dict(self._records))

    def __len__(self) -> int:
        return len(self._records)


def record_to_dict(record: InteractionRecord) -> Dict[str, Any]:
    return {
        "favorite": record.favorite,
        "click_count": record.click_count,
        "last_seen_at": record.last_seen_at,
    }


def record_from_dict(data: Any) -> Optional[InteractionRecord]:
    if not isinstance(data, dict):
        return None
    try:
        click_count = int(data.get("click_count") or 0)
        last_seen = data.get("last_seen_at")
        last_seen_at = float(last_seen) if last_seen is not None else None
    except (TypeError, ValueError):
        return None
    return InteractionRecord(
        favorite=bool(data.get("favorite", False)),
        click_count=max(0, click_count),
        last_seen_at=last_seen_at,
    )
