"""Output reporting helpers."""
from __future__ import annotations

import csv
import io
import json
import logging
import os
import tempfile
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, TextIO, Tuple

from .cache import utc_now_iso
from .http import RequestMetrics
from .models import Place, place_to_dict

CSV_COLUMNS = ["name", "region", "address", "phone", "longitude", "latitude"]


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def _fsync_dir(path: str) -> None:
    try:
        dir_fd = os.open(path, os.O_DIRECTORY)
    except Exception:
        return
    try:
        os.fsync(dir_fd)
    except Exception:
        pass
    finally:
        os.close(dir_fd)


@contextmanager
def atomic_writer(
    path: str,
    mode: str = "w",
    encoding: str = "utf-8",
    newline: Optional[str] = None,
) -> Iterator[TextIO]:
    dir_path = os.path.dirname(path) or "."
    base = os.path.basename(path)
    fd, tmp_path = tempfile.mkstemp(prefix=f".{base}.", suffix=".tmp", dir=dir_path)
    try:
        with os.fdopen(fd, mode, encoding=encoding, newline=newline) as f:
            yield f
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, path)
        _fsync_dir(dir_path)
    except Exception:
        try:
            os.unlink(tmp_path)
        except Exception:
            pass
        raise


def atomic_write_text(path: str, text: str) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        f.write(text)


def csv_row(place: Place) -> List[str]:
    return [
        place.name,
        place.region_label or "",
        place.display_address,
        place.phone,
        repr(place.longitude),
        repr(place.latitude),
    ]


def places_to_csv(places: Iterable[Place], header: bool = False) -> str:
    """One row per place, every value double-quoted, embedded quotes doubled.

    Rows are separated by "\\n". The column header row is opt-in.
    """
    buf = io.StringIO()
    writer = csv.writer(buf, quoting=csv.QUOTE_ALL, lineterminator="\n")
    if header:
        writer.writerow(CSV_COLUMNS)
    for place in places:
        writer.writerow(csv_row(place))
    return buf.getvalue()


def write_places_csv(path: str, places: Iterable[Place], header: bool = False) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8", newline="") as f:
        f.write(places_to_csv(places, header=header))


def write_places_json(path: str, places: Iterable[Place]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump([place_to_dict(p) for p in places], f, ensure_ascii=False, indent=2)


def write_json_object(path: str, payload: Dict[str, Any]) -> None:
    with atomic_writer(path, mode="w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)


class ProgressReporter:
    def __init__(
        self,
        output_path: Optional[str],
        log_every: int = 50,
        write_interval_seconds: float = 5.0,
        logger: Optional[logging.Logger] = None,
        metrics: Optional[RequestMetrics] = None,
    ) -> None:
        self.output_path = output_path
        self.log_every = max(1, int(log_every)) if log_every else 0
        self.write_interval_seconds = float(write_interval_seconds)
        self.logger = logger or logging.getLogger(__name__)
        self.metrics = metrics if metrics is not None else RequestMetrics()
        self.stage = "init"
        self.processed_count = 0
        self.total_estimate: Optional[int] = None
        self._next_log = self.log_every if self.log_every else 0
        self._last_write = 0.0

    def set_stage(self, stage: str, total_estimate: Optional[int] = None) -> None:
        self.stage = stage
        self.processed_count = 0
        self.total_estimate = total_estimate
        self._next_log = self.log_every if self.log_every else 0
        self._write_if_due(force=True)

    def advance(self, count: int = 1) -> None:
        if count <= 0:
            return
        self.processed_count += count
        search_requests, geocode_requests = self._get_counts()
        if self.log_every and self.processed_count >= self._next_log:
            if self.total_estimate is None:
                self.logger.info(
                    "Progress: stage=%s processed=%s search_requests=%s geocode_requests=%s",
                    self.stage,
                    self.processed_count,
                    search_requests,
                    geocode_requests,
                )
            else:
                self.logger.info(
                    "Progress: stage=%s processed=%s/%s search_requests=%s geocode_requests=%s",
                    self.stage,
                    self.processed_count,
                    self.total_estimate,
                    search_requests,
                    geocode_requests,
                )
            self._next_log += self.log_every
        self._write_if_due()

    def on_request(self, _kind: str, _search_count: int, _geocode_count: int) -> None:
        self._write_if_due()

    def flush(self) -> None:
        self._write_if_due(force=True)

    def _get_counts(self) -> Tuple[int, int]:
        return (self.metrics.network_search, self.metrics.network_geocode)

    def _write_if_due(self, force: bool = False) -> None:
        if not self.output_path:
            return
        now = time.monotonic()
        if not force and (now - self._last_write) < self.write_interval_seconds:
            return
        search_requests, geocode_requests = self._get_counts()
        payload = {
            "stage": self.stage,
            "processed_count": self.processed_count,
            "total_estimate": self.total_estimate,
            "search_requests": search_requests,
            "geocode_requests": geocode_requests,
            "timestamp": utc_now_iso(),
        }
        with atomic_writer(self.output_path, mode="w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        self._last_write = now
