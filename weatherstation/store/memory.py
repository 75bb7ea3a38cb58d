"""
In-memory time-series store backed by a pandas DataFrame.

Optionally persisted as CSV between runs.
"""

import logging
import os
import threading
from datetime import datetime, timedelta
from typing import Any, Dict, Iterator, List, Optional

import pandas as pd

from weatherstation.models.topic import parse_value
from weatherstation.store.base import TimeSeriesStore

logger = logging.getLogger(__name__)

COLUMNS = ["topic", "time", "value"]


def _empty_frame() -> pd.DataFrame:
    return pd.DataFrame({
        "topic": pd.Series(dtype=object),
        "time": pd.Series(dtype="datetime64[ns, UTC]"),
        "value": pd.Series(dtype=object)
    })


class MemoryStore(TimeSeriesStore):
    """
    TimeSeriesStore keeping every point in memory.

    Writes are buffered and appended to the frame on the next query or
    flush.
    """

    def __init__(self, path: Optional[str] = None):
        """
        Args:
            path: CSV file to load from and flush to (None keeps it in memory)
        """
        self.path = path
        self._lock = threading.Lock()
        self._pending: List[Dict[str, Any]] = []
        self._frame = _empty_frame()

        if path and os.path.exists(path):
            self._load()

    def write_point(self, measurement: str, fields: Dict[str, Any], timestamp_ns: int) -> None:
        point = {
            "topic": measurement,
            "time": pd.Timestamp(timestamp_ns, unit="ns", tz="UTC"),
            "value": fields.get("value")
        }
        with self._lock:
            self._pending.append(point)

    def query_range(
        self,
        topic: str,
        window: timedelta,
        now: Optional[datetime] = None
    ) -> Iterator[Dict[str, Any]]:
        now_ts = pd.Timestamp.now(tz="UTC") if now is None else pd.Timestamp(now)
        if now_ts.tzinfo is None:
            now_ts = now_ts.tz_localize("UTC")

        with self._lock:
            frame = self._materialize()
            mask = (frame["topic"] == topic) & (frame["time"] >= now_ts - window) & (frame["time"] <= now_ts)
            rows = frame.loc[mask].sort_values("time", kind="stable")

        for row in rows.itertuples(index=False):
            yield {
                "topic": row.topic,
                "time": row.time.to_pydatetime(),
                "value": row.value
            }

    def flush(self) -> None:
        """Write all points to the CSV file."""
        if not self.path:
            return

        with self._lock:
            frame = self._materialize()

        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        frame.to_csv(self.path, index=False)
        logger.info(f"Store flushed: {len(frame)} points to {self.path}")

    def __len__(self) -> int:
        with self._lock:
            return len(self._materialize())

    def _materialize(self) -> pd.DataFrame:
        if self._pending:
            new_rows = pd.DataFrame(self._pending, columns=COLUMNS)
            if self._frame.empty:
                self._frame = new_rows
            else:
                self._frame = pd.concat([self._frame, new_rows], ignore_index=True)
            self._pending = []
        return self._frame

    def _load(self) -> None:
        try:
            frame = pd.read_csv(self.path, dtype={"topic": str, "value": str})
        except (OSError, ValueError, pd.errors.ParserError) as e:
            logger.error(f"Failed to load store from {self.path}: {e}")
            return

        if frame.empty:
            return

        frame["time"] = pd.to_datetime(frame["time"], utc=True)
        frame["value"] = frame["value"].map(parse_value).astype(object)
        self._frame = frame[COLUMNS]
        logger.info(f"Loaded {len(frame)} points from {self.path}")
