"""Persistence for completed property analyses."""

from __future__ import annotations

import threading
from collections import OrderedDict
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from washquote.models.analysis import PropertyAnalysis

DEFAULT_MAX_RECORDS = 1000


class AnalysisStore(Protocol):
    """Saves analysis records and fetches them by id."""

    def save(self, analysis: PropertyAnalysis) -> None:
        ...

    def get(self, analysis_id: str) -> PropertyAnalysis | None:
        ...


class InMemoryAnalysisStore:
    """Process-local analysis store holding at most ``max_records`` analyses.

    Once full, saving a new analysis evicts the oldest one.
    """

    def __init__(self, max_records: int = DEFAULT_MAX_RECORDS) -> None:
        if max_records < 1:
            msg = f"max_records must be at least 1, got {max_records}"
            raise ValueError(msg)
        self._max_records = max_records
        self._records: OrderedDict[str, PropertyAnalysis] = OrderedDict()
        self._lock = threading.Lock()

    @property
    def max_records(self) -> int:
        return self._max_records

    def save(self, analysis: PropertyAnalysis) -> None:
        with self._lock:
            self._records[analysis.id] = analysis
            self._records.move_to_end(analysis.id)
            while len(self._records) > self._max_records:
                self._records.popitem(last=False)

    def get(self, analysis_id: str) -> PropertyAnalysis | None:
        with self._lock:
            return self._records.get(analysis_id)

    def __len__(self) -> int:
        return len(self._records)
