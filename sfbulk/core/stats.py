# sfbulk/core/stats.py
from dataclasses import dataclass, field
from threading import Lock
from typing import List, Tuple

from .models import Failure


@dataclass(frozen=True)
class StatsSnapshot:
    processed_companies: int
    total_companies: int
    total_pdfs_generated: int
    failures: Tuple[Failure, ...] = field(default_factory=tuple)


class RunStats:
    """
    Progress counters and failure ledger shared by all company workers.

    This class is thread-safe: every read-modify-write happens under one lock.
    """

    def __init__(self):
        self._lock = Lock()
        self._processed_companies = 0
        self._total_companies = 0
        self._total_pdfs_generated = 0
        self._failures: List[Failure] = []

    def set_total_companies(self, total: int) -> None:
        with self._lock:
            self._total_companies = total

    def record_pdf(self) -> None:
        with self._lock:
            self._total_pdfs_generated += 1

    def record_failure(self, failure: Failure) -> None:
        with self._lock:
            self._failures.append(failure)

    def mark_company_processed(self) -> Tuple[int, int]:
        """Increments the processed counter, returns (processed, total)."""
        with self._lock:
            self._processed_companies += 1
            return self._processed_companies, self._total_companies

    def snapshot(self) -> StatsSnapshot:
        with self._lock:
            return StatsSnapshot(
                processed_companies=self._processed_companies,
                total_companies=self._total_companies,
                total_pdfs_generated=self._total_pdfs_generated,
                failures=tuple(self._failures))
