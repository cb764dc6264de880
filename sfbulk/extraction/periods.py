# sfbulk/extraction/periods.py

import logging
from typing import Iterable, List, Sequence

from sfbulk.core.exceptions import PeriodSelectionError
from sfbulk.core.models import Period, SelectedPeriod

logger = logging.getLogger(__name__)

PERIOD_LABELS = (
    "most-recent-last-closed-fiscal-year",
    "2nd-last-closed-fiscal-year",
    "3rd-last-closed-fiscal-year",
    "4th-last-closed-fiscal-year",
    "5th-last-closed-fiscal-year",
)

_ORDINAL_NAMES = ("most recent", "second-to-last", "third-to-last",
                  "fourth-to-last", "fifth-to-last")


def fiscal_year_end_periods(periods: Iterable[Period]) -> List[Period]:
    """
    Keeps the periods that close a fiscal year, in the order they come in.
    Duplicate period ids are dropped.
    """
    seen = set()
    closing: List[Period] = []
    for period in periods:
        if not period.is_fiscal_year_end or period.id in seen:
            continue
        seen.add(period.id)
        closing.append(period)
    return closing


class PeriodSelector:
    """
    Picks the closed fiscal years to export for one company.

    The first `depth` fiscal-year-end periods are labelled most recent,
    2nd last, ... A company needs at least `min_closed_periods` of them,
    otherwise nothing is exported for it.
    """

    def __init__(self, depth: int = len(PERIOD_LABELS), min_closed_periods: int = 3):
        if not 1 <= depth <= len(PERIOD_LABELS):
            raise ValueError(
                f"depth must be between 1 and {len(PERIOD_LABELS)}, got {depth}")
        if not 1 <= min_closed_periods <= depth:
            raise ValueError(
                f"min_closed_periods must be between 1 and depth ({depth}), "
                f"got {min_closed_periods}")
        self.depth = depth
        self.min_closed_periods = min_closed_periods

    @property
    def missing_reason(self) -> str:
        ordinal = _ORDINAL_NAMES[self.min_closed_periods - 1]
        return f"no {ordinal} closing period found"

    def select(self, periods: Sequence[Period]) -> List[SelectedPeriod]:
        """
        Raises:
            PeriodSelectionError: Fewer closed fiscal years than required.
        """
        closing = fiscal_year_end_periods(periods)
        if len(closing) < self.min_closed_periods:
            raise PeriodSelectionError(self.missing_reason)
        return [
            SelectedPeriod(period=period, label=label)
            for period, label in zip(closing[:self.depth], PERIOD_LABELS)
        ]
