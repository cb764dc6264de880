# sfbulk/services/report.py
import logging
from dataclasses import dataclass
from typing import List, Tuple

from sfbulk.core.models import Failure
from sfbulk.core.stats import StatsSnapshot


@dataclass(frozen=True)
class RunReport:
    """Final summary of one bulk export run."""
    processed_companies: int
    total_companies: int
    total_pdfs_generated: int
    failures: Tuple[Failure, ...] = ()

    @classmethod
    def from_snapshot(cls, snapshot: StatsSnapshot) -> 'RunReport':
        return cls(processed_companies=snapshot.processed_companies,
                   total_companies=snapshot.total_companies,
                   total_pdfs_generated=snapshot.total_pdfs_generated,
                   failures=tuple(snapshot.failures))

    @property
    def succeeded(self) -> bool:
        return not self.failures

    def render(self) -> List[str]:
        lines = [
            f"Processed {self.processed_companies}/{self.total_companies} companies",
            f"Generated {self.total_pdfs_generated} PDFs",
        ]
        if self.succeeded:
            lines.append("All exports completed without failures.")
            return lines
        lines.append(f"{len(self.failures)} failures:")
        lines.extend(f"  - {failure.describe()}" for failure in self.failures)
        return lines

    def log(self, logger: logging.Logger) -> None:
        level = logging.INFO if self.succeeded else logging.WARNING
        for line in self.render():
            logger.log(level, line)
