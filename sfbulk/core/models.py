# sfbulk/core/models.py

from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field

# Terminal export job states reported by the platform. Any other state
# (e.g. 'pending') means the PDF is still being generated.
JOB_STATE_CREATED = "created"
JOB_STATE_ERROR = "error"


class Company(BaseModel):
    """A company registered under the firm."""
    id: int
    name: str
    model_config = ConfigDict(extra='ignore', frozen=True)


class FiscalYear(BaseModel):
    end_date: str
    model_config = ConfigDict(extra='ignore', frozen=True)


class Period(BaseModel):
    """
    A bookkeeping period of a company.

    The platform returns periods sorted by end_date descending. A period
    closes its fiscal year when both end dates coincide.
    """
    id: int
    end_date: str
    fiscal_year: Optional[FiscalYear] = None
    model_config = ConfigDict(extra='ignore', frozen=True)

    @property
    def is_fiscal_year_end(self) -> bool:
        if self.fiscal_year is None:
            return False
        return self.end_date == self.fiscal_year.end_date


class ExportJob(BaseModel):
    """
    An export_pdf_instance. download_url is only filled in once the job
    reached the 'created' state.
    """
    id: int
    state: str
    download_url: Optional[str] = None
    processing_error: Optional[str] = None
    model_config = ConfigDict(extra='ignore')

    @property
    def is_created(self) -> bool:
        return self.state == JOB_STATE_CREATED

    @property
    def is_error(self) -> bool:
        return self.state == JOB_STATE_ERROR


class SelectedPeriod(BaseModel):
    period: Period
    label: str
    model_config = ConfigDict(frozen=True)


# --- Outcomes ---
class FailureKind:
    SELECTION = "selection"
    TRANSPORT = "transport"
    REMOTE_ERROR = "remote_error"
    TIMEOUT = "timeout"
    FILESYSTEM = "filesystem"
    PAYLOAD = "payload"
    UNEXPECTED = "unexpected"


class Failure(BaseModel):
    """One line of the failure ledger."""
    company: str
    period: str = Field("-", description="End date of the period, '-' if none.")
    period_label: str = "-"
    error: str
    kind: str = FailureKind.TRANSPORT
    model_config = ConfigDict(frozen=True)

    def describe(self) -> str:
        return (f"{self.company} | {self.period} | {self.period_label} | "
                f"{self.kind}: {self.error}")


class ExportSuccess(BaseModel):
    company: str
    period: str
    period_label: str
    path: Path
    model_config = ConfigDict(frozen=True)


class ExportFailure(BaseModel):
    failure: Failure
    model_config = ConfigDict(frozen=True)


ExportResult = Union[ExportSuccess, ExportFailure]
