# sfbulk/core/__init__.py

from .exceptions import (ConfigError, ExportJobError, FileSystemError,
                         JobTimeoutError, PeriodSelectionError, RemoteJobError,
                         ResponseParsingError, SfBulkError, TransportError)
from .models import (Company, ExportFailure, ExportJob, ExportResult,
                     ExportSuccess, Failure, FailureKind, FiscalYear, Period,
                     SelectedPeriod)
from .stats import RunStats, StatsSnapshot

__all__ = [
    # Exceptions
    "SfBulkError",
    "ConfigError",
    "TransportError",
    "ResponseParsingError",
    "ExportJobError",
    "RemoteJobError",
    "JobTimeoutError",
    "PeriodSelectionError",
    "FileSystemError",
    # Payload records and outcomes
    "Company",
    "FiscalYear",
    "Period",
    "ExportJob",
    "SelectedPeriod",
    "Failure",
    "FailureKind",
    "ExportSuccess",
    "ExportFailure",
    "ExportResult",
    # Run state
    "RunStats",
    "StatsSnapshot",
]
