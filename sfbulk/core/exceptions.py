# sfbulk/core/exceptions.py


class SfBulkError(Exception):
    """Base class for all custom exceptions in the sfbulk project."""
    pass


# --- Configuration Errors ---
class ConfigError(SfBulkError):
    """Error related to application configuration."""

    def __init__(self, message: str, missing: list[str] | None = None):
        self.missing = list(missing or [])
        super().__init__(message)


# --- Network Errors ---
class TransportError(SfBulkError):
    """Non-2xx response or network failure while talking to Silverfin."""

    def __init__(self,
                 message: str,
                 method: str,
                 url: str,
                 status_code: int | None = None):
        self.method = method
        self.url = url
        self.status_code = status_code
        self.reason = message
        full_message = f"{method} {url} failed: {message}"
        if status_code:
            full_message += f" | Status Code: {status_code}"
        super().__init__(full_message)


# --- Parsing Errors ---
class ResponseParsingError(SfBulkError):
    """A payload did not have the shape we expect."""

    def __init__(self, message: str, source: str | None = None):
        self.source = source  # e.g., endpoint path
        full_message = f"{message}"
        if source:
            full_message += f" | Source: {source}"
        super().__init__(full_message)


# --- Export Job Errors ---
class ExportJobError(SfBulkError):
    """An export job reached a failing terminal state."""

    def __init__(self, message: str, job_id: int | None = None):
        self.job_id = job_id
        super().__init__(message)


class RemoteJobError(ExportJobError):
    """The platform reported state=error for an export job."""

    def __init__(self, processing_error: str | None, job_id: int | None = None):
        self.processing_error = processing_error or "unknown processing error"
        super().__init__(
            f"Export job {job_id} failed remotely: {self.processing_error}",
            job_id=job_id)


class JobTimeoutError(ExportJobError):
    """Polling attempts were exhausted before the job became terminal."""

    def __init__(self, attempts: int, elapsed_seconds: float,
                 job_id: int | None = None):
        self.attempts = attempts
        self.elapsed_seconds = elapsed_seconds
        minutes = elapsed_seconds / 60
        super().__init__(
            f"Export job {job_id} did not finish after {attempts} polls "
            f"({minutes:.1f} minutes)",
            job_id=job_id)


# --- Selection Errors ---
class PeriodSelectionError(SfBulkError):
    """Not enough closed fiscal periods to export for a company."""
    pass


# --- File System Errors ---
class FileSystemError(SfBulkError):
    """Error related to file system operations."""
    pass
