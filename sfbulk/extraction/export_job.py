# sfbulk/extraction/export_job.py

import logging
import os
import re
import tempfile
import time
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from sfbulk.core.exceptions import (FileSystemError, JobTimeoutError,
                                    RemoteJobError, ResponseParsingError,
                                    TransportError)
from sfbulk.core.models import (Company, ExportFailure, ExportJob, ExportResult,
                                ExportSuccess, Failure, FailureKind, Period)

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r'[^a-z0-9]')


def sanitize_company_name(name: str) -> str:
    """Lowercases the name and replaces every non-alphanumeric char with '_'."""
    return _UNSAFE_CHARS.sub('_', name.lower())


def build_export_filename(company_name: str, end_date: str, label: str) -> str:
    return f"full_export_{sanitize_company_name(company_name)}_{end_date}_{label}.pdf"


def write_atomically(output_path: Path, content: bytes) -> None:
    """
    Writes content to output_path through a temp file in the same directory,
    so the target either holds the full PDF or does not exist.

    Raises:
        FileSystemError: If the directory cannot be created or written to.
    """
    try:
        output_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FileSystemError(
            f"Cannot create output directory {output_path.parent}: {e}") from e

    tmp_name = None
    try:
        with tempfile.NamedTemporaryFile(dir=output_path.parent,
                                         prefix=f".{output_path.name}.",
                                         suffix=".part",
                                         delete=False) as tmp:
            tmp_name = tmp.name
            tmp.write(content)
        os.replace(tmp_name, output_path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            try:
                os.unlink(tmp_name)
            except OSError:
                logger.warning(f"Could not remove partial file: {tmp_name}")
        raise FileSystemError(f"Failed to write {output_path}: {e}") from e


class ExportJobDriver:
    """
    Runs one export_pdf_instance from creation to a PDF on disk.

    create -> poll every `poll_interval` seconds until 'created' or 'error'
    (at most `max_poll_attempts` polls) -> download -> write.

    run() never raises for problems of a single job; they come back as an
    ExportFailure so the caller can keep going with the other jobs.
    """

    def __init__(self,
                 client,
                 export_pdf_id: str,
                 output_dir: Path,
                 poll_interval: float = 3.0,
                 max_poll_attempts: int = 200,
                 sleep: Callable[[float], None] = time.sleep,
                 clock: Callable[[], float] = time.monotonic):
        if max_poll_attempts < 1:
            raise ValueError("max_poll_attempts must be at least 1.")
        self.client = client
        self.export_pdf_id = export_pdf_id
        self.output_dir = Path(output_dir)
        self.poll_interval = poll_interval
        self.max_poll_attempts = max_poll_attempts
        self.sleep = sleep
        self.clock = clock

    @staticmethod
    def jobs_path(company: Company, period: Period) -> str:
        return f"/companies/{company.id}/periods/{period.id}/export_pdf_instances"

    def output_path_for(self, company: Company, period: Period, label: str) -> Path:
        return self.output_dir / build_export_filename(company.name,
                                                       period.end_date, label)

    def run(self, company: Company, period: Period, label: str) -> ExportResult:
        context = f"{company.name} / {period.end_date} / {label}"
        try:
            job = self._create(company, period, label)
            logger.debug(f"Created export job {job.id} for {context}")
            job = self._wait_until_created(company, period, job)
            output_path = self.output_path_for(company, period, label)
            content = self.client.get_binary(job.download_url)
            write_atomically(output_path, content)
        except TransportError as e:
            return self._failure(company, period, label, FailureKind.TRANSPORT, e)
        except RemoteJobError as e:
            return self._failure(company, period, label,
                                 FailureKind.REMOTE_ERROR, e)
        except JobTimeoutError as e:
            return self._failure(company, period, label, FailureKind.TIMEOUT, e)
        except ResponseParsingError as e:
            return self._failure(company, period, label, FailureKind.PAYLOAD, e)
        except FileSystemError as e:
            return self._failure(company, period, label,
                                 FailureKind.FILESYSTEM, e)

        logger.info(f"✅ Saved {output_path.name} ({len(content)} bytes)")
        return ExportSuccess(company=company.name,
                             period=period.end_date,
                             period_label=label,
                             path=output_path)

    # --- Lifecycle steps ---
    def _create(self, company: Company, period: Period, label: str) -> ExportJob:
        path = self.jobs_path(company, period)
        body = {
            "title": f"{company.name} - {period.end_date} - {label}",
            "export_pdf_id": self.export_pdf_id,
        }
        return self._parse_job(self.client.post_json(path, body), path)

    def _wait_until_created(self, company: Company, period: Period,
                            job: ExportJob) -> ExportJob:
        """
        Polls the job until it is terminal.

        Raises:
            RemoteJobError: The platform reported state 'error'.
            JobTimeoutError: Still not terminal after max_poll_attempts polls.
            ResponseParsingError: 'created' without a download_url.
        """
        path = f"{self.jobs_path(company, period)}/{job.id}"
        started = self.clock()
        for attempt in range(1, self.max_poll_attempts + 1):
            self.sleep(self.poll_interval)
            job = self._parse_job(self.client.get_json(path), path)
            if job.is_error:
                raise RemoteJobError(job.processing_error, job_id=job.id)
            if job.is_created:
                if not job.download_url:
                    raise ResponseParsingError(
                        f"Export job {job.id} is created but has no download_url",
                        source=path)
                logger.debug(f"Export job {job.id} created after {attempt} polls")
                return job
            logger.debug(
                f"Export job {job.id} state '{job.state}' (poll {attempt}/{self.max_poll_attempts})"
            )
        raise JobTimeoutError(self.max_poll_attempts,
                              self.clock() - started,
                              job_id=job.id)

    @staticmethod
    def _parse_job(payload: Any, source: str) -> ExportJob:
        try:
            return ExportJob.model_validate(payload)
        except ValidationError as e:
            raise ResponseParsingError(f"Unexpected export job payload: {e}",
                                       source=source) from e

    @staticmethod
    def _failure(company: Company, period: Period, label: str, kind: str,
                 error: Exception) -> ExportFailure:
        logger.error(
            f"❌ Export failed for {company.name} ({period.end_date}, {label}): {error}"
        )
        return ExportFailure(failure=Failure(company=company.name,
                                             period=period.end_date,
                                             period_label=label,
                                             error=str(error),
                                             kind=kind))
