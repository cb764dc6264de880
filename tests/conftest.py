import re
from threading import Lock

import pytest

from sfbulk.core.exceptions import TransportError

_PERIODS_PATH = re.compile(r"^/companies/(\d+)/periods$")
_JOBS_PATH = re.compile(r"^/companies/(\d+)/periods/(\d+)/export_pdf_instances$")
_JOB_PATH = re.compile(r"^/companies/(\d+)/periods/(\d+)/export_pdf_instances/(\d+)$")

PDF_BYTES = b"%PDF-1.7 fake export"


def company(company_id, name=None):
    return {"id": company_id, "name": name or f"Company {company_id}"}


def period(period_id, end_date, fy_end_date):
    return {
        "id": period_id,
        "end_date": end_date,
        "fiscal_year": {"end_date": fy_end_date},
    }


def closing_periods(count, first_id=1):
    """`count` fiscal-year-end periods, newest first, with a quarter in between."""
    periods = []
    for i in range(count):
        year = 2024 - i
        periods.append(period(first_id + 2 * i, f"{year}-12-31", f"{year}-12-31"))
        periods.append(period(first_id + 2 * i + 1, f"{year}-09-30", f"{year}-12-31"))
    return periods


class FakeSilverfin:
    """
    In-memory stand-in for SilverfinClient.

    job_states maps (company_id, period_id) to the states returned by
    successive polls; the last state repeats once the script runs out.
    """

    def __init__(self, companies=None, periods=None):
        self.companies = list(companies or [])
        self.periods = dict(periods or {})
        self.job_states = {}
        self.default_states = ["pending", "created"]
        self.processing_error = "Template could not be rendered"
        self.fail_create = set()
        self.fail_periods = set()
        self.fail_company_pages = set()
        self.download_url = "/uploads/export_{job_id}.pdf"
        self.omit_download_url = False
        self.calls = []
        self._jobs = {}
        self._next_job_id = 1
        self._lock = Lock()

    # --- helpers for assertions ---
    def calls_for(self, kind):
        return [call for call in self.calls if call[0] == kind]

    def polls_for(self, job_id):
        return [
            call for call in self.calls_for("poll")
            if call[1].endswith(f"/{job_id}")
        ]

    def _record(self, *call):
        with self._lock:
            self.calls.append(call)

    # --- SilverfinClient interface ---
    def get_json(self, path, params=None):
        if path == "/companies":
            self._record("companies", path, dict(params))
            page, per_page = params["page"], params["per_page"]
            if page in self.fail_company_pages:
                raise TransportError("HTTP error 503", method="GET",
                                     url=path, status_code=503)
            start = (page - 1) * per_page
            return self.companies[start:start + per_page]

        match = _PERIODS_PATH.match(path)
        if match:
            self._record("periods", path, dict(params or {}))
            company_id = int(match.group(1))
            if company_id in self.fail_periods:
                raise TransportError("HTTP error 500", method="GET",
                                     url=path, status_code=500)
            return self.periods.get(company_id, [])

        match = _JOB_PATH.match(path)
        if match:
            self._record("poll", path)
            job_id = int(match.group(3))
            with self._lock:
                script = self._jobs[job_id]
                state = script.pop(0) if len(script) > 1 else script[0]
            payload = {"id": job_id, "state": state}
            if state == "created" and not self.omit_download_url:
                payload["download_url"] = self.download_url.format(job_id=job_id)
            if state == "error":
                payload["processing_error"] = self.processing_error
            return payload

        raise AssertionError(f"Unexpected GET {path}")

    def post_json(self, path, body):
        match = _JOBS_PATH.match(path)
        assert match, f"Unexpected POST {path}"
        self._record("create", path, dict(body))
        key = (int(match.group(1)), int(match.group(2)))
        if key in self.fail_create:
            raise TransportError("HTTP error 422", method="POST",
                                 url=path, status_code=422)
        with self._lock:
            job_id = self._next_job_id
            self._next_job_id += 1
            self._jobs[job_id] = list(self.job_states.get(key, self.default_states))
        return {"id": job_id, "state": "pending"}

    def get_binary(self, locator):
        self._record("download", locator)
        return PDF_BYTES


class VirtualClock:
    """Replaces time.sleep/time.monotonic; sleeping just advances the clock."""

    def __init__(self):
        self.now = 0.0
        self.sleeps = []
        self._lock = Lock()

    def sleep(self, seconds):
        with self._lock:
            self.sleeps.append(seconds)
            self.now += seconds

    def monotonic(self):
        return self.now


@pytest.fixture
def fake_api():
    return FakeSilverfin()


@pytest.fixture
def clock():
    return VirtualClock()
