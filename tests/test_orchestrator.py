from threading import Lock

import pytest

from conftest import FakeSilverfin, closing_periods, company
from sfbulk.core.exceptions import TransportError
from sfbulk.core.models import FailureKind
from sfbulk.extraction.export_job import ExportJobDriver
from sfbulk.extraction.periods import PeriodSelector
from sfbulk.services.orchestrator import BulkExportService, chunk


def build_service(api, clock, output_dir, service_cls=BulkExportService, **kwargs):
    driver = ExportJobDriver(api,
                             export_pdf_id="99",
                             output_dir=output_dir,
                             poll_interval=2.0,
                             max_poll_attempts=4,
                             sleep=clock.sleep,
                             clock=clock.monotonic)
    selector = PeriodSelector(depth=5, min_closed_periods=3)
    return service_cls(api, driver, selector, **kwargs)


def api_with_companies(count, closing=3):
    companies = [company(i) for i in range(1, count + 1)]
    periods = {c["id"]: closing_periods(closing, first_id=c["id"] * 100) for c in companies}
    return FakeSilverfin(companies=companies, periods=periods)


# --- Discovery ---
def test_pagination_stops_on_short_page(clock, tmp_path):
    api = api_with_companies(457)
    service = build_service(api, clock, tmp_path, company_page_size=200)

    companies = service.fetch_all_companies()

    assert len(companies) == 457
    assert [c[2]["page"] for c in api.calls_for("companies")] == [1, 2, 3]
    assert all(c[2]["per_page"] == 200 for c in api.calls_for("companies"))
    assert companies[0].id == 1 and companies[-1].id == 457


def test_pagination_stops_on_empty_page(clock, tmp_path):
    api = api_with_companies(400)
    service = build_service(api, clock, tmp_path, company_page_size=200)

    assert len(service.fetch_all_companies()) == 400
    assert len(api.calls_for("companies")) == 3


def test_no_companies(clock, tmp_path):
    api = FakeSilverfin()
    service = build_service(api, clock, tmp_path)

    report = service.run()

    assert report.total_companies == 0
    assert report.succeeded
    assert len(api.calls_for("companies")) == 1


def test_company_page_failure_is_fatal(clock, tmp_path):
    api = api_with_companies(450)
    api.fail_company_pages.add(2)
    service = build_service(api, clock, tmp_path, company_page_size=200)

    with pytest.raises(TransportError):
        service.run()
    assert api.calls_for("create") == []


def test_limit_caps_discovered_companies(clock, tmp_path):
    api = api_with_companies(450)
    service = build_service(api, clock, tmp_path, company_page_size=200, limit=250)

    assert len(service.fetch_all_companies()) == 250
    assert len(api.calls_for("companies")) == 2


@pytest.mark.parametrize("limit", [0, -3])
def test_limit_below_one_is_rejected(clock, tmp_path, limit):
    with pytest.raises(ValueError, match="limit"):
        build_service(api_with_companies(10), clock, tmp_path, limit=limit)


# --- Batching ---
def test_chunk_keeps_order():
    batches = chunk(list(range(45)), 20)
    assert [len(b) for b in batches] == [20, 20, 5]
    assert [x for b in batches for x in b] == list(range(45))
    with pytest.raises(ValueError):
        chunk([1], 0)


class RecordingService(BulkExportService):
    """Records when each company starts and finishes."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.events = []
        self._events_lock = Lock()

    def process_company(self, company):
        with self._events_lock:
            self.events.append(("start", company.id))
        try:
            return super().process_company(company)
        finally:
            with self._events_lock:
                self.events.append(("end", company.id))


def test_batches_run_strictly_in_sequence(clock, tmp_path):
    api = api_with_companies(45)
    service = build_service(api, clock, tmp_path, service_cls=RecordingService,
                            batch_size=20)

    report = service.run()

    events = service.events
    for batch_start, batch_end in [(1, 20), (21, 40)]:
        last_end = max(i for i, (kind, cid) in enumerate(events)
                       if kind == "end" and batch_start <= cid <= batch_end)
        first_later_start = min(i for i, (kind, cid) in enumerate(events)
                                if kind == "start" and cid > batch_end)
        assert last_end < first_later_start
    assert report.processed_companies == 45
    assert report.total_pdfs_generated == 45 * 3


# --- Outcomes ---
def test_every_dispatched_export_has_exactly_one_outcome(clock, tmp_path):
    api = api_with_companies(12, closing=5)
    api.job_states[(1, 100)] = ["pending", "error"]  # remote error
    api.job_states[(2, 202)] = ["pending"]  # timeout
    api.fail_create.add((3, 304))  # transport
    service = build_service(api, clock, tmp_path, batch_size=5)

    report = service.run()

    dispatched = len(api.calls_for("create"))
    saved = list(tmp_path.glob("*.pdf"))
    assert dispatched == 12 * 5
    assert len(saved) + len(report.failures) == dispatched
    assert report.total_pdfs_generated == len(saved) == dispatched - 3
    assert sorted(f.kind for f in report.failures) == sorted(
        [FailureKind.REMOTE_ERROR, FailureKind.TIMEOUT, FailureKind.TRANSPORT])
    assert not report.succeeded


def test_selection_failure_only_skips_that_company(clock, tmp_path):
    api = api_with_companies(3)
    api.periods[2] = closing_periods(2, first_id=200)
    service = build_service(api, clock, tmp_path)

    report = service.run()

    failure, = report.failures
    assert failure.company == "Company 2"
    assert failure.kind == FailureKind.SELECTION
    assert failure.error == "no third-to-last closing period found"
    assert not any("/companies/2/" in c[1] for c in api.calls_for("create"))
    assert report.total_pdfs_generated == 6
    assert report.processed_companies == 3


def test_periods_fetch_failure_is_recorded_for_the_company(clock, tmp_path):
    api = api_with_companies(2)
    api.fail_periods.add(1)
    service = build_service(api, clock, tmp_path)

    report = service.run()

    failure, = report.failures
    assert failure.company == "Company 1"
    assert failure.kind == FailureKind.TRANSPORT
    assert report.total_pdfs_generated == 3
    assert report.processed_companies == report.total_companies == 2


def test_filenames_are_stable_across_runs(clock, tmp_path):
    first_dir, second_dir = tmp_path / "one", tmp_path / "two"
    build_service(api_with_companies(4), clock, first_dir).run()
    build_service(api_with_companies(4), clock, second_dir).run()

    assert sorted(p.name for p in first_dir.iterdir()) == sorted(
        p.name for p in second_dir.iterdir())
    assert len(list(first_dir.iterdir())) == 12


def test_unexpected_driver_error_still_counts_as_one_failure(clock, tmp_path):
    api = api_with_companies(1)
    service = build_service(api, clock, tmp_path)

    def explode(company, period, label):
        raise RuntimeError("boom")

    service.driver.run = explode
    report = service.run()

    assert len(report.failures) == 3
    assert {f.kind for f in report.failures} == {FailureKind.UNEXPECTED}
    assert report.processed_companies == 1
