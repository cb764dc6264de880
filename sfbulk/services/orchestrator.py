# sfbulk/services/orchestrator.py

import concurrent.futures
import logging
from typing import Dict, List, Optional, Sequence, TypeVar

from pydantic import TypeAdapter, ValidationError

from sfbulk.config.settings import AppSettings
from sfbulk.core.exceptions import (PeriodSelectionError, ResponseParsingError,
                                    TransportError)
from sfbulk.core.models import (Company, ExportFailure, ExportResult,
                                ExportSuccess, Failure, FailureKind, Period,
                                SelectedPeriod)
from sfbulk.core.stats import RunStats
from sfbulk.extraction.client import SilverfinClient
from sfbulk.extraction.export_job import ExportJobDriver
from sfbulk.extraction.periods import PeriodSelector
from sfbulk.services.report import RunReport

logger = logging.getLogger(__name__)

T = TypeVar("T")

_companies_adapter = TypeAdapter(List[Company])
_periods_adapter = TypeAdapter(List[Period])


def chunk(items: Sequence[T], size: int) -> List[List[T]]:
    """Splits items into consecutive batches of at most `size`, keeping order."""
    if size < 1:
        raise ValueError("Batch size must be at least 1.")
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BulkExportService:
    """
    Exports PDFs for every company of the firm.

    Batches run one after the other. Inside a batch every company runs on its
    own thread, and every selected period of a company runs on its own thread.
    A batch is fully settled before the next one is dispatched.
    """

    def __init__(self,
                 client,
                 driver: ExportJobDriver,
                 selector: PeriodSelector,
                 batch_size: int = 20,
                 company_page_size: int = 200,
                 periods_page_size: int = 200,
                 limit: Optional[int] = None):
        if batch_size < 1:
            raise ValueError("Batch size must be at least 1.")
        if company_page_size < 1:
            raise ValueError("Company page size must be at least 1.")
        if limit is not None and limit < 1:
            raise ValueError("Company limit must be at least 1.")
        self.client = client
        self.driver = driver
        self.selector = selector
        self.batch_size = batch_size
        self.company_page_size = company_page_size
        self.periods_page_size = periods_page_size
        self.limit = limit
        self.stats = RunStats()
        logger.info(f"{self.__class__.__name__} initialized "
                    f"(batch size {batch_size}, page size {company_page_size}).")

    @classmethod
    def from_settings(cls,
                      settings: AppSettings,
                      limit: Optional[int] = None) -> 'BulkExportService':
        client = SilverfinClient(settings.silverfin)
        export = settings.export
        driver = ExportJobDriver(client,
                                 export_pdf_id=settings.silverfin.export_pdf_id,
                                 output_dir=export.output_dir,
                                 poll_interval=export.poll_interval,
                                 max_poll_attempts=export.max_poll_attempts)
        selector = PeriodSelector(depth=export.period_depth,
                                  min_closed_periods=export.min_closed_periods)
        return cls(client,
                   driver,
                   selector,
                   batch_size=export.batch_size,
                   company_page_size=export.company_page_size,
                   periods_page_size=export.periods_page_size,
                   limit=limit)

    def close(self) -> None:
        if hasattr(self.client, "close"):
            self.client.close()

    # --- Discovery ---
    def fetch_all_companies(self) -> List[Company]:
        """
        Pages through /companies until a short or empty page comes back.

        Raises:
            TransportError: A page request failed; there is no partial fallback.
            ResponseParsingError: A page did not contain a list of companies.
        """
        companies: List[Company] = []
        page = 1
        while True:
            payload = self.client.get_json("/companies",
                                           params={
                                               "page": page,
                                               "per_page": self.company_page_size
                                           })
            try:
                page_items = _companies_adapter.validate_python(payload)
            except ValidationError as e:
                raise ResponseParsingError(
                    f"Unexpected companies payload on page {page}: {e}",
                    source="/companies") from e
            companies.extend(page_items)
            logger.debug(f"Companies page {page}: {len(page_items)} items")

            if self.limit is not None and len(companies) >= self.limit:
                logger.info(f"Reached company limit ({self.limit}).")
                return companies[:self.limit]
            if len(page_items) < self.company_page_size:
                break
            page += 1

        logger.info(f"Discovered {len(companies)} companies in {page} pages.")
        return companies

    def fetch_periods(self, company: Company) -> List[Period]:
        path = f"/companies/{company.id}/periods"
        payload = self.client.get_json(
            path, params={"per_page": self.periods_page_size})
        try:
            return _periods_adapter.validate_python(payload)
        except ValidationError as e:
            raise ResponseParsingError(f"Unexpected periods payload: {e}",
                                       source=path) from e

    # --- Per company ---
    def select_periods(self, company: Company) -> Optional[List[SelectedPeriod]]:
        """Returns the periods to export, or None after recording a failure."""
        try:
            periods = self.fetch_periods(company)
        except (TransportError, ResponseParsingError) as e:
            logger.error(f"❌ Could not fetch periods for {company.name}: {e}")
            kind = (FailureKind.TRANSPORT if isinstance(e, TransportError) else
                    FailureKind.PAYLOAD)
            self.stats.record_failure(
                Failure(company=company.name, error=str(e), kind=kind))
            return None

        try:
            return self.selector.select(periods)
        except PeriodSelectionError as e:
            logger.warning(f"❌ Skipping {company.name}: {e}")
            self.stats.record_failure(
                Failure(company=company.name,
                        error=str(e),
                        kind=FailureKind.SELECTION))
            return None

    def export_periods(self, company: Company,
                       selected: Sequence[SelectedPeriod]) -> List[ExportResult]:
        """Runs one export job per selected period, all at once."""
        results: List[ExportResult] = []
        with concurrent.futures.ThreadPoolExecutor(
                max_workers=len(selected)) as executor:
            future_to_selected: Dict[concurrent.futures.Future,
                                     SelectedPeriod] = {}
            for item in selected:
                future = executor.submit(self.driver.run, company, item.period,
                                         item.label)
                future_to_selected[future] = item

            for future in concurrent.futures.as_completed(future_to_selected):
                item = future_to_selected[future]
                try:
                    results.append(future.result())
                except Exception as exc:
                    logger.error(
                        f"Export task for {company.name} ({item.period.end_date}) "
                        f"raised unexpectedly: {exc}",
                        exc_info=True)
                    results.append(
                        ExportFailure(failure=Failure(
                            company=company.name,
                            period=item.period.end_date,
                            period_label=item.label,
                            error=f"Unexpected error: {exc}",
                            kind=FailureKind.UNEXPECTED)))
        return results

    def record_results(self, results: Sequence[ExportResult]) -> None:
        for result in results:
            if isinstance(result, ExportSuccess):
                self.stats.record_pdf()
            else:
                self.stats.record_failure(result.failure)

    def process_company(self, company: Company) -> List[ExportResult]:
        """
        Selects periods and exports them. Counts the company as processed
        once every one of its jobs has settled, whatever the outcome.
        """
        results: List[ExportResult] = []
        try:
            selected = self.select_periods(company)
            if selected:
                logger.info(
                    f"⏳ Generating {len(selected)} PDF exports for {company.name}..."
                )
                results = self.export_periods(company, selected)
                self.record_results(results)
        finally:
            processed, total = self.stats.mark_company_processed()
            logger.info(f"Progress: {processed}/{total} companies processed.")
        return results

    # --- Run ---
    def run(self) -> RunReport:
        """
        Executes a full bulk export.

        Raises:
            TransportError, ResponseParsingError: Company discovery failed.
        """
        self.stats = RunStats()
        companies = self.fetch_all_companies()
        self.stats.set_total_companies(len(companies))
        batches = chunk(companies, self.batch_size)
        logger.info(f"⏳ Updating {len(companies)} companies in "
                    f"{len(batches)} batches of up to {self.batch_size}...")

        for index, batch in enumerate(batches, start=1):
            self.run_batch(index, batch)
            logger.info(f"Batch {index}/{len(batches)} finished.")

        return RunReport.from_snapshot(self.stats.snapshot())

    def run_batch(self, index: int, batch: Sequence[Company]) -> None:
        """Runs all companies of a batch concurrently and waits for all of them."""
        logger.info(f"Starting batch {index} with {len(batch)} companies.")
        with concurrent.futures.ThreadPoolExecutor(
                max_workers=len(batch)) as executor:
            future_to_company: Dict[concurrent.futures.Future, Company] = {}
            for company in batch:  # Dispatch in discovery order
                future_to_company[executor.submit(self.process_company,
                                                  company)] = company

            for future in concurrent.futures.as_completed(future_to_company):
                company = future_to_company[future]
                try:
                    future.result()
                except Exception as exc:
                    logger.error(
                        f"Task for company {company.name} generated an exception: {exc}",
                        exc_info=True)
                    self.stats.record_failure(
                        Failure(company=company.name,
                                error=f"Unexpected error: {exc}",
                                kind=FailureKind.UNEXPECTED))
