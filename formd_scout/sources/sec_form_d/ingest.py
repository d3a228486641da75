"""
SEC Form D Ingestion Service.

Discovers Form D filings for a date range, downloads and parses each
primary document, and stores new filings keyed by accession number.
"""

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from formd_scout.core.api_errors import APIError
from formd_scout.sources.sec_form_d.client import (
    FormDClient,
    build_document_url,
    build_filing_url,
)
from formd_scout.sources.sec_form_d.models import FormDFiling
from formd_scout.sources.sec_form_d.parser import FormDParser
from formd_scout.sources.sec_form_d.types import (
    IngestionOutcome,
    IngestionStatus,
    IngestionSummary,
    NormalizedFiling,
    SearchHit,
)

logger = logging.getLogger(__name__)

NO_PRIMARY_DOCUMENT = "no primary document"
PARSE_FAILED = "parse failed"

_UPSERT_DIALECTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class FormDIngestionService:
    """
    Service for ingesting and storing Form D filings.

    Filings are processed one at a time. A failure on one filing becomes an
    error outcome and the batch continues; only a failed search aborts the run.
    """

    def __init__(
        self,
        db: Session,
        client: Optional[FormDClient] = None,
        parser: Optional[FormDParser] = None,
    ):
        self.db = db
        self.client = client
        self.parser = parser or FormDParser()

    async def ingest(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> IngestionSummary:
        """
        Ingest every Form D filed within an inclusive date range.

        Args:
            start_date: First filing date (defaults to today)
            end_date: Last filing date (defaults to today)

        Returns:
            IngestionSummary with one outcome per discovered filing

        Raises:
            ValueError: start_date is after end_date
            FetchExhaustedError / FatalError: The search itself failed
        """
        if self.client is None:
            raise RuntimeError("Ingestion requires a FormDClient")

        today = date.today()
        start_date = start_date or today
        end_date = end_date or today
        if start_date > end_date:
            raise ValueError(
                f"start_date {start_date.isoformat()} is after end_date {end_date.isoformat()}"
            )

        hits = await self.client.search_filings(start_date, end_date)
        summary = IngestionSummary(start_date=start_date, end_date=end_date)

        for hit in hits:
            try:
                outcome = await self._ingest_hit(hit)
            except Exception as e:
                self.db.rollback()
                outcome = IngestionOutcome.failed(hit.accession_number, str(e) or type(e).__name__)

            if outcome.status == IngestionStatus.ERROR:
                logger.warning(
                    f"Form D {outcome.accession_number or '<unknown>'} failed: {outcome.error}"
                )
            summary.record(outcome)

        logger.info(
            f"Form D ingestion {start_date.isoformat()}..{end_date.isoformat()}: "
            f"{summary.ingested} ingested, {summary.skipped} skipped, "
            f"{summary.errors} errors ({summary.total} filings)"
        )
        return summary

    async def _ingest_hit(self, hit: SearchHit) -> IngestionOutcome:
        accession_number = hit.accession_number
        if not accession_number:
            return IngestionOutcome.failed("", "missing accession number")
        if not hit.cik:
            return IngestionOutcome.failed(accession_number, "missing CIK")

        try:
            index = await self.client.resolve_index(hit.cik, accession_number)
        except APIError as e:
            return IngestionOutcome.failed(accession_number, str(e))

        if not index.primary_document:
            return IngestionOutcome.failed(accession_number, NO_PRIMARY_DOCUMENT)

        try:
            xml_content = await self.client.fetch_document(
                hit.cik, accession_number, index.primary_document
            )
        except APIError as e:
            return IngestionOutcome.failed(accession_number, str(e))

        record = self.parser.parse(
            xml_content, accession_number, hit.cik, filing_date=hit.filing_date or None
        )
        if record is None or not self.parser.validate(record):
            return IngestionOutcome.failed(accession_number, PARSE_FAILED)

        record.filing_url = build_filing_url(hit.cik, accession_number)
        record.xml_url = build_document_url(hit.cik, accession_number, index.primary_document)

        if self._store_filing(record):
            logger.debug(f"Stored Form D {accession_number}")
            return IngestionOutcome.ingested(accession_number)
        return IngestionOutcome.skipped(accession_number)

    def _store_filing(self, record: NormalizedFiling) -> bool:
        """
        Insert a filing unless its accession number is already stored.

        An existing row is never modified.

        Returns:
            True if a row was inserted, False if it already existed
        """
        values = {
            "cik": record.cik,
            "accession_number": record.accession_number,
            "company_name": record.company_name,
            "filing_date": record.filing_date,
            "is_amendment": record.is_amendment,
            "entity_type": record.entity_type,
            "state_of_inc": record.state_of_inc,
            "sic_code": record.sic_code,
            "issuer_street": record.issuer_street,
            "issuer_city": record.issuer_city,
            "issuer_state": record.issuer_state,
            "issuer_zip": record.issuer_zip,
            "issuer_phone": record.issuer_phone,
            "industry_group": record.industry_group,
            "revenue_range": record.revenue_range,
            "total_offering": record.total_offering,
            "amount_sold": record.amount_sold,
            "amount_remaining": record.amount_remaining,
            "min_investment": record.min_investment,
            "num_investors": record.num_investors,
            "first_sale_date": record.first_sale_date,
            "yet_to_occur": record.yet_to_occur,
            "more_than_one_year": record.more_than_one_year,
            "federal_exemptions": record.federal_exemptions,
            "filing_url": record.filing_url,
            "xml_url": record.xml_url,
        }

        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_DIALECTS.get(dialect)

        if insert is not None:
            stmt = (
                insert(FormDFiling.__table__)
                .values(**values)
                .on_conflict_do_nothing(index_elements=["accession_number"])
            )
            result = self.db.execute(stmt)
            self.db.commit()
            return result.rowcount == 1

        try:
            with self.db.begin_nested():
                self.db.add(FormDFiling(**values))
            self.db.commit()
            return True
        except IntegrityError:
            self.db.rollback()
            return False

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get_filing(self, accession_number: str) -> Optional[Dict[str, Any]]:
        """Get a specific filing by accession number."""
        filing = (
            self.db.query(FormDFiling)
            .filter(FormDFiling.accession_number == accession_number)
            .first()
        )
        return filing.to_dict() if filing else None

    def get_filings_by_cik(self, cik: str) -> List[Dict[str, Any]]:
        """Get all filings for a CIK, newest first. Padded and unpadded CIKs match."""
        candidates = {cik, cik.zfill(10), cik.lstrip("0")}
        filings = (
            self.db.query(FormDFiling)
            .filter(FormDFiling.cik.in_(candidates))
            .order_by(FormDFiling.filing_date.desc(), FormDFiling.id.desc())
            .all()
        )
        return [f.to_dict() for f in filings]

    def search_filings(
        self,
        company_name: Optional[str] = None,
        industry: Optional[str] = None,
        state: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        min_amount: Optional[float] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        """
        Search stored Form D filings.

        Returns:
            Search results with filings and total count
        """
        query = self.db.query(FormDFiling)

        if company_name:
            query = query.filter(FormDFiling.company_name.ilike(f"%{company_name}%"))
        if industry:
            query = query.filter(FormDFiling.industry_group.ilike(f"%{industry}%"))
        if state:
            query = query.filter(func.upper(FormDFiling.issuer_state) == state.upper())
        if start_date:
            query = query.filter(FormDFiling.filing_date >= start_date)
        if end_date:
            query = query.filter(FormDFiling.filing_date <= end_date)
        if min_amount is not None:
            query = query.filter(FormDFiling.total_offering >= min_amount)

        total = query.count()
        filings = (
            query.order_by(FormDFiling.filing_date.desc(), FormDFiling.id.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )

        return {
            "total": total,
            "limit": limit,
            "offset": offset,
            "filings": [f.to_dict() for f in filings],
        }
