"""
Type definitions for Form D ingestion.

Defines data classes for:
- Search hits and filing index entries (transient discovery results)
- The normalized filing produced by the parser
- Per-filing outcomes and the batch summary returned by ingestion
"""

from dataclasses import dataclass, field, fields
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class SearchHit:
    """One Form D match from the EDGAR full-text search endpoint."""

    accession_number: str  # dash-delimited, e.g. "0001583168-24-000001"
    cik: str
    entity_name: str
    filing_date: str  # YYYY-MM-DD
    form_type: str  # "D" or "D/A"
    states: List[str] = field(default_factory=list)
    sic_codes: List[str] = field(default_factory=list)

    @property
    def is_amendment(self) -> bool:
        return "D/A" in self.form_type.upper()


@dataclass(frozen=True)
class IndexDocument:
    """A single document listed in a filing's index.json."""

    name: str
    type: Optional[str] = None


@dataclass
class IndexEntry:
    """Resolved filing index: every document plus the chosen primary XML."""

    documents: List[IndexDocument] = field(default_factory=list)
    primary_document: Optional[str] = None


@dataclass
class NormalizedFiling:
    """
    Parser output for one Form D submission.

    Only company_name, cik, accession_number, filing_date and is_amendment
    are always populated. first_sale_date and yet_to_occur=True never hold
    at the same time.
    """

    company_name: str
    cik: str
    accession_number: str
    filing_date: date
    is_amendment: bool = False

    entity_type: Optional[str] = None
    state_of_inc: Optional[str] = None
    sic_code: Optional[str] = None

    issuer_street: Optional[str] = None
    issuer_city: Optional[str] = None
    issuer_state: Optional[str] = None
    issuer_zip: Optional[str] = None
    issuer_phone: Optional[str] = None

    industry_group: Optional[str] = None
    revenue_range: Optional[str] = None

    total_offering: Optional[Decimal] = None
    amount_sold: Optional[Decimal] = None
    amount_remaining: Optional[Decimal] = None
    min_investment: Optional[Decimal] = None
    num_investors: Optional[int] = None

    first_sale_date: Optional[date] = None
    yet_to_occur: Optional[bool] = None
    more_than_one_year: Optional[bool] = None
    federal_exemptions: Optional[str] = None

    filing_url: Optional[str] = None
    xml_url: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """JSON-ready mapping: dates as ISO strings, decimals as strings."""
        result: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, date):
                value = value.isoformat()
            elif isinstance(value, Decimal):
                value = str(value)
            result[f.name] = value
        return result


class IngestionStatus(str, Enum):
    """Terminal state of one filing within an ingestion run."""

    INGESTED = "ingested"
    SKIPPED = "skipped"  # accession number already stored
    ERROR = "error"


@dataclass
class IngestionOutcome:
    """Per-filing result. Never persisted."""

    accession_number: str
    status: IngestionStatus
    error: Optional[str] = None

    @classmethod
    def ingested(cls, accession_number: str) -> "IngestionOutcome":
        return cls(accession_number, IngestionStatus.INGESTED)

    @classmethod
    def skipped(cls, accession_number: str, reason: str = "Duplicate accession number") -> "IngestionOutcome":
        return cls(accession_number, IngestionStatus.SKIPPED, reason)

    @classmethod
    def failed(cls, accession_number: str, error: str) -> "IngestionOutcome":
        return cls(accession_number, IngestionStatus.ERROR, error)

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "accessionNumber": self.accession_number,
            "status": self.status.value,
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class IngestionSummary:
    """Batch result of one ingestion run."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None
    details: List[IngestionOutcome] = field(default_factory=list)

    def _count(self, status: IngestionStatus) -> int:
        return sum(1 for outcome in self.details if outcome.status == status)

    @property
    def ingested(self) -> int:
        return self._count(IngestionStatus.INGESTED)

    @property
    def skipped(self) -> int:
        return self._count(IngestionStatus.SKIPPED)

    @property
    def errors(self) -> int:
        return self._count(IngestionStatus.ERROR)

    @property
    def total(self) -> int:
        return len(self.details)

    def record(self, outcome: IngestionOutcome) -> None:
        self.details.append(outcome)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ingested": self.ingested,
            "skipped": self.skipped,
            "errors": self.errors,
            "details": [outcome.to_dict() for outcome in self.details],
        }
