"""
SEC Form D API Endpoints.

Trigger ingestion for a date range and read stored filings.
"""

import logging
from datetime import date
from typing import AsyncGenerator, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from formd_scout.core.api_errors import APIError, ConfigurationError
from formd_scout.core.database import get_db
from formd_scout.core.http_client import create_fetch_client
from formd_scout.sources.sec_form_d import FormDClient, FormDIngestionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/form-d", tags=["form-d"])


async def get_form_d_client() -> AsyncGenerator[FormDClient, None]:
    """Dependency yielding a FormDClient whose HTTP client is closed afterwards."""
    fetch_client = create_fetch_client()
    try:
        yield FormDClient(fetch_client)
    finally:
        await fetch_client.close()


# Request / Response Models


class IngestRequest(BaseModel):
    """Date range to ingest. Both default to today."""

    start_date: Optional[date] = None
    end_date: Optional[date] = None


class IngestionDetail(BaseModel):
    """Outcome for one filing."""

    accessionNumber: str
    status: str
    error: Optional[str] = None


class IngestResponse(BaseModel):
    """Batch ingestion result."""

    ingested: int
    skipped: int
    errors: int
    details: List[IngestionDetail] = []


class IssuerInfo(BaseModel):
    """Issuer address and phone."""

    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    phone: Optional[str] = None


class FilingDetail(BaseModel):
    """Stored Form D filing."""

    id: int
    cik: str
    accession_number: str
    company_name: str
    filing_date: Optional[str] = None
    is_amendment: bool = False
    entity_type: Optional[str] = None
    state_of_inc: Optional[str] = None
    sic_code: Optional[str] = None
    issuer: IssuerInfo
    industry_group: Optional[str] = None
    revenue_range: Optional[str] = None
    total_offering: Optional[float] = None
    amount_sold: Optional[float] = None
    amount_remaining: Optional[float] = None
    min_investment: Optional[float] = None
    num_investors: Optional[int] = None
    first_sale_date: Optional[str] = None
    yet_to_occur: Optional[bool] = None
    more_than_one_year: Optional[bool] = None
    federal_exemptions: Optional[str] = None
    filing_url: Optional[str] = None
    xml_url: Optional[str] = None
    created_at: Optional[str] = None


class SearchResponse(BaseModel):
    """Search results response."""

    total: int
    limit: int
    offset: int
    filings: List[FilingDetail] = Field(default_factory=list)


# Endpoints


@router.post(
    "/ingest",
    response_model=IngestResponse,
    summary="Ingest Form D filings for a date range",
    description="""
    Discover every Form D filed between start_date and end_date (inclusive),
    parse each primary document and store new filings.

    Filings already stored are reported as skipped and left untouched.
    """,
)
async def ingest_filings(
    request: Optional[IngestRequest] = None,
    db: Session = Depends(get_db),
    client: FormDClient = Depends(get_form_d_client),
):
    """Run one ingestion batch."""
    request = request or IngestRequest()
    service = FormDIngestionService(db, client)

    try:
        summary = await service.ingest(request.start_date, request.end_date)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except ConfigurationError as e:
        logger.error(f"Form D ingestion misconfigured: {e}")
        raise HTTPException(status_code=503, detail=e.message)
    except APIError as e:
        logger.error(f"Form D search failed: {e}")
        raise HTTPException(status_code=502, detail=str(e))

    return summary.to_dict()


@router.get(
    "/filings",
    response_model=SearchResponse,
    summary="Search stored Form D filings",
)
def search_filings(
    company: Optional[str] = Query(None, description="Company name (partial match)"),
    industry: Optional[str] = Query(None, description="Industry group (partial match)"),
    state: Optional[str] = Query(None, description="Issuer state code"),
    start_date: Optional[date] = Query(None, description="Start date (YYYY-MM-DD)"),
    end_date: Optional[date] = Query(None, description="End date (YYYY-MM-DD)"),
    min_amount: Optional[float] = Query(None, ge=0, description="Minimum offering amount"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    """Search Form D filings in database."""
    service = FormDIngestionService(db, client=None)
    return service.search_filings(
        company_name=company,
        industry=industry,
        state=state,
        start_date=start_date,
        end_date=end_date,
        min_amount=min_amount,
        limit=limit,
        offset=offset,
    )


@router.get(
    "/issuer/{cik}",
    response_model=List[FilingDetail],
    summary="Get filings by issuer CIK",
)
def get_filings_by_issuer(
    cik: str,
    db: Session = Depends(get_db),
):
    """Get all Form D filings for an issuer."""
    service = FormDIngestionService(db, client=None)
    filings = service.get_filings_by_cik(cik)

    if not filings:
        raise HTTPException(status_code=404, detail="No filings found for this CIK")

    return filings


@router.get(
    "/filings/{accession_number}",
    response_model=FilingDetail,
    summary="Get specific filing details",
)
def get_filing(
    accession_number: str,
    db: Session = Depends(get_db),
):
    """Get a stored filing by accession number."""
    service = FormDIngestionService(db, client=None)
    filing = service.get_filing(accession_number)

    if not filing:
        raise HTTPException(status_code=404, detail="Filing not found")

    return filing
