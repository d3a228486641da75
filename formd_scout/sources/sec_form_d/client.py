"""
SEC Form D Client.

Discovers Form D filings on SEC EDGAR: full-text search for a date range,
filing index resolution and raw document download. All traffic goes through
the shared FetchClient, so pacing and retries apply to every call.
"""

import json
import logging
from datetime import date
from typing import Any, Dict, List, Optional

from formd_scout.core.config import get_settings
from formd_scout.core.http_client import FetchClient
from formd_scout.sources.sec_form_d.types import IndexDocument, IndexEntry, SearchHit

logger = logging.getLogger(__name__)

EFTS_URL = "https://efts.sec.gov/LATEST/search-index"
ARCHIVES_URL = "https://www.sec.gov/Archives/edgar/data"


def strip_accession_dashes(accession_number: str) -> str:
    """'0001583168-24-000001' -> '000158316824000001'."""
    return accession_number.replace("-", "")


def build_filing_url(cik: str, accession_number: str) -> str:
    """Filing folder URL on EDGAR Archives."""
    return f"{ARCHIVES_URL}/{cik}/{strip_accession_dashes(accession_number)}"


def build_index_url(cik: str, accession_number: str) -> str:
    return f"{build_filing_url(cik, accession_number)}/index.json"


def build_document_url(cik: str, accession_number: str, filename: str) -> str:
    return f"{build_filing_url(cik, accession_number)}/{filename}"


def _first(values: Any) -> str:
    if isinstance(values, list) and values:
        return str(values[0] or "")
    return ""


def _str_list(values: Any) -> List[str]:
    if not isinstance(values, list):
        return []
    return [str(v) for v in values if v]


def extract_search_hit(raw: Dict[str, Any]) -> SearchHit:
    """
    Build a SearchHit from one raw EFTS hit.

    The `_id` field has the form "accession:filename". When that accession
    carries no dashes, it is rebuilt from the 18-digit `adsh` field as
    NNNNNNNNNN-YY-NNNNNN. Missing fields come back as empty strings/lists;
    the caller decides what is fatal for a filing.

    Args:
        raw: One element of `hits.hits` from the search response

    Returns:
        SearchHit
    """
    source = raw.get("_source") or {}
    if not isinstance(source, dict):
        source = {}

    accession_number = str(raw.get("_id") or "").split(":")[0]
    adsh = str(source.get("adsh") or "")
    if "-" not in accession_number and len(adsh) >= 18:
        accession_number = f"{adsh[0:10]}-{adsh[10:12]}-{adsh[12:18]}"

    form_type = source.get("form") or _first(source.get("root_forms"))

    return SearchHit(
        accession_number=accession_number,
        cik=_first(source.get("ciks")),
        entity_name=_first(source.get("display_names")),
        filing_date=str(source.get("file_date") or ""),
        form_type=str(form_type or ""),
        states=_str_list(source.get("biz_states")),
        sic_codes=_str_list(source.get("sics")),
    )


def select_primary_document(documents: List[IndexDocument]) -> Optional[str]:
    """
    Choose the primary Form D XML among a filing's documents.

    Preference: an .xml whose name mentions "primary" or is "formd.xml", or
    whose index type is "primary doc". Otherwise the first .xml. Otherwise None.
    """
    xml_docs = [doc for doc in documents if doc.name.endswith(".xml")]

    for doc in xml_docs:
        lowered = doc.name.lower()
        if (
            "primary" in lowered
            or lowered == "formd.xml"
            or (doc.type or "").lower() == "primary doc"
        ):
            return doc.name

    return xml_docs[0].name if xml_docs else None


class FormDClient:
    """
    Client for discovering and downloading SEC Form D filings.

    Form D filings are submitted for private placements under Regulation D.
    """

    def __init__(
        self,
        fetch_client: FetchClient,
        user_agent: Optional[str] = None,
    ):
        """
        Args:
            fetch_client: Shared paced/retrying fetch client
            user_agent: Contact-identifying User-Agent; read from settings if omitted
        """
        self.fetch_client = fetch_client
        self._user_agent = user_agent

    def _get_headers(self, accept: str = "application/json") -> Dict[str, str]:
        """Get request headers with required User-Agent."""
        if self._user_agent is None:
            self._user_agent = get_settings().require_sec_user_agent()
        return {"User-Agent": self._user_agent, "Accept": accept}

    async def search_filings(self, start_date: date, end_date: date) -> List[SearchHit]:
        """
        Find every Form D filed within an inclusive date range.

        Pages through the full-text search with the `from` offset until the
        reported total is reached or a page comes back empty.

        Args:
            start_date: First filing date (inclusive)
            end_date: Last filing date (inclusive)

        Returns:
            List of SearchHit, empty when nothing matched

        Raises:
            ValueError: start_date is after end_date
            FetchExhaustedError: The search endpoint stayed unavailable
        """
        if start_date > end_date:
            raise ValueError(
                f"start_date {start_date.isoformat()} is after end_date {end_date.isoformat()}"
            )

        params: Dict[str, Any] = {
            "forms": "D",
            "dateRange": "custom",
            "startdt": start_date.isoformat(),
            "enddt": end_date.isoformat(),
        }

        results: List[SearchHit] = []
        offset = 0

        while True:
            page_params = dict(params)
            if offset:
                page_params["from"] = offset

            response = await self.fetch_client.fetch(
                EFTS_URL, headers=self._get_headers(), params=page_params
            )
            try:
                data = response.json()
            except (json.JSONDecodeError, UnicodeDecodeError):
                logger.warning(f"Form D search returned non-JSON body (offset {offset})")
                break

            hits_block = data.get("hits") if isinstance(data, dict) else None
            raw_hits = hits_block.get("hits") if isinstance(hits_block, dict) else None
            if not isinstance(raw_hits, list):
                logger.warning(
                    f"Form D search response has unexpected structure (offset {offset})"
                )
                break

            if not raw_hits:
                break

            for raw in raw_hits:
                if isinstance(raw, dict):
                    results.append(extract_search_hit(raw))

            offset += len(raw_hits)
            total = self._reported_total(hits_block)
            if total is None or offset >= total:
                break

        logger.info(
            f"Form D search {start_date.isoformat()}..{end_date.isoformat()}: "
            f"{len(results)} filings"
        )
        return results

    @staticmethod
    def _reported_total(hits_block: Dict[str, Any]) -> Optional[int]:
        total = hits_block.get("total")
        if isinstance(total, dict):
            total = total.get("value")
        try:
            return int(total)
        except (TypeError, ValueError):
            return None

    async def resolve_index(self, cik: str, accession_number: str) -> IndexEntry:
        """
        Read a filing's index.json and choose its primary XML document.

        Args:
            cik: Company CIK
            accession_number: Filing accession number (with dashes)

        Returns:
            IndexEntry; primary_document is None when no XML exists

        Raises:
            FetchExhaustedError / FatalError: The index could not be fetched
        """
        url = build_index_url(cik, accession_number)
        response = await self.fetch_client.fetch(url, headers=self._get_headers())

        try:
            data = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.warning(f"Filing index for {accession_number} is not JSON")
            return IndexEntry()

        directory = data.get("directory") if isinstance(data, dict) else None
        items = directory.get("item") if isinstance(directory, dict) else None
        if not isinstance(items, list):
            logger.warning(
                f"Filing index for {accession_number} has unexpected structure"
            )
            return IndexEntry()

        documents = [
            IndexDocument(name=str(item["name"]), type=item.get("type"))
            for item in items
            if isinstance(item, dict) and item.get("name")
        ]
        return IndexEntry(
            documents=documents,
            primary_document=select_primary_document(documents),
        )

    async def fetch_document(self, cik: str, accession_number: str, filename: str) -> bytes:
        """
        Download a raw filing document.

        Args:
            cik: Company CIK
            accession_number: Filing accession number (with dashes)
            filename: Document name from the filing index

        Returns:
            Raw document bytes
        """
        url = build_document_url(cik, accession_number, filename)
        response = await self.fetch_client.fetch(
            url, headers=self._get_headers(accept="application/xml")
        )
        return response.body
