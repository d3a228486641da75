"""
SEC Form D XML Parser.

Parses Form D primary documents into NormalizedFiling records.
"""

import logging
import re
import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Tuple, Union

from formd_scout.sources.sec_form_d.types import NormalizedFiling

logger = logging.getLogger(__name__)

_ISO_DATE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_MONEY_NOISE = re.compile(r"[$,\s]")
_INTEGER = re.compile(r"^[+-]?[0-9]+$")

TRUE_VALUES = {"true", "1", "yes"}
FALSE_VALUES = {"false", "0", "no"}


def parse_amount(value: Optional[str]) -> Optional[Decimal]:
    """'$1,500,000' -> Decimal('1500000'). 'Indefinite' and garbage -> None."""
    if not value:
        return None
    if value.strip().lower() == "indefinite":
        return None
    try:
        amount = Decimal(_MONEY_NOISE.sub("", value))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_int(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    cleaned = value.replace(",", "").strip()
    if not _INTEGER.match(cleaned):
        return None
    return int(cleaned)


def parse_bool(value: Optional[str]) -> Optional[bool]:
    if not value:
        return None
    lowered = value.strip().lower()
    if lowered in TRUE_VALUES:
        return True
    if lowered in FALSE_VALUES:
        return False
    return None


def parse_iso_date(value: Optional[str]) -> Optional[date]:
    """Strict YYYY-MM-DD that is also a real calendar date, else None."""
    if not value or not _ISO_DATE.match(value.strip()):
        return None
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        return None


def _strip_namespaces(root: ET.Element) -> None:
    for elem in root.iter():
        if isinstance(elem.tag, str) and "}" in elem.tag:
            elem.tag = elem.tag.split("}", 1)[1]


def _walk(node: Optional[ET.Element], *path: str) -> Optional[ET.Element]:
    """Descend through child tags; None at the first missing step."""
    for step in path:
        if node is None:
            return None
        node = node.find(step)
    return node


def _text(node: Optional[ET.Element], *path: str) -> Optional[str]:
    """Stripped, non-empty text of the node at path, else None."""
    found = _walk(node, *path)
    if found is None or found.text is None:
        return None
    text = found.text.strip()
    return text or None


def _first_text(node: Optional[ET.Element], *paths: str) -> Optional[str]:
    """Text of the first slash-separated path that has any."""
    for path in paths:
        text = _text(node, *path.split("/"))
        if text is not None:
            return text
    return None


class FormDParser:
    """
    Parser for SEC Form D XML filings.

    Form D XML follows the EDGAR Form D submission schema. Filings come in
    two shapes: sections wrapped in <formData> and sections placed directly
    under <edgarSubmission>. Both are accepted, wrapped first.
    """

    DEFAULT_COMPANY_NAME = "Unknown Company"
    YET_TO_OCCUR = "yet to occur"

    def parse(
        self,
        xml_content: Union[bytes, str],
        accession_number: str,
        cik: str,
        filing_date: Optional[str] = None,
    ) -> Optional[NormalizedFiling]:
        """
        Parse Form D XML into a NormalizedFiling.

        Args:
            xml_content: Raw XML document
            accession_number: Filing accession number (with dashes)
            cik: Issuer CIK from discovery
            filing_date: Fallback filing date (YYYY-MM-DD) when the XML has none

        Returns:
            NormalizedFiling, or None when the document is empty, not XML,
            or has no primary issuer
        """
        if not xml_content or not xml_content.strip():
            return None

        try:
            # An XML declaration is only legal at offset 0
            root = ET.fromstring(xml_content.lstrip())
        except ET.ParseError as e:
            logger.debug(f"XML parse error for {accession_number}: {e}")
            return None

        try:
            _strip_namespaces(root)
            return self._parse_submission(root, accession_number, cik, filing_date)
        except Exception as e:
            logger.error(f"Unexpected parse error for {accession_number}: {e}")
            return None

    def validate(self, record: Optional[NormalizedFiling]) -> bool:
        """Minimum fields required before a record may be persisted."""
        if record is None:
            return False
        return bool(
            record.company_name
            and record.cik
            and record.accession_number
            and record.filing_date
        )

    def _section(self, submission: ET.Element, name: str) -> Optional[ET.Element]:
        found = _walk(submission, "formData", name)
        if found is None:
            found = _walk(submission, name)
        return found

    def _parse_submission(
        self,
        root: ET.Element,
        accession_number: str,
        cik: str,
        fallback_filing_date: Optional[str],
    ) -> Optional[NormalizedFiling]:
        submission = root if root.tag == "edgarSubmission" else root.find(".//edgarSubmission")
        if submission is None:
            submission = root

        issuer = self._section(submission, "primaryIssuer")
        if issuer is None:
            logger.debug(f"No primaryIssuer in {accession_number}")
            return None
        offering = self._section(submission, "offeringData")

        submission_type = (
            _first_text(submission, "headerData/submissionType", "submissionType") or "D"
        )

        filing_date = (
            parse_iso_date(_first_text(submission, "headerData/filingDate", "filingDate"))
            or parse_iso_date(fallback_filing_date)
            or date.today()
        )

        first_sale_date, yet_to_occur = self._parse_first_sale(offering)

        return NormalizedFiling(
            company_name=_first_text(issuer, "entityName", "issuerName")
            or self.DEFAULT_COMPANY_NAME,
            cik=cik or _text(issuer, "cik") or "",
            accession_number=accession_number,
            filing_date=filing_date,
            is_amendment="D/A" in submission_type.upper(),
            entity_type=_text(issuer, "entityType"),
            state_of_inc=_first_text(
                issuer, "jurisdictionOfInc", "stateOfIncorporation", "stateOfInc"
            ),
            sic_code=_first_text(issuer, "sic", "sicCode"),
            issuer_street=_first_text(issuer, "issuerAddress/street1", "issuerAddress/street"),
            issuer_city=_text(issuer, "issuerAddress", "city"),
            issuer_state=_first_text(
                issuer, "issuerAddress/stateOrCountry", "issuerAddress/state"
            ),
            issuer_zip=_first_text(issuer, "issuerAddress/zipCode", "issuerAddress/zip"),
            issuer_phone=_text(issuer, "issuerPhoneNumber"),
            industry_group=_first_text(
                offering, "industryGroup/industryGroupType", "industryGroup"
            ),
            revenue_range=_text(offering, "issuerSize", "revenueRange"),
            total_offering=parse_amount(
                _text(offering, "offeringSalesAmounts", "totalOfferingAmount")
            ),
            amount_sold=parse_amount(
                _text(offering, "offeringSalesAmounts", "totalAmountSold")
            ),
            amount_remaining=parse_amount(
                _first_text(
                    offering,
                    "offeringSalesAmounts/totalRemaining",
                    "offeringSalesAmounts/totalRemainingToBeSold",
                )
            ),
            min_investment=parse_amount(_text(offering, "minimumInvestmentAccepted")),
            num_investors=parse_int(_text(offering, "investors", "totalNumberAlreadyInvested")),
            first_sale_date=first_sale_date,
            yet_to_occur=yet_to_occur,
            more_than_one_year=parse_bool(
                _first_text(
                    offering,
                    "typeOfFiling/moreThanOneYear",
                    "durationOfOffering/moreThanOneYear",
                )
            ),
            federal_exemptions=self._parse_exemptions(offering),
        )

    def _parse_first_sale(
        self, offering: Optional[ET.Element]
    ) -> Tuple[Optional[date], Optional[bool]]:
        """Returns (first_sale_date, yet_to_occur)."""
        node = _walk(offering, "typeOfFiling", "dateOfFirstSale")
        if node is None:
            node = _walk(offering, "dateOfFirstSale")
        if node is None:
            return None, None

        if parse_bool(_text(node, "yetToOccur")):
            return None, True

        raw = _text(node) or _text(node, "value")
        if raw is None:
            return None, None

        if self.YET_TO_OCCUR in raw.lower():
            return None, True

        first_sale = parse_iso_date(raw)
        if first_sale is None:
            # Unrecognized format is dropped rather than guessed
            return None, None
        return first_sale, False

    def _parse_exemptions(self, offering: Optional[ET.Element]) -> Optional[str]:
        if offering is None:
            return None

        items: List[str] = []
        nodes = offering.findall("federalExemptionsExclusions/item")
        nodes += offering.findall("federalExemptions/exemption/item")
        for node in nodes:
            text = (node.text or "").strip()
            if text:
                items.append(text)

        return "; ".join(items) if items else None
