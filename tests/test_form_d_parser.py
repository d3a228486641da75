"""
Unit tests for the Form D XML parser.

All tests are fully offline and operate on inline XML documents.
"""
from datetime import date
from decimal import Decimal

import pytest

from formd_scout.sources.sec_form_d.parser import (
    FormDParser,
    parse_amount,
    parse_bool,
    parse_int,
    parse_iso_date,
)
from formd_scout.sources.sec_form_d.types import NormalizedFiling

ACCESSION = "0001583168-24-000001"
CIK = "0001583168"

FULL_FILING = b"""<?xml version="1.0"?>
<edgarSubmission xmlns="http://www.sec.gov/edgar/formd">
  <headerData>
    <submissionType>D</submissionType>
    <filingDate>2024-01-15</filingDate>
  </headerData>
  <formData>
    <primaryIssuer>
      <cik>0001583168</cik>
      <entityName>Acme Ventures LLC</entityName>
      <issuerAddress>
        <street1>1 Market St</street1>
        <city>San Francisco</city>
        <stateOrCountry>CA</stateOrCountry>
        <zipCode>94105</zipCode>
      </issuerAddress>
      <issuerPhoneNumber>415-555-0100</issuerPhoneNumber>
      <jurisdictionOfInc>DELAWARE</jurisdictionOfInc>
      <entityType>Limited Liability Company</entityType>
    </primaryIssuer>
    <offeringData>
      <industryGroup>
        <industryGroupType>Other Technology</industryGroupType>
      </industryGroup>
      <issuerSize>
        <revenueRange>Decline to Disclose</revenueRange>
      </issuerSize>
      <federalExemptionsExclusions>
        <item>06b</item>
        <item>3C</item>
        <item>3C.1</item>
      </federalExemptionsExclusions>
      <typeOfFiling>
        <dateOfFirstSale>
          <value>2023-12-20</value>
        </dateOfFirstSale>
      </typeOfFiling>
      <durationOfOffering>
        <moreThanOneYear>false</moreThanOneYear>
      </durationOfOffering>
      <minimumInvestmentAccepted>25000</minimumInvestmentAccepted>
      <offeringSalesAmounts>
        <totalOfferingAmount>5000000</totalOfferingAmount>
        <totalAmountSold>1,250,000</totalAmountSold>
        <totalRemaining>3750000</totalRemaining>
      </offeringSalesAmounts>
      <investors>
        <totalNumberAlreadyInvested>12</totalNumberAlreadyInvested>
      </investors>
    </offeringData>
  </formData>
</edgarSubmission>
"""


def minimal_filing(
    offering: str = "", header: str = "<submissionType>D</submissionType>", wrap: bool = True
) -> str:
    issuer = "<primaryIssuer><entityName>Tiny Co</entityName></primaryIssuer>"
    body = f"{issuer}<offeringData>{offering}</offeringData>"
    if wrap:
        body = f"<formData>{body}</formData>"
    return f"<edgarSubmission><headerData>{header}</headerData>{body}</edgarSubmission>"


@pytest.fixture
def parser():
    return FormDParser()


@pytest.mark.unit
class TestParseFullFiling:

    def test_parses_all_fields(self, parser):
        record = parser.parse(FULL_FILING, ACCESSION, CIK)

        assert isinstance(record, NormalizedFiling)
        assert record.company_name == "Acme Ventures LLC"
        assert record.cik == CIK
        assert record.accession_number == ACCESSION
        assert record.filing_date == date(2024, 1, 15)
        assert record.is_amendment is False
        assert record.entity_type == "Limited Liability Company"
        assert record.state_of_inc == "DELAWARE"
        assert record.issuer_street == "1 Market St"
        assert record.issuer_city == "San Francisco"
        assert record.issuer_state == "CA"
        assert record.issuer_zip == "94105"
        assert record.issuer_phone == "415-555-0100"
        assert record.industry_group == "Other Technology"
        assert record.revenue_range == "Decline to Disclose"
        assert record.total_offering == Decimal("5000000")
        assert record.amount_sold == Decimal("1250000")
        assert record.amount_remaining == Decimal("3750000")
        assert record.min_investment == Decimal("25000")
        assert record.num_investors == 12
        assert record.first_sale_date == date(2023, 12, 20)
        assert record.yet_to_occur is False
        assert record.more_than_one_year is False
        assert record.federal_exemptions == "06b; 3C; 3C.1"

    def test_same_input_same_output(self, parser):
        first = parser.parse(FULL_FILING, ACCESSION, CIK)
        second = parser.parse(FULL_FILING, ACCESSION, CIK)

        assert first == second
        assert first.to_dict() == second.to_dict()

    def test_str_input_is_accepted(self, parser):
        record = parser.parse(FULL_FILING.decode("utf-8"), ACCESSION, CIK)
        assert record.company_name == "Acme Ventures LLC"

    def test_to_dict_is_json_ready(self, parser):
        data = parser.parse(FULL_FILING, ACCESSION, CIK).to_dict()

        assert data["filing_date"] == "2024-01-15"
        assert data["total_offering"] == "5000000"
        assert data["first_sale_date"] == "2023-12-20"


@pytest.mark.unit
class TestParseFailures:

    @pytest.mark.parametrize("content", [b"", "", "   \n ", b"not xml at all", "<unclosed>"])
    def test_empty_or_invalid_xml_is_none(self, parser, content):
        assert parser.parse(content, ACCESSION, CIK) is None

    def test_missing_primary_issuer_is_none(self, parser):
        xml = "<edgarSubmission><formData><offeringData/></formData></edgarSubmission>"
        assert parser.parse(xml, ACCESSION, CIK) is None


@pytest.mark.unit
class TestParseFieldRules:

    def test_minimal_document(self, parser):
        record = parser.parse(minimal_filing(), ACCESSION, CIK, filing_date="2024-03-01")

        assert record.company_name == "Tiny Co"
        assert record.filing_date == date(2024, 3, 1)
        assert record.total_offering is None
        assert record.num_investors is None
        assert record.first_sale_date is None
        assert record.yet_to_occur is None
        assert record.federal_exemptions is None

    @pytest.mark.parametrize("prefix", [b"\n", b"  \r\n\t"])
    def test_whitespace_before_declaration(self, parser, prefix):
        xml = prefix + b'<?xml version="1.0" encoding="UTF-8"?>' + minimal_filing().encode()

        record = parser.parse(xml, ACCESSION, CIK, filing_date="2024-03-01")

        assert record is not None
        assert record.company_name == "Tiny Co"

    def test_only_name_and_cik_is_valid(self, parser):
        xml = (
            "<edgarSubmission><primaryIssuer><cik>0001583168</cik>"
            "<entityName>Bare Issuer Inc</entityName></primaryIssuer></edgarSubmission>"
        )
        record = parser.parse(xml, ACCESSION, "")

        assert parser.validate(record) is True
        assert record.cik == "0001583168"
        assert record.is_amendment is False
        assert record.entity_type is None
        assert record.industry_group is None
        assert record.total_offering is None
        assert record.more_than_one_year is None
        assert record.federal_exemptions is None

    def test_flat_layout_without_form_data(self, parser):
        xml = minimal_filing(
            offering="<offeringSalesAmounts><totalOfferingAmount>100</totalOfferingAmount></offeringSalesAmounts>",
            wrap=False,
        )
        record = parser.parse(xml, ACCESSION, CIK)

        assert record.company_name == "Tiny Co"
        assert record.total_offering == Decimal("100")

    def test_company_name_defaults(self, parser):
        xml = "<edgarSubmission><formData><primaryIssuer><entityType>Corporation</entityType></primaryIssuer></formData></edgarSubmission>"
        record = parser.parse(xml, ACCESSION, CIK)

        assert record.company_name == "Unknown Company"

    def test_cik_falls_back_to_document(self, parser):
        xml = "<edgarSubmission><primaryIssuer><cik>0000012345</cik><entityName>X</entityName></primaryIssuer></edgarSubmission>"
        record = parser.parse(xml, ACCESSION, "")

        assert record.cik == "0000012345"

    def test_amendment_detected(self, parser):
        xml = minimal_filing(header="<submissionType>d/a</submissionType>")
        assert parser.parse(xml, ACCESSION, CIK).is_amendment is True

    def test_missing_submission_type_is_original(self, parser):
        xml = minimal_filing(header="")
        assert parser.parse(xml, ACCESSION, CIK).is_amendment is False

    def test_indefinite_offering_amount(self, parser):
        xml = minimal_filing(
            offering="<offeringSalesAmounts><totalOfferingAmount>Indefinite</totalOfferingAmount>"
            "<totalAmountSold>0</totalAmountSold></offeringSalesAmounts>"
        )
        record = parser.parse(xml, ACCESSION, CIK)

        assert record.total_offering is None
        assert record.amount_sold == Decimal("0")

    def test_remaining_to_be_sold_alternative(self, parser):
        xml = minimal_filing(
            offering="<offeringSalesAmounts><totalRemainingToBeSold>$2,000</totalRemainingToBeSold></offeringSalesAmounts>"
        )
        assert parser.parse(xml, ACCESSION, CIK).amount_remaining == Decimal("2000")

    def test_yet_to_occur_phrase(self, parser):
        xml = minimal_filing(
            offering="<typeOfFiling><dateOfFirstSale>Yet to Occur</dateOfFirstSale></typeOfFiling>"
        )
        record = parser.parse(xml, ACCESSION, CIK)

        assert record.yet_to_occur is True
        assert record.first_sale_date is None

    def test_yet_to_occur_flag(self, parser):
        xml = minimal_filing(
            offering="<typeOfFiling><dateOfFirstSale><yetToOccur>true</yetToOccur></dateOfFirstSale></typeOfFiling>"
        )
        record = parser.parse(xml, ACCESSION, CIK)

        assert record.yet_to_occur is True
        assert record.first_sale_date is None

    @pytest.mark.parametrize("raw", ["12/20/2023", "2023-13-45", "soon"])
    def test_unrecognized_first_sale_is_discarded(self, parser, raw):
        xml = minimal_filing(
            offering=f"<typeOfFiling><dateOfFirstSale><value>{raw}</value></dateOfFirstSale></typeOfFiling>"
        )
        record = parser.parse(xml, ACCESSION, CIK)

        assert record.first_sale_date is None
        assert record.yet_to_occur is None

    def test_single_exemption(self, parser):
        xml = minimal_filing(
            offering="<federalExemptionsExclusions><item> 06c </item></federalExemptionsExclusions>"
        )
        assert parser.parse(xml, ACCESSION, CIK).federal_exemptions == "06c"

    def test_nested_exemption_list_drops_empties(self, parser):
        xml = minimal_filing(
            offering="<federalExemptions>"
            "<exemption><item>04</item></exemption>"
            "<exemption><item>  </item><item>06b</item></exemption>"
            "</federalExemptions>"
        )
        assert parser.parse(xml, ACCESSION, CIK).federal_exemptions == "04; 06b"

    def test_invalid_header_filing_date_uses_fallback(self, parser):
        xml = minimal_filing(header="<filingDate>01/15/2024</filingDate>")
        record = parser.parse(xml, ACCESSION, CIK, filing_date="2024-01-16")

        assert record.filing_date == date(2024, 1, 16)

    def test_filing_date_defaults_to_today(self, parser):
        record = parser.parse(minimal_filing(), ACCESSION, CIK)
        assert record.filing_date == date.today()

    def test_more_than_one_year_under_type_of_filing(self, parser):
        xml = minimal_filing(offering="<typeOfFiling><moreThanOneYear>YES</moreThanOneYear></typeOfFiling>")
        assert parser.parse(xml, ACCESSION, CIK).more_than_one_year is True


@pytest.mark.unit
class TestValueHelpers:

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("1000", Decimal("1000")),
            (" $1,500,000.50 ", Decimal("1500000.50")),
            ("indefinite", None),
            ("INDEFINITE", None),
            ("NaN", None),
            ("Infinity", None),
            ("abc", None),
            ("", None),
            (None, None),
        ],
    )
    def test_parse_amount(self, raw, expected):
        assert parse_amount(raw) == expected

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("12", 12), ("1,204", 1204), (" 7 ", 7),
            ("1_000", None), ("1.5", None), ("x", None), ("", None), (None, None),
        ],
    )
    def test_parse_int(self, raw, expected):
        assert parse_int(raw) == expected

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("true", True), ("1", True), ("YES", True),
            ("false", False), ("0", False), ("No", False),
            ("maybe", None), ("", None), (None, None),
        ],
    )
    def test_parse_bool(self, raw, expected):
        assert parse_bool(raw) is expected

    def test_parse_iso_date(self):
        assert parse_iso_date("2024-02-29") == date(2024, 2, 29)
        assert parse_iso_date("2023-02-29") is None
        assert parse_iso_date("2024-1-5") is None


@pytest.mark.unit
class TestValidate:

    def test_valid_record(self, parser):
        assert parser.validate(parser.parse(FULL_FILING, ACCESSION, CIK)) is True

    def test_none_is_invalid(self, parser):
        assert parser.validate(None) is False

    def test_missing_cik_is_invalid(self, parser):
        record = parser.parse(minimal_filing(), ACCESSION, "")
        assert record.cik == ""
        assert parser.validate(record) is False
