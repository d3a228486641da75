"""
SEC Form D database model.

One row per Form D / Form D/A submission. The accession number is the
only deduplication key: a second insert of the same accession number is
ignored and the stored row is never updated by ingestion.
"""

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)

from formd_scout.core.models import Base


class FormDFiling(Base):
    """Stored, normalized Form D filing."""

    __tablename__ = "form_d_filings"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Identity
    cik = Column(String(10), nullable=False, index=True)
    accession_number = Column(String(25), nullable=False, unique=True, index=True)
    company_name = Column(Text, nullable=False)
    filing_date = Column(Date, nullable=False)
    is_amendment = Column(Boolean, nullable=False, default=False)

    # Issuer
    entity_type = Column(Text, nullable=True)
    state_of_inc = Column(String(10), nullable=True)
    sic_code = Column(String(10), nullable=True)
    issuer_street = Column(Text, nullable=True)
    issuer_city = Column(Text, nullable=True)
    issuer_state = Column(String(10), nullable=True)
    issuer_zip = Column(String(20), nullable=True)
    issuer_phone = Column(String(30), nullable=True)

    # Offering
    industry_group = Column(Text, nullable=True)
    revenue_range = Column(Text, nullable=True)
    total_offering = Column(Numeric(15, 2), nullable=True)  # None = indefinite
    amount_sold = Column(Numeric(15, 2), nullable=True)
    amount_remaining = Column(Numeric(15, 2), nullable=True)
    min_investment = Column(Numeric(15, 2), nullable=True)
    num_investors = Column(Integer, nullable=True)
    first_sale_date = Column(Date, nullable=True)
    yet_to_occur = Column(Boolean, nullable=True)
    more_than_one_year = Column(Boolean, nullable=True)
    federal_exemptions = Column(Text, nullable=True)  # "06b; 3C.1"

    # Links
    filing_url = Column(Text, nullable=True)
    xml_url = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )

    __table_args__ = (
        Index("idx_form_d_filing_date", "filing_date"),
        Index("idx_form_d_industry_group", "industry_group"),
        Index("idx_form_d_issuer_state", "issuer_state"),
    )

    def __repr__(self):
        return f"<FormDFiling(accession_number='{self.accession_number}', company_name='{self.company_name}')>"

    def to_dict(self):
        """Serialize for API responses."""
        return {
            "id": self.id,
            "cik": self.cik,
            "accession_number": self.accession_number,
            "company_name": self.company_name,
            "filing_date": self.filing_date.isoformat() if self.filing_date else None,
            "is_amendment": self.is_amendment,
            "entity_type": self.entity_type,
            "state_of_inc": self.state_of_inc,
            "sic_code": self.sic_code,
            "issuer": {
                "street": self.issuer_street,
                "city": self.issuer_city,
                "state": self.issuer_state,
                "zip": self.issuer_zip,
                "phone": self.issuer_phone,
            },
            "industry_group": self.industry_group,
            "revenue_range": self.revenue_range,
            "total_offering": float(self.total_offering) if self.total_offering is not None else None,
            "amount_sold": float(self.amount_sold) if self.amount_sold is not None else None,
            "amount_remaining": float(self.amount_remaining) if self.amount_remaining is not None else None,
            "min_investment": float(self.min_investment) if self.min_investment is not None else None,
            "num_investors": self.num_investors,
            "first_sale_date": self.first_sale_date.isoformat() if self.first_sale_date else None,
            "yet_to_occur": self.yet_to_occur,
            "more_than_one_year": self.more_than_one_year,
            "federal_exemptions": self.federal_exemptions,
            "filing_url": self.filing_url,
            "xml_url": self.xml_url,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
