"""
SEC Form D Filings Module.

Ingest private placement filings from SEC EDGAR.
"""

from formd_scout.sources.sec_form_d.client import FormDClient
from formd_scout.sources.sec_form_d.parser import FormDParser
from formd_scout.sources.sec_form_d.ingest import FormDIngestionService

__all__ = ["FormDClient", "FormDParser", "FormDIngestionService"]
