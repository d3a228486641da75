"""FormD Scout: SEC Form D ingestion."""

__version__ = "0.1.0"
