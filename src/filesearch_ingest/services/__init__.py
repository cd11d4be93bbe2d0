"""Service layer for filesearch-ingest."""
