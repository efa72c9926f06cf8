"""
Ingestion package: paged source adapter, ranking, and the ingestion engine.
"""
from holders_ingest.ingestion.engine import IngestionEngine
from holders_ingest.ingestion.ranking import dedupe_records, is_ranked, rank_records
from holders_ingest.ingestion.source import (
    Exhausted,
    Failure,
    Page,
    PagedHolderSource,
    PagedSource,
    PageResult,
)

__all__ = [
    "IngestionEngine",
    "dedupe_records",
    "is_ranked",
    "rank_records",
    "Exhausted",
    "Failure",
    "Page",
    "PagedHolderSource",
    "PagedSource",
    "PageResult",
]
