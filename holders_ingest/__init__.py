"""
Holders Ingest package.
Cached, ranked token-holder snapshot with paginated background ingestion.
"""
from holders_ingest.config import get_settings, Settings
from holders_ingest.models import HolderRecord, Snapshot, FetchState

__version__ = "1.0.0"
__all__ = ["get_settings", "Settings", "HolderRecord", "Snapshot", "FetchState"]
