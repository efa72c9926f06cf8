"""
Client package initialization.
"""
from holders_ingest.clients.base import BaseAPIClient
from holders_ingest.clients.socialscan import SocialScanClient

__all__ = [
    "BaseAPIClient",
    "SocialScanClient",
]
