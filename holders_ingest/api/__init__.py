"""
HTTP API package.
"""
from holders_ingest.api.app import create_app

__all__ = ["create_app"]
