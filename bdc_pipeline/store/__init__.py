"""
Persistence and document retrieval collaborators of the extraction engine.
"""

from .base import HoldingsStore, InMemoryHoldingsStore, StoreFailure
from .database import DuckDBHoldingsStore
from .source import (
    DocumentFetchError,
    DocumentSource,
    FileDocumentSource,
    SECDocumentSource,
)

__all__ = [
    "HoldingsStore",
    "InMemoryHoldingsStore",
    "StoreFailure",
    "DuckDBHoldingsStore",
    "DocumentFetchError",
    "DocumentSource",
    "FileDocumentSource",
    "SECDocumentSource",
]
