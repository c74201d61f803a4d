"""
BDC Schedule of Investments pipeline.

This package extracts holdings from BDC 10-K/10-Q filings:
- Locating the Schedule of Investments region
- Detecting the reporting scale
- Mapping table columns and classifying rows
- Budgeted, resumable parsing of large filings
- Persisting holdings and checkpoints
"""

from .config import PipelineConfig, load_config
from .parse.engine import ExtractionEngine
from .parse.models import ExtractionResult, Holding, RunStatus
from .parse.segmented import SegmentedDriver
from .store import (
    DuckDBHoldingsStore,
    FileDocumentSource,
    HoldingsStore,
    InMemoryHoldingsStore,
    SECDocumentSource,
    StoreFailure,
)

__version__ = "0.1.0"

__all__ = [
    "PipelineConfig",
    "load_config",
    "ExtractionEngine",
    "ExtractionResult",
    "Holding",
    "RunStatus",
    "SegmentedDriver",
    "DuckDBHoldingsStore",
    "FileDocumentSource",
    "HoldingsStore",
    "InMemoryHoldingsStore",
    "SECDocumentSource",
    "StoreFailure",
]
