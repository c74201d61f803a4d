"""
Schedule of Investments parsing package.

This package locates the SOI inside a filing, detects its reporting scale,
maps table columns and classifies rows into holdings.

The engine and the segmented driver depend on the store package and are
imported from their modules (or from bdc_pipeline) directly.
"""

from .models import (
    # Enums
    ScaleCategory,
    ScaleConfidence,
    RowKind,
    RunStatus,
    WarningKind,
    format_warning,
    # Records
    Holding,
    ScaleDetectionResult,
    ScaleValidation,
    ParseCheckpoint,
    ColumnMap,
    ExtractionResult,
    # Parser state
    RowContext,
    RowResult,
    InterestRate,
    Region,
    RegionChunk,
)

from .numeric import (
    parse_numeric,
    parse_date,
    extract_interest_rate,
    clean_company_name,
    has_entity_suffix,
    normalize_amount,
)

from .scale import ScaleDetector, SCALE_MULTIPLIERS

from .vocabulary import (
    FieldRule,
    ColumnVocabulary,
    IndustryTaxonomy,
    IssuerProfile,
    PROFILES,
    select_profile,
)

from .table_scanner import TableScanner, ScannedTable
from .row_classifier import RowClassifier
from .region_locator import RegionLocator, RegionSplitter
from .dedup import DedupGate
from .schedule_parser import ScheduleParser, ChunkReport, ParsedRow, build_holding

__all__ = [
    # Models
    "ScaleCategory",
    "ScaleConfidence",
    "RowKind",
    "RunStatus",
    "WarningKind",
    "format_warning",
    "Holding",
    "ScaleDetectionResult",
    "ScaleValidation",
    "ParseCheckpoint",
    "ColumnMap",
    "ExtractionResult",
    "RowContext",
    "RowResult",
    "InterestRate",
    "Region",
    "RegionChunk",
    # Numeric
    "parse_numeric",
    "parse_date",
    "extract_interest_rate",
    "clean_company_name",
    "has_entity_suffix",
    "normalize_amount",
    # Components
    "ScaleDetector",
    "SCALE_MULTIPLIERS",
    "FieldRule",
    "ColumnVocabulary",
    "IndustryTaxonomy",
    "IssuerProfile",
    "PROFILES",
    "select_profile",
    "TableScanner",
    "ScannedTable",
    "RowClassifier",
    "RegionLocator",
    "RegionSplitter",
    "DedupGate",
    "ScheduleParser",
    "ChunkReport",
    "ParsedRow",
    "build_holding",
]
