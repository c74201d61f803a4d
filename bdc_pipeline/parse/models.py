"""
Pydantic models for Schedule of Investments extraction.

Holdings, scale detection, checkpoints and run results are pydantic models;
the small mutable state threaded through the parser (row context, region
chunks, row classifications) uses dataclasses.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ScaleCategory(str, Enum):
    """Reporting scale of the monetary columns."""
    THOUSANDS = "thousands"
    MILLIONS = "millions"
    UNKNOWN = "unknown"


class ScaleConfidence(str, Enum):
    """How the scale was established."""
    HIGH = "high"        # Explicit phrase, e.g. "(in thousands)"
    MEDIUM = "medium"    # Bare "in thousands" somewhere in the text
    LOW = "low"          # Nothing found, default applied


class RowKind(str, Enum):
    """Classification of one table row."""
    INDUSTRY_HEADER = "industry_header"
    TYPE_LABEL = "type_label"
    SKIP = "skip"
    HOLDING = "holding"


class RunStatus(str, Enum):
    """Outcome of one extraction invocation."""
    COMPLETE = "COMPLETE"
    PARTIAL = "PARTIAL"
    ERROR = "ERROR"


class WarningKind(str, Enum):
    """Non-fatal anomalies reported in ExtractionResult.warnings."""
    NO_REGION_FOUND = "NoRegionFound"
    TABLE_STRUCTURE_UNRECOGNIZED = "TableStructureUnrecognized"
    ROW_PARSE_FAILURE = "RowParseFailure"
    SCALE_AMBIGUOUS = "ScaleAmbiguous"
    SCALE_SUSPECT = "ScaleSuspect"
    STALE_CHECKPOINT = "StaleCheckpoint"
    NO_HOLDINGS = "NoHoldingsFound"


def format_warning(kind: WarningKind, message: str) -> str:
    """Render a warning string as '<Kind>: <message>'."""
    return f"{kind.value}: {message}"


# =============================================================================
# Holdings
# =============================================================================

class Holding(BaseModel):
    """One investment position from the Schedule of Investments."""
    company_name: str
    investment_type: Optional[str] = None
    industry: Optional[str] = None
    description: Optional[str] = None
    interest_rate: Optional[str] = None     # Full rate cell, e.g. "SOFR + 5.25%"
    reference_rate: Optional[str] = None    # Upper-cased index, e.g. "SOFR"
    maturity_date: Optional[str] = None     # ISO YYYY-MM-DD
    par_amount: Optional[float] = None      # Millions of USD
    cost: Optional[float] = None            # Millions of USD
    fair_value: float                       # Millions of USD, never zero
    shares: Optional[str] = None            # Shares/units cell text
    period_date: Optional[str] = None       # SOI "as of" date

    # Values as printed, before scaling
    reported_fair_value: Optional[float] = None
    reported_cost: Optional[float] = None

    row_number: int = 0                     # Ordinal within the filing
    source_offset: int = 0                  # Offset of the source table in the document

    @field_validator("fair_value")
    @classmethod
    def _fair_value_non_zero(cls, value: float) -> float:
        if value == 0:
            raise ValueError("fair_value must be non-zero")
        return value


class ScaleDetectionResult(BaseModel):
    """Scale inferred for a document, applied uniformly to every holding."""
    multiplier: float                       # Factor to millions of USD
    category: ScaleCategory
    confidence: ScaleConfidence
    matched_phrase: Optional[str] = None


class ScaleValidation(BaseModel):
    """Soft plausibility check of the normalized fair values."""
    valid: bool
    warning: Optional[str] = None
    mean_fair_value: Optional[float] = None


class ParseCheckpoint(BaseModel):
    """Resumption point stored on the filing record."""
    byte_offset: int = 0                    # Start of the next unprocessed segment
    industry_context: Optional[str] = None
    total_region_size: int = 0

    def percent_complete(self) -> float:
        if self.total_region_size <= 0:
            return 0.0
        return round(min(100.0, self.byte_offset / self.total_region_size * 100), 1)


# =============================================================================
# Table structure
# =============================================================================

COLUMN_FIELDS = (
    "company",
    "investment_type",
    "industry",
    "description",
    "interest_rate",
    "reference_rate",
    "maturity",
    "par",
    "cost",
    "fair_value",
    "shares",
    "percent_net_assets",
)


class ColumnMap(BaseModel):
    """Logical column position of each field in a table, -1 when absent."""
    model_config = ConfigDict(frozen=True)

    company: int = -1
    investment_type: int = -1
    industry: int = -1
    description: int = -1
    interest_rate: int = -1
    reference_rate: int = -1
    maturity: int = -1
    par: int = -1
    cost: int = -1
    fair_value: int = -1
    shares: int = -1
    percent_net_assets: int = -1

    spans: dict[str, int] = Field(default_factory=dict)   # Header colspan per field
    header_row_index: int = -1

    def position(self, name: str) -> int:
        return getattr(self, name)

    def span(self, name: str) -> int:
        return self.spans.get(name, 1)

    def has(self, name: str) -> bool:
        return self.position(name) >= 0

    def columns(self, name: str) -> range:
        """Logical positions covered by a field's header cell."""
        start = self.position(name)
        if start < 0:
            return range(0)
        return range(start, start + self.span(name))

    def mapped_fields(self) -> list[str]:
        return [name for name in COLUMN_FIELDS if self.has(name)]


@dataclass
class RowContext:
    """Company and industry carried from row to row and across segments."""
    current_company: Optional[str] = None
    current_industry: Optional[str] = None
    # Last section row if it may be a suffix-less company: (name, industry before it)
    pending_company: Optional[tuple[str, Optional[str]]] = None

    def for_next_segment(self) -> "RowContext":
        # Segments start on a company row, so only the industry carries over
        return RowContext(current_company=None, current_industry=self.current_industry)


@dataclass
class RowResult:
    """Classification of a row and, for holdings, the extracted fields."""
    kind: RowKind
    fields: dict[str, Any] = field(default_factory=dict)
    reason: str = ""


@dataclass(frozen=True)
class InterestRate:
    rate: Optional[str] = None
    reference: Optional[str] = None


# =============================================================================
# Region
# =============================================================================

@dataclass
class RegionChunk:
    """
    A slice of the region ending on a row boundary.

    start/end are offsets into Region.text. prefix holds the opening tag and
    header rows of the table the chunk starts inside, if any.
    """
    start: int
    end: int
    prefix: str = ""

    def html(self, region_text: str) -> str:
        return self.prefix + region_text[self.start:self.end]


@dataclass
class Region:
    """The located Schedule of Investments window of a document."""
    text: str
    doc_start: int
    doc_end: int
    keyword_found: bool = True
    period_date: Optional[str] = None
    chunks: list[RegionChunk] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.text)


# =============================================================================
# Run result
# =============================================================================

class ExtractionResult(BaseModel):
    """Outcome of one ExtractionEngine.run invocation."""
    status: RunStatus
    holdings_inserted: int = 0
    total_holdings: Optional[int] = None
    scale: ScaleCategory = ScaleCategory.UNKNOWN
    scale_confidence: ScaleConfidence = ScaleConfidence.LOW
    percent_complete: float = 0.0
    next_offset: Optional[int] = None
    warnings: list[str] = Field(default_factory=list)
    error: Optional[str] = None
    period_date: Optional[str] = None

    def to_dict(self) -> dict:
        """Wire form returned to the relay caller."""
        result = {
            "status": self.status.value,
            "holdingsInserted": self.holdings_inserted,
            "scale": self.scale.value,
            "scaleConfidence": self.scale_confidence.value,
            "percentComplete": self.percent_complete,
            "warnings": list(self.warnings),
        }
        if self.total_holdings is not None:
            result["totalHoldings"] = self.total_holdings
        if self.next_offset is not None:
            result["nextOffset"] = self.next_offset
        if self.error is not None:
            result["error"] = self.error
        if self.period_date is not None:
            result["periodDate"] = self.period_date
        return result
