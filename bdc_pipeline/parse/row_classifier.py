"""
Row classification for SOI tables.

Each flattened row is one of: an industry section header, an instrument-class
label, a row to skip (totals, notes, blanks) or a holding. Holdings inherit
the company of the previous row when their company cell is blank or too short
to be a name (multi-tranche positions print the company once).
"""

import logging
import re
from typing import Optional

from .models import ColumnMap, RowContext, RowKind, RowResult
from .numeric import (
    clean_company_name,
    extract_interest_rate,
    has_entity_suffix,
    parse_date,
    parse_numeric,
)
from .vocabulary import GENERIC_PROFILE, IssuerProfile

logger = logging.getLogger(__name__)


# Leading-cell phrases of rows that are never holdings
DENYLIST_RE = re.compile(
    r"^(?:sub-?total|total|net\s+assets|weighted\s+average|balance|"
    r"liabilities\s+in\s+excess|other\s+assets|cash\s+and\s+cash\s+equivalents|"
    r"cash\s+equivalents|money\s+market|investments?,?\s+at\s+fair\s+value|"
    r"percentage\s+of|see\s+accompanying)\b",
    re.IGNORECASE,
)
SUBTOTAL_RE = re.compile(r"\b(?:sub-?total|total|aggregate)\b", re.IGNORECASE)
PERCENT_ONLY_RE = re.compile(r"^\(?\s*\d+(?:\.\d+)?\s*%\s*\)?$")
DATE_LIKE_RE = re.compile(r"\b\d{1,2}/\d{1,2}/\d{2,4}\b|\b\d{1,2}/\d{4}\b")

# Cells that carry no information on their own
NOISE_CELLS = {"$", "%", "(", ")", ")%", "€", "£"}

# Fields that describe a specific tranche; a continuation row with none of
# them is an unlabelled per-company subtotal
TRANCHE_FIELDS = (
    "investment_type",
    "interest_rate",
    "reference_rate",
    "maturity",
    "par",
    "shares",
    "description",
)

TEXT_FIELDS = ("investment_type", "industry", "description", "interest_rate", "reference_rate", "maturity", "shares")


class RowClassifier:
    """Classifies flattened table rows and extracts holding fields."""

    def __init__(self, profile: Optional[IssuerProfile] = None, min_company_chars: int = 5):
        self.profile = profile or GENERIC_PROFILE
        self.taxonomy = self.profile.taxonomy
        self.min_company_chars = min_company_chars

    # =========================================================================
    # Cell access
    # =========================================================================

    @staticmethod
    def field_text(cells: list[str], columns: ColumnMap, name: str) -> str:
        """Non-empty texts inside a field's span, joined with spaces."""
        parts = [cells[i] for i in columns.columns(name) if i < len(cells) and cells[i]]
        return " ".join(parts).strip()

    @staticmethod
    def field_number(cells: list[str], columns: ColumnMap, name: str) -> Optional[float]:
        """
        Numeric value of a field.

        The span's texts are joined without spaces so "$" + "12,345" reads as
        one amount. An empty span falls back to the adjacent cell on the right,
        then the left, when that cell is not claimed by another field.
        """
        span = list(columns.columns(name))
        if not span:
            return None
        joined = "".join(cells[i] for i in span if i < len(cells) and cells[i])
        if joined and joined not in NOISE_CELLS:
            return parse_numeric(joined)

        claimed = set()
        for other in columns.mapped_fields():
            if other != name:
                claimed.update(columns.columns(other))
        for neighbour in (span[-1] + 1, span[0] - 1):
            if 0 <= neighbour < len(cells) and neighbour not in claimed and cells[neighbour]:
                value = parse_numeric(cells[neighbour])
                if value is not None:
                    return value
        return None

    def fallback_fair_value(self, cells: list[str], columns: ColumnMap) -> Optional[float]:
        """Rightmost numeric cell, ignoring shares/units and percentage columns."""
        excluded = set(columns.columns("shares")) | set(columns.columns("percent_net_assets"))
        for index in range(len(cells) - 1, -1, -1):
            if index in excluded or not cells[index]:
                continue
            # "3.2" followed by a "%" cell is a percentage
            following = cells[index + 1].strip() if index + 1 < len(cells) else ""
            if following.startswith("%"):
                continue
            value = parse_numeric(cells[index])
            if value is not None:
                return value
        return None

    # =========================================================================
    # Classification
    # =========================================================================

    def _is_section_row(self, meaningful: list[str]) -> bool:
        """Roughly one meaningful cell, extra cells only percentages."""
        if not meaningful:
            return False
        return all(PERCENT_ONLY_RE.match(text) for text in meaningful[1:])

    def _has_value_signal(self, text: str) -> bool:
        return (
            "$" in text
            or parse_numeric(text) is not None
            or DATE_LIKE_RE.search(text) is not None
            or has_entity_suffix(text)
        )

    def classify(self, cells: list[str], columns: ColumnMap, context: RowContext) -> RowResult:
        """
        Classify one row and update context.

        Args:
            cells: Flattened row (one string per logical column)
            columns: Column map of the table
            context: Company/industry state, mutated in place

        Returns:
            RowResult; for holdings, fields holds the unscaled values
        """
        texts = [text.strip() for text in cells]
        meaningful = [t for t in texts if t and t not in NOISE_CELLS]
        if not meaningful:
            return RowResult(RowKind.SKIP, reason="empty")

        # Only the next row with content may adopt a pending section row
        pending = context.pending_company
        context.pending_company = None

        leading = meaningful[0]
        if DENYLIST_RE.match(leading) and not has_entity_suffix(leading):
            return RowResult(RowKind.SKIP, reason="denylisted")

        if self._is_section_row(meaningful) and not self._has_value_signal(leading):
            section = self.taxonomy.clean(leading)
            if self.taxonomy.is_known(section):
                context.current_industry = section
                return RowResult(RowKind.INDUSTRY_HEADER, reason=section)
            if self.taxonomy.is_type_label(section):
                return RowResult(RowKind.TYPE_LABEL, reason=section)
            if self.taxonomy.looks_like_industry(section):
                context.pending_company = (section, context.current_industry)
                context.current_industry = section
                return RowResult(RowKind.INDUSTRY_HEADER, reason=section)

        return self._classify_holding(texts, columns, context, pending)

    def _classify_holding(
        self,
        cells: list[str],
        columns: ColumnMap,
        context: RowContext,
        pending: Optional[tuple[str, Optional[str]]] = None,
    ) -> RowResult:
        if columns.has("company"):
            raw_company = self.field_text(cells, columns, "company")
        else:
            raw_company = cells[0] if cells else ""
        name = clean_company_name(raw_company)

        continues = len(name) < self.min_company_chars or self.taxonomy.is_type_label(name)
        if pending and continues and not has_entity_suffix(name):
            # A lone name row read as an industry owns the tranches below it
            context.current_company, context.current_industry = pending
            logger.debug(f"Section row '{pending[0]}' is a company; continuation follows")

        type_from_name: Optional[str] = None
        new_company: Optional[str] = None
        if name and has_entity_suffix(name):
            # A named entity starts a new company even if this row has no values
            context.current_company = name
            company = name
        elif len(name) < self.min_company_chars:
            if not context.current_company:
                return RowResult(RowKind.SKIP, reason="no company")
            company = context.current_company
        elif context.current_company and self.taxonomy.is_type_label(name):
            # Tranche rows that print the instrument in the company column
            company = context.current_company
            type_from_name = name
        else:
            company = name
            new_company = name

        fair_value = None
        if columns.has("fair_value"):
            fair_value = self.field_number(cells, columns, "fair_value")
        if fair_value is None:
            fair_value = self.fallback_fair_value(cells, columns)
        if not fair_value:
            return RowResult(RowKind.SKIP, reason="no fair value")

        fields = {key: self.field_text(cells, columns, key) or None for key in TEXT_FIELDS}
        investment_type = fields["investment_type"] or type_from_name
        # A company named "Total ..., LLC" is not a subtotal label
        company_span = set(columns.columns("company")) if columns.has("company") else {0}
        label_text = " ".join(
            t for i, t in enumerate(cells)
            if t and not (i in company_span and has_entity_suffix(name))
        )
        if not investment_type and SUBTOTAL_RE.search(label_text):
            return RowResult(RowKind.SKIP, reason="subtotal")

        continuation = new_company is None and company != name
        par = self.field_number(cells, columns, "par") if columns.has("par") else None
        if continuation and not type_from_name and par is None and not any(
            fields.get(key) for key in TRANCHE_FIELDS
        ):
            return RowResult(RowKind.SKIP, reason="company subtotal")

        if new_company:
            context.current_company = new_company

        industry_cell = fields["industry"]
        if industry_cell and len(industry_cell) > 3:
            context.current_industry = self.taxonomy.clean(industry_cell)

        rate = extract_interest_rate(fields["interest_rate"] or fields["reference_rate"])
        reference = rate.reference or extract_interest_rate(fields["reference_rate"]).reference
        cost = self.field_number(cells, columns, "cost") if columns.has("cost") else None

        return RowResult(RowKind.HOLDING, fields={
            "company_name": company,
            "investment_type": investment_type,
            "industry": context.current_industry,
            "description": fields["description"],
            "interest_rate": rate.rate,
            "reference_rate": reference,
            "maturity_date": parse_date(fields["maturity"]),
            "par_amount": par,
            "cost": cost,
            "fair_value": fair_value,
            "shares": fields["shares"],
        })
