"""
Chunk-level parsing: tables -> classified rows -> holdings.

Shared by the direct path of the engine and the segmented driver so both
produce identical holdings for identical markup.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import ValidationError

from .models import Holding, RowContext, RowKind, ScaleDetectionResult, WarningKind, format_warning
from .numeric import normalize_amount
from .row_classifier import RowClassifier
from .table_scanner import TableScanner
from .vocabulary import GENERIC_PROFILE, IssuerProfile

logger = logging.getLogger(__name__)


@dataclass
class ParsedRow:
    """Unscaled holding fields and the document offset of their table."""
    fields: dict[str, Any]
    source_offset: int


@dataclass
class ChunkReport:
    rows: list[ParsedRow] = field(default_factory=list)
    tables_seen: int = 0
    tables_parsed: int = 0
    tables_unrecognized: int = 0
    row_failures: int = 0
    warnings: list[str] = field(default_factory=list)


class ScheduleParser:
    """Runs the table scanner and row classifier over one markup chunk."""

    def __init__(
        self,
        profile: Optional[IssuerProfile] = None,
        header_scan_rows: int = 10,
        min_company_chars: int = 5,
    ):
        self.profile = profile or GENERIC_PROFILE
        self.scanner = TableScanner(self.profile, header_scan_rows=header_scan_rows)
        self.classifier = RowClassifier(self.profile, min_company_chars=min_company_chars)

    def parse_chunk(self, markup: str, context: RowContext, base_offset: int = 0) -> ChunkReport:
        """
        Parse every SOI table in markup.

        Args:
            markup: Chunk markup (with table prefix, if any)
            context: Row context, mutated as rows are classified
            base_offset: Document offset that markup position 0 corresponds to

        Returns:
            ChunkReport with the holding rows in document order
        """
        report = ChunkReport()
        for table_offset, table_markup in self.scanner.iter_tables(markup):
            report.tables_seen += 1
            if not self.scanner.passes_prefilter(table_markup):
                continue

            table = self.scanner.scan_table(table_markup, offset=base_offset + table_offset)
            if table is None:
                report.tables_unrecognized += 1
                continue
            report.tables_parsed += 1

            for cells in table.rows:
                try:
                    result = self.classifier.classify(cells, table.columns, context)
                except (ValueError, TypeError, IndexError) as e:
                    report.row_failures += 1
                    logger.warning(f"Row parse failure in table at {table.offset}: {e}")
                    report.warnings.append(format_warning(
                        WarningKind.ROW_PARSE_FAILURE, f"table at {table.offset}: {e}"
                    ))
                    continue
                if result.kind == RowKind.HOLDING:
                    report.rows.append(ParsedRow(fields=result.fields, source_offset=table.offset))

        if report.tables_unrecognized:
            logger.debug(f"{report.tables_unrecognized} table(s) without a recognisable header")
        return report


def build_holding(
    row: ParsedRow,
    scale: ScaleDetectionResult,
    precision: int,
    row_number: int,
    period_date: Optional[str] = None,
) -> Optional[Holding]:
    """
    Normalize a parsed row to millions and wrap it in a Holding.

    Returns:
        Holding, or None when the row cannot form a valid holding
    """
    fields = dict(row.fields)
    reported_fair_value = fields.get("fair_value")
    reported_cost = fields.get("cost")
    for key in ("fair_value", "cost", "par_amount"):
        fields[key] = normalize_amount(fields.get(key), scale.multiplier, precision)

    try:
        return Holding(
            **fields,
            reported_fair_value=reported_fair_value,
            reported_cost=reported_cost,
            period_date=period_date,
            row_number=row_number,
            source_offset=row.source_offset,
        )
    except ValidationError as e:
        logger.debug(f"Dropped row for {fields.get('company_name')}: {e.errors()[0]['msg']}")
        return None
