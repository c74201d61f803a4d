"""
Table scanning for Schedule of Investments regions.

Tables are located with a regex over the raw markup and handed to
BeautifulSoup one fragment at a time, so memory stays proportional to the
largest single table rather than the document.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Iterator, Optional

from bs4 import BeautifulSoup

from .models import ColumnMap
from .numeric import ENTITY_SUFFIX_RE, parse_numeric
from .vocabulary import GENERIC_PROFILE, IssuerProfile

logger = logging.getLogger(__name__)


# An unterminated table at the end of a segment is still yielded
TABLE_RE = re.compile(r"<table\b.*?(?:</table\s*>|\Z)", re.IGNORECASE | re.DOTALL)
TABLE_OPEN_RE = re.compile(r"<table\b[^>]*>", re.IGNORECASE)
ROW_START_RE = re.compile(r"<tr\b", re.IGNORECASE)
MONEY_SIGNAL_RE = re.compile(r"\$|fair\s*value", re.IGNORECASE)

_HEADER_FOOTNOTE_RE = re.compile(r"\(\s*\d{1,3}\s*\)")
_WHITESPACE_RE = re.compile(r"\s+")

MAX_HEADER_CELL_CHARS = 80
MAX_COLSPAN = 50


@dataclass
class Cell:
    text: str
    colspan: int = 1


@dataclass
class ScannedTable:
    """A table with a recognised header, ready for row classification."""
    offset: int                                 # Start of the table in the scanned markup
    columns: ColumnMap
    rows: list[list[str]] = field(default_factory=list)   # Flattened data rows after the header


def cell_text(text: str) -> str:
    """Collapse whitespace, including non-breaking spaces."""
    return _WHITESPACE_RE.sub(" ", text).strip()


def clean_header_text(text: str) -> str:
    """Drop footnote markers like (1) and collapse whitespace."""
    text = _HEADER_FOOTNOTE_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def flatten_row(cells: list[Cell]) -> list[str]:
    """Expand colspans so each logical column holds one string."""
    flat: list[str] = []
    for cell in cells:
        flat.append(cell.text)
        flat.extend([""] * (cell.colspan - 1))
    return flat


class TableScanner:
    """Finds SOI tables in a markup slice and maps their columns."""

    def __init__(self, profile: Optional[IssuerProfile] = None, header_scan_rows: int = 10):
        self.profile = profile or GENERIC_PROFILE
        self.vocabulary = self.profile.vocabulary
        self.header_scan_rows = header_scan_rows

    # =========================================================================
    # Locating tables
    # =========================================================================

    def iter_tables(self, markup: str) -> Iterator[tuple[int, str]]:
        """Yield (offset, table_markup) for every table in markup."""
        for match in TABLE_RE.finditer(markup):
            yield match.start(), match.group(0)

    def passes_prefilter(self, table_markup: str) -> bool:
        """Cheap check that a table could hold holdings at all."""
        return bool(ENTITY_SUFFIX_RE.search(table_markup) or MONEY_SIGNAL_RE.search(table_markup))

    def read_rows(self, table_markup: str) -> list[list[Cell]]:
        """Parse one table fragment into rows of cells."""
        soup = BeautifulSoup(table_markup, "lxml")
        rows = []
        for tr in soup.find_all("tr"):
            cells = []
            for td in tr.find_all(["td", "th"], recursive=False):
                cells.append(Cell(
                    text=cell_text(td.get_text(" ", strip=True)),
                    colspan=self._colspan(td.get("colspan")),
                ))
            rows.append(cells)
        return rows

    @staticmethod
    def _colspan(value) -> int:
        try:
            span = int(str(value).strip()) if value is not None else 1
        except ValueError:
            return 1
        return max(1, min(span, MAX_COLSPAN))

    # =========================================================================
    # Header detection
    # =========================================================================

    def _header_cell_texts(self, row: list[Cell]) -> list[str]:
        texts = []
        for cell in row:
            text = clean_header_text(cell.text)
            # Header labels are short words, never amounts
            if not text or len(text) > MAX_HEADER_CELL_CHARS or parse_numeric(text) is not None:
                texts.append("")
            else:
                texts.append(text)
        return texts

    def is_header_row(self, row: list[Cell]) -> bool:
        """
        A header row names a fair-value column and, in a different cell, a
        company column (or, failing that, a cost column).
        """
        texts = self._header_cell_texts(row)
        fair = {i for i, t in enumerate(texts) if t and self.vocabulary.is_fair_value_header(t)}
        if not fair:
            return False
        if any(t and i not in fair and self.vocabulary.is_company_header(t) for i, t in enumerate(texts)):
            return True
        return any(t and i not in fair and self.vocabulary.is_cost_header(t) for i, t in enumerate(texts))

    def find_header(self, rows: list[list[Cell]]) -> Optional[int]:
        for index, row in enumerate(rows[:self.header_scan_rows]):
            if self.is_header_row(row):
                return index
        return None

    def build_column_map(self, header: list[Cell], header_index: int = -1) -> ColumnMap:
        """Assign each header cell to at most one field, advancing by colspan."""
        positions: dict[str, int] = {}
        spans: dict[str, int] = {}
        position = 0
        for cell in header:
            text = clean_header_text(cell.text)
            if text:
                name = self.vocabulary.match(text, taken=set(positions))
                if name:
                    positions[name] = position
                    spans[name] = cell.colspan
            position += cell.colspan
        return ColumnMap(**positions, spans=spans, header_row_index=header_index)

    # =========================================================================
    # Scanning
    # =========================================================================

    def scan_table(self, table_markup: str, offset: int = 0) -> Optional[ScannedTable]:
        """
        Parse a single table and map its columns.

        Returns:
            ScannedTable, or None when no header row is found
        """
        rows = self.read_rows(table_markup)
        header_index = self.find_header(rows)
        if header_index is None:
            return None

        columns = self.build_column_map(rows[header_index], header_index)
        logger.debug(f"Table at {offset}: header row {header_index}, fields {columns.mapped_fields()}")
        data_rows = [flatten_row(row) for row in rows[header_index + 1:] if row]
        return ScannedTable(offset=offset, columns=columns, rows=data_rows)

    def header_prefix(self, table_head: str) -> str:
        """
        Opening tag plus every row up to and including the header row.

        table_head starts at a '<table' tag and may be cut anywhere after it.
        When no header is found only the opening tag is returned.
        """
        opening = TABLE_OPEN_RE.match(table_head)
        if not opening:
            return ""

        row_starts = [m.start() for m in ROW_START_RE.finditer(table_head)]
        if not row_starts:
            return opening.group(0)

        # Rows are sliced raw so the prefix reproduces the original markup
        limit = min(len(row_starts), self.header_scan_rows)
        for index in range(limit):
            row_end = row_starts[index + 1] if index + 1 < len(row_starts) else len(table_head)
            row_markup = table_head[row_starts[index]:row_end]
            cells = self.read_rows(f"<table>{row_markup}</table>")
            if cells and self.is_header_row(cells[0]):
                return table_head[:row_end]
        return opening.group(0)
