"""
Locating the Schedule of Investments inside a filing.

The SOI is found by its heading, bounded by the notes section and by the
prior-period schedule (10-Ks print both years), and split into row-aligned
chunks when it is too large to handle in one piece.
"""

import bisect
import html
import logging
import re
from typing import Optional

from .models import Region, RegionChunk
from .numeric import has_entity_suffix, parse_date
from .table_scanner import ROW_START_RE, TABLE_OPEN_RE, TableScanner

logger = logging.getLogger(__name__)


# Words in headings may be separated by entities or inline tags
SEP = r"(?:\s|&nbsp;|&#160;|&#xa0;|<[^>]{0,300}>)+"

SOI_KEYWORD_RE = re.compile(
    SEP.join([r"schedules?", r"of", rf"(?:portfolio{SEP})?investments\b"]),
    re.IGNORECASE,
)
FALLBACK_KEYWORD_RE = re.compile(
    SEP.join([r"portfolio", rf"(?:of{SEP})?investments\b"]),
    re.IGNORECASE,
)
END_MARKER_RE = re.compile(
    SEP.join([r"notes", r"to", rf"(?:(?:the|consolidated|unaudited){SEP})*financial", r"statements"]),
    re.IGNORECASE,
)
FAIR_VALUE_RE = re.compile(SEP.join([r"fair", r"value"]), re.IGNORECASE)

# Phrases that reference the notes rather than start them
REFERENCE_PHRASE_RE = re.compile(r"(?:accompanying|part\s+of|see|refer\s+to|in\s+the)\s*$", re.IGNORECASE)

LONG_DATE_RE = re.compile(
    r"(?:january|february|march|april|may|june|july|august|september|october|november|december)"
    r"\s+\d{1,2},?\s+\d{4}",
    re.IGNORECASE,
)

TABLE_CLOSE_RE = re.compile(r"</table\b", re.IGNORECASE)
TABLE_START_RE = re.compile(r"<table\b", re.IGNORECASE)
_CELL_RE = re.compile(r"<t[dh]\b[^>]*>(.*?)</t[dh]\s*>", re.IGNORECASE | re.DOTALL)
_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


def plain_text(markup: str) -> str:
    text = html.unescape(_TAG_RE.sub(" ", markup))
    return _WHITESPACE_RE.sub(" ", text).strip()


def leading_cell_text(row_markup: str) -> str:
    """Text of the first cell of a row that holds more than a currency sign."""
    for match in _CELL_RE.finditer(row_markup):
        text = plain_text(match.group(1))
        if text and text != "$":
            return text
    return ""


# =============================================================================
# Splitting
# =============================================================================

class RegionSplitter:
    """
    Splits markup into overlapping chunks that start and end on row boundaries.

    A chunk start is pulled back to the nearest table start or "company anchor"
    row (leading cell carries an entity suffix) within anchor_lookback_chars,
    so continuation rows are parsed together with their company row. A chunk
    that starts inside a table is given that table's opening tag and header
    rows as a prefix. The plan depends only on the text, so recomputing it
    yields the same chunk starts.
    """

    def __init__(
        self,
        chunk_chars: int,
        overlap_chars: int,
        scanner: Optional[TableScanner] = None,
        anchor_lookback_chars: int = 20_000,
        head_scan_chars: int = 60_000,
    ):
        if chunk_chars <= 0:
            raise ValueError("chunk_chars must be positive")
        if not 0 <= overlap_chars < chunk_chars:
            raise ValueError("overlap_chars must be smaller than chunk_chars")
        self.chunk_chars = chunk_chars
        self.overlap_chars = overlap_chars
        self.scanner = scanner
        self.anchor_lookback_chars = anchor_lookback_chars
        self.head_scan_chars = head_scan_chars

    def split(self, text: str) -> list[RegionChunk]:
        size = len(text)
        if size <= self.chunk_chars:
            return [RegionChunk(0, size)]

        rows = [m.start() for m in ROW_START_RE.finditer(text)]
        opens = [m.start() for m in TABLE_START_RE.finditer(text)]
        closes = [m.start() for m in TABLE_CLOSE_RE.finditer(text)]
        boundaries = sorted(set(rows) | set(opens))
        table_starts = set(opens)

        step = self.chunk_chars - self.overlap_chars
        chunks: list[RegionChunk] = []
        nominal = 0
        previous_start = -1
        while nominal < size:
            if nominal == 0:
                start = 0
            else:
                start = self._snap_start(text, nominal, boundaries, table_starts)
            if start <= previous_start:
                start = self._next_boundary(boundaries, previous_start + 1, size)
            if start >= size:
                break

            if nominal + self.chunk_chars >= size:
                end = size
            else:
                end = self._next_boundary(boundaries, nominal + self.chunk_chars, size)
            if end <= start:
                end = self._next_boundary(boundaries, start + 1, size)

            prefix = self._table_prefix(text, start, opens, closes)
            chunks.append(RegionChunk(start=start, end=end, prefix=prefix))
            previous_start = start
            if end >= size:
                break
            nominal += step

        logger.debug(f"Split {size:,} chars into {len(chunks)} chunks")
        return chunks

    @staticmethod
    def _next_boundary(boundaries: list[int], position: int, size: int) -> int:
        index = bisect.bisect_left(boundaries, position)
        return boundaries[index] if index < len(boundaries) else size

    def _snap_start(self, text: str, position: int, boundaries: list[int], table_starts: set[int]) -> int:
        index = bisect.bisect_right(boundaries, position) - 1
        if index < 0:
            return position

        floor = position - self.anchor_lookback_chars
        candidate = index
        while candidate >= 0 and boundaries[candidate] >= floor:
            boundary = boundaries[candidate]
            if boundary in table_starts:
                return boundary
            row_end = boundaries[candidate + 1] if candidate + 1 < len(boundaries) else len(text)
            if has_entity_suffix(leading_cell_text(text[boundary:row_end])):
                return boundary
            candidate -= 1
        return boundaries[index]

    def _table_prefix(self, text: str, start: int, opens: list[int], closes: list[int]) -> str:
        open_index = bisect.bisect_left(opens, start) - 1
        if open_index < 0:
            return ""
        table_open = opens[open_index]
        close_index = bisect.bisect_left(closes, start) - 1
        if close_index >= 0 and closes[close_index] > table_open:
            return ""

        head = text[table_open:min(start, table_open + self.head_scan_chars)]
        if self.scanner is not None:
            return self.scanner.header_prefix(head)
        opening = TABLE_OPEN_RE.match(head)
        return opening.group(0) if opening else ""


# =============================================================================
# Locating
# =============================================================================

class RegionLocator:
    """Finds the current-period Schedule of Investments window of a document."""

    def __init__(
        self,
        lead_chars: int = 10_000,
        trail_chars: int = 300_000,
        fallback_chars: int = 300_000,
        max_window_chars: int = 1_500_000,
        chunk_overlap_chars: int = 20_000,
        period_lookahead_chars: int = 2_000,
        table_lookahead_chars: int = 10_000,
        scanner: Optional[TableScanner] = None,
    ):
        self.lead_chars = lead_chars
        self.trail_chars = trail_chars
        self.fallback_chars = fallback_chars
        self.max_window_chars = max_window_chars
        self.period_lookahead_chars = period_lookahead_chars
        self.table_lookahead_chars = table_lookahead_chars
        self.splitter = RegionSplitter(
            chunk_chars=max_window_chars,
            overlap_chars=chunk_overlap_chars,
            scanner=scanner,
        )

    def locate(self, document: str) -> Region:
        """
        Locate the SOI window.

        Returns:
            Region; keyword_found is False when the fallback prefix was used
        """
        matches = list(SOI_KEYWORD_RE.finditer(document))
        if not matches:
            matches = list(FALLBACK_KEYWORD_RE.finditer(document))
        if not matches:
            logger.warning(f"No Schedule of Investments heading; using first {self.fallback_chars:,} chars")
            return self._build(document, 0, min(len(document), self.fallback_chars), found=False)

        dates = [self._period_near(document, m.end()) for m in matches]
        first_index = self._heading_index(document, matches, dates)
        first = matches[first_index]
        period = dates[first_index]

        last_current = first
        boundary: Optional[int] = None
        for match, match_date in zip(matches[first_index + 1:], dates[first_index + 1:]):
            marker = self._find_end_marker(document, first.start(), last_current.end(), match.start())
            if marker is not None:
                boundary = marker
                break
            # A period change before any schedule content is a contents entry
            if (period and match_date and match_date != period
                    and self._has_schedule_content(document, first.end(), match.start())):
                logger.debug(f"Prior-period schedule ({match_date}) at {match.start():,}")
                boundary = match.start()
                break
            last_current = match

        start = self._window_start(document, first.start())
        end = min(len(document), last_current.end() + self.trail_chars)
        if boundary is None:
            boundary = self._find_end_marker(document, first.start(), last_current.end(), end)
        if boundary is not None:
            end = min(end, boundary)

        logger.info(f"SOI region {start:,}-{end:,} ({end - start:,} chars), period {period}")
        return self._build(document, start, end, found=True, period_date=period)

    def _build(
        self,
        document: str,
        start: int,
        end: int,
        found: bool,
        period_date: Optional[str] = None,
    ) -> Region:
        text = document[start:end]
        return Region(
            text=text,
            doc_start=start,
            doc_end=end,
            keyword_found=found,
            period_date=period_date,
            chunks=self.splitter.split(text),
        )

    def _window_start(self, document: str, heading: int) -> int:
        start = max(0, heading - self.lead_chars)
        # Headings printed inside the table's first rows: keep the whole table
        lookback_start = max(0, heading - self.trail_chars)
        opens = [m.start() for m in TABLE_START_RE.finditer(document, lookback_start, heading)]
        if not opens:
            return start
        if TABLE_CLOSE_RE.search(document, opens[-1], heading):
            return start
        return min(start, opens[-1])

    def _heading_index(self, document: str, matches: list[re.Match], dates: list[Optional[str]]) -> int:
        """
        Index of the mention taken as the schedule heading.

        The schedule proper is the first dated mention followed closely by a
        fair value column; dated table-of-contents lines are not. Falls back
        to the first dated mention, then to the first mention.
        """
        dated = [i for i, d in enumerate(dates) if d]
        for index in dated:
            position = matches[index].end()
            if FAIR_VALUE_RE.search(document, position, position + self.table_lookahead_chars):
                return index
        if dated:
            logger.debug("No dated heading is followed by a fair value column; using the first dated one")
            return dated[0]
        return 0

    @staticmethod
    def _has_schedule_content(document: str, start: int, end: int) -> bool:
        return bool(FAIR_VALUE_RE.search(document, start, end) or TABLE_START_RE.search(document, start, end))

    def _period_near(self, document: str, position: int) -> Optional[str]:
        snippet = plain_text(document[position:position + self.period_lookahead_chars])
        match = LONG_DATE_RE.search(snippet)
        return parse_date(match.group(0)) if match else None

    def _find_end_marker(self, document: str, section_start: int, search_from: int, search_to: int) -> Optional[int]:
        """
        First heading-like "Notes to ... Financial Statements" in the range.

        A marker only counts once a fair value has been printed after the SOI
        heading, which rules out table-of-contents entries.
        """
        for match in END_MARKER_RE.finditer(document, search_from, search_to):
            before = plain_text(document[max(0, match.start() - 400):match.start()])
            if REFERENCE_PHRASE_RE.search(before[-40:]):
                continue
            if not FAIR_VALUE_RE.search(document, section_start, match.start()):
                continue
            return match.start()
        return None
