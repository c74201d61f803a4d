"""
Budgeted, resumable parsing of large SOI regions.

The region is cut into overlapping row-aligned segments. After each segment
the elapsed time is checked; once the budget is spent the pending holdings
are flushed, a checkpoint (next segment start, carried industry, region
size) is written and the invocation returns PARTIAL. The next invocation
recomputes the same segment plan, reloads the dedup state from the store and
continues at the checkpoint.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from ..store.base import HoldingsStore
from .dedup import DedupGate
from .models import (
    Holding,
    Region,
    RegionChunk,
    RowContext,
    RunStatus,
    ScaleDetectionResult,
    WarningKind,
    format_warning,
)
from .region_locator import RegionSplitter
from .schedule_parser import ScheduleParser, build_holding
from .table_scanner import ROW_START_RE

logger = logging.getLogger(__name__)


@dataclass
class SegmentRunOutcome:
    status: RunStatus
    inserted: int = 0
    next_offset: Optional[int] = None
    percent_complete: float = 0.0
    segments_processed: int = 0
    holdings: list[Holding] = field(default_factory=list)     # Inserted by this invocation
    warnings: list[str] = field(default_factory=list)


class SegmentedDriver:
    """Drives ScheduleParser over region segments under a compute budget."""

    def __init__(
        self,
        store: HoldingsStore,
        parser: Optional[ScheduleParser] = None,
        segment_chars: int = 150_000,
        overlap_chars: int = 10_000,
        anchor_lookback_chars: int = 20_000,
        budget_seconds: Optional[float] = 20.0,
        batch_size: int = 200,
        precision: int = 1,
        strict_dedup: bool = False,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Args:
            store: Holdings store (checkpoint owner)
            parser: Chunk parser; defaults to the generic profile
            segment_chars: Nominal segment size
            overlap_chars: Overlap between consecutive segments
            anchor_lookback_chars: How far a segment start may move back to a company row
            budget_seconds: Compute budget per invocation; None runs to completion
            batch_size: Holdings per store insert
            precision: Decimal places of normalized amounts
            strict_dedup: Add the reported cost to the dedup key
            clock: Monotonic clock, injectable for tests
        """
        self.store = store
        self.parser = parser or ScheduleParser()
        self.splitter = RegionSplitter(
            chunk_chars=segment_chars,
            overlap_chars=overlap_chars,
            scanner=self.parser.scanner,
            anchor_lookback_chars=anchor_lookback_chars,
        )
        self.budget_seconds = budget_seconds
        self.batch_size = batch_size
        self.precision = precision
        self.strict_dedup = strict_dedup
        self.clock = clock

    def plan(self, region: Region) -> list[RegionChunk]:
        """Deterministic segment plan for a region."""
        return self.splitter.split(region.text)

    def _flush(self, filing_id: str, pending: list[Holding]) -> int:
        inserted = 0
        for i in range(0, len(pending), self.batch_size):
            inserted += self.store.insert_holdings(filing_id, pending[i:i + self.batch_size])
        return inserted

    def run(
        self,
        filing_id: str,
        region: Region,
        scale: ScaleDetectionResult,
        resume_offset: Optional[int] = None,
    ) -> SegmentRunOutcome:
        """
        Process segments from the checkpoint (or resume_offset) onwards.

        Raises:
            StoreFailure: propagated from the store
        """
        started = self.clock()
        warnings: list[str] = []
        segments = self.plan(region)

        checkpoint = self.store.get_filing_checkpoint(filing_id)
        if checkpoint is not None and checkpoint.total_region_size != region.size:
            message = (
                f"checkpoint taken on a {checkpoint.total_region_size:,}-char region, "
                f"current region is {region.size:,} chars; restarting"
            )
            logger.warning(f"Filing {filing_id}: {message}")
            warnings.append(format_warning(WarningKind.STALE_CHECKPOINT, message))
            checkpoint = None
            resume_offset = None

        start_offset = 0
        industry: Optional[str] = None
        if resume_offset is not None:
            start_offset = resume_offset
            if checkpoint is not None and checkpoint.byte_offset == resume_offset:
                industry = checkpoint.industry_context
        elif checkpoint is not None:
            start_offset = checkpoint.byte_offset
            industry = checkpoint.industry_context

        dedup = DedupGate(strict_key=self.strict_dedup)
        if start_offset > 0:
            existing = self.store.get_holdings(filing_id)
            dedup.seed(existing)
            next_row = max((h.row_number for h in existing), default=0) + 1
            logger.info(
                f"Resuming {filing_id} at {start_offset:,}/{region.size:,} "
                f"with {len(existing)} stored holdings"
            )
        else:
            removed = self.store.delete_holdings(filing_id)
            if removed:
                logger.info(f"Removed {removed} existing holdings for {filing_id}")
            next_row = 1

        first_index = next((i for i, s in enumerate(segments) if s.start >= start_offset), len(segments))
        context = RowContext(current_industry=industry)
        pending: list[Holding] = []
        processed = 0

        for index in range(first_index, len(segments)):
            segment = segments[index]
            markup = segment.html(region.text)
            processed += 1

            if ROW_START_RE.search(markup):
                segment_context = context.for_next_segment()
                base_offset = region.doc_start + segment.start - len(segment.prefix)
                try:
                    report = self.parser.parse_chunk(markup, segment_context, base_offset=base_offset)
                except Exception as e:
                    logger.warning(f"Segment {index} at {segment.start:,} failed: {e}")
                    warnings.append(format_warning(
                        WarningKind.ROW_PARSE_FAILURE, f"segment at {segment.start}: {e}"
                    ))
                else:
                    context = segment_context
                    warnings.extend(report.warnings)
                    for row in report.rows:
                        holding = build_holding(row, scale, self.precision, next_row, region.period_date)
                        if holding is None or not dedup.admit(holding):
                            continue
                        pending.append(holding)
                        next_row += 1

            has_more = index + 1 < len(segments)
            if has_more and self.budget_seconds is not None and self.clock() - started >= self.budget_seconds:
                next_offset = segments[index + 1].start
                inserted = self._flush(filing_id, pending)
                self.store.update_filing_checkpoint(filing_id, next_offset, context.current_industry, region.size)
                percent = round(next_offset / region.size * 100, 1) if region.size else 0.0
                logger.info(
                    f"Budget exhausted for {filing_id} after {processed} segment(s): "
                    f"{inserted} inserted, {percent}% complete"
                )
                return SegmentRunOutcome(
                    status=RunStatus.PARTIAL,
                    inserted=inserted,
                    next_offset=next_offset,
                    percent_complete=percent,
                    segments_processed=processed,
                    holdings=pending,
                    warnings=warnings,
                )

        inserted = self._flush(filing_id, pending)
        self.store.clear_filing_checkpoint(filing_id)
        logger.info(f"Segmented parse of {filing_id} complete: {processed} segment(s), {inserted} inserted")
        return SegmentRunOutcome(
            status=RunStatus.COMPLETE,
            inserted=inserted,
            percent_complete=100.0,
            segments_processed=processed,
            holdings=pending,
            warnings=warnings,
        )
