"""
Schedule of Investments extraction engine.

Orchestrates one extraction invocation for a filing:
1. Locate the SOI region
2. Detect the reporting scale
3. Parse directly, or through the segmented driver for large regions
4. Validate the scale against the normalized holdings
5. Hand holdings to the store and mark the filing parsed when complete

Parse anomalies are reported as warnings; only store failures end an
invocation with an ERROR result.
"""

import logging
import time
from typing import Callable, Optional, Union

from ..config import PipelineConfig
from ..store.base import HoldingsStore, StoreFailure
from ..store.source import DocumentFetchError, DocumentSource
from .dedup import DedupGate
from .models import (
    ExtractionResult,
    Holding,
    Region,
    RowContext,
    RunStatus,
    ScaleConfidence,
    ScaleDetectionResult,
    WarningKind,
    format_warning,
)
from .region_locator import RegionLocator
from .scale import ScaleDetector
from .schedule_parser import ScheduleParser, build_holding
from .segmented import SegmentedDriver
from .vocabulary import GENERIC_PROFILE, IssuerProfile, select_profile

logger = logging.getLogger(__name__)


IssuerSpec = Union[str, IssuerProfile, None]


class ExtractionEngine:
    """
    Runs SOI extraction invocations against a HoldingsStore.

    One engine can serve many filings; per-issuer state (vocabulary,
    taxonomy) is chosen on each call.
    """

    def __init__(
        self,
        store: HoldingsStore,
        config: Optional[PipelineConfig] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize engine.

        Args:
            store: Holdings store receiving holdings and checkpoints
            config: Pipeline configuration (defaults if None)
            clock: Monotonic clock used for the compute budget
        """
        self.store = store
        self.config = config or PipelineConfig()
        self.clock = clock
        self.scale_detector = ScaleDetector(
            scan_chars=self.config.scale.scan_chars,
            max_mean_fair_value=self.config.scale.max_mean_fair_value,
            min_mean_fair_value=self.config.scale.min_mean_fair_value,
        )

    # =========================================================================
    # Components
    # =========================================================================

    @staticmethod
    def resolve_profile(issuer: IssuerSpec) -> IssuerProfile:
        """Issuer profile from a profile, a ticker or a filer name."""
        if isinstance(issuer, IssuerProfile):
            return issuer
        if not issuer:
            return GENERIC_PROFILE
        return select_profile(ticker=issuer, name=issuer)

    def build_parser(self, profile: IssuerProfile) -> ScheduleParser:
        return ScheduleParser(
            profile,
            header_scan_rows=self.config.tables.header_scan_rows,
            min_company_chars=self.config.tables.min_company_chars,
        )

    def build_locator(self, parser: ScheduleParser) -> RegionLocator:
        region = self.config.region
        return RegionLocator(
            lead_chars=region.lead_chars,
            trail_chars=region.trail_chars,
            fallback_chars=region.fallback_chars,
            max_window_chars=region.max_window_chars,
            chunk_overlap_chars=region.chunk_overlap_chars,
            period_lookahead_chars=region.period_lookahead_chars,
            table_lookahead_chars=region.table_lookahead_chars,
            scanner=parser.scanner,
        )

    def build_driver(self, parser: ScheduleParser) -> SegmentedDriver:
        segments = self.config.segments
        return SegmentedDriver(
            self.store,
            parser,
            segment_chars=segments.segment_chars,
            overlap_chars=segments.overlap_chars,
            anchor_lookback_chars=segments.anchor_lookback_chars,
            budget_seconds=segments.budget_seconds,
            batch_size=self.config.store.batch_size,
            precision=self.config.scale.precision,
            strict_dedup=self.config.dedup.strict_key,
            clock=self.clock,
        )

    def detect_scale(self, region: Region, document: str) -> ScaleDetectionResult:
        """Scale stated in the region, else in the document header."""
        scale = self.scale_detector.detect(region.text)
        if scale.confidence == ScaleConfidence.LOW and region.doc_start > 0:
            scale = self.scale_detector.detect(document)
        return scale

    # =========================================================================
    # Invocations
    # =========================================================================

    def run(
        self,
        filing_id: str,
        document: str,
        resume_offset: Optional[int] = None,
        issuer: IssuerSpec = None,
    ) -> ExtractionResult:
        """
        Run one extraction invocation.

        Args:
            filing_id: Store key of the filing
            document: Full document text (HTML)
            resume_offset: Region offset to resume at (defaults to the checkpoint)
            issuer: Ticker, filer name or IssuerProfile

        Returns:
            ExtractionResult with status COMPLETE, PARTIAL or ERROR
        """
        started = self.clock()
        warnings: list[str] = []
        profile = self.resolve_profile(issuer)
        parser = self.build_parser(profile)

        region = self.build_locator(parser).locate(document)
        if not region.keyword_found:
            warnings.append(format_warning(
                WarningKind.NO_REGION_FOUND,
                f"no Schedule of Investments heading; parsed the first {region.size:,} chars",
            ))

        scale = self.detect_scale(region, document)
        if scale.confidence == ScaleConfidence.LOW:
            warnings.append(format_warning(
                WarningKind.SCALE_AMBIGUOUS, f"no scale statement found; assuming {scale.category.value}"
            ))
        logger.info(
            f"Filing {filing_id}: profile {profile.name}, region {region.size:,} chars, "
            f"scale {scale.category.value} ({scale.confidence.value})"
        )

        next_offset: Optional[int] = None
        total: Optional[int] = None
        try:
            if region.size > self.config.segments.threshold_chars:
                outcome = self.build_driver(parser).run(filing_id, region, scale, resume_offset=resume_offset)
                status = outcome.status
                inserted = outcome.inserted
                holdings = outcome.holdings
                next_offset = outcome.next_offset
                percent = outcome.percent_complete
                warnings.extend(outcome.warnings)
            else:
                if resume_offset:
                    logger.debug(f"Ignoring resume offset {resume_offset} for a direct parse")
                holdings = self._parse_direct(filing_id, region, parser, scale, warnings)
                inserted = len(holdings)
                status = RunStatus.COMPLETE
                percent = 100.0

            if holdings:
                validation = self.scale_detector.validate(holdings, scale)
                if not validation.valid:
                    warnings.append(format_warning(WarningKind.SCALE_SUSPECT, validation.warning or ""))

            if status == RunStatus.COMPLETE:
                total = self.store.count_holdings(filing_id)
                if total:
                    self.store.mark_filing_parsed(filing_id, scale.category)
                else:
                    warnings.append(format_warning(WarningKind.NO_HOLDINGS, "No holdings found in filing"))
        except StoreFailure as e:
            logger.error(f"Store failure for {filing_id}: {e}")
            return ExtractionResult(
                status=RunStatus.ERROR,
                scale=scale.category,
                scale_confidence=scale.confidence,
                warnings=warnings,
                error=str(e),
                period_date=region.period_date,
            )

        elapsed = self.clock() - started
        logger.info(
            f"Filing {filing_id}: {status.value}, {inserted} inserted, "
            f"{percent:.1f}% complete in {elapsed:.1f}s"
        )
        return ExtractionResult(
            status=status,
            holdings_inserted=inserted,
            total_holdings=total,
            scale=scale.category,
            scale_confidence=scale.confidence,
            percent_complete=percent,
            next_offset=next_offset,
            warnings=warnings,
            period_date=region.period_date,
        )

    def _parse_direct(
        self,
        filing_id: str,
        region: Region,
        parser: ScheduleParser,
        scale: ScaleDetectionResult,
        warnings: list[str],
    ) -> list[Holding]:
        """Parse the whole region in one pass and replace the filing's holdings."""
        self.store.delete_holdings(filing_id)
        self.store.clear_filing_checkpoint(filing_id)

        dedup = DedupGate(strict_key=self.config.dedup.strict_key)
        context = RowContext()
        holdings: list[Holding] = []
        tables_unrecognized = 0

        for chunk in region.chunks:
            chunk_context = context.for_next_segment()
            base_offset = region.doc_start + chunk.start - len(chunk.prefix)
            try:
                report = parser.parse_chunk(chunk.html(region.text), chunk_context, base_offset=base_offset)
            except Exception as e:
                logger.warning(f"Chunk at {chunk.start:,} of {filing_id} failed: {e}")
                warnings.append(format_warning(WarningKind.ROW_PARSE_FAILURE, f"chunk at {chunk.start}: {e}"))
                continue
            context = chunk_context
            warnings.extend(report.warnings)
            tables_unrecognized += report.tables_unrecognized
            for row in report.rows:
                holding = build_holding(
                    row, scale, self.config.scale.precision, len(holdings) + 1, region.period_date
                )
                if holding is not None and dedup.admit(holding):
                    holdings.append(holding)

        if not holdings and tables_unrecognized:
            warnings.append(format_warning(
                WarningKind.TABLE_STRUCTURE_UNRECOGNIZED,
                f"{tables_unrecognized} candidate table(s) without a recognisable header",
            ))

        batch_size = self.config.store.batch_size
        for i in range(0, len(holdings), batch_size):
            self.store.insert_holdings(filing_id, holdings[i:i + batch_size])
        return holdings

    def extract_from_url(
        self,
        filing_id: str,
        url: str,
        source: DocumentSource,
        resume_offset: Optional[int] = None,
        issuer: IssuerSpec = None,
    ) -> ExtractionResult:
        """Fetch a document through a DocumentSource and run one invocation."""
        try:
            document = source.fetch_document(url)
        except (DocumentFetchError, FileNotFoundError) as e:
            logger.error(f"Could not fetch {url} for {filing_id}: {e}")
            return ExtractionResult(status=RunStatus.ERROR, error=str(e))
        return self.run(filing_id, document, resume_offset=resume_offset, issuer=issuer)

    def relay(
        self,
        filing_id: str,
        document: str,
        issuer: IssuerSpec = None,
        max_invocations: Optional[int] = None,
    ) -> ExtractionResult:
        """
        Re-invoke run() until the filing is COMPLETE or an ERROR occurs.

        Returns:
            The last result, with holdings_inserted summed over invocations
        """
        max_invocations = max_invocations or self.config.max_relay_invocations
        inserted = 0
        warnings: list[str] = []
        result: Optional[ExtractionResult] = None

        for invocation in range(1, max_invocations + 1):
            resume_offset = result.next_offset if result is not None else None
            result = self.run(filing_id, document, resume_offset=resume_offset, issuer=issuer)
            inserted += result.holdings_inserted
            warnings.extend(w for w in result.warnings if w not in warnings)
            if result.status != RunStatus.PARTIAL:
                logger.info(f"Relay for {filing_id} finished after {invocation} invocation(s)")
                break
        else:
            logger.warning(f"Relay for {filing_id} stopped after {max_invocations} invocations")

        return result.model_copy(update={"holdings_inserted": inserted, "warnings": warnings})

    def reset(self, filing_id: str) -> None:
        """Delete holdings, clear the checkpoint and the parsed flag."""
        self.store.reset_filing(filing_id)
