"""
Shared fixtures: synthetic filing documents and stores.

Documents are built from small HTML helpers so each test states only the
rows it cares about.
"""

import pytest

from bdc_pipeline.config import PipelineConfig
from bdc_pipeline.parse.models import ColumnMap
from bdc_pipeline.parse.schedule_parser import ScheduleParser
from bdc_pipeline.store.base import InMemoryHoldingsStore


HEADER_ROW = (
    "<tr>"
    "<th>Company (1)</th>"
    "<th>Investment Type</th>"
    "<th>Interest Rate</th>"
    "<th>Maturity Date</th>"
    "<th>Principal</th>"
    "<th>Amortized Cost</th>"
    "<th>Fair Value</th>"
    "</tr>\n"
)

# Column positions produced by HEADER_ROW
STANDARD_COLUMNS = ColumnMap(
    company=0,
    investment_type=1,
    interest_rate=2,
    maturity=3,
    par=4,
    cost=5,
    fair_value=6,
)


def holding_row(
    company: str = "",
    investment_type: str = "",
    rate: str = "",
    maturity: str = "",
    par: str = "",
    cost: str = "",
    fair_value: str = "",
) -> str:
    cells = [company, investment_type, rate, maturity, par, cost, fair_value]
    return "<tr>" + "".join(f"<td>{c}</td>" for c in cells) + "</tr>\n"


def section_row(text: str) -> str:
    return f'<tr><td colspan="7">{text}</td></tr>\n'


def soi_table(rows: list[str]) -> str:
    return '<table class="soi">\n' + HEADER_ROW + "".join(rows) + "</table>\n"


def filing_document(
    tables: str,
    heading: str = "Consolidated Schedule of Investments",
    period: str = "December 31, 2024",
    scale_phrase: str = "(in thousands, except share data)",
    before: str = "",
    after: str = "",
) -> str:
    """A filing with one SOI heading, the given tables and a notes section."""
    return (
        "<html><body>\n"
        "<p>ACME CAPITAL CORPORATION</p>\n"
        f"{before}"
        f"<p><b>{heading}</b></p>\n"
        f"<p>As of {period}</p>\n"
        f"<p>{scale_phrase}</p>\n"
        f"{tables}"
        "<p>See accompanying notes to consolidated financial statements.</p>\n"
        f"{after}"
        "<p><b>Notes to Consolidated Financial Statements</b></p>\n"
        "<p>1. Organization. The Company measures its investments at fair value.</p>\n"
        + soi_table([holding_row("Notes Section Widget Inc.", "First Lien", "", "", "", "1", "777")])
        + "</body></html>\n"
    )


def basic_rows() -> list[str]:
    return [
        section_row("Software"),
        holding_row("Acme Software Inc. (2)", "First Lien Term Loan", "SOFR + 5.25%", "03/2028",
                    "10,000", "9,850", "12,345"),
        holding_row("", "Revolver", "SOFR + 5.25%", "03/2028", "1,000", "990", "1,000"),
        holding_row("", "", "", "", "", "10,840", "13,345"),
        section_row("Health Care Providers &amp; Services"),
        holding_row("Beta Health Holdings, LLC", "Second Lien Term Loan", "L + 7.50%", "06/15/2029",
                    "5,000", "4,900", "4,750"),
        holding_row("Gamma Clinics LP", "Common Equity", "", "", "", "2,000", "(1,250)"),
        holding_row("Total Health Care Providers &amp; Services", "", "", "", "", "6,900", "3,500"),
    ]


@pytest.fixture
def basic_document() -> str:
    return filing_document(soi_table(basic_rows()))


def large_document(companies: int = 80, continuation_every: int = 3) -> tuple[str, dict[str, str]]:
    """
    A single long SOI table with two industry sections.

    Returns:
        (document, expected industry per company name)
    """
    rows = []
    expected = {}
    half = companies // 2
    for index in range(companies):
        if index == 0:
            rows.append(section_row("Software"))
        elif index == half:
            rows.append(section_row("Health Care Providers &amp; Services"))
        industry = "Software" if index < half else "Health Care Providers & Services"
        name = f"Company {index:03d} Holdings LLC"
        expected[name] = industry
        rows.append(holding_row(
            name, "First Lien Term Loan", "SOFR + 6.00%", "12/2029",
            f"{1000 + index:,}", f"{990 + index:,}", f"{2000 + index * 10:,}",
        ))
        if index % continuation_every == 0:
            rows.append(holding_row(
                "", "Revolver", "SOFR + 6.00%", "12/2029", "100", "99", f"{100 + index}",
            ))
    return filing_document(soi_table(rows)), expected


class FakeClock:
    """Monotonic clock that advances by `step` seconds on every reading."""

    def __init__(self, step: float = 1.0):
        self.step = step
        self.now = 0.0

    def __call__(self) -> float:
        self.now += self.step
        return self.now


@pytest.fixture
def store() -> InMemoryHoldingsStore:
    return InMemoryHoldingsStore()


@pytest.fixture
def segmented_config() -> PipelineConfig:
    """Small thresholds so test documents take the segmented path."""
    return PipelineConfig.model_validate({
        "segments": {
            "threshold_chars": 2_000,
            "segment_chars": 3_000,
            "overlap_chars": 600,
            "anchor_lookback_chars": 2_000,
            "budget_seconds": None,
        },
    })


class FailingParser(ScheduleParser):
    """Schedule parser that raises on its `fail_on`-th chunk and parses the others."""

    def __init__(self, profile=None, fail_on: int = 2, **kwargs):
        super().__init__(profile, **kwargs)
        self.fail_on = fail_on
        self.calls = 0

    def parse_chunk(self, markup, context, base_offset=0):
        self.calls += 1
        if self.calls == self.fail_on:
            raise ValueError("malformed row markup")
        return super().parse_chunk(markup, context, base_offset=base_offset)
