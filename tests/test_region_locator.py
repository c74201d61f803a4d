"""
Tests for SOI region location and row-aligned splitting.
"""

import pytest

from bdc_pipeline.parse.region_locator import RegionLocator, RegionSplitter
from bdc_pipeline.parse.table_scanner import ROW_START_RE, TableScanner

from .conftest import (
    basic_rows,
    filing_document,
    holding_row,
    large_document,
    soi_table,
)


def dated_contents() -> str:
    """Contents page listing both periods' schedules, far ahead of the statements."""
    return (
        "<p>Consolidated Schedule of Investments as of December 31, 2024 ..... F-5</p>\n"
        "<p>Consolidated Schedule of Investments as of December 31, 2023 ..... F-20</p>\n"
        "<p>Notes to Consolidated Financial Statements ..... F-40</p>\n"
        + "<p>Management's discussion of results.</p>\n" * 400
    )


def _inside_table(text, chunks):
    """Chunks after the first that start inside the main SOI table."""
    table_end = text.index("</table>")
    return [chunk for chunk in chunks[1:] if chunk.start < table_end]


class TestRegionLocator:
    """Tests for RegionLocator.locate."""

    def test_finds_heading_and_period(self, basic_document):
        """Test the heading is found and the as-of date parsed."""
        region = RegionLocator().locate(basic_document)
        assert region.keyword_found
        assert region.period_date == "2024-12-31"
        assert "Acme Software Inc." in region.text

    def test_stops_at_notes(self, basic_document):
        """Test the notes section is excluded but a reference to it is not a boundary."""
        region = RegionLocator().locate(basic_document)
        assert "Gamma Clinics LP" in region.text
        assert "Notes Section Widget" not in region.text
        assert region.doc_end < len(basic_document)

    def test_excludes_prior_period_schedule(self):
        """Test a second schedule with an earlier date is cut off."""
        prior = (
            "<p><b>Consolidated Schedule of Investments</b></p>\n"
            "<p>As of December 31, 2023</p>\n"
            + soi_table([holding_row("Prior Year Holdings Inc.", "First Lien", "", "", "", "10", "20")])
        )
        document = filing_document(soi_table(basic_rows()), after=prior)
        region = RegionLocator().locate(document)
        assert region.period_date == "2024-12-31"
        assert "Acme Software Inc." in region.text
        assert "Prior Year Holdings" not in region.text

    def test_continued_pages_stay_in_region(self):
        """Test repeated headings with the same date extend the region."""
        continued = (
            "<p><b>Consolidated Schedule of Investments (continued)</b></p>\n"
            "<p>As of December 31, 2024</p>\n"
            + soi_table([holding_row("Continued Page Holdings Inc.", "First Lien", "", "", "", "10", "20")])
        )
        document = filing_document(soi_table(basic_rows()), after=continued)
        region = RegionLocator().locate(document)
        assert "Continued Page Holdings" in region.text
        assert "Notes Section Widget" not in region.text

    def test_skips_table_of_contents(self):
        """Test an undated contents entry is not taken as the heading."""
        contents = (
            "<p>Consolidated Schedule of Investments ..... 5</p>\n"
            "<p>Notes to Consolidated Financial Statements ..... 12</p>\n"
            + "<p>Management's discussion of results.</p>\n" * 200
        )
        document = filing_document(soi_table(basic_rows()), before=contents)
        region = RegionLocator(lead_chars=100).locate(document)
        assert region.keyword_found
        assert region.period_date == "2024-12-31"
        assert "Acme Software Inc." in region.text
        assert "Notes Section Widget" not in region.text

    def test_skips_dated_table_of_contents(self):
        """Test dated contents entries for both periods do not end the region."""
        prior = (
            "<p><b>Consolidated Schedule of Investments</b></p>\n"
            "<p>As of December 31, 2023</p>\n"
            + soi_table([holding_row("Prior Year Holdings Inc.", "First Lien", "", "", "", "10", "20")])
        )
        document = filing_document(soi_table(basic_rows()), before=dated_contents(), after=prior)
        region = RegionLocator(lead_chars=100).locate(document)
        assert region.period_date == "2024-12-31"
        assert "Acme Software Inc." in region.text
        assert "Gamma Clinics LP" in region.text
        assert "Prior Year Holdings" not in region.text
        assert "Notes Section Widget" not in region.text

    def test_dated_heading_without_table_is_last_resort(self):
        """Test the first dated mention is used when none is followed by a fair value column."""
        document = (
            "<html><body><p>Consolidated Schedule of Investments</p>"
            "<p>As of June 30, 2024</p><p>No investments were held.</p></body></html>"
        )
        region = RegionLocator().locate(document)
        assert region.keyword_found
        assert region.period_date == "2024-06-30"

    def test_heading_inside_table_keeps_table(self):
        """Test a heading printed in the table's first row keeps the table open tag."""
        document = (
            "<html><body>" + "<p>filler text</p>" * 50
            + '<table class="soi"><tr><td colspan="7">Consolidated Schedule of Investments '
            "December 31, 2024</td></tr>"
            + "<tr><th>Company</th><th>Fair Value</th></tr>"
            + "<tr><td>Acme Software Inc.</td><td>100</td></tr></table>"
            + "</body></html>"
        )
        region = RegionLocator(lead_chars=10).locate(document)
        assert region.text.startswith('<table class="soi">')

    def test_no_heading_falls_back_to_prefix(self):
        """Test documents without a heading use a bounded prefix."""
        document = "<html><body>" + soi_table(basic_rows()) + "</body></html>"
        region = RegionLocator(fallback_chars=500).locate(document)
        assert not region.keyword_found
        assert region.doc_start == 0
        assert region.size == 500

    def test_small_region_is_one_chunk(self, basic_document):
        """Test regions under the ceiling are not split."""
        region = RegionLocator().locate(basic_document)
        assert len(region.chunks) == 1
        assert region.chunks[0].start == 0
        assert region.chunks[0].end == region.size


class TestRegionSplitter:
    """Tests for RegionSplitter.split."""

    @pytest.fixture
    def text(self):
        document, _ = large_document()
        return document

    def test_invalid_overlap(self):
        """Test overlap must be smaller than the chunk size."""
        with pytest.raises(ValueError):
            RegionSplitter(chunk_chars=100, overlap_chars=100)

    def test_chunks_cover_text_with_overlap(self, text):
        """Test every position is covered and consecutive chunks overlap."""
        chunks = RegionSplitter(chunk_chars=3000, overlap_chars=600).split(text)
        assert len(chunks) > 3
        assert chunks[0].start == 0
        assert chunks[-1].end == len(text)
        for previous, current in zip(chunks, chunks[1:]):
            assert current.start > previous.start
            assert current.start < previous.end

    def test_boundaries_are_rows(self, text):
        """Test chunk edges fall on row or table starts."""
        chunks = RegionSplitter(chunk_chars=3000, overlap_chars=600).split(text)
        for chunk in chunks[1:]:
            assert text.startswith("<tr", chunk.start) or text.startswith("<table", chunk.start)
        for chunk in chunks[:-1]:
            assert text.startswith("<tr", chunk.end) or text.startswith("<table", chunk.end)

    def test_starts_snap_to_company_rows(self, text):
        """Test chunk starts never land on a continuation row."""
        chunks = RegionSplitter(chunk_chars=3000, overlap_chars=600).split(text)
        inside = _inside_table(text, chunks)
        assert inside
        for chunk in inside:
            row = text[chunk.start:chunk.start + 200]
            assert "Holdings LLC" in row.split("</tr>")[0]

    def test_prefix_carries_header(self, text):
        """Test chunks starting inside the table get its header rows."""
        splitter = RegionSplitter(chunk_chars=3000, overlap_chars=600, scanner=TableScanner())
        inside = _inside_table(text, splitter.split(text))
        assert inside
        for chunk in inside:
            assert chunk.prefix.startswith('<table class="soi">')
            assert "Fair Value" in chunk.prefix
            assert len(ROW_START_RE.findall(chunk.prefix)) == 1

    def test_plan_is_deterministic(self, text):
        """Test recomputing the plan yields the same chunks."""
        splitter = RegionSplitter(chunk_chars=3000, overlap_chars=600, scanner=TableScanner())
        assert splitter.split(text) == splitter.split(text)
