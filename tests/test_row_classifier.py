"""
Tests for row classification: section rows, continuations, subtotals.
"""

import pytest

from bdc_pipeline.parse.models import ColumnMap, RowContext, RowKind
from bdc_pipeline.parse.row_classifier import RowClassifier
from bdc_pipeline.parse.vocabulary import ARCC_PROFILE

from .conftest import STANDARD_COLUMNS


def row(company="", investment_type="", rate="", maturity="", par="", cost="", fair_value=""):
    return [company, investment_type, rate, maturity, par, cost, fair_value]


@pytest.fixture
def classifier():
    return RowClassifier()


class TestSectionRows:
    """Tests for industry headers and type labels."""

    def test_known_industry(self, classifier):
        """Test a known industry sets the context."""
        context = RowContext()
        result = classifier.classify(row("Software"), STANDARD_COLUMNS, context)
        assert result.kind == RowKind.INDUSTRY_HEADER
        assert context.current_industry == "Software"

    def test_industry_with_percent_of_net_assets(self, classifier):
        """Test a trailing percentage cell does not hide an industry header."""
        context = RowContext()
        result = classifier.classify(
            row("Health Care Providers & Services", fair_value="12.5%"), STANDARD_COLUMNS, context
        )
        assert result.kind == RowKind.INDUSTRY_HEADER
        assert context.current_industry == "Health Care Providers & Services"

    def test_industry_with_footnote(self, classifier):
        """Test footnote markers are stripped from industry names."""
        context = RowContext()
        classifier.classify(row("Software (3)"), STANDARD_COLUMNS, context)
        assert context.current_industry == "Software"

    def test_unknown_industry_by_pattern(self, classifier):
        """Test industry-like words outside the known list are accepted."""
        context = RowContext()
        result = classifier.classify(row("Specialty Chemicals Manufacturing"), STANDARD_COLUMNS, context)
        assert result.kind == RowKind.INDUSTRY_HEADER
        assert context.current_industry == "Specialty Chemicals Manufacturing"

    def test_type_label_keeps_industry(self, classifier):
        """Test instrument-class labels do not replace the industry."""
        context = RowContext(current_industry="Software")
        result = classifier.classify(row("First Lien Debt"), STANDARD_COLUMNS, context)
        assert result.kind == RowKind.TYPE_LABEL
        assert context.current_industry == "Software"

    def test_permissive_profile(self):
        """Test bare section rows are industries for permissive taxonomies."""
        classifier = RowClassifier(ARCC_PROFILE)
        context = RowContext()
        result = classifier.classify(row("Sports Franchises"), STANDARD_COLUMNS, context)
        assert result.kind == RowKind.INDUSTRY_HEADER
        assert context.current_industry == "Sports Franchises"


class TestSkipRows:
    """Tests for rows that never become holdings."""

    def test_empty(self, classifier):
        """Test rows without content are skipped."""
        assert classifier.classify(row(fair_value="$"), STANDARD_COLUMNS, RowContext()).kind == RowKind.SKIP

    def test_total_row(self, classifier):
        """Test totals are denylisted."""
        context = RowContext(current_company="Acme Software Inc.")
        result = classifier.classify(row("Total Software", cost="50,000", fair_value="52,000"),
                                     STANDARD_COLUMNS, context)
        assert result.kind == RowKind.SKIP

    def test_continuation_subtotal(self, classifier):
        """Test an unlabelled per-company subtotal is skipped."""
        context = RowContext(current_company="Acme Software Inc.")
        result = classifier.classify(row(cost="10,840", fair_value="13,345"), STANDARD_COLUMNS, context)
        assert result.kind == RowKind.SKIP
        assert result.reason == "company subtotal"

    def test_no_company_yet(self, classifier):
        """Test continuation rows without a preceding company are skipped."""
        result = classifier.classify(row(investment_type="Revolver", fair_value="100"),
                                     STANDARD_COLUMNS, RowContext())
        assert result.kind == RowKind.SKIP

    def test_zero_fair_value(self, classifier):
        """Test rows with a zero or missing fair value are skipped."""
        context = RowContext()
        result = classifier.classify(row("Acme Software Inc.", "Revolver", fair_value="-"),
                                     STANDARD_COLUMNS, context)
        assert result.kind == RowKind.SKIP
        result = classifier.classify(row("Acme Software Inc.", "Revolver", fair_value="0"),
                                     STANDARD_COLUMNS, context)
        assert result.kind == RowKind.SKIP


class TestHoldings:
    """Tests for holding rows and company carry-forward."""

    def test_full_row(self, classifier):
        """Test every mapped field is extracted."""
        context = RowContext(current_industry="Software")
        result = classifier.classify(
            row("Acme Software Inc. (2)", "First Lien Term Loan", "SOFR + 5.25%", "03/2028",
                "10,000", "9,850", "12,345"),
            STANDARD_COLUMNS,
            context,
        )
        assert result.kind == RowKind.HOLDING
        fields = result.fields
        assert fields["company_name"] == "Acme Software Inc."
        assert fields["investment_type"] == "First Lien Term Loan"
        assert fields["industry"] == "Software"
        assert fields["interest_rate"] == "SOFR + 5.25%"
        assert fields["reference_rate"] == "SOFR"
        assert fields["maturity_date"] == "2028-03-31"
        assert fields["par_amount"] == 10000.0
        assert fields["cost"] == 9850.0
        assert fields["fair_value"] == 12345.0
        assert context.current_company == "Acme Software Inc."

    def test_continuation_inherits_company(self, classifier):
        """Test a blank company cell inherits the previous company."""
        context = RowContext(current_company="Acme Software Inc.")
        result = classifier.classify(row("", "Revolver", "SOFR + 5.25%", "03/2028", "1,000", "990", "1,000"),
                                     STANDARD_COLUMNS, context)
        assert result.kind == RowKind.HOLDING
        assert result.fields["company_name"] == "Acme Software Inc."
        assert result.fields["investment_type"] == "Revolver"

    def test_short_name_is_continuation(self, classifier):
        """Test names shorter than the minimum are treated as blank."""
        context = RowContext(current_company="Acme Software Inc.")
        result = classifier.classify(row("(4)", "Revolver", fair_value="500"), STANDARD_COLUMNS, context)
        assert result.fields["company_name"] == "Acme Software Inc."

    def test_type_in_company_column(self, classifier):
        """Test an instrument label in the company column is a continuation."""
        context = RowContext(current_company="Acme Software Inc.")
        result = classifier.classify(row("Second Lien Term Loan", fair_value="2,000"), STANDARD_COLUMNS, context)
        assert result.kind == RowKind.HOLDING
        assert result.fields["company_name"] == "Acme Software Inc."
        assert result.fields["investment_type"] == "Second Lien Term Loan"

    def test_company_only_row_then_tranches(self, classifier):
        """Test a company row without values sets the company for its tranches."""
        context = RowContext()
        first = classifier.classify(row("Beta Holdings LLC"), STANDARD_COLUMNS, context)
        assert first.kind == RowKind.SKIP
        assert context.current_company == "Beta Holdings LLC"
        second = classifier.classify(row("", "Term Loan", fair_value="750"), STANDARD_COLUMNS, context)
        assert second.fields["company_name"] == "Beta Holdings LLC"

    def test_lone_name_row_owns_next_tranche(self, classifier):
        """Test a suffix-less name row read as an industry becomes the company of a continuation."""
        context = RowContext(current_company="Acme Software Inc.", current_industry="Software")
        first = classifier.classify(row("Zenith Software"), STANDARD_COLUMNS, context)
        assert first.kind == RowKind.INDUSTRY_HEADER

        second = classifier.classify(row("", "Term Loan", fair_value="750"), STANDARD_COLUMNS, context)
        assert second.kind == RowKind.HOLDING
        assert second.fields["company_name"] == "Zenith Software"
        assert second.fields["industry"] == "Software"
        assert context.current_company == "Zenith Software"

    def test_lone_name_row_with_type_in_company_column(self, classifier):
        """Test a tranche printing its instrument in the company column also adopts the name row."""
        context = RowContext(current_company="Acme Software Inc.", current_industry="Software")
        classifier.classify(row("Zenith Software"), STANDARD_COLUMNS, context)
        result = classifier.classify(row("Second Lien Term Loan", fair_value="2,000"), STANDARD_COLUMNS, context)
        assert result.fields["company_name"] == "Zenith Software"
        assert result.fields["investment_type"] == "Second Lien Term Loan"

    def test_industry_header_followed_by_company(self, classifier):
        """Test an industry header stays an industry when a named company follows."""
        context = RowContext()
        classifier.classify(row("Specialty Chemicals Manufacturing"), STANDARD_COLUMNS, context)
        first = classifier.classify(row("Delta Chemicals Inc.", "First Lien", fair_value="900"),
                                    STANDARD_COLUMNS, context)
        second = classifier.classify(row("", "Revolver", fair_value="100"), STANDARD_COLUMNS, context)
        assert first.fields["industry"] == "Specialty Chemicals Manufacturing"
        assert second.fields["company_name"] == "Delta Chemicals Inc."
        assert second.fields["industry"] == "Specialty Chemicals Manufacturing"

    def test_total_in_company_name(self, classifier):
        """Test a company whose name starts with 'Total' is not read as a subtotal."""
        context = RowContext(current_company="Acme Software Inc.")
        result = classifier.classify(row("Total Quality Logistics, LLC", fair_value="2,500"),
                                     STANDARD_COLUMNS, context)
        assert result.kind == RowKind.HOLDING
        assert result.fields["company_name"] == "Total Quality Logistics, LLC"
        assert context.current_company == "Total Quality Logistics, LLC"

    def test_name_without_suffix(self, classifier):
        """Test suffix-less names start a new company once the row is a holding."""
        context = RowContext(current_company="Acme Software Inc.")
        result = classifier.classify(row("Zeta Topco", "Common Equity", fair_value="300"),
                                     STANDARD_COLUMNS, context)
        assert result.fields["company_name"] == "Zeta Topco"
        assert context.current_company == "Zeta Topco"

    def test_negative_fair_value(self, classifier):
        """Test accounting negatives are kept."""
        result = classifier.classify(row("Gamma Clinics LP", "Common Equity", fair_value="(1,250)"),
                                     STANDARD_COLUMNS, RowContext())
        assert result.fields["fair_value"] == -1250.0

    def test_split_currency_cell(self, classifier):
        """Test '$' and the amount in separate cells under one header."""
        columns = ColumnMap(company=0, investment_type=1, fair_value=2, spans={"fair_value": 2})
        result = classifier.classify(["Acme Software Inc.", "First Lien", "$", "12,345"], columns, RowContext())
        assert result.fields["fair_value"] == 12345.0

    def test_value_in_unlabelled_neighbour(self, classifier):
        """Test an empty fair value cell falls back to the cell to its right."""
        columns = ColumnMap(company=0, investment_type=1, fair_value=2)
        result = classifier.classify(["Acme Software Inc.", "First Lien", "", "500"], columns, RowContext())
        assert result.fields["fair_value"] == 500.0

    def test_industry_column(self, classifier):
        """Test an industry column updates the carried industry."""
        columns = ColumnMap(company=0, industry=1, fair_value=2)
        context = RowContext(current_industry="Software")
        result = classifier.classify(["Acme Clinics Inc.", "Healthcare", "900"], columns, context)
        assert result.fields["industry"] == "Healthcare"
        assert context.current_industry == "Healthcare"

    def test_fallback_fair_value_skips_percent(self, classifier):
        """Test the rightmost-number fallback ignores percentage cells."""
        columns = ColumnMap(company=0, investment_type=1)
        result = classifier.classify(["Acme Software Inc.", "First Lien", "800", "1.5", "%"],
                                     columns, RowContext())
        assert result.fields["fair_value"] == 800.0
