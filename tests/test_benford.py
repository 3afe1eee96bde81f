"""
Tests for Benford's Law first-digit analysis.
"""

from decimal import Decimal

import pytest

from forensic_engine.services.benford import BenfordsLawAnalyzer


# Counts that match the expected distribution exactly over 1000 amounts
CONFORMING_COUNTS = {1: 301, 2: 176, 3: 125, 4: 97, 5: 79, 6: 67, 7: 58, 8: 51, 9: 46}


def conforming_amounts():
    amounts = []
    for digit, count in CONFORMING_COUNTS.items():
        amounts.extend(Decimal(f"{digit}23.45") for _ in range(count))
    return amounts


@pytest.fixture
def analyzer():
    return BenfordsLawAnalyzer()


class TestFirstDigitExtraction:
    """Leading significant digit of an amount."""

    def test_integer(self, analyzer):
        """First digit of a whole amount."""
        assert analyzer.extract_first_digit(Decimal("4512")) == 4

    def test_fraction_below_one(self, analyzer):
        """Leading zeros are skipped."""
        assert analyzer.extract_first_digit(Decimal("0.0072")) == 7

    def test_negative_amount(self, analyzer):
        """Sign is ignored."""
        assert analyzer.extract_first_digit(Decimal("-312.50")) == 3

    def test_zero_has_no_digit(self, analyzer):
        """Zero carries no leading digit."""
        assert analyzer.extract_first_digit(Decimal("0")) is None
        assert analyzer.extract_first_digit(0) is None


class TestBenfordAnalysis:
    """Chi-square and z-score output."""

    def test_always_nine_records(self, analyzer):
        """One record per digit, in order."""
        results = analyzer.analyze([Decimal("123")])
        assert [r.digit for r in results] == list(range(1, 10))

    def test_expected_table(self, analyzer):
        """Expected percentages follow the fixed table."""
        results = analyzer.analyze([Decimal("1")])
        assert [r.expected for r in results] == [30.1, 17.6, 12.5, 9.7, 7.9, 6.7, 5.8, 5.1, 4.6]

    def test_conforming_data_passes(self, analyzer):
        """Exactly Benford-shaped data passes every test."""
        results = analyzer.analyze(conforming_amounts())

        summary = results[0]
        assert summary.total_chi_square == pytest.approx(0.0, abs=1e-9)
        assert summary.critical_value == 15.507
        assert summary.overall_passed is True
        assert all(r.passed for r in results)
        assert results[0].count == 301
        assert results[0].observed == pytest.approx(30.1)

    def test_single_digit_data_fails(self, analyzer):
        """All amounts starting with 9 fail the chi-square test."""
        results = analyzer.analyze([Decimal("900") + i for i in range(100)])

        summary = results[0]
        assert summary.overall_passed is False
        assert summary.total_chi_square > summary.critical_value
        assert results[8].count == 100
        assert results[8].passed is False
        assert results[8].z_score > 1.96
        assert results[0].z_score < -1.96

    def test_total_is_sum_of_digit_chi_squares(self, analyzer):
        """The digit-1 record carries the total over all digits."""
        amounts = [Decimal(str(v)) for v in (120, 250, 310, 199, 870, 45, 66, 1500, 1020, 93)]
        results = analyzer.analyze(amounts)
        assert results[0].total_chi_square == pytest.approx(sum(r.chi_square for r in results))

    def test_observed_percentages_sum_to_100(self, analyzer):
        """Observed shares cover the whole non-empty set."""
        amounts = [Decimal(str(v)) for v in (120, 250, 310, 199, 870, 45, 66, 1500, 1020, 93)]
        results = analyzer.analyze(amounts)
        assert sum(r.observed for r in results) == pytest.approx(100.0)

    def test_only_first_record_has_totals(self, analyzer):
        """Totals are set on digit 1 only."""
        results = analyzer.analyze(conforming_amounts())
        for result in results[1:]:
            assert result.total_chi_square is None
            assert result.critical_value is None
            assert result.overall_passed is None

    def test_chi_square_formula(self, analyzer):
        """Per-digit chi-square uses counts, not percentages."""
        amounts = [Decimal("1")] * 10
        results = analyzer.analyze(amounts)
        expected_count = 10 * 0.301
        assert results[0].chi_square == pytest.approx((10 - expected_count) ** 2 / expected_count)

    def test_zero_amounts_excluded(self, analyzer):
        """Zeros do not count towards n."""
        results = analyzer.analyze([Decimal("0"), Decimal("0"), Decimal("1")])
        assert sum(r.count for r in results) == 1
        assert results[0].observed == pytest.approx(100.0)

    def test_empty_input(self, analyzer):
        """No data: zero statistics and no digit passes."""
        results = analyzer.analyze([])

        assert len(results) == 9
        for result in results:
            assert result.count == 0
            assert result.observed == 0.0
            assert result.chi_square == 0.0
            assert result.z_score == 0.0
            assert result.passed is False
        assert results[0].total_chi_square == 0.0
        assert results[0].overall_passed is True

    def test_deterministic(self, analyzer):
        """Same input, same output."""
        amounts = conforming_amounts()
        assert analyzer.analyze(amounts) == analyzer.analyze(list(amounts))


class TestInterpretation:
    """Human-readable verdicts."""

    def test_conforming(self, analyzer):
        text = analyzer.interpret(analyzer.analyze(conforming_amounts()))
        assert text.startswith("Data conforms to Benford's Law")

    def test_nonconforming(self, analyzer):
        text = analyzer.interpret(analyzer.analyze([Decimal("9")] * 50))
        assert "DOES NOT conform" in text
        assert "9" in text

    def test_empty(self, analyzer):
        text = analyzer.interpret(analyzer.analyze([]))
        assert text.startswith("No amounts")
