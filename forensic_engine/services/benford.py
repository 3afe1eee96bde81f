"""
Forensic Ledger Engine - Benford's Law Analysis

Leading-digit screening of transaction amounts.
"""

import math
from decimal import Decimal, InvalidOperation
from typing import Iterable, List, Optional, Union
import logging

from forensic_engine.domain import BenfordDigitResult

logger = logging.getLogger(__name__)

Number = Union[int, float, Decimal]


class BenfordsLawAnalyzer:
    """
    Implements Benford's Law analysis for fraud detection.

    Benford's Law states that in naturally occurring numerical data,
    the leading digit is distributed logarithmically. Digit 1 appears
    ~30.1% of the time, digit 2 ~17.6%, etc.

    Fabricated figures tend to be spread more uniformly, which shows up
    as a large chi-square statistic against the expected table.
    """

    # Expected first-digit distribution, in percent
    EXPECTED_FIRST_DIGIT = {
        1: 30.1,
        2: 17.6,
        3: 12.5,
        4: 9.7,
        5: 7.9,
        6: 6.7,
        7: 5.8,
        8: 5.1,
        9: 4.6,
    }

    # Chi-square critical value, 95% confidence, 8 degrees of freedom
    CHI_SQUARE_CRITICAL_95 = 15.507

    # Two-tailed 95% bound for the per-digit z-test
    Z_CRITICAL_95 = 1.96

    def extract_first_digit(self, number: Number) -> Optional[int]:
        """
        Extract the first significant digit of ``abs(number)``.

        Returns None for zero and for values that are not finite numbers.
        """
        try:
            value = number if isinstance(number, Decimal) else Decimal(str(number))
        except (InvalidOperation, ValueError, TypeError):
            return None
        if not value.is_finite() or value == 0:
            return None
        # Decimal digit tuples never carry leading zeros for non-zero values
        return abs(value).as_tuple().digits[0]

    def analyze(self, amounts: Iterable[Number]) -> List[BenfordDigitResult]:
        """
        Perform first-digit Benford's Law analysis on a list of amounts.

        Args:
            amounts: Monetary amounts of any sign

        Returns:
            Nine results, digits 1 through 9. The digit-1 result also
            carries the total chi-square, the critical value and the
            overall verdict.
        """
        counts = {digit: 0 for digit in self.EXPECTED_FIRST_DIGIT}
        for amount in amounts:
            digit = self.extract_first_digit(amount)
            if digit is not None:
                counts[digit] += 1

        total = sum(counts.values())
        results: List[BenfordDigitResult] = []
        total_chi_square = 0.0

        for digit, expected_pct in self.EXPECTED_FIRST_DIGIT.items():
            count = counts[digit]
            if total == 0:
                # No data is not a statistical pass
                results.append(BenfordDigitResult(
                    digit=digit,
                    count=0,
                    observed=0.0,
                    expected=expected_pct,
                    deviation=-expected_pct,
                    chi_square=0.0,
                    z_score=0.0,
                    passed=False,
                ))
                continue

            p_expected = expected_pct / 100
            p_observed = count / total
            expected_count = total * p_expected

            chi_square = (count - expected_count) ** 2 / expected_count
            total_chi_square += chi_square

            standard_error = math.sqrt(p_expected * (1 - p_expected) / total)
            z_score = (p_observed - p_expected) / standard_error

            observed_pct = p_observed * 100
            results.append(BenfordDigitResult(
                digit=digit,
                count=count,
                observed=observed_pct,
                expected=expected_pct,
                deviation=observed_pct - expected_pct,
                chi_square=chi_square,
                z_score=z_score,
                passed=abs(z_score) <= self.Z_CRITICAL_95,
            ))

        first = results[0]
        results[0] = BenfordDigitResult(
            digit=first.digit,
            count=first.count,
            observed=first.observed,
            expected=first.expected,
            deviation=first.deviation,
            chi_square=first.chi_square,
            z_score=first.z_score,
            passed=first.passed,
            total_chi_square=total_chi_square,
            critical_value=self.CHI_SQUARE_CRITICAL_95,
            overall_passed=total_chi_square <= self.CHI_SQUARE_CRITICAL_95,
        )

        logger.debug(
            f"Benford analysis over {total} amounts: chi-square {total_chi_square:.3f}"
        )
        return results

    def interpret(self, results: List[BenfordDigitResult]) -> str:
        """Get human-readable interpretation of results."""
        summary = results[0]
        if sum(r.count for r in results) == 0:
            return "No amounts with a leading digit were available for analysis."
        failing = [r.digit for r in results if not r.passed]
        if summary.overall_passed:
            base = (
                "Data conforms to Benford's Law at 95% confidence. "
                "Distribution is within normal ranges for financial records."
            )
        else:
            base = (
                "WARNING: Data DOES NOT conform to Benford's Law "
                f"(chi-square {summary.total_chi_square:.2f} > {summary.critical_value}). "
                "This may indicate fabricated or manipulated entries."
            )
        if failing:
            base += f" Digits with significant deviation: {', '.join(map(str, failing))}."
        return base


# Singleton instance
benfords_analyzer = BenfordsLawAnalyzer()
