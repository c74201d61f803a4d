"""
Reporting-scale detection for SOI amounts.

Filings state their unit once near the top of a statement, e.g.
"(dollar amounts in thousands)". Detection reads a bounded, tag-stripped
prefix; validation is a soft plausibility check on the normalized result.
"""

import html
import logging
import re
from typing import Optional, Sequence

from .models import (
    Holding,
    ScaleCategory,
    ScaleConfidence,
    ScaleDetectionResult,
    ScaleValidation,
)

logger = logging.getLogger(__name__)


# Multiplier from the reported unit to millions of USD
SCALE_MULTIPLIERS = {
    ScaleCategory.THOUSANDS: 0.001,
    ScaleCategory.MILLIONS: 1.0,
}

DEFAULT_SCAN_CHARS = 50_000

_UNIT = r"(?:u\.?s\.?\s+)?dollars?"


def _unit_patterns(word: str, zeros: str) -> list[tuple[re.Pattern, ScaleConfidence]]:
    return [
        # "(in thousands", "($ in thousands", "(dollars in thousands"
        (re.compile(rf"\(\s*(?:\$|{_UNIT}|amounts?)?\s*(?:are\s+)?in\s+{word}"), ScaleConfidence.HIGH),
        (re.compile(rf"\$\s*in\s+{word}"), ScaleConfidence.HIGH),
        (re.compile(
            rf"(?:dollar\s+)?(?:amounts?|{_UNIT}|values?)\s+(?:are\s+)?"
            rf"(?:(?:expressed|presented|stated|shown|reported)\s+)?in\s+{word}"
        ), ScaleConfidence.HIGH),
        (re.compile(rf"in\s+{word}\s+of\s+{_UNIT}"), ScaleConfidence.HIGH),
        (re.compile(rf"\(\s*\$?\s*(?<![\d,]){zeros}'?s\s*(?:omitted)?\s*\)|(?<![\d,]){zeros}'?s\s+omitted"), ScaleConfidence.HIGH),
        (re.compile(rf"in\s+{word}\b"), ScaleConfidence.MEDIUM),
    ]


THOUSANDS_PATTERNS = _unit_patterns("thousands", "000")
MILLIONS_PATTERNS = _unit_patterns("millions", "000,000")

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")


def _plain_text(markup: str) -> str:
    text = _TAG_RE.sub(" ", markup)
    text = html.unescape(text)
    return _WHITESPACE_RE.sub(" ", text).lower()


class ScaleDetector:
    """Infers whether a document reports amounts in thousands or millions."""

    def __init__(
        self,
        scan_chars: int = DEFAULT_SCAN_CHARS,
        max_mean_fair_value: float = 1000.0,
        min_mean_fair_value: float = 0.01,
    ):
        self.scan_chars = scan_chars
        self.max_mean_fair_value = max_mean_fair_value
        self.min_mean_fair_value = min_mean_fair_value

    def detect(self, text: str) -> ScaleDetectionResult:
        """
        Detect the scale stated in the first scan_chars characters of text.

        Every thousands pattern is checked before any millions pattern; within
        one unit explicit statements are checked before bare mentions. No
        match defaults to thousands with low confidence.
        """
        plain = _plain_text(text[:self.scan_chars])

        for category, patterns in (
            (ScaleCategory.THOUSANDS, THOUSANDS_PATTERNS),
            (ScaleCategory.MILLIONS, MILLIONS_PATTERNS),
        ):
            for confidence in (ScaleConfidence.HIGH, ScaleConfidence.MEDIUM):
                for pattern, pattern_confidence in patterns:
                    if pattern_confidence != confidence:
                        continue
                    match = pattern.search(plain)
                    if match:
                        logger.debug(f"Scale {category.value} ({confidence.value}) from '{match.group(0)}'")
                        return ScaleDetectionResult(
                            multiplier=SCALE_MULTIPLIERS[category],
                            category=category,
                            confidence=confidence,
                            matched_phrase=match.group(0).strip(),
                        )

        return self.default()

    def default(self) -> ScaleDetectionResult:
        return ScaleDetectionResult(
            multiplier=SCALE_MULTIPLIERS[ScaleCategory.THOUSANDS],
            category=ScaleCategory.THOUSANDS,
            confidence=ScaleConfidence.LOW,
        )

    def validate(
        self,
        holdings: Sequence[Holding],
        scale: ScaleDetectionResult,
    ) -> ScaleValidation:
        """
        Check that the mean normalized fair value is plausible for a position.

        Args:
            holdings: Holdings already normalized to millions
            scale: The scale that was applied

        Returns:
            ScaleValidation; invalid results carry a warning, never an error
        """
        values = [abs(h.fair_value) for h in holdings]
        if not values:
            return ScaleValidation(valid=True)

        mean = sum(values) / len(values)
        warning: Optional[str] = None
        if mean > self.max_mean_fair_value:
            warning = (
                f"Mean fair value {mean:,.1f}M exceeds {self.max_mean_fair_value:,.0f}M; "
                f"amounts may not be in {scale.category.value}"
            )
        elif mean < self.min_mean_fair_value:
            warning = (
                f"Mean fair value {mean:.4f}M is below {self.min_mean_fair_value}M; "
                f"amounts may not be in {scale.category.value}"
            )

        if warning:
            logger.warning(warning)
        return ScaleValidation(valid=warning is None, warning=warning, mean_fair_value=round(mean, 4))
