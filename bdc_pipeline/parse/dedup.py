"""
Duplicate suppression across overlapping chunks and resumed invocations.
"""

import logging
import re
from typing import Iterable, Optional

from .models import Holding

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")


def _normalize_text(text: Optional[str]) -> str:
    if not text:
        return ""
    return _WHITESPACE_RE.sub(" ", text).strip().casefold()


def _normalize_amount(value: Optional[float]) -> Optional[float]:
    return None if value is None else round(value, 6)


class DedupGate:
    """
    Remembers holdings already emitted for a filing.

    The key is (company, investment type, fair value), compared case- and
    whitespace-insensitively, using the fair value as printed when known.
    Two distinct tranches of one company with the same type and fair value
    collapse into one; strict_key adds the reported cost to tell them apart.
    """

    def __init__(self, strict_key: bool = False):
        self.strict_key = strict_key
        self._seen: set[tuple] = set()

    def key_for(self, holding: Holding) -> tuple:
        fair_value = holding.reported_fair_value
        if fair_value is None:
            fair_value = holding.fair_value
        key = (
            _normalize_text(holding.company_name),
            _normalize_text(holding.investment_type),
            _normalize_amount(fair_value),
        )
        if self.strict_key:
            cost = holding.reported_cost if holding.reported_cost is not None else holding.cost
            key += (_normalize_amount(cost),)
        return key

    def admit(self, holding: Holding) -> bool:
        """Record the holding; False if an equal key was already seen."""
        key = self.key_for(holding)
        if key in self._seen:
            logger.debug(f"Duplicate holding dropped: {holding.company_name} / {holding.investment_type}")
            return False
        self._seen.add(key)
        return True

    def seed(self, holdings: Iterable[Holding]) -> int:
        """Load keys of stored holdings (resume). Returns the number of keys added."""
        before = len(self._seen)
        for holding in holdings:
            self._seen.add(self.key_for(holding))
        return len(self._seen) - before

    def __contains__(self, holding: Holding) -> bool:
        return self.key_for(holding) in self._seen

    def __len__(self) -> int:
        return len(self._seen)
