"""
Holdings store contract and an in-memory implementation.

The engine talks to storage only through HoldingsStore. Stores raise
StoreFailure for any persistence error; the engine turns it into an ERROR
result.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from ..parse.models import Holding, ParseCheckpoint, ScaleCategory

logger = logging.getLogger(__name__)


class StoreFailure(Exception):
    """Persistence failed; fatal for the current invocation."""


class HoldingsStore(ABC):
    """Persistence contract used by the extraction engine."""

    @abstractmethod
    def delete_holdings(self, filing_id: str) -> int:
        """Delete all holdings of a filing. Returns the number removed."""

    @abstractmethod
    def insert_holdings(self, filing_id: str, holdings: list[Holding]) -> int:
        """Append holdings. Returns the number inserted."""

    @abstractmethod
    def get_holdings(self, filing_id: str) -> list[Holding]:
        """All holdings of a filing ordered by row_number."""

    def count_holdings(self, filing_id: str) -> int:
        return len(self.get_holdings(filing_id))

    @abstractmethod
    def get_filing_checkpoint(self, filing_id: str) -> Optional[ParseCheckpoint]:
        """The stored checkpoint, or None when there is none."""

    @abstractmethod
    def update_filing_checkpoint(
        self,
        filing_id: str,
        byte_offset: int,
        industry_context: Optional[str],
        total_region_size: int,
    ) -> None:
        ...

    @abstractmethod
    def clear_filing_checkpoint(self, filing_id: str) -> None:
        ...

    @abstractmethod
    def mark_filing_parsed(self, filing_id: str, scale: ScaleCategory) -> None:
        ...

    @abstractmethod
    def reset_filing(self, filing_id: str) -> None:
        """Delete holdings, clear the checkpoint and the parsed flag."""


@dataclass
class FilingState:
    holdings: list[Holding] = field(default_factory=list)
    checkpoint: Optional[ParseCheckpoint] = None
    parsed_successfully: bool = False
    value_scale: Optional[ScaleCategory] = None


class InMemoryHoldingsStore(HoldingsStore):
    """Dictionary-backed store for tests and dry runs."""

    def __init__(self):
        self.filings: dict[str, FilingState] = {}

    def _state(self, filing_id: str) -> FilingState:
        return self.filings.setdefault(filing_id, FilingState())

    def delete_holdings(self, filing_id: str) -> int:
        state = self._state(filing_id)
        removed = len(state.holdings)
        state.holdings = []
        return removed

    def insert_holdings(self, filing_id: str, holdings: list[Holding]) -> int:
        state = self._state(filing_id)
        state.holdings.extend(h.model_copy() for h in holdings)
        return len(holdings)

    def get_holdings(self, filing_id: str) -> list[Holding]:
        state = self.filings.get(filing_id)
        if state is None:
            return []
        return sorted((h.model_copy() for h in state.holdings), key=lambda h: h.row_number)

    def count_holdings(self, filing_id: str) -> int:
        state = self.filings.get(filing_id)
        return len(state.holdings) if state else 0

    def get_filing_checkpoint(self, filing_id: str) -> Optional[ParseCheckpoint]:
        state = self.filings.get(filing_id)
        if state is None or state.checkpoint is None:
            return None
        return state.checkpoint.model_copy()

    def update_filing_checkpoint(
        self,
        filing_id: str,
        byte_offset: int,
        industry_context: Optional[str],
        total_region_size: int,
    ) -> None:
        self._state(filing_id).checkpoint = ParseCheckpoint(
            byte_offset=byte_offset,
            industry_context=industry_context,
            total_region_size=total_region_size,
        )

    def clear_filing_checkpoint(self, filing_id: str) -> None:
        self._state(filing_id).checkpoint = None

    def mark_filing_parsed(self, filing_id: str, scale: ScaleCategory) -> None:
        state = self._state(filing_id)
        state.parsed_successfully = True
        state.value_scale = scale

    def reset_filing(self, filing_id: str) -> None:
        state = self._state(filing_id)
        state.holdings = []
        state.checkpoint = None
        state.parsed_successfully = False
        state.value_scale = None
        logger.info(f"Reset filing {filing_id}")
