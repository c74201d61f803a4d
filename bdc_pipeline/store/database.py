"""
DuckDB-backed holdings store.

Schema designed for easy migration to PostgreSQL: filings carry the parse
state (parsed flag, scale, checkpoint), holdings one row per position.
"""

import logging
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Optional

import duckdb
import pandas as pd

from ..parse.models import Holding, ParseCheckpoint, ScaleCategory
from .base import HoldingsStore, StoreFailure

logger = logging.getLogger(__name__)


SCHEMA_SQL = """
-- Parse state per filing
CREATE TABLE IF NOT EXISTS filings (
    filing_id VARCHAR PRIMARY KEY,
    parsed_successfully BOOLEAN DEFAULT FALSE,
    value_scale VARCHAR,               -- thousands, millions
    current_byte_offset BIGINT,        -- checkpoint: next segment start
    current_industry_state VARCHAR,    -- checkpoint: industry carried forward
    total_file_size BIGINT,            -- checkpoint: region size it was taken on
    updated_at TIMESTAMP
);

-- Schedule of Investments positions (amounts in millions of USD)
CREATE TABLE IF NOT EXISTS holdings (
    filing_id VARCHAR NOT NULL,
    row_number INTEGER NOT NULL,
    company_name VARCHAR NOT NULL,
    investment_type VARCHAR,
    industry VARCHAR,
    description VARCHAR,
    interest_rate VARCHAR,
    reference_rate VARCHAR,
    maturity_date DATE,
    par_amount DOUBLE,
    cost DOUBLE,
    fair_value DOUBLE NOT NULL,
    shares VARCHAR,
    period_date DATE,
    reported_fair_value DOUBLE,
    reported_cost DOUBLE,
    source_pos BIGINT,
    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_holdings_filing_row ON holdings(filing_id, row_number);
CREATE INDEX IF NOT EXISTS idx_holdings_filing_pos ON holdings(filing_id, source_pos);
"""

HOLDING_COLUMNS = [
    "row_number",
    "company_name",
    "investment_type",
    "industry",
    "description",
    "interest_rate",
    "reference_rate",
    "maturity_date",
    "par_amount",
    "cost",
    "fair_value",
    "shares",
    "period_date",
    "reported_fair_value",
    "reported_cost",
    "source_pos",
]

DATE_COLUMNS = {"maturity_date", "period_date"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


INSERT_SQL = f"""
    INSERT INTO holdings (filing_id, {', '.join(HOLDING_COLUMNS)})
    VALUES (?, {', '.join('CAST(? AS DATE)' if c in DATE_COLUMNS else '?' for c in HOLDING_COLUMNS)})
"""


class DuckDBHoldingsStore(HoldingsStore):
    """HoldingsStore on a DuckDB file (or ':memory:')."""

    def __init__(self, db_path: str = "data/holdings.duckdb"):
        self.db_path = db_path
        if db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        try:
            self.conn = duckdb.connect(str(db_path))
        except duckdb.Error as e:
            raise StoreFailure(f"Cannot open database {db_path}: {e}") from e
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        # DuckDB has no executescript, so run statements one by one
        for stmt in SCHEMA_SQL.split(";"):
            lines = [line for line in stmt.splitlines() if not line.strip().startswith("--")]
            stmt = "\n".join(lines).strip()
            if stmt:
                self._execute(stmt)
        logger.debug(f"Database initialized at {self.db_path}")

    def _execute(self, sql: str, params: Optional[list] = None):
        try:
            if params is None:
                return self.conn.execute(sql)
            return self.conn.execute(sql, params)
        except duckdb.Error as e:
            raise StoreFailure(f"Database error: {e}") from e

    def _ensure_filing(self, filing_id: str):
        self._execute(
            "INSERT INTO filings (filing_id) VALUES (?) ON CONFLICT (filing_id) DO NOTHING",
            [filing_id],
        )

    def close(self):
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    # =========================================================================
    # Holdings
    # =========================================================================

    def delete_holdings(self, filing_id: str) -> int:
        count = self.count_holdings(filing_id)
        self._execute("DELETE FROM holdings WHERE filing_id = ?", [filing_id])
        return count

    def insert_holdings(self, filing_id: str, holdings: list[Holding]) -> int:
        if not holdings:
            return 0
        rows = []
        for h in holdings:
            values = h.model_dump()
            values["source_pos"] = h.source_offset
            rows.append([filing_id] + [values[c] for c in HOLDING_COLUMNS])
        try:
            self.conn.executemany(INSERT_SQL, rows)
        except duckdb.Error as e:
            raise StoreFailure(f"Insert of {len(rows)} holdings failed: {e}") from e
        return len(rows)

    def get_holdings(self, filing_id: str) -> list[Holding]:
        cursor = self._execute(
            f"SELECT {', '.join(HOLDING_COLUMNS)} FROM holdings WHERE filing_id = ? ORDER BY row_number",
            [filing_id],
        )
        names = [d[0] for d in cursor.description]
        holdings = []
        for row in cursor.fetchall():
            values = dict(zip(names, row))
            for column in DATE_COLUMNS:
                if isinstance(values[column], (date, datetime)):
                    values[column] = values[column].isoformat()
            values["source_offset"] = values.pop("source_pos") or 0
            holdings.append(Holding(**values))
        return holdings

    def count_holdings(self, filing_id: str) -> int:
        row = self._execute("SELECT COUNT(*) FROM holdings WHERE filing_id = ?", [filing_id]).fetchone()
        return int(row[0]) if row else 0

    def holdings_frame(self, filing_id: str) -> pd.DataFrame:
        """Holdings of a filing as a DataFrame (for export)."""
        cursor = self._execute(
            f"SELECT {', '.join(HOLDING_COLUMNS)} FROM holdings WHERE filing_id = ? ORDER BY row_number",
            [filing_id],
        )
        return cursor.df()

    # =========================================================================
    # Filing state
    # =========================================================================

    def get_filing_checkpoint(self, filing_id: str) -> Optional[ParseCheckpoint]:
        row = self._execute(
            """
            SELECT current_byte_offset, current_industry_state, total_file_size
            FROM filings WHERE filing_id = ?
            """,
            [filing_id],
        ).fetchone()
        if row is None or row[0] is None:
            return None
        return ParseCheckpoint(
            byte_offset=row[0],
            industry_context=row[1],
            total_region_size=row[2] or 0,
        )

    def update_filing_checkpoint(
        self,
        filing_id: str,
        byte_offset: int,
        industry_context: Optional[str],
        total_region_size: int,
    ) -> None:
        self._ensure_filing(filing_id)
        self._execute(
            """
            UPDATE filings SET
                current_byte_offset = ?,
                current_industry_state = ?,
                total_file_size = ?,
                updated_at = ?
            WHERE filing_id = ?
            """,
            [byte_offset, industry_context, total_region_size, _utcnow(), filing_id],
        )

    def clear_filing_checkpoint(self, filing_id: str) -> None:
        self._ensure_filing(filing_id)
        self._execute(
            """
            UPDATE filings SET
                current_byte_offset = NULL,
                current_industry_state = NULL,
                total_file_size = NULL,
                updated_at = ?
            WHERE filing_id = ?
            """,
            [_utcnow(), filing_id],
        )

    def mark_filing_parsed(self, filing_id: str, scale: ScaleCategory) -> None:
        self._ensure_filing(filing_id)
        self._execute(
            "UPDATE filings SET parsed_successfully = TRUE, value_scale = ?, updated_at = ? WHERE filing_id = ?",
            [scale.value, _utcnow(), filing_id],
        )

    def reset_filing(self, filing_id: str) -> None:
        self.delete_holdings(filing_id)
        self._ensure_filing(filing_id)
        self._execute(
            """
            UPDATE filings SET
                parsed_successfully = FALSE,
                value_scale = NULL,
                current_byte_offset = NULL,
                current_industry_state = NULL,
                total_file_size = NULL,
                updated_at = ?
            WHERE filing_id = ?
            """,
            [_utcnow(), filing_id],
        )
        logger.info(f"Reset filing {filing_id}")

    def filing_status(self, filing_id: str) -> dict:
        """Parse state and holding count of a filing."""
        row = self._execute(
            "SELECT parsed_successfully, value_scale, updated_at FROM filings WHERE filing_id = ?",
            [filing_id],
        ).fetchone()
        checkpoint = self.get_filing_checkpoint(filing_id)
        return {
            "filing_id": filing_id,
            "parsed_successfully": bool(row[0]) if row else False,
            "value_scale": row[1] if row else None,
            "updated_at": row[2].isoformat() if row and row[2] else None,
            "holdings": self.count_holdings(filing_id),
            "checkpoint": checkpoint.model_dump() if checkpoint else None,
            "percent_complete": checkpoint.percent_complete() if checkpoint else None,
        }
