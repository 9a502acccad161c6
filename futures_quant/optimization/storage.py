"""Optimization storage helpers."""

from __future__ import annotations

import json
import os
import sqlite3
from datetime import UTC, datetime
from typing import Any

_COLUMNS = (
    "symbol",
    "strategy",
    "side",
    "exit",
    "returns",
    "risk_adjusted",
    "risk_adjusted_min",
    "risk_adjusted_recent",
    "max_drawdown",
    "trades",
    "trades_ratio",
)


def save_optimization_rows(db_path: str, run_id: str, rows: list[dict[str, Any]]) -> int:
    """Persist ranked data-mining rows into SQLite; return the number inserted."""
    if not rows:
        return 0

    db_dir = os.path.dirname(db_path)
    if db_dir:
        os.makedirs(db_dir, exist_ok=True)

    conn = sqlite3.connect(db_path)
    try:
        cur = conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS optimization_results (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                run_id TEXT NOT NULL,
                created_at TEXT NOT NULL,
                symbol TEXT NOT NULL,
                strategy TEXT NOT NULL,
                side TEXT NOT NULL,
                exit TEXT NOT NULL,
                returns REAL,
                risk_adjusted REAL,
                risk_adjusted_min REAL,
                risk_adjusted_recent REAL,
                max_drawdown REAL,
                trades INTEGER,
                trades_ratio REAL,
                extra_json TEXT
            )
            """
        )

        now = datetime.now(UTC).isoformat()
        for row in rows:
            cur.execute(
                """
                INSERT INTO optimization_results(
                    run_id, created_at, symbol, strategy, side, exit, returns, risk_adjusted,
                    risk_adjusted_min, risk_adjusted_recent, max_drawdown, trades, trades_ratio, extra_json
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    run_id,
                    now,
                    *(row.get(column) for column in _COLUMNS),
                    json.dumps({key: value for key, value in row.items() if key not in _COLUMNS}),
                ),
            )
        conn.commit()
    finally:
        conn.close()
    return len(rows)


def load_optimization_rows(db_path: str, run_id: str) -> list[dict[str, Any]]:
    conn = sqlite3.connect(db_path)
    try:
        conn.row_factory = sqlite3.Row
        cursor = conn.execute(
            "SELECT * FROM optimization_results WHERE run_id = ? ORDER BY id", (run_id,)
        )
        rows = []
        for item in cursor.fetchall():
            row = {column: item[column] for column in _COLUMNS}
            row.update(json.loads(item["extra_json"] or "{}"))
            rows.append(row)
        return rows
    finally:
        conn.close()
