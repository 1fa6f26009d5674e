"""SQLite database connection and schema management."""

import aiosqlite
from pathlib import Path
from typing import Optional
import json
import logging

logger = logging.getLogger(__name__)


# SQL schema for runs table
RUNS_SCHEMA = """
CREATE TABLE IF NOT EXISTS runs (
    id TEXT PRIMARY KEY,
    project TEXT NOT NULL,
    pattern_type TEXT,
    outcome TEXT,
    total_steps INTEGER DEFAULT 0,
    successful INTEGER DEFAULT 0,
    failed INTEGER DEFAULT 0,
    total_time REAL DEFAULT 0,
    total_tokens INTEGER DEFAULT 0,
    started_at TEXT NOT NULL,
    finished_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_runs_project ON runs(project);
CREATE INDEX IF NOT EXISTS idx_runs_started_at ON runs(started_at);
"""

# SQL schema for step_results table
STEP_RESULTS_SCHEMA = """
CREATE TABLE IF NOT EXISTS step_results (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    run_id TEXT NOT NULL,
    position INTEGER NOT NULL,
    step_id TEXT NOT NULL,
    agent_id TEXT NOT NULL,
    success INTEGER NOT NULL,
    output TEXT,
    error TEXT,
    error_traceback TEXT,
    execution_time REAL DEFAULT 0,
    tokens_input INTEGER,
    tokens_output INTEGER,
    artifact_id TEXT,
    FOREIGN KEY (run_id) REFERENCES runs(id) ON DELETE CASCADE
);

CREATE INDEX IF NOT EXISTS idx_step_results_run_id ON step_results(run_id);
CREATE INDEX IF NOT EXISTS idx_step_results_step_id ON step_results(step_id);
"""


class Database:
    """
    Async SQLite database connection manager.
    
    Provides the connection and schema management for the run history.
    """
    
    def __init__(self, db_path: Path | str = "teamflow.db"):
        self.db_path = Path(db_path)
        self._connection: Optional[aiosqlite.Connection] = None
    
    async def connect(self) -> None:
        """Establish database connection and initialize schema."""
        if self._connection is not None:
            return
        
        # Ensure directory exists
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        
        logger.info(f"Connecting to database: {self.db_path}")
        self._connection = await aiosqlite.connect(
            self.db_path,
            isolation_level=None,  # Autocommit mode
        )
        
        await self._connection.execute("PRAGMA foreign_keys = ON")
        await self._connection.execute("PRAGMA journal_mode = WAL")
        
        await self._init_schema()
        
        logger.info("Database connected and schema initialized")
    
    async def _init_schema(self) -> None:
        """Create tables if they don't exist."""
        await self._connection.executescript(RUNS_SCHEMA)
        await self._connection.executescript(STEP_RESULTS_SCHEMA)
    
    async def close(self) -> None:
        """Close database connection."""
        if self._connection is not None:
            await self._connection.close()
            self._connection = None
            logger.info("Database connection closed")
    
    @property
    def is_connected(self) -> bool:
        return self._connection is not None
    
    @property
    def connection(self) -> aiosqlite.Connection:
        """Get the current connection (raises if not connected)."""
        if self._connection is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._connection
    
    async def execute(self, sql: str, params: tuple = ()) -> aiosqlite.Cursor:
        """Execute a SQL statement."""
        return await self.connection.execute(sql, params)
    
    async def fetch_one(self, sql: str, params: tuple = ()) -> Optional[dict]:
        """Fetch a single row as a dictionary."""
        self.connection.row_factory = aiosqlite.Row
        async with self.connection.execute(sql, params) as cursor:
            row = await cursor.fetchone()
            if row:
                return dict(row)
            return None
    
    async def fetch_all(self, sql: str, params: tuple = ()) -> list[dict]:
        """Fetch all rows as dictionaries."""
        self.connection.row_factory = aiosqlite.Row
        async with self.connection.execute(sql, params) as cursor:
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]


# Utility functions for JSON serialization in SQLite

def serialize_json(data) -> str:
    """Serialize data to JSON string for storage."""
    return json.dumps(data, default=str)


def deserialize_json(data: Optional[str], default=None):
    """Deserialize JSON string from storage."""
    if data is None:
        return default
    try:
        return json.loads(data)
    except json.JSONDecodeError:
        return default
