"""SQLite schema migrations."""
from __future__ import annotations

import os
import sqlite3
from typing import Iterable

SCHEMA: Iterable[str] = [
    """
CREATE TABLE IF NOT EXISTS interviews (
  seq INTEGER PRIMARY KEY AUTOINCREMENT,
  id TEXT NOT NULL UNIQUE,
  candidate_name TEXT NOT NULL,
  questions_json TEXT NOT NULL,
  language TEXT NOT NULL,
  status TEXT NOT NULL DEFAULT 'draft',
  interview_type TEXT NOT NULL DEFAULT 'general',
  job_title TEXT,
  job_description TEXT,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
""",
    """
CREATE TABLE IF NOT EXISTS chat_sessions (
  id TEXT PRIMARY KEY,
  interview_id TEXT NOT NULL,
  language TEXT NOT NULL,
  status TEXT NOT NULL DEFAULT 'active',
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  ended_at TEXT,
  FOREIGN KEY(interview_id) REFERENCES interviews(id)
);
""",
    """
CREATE TABLE IF NOT EXISTS chat_messages (
  seq INTEGER PRIMARY KEY AUTOINCREMENT,
  id TEXT NOT NULL UNIQUE,
  session_id TEXT NOT NULL,
  type TEXT NOT NULL,
  content TEXT NOT NULL,
  timestamp TEXT NOT NULL,
  created_at TEXT NOT NULL,
  FOREIGN KEY(session_id) REFERENCES chat_sessions(id)
);
""",
    """
CREATE TABLE IF NOT EXISTS evaluations (
  id TEXT PRIMARY KEY,
  interview_id TEXT NOT NULL,
  session_id TEXT,
  answers_json TEXT NOT NULL,
  score REAL NOT NULL,
  feedback TEXT NOT NULL,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL,
  FOREIGN KEY(interview_id) REFERENCES interviews(id)
);
""",
    "CREATE INDEX IF NOT EXISTS idx_chat_sessions_interview ON chat_sessions(interview_id);",
    "CREATE INDEX IF NOT EXISTS idx_chat_messages_session ON chat_messages(session_id, seq);",
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_evaluations_session ON evaluations(session_id) WHERE session_id IS NOT NULL;",
]


def migrate(db_path: str = "data/interview.db") -> None:
    """Apply schema migrations to the SQLite database."""

    directory = os.path.dirname(db_path) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path)
    try:
        cur = conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)
        conn.commit()
    finally:
        conn.close()


if __name__ == "__main__":
    from config.settings import settings

    migrate(settings.DB_PATH)
