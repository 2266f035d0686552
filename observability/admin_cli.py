"""Lightweight CLI helpers for inspecting chat sessions and evaluations."""
from __future__ import annotations

import argparse
import sqlite3
from typing import List, Optional

from config.settings import settings


def tail_sessions(limit: int = 20, db_path: Optional[str] = None) -> List[str]:
    conn = sqlite3.connect(db_path or settings.DB_PATH)
    try:
        cursor = conn.cursor()
        cursor.execute(
            """
            SELECT s.created_at, s.id, s.interview_id, s.language, s.status, s.ended_at,
                   (SELECT COUNT(*) FROM chat_messages m WHERE m.session_id = s.id AND m.type = 'user')
            FROM chat_sessions s
            ORDER BY s.created_at DESC
            LIMIT ?
            """,
            (limit,),
        )
        lines = []
        for row in cursor.fetchall():
            ts, session_id, interview_id, language, status, ended_at, user_messages = row
            lines.append(
                f"[{ts}] {session_id} interview={interview_id} lang={language} status={status}"
                f" user_messages={user_messages} ended={ended_at or '-'}"
            )
        return lines
    finally:
        conn.close()


def tail_evaluations(limit: int = 20, db_path: Optional[str] = None) -> List[str]:
    conn = sqlite3.connect(db_path or settings.DB_PATH)
    try:
        cursor = conn.cursor()
        cursor.execute(
            """
            SELECT created_at, id, interview_id, session_id, score, feedback
            FROM evaluations
            ORDER BY created_at DESC
            LIMIT ?
            """,
            (limit,),
        )
        lines = []
        for row in cursor.fetchall():
            ts, evaluation_id, interview_id, session_id, score, feedback = row
            summary = " ".join((feedback or "").split())[:80]
            lines.append(
                f"[{ts}] {evaluation_id} interview={interview_id} session={session_id or 'direct'}"
                f" score={score:.2f} feedback={summary}"
            )
        return lines
    finally:
        conn.close()


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", help="SQLite database path (defaults to DB_PATH)")
    parser.add_argument("--tail-sessions", type=int, help="Show the latest chat sessions")
    parser.add_argument("--tail-evaluations", type=int, help="Show the latest evaluations")
    args = parser.parse_args(argv)

    if args.tail_sessions:
        for line in tail_sessions(args.tail_sessions, args.db):
            print(line)
    if args.tail_evaluations:
        for line in tail_evaluations(args.tail_evaluations, args.db):
            print(line)


if __name__ == "__main__":
    main()
