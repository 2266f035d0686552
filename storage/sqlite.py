"""SQLite-backed conversation store."""
from __future__ import annotations

import json
import logging
import os
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timedelta
from typing import Any, Iterator, List, Optional

from interview_chat.errors import InvalidStateError, NotFoundError, StorageError
from interview_chat.models import (
    ChatMessage,
    ChatSession,
    Evaluation,
    Interview,
    ListInterviewsOptions,
    ListInterviewsResult,
    MessageType,
    SessionStatus,
    can_transition,
    utcnow,
)

from .migrate import migrate


logger = logging.getLogger(__name__)


def _ts(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


def _day_start(value) -> str:
    return f"{value.isoformat()}T00:00:00"


@contextmanager
def get_conn(db_path: str) -> Iterator[sqlite3.Connection]:
    """Yield a SQLite connection, ensuring the data directory exists."""

    directory = os.path.dirname(db_path) or "."
    os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


class SqliteConversationStore:
    """Persist interviews and chat transcripts in SQLite.

    One connection per operation; a process-wide lock serializes writers so
    read-modify-write status updates stay atomic.
    """

    backend = "sqlite"

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._lock = threading.RLock()
        migrate(db_path)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        with self._lock:
            try:
                with get_conn(self._db_path) as conn:
                    yield conn
            except sqlite3.Error as exc:
                logger.error("SQLite operation failed: %s", exc)
                raise StorageError("Storage operation failed", details=str(exc)) from exc

    # Interviews

    def create_interview(self, interview: Interview) -> Interview:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO interviews (
                    id, candidate_name, questions_json, language, status, interview_type,
                    job_title, job_description, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    interview.id,
                    interview.candidate_name,
                    json.dumps(interview.questions, ensure_ascii=False),
                    interview.language,
                    interview.status,
                    interview.interview_type,
                    interview.job_title,
                    interview.job_description,
                    _ts(interview.created_at),
                    _ts(interview.updated_at),
                ),
            )
        return interview

    def get_interview(self, interview_id: str) -> Interview:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM interviews WHERE id = ?", (interview_id,)).fetchone()
        if row is None:
            raise NotFoundError("Interview not found", details=interview_id)
        return _interview_from_row(row)

    def list_interviews(self, opts: ListInterviewsOptions) -> ListInterviewsResult:
        clauses: List[str] = []
        params: List[Any] = []
        if opts.candidate_name:
            clauses.append("LOWER(candidate_name) LIKE ?")
            params.append(f"%{opts.candidate_name.lower()}%")
        if opts.status:
            clauses.append("status = ?")
            params.append(opts.status)
        if opts.date_from:
            clauses.append("created_at >= ?")
            params.append(_day_start(opts.date_from))
        if opts.date_to:
            clauses.append("created_at < ?")
            params.append(_day_start(opts.date_to + timedelta(days=1)))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        direction = "DESC" if opts.sort_order == "desc" else "ASC"
        if opts.sort_by == "name":
            order = f"candidate_name COLLATE NOCASE {direction}, seq {direction}"
        else:
            order = f"created_at {direction}, seq {direction}"
        with self._connect() as conn:
            total = conn.execute(f"SELECT COUNT(*) FROM interviews {where}", params).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM interviews {where} ORDER BY {order} LIMIT ? OFFSET ?",
                [*params, opts.limit, opts.effective_offset()],
            ).fetchall()
        return ListInterviewsResult(interviews=[_interview_from_row(row) for row in rows], total=int(total))

    # Sessions

    def create_session(self, session: ChatSession) -> ChatSession:
        with self._connect() as conn:
            exists = conn.execute("SELECT 1 FROM interviews WHERE id = ?", (session.interview_id,)).fetchone()
            if exists is None:
                raise NotFoundError("Interview not found", details=session.interview_id)
            conn.execute(
                """
                INSERT INTO chat_sessions (id, interview_id, language, status, created_at, updated_at, ended_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.id,
                    session.interview_id,
                    session.language,
                    session.status.value,
                    _ts(session.created_at),
                    _ts(session.updated_at),
                    _ts(session.ended_at) if session.ended_at else None,
                ),
            )
        return session

    def get_session(self, session_id: str) -> ChatSession:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM chat_sessions WHERE id = ?", (session_id,)).fetchone()
        if row is None:
            raise NotFoundError("Chat session not found", details=session_id)
        return _session_from_row(row)

    def update_session_status(
        self,
        session_id: str,
        status: SessionStatus,
        *,
        ended_at: Optional[datetime] = None,
    ) -> ChatSession:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM chat_sessions WHERE id = ?", (session_id,)).fetchone()
            if row is None:
                raise NotFoundError("Chat session not found", details=session_id)
            current = _session_from_row(row)
            if not can_transition(current.status, status):
                raise InvalidStateError(
                    "Invalid session status transition",
                    details=f"{current.status.value} -> {status.value}",
                )
            updated = current.model_copy(
                update={
                    "status": status,
                    "updated_at": utcnow(),
                    "ended_at": ended_at or current.ended_at,
                }
            )
            conn.execute(
                "UPDATE chat_sessions SET status = ?, updated_at = ?, ended_at = ? WHERE id = ?",
                (
                    updated.status.value,
                    _ts(updated.updated_at),
                    _ts(updated.ended_at) if updated.ended_at else None,
                    session_id,
                ),
            )
        return updated

    # Messages

    def append_message(self, message: ChatMessage) -> ChatMessage:
        with self._connect() as conn:
            exists = conn.execute("SELECT 1 FROM chat_sessions WHERE id = ?", (message.session_id,)).fetchone()
            if exists is None:
                raise NotFoundError("Chat session not found", details=message.session_id)
            conn.execute(
                """
                INSERT INTO chat_messages (id, session_id, type, content, timestamp, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    message.id,
                    message.session_id,
                    message.type.value,
                    message.content,
                    _ts(message.timestamp),
                    _ts(message.created_at),
                ),
            )
        return message

    def list_messages(self, session_id: str) -> List[ChatMessage]:
        with self._connect() as conn:
            exists = conn.execute("SELECT 1 FROM chat_sessions WHERE id = ?", (session_id,)).fetchone()
            if exists is None:
                raise NotFoundError("Chat session not found", details=session_id)
            rows = conn.execute(
                "SELECT * FROM chat_messages WHERE session_id = ? ORDER BY seq ASC",
                (session_id,),
            ).fetchall()
        return [
            ChatMessage(
                id=row["id"],
                session_id=row["session_id"],
                type=MessageType(row["type"]),
                content=row["content"],
                timestamp=datetime.fromisoformat(row["timestamp"]),
                created_at=datetime.fromisoformat(row["created_at"]),
            )
            for row in rows
        ]

    # Evaluations

    def create_evaluation(self, evaluation: Evaluation) -> Evaluation:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO evaluations (
                    id, interview_id, session_id, answers_json, score, feedback, created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    evaluation.id,
                    evaluation.interview_id,
                    evaluation.session_id,
                    json.dumps(evaluation.answers, ensure_ascii=False),
                    evaluation.score,
                    evaluation.feedback,
                    _ts(evaluation.created_at),
                    _ts(evaluation.updated_at),
                ),
            )
        return evaluation

    def get_evaluation(self, evaluation_id: str) -> Evaluation:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM evaluations WHERE id = ?", (evaluation_id,)).fetchone()
        if row is None:
            raise NotFoundError("Evaluation not found", details=evaluation_id)
        return _evaluation_from_row(row)

    def find_session_evaluation(self, session_id: str) -> Optional[Evaluation]:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM evaluations WHERE session_id = ?", (session_id,)).fetchone()
        return _evaluation_from_row(row) if row is not None else None

    def close(self) -> None:  # Connections are per-operation; nothing is held open
        logger.debug("Closing SQLite store at %s", self._db_path)


def _interview_from_row(row: sqlite3.Row) -> Interview:
    return Interview(
        id=row["id"],
        candidate_name=row["candidate_name"],
        questions=json.loads(row["questions_json"]),
        language=row["language"],
        status=row["status"],
        interview_type=row["interview_type"],
        job_title=row["job_title"],
        job_description=row["job_description"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


def _session_from_row(row: sqlite3.Row) -> ChatSession:
    return ChatSession(
        id=row["id"],
        interview_id=row["interview_id"],
        language=row["language"],
        status=SessionStatus(row["status"]),
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
        ended_at=datetime.fromisoformat(row["ended_at"]) if row["ended_at"] else None,
    )


def _evaluation_from_row(row: sqlite3.Row) -> Evaluation:
    return Evaluation(
        id=row["id"],
        interview_id=row["interview_id"],
        session_id=row["session_id"],
        answers=json.loads(row["answers_json"]),
        score=row["score"],
        feedback=row["feedback"],
        created_at=datetime.fromisoformat(row["created_at"]),
        updated_at=datetime.fromisoformat(row["updated_at"]),
    )


__all__ = ["SqliteConversationStore", "get_conn"]
