"""In-memory conversation store used for development and tests."""
from __future__ import annotations

import threading
from datetime import datetime
from typing import Dict, List, Optional

from interview_chat.errors import InvalidStateError, NotFoundError
from interview_chat.models import (
    ChatMessage,
    ChatSession,
    Evaluation,
    Interview,
    ListInterviewsOptions,
    ListInterviewsResult,
    SessionStatus,
    can_transition,
    utcnow,
)

from .base import apply_list_options


class MemoryConversationStore:
    """Dict-backed store; one re-entrant lock makes every operation atomic."""

    backend = "memory"

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._interviews: Dict[str, Interview] = {}
        self._sessions: Dict[str, ChatSession] = {}
        self._messages: Dict[str, List[ChatMessage]] = {}
        self._evaluations: Dict[str, Evaluation] = {}
        self._session_evaluations: Dict[str, str] = {}

    # Interviews

    def create_interview(self, interview: Interview) -> Interview:
        with self._lock:
            self._interviews[interview.id] = interview.model_copy(deep=True)
        return interview

    def get_interview(self, interview_id: str) -> Interview:
        with self._lock:
            interview = self._interviews.get(interview_id)
            if interview is None:
                raise NotFoundError("Interview not found", details=interview_id)
            return interview.model_copy(deep=True)

    def list_interviews(self, opts: ListInterviewsOptions) -> ListInterviewsResult:
        with self._lock:
            snapshot = [item.model_copy(deep=True) for item in self._interviews.values()]
        return apply_list_options(snapshot, opts)

    # Sessions

    def create_session(self, session: ChatSession) -> ChatSession:
        with self._lock:
            if session.interview_id not in self._interviews:
                raise NotFoundError("Interview not found", details=session.interview_id)
            self._sessions[session.id] = session.model_copy(deep=True)
            self._messages[session.id] = []
        return session

    def get_session(self, session_id: str) -> ChatSession:
        with self._lock:
            return self._require_session(session_id).model_copy(deep=True)

    def update_session_status(
        self,
        session_id: str,
        status: SessionStatus,
        *,
        ended_at: Optional[datetime] = None,
    ) -> ChatSession:
        with self._lock:
            current = self._require_session(session_id)
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
            self._sessions[session_id] = updated
            return updated.model_copy(deep=True)

    # Messages

    def append_message(self, message: ChatMessage) -> ChatMessage:
        with self._lock:
            self._require_session(message.session_id)
            self._messages[message.session_id].append(message.model_copy(deep=True))
        return message

    def list_messages(self, session_id: str) -> List[ChatMessage]:
        with self._lock:
            self._require_session(session_id)
            return [message.model_copy(deep=True) for message in self._messages[session_id]]

    # Evaluations

    def create_evaluation(self, evaluation: Evaluation) -> Evaluation:
        with self._lock:
            self._evaluations[evaluation.id] = evaluation.model_copy(deep=True)
            if evaluation.session_id:
                self._session_evaluations[evaluation.session_id] = evaluation.id
        return evaluation

    def get_evaluation(self, evaluation_id: str) -> Evaluation:
        with self._lock:
            evaluation = self._evaluations.get(evaluation_id)
            if evaluation is None:
                raise NotFoundError("Evaluation not found", details=evaluation_id)
            return evaluation.model_copy(deep=True)

    def find_session_evaluation(self, session_id: str) -> Optional[Evaluation]:
        with self._lock:
            evaluation_id = self._session_evaluations.get(session_id)
            if evaluation_id is None:
                return None
            return self._evaluations[evaluation_id].model_copy(deep=True)

    def close(self) -> None:
        with self._lock:
            self._interviews.clear()
            self._sessions.clear()
            self._messages.clear()
            self._evaluations.clear()
            self._session_evaluations.clear()

    def _require_session(self, session_id: str) -> ChatSession:
        session = self._sessions.get(session_id)
        if session is None:
            raise NotFoundError("Chat session not found", details=session_id)
        return session


__all__ = ["MemoryConversationStore"]
