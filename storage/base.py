"""Storage contract for interviews, chat sessions, messages and evaluations."""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Protocol

from interview_chat.models import (
    ChatMessage,
    ChatSession,
    Evaluation,
    Interview,
    ListInterviewsOptions,
    ListInterviewsResult,
    SessionStatus,
)


class ConversationStore(Protocol):
    """Persistence used by the chat orchestrator.

    Lookups raise ``NotFoundError`` for unknown ids. Messages are returned in
    insertion order. ``update_session_status`` rejects transitions out of a
    terminal status with ``InvalidStateError``.
    """

    backend: str

    def create_interview(self, interview: Interview) -> Interview: ...

    def get_interview(self, interview_id: str) -> Interview: ...

    def list_interviews(self, opts: ListInterviewsOptions) -> ListInterviewsResult: ...

    def create_session(self, session: ChatSession) -> ChatSession: ...

    def get_session(self, session_id: str) -> ChatSession: ...

    def update_session_status(
        self,
        session_id: str,
        status: SessionStatus,
        *,
        ended_at: Optional[datetime] = None,
    ) -> ChatSession: ...

    def append_message(self, message: ChatMessage) -> ChatMessage: ...

    def list_messages(self, session_id: str) -> List[ChatMessage]: ...

    def create_evaluation(self, evaluation: Evaluation) -> Evaluation: ...

    def get_evaluation(self, evaluation_id: str) -> Evaluation: ...

    def find_session_evaluation(self, session_id: str) -> Optional[Evaluation]: ...

    def close(self) -> None: ...


def _matches(interview: Interview, opts: ListInterviewsOptions) -> bool:
    if opts.candidate_name and opts.candidate_name.lower() not in interview.candidate_name.lower():
        return False
    if opts.status and interview.status != opts.status:
        return False
    created = interview.created_at.date()
    if opts.date_from and created < opts.date_from:
        return False
    if opts.date_to and created > opts.date_to:
        return False
    return True


def apply_list_options(interviews: Iterable[Interview], opts: ListInterviewsOptions) -> ListInterviewsResult:
    """Filter, sort and paginate interviews held in insertion order."""

    indexed = [(seq, item) for seq, item in enumerate(interviews) if _matches(item, opts)]
    if opts.sort_by == "name":
        indexed.sort(key=lambda pair: (pair[1].candidate_name.casefold(), pair[0]))
    else:
        indexed.sort(key=lambda pair: (pair[1].created_at, pair[0]))
    if opts.sort_order == "desc":
        indexed.reverse()
    start = opts.effective_offset()
    window = indexed[start:start + opts.limit]
    return ListInterviewsResult(interviews=[item for _, item in window], total=len(indexed))


__all__ = ["ConversationStore", "apply_list_options"]
