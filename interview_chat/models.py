from __future__ import annotations  # Domain models for interviews, chat sessions and evaluations

from datetime import date, datetime, timezone
from enum import Enum
from typing import Dict, List, Literal, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


SUPPORTED_LANGUAGES = ("en", "zh-TW")
DEFAULT_LANGUAGE = "en"


def utcnow() -> datetime:  # Timezone-aware current time
    return datetime.now(timezone.utc)


def new_id() -> str:  # Opaque record identifier
    return uuid4().hex


def is_supported_language(code: Optional[str]) -> bool:
    return code in SUPPORTED_LANGUAGES


def validated_language(code: Optional[str], fallback: str = DEFAULT_LANGUAGE) -> str:
    """Return ``code`` when supported, otherwise ``fallback``."""
    if code and is_supported_language(code):
        return code
    return fallback


class SessionStatus(str, Enum):  # Chat session lifecycle states
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class MessageType(str, Enum):  # Author of a chat message
    USER = "user"
    AI = "ai"


# Legal status transitions; terminal states map to an empty set.
SESSION_TRANSITIONS: Dict[SessionStatus, frozenset] = {
    SessionStatus.ACTIVE: frozenset({SessionStatus.COMPLETED, SessionStatus.ABANDONED}),
    SessionStatus.COMPLETED: frozenset(),
    SessionStatus.ABANDONED: frozenset(),
}


def can_transition(current: SessionStatus, target: SessionStatus) -> bool:
    return current == target or target in SESSION_TRANSITIONS[current]


class Interview(BaseModel):  # Interview definition created by an interviewer
    id: str = Field(default_factory=new_id)
    candidate_name: str
    questions: List[str]
    language: str = DEFAULT_LANGUAGE
    status: Literal["draft", "active", "completed"] = "draft"
    interview_type: str = "general"
    job_title: Optional[str] = None
    job_description: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ChatSession(BaseModel):  # One conversational attempt at an interview
    id: str = Field(default_factory=new_id)
    interview_id: str
    language: str = DEFAULT_LANGUAGE
    status: SessionStatus = SessionStatus.ACTIVE
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    ended_at: Optional[datetime] = None


class ChatMessage(BaseModel):  # Immutable chat message in insertion order
    id: str = Field(default_factory=new_id)
    session_id: str
    type: MessageType
    content: str
    timestamp: datetime
    created_at: datetime = Field(default_factory=utcnow)


class Evaluation(BaseModel):  # Scored evaluation of a set of answers
    id: str = Field(default_factory=new_id)
    interview_id: str
    session_id: Optional[str] = None
    answers: Dict[str, str] = Field(default_factory=dict)
    score: float = Field(ge=0.0, le=1.0)
    feedback: str
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class HistoryTurn(BaseModel):  # Conversation entry handed to the response generator
    role: Literal["user", "ai"]
    content: str


class TurnContext(BaseModel):  # Typed context for collaborator calls
    session_id: str
    interview_type: str = "general"
    job_title: str = "Software Engineer"
    job_description: str = ""
    language: str = DEFAULT_LANGUAGE
    is_closing_turn: bool = False
    questions: List[str] = Field(default_factory=list)


class SessionView(BaseModel):  # Session together with its ordered messages
    session: ChatSession
    messages: List[ChatMessage] = Field(default_factory=list)


class SendResult(BaseModel):  # Outcome of one message exchange
    user_message: ChatMessage
    ai_message: ChatMessage
    session_status: SessionStatus


class ListInterviewsOptions(BaseModel):  # Filter, sort and pagination for interview listings
    limit: int = Field(default=10, ge=0)
    offset: int = Field(default=0, ge=0)
    page: int = Field(default=0, ge=0)
    candidate_name: Optional[str] = None
    status: Optional[str] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    sort_by: Literal["name", "created_at"] = "created_at"
    sort_order: Literal["asc", "desc"] = "desc"

    def effective_offset(self) -> int:
        if self.page > 0:
            return (self.page - 1) * self.limit
        return self.offset


class ListInterviewsResult(BaseModel):
    interviews: List[Interview]
    total: int


__all__ = [
    "ChatMessage",
    "ChatSession",
    "DEFAULT_LANGUAGE",
    "Evaluation",
    "HistoryTurn",
    "Interview",
    "ListInterviewsOptions",
    "ListInterviewsResult",
    "MessageType",
    "SESSION_TRANSITIONS",
    "SUPPORTED_LANGUAGES",
    "SendResult",
    "SessionStatus",
    "SessionView",
    "TurnContext",
    "can_transition",
    "is_supported_language",
    "new_id",
    "utcnow",
    "validated_language",
]
