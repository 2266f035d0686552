"""Pydantic schemas for the interview and chat HTTP API."""
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from interview_chat.models import ChatMessage, ChatSession, Evaluation, Interview, MessageType, SessionStatus


class CreateInterviewReq(BaseModel):
    candidate_name: str = ""
    questions: List[str] = Field(default_factory=list)
    interview_language: Optional[str] = None
    interview_type: Optional[str] = None
    job_title: Optional[str] = None
    job_description: Optional[str] = None


class StartChatReq(BaseModel):
    interview_language: Optional[str] = None


class SendMessageReq(BaseModel):
    message: str = ""


class SubmitEvaluationReq(BaseModel):
    interview_id: str = ""
    answers: Dict[str, str] = Field(default_factory=dict)


class InterviewResp(BaseModel):
    id: str
    candidate_name: str
    questions: List[str]
    language: str
    status: str
    interview_type: str
    job_title: Optional[str] = None
    job_description: Optional[str] = None
    created_at: datetime

    @classmethod
    def of(cls, interview: Interview) -> "InterviewResp":
        return cls.model_validate(interview, from_attributes=True)


class ListInterviewsResp(BaseModel):
    interviews: List[InterviewResp]
    total: int


class ChatMessageResp(BaseModel):
    id: str
    type: MessageType
    content: str
    timestamp: datetime

    @classmethod
    def of(cls, message: ChatMessage) -> "ChatMessageResp":
        return cls.model_validate(message, from_attributes=True)


class ChatSessionResp(BaseModel):
    id: str
    interview_id: str
    language: str
    status: SessionStatus
    messages: List[ChatMessageResp]
    created_at: datetime
    ended_at: Optional[datetime] = None

    @classmethod
    def of(cls, session: ChatSession, messages: List[ChatMessage]) -> "ChatSessionResp":
        return cls(
            id=session.id,
            interview_id=session.interview_id,
            language=session.language,
            status=session.status,
            messages=[ChatMessageResp.of(item) for item in messages],
            created_at=session.created_at,
            ended_at=session.ended_at,
        )


class SendMessageResp(BaseModel):
    message: ChatMessageResp
    ai_response: ChatMessageResp
    session_status: SessionStatus


class EvaluationResp(BaseModel):
    id: str
    interview_id: str
    session_id: Optional[str] = None
    answers: Dict[str, str]
    score: float
    feedback: str
    created_at: datetime

    @classmethod
    def of(cls, evaluation: Evaluation) -> "EvaluationResp":
        return cls.model_validate(evaluation, from_attributes=True)


class ErrorResp(BaseModel):
    error: str
    details: Optional[str] = None


class HealthResp(BaseModel):
    status: str = "ok"
    store_backend: str
    ai_provider: str
