"""Conversational interview sessions: orchestration, collaborators and evaluation."""
from .collaborators import EvaluationOutcome, Evaluator, ResponseGenerator, checked_outcome, clamp_score
from .errors import (
    InterviewServiceError,
    InvalidInputError,
    InvalidStateError,
    NotFoundError,
    StorageError,
    UpstreamError,
)
from .interviews import InterviewService
from .mock import FixedScoreEvaluator, ScriptedResponseGenerator
from .models import (
    ChatMessage,
    ChatSession,
    Evaluation,
    Interview,
    ListInterviewsOptions,
    ListInterviewsResult,
    MessageType,
    SendResult,
    SessionStatus,
    SessionView,
    TurnContext,
)
from .orchestrator import ChatSessionOrchestrator
from .policy import EndOfInterviewPolicy, MessageCountPolicy
from .runner import CollaboratorRunner

__all__ = [
    "ChatMessage",
    "ChatSession",
    "ChatSessionOrchestrator",
    "CollaboratorRunner",
    "EndOfInterviewPolicy",
    "Evaluation",
    "EvaluationOutcome",
    "Evaluator",
    "FixedScoreEvaluator",
    "Interview",
    "InterviewService",
    "InterviewServiceError",
    "InvalidInputError",
    "InvalidStateError",
    "ListInterviewsOptions",
    "ListInterviewsResult",
    "MessageCountPolicy",
    "MessageType",
    "NotFoundError",
    "ResponseGenerator",
    "ScriptedResponseGenerator",
    "SendResult",
    "SessionStatus",
    "SessionView",
    "StorageError",
    "TurnContext",
    "UpstreamError",
    "checked_outcome",
    "clamp_score",
]
