from __future__ import annotations  # Chat session state machine and evaluation pipeline

import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Callable, Dict, Iterator, Optional, Sequence

from observability import log_event

from .collaborators import Evaluator, ResponseGenerator, checked_outcome
from .errors import InterviewServiceError, InvalidInputError, InvalidStateError, UpstreamError
from .models import (
    DEFAULT_LANGUAGE,
    ChatMessage,
    ChatSession,
    Evaluation,
    HistoryTurn,
    Interview,
    MessageType,
    SendResult,
    SessionStatus,
    SessionView,
    TurnContext,
    is_supported_language,
    utcnow,
)
from .policy import EndOfInterviewPolicy, MessageCountPolicy
from .runner import CollaboratorRunner
from .transcript import build_history, count_user_messages, reconstruct_qa

if TYPE_CHECKING:
    from storage.base import ConversationStore


logger = logging.getLogger(__name__)

DEFAULT_JOB_TITLE = "Software Engineer"


class SessionLocks:  # One lock per session id, created lazily under a guard
    def __init__(self) -> None:
        self._locks: Dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    def lock_for(self, session_id: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(session_id)
            if lock is None:
                lock = threading.Lock()
                self._locks[session_id] = lock
        return lock

    @contextmanager
    def hold(self, session_id: str) -> Iterator[None]:
        with self.lock_for(session_id):
            yield


class ChatSessionOrchestrator:
    """Own the chat session lifecycle: start, exchange, end and evaluate.

    Operations on one session are serialized by a per-session lock. The
    user's message is persisted before the generator is called, so a failed
    or timed-out reply never loses candidate input.
    """

    def __init__(
        self,
        store: ConversationStore,
        generator: ResponseGenerator,
        evaluator: Evaluator,
        policy: Optional[EndOfInterviewPolicy] = None,
        *,
        runner: Optional[CollaboratorRunner] = None,
        default_language: str = DEFAULT_LANGUAGE,
        default_job_title: str = DEFAULT_JOB_TITLE,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._store = store
        self._generator = generator
        self._evaluator = evaluator
        self._policy = policy or MessageCountPolicy()
        self._runner = runner or CollaboratorRunner()
        self._default_language = default_language
        self._default_job_title = default_job_title
        self._clock = clock
        self._locks = SessionLocks()

    @property
    def policy(self) -> EndOfInterviewPolicy:
        return self._policy

    def start_session(self, interview_id: str, language: Optional[str] = None) -> SessionView:
        interview = self._store.get_interview(interview_id)
        session = ChatSession(
            interview_id=interview.id,
            language=self._resolve_language(language, interview.language),
        )
        self._store.create_session(session)
        log_event("session_started", session.id, interview_id=interview.id, status=session.status.value)

        with self._locks.hold(session.id):
            ctx = self._context(interview, session)
            try:
                greeting = self._runner.run("greeting", session.id, self._generator.generate_greeting, ctx)
                greeting = _require_text(greeting, "greeting")
            except UpstreamError:
                # A session without its opening message is unusable.
                self._store.update_session_status(session.id, SessionStatus.ABANDONED, ended_at=self._clock())
                log_event("session_abandoned", session.id, interview_id=interview.id, status="abandoned")
                raise
            self._append(session.id, MessageType.AI, greeting)
            return SessionView(session=session, messages=self._store.list_messages(session.id))

    def send_message(self, session_id: str, text: str) -> SendResult:
        if text is None or not text.strip():
            raise InvalidInputError("Message cannot be empty")

        with self._locks.hold(session_id):
            session = self._store.get_session(session_id)
            if session.status != SessionStatus.ACTIVE:
                raise InvalidStateError("Chat session is not active", details=session.status.value)
            interview = self._store.get_interview(session.interview_id)

            user_message = self._append(session_id, MessageType.USER, text)
            messages = self._store.list_messages(session_id)
            user_count = count_user_messages(messages)
            closing = self._policy.should_end(user_count)
            history = build_history(messages, exclude_id=user_message.id)
            ctx = self._context(interview, session, closing=closing)

            reply = self._generate_turn(session_id, history, text, ctx)
            ai_message = self._append(session_id, MessageType.AI, reply)

            status = session.status
            if closing:
                status = self._complete_after_closing(session_id, fallback=status)
            log_event(
                "message_exchanged",
                session_id,
                interview_id=session.interview_id,
                user_messages=user_count,
                closing=closing,
                status=status.value,
            )
            return SendResult(user_message=user_message, ai_message=ai_message, session_status=status)

    def get_session(self, session_id: str) -> SessionView:
        session = self._store.get_session(session_id)
        return SessionView(session=session, messages=self._store.list_messages(session_id))

    def end_session(self, session_id: str) -> Evaluation:
        with self._locks.hold(session_id):
            session = self._store.get_session(session_id)
            if session.status == SessionStatus.ABANDONED:
                raise InvalidStateError("Chat session was abandoned", details=session.status.value)
            if session.status == SessionStatus.COMPLETED:
                existing = self._store.find_session_evaluation(session_id)
                if existing is not None:
                    logger.info("Session %s already evaluated as %s", session_id, existing.id)
                    return existing

            interview = self._store.get_interview(session.interview_id)
            questions, answers = reconstruct_qa(self._store.list_messages(session_id))
            ctx = self._context(interview, session)
            outcome = self._runner.run("evaluate", session_id, self._evaluator.evaluate, questions, answers, ctx)
            score, feedback = checked_outcome(outcome)

            if session.status == SessionStatus.ACTIVE:
                self._store.update_session_status(session_id, SessionStatus.COMPLETED, ended_at=self._clock())
                log_event("session_completed", session_id, interview_id=interview.id, status="completed")

            evaluation = self._store.create_evaluation(
                Evaluation(
                    interview_id=session.interview_id,
                    session_id=session_id,
                    answers=answers,
                    score=score,
                    feedback=feedback,
                )
            )
            log_event(
                "evaluation_created",
                session_id,
                interview_id=interview.id,
                evaluation_id=evaluation.id,
                score=evaluation.score,
            )
            return evaluation

    def abandon_session(self, session_id: str) -> SessionView:
        with self._locks.hold(session_id):
            session = self._store.get_session(session_id)
            if session.status != SessionStatus.ACTIVE:
                raise InvalidStateError("Chat session is not active", details=session.status.value)
            updated = self._store.update_session_status(session_id, SessionStatus.ABANDONED, ended_at=self._clock())
            log_event("session_abandoned", session_id, interview_id=session.interview_id, status="abandoned")
            return SessionView(session=updated, messages=self._store.list_messages(session_id))

    def close(self) -> None:
        self._runner.close()

    def _generate_turn(
        self,
        session_id: str,
        history: Sequence[HistoryTurn],
        text: str,
        ctx: TurnContext,
    ) -> str:
        if ctx.is_closing_turn:
            reply = self._runner.run("closing", session_id, self._generator.generate_closing, history, text, ctx)
        else:
            reply = self._runner.run("reply", session_id, self._generator.generate_reply, history, text, ctx)
        return _require_text(reply, "closing" if ctx.is_closing_turn else "reply")

    def _complete_after_closing(self, session_id: str, *, fallback: SessionStatus) -> SessionStatus:
        # The closing AI message is already stored; a failed status update is
        # reported but not retried so the reply is never duplicated.
        try:
            updated = self._store.update_session_status(
                session_id,
                SessionStatus.COMPLETED,
                ended_at=self._clock(),
            )
        except InterviewServiceError as exc:
            logger.error("Failed to complete chat session %s: %s", session_id, exc)
            return fallback
        log_event("session_completed", session_id, interview_id=updated.interview_id, status="completed")
        return updated.status

    def _append(self, session_id: str, kind: MessageType, content: str) -> ChatMessage:
        return self._store.append_message(
            ChatMessage(session_id=session_id, type=kind, content=content, timestamp=self._clock())
        )

    def _resolve_language(self, override: Optional[str], interview_language: Optional[str]) -> str:
        if override and is_supported_language(override):
            return override
        if interview_language and is_supported_language(interview_language):
            return interview_language
        return self._default_language

    def _context(self, interview: Interview, session: ChatSession, *, closing: bool = False) -> TurnContext:
        return TurnContext(
            session_id=session.id,
            interview_type=interview.interview_type,
            job_title=interview.job_title or self._default_job_title,
            job_description=interview.job_description or f"Interview for {interview.candidate_name} position",
            language=session.language,
            is_closing_turn=closing,
            questions=list(interview.questions),
        )


def _require_text(value: object, turn: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise UpstreamError(f"AI {turn} was empty", details=repr(value)[:200])
    return value.strip()


__all__ = ["ChatSessionOrchestrator", "DEFAULT_JOB_TITLE", "SessionLocks"]
