"""Interview records and direct answer submission."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, List, Optional

from observability import log_event

from .collaborators import Evaluator, checked_outcome
from .errors import InvalidInputError
from .models import (
    DEFAULT_LANGUAGE,
    Evaluation,
    Interview,
    ListInterviewsOptions,
    ListInterviewsResult,
    SUPPORTED_LANGUAGES,
    TurnContext,
    is_supported_language,
)
from .orchestrator import DEFAULT_JOB_TITLE
from .runner import CollaboratorRunner
from .transcript import align_answers

if TYPE_CHECKING:
    from storage.base import ConversationStore


logger = logging.getLogger(__name__)


class InterviewService:
    """CRUD for interviews plus evaluation of answers submitted without a chat."""

    def __init__(
        self,
        store: ConversationStore,
        evaluator: Evaluator,
        *,
        runner: Optional[CollaboratorRunner] = None,
        default_language: str = DEFAULT_LANGUAGE,
        default_job_title: str = DEFAULT_JOB_TITLE,
    ) -> None:
        self._store = store
        self._evaluator = evaluator
        self._runner = runner or CollaboratorRunner()
        self._default_language = default_language
        self._default_job_title = default_job_title

    def create_interview(
        self,
        candidate_name: str,
        questions: List[str],
        *,
        language: Optional[str] = None,
        interview_type: Optional[str] = None,
        job_title: Optional[str] = None,
        job_description: Optional[str] = None,
    ) -> Interview:
        name = (candidate_name or "").strip()
        prompts = [item.strip() for item in questions or [] if item and item.strip()]
        if not name or not prompts:
            raise InvalidInputError("Missing candidate_name or questions")
        if language and not is_supported_language(language):
            raise InvalidInputError(
                "Invalid language code",
                details=f"Supported languages: {', '.join(SUPPORTED_LANGUAGES)}",
            )
        interview = Interview(
            candidate_name=name,
            questions=prompts,
            language=language or self._default_language,
            interview_type=(interview_type or "general").strip() or "general",
            job_title=job_title,
            job_description=job_description,
        )
        self._store.create_interview(interview)
        logger.info("Created interview %s for %s", interview.id, interview.candidate_name)
        return interview

    def get_interview(self, interview_id: str) -> Interview:
        return self._store.get_interview(interview_id)

    def list_interviews(self, opts: ListInterviewsOptions) -> ListInterviewsResult:
        return self._store.list_interviews(opts)

    def submit_evaluation(self, interview_id: str, answers: Dict[str, str]) -> Evaluation:
        """Score answers keyed ``question_<i>`` against the interview's questions."""

        if not interview_id or not answers:
            raise InvalidInputError("Missing interview_id or answers")
        interview = self._store.get_interview(interview_id)
        ctx = TurnContext(
            session_id=f"direct:{interview.id}",
            interview_type=interview.interview_type,
            job_title=interview.job_title or self._default_job_title,
            job_description=interview.job_description or f"Interview for {interview.candidate_name} position",
            language=interview.language,
            questions=list(interview.questions),
        )
        aligned = align_answers(interview.questions, answers)
        outcome = self._runner.run("evaluate", ctx.session_id, self._evaluator.evaluate, interview.questions, aligned, ctx)
        score, feedback = checked_outcome(outcome)
        evaluation = self._store.create_evaluation(
            Evaluation(interview_id=interview.id, answers=dict(answers), score=score, feedback=feedback)
        )
        log_event(
            "evaluation_created",
            ctx.session_id,
            interview_id=interview.id,
            evaluation_id=evaluation.id,
            score=evaluation.score,
        )
        return evaluation

    def get_evaluation(self, evaluation_id: str) -> Evaluation:
        return self._store.get_evaluation(evaluation_id)


__all__ = ["InterviewService"]
