from __future__ import annotations  # Contracts for the AI generation and evaluation capabilities

import math
from typing import Mapping, Protocol, Sequence

from pydantic import BaseModel, ValidationError

from .errors import UpstreamError
from .models import HistoryTurn, TurnContext


class EvaluationOutcome(BaseModel):  # Raw evaluator result before clamping
    score: float
    feedback: str


class ResponseGenerator(Protocol):  # Produces interviewer turns
    def generate_greeting(self, ctx: TurnContext) -> str: ...

    def generate_reply(self, history: Sequence[HistoryTurn], user_input: str, ctx: TurnContext) -> str: ...

    def generate_closing(self, history: Sequence[HistoryTurn], user_input: str, ctx: TurnContext) -> str: ...


class Evaluator(Protocol):  # Scores a set of question/answer pairs
    def evaluate(
        self,
        questions: Sequence[str],
        answers: Mapping[str, str],
        ctx: TurnContext,
    ) -> EvaluationOutcome: ...


def clamp_score(value: float) -> float:  # Force collaborator scores into [0, 1]
    if value is None or math.isnan(value):
        return 0.0
    return max(0.0, min(1.0, float(value)))


def checked_outcome(outcome: object) -> tuple[float, str]:  # Validate an evaluator result, then clamp its score
    try:
        parsed = EvaluationOutcome.model_validate(outcome, from_attributes=True)
    except ValidationError as exc:
        raise UpstreamError("Evaluator returned an invalid result", details=str(exc)) from exc
    return clamp_score(parsed.score), parsed.feedback


__all__ = ["EvaluationOutcome", "Evaluator", "ResponseGenerator", "checked_outcome", "clamp_score"]
