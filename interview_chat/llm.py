from __future__ import annotations  # LLM-backed interviewer and evaluator built on LangChain prompts

import logging
from textwrap import dedent
from typing import Dict, List, Mapping, Optional, Sequence

from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder
from pydantic import BaseModel, Field

from config import LlmRoute
from llm_gateway import HttpClient, LlmGatewayError, runnable as llm_runnable

from .collaborators import EvaluationOutcome
from .errors import UpstreamError
from .models import HistoryTurn, TurnContext


logger = logging.getLogger(__name__)

INTERVIEWER_GUIDANCE = dedent(  # System instructions for every interviewer turn
    """
    You are a professional interviewer running a {interview_type} interview for a {job_title} role.
    Job description: {job_description}
    Ask one clear question at a time, acknowledge the candidate's previous answer briefly,
    and steer the conversation towards the prepared questions when it drifts.
    Never reveal scores or evaluation notes to the candidate.
    """
).strip()

CLOSING_GUIDANCE = (
    "This is the final message: wrap up the interview professionally and thank the candidate. "
    "Do not ask any further questions."
)

EVALUATOR_GUIDANCE = dedent(
    """
    You are an experienced hiring panel member grading a {interview_type} interview for a {job_title} role.
    Job description: {job_description}
    Score the candidate's answers as a whole on a scale from 0.0 (no evidence) to 1.0 (outstanding).
    Feedback must be specific, cite the answers, and name strengths and areas for improvement.
    """
).strip()

LANGUAGE_INSTRUCTIONS = {
    "en": "Respond in English.",
    "zh-TW": "請使用繁體中文（台灣）回覆。",
}


class InterviewerTurn(BaseModel):  # LLM-enforced interviewer output
    message: str = Field(min_length=1)


class EvaluationReport(BaseModel):  # LLM-enforced evaluator output
    score: float
    feedback: str = Field(min_length=1)
    strengths: List[str] = Field(default_factory=list)
    improvements: List[str] = Field(default_factory=list)


def language_instruction(code: str) -> str:
    return LANGUAGE_INSTRUCTIONS.get(code, LANGUAGE_INSTRUCTIONS["en"])


def history_messages(history: Sequence[HistoryTurn]) -> List[Dict[str, str]]:  # Map stored turns to chat roles
    messages: List[Dict[str, str]] = []
    for turn in history:
        content = turn.content.strip()
        if not content:
            continue
        messages.append({"role": "assistant" if turn.role == "ai" else "user", "content": content})
    return messages


def _numbered(entries: Sequence[str]) -> str:
    lines = [item.strip() for item in entries if item and item.strip()]
    if not lines:
        return "None provided."
    return "\n".join(f"{index + 1}. {line}" for index, line in enumerate(lines))


class LlmResponseGenerator:
    """Produce greeting, reply and closing turns through one LLM route."""

    def __init__(self, route: LlmRoute, *, client: Optional[HttpClient] = None) -> None:
        self._route = route
        self._prompt = ChatPromptTemplate.from_messages(
            [
                ("system", "{instructions}"),
                MessagesPlaceholder("history"),
                (
                    "human",
                    (
                        "Prepared questions:\n{questions}\n\n"
                        "Turn: {turn}\n"
                        "Candidate message: {user_input}\n\n"
                        "Return JSON with a single field `message` holding your next interviewer message."
                    ),
                ),
            ]
        )
        self._chain = self._prompt | llm_runnable(self._route, InterviewerTurn, client=client)

    def generate_greeting(self, ctx: TurnContext) -> str:
        return self._invoke([], "", ctx, turn="greeting: welcome the candidate and ask the first question")

    def generate_reply(self, history: Sequence[HistoryTurn], user_input: str, ctx: TurnContext) -> str:
        return self._invoke(history, user_input, ctx, turn="continue the interview with the next question")

    def generate_closing(self, history: Sequence[HistoryTurn], user_input: str, ctx: TurnContext) -> str:
        return self._invoke(history, user_input, ctx, turn="closing")

    def _invoke(self, history: Sequence[HistoryTurn], user_input: str, ctx: TurnContext, *, turn: str) -> str:
        instructions = INTERVIEWER_GUIDANCE.format(
            interview_type=ctx.interview_type,
            job_title=ctx.job_title,
            job_description=ctx.job_description or "Not provided.",
        )
        if ctx.is_closing_turn:
            instructions += "\n" + CLOSING_GUIDANCE
        instructions += "\n" + language_instruction(ctx.language)
        try:
            result = self._chain.invoke(
                {
                    "instructions": instructions,
                    "history": history_messages(history),
                    "questions": _numbered(ctx.questions),
                    "turn": turn,
                    "user_input": user_input.strip() or "(none)",
                }
            )
        except LlmGatewayError as exc:
            logger.error("Interviewer route %s failed for session %s: %s", self._route.name, ctx.session_id, exc)
            raise UpstreamError("AI response generation failed", details=str(exc)) from exc
        return result.message.strip()


class LlmEvaluator:  # Scores a transcript's question/answer pairs with one LLM call
    def __init__(self, route: LlmRoute, *, client: Optional[HttpClient] = None) -> None:
        self._route = route
        self._prompt = ChatPromptTemplate.from_messages(
            [
                ("system", "{instructions}"),
                (
                    "human",
                    (
                        "Interviewer questions:\n{questions}\n\n"
                        "Candidate answers:\n{answers}\n\n"
                        "Return JSON with score, feedback, strengths and improvements respecting the schema."
                    ),
                ),
            ]
        )
        self._chain = self._prompt | llm_runnable(self._route, EvaluationReport, client=client)

    def evaluate(
        self,
        questions: Sequence[str],
        answers: Mapping[str, str],
        ctx: TurnContext,
    ) -> EvaluationOutcome:
        if not any((text or "").strip() for text in answers.values()):
            return EvaluationOutcome(score=0.0, feedback="No answers provided.")
        instructions = EVALUATOR_GUIDANCE.format(
            interview_type=ctx.interview_type,
            job_title=ctx.job_title,
            job_description=ctx.job_description or "Not provided.",
        )
        instructions += "\n" + language_instruction(ctx.language)
        try:
            report = self._chain.invoke(
                {
                    "instructions": instructions,
                    "questions": _numbered(questions),
                    "answers": "\n".join(f"{key}: {value.strip() or '(no answer)'}" for key, value in answers.items()),
                }
            )
        except LlmGatewayError as exc:
            logger.error("Evaluator route %s failed for session %s: %s", self._route.name, ctx.session_id, exc)
            raise UpstreamError("AI evaluation failed", details=str(exc)) from exc
        return EvaluationOutcome(score=report.score, feedback=_compose_feedback(report))


def _compose_feedback(report: EvaluationReport) -> str:
    parts = [report.feedback.strip()]
    if report.strengths:
        parts.append("Strengths:\n" + "\n".join(f"- {item.strip()}" for item in report.strengths if item.strip()))
    if report.improvements:
        parts.append(
            "Areas for improvement:\n" + "\n".join(f"- {item.strip()}" for item in report.improvements if item.strip())
        )
    return "\n\n".join(parts)


__all__ = [
    "EvaluationReport",
    "InterviewerTurn",
    "LlmEvaluator",
    "LlmResponseGenerator",
    "history_messages",
    "language_instruction",
]
