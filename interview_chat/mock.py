from __future__ import annotations  # Deterministic collaborators for tests, CI and offline demos

from typing import Mapping, Optional, Sequence

from .collaborators import EvaluationOutcome
from .models import HistoryTurn, TurnContext


MOCK_REPLIES = (  # Interviewer replies cycled by conversation length
    "[MOCK] Thank you for sharing that information. Can you tell me more about your experience with software development and the technologies you've worked with?",
    "[MOCK] That's interesting. How do you approach problem-solving when faced with complex technical challenges?",
    "[MOCK] I appreciate your detailed response. Could you walk me through a specific project where you demonstrated leadership skills?",
    "[MOCK] Thank you for the explanation. What motivates you in your professional work, and how do you stay updated with industry trends?",
    "[MOCK] That's a great example. How do you handle working under pressure and tight deadlines?",
    "[MOCK] I see. Can you describe a situation where you had to collaborate with cross-functional teams?",
    "[MOCK] Thank you for sharing your experience. What are your career goals for the next few years?",
)

MOCK_GREETINGS = {
    "en": "[MOCK] Hello, and welcome to your {job_title} interview. Let's begin. {opening}",
    "zh-TW": "[MOCK] 您好，歡迎參加 {job_title} 職位的面試。我們開始吧。{opening}",
}

MOCK_CLOSINGS = {
    "en": "[MOCK] That concludes our interview. Thank you for your time and thoughtful responses throughout our conversation.",
    "zh-TW": "[MOCK] 面試到此結束。感謝您撥冗參與，也謝謝您在整個對話中的用心回答。",
}

DEFAULT_OPENING = {
    "en": "Could you start by telling me a little about yourself?",
    "zh-TW": "可以先請您簡單介紹一下自己嗎？",
}

FIXED_FEEDBACK = "[MOCK] Solid answers overall. Consider adding more specific examples to support your points."
EMPTY_FEEDBACK = "No answers provided."


class ScriptedResponseGenerator:
    """Canned interviewer turns; the reply depends only on the history length."""

    def __init__(self, replies: Sequence[str] = MOCK_REPLIES) -> None:
        if not replies:
            raise ValueError("replies must not be empty")
        self._replies = tuple(replies)

    def generate_greeting(self, ctx: TurnContext) -> str:
        language = _lang(ctx.language)
        opening = ctx.questions[0] if ctx.questions else DEFAULT_OPENING[language]
        return MOCK_GREETINGS[language].format(job_title=ctx.job_title, opening=opening)

    def generate_reply(self, history: Sequence[HistoryTurn], user_input: str, ctx: TurnContext) -> str:
        return self._replies[len(history) % len(self._replies)]

    def generate_closing(self, history: Sequence[HistoryTurn], user_input: str, ctx: TurnContext) -> str:
        return MOCK_CLOSINGS[_lang(ctx.language)]


class FixedScoreEvaluator:  # Always returns the configured score unless nothing was answered
    def __init__(self, score: float = 0.8, feedback: str = FIXED_FEEDBACK) -> None:
        self.score = score
        self.feedback = feedback

    def evaluate(
        self,
        questions: Sequence[str],
        answers: Mapping[str, str],
        ctx: Optional[TurnContext] = None,
    ) -> EvaluationOutcome:
        if not any((text or "").strip() for text in answers.values()):
            return EvaluationOutcome(score=0.0, feedback=EMPTY_FEEDBACK)
        return EvaluationOutcome(score=self.score, feedback=self.feedback)


def _lang(code: str) -> str:
    return code if code in MOCK_CLOSINGS else "en"


__all__ = ["FixedScoreEvaluator", "MOCK_CLOSINGS", "MOCK_REPLIES", "ScriptedResponseGenerator"]
