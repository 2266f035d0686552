"""Conversation projections shared by every evaluation and reply path."""
from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from .models import ChatMessage, HistoryTurn, MessageType


def answer_key(index: int) -> str:
    return f"question_{index}"


def count_user_messages(messages: Sequence[ChatMessage]) -> int:
    return sum(1 for message in messages if message.type == MessageType.USER)


def build_history(messages: Sequence[ChatMessage], *, exclude_id: str | None = None) -> List[HistoryTurn]:
    """Project persisted messages to (role, content) turns, keeping insertion order.

    ``exclude_id`` drops the message that is being answered so it is not sent
    to the generator twice.
    """

    return [
        HistoryTurn(role=message.type.value, content=message.content)
        for message in messages
        if message.id != exclude_id
    ]


def reconstruct_qa(messages: Sequence[ChatMessage]) -> Tuple[List[str], Dict[str, str]]:
    """Split a transcript into interviewer questions and keyed candidate answers.

    Every AI message is a question. Every user message becomes
    ``question_<k>`` where ``k`` counts user messages seen so far.
    """

    questions: List[str] = []
    answers: Dict[str, str] = {}
    for message in messages:
        if message.type == MessageType.AI:
            questions.append(message.content)
        elif message.type == MessageType.USER:
            answers[answer_key(len(answers))] = message.content
    return questions, answers


def align_answers(questions: Sequence[str], submitted: Dict[str, str]) -> Dict[str, str]:
    """Key submitted answers by interview question index; gaps become empty strings."""

    return {answer_key(index): submitted.get(answer_key(index), "") for index in range(len(questions))}


__all__ = [
    "answer_key",
    "align_answers",
    "build_history",
    "count_user_messages",
    "reconstruct_qa",
]
