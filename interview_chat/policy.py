"""End-of-interview strategies consulted after every user message."""
from __future__ import annotations

from typing import Protocol


MAX_USER_MESSAGES = 8


class EndOfInterviewPolicy(Protocol):
    def should_end(self, user_message_count: int) -> bool: ...


class MessageCountPolicy:
    """End the interview once the candidate has sent ``threshold`` messages."""

    def __init__(self, threshold: int = MAX_USER_MESSAGES) -> None:
        if threshold < 1:
            raise ValueError("threshold must be at least 1")
        self.threshold = threshold

    def should_end(self, user_message_count: int) -> bool:
        return user_message_count >= self.threshold

    def __repr__(self) -> str:
        return f"MessageCountPolicy(threshold={self.threshold})"


__all__ = ["EndOfInterviewPolicy", "MAX_USER_MESSAGES", "MessageCountPolicy"]
