from __future__ import annotations  # Error taxonomy shared by the orchestrator, stores and API

from typing import Optional


class InterviewServiceError(RuntimeError):  # Base error for interview operations
    def __init__(self, message: str, *, details: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(InterviewServiceError):  # Entity id unknown
    pass


class InvalidInputError(InterviewServiceError):  # Missing/empty field or unsupported enumerated value
    pass


class InvalidStateError(InterviewServiceError):  # Operation not valid for the current session status
    pass


class UpstreamError(InterviewServiceError):  # AI collaborator failed, timed out or returned invalid data
    pass


class StorageError(InterviewServiceError):  # Persistence failure
    pass


__all__ = [
    "InterviewServiceError",
    "InvalidInputError",
    "InvalidStateError",
    "NotFoundError",
    "StorageError",
    "UpstreamError",
]
