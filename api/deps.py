from __future__ import annotations  # Request-scoped access to services built at app start-up

from dataclasses import dataclass

from fastapi import Request

from interview_chat import ChatSessionOrchestrator, InterviewService
from storage import ConversationStore


@dataclass
class Services:  # Everything the routes need; built once per app by build_services()
    store: ConversationStore
    interviews: InterviewService
    orchestrator: ChatSessionOrchestrator
    ai_provider: str

    def close(self) -> None:
        self.orchestrator.close()
        self.store.close()


def get_services(request: Request) -> Services:
    return request.app.state.services
