import os
import sys
import tempfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from fastapi.testclient import TestClient

from api.deps import Services
from api_server import create_app
from config.settings import settings
from interview_chat import (
    ChatSessionOrchestrator,
    CollaboratorRunner,
    FixedScoreEvaluator,
    InterviewService,
    MessageCountPolicy,
    ScriptedResponseGenerator,
)
from storage import MemoryConversationStore, SqliteConversationStore
from storage.migrate import migrate


@pytest.fixture(autouse=True)
def tmp_db(monkeypatch):
    td = tempfile.TemporaryDirectory()
    db_path = os.path.join(td.name, "test.db")
    monkeypatch.setattr(settings, "DB_PATH", db_path, raising=False)
    migrate(db_path)
    try:
        yield db_path
    finally:
        td.cleanup()


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_db):
    if request.param == "sqlite":
        backend = SqliteConversationStore(tmp_db)
    else:
        backend = MemoryConversationStore()
    yield backend
    backend.close()


@pytest.fixture
def memory_store():
    return MemoryConversationStore()


@pytest.fixture
def runner():
    pool = CollaboratorRunner(timeout_s=5.0)
    yield pool
    pool.close()


@pytest.fixture
def generator():
    return ScriptedResponseGenerator()


@pytest.fixture
def evaluator():
    return FixedScoreEvaluator(score=0.8, feedback="Good answers.")


@pytest.fixture
def orchestrator(memory_store, generator, evaluator, runner):
    return ChatSessionOrchestrator(memory_store, generator, evaluator, MessageCountPolicy(8), runner=runner)


@pytest.fixture
def interviews(memory_store, evaluator, runner):
    return InterviewService(memory_store, evaluator, runner=runner)


@pytest.fixture
def interview(interviews):
    return interviews.create_interview("Ada Lovelace", ["Tell me about yourself."])


@pytest.fixture
def services(memory_store, interviews, orchestrator):
    return Services(store=memory_store, interviews=interviews, orchestrator=orchestrator, ai_provider="mock")


@pytest.fixture
def client(services):
    with TestClient(create_app(services)) as test_client:
        yield test_client
