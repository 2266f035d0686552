from __future__ import annotations

import json

import pytest

from config import LlmRoute
from interview_chat import ChatSessionOrchestrator, ScriptedResponseGenerator, TurnContext, UpstreamError
from interview_chat.llm import LlmEvaluator, LlmResponseGenerator
from interview_chat.models import HistoryTurn, Interview
from llm_gateway import LlmGatewayError, chat
from pydantic import BaseModel


class FakeResponse:
    def __init__(self, status_code: int, payload) -> None:
        self.status_code = status_code
        self._payload = payload
        self.text = json.dumps(payload)

    def json(self):
        return self._payload


class FakeClient:
    """Replays canned chat-completion contents and records every request."""

    def __init__(self, *contents, status_code: int = 200) -> None:
        self._contents = list(contents)
        self.status_code = status_code
        self.requests = []

    def post(self, url, *, json, headers, timeout):
        self.requests.append({"url": url, "json": json, "headers": headers, "timeout": timeout})
        content = self._contents.pop(0) if self._contents else ""
        return FakeResponse(self.status_code, {"choices": [{"message": {"content": content}}]})


def _route(**overrides) -> LlmRoute:
    data = {
        "name": "test",
        "base_url": "http://llm.local",
        "endpoint": "/v1/chat/completions",
        "model": "test-model",
        "timeout_s": 5,
        "max_retries": 1,
    }
    data.update(overrides)
    return LlmRoute(**data)


def _ctx(**overrides) -> TurnContext:
    data = {"session_id": "s1", "job_title": "Platform Engineer", "questions": ["Describe an outage."]}
    data.update(overrides)
    return TurnContext(**data)


def test_reply_sends_history_with_chat_roles():
    client = FakeClient(json.dumps({"message": "  What happened next?  "}))
    generator = LlmResponseGenerator(_route(), client=client)
    history = [HistoryTurn(role="ai", content="Welcome!"), HistoryTurn(role="user", content="Hi")]

    reply = generator.generate_reply(history, "The database fell over", _ctx())

    assert reply == "What happened next?"
    request = client.requests[0]
    assert request["url"] == "http://llm.local/v1/chat/completions"
    assert request["json"]["model"] == "test-model"
    roles = [message["role"] for message in request["json"]["messages"]]
    assert roles == ["system", "system", "assistant", "user", "user"]
    assert "Platform Engineer" in request["json"]["messages"][1]["content"]
    assert "The database fell over" in request["json"]["messages"][-1]["content"]


def test_closing_and_language_instructions_reach_prompt():
    client = FakeClient(json.dumps({"message": "謝謝您"}))
    generator = LlmResponseGenerator(_route(), client=client)

    generator.generate_closing([], "bye", _ctx(language="zh-TW", is_closing_turn=True))

    system = client.requests[0]["json"]["messages"][1]["content"]
    assert "final message" in system
    assert "繁體中文" in system


def test_invalid_output_is_retried_with_hint():
    client = FakeClient("not json", json.dumps({"message": "Second try"}))
    generator = LlmResponseGenerator(_route(max_retries=1), client=client)

    assert generator.generate_greeting(_ctx()) == "Second try"
    assert len(client.requests) == 2
    assert "failed validation" in client.requests[1]["json"]["messages"][-1]["content"]


def test_gateway_failure_becomes_upstream_error():
    generator = LlmResponseGenerator(_route(), client=FakeClient("{}", status_code=503))

    with pytest.raises(UpstreamError):
        generator.generate_greeting(_ctx())


def test_evaluator_parses_report():
    report = {
        "score": 0.75,
        "feedback": "Clear incident narrative.",
        "strengths": ["ownership"],
        "improvements": ["metrics"],
    }
    client = FakeClient("```json\n" + json.dumps(report) + "\n```")
    evaluator = LlmEvaluator(_route(), client=client)

    outcome = evaluator.evaluate(["Describe an outage."], {"question_0": "We lost the primary."}, _ctx())

    assert outcome.score == pytest.approx(0.75)
    assert outcome.feedback.startswith("Clear incident narrative.")
    assert "- ownership" in outcome.feedback
    assert "question_0: We lost the primary." in client.requests[0]["json"]["messages"][-1]["content"]


def test_out_of_range_score_is_clamped_by_the_session(memory_store, runner):
    client = FakeClient(json.dumps({"score": 1.5, "feedback": "Great"}))
    evaluator = LlmEvaluator(_route(max_retries=0), client=client)
    orchestrator = ChatSessionOrchestrator(memory_store, ScriptedResponseGenerator(), evaluator, runner=runner)
    interview = memory_store.create_interview(Interview(candidate_name="Ada", questions=["Describe an outage."]))
    session_id = orchestrator.start_session(interview.id).session.id
    orchestrator.send_message(session_id, "We lost the primary.")

    evaluation = orchestrator.end_session(session_id)

    assert evaluation.score == 1.0
    assert evaluation.feedback.startswith("Great")
    assert len(client.requests) == 1


def test_evaluator_skips_call_without_answers():
    client = FakeClient()
    outcome = LlmEvaluator(_route(), client=client).evaluate(["Q"], {"question_0": " "}, _ctx())

    assert outcome.score == 0.0
    assert client.requests == []


def test_chat_exhausts_retries():
    class Answer(BaseModel):
        value: int

    client = FakeClient("nope", "still nope")

    with pytest.raises(LlmGatewayError):
        chat([{"role": "user", "content": "2+2"}], Answer, cfg=_route(max_retries=1), client=client)
    assert len(client.requests) == 2


def test_chat_sends_api_key_header(monkeypatch):
    class Answer(BaseModel):
        value: int

    monkeypatch.setenv("TEST_LLM_KEY", "secret")
    client = FakeClient(json.dumps({"value": 4}))

    result = chat(
        [{"role": "user", "content": "2+2"}],
        Answer,
        cfg=_route(api_key_env="TEST_LLM_KEY", temperature=0.2),
        client=client,
    )

    assert result.value == 4
    assert client.requests[0]["headers"]["Authorization"] == "Bearer secret"
    assert client.requests[0]["json"]["temperature"] == 0.2
