from __future__ import annotations

import time

import pytest

from interview_chat import CollaboratorRunner, UpstreamError
from observability import logger as event_logger
from observability.admin_cli import tail_evaluations, tail_sessions


def test_runner_returns_result(runner):
    assert runner.run("reply", "s1", lambda a, b: a + b, 2, 3) == 5


def test_runner_wraps_unexpected_errors(runner):
    def _boom():
        raise ValueError("bad payload")

    with pytest.raises(UpstreamError) as excinfo:
        runner.run("evaluate", "s1", _boom)

    assert excinfo.value.message == "AI evaluate call failed"
    assert excinfo.value.details == "bad payload"


def test_runner_passes_upstream_errors_through(runner):
    def _upstream():
        raise UpstreamError("AI response generation failed", details="503")

    with pytest.raises(UpstreamError) as excinfo:
        runner.run("reply", "s1", _upstream)

    assert excinfo.value.details == "503"


def test_runner_times_out():
    pool = CollaboratorRunner(timeout_s=0.1)
    try:
        with pytest.raises(UpstreamError) as excinfo:
            pool.run("greeting", "s1", time.sleep, 1.0)
    finally:
        pool.close()

    assert "timed out" in excinfo.value.message


def test_runner_rejects_non_positive_timeout():
    with pytest.raises(ValueError):
        CollaboratorRunner(timeout_s=0)


def test_runner_emits_span_event(runner, monkeypatch):
    events = []
    monkeypatch.setattr("observability.tracing.log_event", lambda kind, sid, **fields: events.append((kind, sid, fields)))

    runner.run("reply", "s9", lambda: "ok")

    assert events[0][0] == "span"
    assert events[0][1] == "s9"
    assert events[0][2]["span"] == "collaborator.reply"


def test_format_human_lists_known_keys():
    line = event_logger.format_human(
        {"kind": "message_exchanged", "session_id": "s1", "user_messages": 3, "closing": False, "noise": 1}
    )

    assert line == "session=s1 kind=message_exchanged user_messages=3 closing=False"


def test_admin_cli_tails_sqlite(tmp_db):
    from interview_chat import ChatSessionOrchestrator, FixedScoreEvaluator, ScriptedResponseGenerator
    from interview_chat.models import Interview
    from storage import SqliteConversationStore

    store = SqliteConversationStore(tmp_db)
    pool = CollaboratorRunner(timeout_s=5.0)
    try:
        orchestrator = ChatSessionOrchestrator(store, ScriptedResponseGenerator(), FixedScoreEvaluator(), runner=pool)
        interview = store.create_interview(Interview(candidate_name="Ada", questions=["Q"]))
        session_id = orchestrator.start_session(interview.id).session.id
        orchestrator.send_message(session_id, "hello")
        orchestrator.end_session(session_id)
    finally:
        pool.close()

    sessions = tail_sessions(5, tmp_db)
    evaluations = tail_evaluations(5, tmp_db)

    assert len(sessions) == 1
    assert f"{session_id} " in sessions[0]
    assert "status=completed user_messages=1" in sessions[0]
    assert len(evaluations) == 1
    assert f"session={session_id}" in evaluations[0]
    assert "score=0.80" in evaluations[0]
