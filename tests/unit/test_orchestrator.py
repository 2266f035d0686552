from __future__ import annotations

import threading
import time

import pytest

from interview_chat import (
    ChatSessionOrchestrator,
    CollaboratorRunner,
    EvaluationOutcome,
    FixedScoreEvaluator,
    InvalidInputError,
    InvalidStateError,
    MessageCountPolicy,
    MessageType,
    NotFoundError,
    ScriptedResponseGenerator,
    SessionStatus,
    UpstreamError,
)
from interview_chat.mock import MOCK_CLOSINGS
from interview_chat.models import Interview


class FlakyGenerator(ScriptedResponseGenerator):
    def __init__(self) -> None:
        super().__init__()
        self.fail_replies = False

    def generate_reply(self, history, user_input, ctx):
        if self.fail_replies:
            raise RuntimeError("model offline")
        return super().generate_reply(history, user_input, ctx)


class RecordingEvaluator:
    def __init__(self, score: float = 0.7) -> None:
        self.score = score
        self.calls = []

    def evaluate(self, questions, answers, ctx):
        self.calls.append((list(questions), dict(answers), ctx))
        return EvaluationOutcome(score=self.score, feedback="recorded")


class FailingEvaluator:
    def evaluate(self, questions, answers, ctx):
        raise RuntimeError("grader unavailable")


def _orchestrator(store, runner, *, generator=None, evaluator=None, threshold=8):
    return ChatSessionOrchestrator(
        store,
        generator or ScriptedResponseGenerator(),
        evaluator or FixedScoreEvaluator(),
        MessageCountPolicy(threshold),
        runner=runner,
    )


def test_start_session_adds_single_greeting(orchestrator, interview):
    view = orchestrator.start_session(interview.id)

    assert view.session.status == SessionStatus.ACTIVE
    assert view.session.interview_id == interview.id
    assert len(view.messages) == 1
    assert view.messages[0].type == MessageType.AI
    assert "Tell me about yourself." in view.messages[0].content


def test_start_session_unknown_interview(orchestrator):
    with pytest.raises(NotFoundError):
        orchestrator.start_session("missing")


def test_start_session_language_override_and_fallback(orchestrator, interviews):
    zh = interviews.create_interview("Lin", ["自我介紹"], language="zh-TW")

    inherited = orchestrator.start_session(zh.id)
    overridden = orchestrator.start_session(zh.id, "en")
    unsupported = orchestrator.start_session(zh.id, "fr")

    assert inherited.session.language == "zh-TW"
    assert overridden.session.language == "en"
    assert unsupported.session.language == "zh-TW"


def test_greeting_failure_abandons_new_session(memory_store, runner, interviews):
    seen = []

    class MuteGenerator(ScriptedResponseGenerator):
        def generate_greeting(self, ctx):
            seen.append(ctx.session_id)
            raise RuntimeError("model offline")

    orchestrator = _orchestrator(memory_store, runner, generator=MuteGenerator())
    interview = interviews.create_interview("Hedy", ["Frequency hopping?"])

    with pytest.raises(UpstreamError):
        orchestrator.start_session(interview.id)

    session = memory_store.get_session(seen[0])
    assert session.status == SessionStatus.ABANDONED
    assert session.ended_at is not None
    assert memory_store.list_messages(seen[0]) == []
    with pytest.raises(InvalidStateError):
        orchestrator.send_message(seen[0], "hello?")


def test_messages_alternate_in_insertion_order(orchestrator, interview):
    session_id = orchestrator.start_session(interview.id).session.id
    for index in range(3):
        orchestrator.send_message(session_id, f"answer {index}")

    messages = orchestrator.get_session(session_id).messages

    assert [message.type for message in messages] == [MessageType.AI, MessageType.USER] * 3 + [MessageType.AI]
    assert [message.content for message in messages if message.type == MessageType.USER] == [
        "answer 0",
        "answer 1",
        "answer 2",
    ]


def test_send_message_rejects_blank_text(orchestrator, interview):
    session_id = orchestrator.start_session(interview.id).session.id

    with pytest.raises(InvalidInputError):
        orchestrator.send_message(session_id, "   ")

    assert len(orchestrator.get_session(session_id).messages) == 1


def test_send_message_unknown_session(orchestrator):
    with pytest.raises(NotFoundError):
        orchestrator.send_message("nope", "hello")


def test_generator_failure_keeps_user_message(memory_store, runner, interviews):
    generator = FlakyGenerator()
    orchestrator = _orchestrator(memory_store, runner, generator=generator)
    interview = interviews.create_interview("Grace", ["Why this role?"])
    session_id = orchestrator.start_session(interview.id).session.id
    before = len(orchestrator.get_session(session_id).messages)

    generator.fail_replies = True
    with pytest.raises(UpstreamError):
        orchestrator.send_message(session_id, "I like compilers")

    view = orchestrator.get_session(session_id)
    assert len(view.messages) == before + 1
    assert view.messages[-1].type == MessageType.USER
    assert view.messages[-1].content == "I like compilers"
    assert view.session.status == SessionStatus.ACTIVE


def test_generator_timeout_is_upstream_error(memory_store, interviews):
    class SlowGenerator(ScriptedResponseGenerator):
        def generate_reply(self, history, user_input, ctx):
            time.sleep(1.0)
            return "late"

    runner = CollaboratorRunner(timeout_s=0.2)
    try:
        orchestrator = _orchestrator(memory_store, runner, generator=SlowGenerator())
        interview = interviews.create_interview("Linus", ["Kernel?"])
        session_id = orchestrator.start_session(interview.id).session.id

        with pytest.raises(UpstreamError) as excinfo:
            orchestrator.send_message(session_id, "hello")
    finally:
        runner.close()

    assert "timed out" in excinfo.value.message
    assert orchestrator.get_session(session_id).messages[-1].type == MessageType.USER


def test_eight_messages_complete_the_interview(orchestrator, interview):
    session_id = orchestrator.start_session(interview.id).session.id

    statuses = [orchestrator.send_message(session_id, f"reply {n}").session_status for n in range(1, 9)]

    assert statuses[:7] == [SessionStatus.ACTIVE] * 7
    assert statuses[7] == SessionStatus.COMPLETED
    view = orchestrator.get_session(session_id)
    assert view.session.status == SessionStatus.COMPLETED
    assert view.session.ended_at is not None
    assert view.messages[-1].content == MOCK_CLOSINGS["en"]
    assert len(view.messages) == 17

    with pytest.raises(InvalidStateError):
        orchestrator.send_message(session_id, "one more thing")
    assert len(orchestrator.get_session(session_id).messages) == 17


def test_closing_turn_flag_reaches_generator(memory_store, runner, interviews):
    seen = []

    class SpyGenerator(ScriptedResponseGenerator):
        def generate_reply(self, history, user_input, ctx):
            seen.append(("reply", ctx.is_closing_turn, len(history)))
            return super().generate_reply(history, user_input, ctx)

        def generate_closing(self, history, user_input, ctx):
            seen.append(("closing", ctx.is_closing_turn, len(history)))
            return super().generate_closing(history, user_input, ctx)

    orchestrator = _orchestrator(memory_store, runner, generator=SpyGenerator(), threshold=2)
    interview = interviews.create_interview("Barbara", ["Abstraction?"])
    session_id = orchestrator.start_session(interview.id).session.id
    orchestrator.send_message(session_id, "first")
    orchestrator.send_message(session_id, "second")

    # History excludes the message being answered.
    assert seen == [("reply", False, 1), ("closing", True, 3)]


def test_end_session_answer_keys(memory_store, runner, interviews):
    evaluator = RecordingEvaluator()
    orchestrator = _orchestrator(memory_store, runner, evaluator=evaluator)
    interview = interviews.create_interview("Ken", ["Unix?"])
    session_id = orchestrator.start_session(interview.id).session.id
    for n in range(3):
        orchestrator.send_message(session_id, f"answer {n}")

    evaluation = orchestrator.end_session(session_id)

    assert evaluation.answers == {"question_0": "answer 0", "question_1": "answer 1", "question_2": "answer 2"}
    assert evaluation.session_id == session_id
    assert evaluation.interview_id == interview.id
    questions, answers, ctx = evaluator.calls[0]
    assert len(questions) == 4
    assert answers == evaluation.answers
    assert ctx.session_id == session_id
    assert orchestrator.get_session(session_id).session.status == SessionStatus.COMPLETED


def test_end_session_is_idempotent(memory_store, runner, interviews):
    evaluator = RecordingEvaluator()
    orchestrator = _orchestrator(memory_store, runner, evaluator=evaluator)
    interview = interviews.create_interview("Dennis", ["C?"])
    session_id = orchestrator.start_session(interview.id).session.id
    orchestrator.send_message(session_id, "pointers")

    first = orchestrator.end_session(session_id)
    second = orchestrator.end_session(session_id)

    assert first.id == second.id
    assert len(evaluator.calls) == 1


def test_end_session_after_auto_completion_evaluates_once(orchestrator, interview):
    session_id = orchestrator.start_session(interview.id).session.id
    for n in range(8):
        orchestrator.send_message(session_id, f"reply {n}")

    evaluation = orchestrator.end_session(session_id)

    assert len(evaluation.answers) == 8
    assert orchestrator.end_session(session_id).id == evaluation.id


@pytest.mark.parametrize("raw, expected", [(1.5, 1.0), (-0.2, 0.0), (0.42, 0.42)])
def test_end_session_clamps_score(memory_store, runner, interviews, raw, expected):
    orchestrator = _orchestrator(memory_store, runner, evaluator=RecordingEvaluator(score=raw))
    interview = interviews.create_interview("Margaret", ["Apollo?"])
    session_id = orchestrator.start_session(interview.id).session.id
    orchestrator.send_message(session_id, "guidance software")

    assert orchestrator.end_session(session_id).score == pytest.approx(expected)


def test_evaluator_failure_leaves_session_active(memory_store, runner, interviews):
    orchestrator = _orchestrator(memory_store, runner, evaluator=FailingEvaluator())
    interview = interviews.create_interview("Alan", ["Computability?"])
    session_id = orchestrator.start_session(interview.id).session.id
    orchestrator.send_message(session_id, "halting problem")

    with pytest.raises(UpstreamError):
        orchestrator.end_session(session_id)

    assert orchestrator.get_session(session_id).session.status == SessionStatus.ACTIVE
    assert memory_store.find_session_evaluation(session_id) is None


def test_end_session_without_answers_scores_zero(orchestrator, interview):
    session_id = orchestrator.start_session(interview.id).session.id

    evaluation = orchestrator.end_session(session_id)

    assert evaluation.answers == {}
    assert evaluation.score == 0.0
    assert evaluation.feedback == "No answers provided."


def test_abandon_session(orchestrator, interview):
    session_id = orchestrator.start_session(interview.id).session.id

    view = orchestrator.abandon_session(session_id)

    assert view.session.status == SessionStatus.ABANDONED
    assert view.session.ended_at is not None
    with pytest.raises(InvalidStateError):
        orchestrator.send_message(session_id, "still there?")
    with pytest.raises(InvalidStateError):
        orchestrator.end_session(session_id)
    with pytest.raises(InvalidStateError):
        orchestrator.abandon_session(session_id)


def test_concurrent_sends_keep_alternation(orchestrator, interview):
    session_id = orchestrator.start_session(interview.id).session.id
    errors = []

    def _send(n: int) -> None:
        try:
            orchestrator.send_message(session_id, f"parallel {n}")
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=_send, args=(n,)) for n in range(5)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    kinds = [message.type for message in orchestrator.get_session(session_id).messages]
    assert kinds == [MessageType.AI] + [MessageType.USER, MessageType.AI] * 5


def test_full_lifecycle_on_each_backend(store, runner):
    evaluator = RecordingEvaluator(score=0.9)
    orchestrator = _orchestrator(store, runner, evaluator=evaluator)
    interview = store.create_interview(Interview(candidate_name="Frances", questions=["Optimizing compilers?"]))
    session_id = orchestrator.start_session(interview.id).session.id

    statuses = [orchestrator.send_message(session_id, f"answer {n}").session_status for n in range(8)]

    assert statuses == [SessionStatus.ACTIVE] * 7 + [SessionStatus.COMPLETED]
    view = orchestrator.get_session(session_id)
    assert view.session.status == SessionStatus.COMPLETED
    assert [message.type for message in view.messages] == [MessageType.AI] + [MessageType.USER, MessageType.AI] * 8

    first = orchestrator.end_session(session_id)
    second = orchestrator.end_session(session_id)

    assert first.id == second.id
    assert first.score == pytest.approx(0.9)
    assert first.answers == {f"question_{n}": f"answer {n}" for n in range(8)}
    assert len(evaluator.calls) == 1
    assert store.find_session_evaluation(session_id).id == first.id
