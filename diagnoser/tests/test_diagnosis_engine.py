import pytest

from conftest import action_json
from core.errors import (
    InvalidAction, InvalidState, NotFound, ParseFailure, StepLimitExceeded,
    Unauthorized, UpstreamError
)
from diagnoser.engine import DiagnosisEngine
from diagnoser.prompts import DIAGNOSIS_SYSTEM_PROMPT
from diagnoser.schema import AskResponse, ConcludeResponse, DiagnosisStatus
from garden.schema import Plant
from store.repositories import PlantRepository

ASK = action_json("ASK_USER", question="How much light?")
CONCLUDE = action_json("CONCLUDE", finding="Sun Scorch", recommendation="Move to indirect light")


def _stored(engine, session_id, user_id):
    return engine.get(session_id, user_id)


def _start_with_question(engine, mock_client, plant, user_id):
    mock_client.queue(ASK)
    return engine.start(plant.id, "leaves yellowing", user_id)


# ============================================================
# End-to-end scenarios
# ============================================================

def test_start_asks_user(engine, mock_client, plant, user_id):
    response = _start_with_question(engine, mock_client, plant, user_id)

    assert isinstance(response, AskResponse)
    assert response.kind == "ask"
    assert response.question == "How much light?"

    session = _stored(engine, response.session_id, user_id)
    assert session.status == DiagnosisStatus.PENDING_USER_INPUT
    assert session.plant_id == "p1"
    assert session.context.initial_prompt == "leaves yellowing"
    assert [(t.role, t.message) for t in session.context.conversation_history] == [
        ("user", "leaves yellowing"),
        ("assistant", "How much light?"),
    ]
    assert session.context.plant_vitals.name == "Monstera deliciosa"
    assert session.context.result is None


def test_update_concludes(engine, mock_client, plant, user_id):
    asked = _start_with_question(engine, mock_client, plant, user_id)
    mock_client.queue(CONCLUDE)

    response = engine.update(asked.session_id, "bright indirect", user_id)

    assert isinstance(response, ConcludeResponse)
    assert response.finding == "Sun Scorch"
    assert response.recommendation == "Move to indirect light"

    session = _stored(engine, asked.session_id, user_id)
    assert session.status == DiagnosisStatus.COMPLETED
    assert session.context.result.finding == "Sun Scorch"
    assert session.context.result.recommendation == "Move to indirect light"
    assert session.context.conversation_history[-1].message == "bright indirect"


def test_fenced_replies_behave_like_bare_json(engine, mock_client, plant, user_id):
    mock_client.queue(f"Here you go:\n```json\n{ASK}\n```")
    asked = engine.start(plant.id, "leaves yellowing", user_id)
    assert asked.question == "How much light?"

    mock_client.queue(f"```json\n{CONCLUDE}\n```")
    concluded = engine.update(asked.session_id, "bright indirect", user_id)
    assert concluded.finding == "Sun Scorch"


def test_ai_receives_system_prompt_and_full_context(engine, mock_client, plant, user_id):
    _start_with_question(engine, mock_client, plant, user_id)

    call = mock_client.call_history[0]
    system, user = call["messages"]
    assert system == {"role": "system", "content": DIAGNOSIS_SYSTEM_PROMPT}
    assert "leaves yellowing" in user["content"]
    assert "Monstera deliciosa" in user["content"]
    assert '"conversation_history"' in user["content"]


# ============================================================
# Looping actions
# ============================================================

def test_log_state_merges_and_loops(engine, mock_client, plant, user_id):
    mock_client.queue(
        action_json("LOG_STATE", hypothesis="overwatering", confidence=0.4),
        action_json("LOG_STATE", confidence=0.8, soil="wet"),
        ASK,
    )
    response = engine.start(plant.id, "leaves yellowing", user_id)

    assert isinstance(response, AskResponse)
    assert len(mock_client.call_history) == 3
    session = _stored(engine, response.session_id, user_id)
    assert session.context.state == {"hypothesis": "overwatering", "confidence": 0.8, "soil": "wet"}
    # Only the question was added to the history
    assert len(session.context.conversation_history) == 2


def test_get_plant_vitals_refreshes_snapshot(engine, mock_client, database, plant, user_id):
    asked = _start_with_question(engine, mock_client, plant, user_id)

    renamed = plant.model_copy(update={"name": "Swiss cheese plant"})
    with database.session_scope() as db:
        PlantRepository(db).update(renamed)

    mock_client.queue(action_json("GET_PLANT_VITALS"), CONCLUDE)
    engine.update(asked.session_id, "bright indirect", user_id)

    session = _stored(engine, asked.session_id, user_id)
    assert session.context.plant_vitals.name == "Swiss cheese plant"
    assert session.status == DiagnosisStatus.COMPLETED


def test_step_limit_stops_runaway_cycles(database, mock_client, plant, user_id):
    engine = DiagnosisEngine(database, mock_client, max_steps=3)
    asked = _start_with_question(engine, mock_client, plant, user_id)
    before = _stored(engine, asked.session_id, user_id)

    mock_client.queue(*[action_json("LOG_STATE", step=i) for i in range(5)])
    with pytest.raises(StepLimitExceeded):
        engine.update(asked.session_id, "bright indirect", user_id)

    # one call for start, three for the aborted update
    assert len(mock_client.call_history) == 4
    assert _stored(engine, asked.session_id, user_id) == before


# ============================================================
# History growth
# ============================================================

def test_history_grows_by_one_per_question_and_per_answer(engine, mock_client, plant, user_id):
    asked = _start_with_question(engine, mock_client, plant, user_id)
    lengths = [len(_stored(engine, asked.session_id, user_id).context.conversation_history)]

    for answer, question in [("a few hours", "Any brown spots?"), ("yes, crispy", "Which window?")]:
        mock_client.queue(action_json("ASK_USER", question=question))
        engine.update(asked.session_id, answer, user_id)
        history = _stored(engine, asked.session_id, user_id).context.conversation_history
        lengths.append(len(history))
        assert history[-2].message == answer
        assert history[-1].message == question

    assert lengths == [2, 4, 6]
    history = _stored(engine, asked.session_id, user_id).context.conversation_history
    assert [t.role for t in history] == ["user", "assistant"] * 3


# ============================================================
# Failures leave the stored session untouched
# ============================================================

def test_update_on_completed_session_fails(engine, mock_client, plant, user_id):
    asked = _start_with_question(engine, mock_client, plant, user_id)
    mock_client.queue(CONCLUDE)
    engine.update(asked.session_id, "bright indirect", user_id)
    before = _stored(engine, asked.session_id, user_id)

    mock_client.queue(ASK)
    with pytest.raises(InvalidState):
        engine.update(asked.session_id, "one more thing", user_id)

    assert _stored(engine, asked.session_id, user_id) == before
    assert len(mock_client.replies) == 1


def test_prose_reply_fails_and_leaves_session_unchanged(engine, mock_client, plant, user_id):
    asked = _start_with_question(engine, mock_client, plant, user_id)
    before = _stored(engine, asked.session_id, user_id)

    mock_client.queue("Your plant is probably getting too much sun, honestly.")
    with pytest.raises(ParseFailure):
        engine.update(asked.session_id, "bright indirect", user_id)

    after = _stored(engine, asked.session_id, user_id)
    assert after.updated_at == before.updated_at
    assert after.context.state == before.context.state
    assert after.context.conversation_history == before.context.conversation_history


def test_failure_after_checkpoint_rolls_back_whole_cycle(engine, mock_client, plant, user_id):
    asked = _start_with_question(engine, mock_client, plant, user_id)
    before = _stored(engine, asked.session_id, user_id)

    mock_client.queue(action_json("LOG_STATE", hypothesis="root rot"), '{"action": "PRUNE", "payload": {}}')
    with pytest.raises(InvalidAction):
        engine.update(asked.session_id, "soil smells", user_id)

    assert _stored(engine, asked.session_id, user_id) == before


def test_retried_update_resends_same_context(engine, mock_client, plant, user_id):
    asked = _start_with_question(engine, mock_client, plant, user_id)

    mock_client.queue("no idea")
    with pytest.raises(ParseFailure):
        engine.update(asked.session_id, "bright indirect", user_id)
    mock_client.queue(CONCLUDE)
    engine.update(asked.session_id, "bright indirect", user_id)

    failed_prompt = mock_client.call_history[1]["messages"][1]["content"]
    retried_prompt = mock_client.call_history[2]["messages"][1]["content"]
    assert failed_prompt == retried_prompt


def test_failed_start_keeps_created_session(engine, mock_client, plant, user_id):
    mock_client.queue("hmm")
    with pytest.raises(ParseFailure):
        engine.start(plant.id, "leaves yellowing", user_id)

    [session] = engine.list_by_plant(plant.id, user_id)
    assert session.status == DiagnosisStatus.PENDING_USER_INPUT
    assert [t.message for t in session.context.conversation_history] == ["leaves yellowing"]

    mock_client.queue(ASK)
    response = engine.retry(session.id, user_id)
    assert response.question == "How much light?"


def test_retry_refuses_when_waiting_for_answer(engine, mock_client, plant, user_id):
    asked = _start_with_question(engine, mock_client, plant, user_id)
    with pytest.raises(InvalidState):
        engine.retry(asked.session_id, user_id)


def test_upstream_error_propagates(engine, mock_client, plant, user_id):
    with pytest.raises(UpstreamError):
        engine.start(plant.id, "leaves yellowing", user_id)


# ============================================================
# Lookup and ownership
# ============================================================

def test_start_with_unknown_plant(engine, user_id):
    with pytest.raises(NotFound):
        engine.start("missing", "leaves yellowing", user_id)


def test_start_with_someone_elses_plant(engine, plant):
    with pytest.raises(NotFound):
        engine.start(plant.id, "leaves yellowing", "other-user")


def test_update_unknown_session(engine, user_id):
    with pytest.raises(NotFound):
        engine.update("missing", "hello", user_id)


def test_update_by_other_user_is_unauthorized(engine, mock_client, database, plant, user_id):
    asked = _start_with_question(engine, mock_client, plant, user_id)
    with database.session_scope() as db:
        PlantRepository(db).create(Plant(user_id="other-user", name="Fern"))

    with pytest.raises(Unauthorized):
        engine.update(asked.session_id, "hello", "other-user")
    with pytest.raises(Unauthorized):
        engine.get(asked.session_id, "other-user")


def test_list_by_plant_newest_first(engine, mock_client, plant, user_id):
    first = _start_with_question(engine, mock_client, plant, user_id)
    second = _start_with_question(engine, mock_client, plant, user_id)

    sessions = engine.list_by_plant(plant.id, user_id)
    assert [s.id for s in sessions] == [second.session_id, first.session_id]

    with pytest.raises(NotFound):
        engine.list_by_plant(plant.id, "other-user")


# ============================================================
# Cancel / delete
# ============================================================

def test_cancel_pending_session(engine, mock_client, plant, user_id):
    asked = _start_with_question(engine, mock_client, plant, user_id)

    cancelled = engine.cancel(asked.session_id, user_id)
    assert cancelled.status == DiagnosisStatus.CANCELLED
    assert _stored(engine, asked.session_id, user_id).status == DiagnosisStatus.CANCELLED

    with pytest.raises(InvalidState):
        engine.update(asked.session_id, "bright indirect", user_id)
    with pytest.raises(InvalidState):
        engine.cancel(asked.session_id, user_id)


def test_cannot_cancel_completed_session(engine, mock_client, plant, user_id):
    asked = _start_with_question(engine, mock_client, plant, user_id)
    mock_client.queue(CONCLUDE)
    engine.update(asked.session_id, "bright indirect", user_id)

    with pytest.raises(InvalidState):
        engine.cancel(asked.session_id, user_id)
    assert _stored(engine, asked.session_id, user_id).status == DiagnosisStatus.COMPLETED


def test_delete_session(engine, mock_client, plant, user_id):
    asked = _start_with_question(engine, mock_client, plant, user_id)
    engine.delete(asked.session_id, user_id)
    with pytest.raises(NotFound):
        engine.get(asked.session_id, user_id)


# ============================================================
# Construction
# ============================================================

@pytest.mark.parametrize("max_steps", [0, -1])
def test_rejects_non_positive_step_limit(database, mock_client, max_steps):
    with pytest.raises(ValueError):
        DiagnosisEngine(database, mock_client, max_steps=max_steps)


def test_step_limit_defaults_from_environment(database, mock_client, monkeypatch):
    monkeypatch.setenv("DIAGNOSIS_MAX_STEPS", "3")
    assert DiagnosisEngine(database, mock_client).max_steps == 3
    monkeypatch.delenv("DIAGNOSIS_MAX_STEPS")
    assert DiagnosisEngine(database, mock_client).max_steps == 8
