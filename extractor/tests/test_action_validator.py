import copy

import pytest

from core.errors import InvalidAction, InvalidPayload, MissingPayload, ParseFailure
from extractor.action_validator import parse_action, validate_action
from extractor.schema import AskUser, Conclude, DiagnosisAction, GetPlantVitals, LogState

VALID = {
    "GET_PLANT_VITALS": {},
    "LOG_STATE": {"hypothesis": "sun scorch", "confidence": 0.7},
    "ASK_USER": {"question": "How many hours of direct sunlight?"},
    "CONCLUDE": {"finding": "Sun Scorch", "recommendation": "Move to indirect light"},
}


@pytest.mark.parametrize("action,payload", list(VALID.items()))
def test_valid_instruction_passes(action, payload):
    instruction = validate_action({"action": action, "payload": payload})
    assert instruction.action == DiagnosisAction(action)


def test_instructions_carry_payload_fields():
    assert isinstance(validate_action({"action": "GET_PLANT_VITALS", "payload": {}}), GetPlantVitals)

    log = validate_action({"action": "LOG_STATE", "payload": VALID["LOG_STATE"]})
    assert isinstance(log, LogState)
    assert log.entries == VALID["LOG_STATE"]

    ask = validate_action({"action": "ASK_USER", "payload": VALID["ASK_USER"]})
    assert isinstance(ask, AskUser)
    assert ask.question == "How many hours of direct sunlight?"

    conclude = validate_action({"action": "CONCLUDE", "payload": VALID["CONCLUDE"]})
    assert isinstance(conclude, Conclude)
    assert (conclude.finding, conclude.recommendation) == ("Sun Scorch", "Move to indirect light")


@pytest.mark.parametrize("action,field", [
    ("ASK_USER", "question"),
    ("CONCLUDE", "finding"),
    ("CONCLUDE", "recommendation"),
])
def test_removing_required_field_fails(action, field):
    payload = dict(VALID[action])
    del payload[field]
    with pytest.raises(InvalidPayload):
        validate_action({"action": action, "payload": payload})


@pytest.mark.parametrize("action,payload", [
    ("ASK_USER", {"question": ""}),
    ("ASK_USER", {"question": "   "}),
    ("ASK_USER", {"question": 42}),
    ("CONCLUDE", {"finding": "Root rot", "recommendation": None}),
    ("ASK_USER", ["How much light?"]),
])
def test_empty_or_wrongly_typed_fields_fail(action, payload):
    with pytest.raises(InvalidPayload):
        validate_action({"action": action, "payload": payload})


@pytest.mark.parametrize("payload", [{}, [], "hypothesis"])
def test_log_state_requires_non_empty_object(payload):
    with pytest.raises(InvalidPayload):
        validate_action({"action": "LOG_STATE", "payload": payload})


@pytest.mark.parametrize("value", [
    {"payload": {}},
    {"action": "WATER_PLANT", "payload": {}},
    {"action": "ask_user", "payload": {"question": "?"}},
    {"action": 3, "payload": {}},
    ["ASK_USER"],
    "ASK_USER",
    None,
])
def test_missing_or_unknown_action_fails(value):
    with pytest.raises(InvalidAction):
        validate_action(value)


@pytest.mark.parametrize("action", list(VALID))
def test_missing_or_null_payload_fails(action):
    with pytest.raises(MissingPayload):
        validate_action({"action": action})
    with pytest.raises(MissingPayload):
        validate_action({"action": action, "payload": None})


def test_validation_does_not_mutate_input():
    value = {"action": "LOG_STATE", "payload": {"hypothesis": "overwatering"}}
    before = copy.deepcopy(value)
    instruction = validate_action(value)
    instruction.entries["extra"] = True
    assert value == before


def test_parse_action_from_fenced_reply():
    raw = '```json\n{"action": "CONCLUDE", "payload": {"finding": "Root rot", "recommendation": "Repot"}}\n```'
    assert parse_action(raw) == Conclude(finding="Root rot", recommendation="Repot")


def test_parse_action_propagates_parse_failure():
    with pytest.raises(ParseFailure):
        parse_action("I am not sure what is wrong with your plant.")
