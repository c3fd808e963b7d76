# conftest.py
# ==============================
# Shared pytest fixtures: in-memory database, a seeded plant and a
# scripted LLM client
# ==============================

import json

import pytest

from core.llm_clients import MockLLMClient
from diagnoser.engine import DiagnosisEngine
from garden.schema import CareSchedule, Plant
from store.db import Database
from store.repositories import PlantRepository

USER = "local-user"


def action_json(action: str, **payload) -> str:
    """Serialize a diagnostic action the way the model is asked to reply."""
    return json.dumps({"action": action, "payload": payload})


@pytest.fixture
def database():
    db = Database.in_memory()
    yield db
    db.dispose()


@pytest.fixture
def user_id():
    return USER


@pytest.fixture
def plant(database, user_id):
    plant = Plant(
        id="p1",
        user_id=user_id,
        name="Monstera deliciosa",
        care_schedule=CareSchedule(
            light="Bright, indirect light",
            water="Every 1-2 weeks",
            humidity="60% or higher",
            temperature="18-27°C",
            care_instructions="Wipe leaves monthly",
        ),
    )
    with database.session_scope() as db:
        PlantRepository(db).create(plant)
    return plant


@pytest.fixture
def mock_client():
    return MockLLMClient()


@pytest.fixture
def engine(database, mock_client):
    return DiagnosisEngine(database, mock_client, max_steps=5)
