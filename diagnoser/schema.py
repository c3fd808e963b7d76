# diagnoser/schema.py
# ==============================
# Pydantic models for the diagnostic conversation:
# - DiagnosisSession and its typed DiagnosisContext
# - AskResponse / ConcludeResponse returned to the CLI
# ==============================

from __future__ import annotations
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, model_validator

from garden.schema import CareSchedule, Plant, utcnow


class DiagnosisStatus(str, Enum):
    PENDING_USER_INPUT = "PENDING_USER_INPUT"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# ============================================================
# Context components
# ============================================================

class ConversationTurn(BaseModel):
    """One message in the diagnostic conversation."""
    role: Literal["user", "assistant"]
    message: str


class PlantVitals(BaseModel):
    """Snapshot of the plant embedded in the context for the AI's reference."""
    name: str
    care_schedule: CareSchedule

    @classmethod
    def from_plant(cls, plant: Plant) -> "PlantVitals":
        return cls(name=plant.name, care_schedule=plant.care_schedule.model_copy())


class DiagnosisResult(BaseModel):
    finding: str
    recommendation: str


class DiagnosisContext(BaseModel):
    """
    Everything the AI sees on each cycle.

    Only `state` is free-form; the rest is a fixed record. The history is
    append-only and `initial_prompt` never changes after creation.
    """
    initial_prompt: str
    conversation_history: List[ConversationTurn] = Field(default_factory=list)
    state: Dict[str, Any] = Field(default_factory=dict)
    plant_vitals: Optional[PlantVitals] = None
    result: Optional[DiagnosisResult] = None

    def append_turn(self, role: str, message: str) -> None:
        self.conversation_history.append(ConversationTurn(role=role, message=message))

    def merge_state(self, entries: Dict[str, Any]) -> None:
        """Add new hypothesis keys and overwrite existing ones; never removes."""
        self.state.update(entries)


# ============================================================
# Diagnosis Session
# ============================================================

class DiagnosisSession(BaseModel):
    """Durable state of one diagnostic conversation."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    plant_id: str
    status: DiagnosisStatus = DiagnosisStatus.PENDING_USER_INPUT
    context: DiagnosisContext
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @model_validator(mode="after")
    def result_matches_status(self):
        """`result` is present exactly when the session is completed."""
        completed = self.status == DiagnosisStatus.COMPLETED
        if completed != (self.context.result is not None):
            raise ValueError("context.result must be set if and only if status is COMPLETED")
        return self

    @classmethod
    def open(cls, plant: Plant, problem_text: str) -> "DiagnosisSession":
        """
        Create a new pending session for a user's problem report.

        The history is seeded with the problem as the first user message and
        the plant vitals are pre-populated.
        """
        context = DiagnosisContext(
            initial_prompt=problem_text,
            plant_vitals=PlantVitals.from_plant(plant),
        )
        context.append_turn("user", problem_text)
        return cls(plant_id=plant.id, context=context)

    @property
    def is_pending(self) -> bool:
        return self.status == DiagnosisStatus.PENDING_USER_INPUT

    @property
    def awaiting_answer(self) -> bool:
        """True when the last turn is an unanswered assistant question."""
        history = self.context.conversation_history
        return self.is_pending and bool(history) and history[-1].role == "assistant"

    @property
    def pending_question(self) -> Optional[str]:
        if self.awaiting_answer:
            return self.context.conversation_history[-1].message
        return None

    def touch(self) -> None:
        self.updated_at = utcnow()


# ============================================================
# Engine responses
# ============================================================

class AskResponse(BaseModel):
    """The AI needs more information from the user."""
    kind: Literal["ask"] = "ask"
    session_id: str
    question: str


class ConcludeResponse(BaseModel):
    """The AI reached a finding."""
    kind: Literal["conclude"] = "conclude"
    session_id: str
    finding: str
    recommendation: str


DiagnosisResponse = Union[AskResponse, ConcludeResponse]
