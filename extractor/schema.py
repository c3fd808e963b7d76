# =============================================================
# extractor/schema.py
# =============================================================
# Diagnostic action grammar: the closed set of instructions the AI may
# return, one model per action kind
from __future__ import annotations
from enum import Enum
from typing import Any, Dict, Literal, Union
from pydantic import BaseModel, Field


class DiagnosisAction(str, Enum):
    GET_PLANT_VITALS = "GET_PLANT_VITALS"
    LOG_STATE = "LOG_STATE"
    ASK_USER = "ASK_USER"
    CONCLUDE = "CONCLUDE"


# fetch plant name + care schedule into the context
class GetPlantVitals(BaseModel):
    action: Literal[DiagnosisAction.GET_PLANT_VITALS] = DiagnosisAction.GET_PLANT_VITALS


# record intermediate hypotheses
class LogState(BaseModel):
    action: Literal[DiagnosisAction.LOG_STATE] = DiagnosisAction.LOG_STATE
    entries: Dict[str, Any] = Field(default_factory=dict)


# ask the user a clarifying question
class AskUser(BaseModel):
    action: Literal[DiagnosisAction.ASK_USER] = DiagnosisAction.ASK_USER
    question: str


# final diagnosis
class Conclude(BaseModel):
    action: Literal[DiagnosisAction.CONCLUDE] = DiagnosisAction.CONCLUDE
    finding: str
    recommendation: str


ActionInstruction = Union[GetPlantVitals, LogState, AskUser, Conclude]
