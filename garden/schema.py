# garden/schema.py
# ==============================
# Pydantic models for plants and their care schedules
# ==============================

from __future__ import annotations
import uuid
from datetime import datetime, timezone
from typing import Optional
from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CareSchedule(BaseModel):
    """Care requirements for a plant, as written by the care-schedule model."""
    light: str = Field(default="Bright, indirect sunlight")
    water: str = Field(default="Water when top inch of soil is dry")
    humidity: str = Field(default="Moderate humidity (40-60%)")
    temperature: str = Field(default="18-24°C (65-75°F)")
    care_instructions: str = Field(default="", description="Additional tips and notes")


class Plant(BaseModel):
    """A plant in a user's collection."""
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    user_id: str
    name: str
    care_schedule: CareSchedule = Field(default_factory=CareSchedule)
    image_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
