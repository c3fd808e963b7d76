# garden/care.py
# ==============================
# LLM-generated care schedules for identified plants
# ==============================

import logging
from typing import Optional

from pydantic import ValidationError

from core.errors import ParseFailure
from core.llm_clients import BaseLLMClient
from extractor.response_extractor import extract_structured
from .schema import CareSchedule

logger = logging.getLogger(__name__)

CARE_SYSTEM_PROMPT = """You are an expert Botanist. The user will provide you with the name of a plant.
Your task is to research this plant and provide a detailed care schedule.

You MUST return your response as a single, minified JSON object with NO markdown formatting.
The JSON object must have the following fields:
{
  "light": "description of light requirements",
  "water": "description of watering schedule",
  "humidity": "description of humidity requirements",
  "temperature": "description of temperature range",
  "care_instructions": "additional care tips and notes"
}

Be specific and practical in your recommendations."""


class CareScheduleGenerator:
    """Asks the LLM for a care schedule and validates the reply."""

    def __init__(self, client: BaseLLMClient, model: Optional[str] = None):
        self.client = client
        self.model = model

    def generate(self, plant_name: str) -> CareSchedule:
        """
        Generate a care schedule for a plant.

        Args:
            plant_name: Common or botanical name.

        Returns:
            CareSchedule; fields the model omits keep their defaults.

        Raises:
            UpstreamError: If the LLM call fails.
            ParseFailure: If the reply holds no JSON object of the right shape.
        """
        raw = self.client.complete(
            CARE_SYSTEM_PROMPT,
            f"Generate a care schedule for: {plant_name}",
            model=self.model,
        )
        data = extract_structured(raw)
        if not isinstance(data, dict):
            raise ParseFailure(raw, "Care schedule must be a JSON object")
        try:
            return CareSchedule.model_validate(data)
        except ValidationError as e:
            logger.warning("Care schedule for %s did not validate: %s", plant_name, e)
            raise ParseFailure(raw, "Failed to parse care schedule from AI response") from e
