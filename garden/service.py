# garden/service.py
# ==============================
# Plant management: identify -> care schedule -> store image -> persist
# ==============================

import base64
import logging
import uuid
from typing import List, Optional

from core.errors import ConfigError, NotFound
from store.db import Database
from store.repositories import PlantRepository
from .care import CareScheduleGenerator
from .identify import PlantIdClient
from .schema import Plant
from .storage import LocalImageStorage

logger = logging.getLogger(__name__)


class PlantService:
    """
    Business logic for a user's plant collection.

    The identification client is optional: when the user supplies a name,
    identification is skipped entirely.
    """

    def __init__(
        self,
        database: Database,
        care_generator: CareScheduleGenerator,
        storage: LocalImageStorage,
        identifier: Optional[PlantIdClient] = None
    ):
        self.database = database
        self.care_generator = care_generator
        self.storage = storage
        self.identifier = identifier

    def create_plant(
        self,
        images: List[bytes],
        user_id: str,
        name: Optional[str] = None,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None
    ) -> Plant:
        """
        Add a plant to the user's collection.

        Args:
            images: Raw image bytes; the first image is stored.
            user_id: Owner.
            name: Known plant name; skips identification when given.
            latitude: Optional latitude passed to identification.
            longitude: Optional longitude passed to identification.

        Returns:
            The persisted Plant.

        Raises:
            UpstreamError: Identification or care generation failed.
            ParseFailure: Care schedule reply could not be parsed.
            ConfigError: No name and no identification client configured.
        """
        if name:
            plant_name = name.strip()
        else:
            if self.identifier is None:
                raise ConfigError("A plant name is required when identification is not configured")
            encoded = [base64.b64encode(img).decode("ascii") for img in images]
            plant_name = self.identifier.identify(encoded, latitude, longitude)
        logger.info("Identified plant as %s", plant_name)

        care_schedule = self.care_generator.generate(plant_name)

        image_url = None
        if images:
            image_url = self.storage.upload_image(images[0], f"{uuid.uuid4()}.jpg")

        plant = Plant(user_id=user_id, name=plant_name, care_schedule=care_schedule, image_url=image_url)
        try:
            with self.database.session_scope() as db:
                return PlantRepository(db).create(plant)
        except Exception:
            if image_url:
                self.storage.delete_image(image_url)
            raise

    def list_plants(self, user_id: str) -> List[Plant]:
        with self.database.session_scope() as db:
            return PlantRepository(db).list_by_user(user_id)

    def resolve(self, identifier: str, user_id: str) -> Plant:
        """
        Find one of the user's plants by id, falling back to name.

        Raises:
            NotFound: If neither matches.
        """
        with self.database.session_scope() as db:
            plants = PlantRepository(db)
            plant = plants.get_by_id(identifier, user_id) or plants.find_by_name(identifier, user_id)
        if plant is None:
            raise NotFound("Plant", identifier)
        return plant

    def delete_plant(self, identifier: str, user_id: str) -> Plant:
        """Delete a plant, its diagnosis sessions and its stored image."""
        plant = self.resolve(identifier, user_id)
        with self.database.session_scope() as db:
            PlantRepository(db).delete(plant.id, user_id)
        if plant.image_url:
            self.storage.delete_image(plant.image_url)
        return plant
