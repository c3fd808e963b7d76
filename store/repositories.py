# store/repositories.py
# ==============================
# Plant Store and Session Store over a SQLAlchemy session
# Rows are mapped to/from the pydantic domain models at this boundary
# ==============================

from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from core.errors import NotFound
from diagnoser.schema import DiagnosisContext, DiagnosisSession, DiagnosisStatus
from garden.schema import CareSchedule, Plant
from store.models import DiagnosisSessionRow, PlantRow


def _as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo; stored values are always UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# ============================================================
# Row <-> domain mapping
# ============================================================

def _plant_from_row(row: PlantRow) -> Plant:
    return Plant(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        care_schedule=CareSchedule.model_validate(row.care_schedule or {}),
        image_url=row.image_url,
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


def _session_from_row(row: DiagnosisSessionRow) -> DiagnosisSession:
    return DiagnosisSession(
        id=row.id,
        plant_id=row.plant_id,
        status=DiagnosisStatus(row.status),
        context=DiagnosisContext.model_validate(row.diagnosis_context),
        created_at=_as_utc(row.created_at),
        updated_at=_as_utc(row.updated_at),
    )


class PlantRepository:
    """Persistence for plants. Every lookup is scoped to the owning user."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def create(self, plant: Plant) -> Plant:
        self.db.add(PlantRow(
            id=plant.id,
            user_id=plant.user_id,
            name=plant.name,
            care_schedule=plant.care_schedule.model_dump(mode="json"),
            image_url=plant.image_url,
            created_at=plant.created_at,
            updated_at=plant.updated_at,
        ))
        self.db.flush()
        return plant

    def _row(self, plant_id: str, user_id: str) -> Optional[PlantRow]:
        row = self.db.get(PlantRow, plant_id)
        if row is None or row.user_id != user_id:
            return None
        return row

    def get_by_id(self, plant_id: str, user_id: str) -> Optional[Plant]:
        """
        Fetch a plant if it exists and belongs to the user.

        Args:
            plant_id: Plant id
            user_id: Caller's user id

        Returns:
            Plant, or None if absent or owned by someone else
        """
        row = self._row(plant_id, user_id)
        return _plant_from_row(row) if row is not None else None

    def find_by_name(self, name: str, user_id: str) -> Optional[Plant]:
        """Newest of the user's plants whose name matches case-insensitively."""
        stmt = (
            select(PlantRow)
            .where(PlantRow.user_id == user_id)
            .where(func.lower(PlantRow.name) == name.strip().lower())
            .order_by(PlantRow.created_at.desc())
            .limit(1)
        )
        row = self.db.execute(stmt).scalar_one_or_none()
        return _plant_from_row(row) if row is not None else None

    def list_by_user(self, user_id: str) -> List[Plant]:
        stmt = (
            select(PlantRow)
            .where(PlantRow.user_id == user_id)
            .order_by(PlantRow.created_at.desc())
        )
        return [_plant_from_row(row) for row in self.db.execute(stmt).scalars()]

    def update(self, plant: Plant) -> None:
        row = self._row(plant.id, plant.user_id)
        if row is None:
            raise NotFound("Plant", plant.id)
        row.name = plant.name
        row.care_schedule = plant.care_schedule.model_dump(mode="json")
        row.image_url = plant.image_url
        row.updated_at = plant.updated_at
        self.db.flush()

    def delete(self, plant_id: str, user_id: str) -> bool:
        """Delete a plant and its sessions. Returns False if nothing matched."""
        row = self._row(plant_id, user_id)
        if row is None:
            return False
        self.db.delete(row)
        self.db.flush()
        return True


class DiagnosisRepository:
    """Persistence for diagnosis sessions."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def create(self, session: DiagnosisSession) -> DiagnosisSession:
        self.db.add(DiagnosisSessionRow(
            id=session.id,
            plant_id=session.plant_id,
            status=session.status.value,
            diagnosis_context=session.context.model_dump(mode="json"),
            created_at=session.created_at,
            updated_at=session.updated_at,
        ))
        self.db.flush()
        return session

    def get_by_id(self, session_id: str) -> Optional[DiagnosisSession]:
        row = self.db.get(DiagnosisSessionRow, session_id)
        return _session_from_row(row) if row is not None else None

    def update(self, session: DiagnosisSession) -> None:
        """
        Write status, context and updated_at back to the stored row.

        Raises:
            NotFound: If the session was deleted in the meantime
        """
        row = self.db.get(DiagnosisSessionRow, session.id)
        if row is None:
            raise NotFound("Diagnosis session", session.id)
        row.status = session.status.value
        row.diagnosis_context = session.context.model_dump(mode="json")
        row.updated_at = session.updated_at
        self.db.flush()

    def list_by_plant(self, plant_id: str) -> List[DiagnosisSession]:
        """All sessions for a plant, newest first."""
        stmt = (
            select(DiagnosisSessionRow)
            .where(DiagnosisSessionRow.plant_id == plant_id)
            .order_by(DiagnosisSessionRow.created_at.desc())
        )
        return [_session_from_row(row) for row in self.db.execute(stmt).scalars()]

    def delete(self, session_id: str) -> bool:
        row = self.db.get(DiagnosisSessionRow, session_id)
        if row is None:
            return False
        self.db.delete(row)
        self.db.flush()
        return True
