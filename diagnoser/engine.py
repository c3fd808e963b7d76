# diagnoser/engine.py
# ==============================
# Diagnostic cycle engine
# Drives the AI through GET_PLANT_VITALS / LOG_STATE / ASK_USER / CONCLUDE
# until it asks the user something or reaches a finding
# ==============================

import logging
from typing import List, Optional, Tuple

from core.errors import (
    InvalidState, NotFound, PlantCareError, StepLimitExceeded, Unauthorized
)
from core.llm_clients import BaseLLMClient
from core.settings import get_max_diagnosis_steps
from extractor.action_validator import parse_action
from extractor.schema import AskUser, Conclude, GetPlantVitals, LogState
from garden.schema import Plant
from store.db import Database
from store.repositories import DiagnosisRepository, PlantRepository
from .prompts import DIAGNOSIS_SYSTEM_PROMPT, build_diagnosis_prompt
from .schema import (
    AskResponse, ConcludeResponse, DiagnosisResponse, DiagnosisResult,
    DiagnosisSession, DiagnosisStatus, PlantVitals
)

logger = logging.getLogger(__name__)


class DiagnosisEngine:
    """
    State machine for multi-turn plant diagnosis.

    Every public call takes the caller's user id explicitly. A cycle runs in
    a single transaction: per-step writes are flushed as checkpoints and
    committed only when the cycle ends with a question or a finding, so a
    failed call leaves the stored session exactly as it was.

    Calls on the same session must be serialized by the caller.
    """

    def __init__(
        self,
        database: Database,
        client: BaseLLMClient,
        model: Optional[str] = None,
        max_steps: Optional[int] = None
    ):
        """
        Initialize the engine.

        Args:
            database: Store for plants and sessions.
            client: LLM client used for every cycle step.
            model: Model name; defaults to the client's default model.
            max_steps: AI calls allowed per start/update before giving up.
                       Defaults to DIAGNOSIS_MAX_STEPS (8).

        Raises:
            ValueError: If max_steps is given and is less than 1.
        """
        if max_steps is None:
            max_steps = get_max_diagnosis_steps()
        elif max_steps < 1:
            raise ValueError(f"max_steps must be at least 1, got {max_steps}")
        self.database = database
        self.client = client
        self.model = model
        self.max_steps = max_steps

    # ------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------

    def start(self, plant_id: str, problem_text: str, user_id: str) -> DiagnosisResponse:
        """
        Open a new diagnosis for a plant and run the first cycle.

        The new session is committed before the AI is consulted, so it
        survives a failed first cycle and can be resumed with update().

        Args:
            plant_id: Plant under diagnosis.
            problem_text: The user's description of the problem.
            user_id: Caller; must own the plant.

        Returns:
            AskResponse or ConcludeResponse.

        Raises:
            NotFound: If the plant does not exist for this user.
        """
        with self.database.session_scope() as db:
            plant = PlantRepository(db).get_by_id(plant_id, user_id)
            if plant is None:
                raise NotFound("Plant", plant_id)
            session = DiagnosisSession.open(plant, problem_text)
            DiagnosisRepository(db).create(session)
        logger.info("Started diagnosis %s for plant %s", session.id, plant_id)

        with self.database.session_scope() as db:
            return self._run_cycle(session, user_id, DiagnosisRepository(db), PlantRepository(db))

    def update(self, session_id: str, answer_text: str, user_id: str) -> DiagnosisResponse:
        """
        Record the user's answer to the pending question and run a cycle.

        Args:
            session_id: Session to continue.
            answer_text: The user's reply.
            user_id: Caller; must own the session's plant.

        Returns:
            AskResponse or ConcludeResponse.

        Raises:
            NotFound: Unknown session.
            Unauthorized: The session's plant is not the caller's.
            InvalidState: The session is completed or cancelled.
        """
        with self.database.session_scope() as db:
            sessions, plants = DiagnosisRepository(db), PlantRepository(db)
            session, _ = self._load_owned(sessions, plants, session_id, user_id)
            if not session.is_pending:
                raise InvalidState(session_id, session.status.value)
            session.context.append_turn("user", answer_text)
            return self._run_cycle(session, user_id, sessions, plants)

    def retry(self, session_id: str, user_id: str) -> DiagnosisResponse:
        """
        Re-run a cycle for a pending session whose last turn is the user's.

        This happens when a previous start() or update() failed after the
        user's message was stored; the same context is sent again.

        Raises:
            NotFound, Unauthorized: As for update().
            InvalidState: Not pending, or the session is waiting for an answer.
        """
        with self.database.session_scope() as db:
            sessions, plants = DiagnosisRepository(db), PlantRepository(db)
            session, _ = self._load_owned(sessions, plants, session_id, user_id)
            if not session.is_pending:
                raise InvalidState(session_id, session.status.value)
            if session.awaiting_answer:
                raise InvalidState(
                    session_id, session.status.value,
                    "Diagnosis is waiting for an answer; use update() instead",
                )
            return self._run_cycle(session, user_id, sessions, plants)

    def get(self, session_id: str, user_id: str) -> DiagnosisSession:
        with self.database.session_scope() as db:
            session, _ = self._load_owned(
                DiagnosisRepository(db), PlantRepository(db), session_id, user_id
            )
            return session

    def list_by_plant(self, plant_id: str, user_id: str) -> List[DiagnosisSession]:
        """All sessions for one of the user's plants, newest first."""
        with self.database.session_scope() as db:
            if PlantRepository(db).get_by_id(plant_id, user_id) is None:
                raise NotFound("Plant", plant_id)
            return DiagnosisRepository(db).list_by_plant(plant_id)

    def cancel(self, session_id: str, user_id: str) -> DiagnosisSession:
        """Abandon a pending session. Completed sessions cannot be cancelled."""
        with self.database.session_scope() as db:
            sessions = DiagnosisRepository(db)
            session, _ = self._load_owned(sessions, PlantRepository(db), session_id, user_id)
            if not session.is_pending:
                raise InvalidState(session_id, session.status.value)
            session.status = DiagnosisStatus.CANCELLED
            session.touch()
            sessions.update(session)
        logger.info("Cancelled diagnosis %s", session_id)
        return session

    def delete(self, session_id: str, user_id: str) -> None:
        with self.database.session_scope() as db:
            sessions = DiagnosisRepository(db)
            self._load_owned(sessions, PlantRepository(db), session_id, user_id)
            sessions.delete(session_id)
        logger.info("Deleted diagnosis %s", session_id)

    # ------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------

    @staticmethod
    def _load_owned(
        sessions: DiagnosisRepository,
        plants: PlantRepository,
        session_id: str,
        user_id: str
    ) -> Tuple[DiagnosisSession, Plant]:
        session = sessions.get_by_id(session_id)
        if session is None:
            raise NotFound("Diagnosis session", session_id)
        plant = plants.get_by_id(session.plant_id, user_id)
        if plant is None:
            raise Unauthorized(session_id, user_id)
        return session, plant

    def _run_cycle(
        self,
        session: DiagnosisSession,
        user_id: str,
        sessions: DiagnosisRepository,
        plants: PlantRepository
    ) -> DiagnosisResponse:
        """
        Loop AI step -> validate -> apply until ASK_USER or CONCLUDE.

        Raises:
            UpstreamError, ParseFailure, ActionValidationError: From the AI step.
            StepLimitExceeded: After max_steps non-terminal actions.
        """
        try:
            for step in range(1, self.max_steps + 1):
                raw = self.client.complete(
                    DIAGNOSIS_SYSTEM_PROMPT,
                    build_diagnosis_prompt(session.context),
                    model=self.model,
                )
                instruction = parse_action(raw)
                logger.info("Diagnosis %s step %d: %s", session.id, step, instruction.action.value)

                if isinstance(instruction, GetPlantVitals):
                    plant = plants.get_by_id(session.plant_id, user_id)
                    if plant is None:
                        raise NotFound("Plant", session.plant_id)
                    session.context.plant_vitals = PlantVitals.from_plant(plant)
                    session.touch()
                    sessions.update(session)

                elif isinstance(instruction, LogState):
                    session.context.merge_state(instruction.entries)
                    session.touch()
                    sessions.update(session)

                elif isinstance(instruction, AskUser):
                    session.context.append_turn("assistant", instruction.question)
                    session.status = DiagnosisStatus.PENDING_USER_INPUT
                    session.touch()
                    sessions.update(session)
                    return AskResponse(session_id=session.id, question=instruction.question)

                elif isinstance(instruction, Conclude):
                    session.context.result = DiagnosisResult(
                        finding=instruction.finding,
                        recommendation=instruction.recommendation,
                    )
                    session.status = DiagnosisStatus.COMPLETED
                    session.touch()
                    sessions.update(session)
                    return ConcludeResponse(
                        session_id=session.id,
                        finding=instruction.finding,
                        recommendation=instruction.recommendation,
                    )

                else:
                    raise TypeError(f"Unhandled instruction type: {type(instruction).__name__}")

            raise StepLimitExceeded(session.id, self.max_steps)
        except PlantCareError as e:
            logger.warning("Diagnosis cycle for %s aborted: %s", session.id, e.message)
            raise
