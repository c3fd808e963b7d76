# app/main.py
# ==============================
# plant-care command-line interface
#
# Commands:
# - add / list / show / delete: manage the plant collection
# - diagnose / resume / cancel / history: diagnostic conversations
# - care: one-off care schedule for any plant name
# ==============================

import argparse
import sys
from pathlib import Path
from typing import List, Optional

# Add project root to sys.path
ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.append(str(ROOT_DIR))

from dotenv import load_dotenv

from core.errors import InvalidState, PlantCareError
from core.llm_config import LLMConfig
from core.log_setup import configure_logging
from core.settings import get_default_user
from diagnoser.engine import DiagnosisEngine
from diagnoser.schema import AskResponse, ConcludeResponse, DiagnosisResponse, DiagnosisStatus
from garden.care import CareScheduleGenerator
from garden.identify import PlantIdClient
from garden.schema import CareSchedule, Plant
from garden.service import PlantService
from garden.storage import LocalImageStorage
from store.db import Database

QUIT_WORDS = {"quit", "exit", ":q"}


# ============================================================
# Runtime wiring
# ============================================================

class Runtime:
    """
    Lazily builds the database, LLM client and services for one invocation.
    Tests pass pre-built collaborators instead.
    """

    def __init__(
        self,
        database: Optional[Database] = None,
        llm_config: Optional[LLMConfig] = None,
        storage: Optional[LocalImageStorage] = None,
        identifier: Optional[PlantIdClient] = None,
        db_path: Optional[str] = None
    ):
        self._database = database
        self._llm_config = llm_config
        self._storage = storage
        self._identifier = identifier
        self.db_path = db_path

    @property
    def database(self) -> Database:
        if self._database is None:
            url = f"sqlite:///{self.db_path}" if self.db_path else None
            self._database = Database(url)
            self._database.migrate()
        return self._database

    @property
    def llm_config(self) -> LLMConfig:
        if self._llm_config is None:
            self._llm_config = LLMConfig()
        return self._llm_config

    def engine(self) -> DiagnosisEngine:
        cfg = self.llm_config
        return DiagnosisEngine(self.database, cfg.client, model=cfg.diagnoser_model)

    def care_generator(self) -> CareScheduleGenerator:
        cfg = self.llm_config
        return CareScheduleGenerator(cfg.client, model=cfg.care_model)

    def plant_service(self, needs_identification: bool = False) -> PlantService:
        identifier = self._identifier
        if identifier is None and needs_identification:
            identifier = PlantIdClient()
        storage = self._storage or LocalImageStorage()
        return PlantService(self.database, self.care_generator(), storage, identifier)


# ============================================================
# Output helpers
# ============================================================

def _print_care_schedule(care: CareSchedule) -> None:
    print("\nCare Schedule:")
    print(f"  Light:       {care.light}")
    print(f"  Water:       {care.water}")
    print(f"  Humidity:    {care.humidity}")
    print(f"  Temperature: {care.temperature}")
    if care.care_instructions:
        print("\nCare Instructions:")
        print(f"  {care.care_instructions}")


def _print_plant(plant: Plant) -> None:
    print(plant.name)
    print(f"  ID:    {plant.id}")
    print(f"  Added: {plant.created_at:%Y-%m-%d %H:%M}")
    if plant.image_url:
        print(f"  Image: {plant.image_url}")


def _print_conclusion(response: ConcludeResponse) -> None:
    print("\nDiagnosis Complete!")
    print("\nFinding:")
    print(f"  {response.finding}")
    print("\nRecommendation:")
    print(f"  {response.recommendation}")


def _read_answer() -> Optional[str]:
    """Prompt until a non-empty answer; None on EOF or a quit word."""
    while True:
        try:
            answer = input("You: ").strip()
        except EOFError:
            return None
        if answer.lower() in QUIT_WORDS:
            return None
        if answer:
            return answer


def _converse(engine: DiagnosisEngine, response: DiagnosisResponse, user: str) -> int:
    """Interactive ask/answer loop until the engine concludes or the user quits."""
    while isinstance(response, AskResponse):
        print(f"AI: {response.question}")
        answer = _read_answer()
        if answer is None:
            print(f"\nSession saved. Resume with: plant-care resume {response.session_id}")
            return 0
        print("AI is thinking...")
        response = engine.update(response.session_id, answer, user)
    _print_conclusion(response)
    return 0


# ============================================================
# Commands
# ============================================================

def cmd_add(args, rt: Runtime) -> int:
    image_path = Path(args.image)
    if not image_path.is_file():
        raise PlantCareError(f"Image file not found: {image_path}")
    print("Adding new plant...")
    service = rt.plant_service(needs_identification=not args.name)
    plant = service.create_plant(
        [image_path.read_bytes()],
        user_id=args.user,
        name=args.name,
        latitude=args.latitude,
        longitude=args.longitude,
    )
    print("Plant added successfully!\n")
    _print_plant(plant)
    _print_care_schedule(plant.care_schedule)
    return 0


def cmd_list(args, rt: Runtime) -> int:
    plants = rt.plant_service().list_plants(args.user)
    if not plants:
        print("No plants in your collection yet.")
        print("Use 'plant-care add --image <path>' to add your first plant!")
        return 0
    print(f"Your Plant Collection ({len(plants)} plants)\n")
    for plant in plants:
        _print_plant(plant)
        print()
    return 0


def cmd_show(args, rt: Runtime) -> int:
    plant = rt.plant_service().resolve(args.plant, args.user)
    _print_plant(plant)
    _print_care_schedule(plant.care_schedule)
    return 0


def cmd_delete(args, rt: Runtime) -> int:
    plant = rt.plant_service().delete_plant(args.plant, args.user)
    print(f"Deleted {plant.name} ({plant.id})")
    return 0


def cmd_diagnose(args, rt: Runtime) -> int:
    plant = rt.plant_service().resolve(args.plant, args.user)
    print(f"Diagnosing: {plant.name}")
    print(f"Problem: {args.problem}\n")
    print("AI is analyzing...")
    engine = rt.engine()
    response = engine.start(plant.id, args.problem, args.user)
    return _converse(engine, response, args.user)


def cmd_resume(args, rt: Runtime) -> int:
    engine = rt.engine()
    session = engine.get(args.session, args.user)
    if not session.is_pending:
        raise InvalidState(session.id, session.status.value)
    if session.awaiting_answer:
        pending = AskResponse(session_id=session.id, question=session.pending_question)
        return _converse(engine, pending, args.user)
    # The last cycle failed before asking anything; send the same context again
    print("AI is analyzing...")
    return _converse(engine, engine.retry(session.id, args.user), args.user)


def cmd_cancel(args, rt: Runtime) -> int:
    session = rt.engine().cancel(args.session, args.user)
    print(f"Cancelled diagnosis {session.id}")
    return 0


def cmd_history(args, rt: Runtime) -> int:
    plant = rt.plant_service().resolve(args.plant, args.user)
    sessions = rt.engine().list_by_plant(plant.id, args.user)
    if not sessions:
        print("No diagnosis history for this plant.")
        return 0
    print(f"Diagnosis History for {plant.name} ({len(sessions)} sessions)\n")
    for session in sessions:
        print(session.id)
        print(f"  Status:  {session.status.value}")
        print(f"  Created: {session.created_at:%Y-%m-%d %H:%M}")
        print(f"  Problem: {session.context.initial_prompt}")
        if session.status == DiagnosisStatus.COMPLETED:
            print(f"  Finding: {session.context.result.finding}")
        print()
    return 0


def cmd_care(args, rt: Runtime) -> int:
    print(f"Generating care schedule for {args.name}...")
    _print_care_schedule(rt.care_generator().generate(args.name))
    return 0


# ============================================================
# Argument parsing
# ============================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="plant-care",
        description="AI-driven plant care and diagnosis CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Identify a plant from a photo and add it
  plant-care add --image monstera.jpg

  # Start a diagnosis
  plant-care diagnose Monstera --problem "leaves yellowing"

  # Review past diagnoses
  plant-care history Monstera
        """
    )
    parser.add_argument("--user", default=get_default_user(),
                        help="User id owning the plants (default: PLANT_CARE_USER or local-user)")
    parser.add_argument("--db", dest="db_path", default=None,
                        help="SQLite database path (default: DATABASE_PATH or plant_care.db)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("add", help="Add a new plant to your collection")
    p.add_argument("-i", "--image", required=True, help="Path to plant image file")
    p.add_argument("-n", "--name", help="Plant name, if known (skips identification)")
    p.add_argument("--latitude", type=float, help="Latitude for location-based identification")
    p.add_argument("--longitude", type=float, help="Longitude for location-based identification")
    p.set_defaults(func=cmd_add)

    p = sub.add_parser("list", help="List all plants in your collection")
    p.set_defaults(func=cmd_list)

    p = sub.add_parser("show", help="Show details for a plant")
    p.add_argument("plant", help="Plant ID or name")
    p.set_defaults(func=cmd_show)

    p = sub.add_parser("delete", help="Delete a plant and its diagnoses")
    p.add_argument("plant", help="Plant ID or name")
    p.set_defaults(func=cmd_delete)

    p = sub.add_parser("diagnose", help="Start an interactive diagnosis session")
    p.add_argument("plant", help="Plant ID or name")
    p.add_argument("-p", "--problem", required=True, help="Initial problem description")
    p.set_defaults(func=cmd_diagnose)

    p = sub.add_parser("resume", help="Continue a pending diagnosis session")
    p.add_argument("session", help="Diagnosis session ID")
    p.set_defaults(func=cmd_resume)

    p = sub.add_parser("cancel", help="Cancel a pending diagnosis session")
    p.add_argument("session", help="Diagnosis session ID")
    p.set_defaults(func=cmd_cancel)

    p = sub.add_parser("history", help="View diagnosis history for a plant")
    p.add_argument("plant", help="Plant ID or name")
    p.set_defaults(func=cmd_history)

    p = sub.add_parser("care", help="Generate a care schedule without adding the plant")
    p.add_argument("name", help="Plant name")
    p.set_defaults(func=cmd_care)

    return parser


def main(argv: Optional[List[str]] = None, runtime: Optional[Runtime] = None) -> int:
    load_dotenv()
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    rt = runtime or Runtime(db_path=args.db_path)
    try:
        return args.func(args, rt)
    except PlantCareError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
