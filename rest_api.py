import datetime
import logging
import threading
import time
from typing import Callable, Optional

from fastapi import FastAPI, HTTPException, APIRouter

from config import DEFAULT_DB_PATH, DEFAULT_YAML_PATH
from db import (
    UserRepository,
    ExerciseCatalogRepository,
    TemplateRepository,
    WorkoutRepository,
    WorkoutExerciseRepository,
    WorkoutSetRepository,
    PersonalRecordRepository,
    SettingsRepository,
)
from errors import PersistenceError, ValidationError
from record_service import PersonalRecordService
from rest_timer import RestTimer
from session_models import (
    SetCompleted,
    SetNotes,
    SetReps,
    SetRestSeconds,
    SetRpe,
    SetWarmup,
    SetWeight,
)
from session_service import WorkoutSessionService
from stats_service import StatisticsService
from template_service import TemplateLoader
from workout_writer import WorkoutWriter

logger = logging.getLogger(__name__)


class GymAPI:
    """Provides REST endpoints for running and reviewing workouts."""

    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        yaml_path: str = DEFAULT_YAML_PATH,
        *,
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
        timer_clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.users = UserRepository(db_path)
        self.exercise_catalog = ExerciseCatalogRepository(db_path)
        self.templates = TemplateRepository(db_path)
        self.workouts = WorkoutRepository(db_path)
        self.workout_exercises = WorkoutExerciseRepository(db_path)
        self.workout_sets = WorkoutSetRepository(db_path)
        self.records = PersonalRecordRepository(db_path)
        self.template_loader = TemplateLoader(self.templates)
        self.writer = WorkoutWriter(
            self.workouts,
            self.workout_exercises,
            self.workout_sets,
            self.settings,
        )
        self.record_service = PersonalRecordService(self.records)
        self.statistics = StatisticsService(
            self.workouts,
            self.workout_sets,
            self.records,
        )
        self._clock = clock
        self._timer_clock = timer_clock
        self.sessions: dict[int, WorkoutSessionService] = {}
        self._sessions_lock = threading.Lock()
        self.app = FastAPI(
            title="Gym Logger API",
            description="REST API for workout sessions, templates and records",
        )
        self._setup_routes()

    def session_for(self, user_id: int) -> WorkoutSessionService:
        """Return the session of ``user_id``, creating it on first use."""
        with self._sessions_lock:
            session = self.sessions.get(user_id)
            if session is None:
                user = self.users.fetch_detail(user_id)
                timer = RestTimer(
                    self.settings.get_int("default_rest_seconds", 60) or 60,
                    clock=self._timer_clock,
                )
                session = WorkoutSessionService(
                    user_id,
                    self.writer,
                    self.record_service,
                    self.template_loader,
                    timer,
                    weight_unit=user["preferred_weight_unit"],
                    clock=self._clock,
                )
                self.sessions[user_id] = session
                logger.debug("Session created for user_id=%s", user_id)
        return session

    def _session_or_404(self, user_id: int) -> WorkoutSessionService:
        try:
            return self.session_for(user_id)
        except ValueError as e:
            raise HTTPException(status_code=404, detail=str(e))

    def _setup_routes(self) -> None:
        users_router = APIRouter(tags=["Users"])
        exercises_router = APIRouter(prefix="/exercises", tags=["Exercises"])
        templates_router = APIRouter(prefix="/templates", tags=["Templates"])
        session_router = APIRouter(prefix="/session", tags=["Session"])
        workouts_router = APIRouter(prefix="/workouts", tags=["Workouts"])

        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            try:
                self.exercise_catalog.categories()
                return {"status": "ok"}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @users_router.post("/users")
        def register(
            name: str,
            email: str,
            password: str,
            weight_unit: str = "kg",
            theme: str = "light",
        ):
            try:
                uid = self.users.create(name, email, password, weight_unit, theme)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": uid}

        @users_router.post("/auth/login")
        def login(email: str, password: str):
            user = self.users.authenticate(email, password)
            if user is None:
                raise HTTPException(status_code=401, detail="invalid credentials")
            return user

        @users_router.get("/users/{user_id}")
        def get_user(user_id: int):
            try:
                return self.users.fetch_detail(user_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @users_router.put("/users/{user_id}/preferences")
        def update_preferences(
            user_id: int,
            weight_unit: Optional[str] = None,
            theme: Optional[str] = None,
        ):
            try:
                self.users.fetch_detail(user_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            try:
                self.users.update_preferences(user_id, weight_unit, theme)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            session = self.sessions.get(user_id)
            if weight_unit is not None and session is not None and not session.active:
                session.weight_unit = weight_unit
            return {"status": "updated"}

        @exercises_router.get("")
        def list_exercises(
            user_id: Optional[int] = None,
            category: Optional[str] = None,
            query: Optional[str] = None,
        ):
            return [
                e.to_dict()
                for e in self.exercise_catalog.fetch_exercises(user_id, category, query)
            ]

        @exercises_router.get("/categories")
        def list_categories():
            return self.exercise_catalog.categories()

        @exercises_router.get("/{exercise_id}")
        def get_exercise(exercise_id: int):
            try:
                return self.exercise_catalog.fetch(exercise_id).to_dict()
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @exercises_router.post("")
        def add_exercise(
            user_id: int,
            name: str,
            category: str,
            primary_muscle: str,
            secondary_muscles: Optional[str] = None,
            equipment: Optional[str] = None,
            difficulty_level: int = 1,
            instructions: Optional[str] = None,
        ):
            muscles = [m for m in (secondary_muscles or "").split(",") if m]
            try:
                eid = self.exercise_catalog.add_custom(
                    user_id,
                    name,
                    category,
                    primary_muscle,
                    muscles,
                    equipment,
                    difficulty_level,
                    instructions,
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": eid}

        @templates_router.get("")
        def list_templates(user_id: int):
            return self.templates.fetch_for_user(user_id)

        @templates_router.post("")
        def create_template(
            user_id: int,
            name: str,
            description: Optional[str] = None,
            is_favorite: bool = False,
        ):
            try:
                tid = self.templates.create(user_id, name, description, is_favorite)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": tid}

        @templates_router.get("/{template_id}")
        def get_template(template_id: int):
            try:
                tid, uid, name, description, fav = self.templates.fetch_detail(template_id)
                planned = self.template_loader.load(template_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {
                "id": tid,
                "user_id": uid,
                "name": name,
                "description": description,
                "is_favorite": fav,
                "exercises": [
                    {
                        "exercise": p.exercise.to_dict(),
                        "default_sets": p.default_sets,
                        "default_reps": p.default_reps,
                        "default_weight": p.default_weight,
                        "rest_seconds": p.rest_seconds,
                        "notes": p.notes,
                    }
                    for p in planned
                ],
            }

        @templates_router.post("/{template_id}/exercises")
        def add_template_exercise(
            template_id: int,
            exercise_id: int,
            default_sets: int = 3,
            default_reps: int = 10,
            default_weight: float = 0.0,
            rest_seconds: Optional[int] = None,
            notes: Optional[str] = None,
        ):
            try:
                self.templates.fetch_detail(template_id)
                self.exercise_catalog.fetch(exercise_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            try:
                teid = self.templates.add_exercise(
                    template_id,
                    exercise_id,
                    default_sets,
                    default_reps,
                    default_weight,
                    rest_seconds,
                    notes,
                )
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"id": teid}

        @templates_router.post("/{template_id}/favorite")
        def favorite_template(template_id: int, is_favorite: bool = True):
            try:
                self.templates.set_favorite(template_id, is_favorite)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"status": "updated"}

        @templates_router.delete("/{template_id}")
        def delete_template(template_id: int):
            try:
                self.templates.delete(template_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"status": "deleted"}

        @session_router.get("")
        def get_session(user_id: int):
            return self._session_or_404(user_id).to_dict()

        @session_router.post("/start")
        def start_session(user_id: int, template_id: Optional[int] = None):
            session = self._session_or_404(user_id)
            try:
                if template_id is not None:
                    started = session.start_from_template(template_id)
                else:
                    started = session.start()
            except ValidationError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"started": started, "session": session.to_dict()}

        @session_router.post("/exercises")
        def add_session_exercise(user_id: int, exercise_id: int):
            session = self._session_or_404(user_id)
            try:
                exercise = self.exercise_catalog.fetch(exercise_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            return {"index": session.add_exercise(exercise)}

        @session_router.delete("/exercises/{exercise_index}")
        def remove_session_exercise(user_id: int, exercise_index: int):
            session = self._session_or_404(user_id)
            try:
                session.remove_exercise(exercise_index)
            except ValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"status": "deleted"}

        @session_router.put("/exercises/{exercise_index}/notes")
        def set_session_exercise_notes(
            user_id: int, exercise_index: int, notes: Optional[str] = None
        ):
            session = self._session_or_404(user_id)
            try:
                session.set_exercise_notes(exercise_index, notes)
            except ValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"status": "updated"}

        @session_router.post("/exercises/{exercise_index}/sets")
        def add_session_set(user_id: int, exercise_index: int):
            session = self._session_or_404(user_id)
            try:
                new_set = session.add_set(exercise_index)
            except ValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return new_set.to_dict()

        @session_router.put("/exercises/{exercise_index}/sets/{set_index}")
        def update_session_set(
            user_id: int,
            exercise_index: int,
            set_index: int,
            reps: Optional[int] = None,
            weight: Optional[float] = None,
            is_warmup: Optional[bool] = None,
            rest_seconds: Optional[int] = None,
            rpe: Optional[int] = None,
            notes: Optional[str] = None,
            completed: Optional[bool] = None,
            clear_rest_seconds: bool = False,
            clear_rpe: bool = False,
            clear_notes: bool = False,
        ):
            session = self._session_or_404(user_id)
            mutations = []
            if clear_rest_seconds:
                mutations.append(SetRestSeconds(None))
            if clear_rpe:
                mutations.append(SetRpe(None))
            if clear_notes:
                mutations.append(SetNotes(None))
            if reps is not None:
                mutations.append(SetReps(reps))
            if weight is not None:
                mutations.append(SetWeight(weight))
            if is_warmup is not None:
                mutations.append(SetWarmup(is_warmup))
            if rest_seconds is not None:
                mutations.append(SetRestSeconds(rest_seconds))
            if rpe is not None:
                mutations.append(SetRpe(rpe))
            if notes is not None:
                mutations.append(SetNotes(notes))
            if completed is not None:
                mutations.append(SetCompleted(completed))
            try:
                updated = session.update_set_fields(exercise_index, set_index, mutations)
            except ValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return updated.to_dict()

        @session_router.delete("/exercises/{exercise_index}/sets/{set_index}")
        def remove_session_set(user_id: int, exercise_index: int, set_index: int):
            session = self._session_or_404(user_id)
            try:
                session.remove_set(exercise_index, set_index)
            except ValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"status": "deleted"}

        @session_router.put("/notes")
        def set_session_notes(user_id: int, notes: Optional[str] = None):
            session = self._session_or_404(user_id)
            try:
                session.set_notes(notes)
            except ValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"status": "updated"}

        @session_router.post("/end")
        def end_session(user_id: int):
            session = self._session_or_404(user_id)
            try:
                result = session.end()
            except ValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))
            except PersistenceError as e:
                raise HTTPException(
                    status_code=503,
                    detail={"status": "save_failed", "message": str(e), "attempts": e.attempts},
                )
            if not result.completed:
                raise HTTPException(
                    status_code=409,
                    detail={"status": result.status.value, "message": str(result.warning)},
                )
            return {
                "status": result.status.value,
                "workout_id": result.workout_id,
                "records": [r.to_dict() for r in result.records],
                "warning": str(result.record_error) if result.record_error else None,
            }

        @session_router.post("/discard")
        def discard_session(user_id: int):
            self._session_or_404(user_id).discard()
            return {"status": "discarded"}

        @session_router.get("/rest_timer")
        def get_rest_timer(user_id: int):
            return self._session_or_404(user_id).rest_timer.to_dict()

        @session_router.post("/rest_timer/start")
        def start_rest_timer(user_id: int, seconds: Optional[int] = None):
            timer = self._session_or_404(user_id).rest_timer
            try:
                timer.start(seconds)
            except ValidationError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return timer.to_dict()

        @session_router.post("/rest_timer/pause")
        def pause_rest_timer(user_id: int):
            timer = self._session_or_404(user_id).rest_timer
            timer.pause()
            return timer.to_dict()

        @session_router.post("/rest_timer/resume")
        def resume_rest_timer(user_id: int):
            timer = self._session_or_404(user_id).rest_timer
            timer.resume()
            return timer.to_dict()

        @session_router.post("/rest_timer/reset")
        def reset_rest_timer(user_id: int):
            timer = self._session_or_404(user_id).rest_timer
            timer.reset()
            return timer.to_dict()

        @session_router.post("/rest_timer/adjust")
        def adjust_rest_timer(user_id: int, delta: int):
            timer = self._session_or_404(user_id).rest_timer
            timer.adjust(delta)
            return timer.to_dict()

        @workouts_router.get("")
        def list_workouts(user_id: int, limit: Optional[int] = 20):
            return self.statistics.history(user_id, limit)

        @workouts_router.get("/{workout_id}")
        def get_workout(workout_id: int):
            try:
                return self.workouts.fetch_detail(workout_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))

        @workouts_router.delete("/{workout_id}")
        def delete_workout(workout_id: int):
            try:
                self.workouts.fetch_detail(workout_id)
            except ValueError as e:
                raise HTTPException(status_code=404, detail=str(e))
            self.workouts.delete(workout_id)
            return {"status": "deleted"}

        @self.app.get("/records", tags=["Statistics"])
        def list_records(user_id: int):
            return self.statistics.personal_records(user_id)

        @self.app.get("/stats", tags=["Statistics"])
        def profile_stats(user_id: int):
            return self.statistics.overview(user_id)

        @self.app.get("/settings", tags=["Settings"])
        def get_settings():
            return self.settings.all_settings()

        @self.app.post("/settings/{key}", tags=["Settings"])
        def update_setting(key: str, value: str):
            try:
                self.settings.set_text(key, value)
            except ValueError as e:
                raise HTTPException(status_code=400, detail=str(e))
            return {"status": "updated"}

        self.app.include_router(users_router)
        self.app.include_router(exercises_router)
        self.app.include_router(templates_router)
        self.app.include_router(session_router)
        self.app.include_router(workouts_router)


api = GymAPI()
app = api.app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
