from __future__ import annotations

import dataclasses
import logging
import sqlite3
import time
from typing import Callable, Optional

from db import (
    SettingsRepository,
    WorkoutRepository,
    WorkoutExerciseRepository,
    WorkoutSetRepository,
)
from errors import PersistenceError
from session_models import WorkoutSnapshot

logger = logging.getLogger(__name__)


class WorkoutWriter:
    """Stores a finished workout in a single transaction."""

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        workout_exercise_repo: WorkoutExerciseRepository,
        workout_set_repo: WorkoutSetRepository,
        settings_repo: SettingsRepository | None = None,
        attempts: Optional[int] = None,
        retry_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.workouts = workout_repo
        self.workout_exercises = workout_exercise_repo
        self.workout_sets = workout_set_repo
        if attempts is None:
            attempts = settings_repo.get_int("save_retry_attempts", 3) if settings_repo else 3
        if retry_delay is None:
            retry_delay = settings_repo.get_float("save_retry_delay", 0.2) if settings_repo else 0.2
        self.attempts = max(1, attempts)
        self.retry_delay = retry_delay
        self._sleep = sleep

    def write(self, snapshot: WorkoutSnapshot) -> int:
        """Persist ``snapshot`` and return the new workout id.

        Lock contention is retried; any other failure, or running out of
        attempts, raises :class:`PersistenceError` with nothing committed.
        """
        for attempt in range(1, self.attempts + 1):
            try:
                return self._write_once(snapshot)
            except sqlite3.OperationalError as e:
                if attempt == self.attempts:
                    logger.error(
                        "Saving workout for user_id=%s failed after %s attempts: %s",
                        snapshot.user_id,
                        attempt,
                        e,
                    )
                    raise PersistenceError(
                        f"could not save workout: {e}", attempts=attempt
                    ) from e
                logger.warning(
                    "Saving workout for user_id=%s failed (attempt %s/%s): %s",
                    snapshot.user_id,
                    attempt,
                    self.attempts,
                    e,
                )
                self._sleep(self.retry_delay)
            except sqlite3.Error as e:
                logger.error("Saving workout for user_id=%s rejected: %s", snapshot.user_id, e)
                raise PersistenceError(f"could not save workout: {e}", attempts=attempt) from e
        raise PersistenceError("could not save workout", attempts=self.attempts)

    def _write_once(self, snapshot: WorkoutSnapshot) -> int:
        with self.workouts.transaction() as conn:
            workout_id = self.workouts.insert(
                conn,
                snapshot.user_id,
                snapshot.start_time.isoformat(timespec="seconds"),
                snapshot.end_time.isoformat(timespec="seconds"),
                snapshot.duration_seconds,
                snapshot.total_volume,
                snapshot.notes,
            )
            for order_index, entry in enumerate(snapshot.exercises):
                workout_exercise_id = self.workout_exercises.insert(
                    conn, workout_id, entry.exercise.id, order_index, entry.notes
                )
                kept = [s for s in entry.sets if not s.is_blank]
                for number, workout_set in enumerate(kept, start=1):
                    self.workout_sets.insert(
                        conn,
                        workout_exercise_id,
                        dataclasses.replace(workout_set, set_number=number),
                        snapshot.weight_unit,
                    )
        logger.info(
            "Saved workout %s for user_id=%s (%s exercises, volume %.1f)",
            workout_id,
            snapshot.user_id,
            len(snapshot.exercises),
            snapshot.total_volume,
        )
        return workout_id
