"""Active workout lifecycle.

``WorkoutSessionService`` moves between two states. While idle it holds no
exercises and no start time. ``start`` makes it active; ``end`` (after a
successful save) and ``discard`` make it idle again, so one instance serves
every workout of a user for the lifetime of the app.
"""
from __future__ import annotations

import dataclasses
import datetime
import logging
from typing import Callable, Optional, Sequence

from errors import EmptySessionWarning, PRComputationError, ValidationError
from record_service import PersonalRecordService
from rest_timer import RestTimer
from session_models import (
    WEIGHT_UNITS,
    ActiveExercise,
    EndResult,
    EndStatus,
    Exercise,
    ExerciseSnapshot,
    SetCompleted,
    SetMutation,
    WorkoutSet,
    WorkoutSnapshot,
    apply_mutation,
)
from template_service import TemplateLoader
from workout_writer import WorkoutWriter

logger = logging.getLogger(__name__)


class WorkoutSessionService:
    """Tracks the single active workout of one user."""

    def __init__(
        self,
        user_id: int,
        writer: WorkoutWriter,
        record_service: PersonalRecordService | None = None,
        template_loader: TemplateLoader | None = None,
        rest_timer: RestTimer | None = None,
        weight_unit: str = "kg",
        clock: Callable[[], datetime.datetime] = datetime.datetime.now,
    ) -> None:
        if weight_unit not in WEIGHT_UNITS:
            raise ValidationError(f"unsupported weight unit: {weight_unit}")
        self.user_id = user_id
        self.writer = writer
        self.record_service = record_service
        self.template_loader = template_loader
        self.rest_timer = rest_timer
        self.weight_unit = weight_unit
        self._clock = clock
        self.start_time: Optional[datetime.datetime] = None
        self.exercises: list[ActiveExercise] = []
        self.notes: Optional[str] = None

    @property
    def active(self) -> bool:
        return self.start_time is not None

    def _require_active(self) -> None:
        if not self.active:
            raise ValidationError("no workout in progress")

    def _exercise(self, exercise_index: int) -> ActiveExercise:
        self._require_active()
        if not 0 <= exercise_index < len(self.exercises):
            raise ValidationError(f"exercise index {exercise_index} out of range")
        return self.exercises[exercise_index]

    def _set_index(self, entry: ActiveExercise, set_index: int) -> int:
        if not 0 <= set_index < len(entry.sets):
            raise ValidationError(f"set index {set_index} out of range")
        return set_index

    def _reset(self) -> None:
        self.start_time = None
        self.exercises = []
        self.notes = None

    # lifecycle

    def start(self, seed: Optional[Sequence[ActiveExercise]] = None) -> bool:
        """Begin a workout; returns False when one is already running."""
        if self.active:
            logger.debug("start ignored for user_id=%s: workout already active", self.user_id)
            return False
        exercises: list[ActiveExercise] = []
        for entry in seed or ():
            sets = [
                dataclasses.replace(s, set_number=i + 1, is_warmup=(i == 0))
                for i, s in enumerate(entry.sets)
            ]
            exercises.append(
                ActiveExercise(exercise=entry.exercise, sets=sets, notes=entry.notes)
            )
        self.exercises = exercises
        self.notes = None
        self.start_time = self._clock()
        logger.info(
            "Workout started for user_id=%s with %s exercises",
            self.user_id,
            len(exercises),
        )
        return True

    def start_from_template(self, template_id: int) -> bool:
        if self.template_loader is None:
            raise ValidationError("templates are not available")
        if self.active:
            return False
        return self.start(self.template_loader.expand(template_id))

    def discard(self) -> None:
        """Drop the active workout without saving anything."""
        if self.active:
            logger.info(
                "Workout discarded for user_id=%s (%s exercises)",
                self.user_id,
                len(self.exercises),
            )
        self._reset()

    def elapsed(self) -> int:
        """Whole seconds since the workout started, or 0 when idle."""
        if self.start_time is None:
            return 0
        return max(0, int((self._clock() - self.start_time).total_seconds()))

    def snapshot(self, end_time: Optional[datetime.datetime] = None) -> WorkoutSnapshot:
        self._require_active()
        return WorkoutSnapshot(
            user_id=self.user_id,
            start_time=self.start_time,
            end_time=end_time or self._clock(),
            weight_unit=self.weight_unit,
            exercises=tuple(
                ExerciseSnapshot(
                    exercise=e.exercise, sets=tuple(e.sets), notes=e.notes
                )
                for e in self.exercises
            ),
            notes=self.notes,
        )

    def end(self) -> EndResult:
        """Save the workout and evaluate personal records.

        An empty workout is not saved; the result asks the caller to confirm
        a discard instead. A failed save raises ``PersistenceError`` and keeps
        the workout active so it can be retried.
        """
        self._require_active()
        if not self.exercises:
            return EndResult(
                status=EndStatus.CONFIRM_DISCARD,
                warning=EmptySessionWarning(
                    "workout has no exercises; discard it or add exercises"
                ),
            )
        snapshot = self.snapshot()
        workout_id = self.writer.write(snapshot)
        self._reset()
        logger.info(
            "Workout %s completed for user_id=%s in %ss",
            workout_id,
            self.user_id,
            snapshot.duration_seconds,
        )
        records: list = []
        record_error: Optional[PRComputationError] = None
        if self.record_service is not None:
            try:
                records = self.record_service.evaluate(snapshot, workout_id)
            except PRComputationError as e:
                logger.warning("Workout %s saved without record update: %s", workout_id, e)
                record_error = e
        return EndResult(
            status=EndStatus.COMPLETED,
            workout_id=workout_id,
            records=tuple(records),
            record_error=record_error,
        )

    # exercises

    def add_exercise(self, exercise: Exercise) -> Optional[int]:
        """Append ``exercise`` and return its index; ignored while idle."""
        if not self.active:
            logger.debug("add_exercise ignored for user_id=%s: no workout", self.user_id)
            return None
        self.exercises.append(
            ActiveExercise(
                exercise=exercise,
                sets=[WorkoutSet(set_number=1, is_warmup=True)],
            )
        )
        return len(self.exercises) - 1

    def remove_exercise(self, exercise_index: int) -> None:
        self._exercise(exercise_index)
        del self.exercises[exercise_index]

    def set_exercise_notes(self, exercise_index: int, notes: Optional[str]) -> None:
        self._exercise(exercise_index).notes = notes

    def set_notes(self, notes: Optional[str]) -> None:
        self._require_active()
        self.notes = notes

    # sets

    def add_set(self, exercise_index: int) -> WorkoutSet:
        """Append a set that repeats the previous set's reps, weight and rest."""
        entry = self._exercise(exercise_index)
        if entry.sets:
            last = entry.sets[-1]
            new_set = WorkoutSet(
                set_number=last.set_number + 1,
                reps=last.reps,
                weight=last.weight,
                rest_seconds=last.rest_seconds,
            )
        else:
            new_set = WorkoutSet(set_number=1)
        entry.sets.append(new_set)
        return new_set

    def remove_set(self, exercise_index: int, set_index: int) -> None:
        entry = self._exercise(exercise_index)
        del entry.sets[self._set_index(entry, set_index)]
        entry.sets = [
            dataclasses.replace(s, set_number=i + 1) for i, s in enumerate(entry.sets)
        ]

    def update_set(
        self, exercise_index: int, set_index: int, mutation: SetMutation
    ) -> WorkoutSet:
        """Apply ``mutation`` to one set; completing a set starts the rest timer."""
        entry = self._exercise(exercise_index)
        index = self._set_index(entry, set_index)
        updated = apply_mutation(entry.sets[index], mutation)
        entry.sets[index] = updated
        if (
            isinstance(mutation, SetCompleted)
            and mutation.value
            and updated.rest_seconds
            and self.rest_timer is not None
        ):
            self.rest_timer.start(updated.rest_seconds)
        return updated

    def update_set_fields(
        self, exercise_index: int, set_index: int, mutations: Sequence[SetMutation]
    ) -> WorkoutSet:
        """Apply several mutations to one set, all of them or none."""
        entry = self._exercise(exercise_index)
        index = self._set_index(entry, set_index)
        trial = entry.sets[index]
        for mutation in mutations:
            trial = apply_mutation(trial, mutation)
        updated = entry.sets[index]
        for mutation in mutations:
            updated = self.update_set(exercise_index, set_index, mutation)
        return updated

    def to_dict(self) -> dict:
        return {
            "active": self.active,
            "start_time": self.start_time.isoformat(timespec="seconds") if self.start_time else None,
            "elapsed": self.elapsed(),
            "weight_unit": self.weight_unit,
            "notes": self.notes,
            "exercises": [e.to_dict() for e in self.exercises],
        }
