from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from algorithms import MathTools, WeightConverter
from db import PersonalRecordRepository
from errors import PRComputationError
from session_models import (
    ExerciseSnapshot,
    PersonalRecord,
    RecordType,
    WorkoutSnapshot,
)

logger = logging.getLogger(__name__)


class PersonalRecordService:
    """Compare a finished workout against stored personal records."""

    def __init__(self, record_repo: PersonalRecordRepository) -> None:
        self.records = record_repo

    @staticmethod
    def best_one_rep_max(entry: ExerciseSnapshot) -> Optional[tuple[float, int, float]]:
        """Return ``(estimate, reps, weight)`` for the heaviest working set.

        The earliest set wins when several share the maximum weight.
        """
        working = entry.working_sets()
        if not working:
            return None
        top = working[0]
        for s in working[1:]:
            if s.weight > top.weight:
                top = s
        return MathTools.epley_1rm(top.weight, top.reps), top.reps, top.weight

    @staticmethod
    def working_volume(entry: ExerciseSnapshot) -> float:
        return MathTools.volume((s.reps, s.weight) for s in entry.working_sets())

    def _stored_value(
        self,
        conn: sqlite3.Connection,
        user_id: int,
        exercise_id: int,
        record_type: RecordType,
        unit: str,
    ) -> Optional[float]:
        current = self.records.fetch(user_id, exercise_id, record_type, conn=conn)
        if current is None:
            return None
        if current.weight_unit and current.weight_unit != unit:
            return WeightConverter.convert(current.value, current.weight_unit, unit)
        return current.value

    def candidates(self, snapshot: WorkoutSnapshot, workout_id: int) -> list[PersonalRecord]:
        """Return the 1RM and volume results of each exercise in ``snapshot``."""
        found: list[PersonalRecord] = []
        for entry in snapshot.exercises:
            best = self.best_one_rep_max(entry)
            if best is None:
                continue
            estimate, reps, weight = best
            found.append(
                PersonalRecord(
                    user_id=snapshot.user_id,
                    exercise_id=entry.exercise.id,
                    record_type=RecordType.ONE_REP_MAX,
                    value=estimate,
                    workout_id=workout_id,
                    reps=reps,
                    weight=weight,
                    weight_unit=snapshot.weight_unit,
                    exercise_name=entry.exercise.name,
                    achieved_at=snapshot.end_time.isoformat(timespec="seconds"),
                )
            )
            found.append(
                PersonalRecord(
                    user_id=snapshot.user_id,
                    exercise_id=entry.exercise.id,
                    record_type=RecordType.VOLUME,
                    value=self.working_volume(entry),
                    workout_id=workout_id,
                    weight_unit=snapshot.weight_unit,
                    exercise_name=entry.exercise.name,
                    achieved_at=snapshot.end_time.isoformat(timespec="seconds"),
                )
            )
        return found

    def evaluate(self, snapshot: WorkoutSnapshot, workout_id: int) -> list[PersonalRecord]:
        """Store and return every candidate that beats the stored record."""
        try:
            improved: list[PersonalRecord] = []
            with self.records.transaction() as conn:
                for candidate in self.candidates(snapshot, workout_id):
                    stored = self._stored_value(
                        conn,
                        candidate.user_id,
                        candidate.exercise_id,
                        candidate.record_type,
                        snapshot.weight_unit,
                    )
                    if stored is None or candidate.value > stored:
                        self.records.upsert(conn, candidate)
                        improved.append(candidate)
        except Exception as e:
            logger.exception("Personal record check for workout %s failed", workout_id)
            raise PRComputationError(f"could not update personal records: {e}") from e
        for record in improved:
            logger.info(
                "New %s record for %s: %.2f %s",
                record.record_type.value,
                record.exercise_name,
                record.value,
                record.weight_unit,
            )
        return improved
