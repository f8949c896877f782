"""Value types shared by the workout session engine.

Sets are frozen: every edit produces a new :class:`WorkoutSet` through
:func:`apply_mutation`, so a snapshot handed to the writer can never be
changed by later edits to the live session.
"""
from __future__ import annotations

import dataclasses
import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from errors import ValidationError

WEIGHT_UNITS = ("kg", "lb")


@dataclass(frozen=True)
class Exercise:
    id: int
    name: str
    category: str = ""
    primary_muscle: str = ""
    secondary_muscles: frozenset[str] = frozenset()
    equipment: Optional[str] = None
    difficulty_level: Optional[int] = None
    instructions: Optional[str] = None

    @classmethod
    def from_row(cls, row: tuple) -> "Exercise":
        """Build from ``(id, name, category, primary_muscle, secondary_muscles,
        equipment, difficulty_level, instructions)``."""
        eid, name, category, primary, secondary, equipment, difficulty, instructions = row
        muscles = frozenset(m.strip() for m in (secondary or "").split(",") if m.strip())
        return cls(
            id=int(eid),
            name=name,
            category=category or "",
            primary_muscle=primary or "",
            secondary_muscles=muscles,
            equipment=equipment,
            difficulty_level=int(difficulty) if difficulty is not None else None,
            instructions=instructions,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "primary_muscle": self.primary_muscle,
            "secondary_muscles": sorted(self.secondary_muscles),
            "equipment": self.equipment,
            "difficulty_level": self.difficulty_level,
            "instructions": self.instructions,
        }


@dataclass(frozen=True)
class WorkoutSet:
    set_number: int
    reps: int = 0
    weight: float = 0.0
    completed: bool = False
    is_warmup: bool = False
    rest_seconds: Optional[int] = None
    rpe: Optional[int] = None
    notes: Optional[str] = None

    @property
    def volume(self) -> float:
        return self.weight * self.reps

    @property
    def is_blank(self) -> bool:
        """True for the untouched warm-up placeholder a new exercise starts with."""
        return self == WorkoutSet(set_number=self.set_number, is_warmup=True)

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass
class ActiveExercise:
    exercise: Exercise
    sets: list[WorkoutSet] = field(default_factory=list)
    notes: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "exercise": self.exercise.to_dict(),
            "sets": [s.to_dict() for s in self.sets],
            "notes": self.notes,
        }


@dataclass(frozen=True)
class ExerciseSnapshot:
    exercise: Exercise
    sets: tuple[WorkoutSet, ...]
    notes: Optional[str] = None

    def working_sets(self) -> list[WorkoutSet]:
        """Return completed sets that are not warm-ups, in set order."""
        return [s for s in self.sets if s.completed and not s.is_warmup]


@dataclass(frozen=True)
class WorkoutSnapshot:
    user_id: int
    start_time: datetime.datetime
    end_time: datetime.datetime
    weight_unit: str
    exercises: tuple[ExerciseSnapshot, ...]
    notes: Optional[str] = None

    @property
    def duration_seconds(self) -> int:
        return int((self.end_time - self.start_time).total_seconds())

    @property
    def total_volume(self) -> float:
        """Volume of every completed set, warm-ups included."""
        return sum(
            s.volume for ex in self.exercises for s in ex.sets if s.completed
        )


@dataclass(frozen=True)
class PlannedExercise:
    exercise: Exercise
    default_sets: int
    default_reps: int
    default_weight: float
    rest_seconds: Optional[int] = None
    notes: Optional[str] = None


class RecordType(str, Enum):
    ONE_REP_MAX = "1RM"
    VOLUME = "volume"


@dataclass(frozen=True)
class PersonalRecord:
    user_id: int
    exercise_id: int
    record_type: RecordType
    value: float
    workout_id: Optional[int] = None
    reps: Optional[int] = None
    weight: Optional[float] = None
    weight_unit: Optional[str] = None
    exercise_name: Optional[str] = None
    achieved_at: Optional[str] = None

    def to_dict(self) -> dict:
        data = dataclasses.asdict(self)
        data["record_type"] = self.record_type.value
        data["value"] = round(self.value, 2)
        return data


class EndStatus(str, Enum):
    COMPLETED = "completed"
    CONFIRM_DISCARD = "confirm_discard"


@dataclass(frozen=True)
class EndResult:
    """Outcome of ending a workout."""

    status: EndStatus
    workout_id: Optional[int] = None
    records: tuple[PersonalRecord, ...] = ()
    warning: Optional[Warning] = None
    record_error: Optional[Exception] = None

    @property
    def completed(self) -> bool:
        return self.status is EndStatus.COMPLETED


# Set mutations. Each variant carries a single typed value and is applied
# through ``apply_mutation``.


@dataclass(frozen=True)
class SetReps:
    value: int


@dataclass(frozen=True)
class SetWeight:
    value: float


@dataclass(frozen=True)
class SetCompleted:
    value: bool


@dataclass(frozen=True)
class SetWarmup:
    value: bool


@dataclass(frozen=True)
class SetRestSeconds:
    value: Optional[int]


@dataclass(frozen=True)
class SetRpe:
    value: Optional[int]


@dataclass(frozen=True)
class SetNotes:
    value: Optional[str]


SetMutation = Union[
    SetReps, SetWeight, SetCompleted, SetWarmup, SetRestSeconds, SetRpe, SetNotes
]


def _non_negative_int(value, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer")
    if value < 0:
        raise ValidationError(f"{name} must be non-negative")
    return value


def apply_mutation(workout_set: WorkoutSet, mutation: SetMutation) -> WorkoutSet:
    """Return a copy of ``workout_set`` with ``mutation`` applied."""
    if isinstance(mutation, SetReps):
        return dataclasses.replace(
            workout_set, reps=_non_negative_int(mutation.value, "reps")
        )
    if isinstance(mutation, SetWeight):
        value = mutation.value
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError("weight must be a number")
        if value < 0:
            raise ValidationError("weight must be non-negative")
        return dataclasses.replace(workout_set, weight=float(value))
    if isinstance(mutation, SetCompleted):
        if not isinstance(mutation.value, bool):
            raise ValidationError("completed must be a boolean")
        return dataclasses.replace(workout_set, completed=mutation.value)
    if isinstance(mutation, SetWarmup):
        if not isinstance(mutation.value, bool):
            raise ValidationError("is_warmup must be a boolean")
        return dataclasses.replace(workout_set, is_warmup=mutation.value)
    if isinstance(mutation, SetRestSeconds):
        rest = mutation.value
        if rest is not None:
            rest = _non_negative_int(rest, "rest_seconds")
        return dataclasses.replace(workout_set, rest_seconds=rest)
    if isinstance(mutation, SetRpe):
        rpe = mutation.value
        if rpe is not None:
            if isinstance(rpe, bool) or not isinstance(rpe, int) or not 1 <= rpe <= 10:
                raise ValidationError("rpe must be between 1 and 10")
        return dataclasses.replace(workout_set, rpe=rpe)
    if isinstance(mutation, SetNotes):
        if mutation.value is not None and not isinstance(mutation.value, str):
            raise ValidationError("notes must be text")
        return dataclasses.replace(workout_set, notes=mutation.value)
    raise ValidationError(f"unsupported set mutation: {mutation!r}")
