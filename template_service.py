from __future__ import annotations

from db import TemplateRepository
from errors import ValidationError
from session_models import ActiveExercise, Exercise, PlannedExercise, WorkoutSet


class TemplateLoader:
    """Turns stored templates into exercises for a new session."""

    def __init__(self, template_repo: TemplateRepository) -> None:
        self.templates = template_repo

    def load(self, template_id: int) -> list[PlannedExercise]:
        try:
            self.templates.fetch_detail(template_id)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        planned: list[PlannedExercise] = []
        for row in self.templates.fetch_exercises(template_id):
            sets, reps, weight, rest, notes = row[8:]
            planned.append(
                PlannedExercise(
                    exercise=Exercise.from_row(row[:8]),
                    default_sets=int(sets),
                    default_reps=int(reps),
                    default_weight=float(weight),
                    rest_seconds=int(rest) if rest is not None else None,
                    notes=notes,
                )
            )
        return planned

    def expand(self, template_id: int) -> list[ActiveExercise]:
        """Return one active exercise per template row with its default sets.

        Warm-up flags are left unset; the session decides them on start.
        """
        return [
            ActiveExercise(
                exercise=p.exercise,
                sets=[
                    WorkoutSet(
                        set_number=i + 1,
                        reps=p.default_reps,
                        weight=p.default_weight,
                        rest_seconds=p.rest_seconds,
                    )
                    for i in range(p.default_sets)
                ],
                notes=p.notes,
            )
            for p in self.load(template_id)
        ]
