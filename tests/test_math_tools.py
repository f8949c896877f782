import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import MathTools, WeightConverter
from errors import ValidationError
from session_models import (
    Exercise,
    SetCompleted,
    SetNotes,
    SetReps,
    SetRestSeconds,
    SetRpe,
    SetWarmup,
    SetWeight,
    WorkoutSet,
    apply_mutation,
)


def test_epley():
    assert MathTools.epley_1rm(100, 5) == pytest.approx(100 * (1 + 5 / 30))
    assert MathTools.epley_1rm(80, 0) == 80
    with pytest.raises(ValueError):
        MathTools.epley_1rm(100, -1)


def test_volume_and_density():
    assert MathTools.volume([(10, 50.0), (5, 100.0)]) == 1000.0
    assert MathTools.volume([]) == 0.0
    assert MathTools.session_density(1000.0, 600) == pytest.approx(100.0)
    assert MathTools.session_density(1000.0, 0) == 0.0


def test_clamp():
    assert MathTools.clamp(5, 0, 3) == 3
    assert MathTools.clamp(-1, 0, 3) == 0
    with pytest.raises(ValueError):
        MathTools.clamp(1, 3, 0)


def test_weight_conversion():
    assert WeightConverter.kg_to_lb(100) == 220.46
    assert WeightConverter.lb_to_kg(220.46) == 100.0
    assert WeightConverter.convert(50, "kg", "kg") == 50
    with pytest.raises(ValueError):
        WeightConverter.convert(1, "kg", "stone")


def test_exercise_from_row():
    ex = Exercise.from_row(
        (3, "Deadlift", "Back", "Lower Back", "Hamstrings, Glutes,", "Barbell", 4, None)
    )
    assert ex.secondary_muscles == frozenset({"Hamstrings", "Glutes"})
    assert ex.to_dict()["secondary_muscles"] == ["Glutes", "Hamstrings"]


def test_apply_mutation_variants():
    s = WorkoutSet(set_number=1)
    s = apply_mutation(s, SetReps(8))
    s = apply_mutation(s, SetWeight(62.5))
    s = apply_mutation(s, SetCompleted(True))
    s = apply_mutation(s, SetWarmup(True))
    s = apply_mutation(s, SetRestSeconds(90))
    s = apply_mutation(s, SetRpe(7))
    s = apply_mutation(s, SetNotes("smooth"))
    assert s == WorkoutSet(1, 8, 62.5, True, True, 90, 7, "smooth")
    assert s.volume == 500.0
    assert apply_mutation(s, SetRpe(None)).rpe is None


@pytest.mark.parametrize(
    "mutation",
    [
        SetReps(-1),
        SetReps(True),
        SetReps(2.5),
        SetWeight(-0.5),
        SetWeight("10"),
        SetCompleted(1),
        SetRestSeconds(-30),
        SetRpe(0),
        SetRpe(11),
        SetNotes(5),
    ],
)
def test_apply_mutation_rejects_bad_values(mutation):
    with pytest.raises(ValidationError):
        apply_mutation(WorkoutSet(set_number=1), mutation)


def test_blank_set():
    assert WorkoutSet(1, is_warmup=True).is_blank
    assert not WorkoutSet(1, completed=True).is_blank
    assert not WorkoutSet(1, notes="felt off").is_blank
    assert not WorkoutSet(1).is_blank
    assert not WorkoutSet(1, is_warmup=True, rest_seconds=90).is_blank
