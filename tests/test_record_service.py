import datetime
import os
import sys
from unittest import mock

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import MathTools
from db import (
    ExerciseCatalogRepository,
    PersonalRecordRepository,
    UserRepository,
    WorkoutExerciseRepository,
    WorkoutRepository,
    WorkoutSetRepository,
)
from errors import PRComputationError
from record_service import PersonalRecordService
from session_models import ExerciseSnapshot, RecordType, WorkoutSet, WorkoutSnapshot
from workout_writer import WorkoutWriter


class Harness:
    def __init__(self, db_path: str) -> None:
        self.user_id = UserRepository(db_path).create("Kim", "kim@example.com", "pw")
        self.bench = ExerciseCatalogRepository(db_path).fetch_by_name("Bench Press")
        self.records = PersonalRecordRepository(db_path)
        self.service = PersonalRecordService(self.records)
        self.writer = WorkoutWriter(
            WorkoutRepository(db_path),
            WorkoutExerciseRepository(db_path),
            WorkoutSetRepository(db_path),
        )
        self.day = 0

    def snapshot(self, sets, unit: str = "kg") -> WorkoutSnapshot:
        self.day += 1
        start = datetime.datetime(2024, 1, self.day, 9, 0, 0)
        return WorkoutSnapshot(
            user_id=self.user_id,
            start_time=start,
            end_time=start + datetime.timedelta(hours=1),
            weight_unit=unit,
            exercises=(ExerciseSnapshot(exercise=self.bench, sets=tuple(sets)),),
        )

    def finish(self, sets, unit: str = "kg"):
        snap = self.snapshot(sets, unit)
        wid = self.writer.write(snap)
        return wid, self.service.evaluate(snap, wid)

    def stored(self, record_type: RecordType):
        return self.records.fetch(self.user_id, self.bench.id, record_type)


@pytest.fixture
def harness(tmp_path):
    return Harness(str(tmp_path / "records.db"))


def test_epley_exactness():
    assert MathTools.epley_1rm(100, 5) == pytest.approx(116.6666667)


def test_volume_candidate_excludes_warmups(harness):
    wid, improved = harness.finish(
        [
            WorkoutSet(1, reps=10, weight=50.0, completed=True, is_warmup=True),
            WorkoutSet(2, reps=5, weight=100.0, completed=True),
        ]
    )
    by_type = {r.record_type: r for r in improved}
    assert by_type[RecordType.VOLUME].value == 500.0
    assert by_type[RecordType.ONE_REP_MAX].value == pytest.approx(116.6666667)
    assert by_type[RecordType.ONE_REP_MAX].reps == 5
    assert by_type[RecordType.ONE_REP_MAX].weight == 100.0
    detail = harness.writer.workouts.fetch_detail(wid)
    assert detail["total_volume"] == 1000.0


def test_equal_value_does_not_update(harness):
    first_wid, _ = harness.finish([WorkoutSet(1, reps=5, weight=100.0, completed=True)])
    _, improved = harness.finish([WorkoutSet(1, reps=5, weight=100.0, completed=True)])
    assert improved == []
    assert harness.stored(RecordType.ONE_REP_MAX).workout_id == first_wid
    assert harness.stored(RecordType.VOLUME).workout_id == first_wid


def test_strictly_better_value_updates(harness):
    harness.finish([WorkoutSet(1, reps=5, weight=100.0, completed=True)])
    wid, improved = harness.finish([WorkoutSet(1, reps=5, weight=100.001, completed=True)])
    assert {r.record_type for r in improved} == {RecordType.ONE_REP_MAX, RecordType.VOLUME}
    stored = harness.stored(RecordType.ONE_REP_MAX)
    assert stored.workout_id == wid
    assert stored.value > 116.6666667


def test_earliest_heaviest_set_wins_tie(harness):
    entry = ExerciseSnapshot(
        exercise=harness.bench,
        sets=(
            WorkoutSet(1, reps=3, weight=100.0, completed=True),
            WorkoutSet(2, reps=6, weight=100.0, completed=True),
            WorkoutSet(3, reps=12, weight=80.0, completed=True),
        ),
    )
    estimate, reps, weight = PersonalRecordService.best_one_rep_max(entry)
    assert (reps, weight) == (3, 100.0)
    assert estimate == pytest.approx(110.0)


def test_no_working_sets_no_candidates(harness):
    wid, improved = harness.finish(
        [
            WorkoutSet(1, reps=10, weight=40.0, completed=True, is_warmup=True),
            WorkoutSet(2, reps=5, weight=100.0, completed=False),
        ]
    )
    assert improved == []
    assert harness.records.fetch_for_user(harness.user_id) == []


def test_stored_value_converted_to_session_unit(harness):
    harness.finish([WorkoutSet(1, reps=5, weight=100.0, completed=True)], unit="kg")
    # 200 lb is about 90.7 kg, below the stored 100 kg best
    _, improved = harness.finish(
        [WorkoutSet(1, reps=5, weight=200.0, completed=True)], unit="lb"
    )
    assert improved == []
    _, improved = harness.finish(
        [WorkoutSet(1, reps=5, weight=230.0, completed=True)], unit="lb"
    )
    assert {r.record_type for r in improved} == {RecordType.ONE_REP_MAX, RecordType.VOLUME}
    assert harness.stored(RecordType.ONE_REP_MAX).weight_unit == "lb"


def test_failures_become_pr_computation_error(harness):
    snap = harness.snapshot([WorkoutSet(1, reps=5, weight=100.0, completed=True)])
    wid = harness.writer.write(snap)
    with mock.patch.object(harness.records, "upsert", side_effect=RuntimeError("boom")):
        with pytest.raises(PRComputationError):
            harness.service.evaluate(snap, wid)
    assert harness.records.fetch_for_user(harness.user_id) == []
    assert harness.writer.workouts.fetch_detail(wid)["id"] == wid
