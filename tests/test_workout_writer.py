import datetime
import os
import sqlite3
import sys
from unittest import mock

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import (
    ExerciseCatalogRepository,
    SettingsRepository,
    UserRepository,
    WorkoutExerciseRepository,
    WorkoutRepository,
    WorkoutSetRepository,
)
from errors import PersistenceError
from session_models import ExerciseSnapshot, WorkoutSet, WorkoutSnapshot
from workout_writer import WorkoutWriter


def _make_writer(db_path: str, **kwargs) -> WorkoutWriter:
    return WorkoutWriter(
        WorkoutRepository(db_path),
        WorkoutExerciseRepository(db_path),
        WorkoutSetRepository(db_path),
        **kwargs,
    )


def _snapshot(db_path: str, user_id: int) -> WorkoutSnapshot:
    bench = ExerciseCatalogRepository(db_path).fetch_by_name("Bench Press")
    start = datetime.datetime(2024, 5, 1, 7, 0, 0)
    return WorkoutSnapshot(
        user_id=user_id,
        start_time=start,
        end_time=start + datetime.timedelta(minutes=45),
        weight_unit="kg",
        exercises=(
            ExerciseSnapshot(
                exercise=bench,
                sets=(
                    WorkoutSet(1, reps=10, weight=50.0, completed=True, is_warmup=True),
                    WorkoutSet(2, reps=5, weight=100.0, completed=True, rpe=8),
                    WorkoutSet(3, reps=5, weight=100.0, completed=False, notes="skipped"),
                ),
                notes="paused reps",
            ),
        ),
        notes="morning",
    )


@pytest.fixture
def db_path(tmp_path):
    path = str(tmp_path / "writer.db")
    return path


@pytest.fixture
def user_id(db_path):
    return UserRepository(db_path).create("Sam", "sam@example.com", "pw")


def _counts(db_path: str) -> tuple[int, int, int]:
    conn = sqlite3.connect(db_path)
    try:
        return tuple(
            conn.execute(f"SELECT COUNT(*) FROM {t}").fetchone()[0]
            for t in ("workouts", "workout_exercises", "workout_sets")
        )
    finally:
        conn.close()


def test_write_persists_everything(db_path, user_id):
    writer = _make_writer(db_path)
    wid = writer.write(_snapshot(db_path, user_id))
    detail = WorkoutRepository(db_path).fetch_detail(wid)
    assert detail["total_volume"] == 1000.0
    assert detail["duration_seconds"] == 45 * 60
    assert detail["notes"] == "morning"
    assert detail["exercises"][0]["notes"] == "paused reps"
    sets = detail["exercises"][0]["sets"]
    assert [s["set_number"] for s in sets] == [1, 2, 3]
    assert sets[0]["is_warmup"] is True
    assert sets[1]["rpe"] == 8
    assert sets[2]["notes"] == "skipped"
    assert all(s["weight_unit"] == "kg" for s in sets)


def test_failure_after_header_rolls_back(db_path, user_id):
    writer = _make_writer(db_path, attempts=1)
    with mock.patch.object(
        writer.workout_sets, "insert", side_effect=sqlite3.OperationalError("disk I/O error")
    ):
        with pytest.raises(PersistenceError):
            writer.write(_snapshot(db_path, user_id))
    assert _counts(db_path) == (0, 0, 0)


def test_lock_contention_is_retried(db_path, user_id):
    sleeps = []
    writer = _make_writer(db_path, attempts=3, retry_delay=0.5, sleep=sleeps.append)
    real_insert = writer.workouts.insert
    calls = {"n": 0}

    def flaky_insert(*args, **kwargs):
        calls["n"] += 1
        if calls["n"] < 3:
            raise sqlite3.OperationalError("database is locked")
        return real_insert(*args, **kwargs)

    with mock.patch.object(writer.workouts, "insert", side_effect=flaky_insert):
        wid = writer.write(_snapshot(db_path, user_id))
    assert wid == 1
    assert sleeps == [0.5, 0.5]
    assert _counts(db_path) == (1, 1, 3)


def test_retries_are_bounded(db_path, user_id):
    writer = _make_writer(db_path, attempts=3, retry_delay=0, sleep=lambda _s: None)
    with mock.patch.object(
        writer.workouts, "insert", side_effect=sqlite3.OperationalError("database is locked")
    ) as insert:
        with pytest.raises(PersistenceError) as exc:
            writer.write(_snapshot(db_path, user_id))
    assert insert.call_count == 3
    assert exc.value.attempts == 3


def test_constraint_violation_is_not_retried(db_path, user_id):
    writer = _make_writer(db_path, attempts=3, retry_delay=0, sleep=lambda _s: None)
    snapshot = _snapshot(db_path, user_id)
    bad = WorkoutSnapshot(
        user_id=9999,
        start_time=snapshot.start_time,
        end_time=snapshot.end_time,
        weight_unit="kg",
        exercises=snapshot.exercises,
    )
    with pytest.raises(PersistenceError) as exc:
        writer.write(bad)
    assert exc.value.attempts == 1
    assert _counts(db_path) == (0, 0, 0)


def test_retry_settings_come_from_settings_repository(db_path, tmp_path):
    settings = SettingsRepository(db_path, str(tmp_path / "settings.yaml"))
    settings.set_int("save_retry_attempts", 5)
    settings.set_float("save_retry_delay", 1.5)
    writer = _make_writer(db_path, settings_repo=settings)
    assert writer.attempts == 5
    assert writer.retry_delay == 1.5


def test_placeholder_skipped_and_rows_renumbered(db_path, user_id):
    base = _snapshot(db_path, user_id)
    entry = ExerciseSnapshot(
        exercise=base.exercises[0].exercise,
        sets=(
            WorkoutSet(1, is_warmup=True),
            WorkoutSet(2, rest_seconds=120),
            WorkoutSet(3, reps=5, weight=100.0, completed=True),
        ),
    )
    snapshot = WorkoutSnapshot(
        user_id=user_id,
        start_time=base.start_time,
        end_time=base.end_time,
        weight_unit="kg",
        exercises=(entry,),
    )
    wid = _make_writer(db_path).write(snapshot)
    sets = WorkoutRepository(db_path).fetch_detail(wid)["exercises"][0]["sets"]
    assert [(s["set_number"], s["rest_seconds"], s["reps"]) for s in sets] == [
        (1, 120, 0),
        (2, None, 5),
    ]
