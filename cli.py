import argparse
import csv
import datetime
import json
import logging
import os
import shutil
import time

import requests

from algorithms import WeightConverter
from config import DEFAULT_DB_PATH, DEFAULT_YAML_PATH
from db import (
    ExerciseCatalogRepository,
    PersonalRecordRepository,
    SettingsRepository,
    UserRepository,
    WorkoutExerciseRepository,
    WorkoutRepository,
    WorkoutSetRepository,
)
from record_service import PersonalRecordService
from session_models import SetCompleted, SetReps, SetWeight
from session_service import WorkoutSessionService
from stats_service import StatisticsService
from workout_writer import WorkoutWriter

logger = logging.getLogger(__name__)

DEMO_EMAIL = "demo@example.com"


def configure_logging(db_path: str, yaml_path: str) -> None:
    level = SettingsRepository(db_path, yaml_path).get_text("log_level", "INFO")
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def export_workouts(db_path: str, user_id: int, fmt: str, output_dir: str = ".") -> list[str]:
    """Write one file per workout of ``user_id`` and return the paths."""
    workouts = WorkoutRepository(db_path)
    paths: list[str] = []
    for wid, *_ in workouts.fetch_for_user(user_id):
        detail = workouts.fetch_detail(wid)
        out_path = os.path.join(output_dir, f"workout_{wid}.{fmt}")
        with open(out_path, "w", encoding="utf-8", newline="") as f:
            if fmt == "json":
                json.dump(detail, f, indent=2)
            else:
                writer = csv.writer(f)
                writer.writerow(
                    ["Exercise", "Set", "Reps", "Weight", "Unit", "Completed", "Warmup", "RPE"]
                )
                for ex in detail["exercises"]:
                    for s in ex["sets"]:
                        writer.writerow(
                            [
                                ex["name"],
                                s["set_number"],
                                s["reps"],
                                s["weight"],
                                s["weight_unit"],
                                int(s["completed"]),
                                int(s["is_warmup"]),
                                s["rpe"] if s["rpe"] is not None else "",
                            ]
                        )
        paths.append(out_path)
    logger.info("Exported %s workouts to %s", len(paths), output_dir)
    return paths


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def benchmark(url: str, runs: int = 10) -> None:
    times: list[float] = []
    for _ in range(runs):
        t0 = time.time()
        requests.get(f"{url}/health", timeout=5)
        times.append(time.time() - t0)
    avg = sum(times) / len(times)
    print(f"Average /health response time over {runs} runs: {avg:.4f}s")


def demo_data(db_path: str, yaml_path: str) -> int:
    """Create a demo user with one finished workout if none exists."""
    users = UserRepository(db_path)
    existing = users.authenticate(DEMO_EMAIL, "demo")
    if existing is not None:
        print("Demo user already exists")
        return existing["id"]
    user_id = users.create("Demo", DEMO_EMAIL, "demo")
    catalog = ExerciseCatalogRepository(db_path)
    writer = WorkoutWriter(
        WorkoutRepository(db_path),
        WorkoutExerciseRepository(db_path),
        WorkoutSetRepository(db_path),
        SettingsRepository(db_path, yaml_path),
    )
    session = WorkoutSessionService(
        user_id, writer, PersonalRecordService(PersonalRecordRepository(db_path))
    )
    session.start()
    for name, weight in (("Bench Press", 60.0), ("Squats", 80.0)):
        exercise = catalog.fetch_by_name(name)
        if exercise is None:
            continue
        idx = session.add_exercise(exercise)
        session.update_set(idx, 0, SetReps(10))
        session.update_set(idx, 0, SetWeight(weight / 2))
        session.update_set(idx, 0, SetCompleted(True))
        for _ in range(3):
            session.add_set(idx)
        for set_index in range(1, 4):
            session.update_set(idx, set_index, SetReps(8))
            session.update_set(idx, set_index, SetWeight(weight))
            session.update_set(idx, set_index, SetCompleted(True))
    result = session.end()
    print(f"Demo data inserted (user {user_id}, workout {result.workout_id})")
    return user_id


def print_stats(db_path: str, user_id: int) -> None:
    stats = StatisticsService(WorkoutRepository(db_path), WorkoutSetRepository(db_path))
    for key, value in stats.overview(user_id).items():
        print(f"{key}: {value}")


def print_records(db_path: str, user_id: int) -> None:
    records = PersonalRecordRepository(db_path).fetch_for_user(user_id)
    if not records:
        print("No personal records yet")
        return
    for r in records:
        line = f"{r.exercise_name} {r.record_type.value}: {r.value:.2f} {r.weight_unit or ''}".rstrip()
        if r.reps is not None:
            line += f" ({r.reps} x {r.weight})"
        print(line)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    parser.add_argument("--db", default=DEFAULT_DB_PATH)
    parser.add_argument("--yaml", default=DEFAULT_YAML_PATH)
    sub = parser.add_subparsers(dest="cmd", required=True)

    exp = sub.add_parser("export")
    exp.add_argument("--user", type=int, required=True)
    exp.add_argument("--fmt", choices=["csv", "json"], default="csv")
    exp.add_argument("--out", default=".")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")

    sub.add_parser("demo")

    bench = sub.add_parser("benchmark")
    bench.add_argument("--url", default="http://localhost:8000")
    bench.add_argument("--runs", type=int, default=10)

    conv = sub.add_parser("convert")
    conv.add_argument("--weight", type=float, required=True)
    conv.add_argument("--unit", choices=["kg", "lb"], required=True)

    st = sub.add_parser("stats")
    st.add_argument("--user", type=int, required=True)

    rec = sub.add_parser("records")
    rec.add_argument("--user", type=int, required=True)

    args = parser.parse_args(argv)

    if args.cmd == "convert":
        if args.unit == "kg":
            print(f"{args.weight} kg = {WeightConverter.kg_to_lb(args.weight)} lb")
        else:
            print(f"{args.weight} lb = {WeightConverter.lb_to_kg(args.weight)} kg")
        return
    if args.cmd == "benchmark":
        benchmark(args.url, args.runs)
        return
    if args.cmd == "restore":
        restore_db(args.src, args.db)
        return

    configure_logging(args.db, args.yaml)
    if args.cmd == "export":
        export_workouts(args.db, args.user, args.fmt, args.out)
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "demo":
        demo_data(args.db, args.yaml)
    elif args.cmd == "stats":
        print_stats(args.db, args.user)
    elif args.cmd == "records":
        print_records(args.db, args.user)


if __name__ == "__main__":
    main()
