import csv
import json
import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from cli import (
    backup_db,
    demo_data,
    export_workouts,
    main,
    print_records,
    restore_db,
)
from db import WorkoutRepository


class CLIToolsTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_cli.db"
        self.yaml_path = "test_cli.yaml"
        self._cleanup()
        self.user_id = demo_data(self.db_path, self.yaml_path)

    def tearDown(self) -> None:
        self._cleanup()

    def _cleanup(self) -> None:
        for path in [
            self.db_path,
            self.db_path + "-wal",
            self.db_path + "-shm",
            self.yaml_path,
            "backup.db",
            "exports",
        ]:
            if os.path.exists(path):
                if os.path.isdir(path):
                    for f in os.listdir(path):
                        os.remove(os.path.join(path, f))
                    os.rmdir(path)
                else:
                    os.remove(path)

    def test_demo_data_is_idempotent(self) -> None:
        self.assertEqual(demo_data(self.db_path, self.yaml_path), self.user_id)
        workouts = WorkoutRepository(self.db_path).fetch_for_user(self.user_id)
        self.assertEqual(len(workouts), 1)
        detail = WorkoutRepository(self.db_path).fetch_detail(workouts[0][0])
        self.assertEqual(len(detail["exercises"]), 2)
        self.assertEqual(len(detail["exercises"][0]["sets"]), 4)

    def test_export_json_and_csv(self) -> None:
        os.makedirs("exports", exist_ok=True)
        paths = export_workouts(self.db_path, self.user_id, "json", "exports")
        self.assertEqual(len(paths), 1)
        with open(paths[0], encoding="utf-8") as f:
            data = json.load(f)
        self.assertEqual(data["exercises"][0]["name"], "Bench Press")

        paths = export_workouts(self.db_path, self.user_id, "csv", "exports")
        with open(paths[0], newline="", encoding="utf-8") as f:
            rows = list(csv.reader(f))
        self.assertEqual(rows[0][0], "Exercise")
        self.assertEqual(len(rows), 1 + 8)
        self.assertEqual(rows[1][6], "1")

    def test_backup_restore(self) -> None:
        backup_db(self.db_path, "backup.db")
        self.assertTrue(os.path.exists("backup.db"))
        os.remove(self.db_path)
        restore_db("backup.db", self.db_path)
        workouts = WorkoutRepository(self.db_path).fetch_for_user(self.user_id)
        self.assertEqual(len(workouts), 1)

    def test_records_output(self) -> None:
        from io import StringIO
        from contextlib import redirect_stdout

        out = StringIO()
        with redirect_stdout(out):
            print_records(self.db_path, self.user_id)
        text = out.getvalue()
        self.assertIn("Bench Press 1RM: 76.00 kg (8 x 60.0)", text)
        self.assertIn("Squats volume: 1920.00 kg", text)

    def test_convert_command(self) -> None:
        from io import StringIO
        from contextlib import redirect_stdout

        out = StringIO()
        with redirect_stdout(out):
            main(["convert", "--weight", "100", "--unit", "kg"])
        self.assertEqual(out.getvalue().strip(), "100.0 kg = 220.46 lb")

    def test_stats_command(self) -> None:
        from io import StringIO
        from contextlib import redirect_stdout

        out = StringIO()
        with redirect_stdout(out):
            main(["--db", self.db_path, "--yaml", self.yaml_path, "stats", "--user", str(self.user_id)])
        self.assertIn("total_workouts: 1", out.getvalue())
        self.assertIn("total_sets: 8", out.getvalue())


if __name__ == "__main__":
    unittest.main()
