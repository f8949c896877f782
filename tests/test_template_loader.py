import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from db import ExerciseCatalogRepository, TemplateRepository, UserRepository
from errors import ValidationError
from template_service import TemplateLoader


class TemplateLoaderTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_templates.db"
        self._cleanup()
        self.user_id = UserRepository(self.db_path).create("Lee", "lee@example.com", "pw")
        self.catalog = ExerciseCatalogRepository(self.db_path)
        self.templates = TemplateRepository(self.db_path)
        self.loader = TemplateLoader(self.templates)

    def tearDown(self) -> None:
        self._cleanup()

    def _cleanup(self) -> None:
        for suffix in ("", "-wal", "-shm"):
            if os.path.exists(self.db_path + suffix):
                os.remove(self.db_path + suffix)

    def test_load_keeps_order_and_defaults(self) -> None:
        tid = self.templates.create(self.user_id, "Full body", "Mon")
        squat = self.catalog.fetch_by_name("Squats")
        bench = self.catalog.fetch_by_name("Bench Press")
        self.templates.add_exercise(tid, squat.id, 5, 5, 100.0, 180, "low bar")
        self.templates.add_exercise(tid, bench.id, 3, 8, 70.0)
        planned = self.loader.load(tid)
        self.assertEqual([p.exercise.name for p in planned], ["Squats", "Bench Press"])
        self.assertEqual(planned[0].default_sets, 5)
        self.assertEqual(planned[0].rest_seconds, 180)
        self.assertEqual(planned[0].notes, "low bar")
        self.assertIsNone(planned[1].rest_seconds)

    def test_expand_builds_default_sets(self) -> None:
        tid = self.templates.create(self.user_id, "Push")
        bench = self.catalog.fetch_by_name("Bench Press")
        self.templates.add_exercise(tid, bench.id, 4, 6, 80.0, 120)
        expanded = self.loader.expand(tid)
        sets = expanded[0].sets
        self.assertEqual([s.set_number for s in sets], [1, 2, 3, 4])
        self.assertTrue(all(s.reps == 6 and s.weight == 80.0 for s in sets))
        self.assertTrue(all(s.rest_seconds == 120 for s in sets))
        self.assertFalse(any(s.completed for s in sets))

    def test_empty_template(self) -> None:
        tid = self.templates.create(self.user_id, "Empty")
        self.assertEqual(self.loader.load(tid), [])

    def test_unknown_template(self) -> None:
        with self.assertRaises(ValidationError):
            self.loader.load(42)

    def test_template_repository_listing(self) -> None:
        a = self.templates.create(self.user_id, "B plan")
        b = self.templates.create(self.user_id, "A plan")
        self.templates.add_exercise(a, 1)
        self.templates.set_favorite(a, True)
        listing = self.templates.fetch_for_user(self.user_id)
        self.assertEqual([t["id"] for t in listing], [a, b])
        self.assertEqual(listing[0]["exercise_count"], 1)
        self.assertTrue(listing[0]["is_favorite"])
        self.templates.delete(a)
        self.assertEqual(len(self.templates.fetch_for_user(self.user_id)), 1)
        with self.assertRaises(ValueError):
            self.templates.add_exercise(b, 1, default_sets=0)


if __name__ == "__main__":
    unittest.main()
