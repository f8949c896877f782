from __future__ import annotations
import datetime
from collections import Counter
from typing import Callable, Dict, List, Optional

from db import (
    PersonalRecordRepository,
    WorkoutRepository,
    WorkoutSetRepository,
)
from algorithms import MathTools


class StatisticsService:
    """Compute profile statistics for a user."""

    def __init__(
        self,
        workout_repo: WorkoutRepository,
        set_repo: WorkoutSetRepository,
        record_repo: PersonalRecordRepository | None = None,
        today: Callable[[], datetime.date] = datetime.date.today,
    ) -> None:
        self.workouts = workout_repo
        self.sets = set_repo
        self.records = record_repo
        self._today = today

    @staticmethod
    def _parse_date(ts: str) -> datetime.date:
        return datetime.datetime.fromisoformat(ts).date()

    def workout_streak(self, user_id: int) -> Dict[str, int]:
        """Return current and record streaks of consecutive training days."""
        dates = sorted({self._parse_date(ts) for ts in self.workouts.fetch_start_times(user_id)})
        if not dates:
            return {"current": 0, "record": 0}
        record = 1
        current = 1
        for i in range(1, len(dates)):
            if (dates[i] - dates[i - 1]).days == 1:
                current += 1
            else:
                record = max(record, current)
                current = 1
        record = max(record, current)
        if (self._today() - dates[-1]).days > 1:
            current = 0
        return {"current": current, "record": record}

    def overview(self, user_id: int) -> Dict[str, object]:
        """Return the numbers shown on the profile screen."""
        week_start = self._today() - datetime.timedelta(days=7)
        starts = self.workouts.fetch_start_times(user_id)
        this_week = sum(1 for ts in starts if self._parse_date(ts) >= week_start)
        sets = self.sets.fetch_completed_for_user(user_id)
        total_weight = MathTools.volume((reps, weight) for reps, weight, _n, _d in sets)
        counts = Counter(name for _r, _w, name, _d in sets)
        favorite = min(counts, key=lambda n: (-counts[n], n)) if counts else None
        streak = self.workout_streak(user_id)
        return {
            "total_workouts": len(starts),
            "workouts_this_week": this_week,
            "total_sets": len(sets),
            "total_weight": round(total_weight, 2),
            "favorite_exercise": favorite,
            "current_streak": streak["current"],
            "record_streak": streak["record"],
        }

    def history(self, user_id: int, limit: Optional[int] = 20) -> List[Dict[str, object]]:
        """Return recent workouts, newest first."""
        result = []
        for wid, start, end, duration, volume, notes, exercise_count in self.workouts.fetch_for_user(
            user_id, limit
        ):
            result.append(
                {
                    "id": wid,
                    "start_time": start,
                    "end_time": end,
                    "duration_seconds": duration,
                    "total_volume": round(float(volume or 0.0), 2),
                    "density": round(
                        MathTools.session_density(float(volume or 0.0), float(duration or 0)), 2
                    ),
                    "exercise_count": int(exercise_count),
                    "notes": notes,
                }
            )
        return result

    def personal_records(self, user_id: int) -> List[Dict[str, object]]:
        if self.records is None:
            return []
        return [r.to_dict() for r in self.records.fetch_for_user(user_id)]
