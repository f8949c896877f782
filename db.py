import sqlite3
import csv
import os
import datetime
import hashlib
from contextlib import contextmanager
from typing import List, Tuple, Optional

from config import YamlConfig, DEFAULT_DB_PATH, DEFAULT_YAML_PATH
from settings_schema import validate_settings, DEFAULT_SETTINGS
from session_models import Exercise, PersonalRecord, RecordType, WorkoutSet


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "users": (
            """CREATE TABLE users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE,
                    password_hash TEXT NOT NULL,
                    bio TEXT,
                    weight REAL,
                    height REAL,
                    preferred_weight_unit TEXT NOT NULL DEFAULT 'kg',
                    theme_preference TEXT NOT NULL DEFAULT 'light',
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );""",
            [
                "id",
                "name",
                "email",
                "password_hash",
                "bio",
                "weight",
                "height",
                "preferred_weight_unit",
                "theme_preference",
                "created_at",
            ],
        ),
        "exercises": (
            """CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    category TEXT NOT NULL,
                    primary_muscle TEXT NOT NULL,
                    secondary_muscles TEXT,
                    equipment TEXT,
                    difficulty_level INTEGER CHECK(difficulty_level BETWEEN 1 AND 5),
                    instructions TEXT,
                    is_custom INTEGER NOT NULL DEFAULT 0,
                    user_id INTEGER,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "name",
                "category",
                "primary_muscle",
                "secondary_muscles",
                "equipment",
                "difficulty_level",
                "instructions",
                "is_custom",
                "user_id",
            ],
        ),
        "workout_templates": (
            """CREATE TABLE workout_templates (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    name TEXT NOT NULL,
                    description TEXT,
                    is_favorite INTEGER NOT NULL DEFAULT 0,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            ["id", "user_id", "name", "description", "is_favorite"],
        ),
        "template_exercises": (
            """CREATE TABLE template_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    template_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    order_index INTEGER NOT NULL,
                    default_sets INTEGER NOT NULL DEFAULT 3,
                    default_reps INTEGER NOT NULL DEFAULT 10,
                    default_weight REAL NOT NULL DEFAULT 0,
                    rest_time_seconds INTEGER,
                    notes TEXT,
                    FOREIGN KEY(template_id) REFERENCES workout_templates(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "template_id",
                "exercise_id",
                "order_index",
                "default_sets",
                "default_reps",
                "default_weight",
                "rest_time_seconds",
                "notes",
            ],
        ),
        "workouts": (
            """CREATE TABLE workouts (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT,
                    duration_seconds INTEGER,
                    total_volume REAL NOT NULL DEFAULT 0,
                    notes TEXT,
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "user_id",
                "start_time",
                "end_time",
                "duration_seconds",
                "total_volume",
                "notes",
            ],
        ),
        "workout_exercises": (
            """CREATE TABLE workout_exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    order_index INTEGER NOT NULL,
                    notes TEXT,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE CASCADE
                );""",
            ["id", "workout_id", "exercise_id", "order_index", "notes"],
        ),
        "workout_sets": (
            """CREATE TABLE workout_sets (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    workout_exercise_id INTEGER NOT NULL,
                    set_number INTEGER NOT NULL,
                    reps INTEGER NOT NULL DEFAULT 0,
                    weight REAL NOT NULL DEFAULT 0,
                    weight_unit TEXT NOT NULL DEFAULT 'kg',
                    completed INTEGER NOT NULL DEFAULT 0,
                    is_warmup INTEGER NOT NULL DEFAULT 0,
                    rest_time_seconds INTEGER,
                    rpe INTEGER CHECK(rpe IS NULL OR rpe BETWEEN 1 AND 10),
                    notes TEXT,
                    FOREIGN KEY(workout_exercise_id) REFERENCES workout_exercises(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "workout_exercise_id",
                "set_number",
                "reps",
                "weight",
                "weight_unit",
                "completed",
                "is_warmup",
                "rest_time_seconds",
                "rpe",
                "notes",
            ],
        ),
        "personal_records": (
            """CREATE TABLE personal_records (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    exercise_id INTEGER NOT NULL,
                    record_type TEXT NOT NULL CHECK(record_type IN ('1RM', 'volume')),
                    value REAL NOT NULL,
                    reps INTEGER,
                    weight REAL,
                    weight_unit TEXT,
                    workout_id INTEGER,
                    achieved_at TEXT NOT NULL,
                    UNIQUE(user_id, exercise_id, record_type),
                    FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE CASCADE,
                    FOREIGN KEY(workout_id) REFERENCES workouts(id) ON DELETE SET NULL
                );""",
            [
                "id",
                "user_id",
                "exercise_id",
                "record_type",
                "value",
                "reps",
                "weight",
                "weight_unit",
                "workout_id",
                "achieved_at",
            ],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    def __init__(self, db_path: str = DEFAULT_DB_PATH, timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout
        self._ensure_schema()
        self._import_exercise_catalog_data()
        self._init_settings()

    @property
    def db_path(self) -> str:
        return self._db_path

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path, timeout=self._timeout)
        connection.execute("PRAGMA foreign_keys = ON;")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    @contextmanager
    def transaction(self):
        """Yield a connection holding the database write lock until commit.

        Everything executed on the connection is committed together or rolled
        back together when the block raises.
        """
        connection = sqlite3.connect(
            self._db_path, timeout=self._timeout, isolation_level=None
        )
        try:
            connection.execute("PRAGMA foreign_keys = ON;")
            connection.execute("BEGIN IMMEDIATE;")
            try:
                yield connection
            except BaseException:
                if connection.in_transaction:
                    connection.execute("ROLLBACK;")
                raise
            connection.execute("COMMIT;")
        finally:
            connection.close()

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            conn.execute("PRAGMA journal_mode = WAL;")
            conn.execute("PRAGMA foreign_keys = OFF;")
            conn.execute("PRAGMA legacy_alter_table = ON;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            conn.commit()
            conn.execute("PRAGMA legacy_alter_table = OFF;")
            conn.execute("PRAGMA foreign_keys = ON;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        cur = conn.execute(f"PRAGMA table_info({table});")
        existing_cols = [row[1] for row in cur.fetchall()]
        if existing_cols == columns:
            return

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col in ("weight_unit", "preferred_weight_unit"):
                        return "'kg'"
                    if col == "theme_preference":
                        return "'light'"
                    if col in ("completed", "is_warmup", "is_custom", "is_favorite", "total_volume", "reps", "weight"):
                        return "0"
                    if col in ("created_at", "achieved_at"):
                        return "CURRENT_TIMESTAMP"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")

    def _import_exercise_catalog_data(self) -> None:
        csv_path = os.path.join(os.path.dirname(__file__), "exercise_catalog.csv")
        if not os.path.exists(csv_path):
            return
        with self._connection() as conn:
            count = conn.execute("SELECT COUNT(*) FROM exercises;").fetchone()[0]
            if count:
                return
            with open(csv_path, newline="", encoding="utf-8") as csvfile:
                reader = csv.DictReader(csvfile)
                records = [
                    (
                        row["name"],
                        row["category"],
                        row["primary_muscle"],
                        row.get("secondary_muscles", ""),
                        row.get("equipment") or None,
                        int(row["difficulty_level"]),
                        row.get("instructions", ""),
                    )
                    for row in reader
                ]
            conn.executemany(
                "INSERT INTO exercises (name, category, primary_muscle, secondary_muscles, equipment, difficulty_level, instructions, is_custom) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, 0);",
                records,
            )

    def _init_settings(self) -> None:
        with self._connection() as conn:
            for key, value in DEFAULT_SETTINGS.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, str(value)),
                )

    def vacuum(self) -> None:
        """Run SQLite VACUUM to reduce database size."""
        with self._connection() as conn:
            conn.execute("VACUUM;")


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _delete_all(self, table: str) -> None:
        self.execute(f"DELETE FROM {table};")


class UserRepository(BaseRepository):
    """Repository for user accounts and their preferences."""

    _COLUMNS = "id, name, email, bio, weight, height, preferred_weight_unit, theme_preference, created_at"

    @staticmethod
    def _hash(password: str) -> str:
        return hashlib.sha256(password.encode("utf-8")).hexdigest()

    def _row_to_dict(self, row: tuple) -> dict:
        keys = [c.strip() for c in self._COLUMNS.split(",")]
        return dict(zip(keys, row))

    def create(
        self,
        name: str,
        email: str,
        password: str,
        weight_unit: str = "kg",
        theme: str = "light",
    ) -> int:
        if not name.strip():
            raise ValueError("name must not be empty")
        if "@" not in email:
            raise ValueError("invalid email")
        if weight_unit not in ("kg", "lb"):
            raise ValueError("weight unit must be kg or lb")
        if self.fetch_all("SELECT id FROM users WHERE email = ?;", (email.lower(),)):
            raise ValueError("email already registered")
        return self.execute(
            "INSERT INTO users (name, email, password_hash, preferred_weight_unit, theme_preference) VALUES (?, ?, ?, ?, ?);",
            (name.strip(), email.lower(), self._hash(password), weight_unit, theme),
        )

    def authenticate(self, email: str, password: str) -> Optional[dict]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM users WHERE email = ? AND password_hash = ?;",
            (email.lower(), self._hash(password)),
        )
        return self._row_to_dict(rows[0]) if rows else None

    def fetch_detail(self, user_id: int) -> dict:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM users WHERE id = ?;", (user_id,)
        )
        if not rows:
            raise ValueError("user not found")
        return self._row_to_dict(rows[0])

    def update_preferences(
        self,
        user_id: int,
        weight_unit: Optional[str] = None,
        theme: Optional[str] = None,
    ) -> None:
        self.fetch_detail(user_id)
        if weight_unit is not None:
            if weight_unit not in ("kg", "lb"):
                raise ValueError("weight unit must be kg or lb")
            self.execute(
                "UPDATE users SET preferred_weight_unit = ? WHERE id = ?;",
                (weight_unit, user_id),
            )
        if theme is not None:
            self.execute(
                "UPDATE users SET theme_preference = ? WHERE id = ?;",
                (theme, user_id),
            )


class ExerciseCatalogRepository(BaseRepository):
    """Read access to exercise definitions plus user-defined exercises."""

    _COLUMNS = "id, name, category, primary_muscle, secondary_muscles, equipment, difficulty_level, instructions"

    def fetch(self, exercise_id: int) -> Exercise:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercises WHERE id = ?;", (exercise_id,)
        )
        if not rows:
            raise ValueError("exercise not found")
        return Exercise.from_row(rows[0])

    def fetch_by_name(self, name: str) -> Optional[Exercise]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercises WHERE name = ? COLLATE NOCASE ORDER BY is_custom, id LIMIT 1;",
            (name,),
        )
        return Exercise.from_row(rows[0]) if rows else None

    def fetch_exercises(
        self,
        user_id: Optional[int] = None,
        category: Optional[str] = None,
        query: Optional[str] = None,
    ) -> list[Exercise]:
        sql = f"SELECT {self._COLUMNS} FROM exercises WHERE (is_custom = 0 OR user_id = ?)"
        params: list = [user_id or 0]
        if category and category != "All":
            sql += " AND category = ?"
            params.append(category)
        if query:
            sql += " AND (name LIKE ? OR primary_muscle LIKE ?)"
            params.extend([f"%{query}%", f"%{query}%"])
        sql += " ORDER BY category, name;"
        return [Exercise.from_row(r) for r in self.fetch_all(sql, tuple(params))]

    def categories(self) -> list[str]:
        rows = self.fetch_all("SELECT DISTINCT category FROM exercises ORDER BY category;")
        return [r[0] for r in rows]

    def add_custom(
        self,
        user_id: int,
        name: str,
        category: str,
        primary_muscle: str,
        secondary_muscles: Optional[list[str]] = None,
        equipment: Optional[str] = None,
        difficulty_level: int = 1,
        instructions: Optional[str] = None,
    ) -> int:
        if not name.strip():
            raise ValueError("name must not be empty")
        if not 1 <= difficulty_level <= 5:
            raise ValueError("difficulty must be between 1 and 5")
        return self.execute(
            "INSERT INTO exercises (name, category, primary_muscle, secondary_muscles, equipment, difficulty_level, instructions, is_custom, user_id) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, 1, ?);",
            (
                name.strip(),
                category,
                primary_muscle,
                ",".join(secondary_muscles or []),
                equipment,
                difficulty_level,
                instructions,
                user_id,
            ),
        )


class TemplateRepository(BaseRepository):
    """Repository for workout templates and their exercises."""

    def create(
        self,
        user_id: int,
        name: str,
        description: Optional[str] = None,
        is_favorite: bool = False,
    ) -> int:
        if not name.strip():
            raise ValueError("name must not be empty")
        return self.execute(
            "INSERT INTO workout_templates (user_id, name, description, is_favorite) VALUES (?, ?, ?, ?);",
            (user_id, name.strip(), description, int(is_favorite)),
        )

    def fetch_detail(self, template_id: int) -> tuple[int, int, str, Optional[str], bool]:
        rows = self.fetch_all(
            "SELECT id, user_id, name, description, is_favorite FROM workout_templates WHERE id = ?;",
            (template_id,),
        )
        if not rows:
            raise ValueError("template not found")
        tid, uid, name, description, fav = rows[0]
        return tid, uid, name, description, bool(fav)

    def fetch_for_user(self, user_id: int) -> list[dict]:
        rows = self.fetch_all(
            "SELECT wt.id, wt.name, wt.description, wt.is_favorite, COUNT(te.id) "
            "FROM workout_templates wt "
            "LEFT JOIN template_exercises te ON wt.id = te.template_id "
            "WHERE wt.user_id = ? "
            "GROUP BY wt.id "
            "ORDER BY wt.is_favorite DESC, wt.name;",
            (user_id,),
        )
        return [
            {
                "id": tid,
                "name": name,
                "description": description,
                "is_favorite": bool(fav),
                "exercise_count": int(count),
            }
            for tid, name, description, fav, count in rows
        ]

    def add_exercise(
        self,
        template_id: int,
        exercise_id: int,
        default_sets: int = 3,
        default_reps: int = 10,
        default_weight: float = 0.0,
        rest_seconds: Optional[int] = None,
        notes: Optional[str] = None,
    ) -> int:
        self.fetch_detail(template_id)
        if default_sets <= 0:
            raise ValueError("default sets must be positive")
        if default_reps < 0 or default_weight < 0:
            raise ValueError("defaults must be non-negative")
        rows = self.fetch_all(
            "SELECT COALESCE(MAX(order_index), -1) + 1 FROM template_exercises WHERE template_id = ?;",
            (template_id,),
        )
        order_index = int(rows[0][0]) if rows else 0
        return self.execute(
            "INSERT INTO template_exercises (template_id, exercise_id, order_index, default_sets, default_reps, default_weight, rest_time_seconds, notes) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
            (
                template_id,
                exercise_id,
                order_index,
                default_sets,
                default_reps,
                default_weight,
                rest_seconds,
                notes,
            ),
        )

    def fetch_exercises(self, template_id: int) -> list[tuple]:
        """Return template rows joined with their catalog exercise, in order."""
        return self.fetch_all(
            "SELECT e.id, e.name, e.category, e.primary_muscle, e.secondary_muscles, e.equipment, e.difficulty_level, e.instructions, "
            "te.default_sets, te.default_reps, te.default_weight, te.rest_time_seconds, te.notes "
            "FROM template_exercises te "
            "JOIN exercises e ON te.exercise_id = e.id "
            "WHERE te.template_id = ? "
            "ORDER BY te.order_index;",
            (template_id,),
        )

    def set_favorite(self, template_id: int, is_favorite: bool) -> None:
        self.fetch_detail(template_id)
        self.execute(
            "UPDATE workout_templates SET is_favorite = ? WHERE id = ?;",
            (int(is_favorite), template_id),
        )

    def delete(self, template_id: int) -> None:
        self.fetch_detail(template_id)
        self.execute("DELETE FROM workout_templates WHERE id = ?;", (template_id,))


class WorkoutRepository(BaseRepository):
    """Repository for finished workout headers."""

    def insert(
        self,
        conn: sqlite3.Connection,
        user_id: int,
        start_time: str,
        end_time: str,
        duration_seconds: int,
        total_volume: float,
        notes: Optional[str],
    ) -> int:
        cursor = conn.execute(
            "INSERT INTO workouts (user_id, start_time, end_time, duration_seconds, total_volume, notes) VALUES (?, ?, ?, ?, ?, ?);",
            (user_id, start_time, end_time, duration_seconds, total_volume, notes),
        )
        return cursor.lastrowid

    def fetch_for_user(
        self, user_id: int, limit: Optional[int] = None
    ) -> List[Tuple[int, str, Optional[str], Optional[int], float, Optional[str], int]]:
        query = (
            "SELECT w.id, w.start_time, w.end_time, w.duration_seconds, w.total_volume, w.notes, COUNT(we.id) "
            "FROM workouts w LEFT JOIN workout_exercises we ON we.workout_id = w.id "
            "WHERE w.user_id = ? GROUP BY w.id ORDER BY w.start_time DESC, w.id DESC"
        )
        params: tuple = (user_id,)
        if limit is not None:
            query += " LIMIT ?"
            params = (user_id, limit)
        return self.fetch_all(query + ";", params)

    def fetch_start_times(self, user_id: int) -> list[str]:
        rows = self.fetch_all(
            "SELECT start_time FROM workouts WHERE user_id = ? ORDER BY start_time;",
            (user_id,),
        )
        return [r[0] for r in rows]

    def fetch_detail(self, workout_id: int) -> dict:
        rows = self.fetch_all(
            "SELECT id, user_id, start_time, end_time, duration_seconds, total_volume, notes FROM workouts WHERE id = ?;",
            (workout_id,),
        )
        if not rows:
            raise ValueError("workout not found")
        wid, uid, start, end, duration, volume, notes = rows[0]
        exercises = []
        for we_id, ex_id, name, order_index, ex_notes in self.fetch_all(
            "SELECT we.id, we.exercise_id, e.name, we.order_index, we.notes "
            "FROM workout_exercises we JOIN exercises e ON e.id = we.exercise_id "
            "WHERE we.workout_id = ? ORDER BY we.order_index;",
            (wid,),
        ):
            sets = [
                {
                    "set_number": r[0],
                    "reps": r[1],
                    "weight": r[2],
                    "weight_unit": r[3],
                    "completed": bool(r[4]),
                    "is_warmup": bool(r[5]),
                    "rest_seconds": r[6],
                    "rpe": r[7],
                    "notes": r[8],
                }
                for r in self.fetch_all(
                    "SELECT set_number, reps, weight, weight_unit, completed, is_warmup, rest_time_seconds, rpe, notes "
                    "FROM workout_sets WHERE workout_exercise_id = ? ORDER BY id;",
                    (we_id,),
                )
            ]
            exercises.append(
                {
                    "id": we_id,
                    "exercise_id": ex_id,
                    "name": name,
                    "order_index": order_index,
                    "notes": ex_notes,
                    "sets": sets,
                }
            )
        return {
            "id": wid,
            "user_id": uid,
            "start_time": start,
            "end_time": end,
            "duration_seconds": duration,
            "total_volume": volume,
            "notes": notes,
            "exercises": exercises,
        }

    def delete(self, workout_id: int) -> None:
        self.execute("DELETE FROM workouts WHERE id = ?;", (workout_id,))


class WorkoutExerciseRepository(BaseRepository):
    """Repository for exercises performed in a finished workout."""

    def insert(
        self,
        conn: sqlite3.Connection,
        workout_id: int,
        exercise_id: int,
        order_index: int,
        notes: Optional[str],
    ) -> int:
        cursor = conn.execute(
            "INSERT INTO workout_exercises (workout_id, exercise_id, order_index, notes) VALUES (?, ?, ?, ?);",
            (workout_id, exercise_id, order_index, notes),
        )
        return cursor.lastrowid

    def fetch_for_workout(self, workout_id: int) -> List[Tuple[int, int, int, Optional[str]]]:
        return self.fetch_all(
            "SELECT id, exercise_id, order_index, notes FROM workout_exercises WHERE workout_id = ? ORDER BY order_index;",
            (workout_id,),
        )


class WorkoutSetRepository(BaseRepository):
    """Repository for sets of finished workouts."""

    def insert(
        self,
        conn: sqlite3.Connection,
        workout_exercise_id: int,
        workout_set: WorkoutSet,
        weight_unit: str,
    ) -> int:
        cursor = conn.execute(
            "INSERT INTO workout_sets (workout_exercise_id, set_number, reps, weight, weight_unit, completed, is_warmup, rest_time_seconds, rpe, notes) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?);",
            (
                workout_exercise_id,
                workout_set.set_number,
                workout_set.reps,
                workout_set.weight,
                weight_unit,
                int(workout_set.completed),
                int(workout_set.is_warmup),
                workout_set.rest_seconds,
                workout_set.rpe,
                workout_set.notes,
            ),
        )
        return cursor.lastrowid

    def fetch_for_workout_exercise(self, workout_exercise_id: int) -> List[Tuple]:
        return self.fetch_all(
            "SELECT id, set_number, reps, weight, weight_unit, completed, is_warmup, rest_time_seconds, rpe, notes "
            "FROM workout_sets WHERE workout_exercise_id = ? ORDER BY id;",
            (workout_exercise_id,),
        )

    def fetch_completed_for_user(self, user_id: int) -> List[Tuple[int, float, str, str]]:
        """Return ``(reps, weight, exercise name, start_time)`` of completed sets."""
        return self.fetch_all(
            "SELECT ws.reps, ws.weight, e.name, w.start_time "
            "FROM workout_sets ws "
            "JOIN workout_exercises we ON ws.workout_exercise_id = we.id "
            "JOIN workouts w ON we.workout_id = w.id "
            "JOIN exercises e ON we.exercise_id = e.id "
            "WHERE w.user_id = ? AND ws.completed = 1;",
            (user_id,),
        )


class PersonalRecordRepository(BaseRepository):
    """Repository for best-known results per user, exercise and record type."""

    _COLUMNS = "pr.user_id, pr.exercise_id, pr.record_type, pr.value, pr.workout_id, pr.reps, pr.weight, pr.weight_unit, e.name, pr.achieved_at"

    @staticmethod
    def _row_to_record(row: tuple) -> PersonalRecord:
        uid, ex_id, rtype, value, wid, reps, weight, unit, name, achieved = row
        return PersonalRecord(
            user_id=uid,
            exercise_id=ex_id,
            record_type=RecordType(rtype),
            value=float(value),
            workout_id=wid,
            reps=reps,
            weight=weight,
            weight_unit=unit,
            exercise_name=name,
            achieved_at=achieved,
        )

    def fetch(
        self,
        user_id: int,
        exercise_id: int,
        record_type: RecordType,
        conn: Optional[sqlite3.Connection] = None,
    ) -> Optional[PersonalRecord]:
        query = (
            f"SELECT {self._COLUMNS} FROM personal_records pr "
            "JOIN exercises e ON e.id = pr.exercise_id "
            "WHERE pr.user_id = ? AND pr.exercise_id = ? AND pr.record_type = ?;"
        )
        params = (user_id, exercise_id, record_type.value)
        if conn is not None:
            rows = conn.execute(query, params).fetchall()
        else:
            rows = self.fetch_all(query, params)
        return self._row_to_record(rows[0]) if rows else None

    def upsert(self, conn: sqlite3.Connection, record: PersonalRecord) -> None:
        achieved = record.achieved_at or datetime.datetime.now().isoformat(timespec="seconds")
        conn.execute(
            "INSERT INTO personal_records (user_id, exercise_id, record_type, value, reps, weight, weight_unit, workout_id, achieved_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?) "
            "ON CONFLICT(user_id, exercise_id, record_type) DO UPDATE SET "
            "value=excluded.value, reps=excluded.reps, weight=excluded.weight, "
            "weight_unit=excluded.weight_unit, workout_id=excluded.workout_id, achieved_at=excluded.achieved_at;",
            (
                record.user_id,
                record.exercise_id,
                record.record_type.value,
                record.value,
                record.reps,
                record.weight,
                record.weight_unit,
                record.workout_id,
                achieved,
            ),
        )

    def fetch_for_user(self, user_id: int) -> list[PersonalRecord]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM personal_records pr "
            "JOIN exercises e ON e.id = pr.exercise_id "
            "WHERE pr.user_id = ? ORDER BY e.name, pr.record_type;",
            (user_id,),
        )
        return [self._row_to_record(r) for r in rows]


class SettingsRepository(BaseRepository):
    """Repository for general application settings synchronized with YAML."""

    def __init__(
        self, db_path: str = DEFAULT_DB_PATH, yaml_path: str = DEFAULT_YAML_PATH
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, float | int | str] = {}
        for k, v in rows:
            kind = type(DEFAULT_SETTINGS.get(k, ""))
            try:
                if kind is int:
                    result[k] = int(float(v))
                elif kind is float:
                    result[k] = float(v)
                else:
                    result[k] = v
            except ValueError:
                result[k] = v
        return result

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, str(value)),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def get_float(self, key: str, default: float) -> float:
        try:
            return float(self.get_text(key, str(default)))
        except ValueError:
            return default

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        return self.get_text(key, "1" if default else "0") in {
            "1",
            "true",
            "True",
            "1.0",
        }

    def get_list(self, key: str) -> list[str]:
        val = self.get_text(key, "")
        return [v.strip() for v in val.split(",") if v.strip()]

    def set_text(self, key: str, value: str) -> None:
        candidate = self._raw_all_settings()
        candidate[key] = value
        validate_settings(candidate)
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(value))

    def set_float(self, key: str, value: float) -> None:
        self.set_text(key, str(value))

    def all_settings(self) -> dict:
        self._sync_from_yaml()
        return self._raw_all_settings()
