import requests
from typing import Optional


class GymClient:
    """Simple REST client for the workout session API."""

    def __init__(self, base_url: str = "http://localhost:8000", timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _get(self, path: str, **params):
        resp = requests.get(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def _post(self, path: str, **params):
        resp = requests.post(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def _put(self, path: str, **params):
        resp = requests.put(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def _delete(self, path: str, **params):
        resp = requests.delete(f"{self.base_url}{path}", params=params, timeout=self.timeout)
        resp.raise_for_status()
        return resp.json()

    def register(self, name: str, email: str, password: str, weight_unit: str = "kg") -> int:
        return self._post(
            "/users", name=name, email=email, password=password, weight_unit=weight_unit
        )["id"]

    def login(self, email: str, password: str) -> dict:
        return self._post("/auth/login", email=email, password=password)

    def list_exercises(self, user_id: Optional[int] = None, **filters: str) -> list:
        params = {k: v for k, v in filters.items() if v is not None}
        if user_id is not None:
            params["user_id"] = user_id
        return self._get("/exercises", **params)

    def list_templates(self, user_id: int) -> list:
        return self._get("/templates", user_id=user_id)

    def session(self, user_id: int) -> dict:
        return self._get("/session", user_id=user_id)

    def start_session(self, user_id: int, template_id: Optional[int] = None) -> dict:
        params = {"user_id": user_id}
        if template_id is not None:
            params["template_id"] = template_id
        return self._post("/session/start", **params)

    def add_exercise(self, user_id: int, exercise_id: int) -> Optional[int]:
        return self._post("/session/exercises", user_id=user_id, exercise_id=exercise_id)["index"]

    def add_set(self, user_id: int, exercise_index: int) -> dict:
        return self._post(f"/session/exercises/{exercise_index}/sets", user_id=user_id)

    def update_set(self, user_id: int, exercise_index: int, set_index: int, **fields) -> dict:
        params = {k: v for k, v in fields.items() if v is not None}
        return self._put(
            f"/session/exercises/{exercise_index}/sets/{set_index}",
            user_id=user_id,
            **params,
        )

    def remove_set(self, user_id: int, exercise_index: int, set_index: int) -> None:
        self._delete(f"/session/exercises/{exercise_index}/sets/{set_index}", user_id=user_id)

    def end_session(self, user_id: int) -> dict:
        """Finish the workout; raises ``requests.HTTPError`` on 409 or 503."""
        return self._post("/session/end", user_id=user_id)

    def discard_session(self, user_id: int) -> None:
        self._post("/session/discard", user_id=user_id)

    def rest_timer(self, user_id: int) -> dict:
        return self._get("/session/rest_timer", user_id=user_id)

    def list_workouts(self, user_id: int, limit: int = 20) -> list:
        return self._get("/workouts", user_id=user_id, limit=limit)

    def records(self, user_id: int) -> list:
        return self._get("/records", user_id=user_id)

    def stats(self, user_id: int) -> dict:
        return self._get("/stats", user_id=user_id)
