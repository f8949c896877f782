import os
import sys
import unittest
from unittest import mock

import requests

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from client import GymClient


def _response(payload, status: int = 200) -> mock.Mock:
    resp = mock.Mock()
    resp.status_code = status
    resp.json.return_value = payload
    if status >= 400:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    else:
        resp.raise_for_status.return_value = None
    return resp


class ClientTest(unittest.TestCase):
    def setUp(self) -> None:
        self.client = GymClient(base_url="http://testserver/")

    def test_start_session_with_template(self) -> None:
        with mock.patch("client.requests.post", return_value=_response({"started": True})) as post:
            result = self.client.start_session(3, template_id=7)
        self.assertTrue(result["started"])
        post.assert_called_once_with(
            "http://testserver/session/start",
            params={"user_id": 3, "template_id": 7},
            timeout=10.0,
        )

    def test_update_set_drops_unset_fields(self) -> None:
        with mock.patch("client.requests.put", return_value=_response({"reps": 8})) as put:
            self.client.update_set(1, 0, 2, reps=8, weight=None, completed=True)
        put.assert_called_once_with(
            "http://testserver/session/exercises/0/sets/2",
            params={"user_id": 1, "reps": 8, "completed": True},
            timeout=10.0,
        )

    def test_end_session_conflict_raises(self) -> None:
        with mock.patch(
            "client.requests.post",
            return_value=_response({"detail": {"status": "confirm_discard"}}, 409),
        ):
            with self.assertRaises(requests.HTTPError):
                self.client.end_session(1)

    def test_records(self) -> None:
        payload = [{"record_type": "1RM", "value": 116.67}]
        with mock.patch("client.requests.get", return_value=_response(payload)) as get:
            self.assertEqual(self.client.records(2), payload)
        get.assert_called_once_with(
            "http://testserver/records", params={"user_id": 2}, timeout=10.0
        )


if __name__ == "__main__":
    unittest.main()
