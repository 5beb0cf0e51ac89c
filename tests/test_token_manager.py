import json
import os
import sys
import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from spotify_api.auth import SpotifyAuth
from spotify_api.token_manager import TokenManager, TokenState

NOW = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


class TestTokenStateValidity(unittest.TestCase):
    def test_valid_only_beyond_five_minute_margin(self):
        cases = [
            (timedelta(hours=1), True),
            (timedelta(minutes=5, seconds=1), True),
            (timedelta(minutes=5), False),
            (timedelta(minutes=4, seconds=59), False),
            (timedelta(0), False),
            (timedelta(minutes=-10), False),
        ]
        for delta, expected in cases:
            with self.subTest(delta=delta):
                token = TokenState(access_token="at", refresh_token="rt", expires_at=NOW + delta)
                self.assertEqual(token.is_valid(now=NOW), expected)

    def test_empty_state_is_not_valid(self):
        self.assertFalse(TokenState().is_valid(now=NOW))
        self.assertFalse(TokenState(refresh_token="rt").is_valid(now=NOW))

    def test_access_token_and_expiry_must_come_together(self):
        with self.assertRaises(ValueError):
            TokenState(access_token="at")
        with self.assertRaises(ValueError):
            TokenState(expires_at=NOW)

    def test_from_token_response_uses_absolute_expiry(self):
        token = TokenState.from_token_response({"access_token": "at", "expires_in": 3600}, now=NOW)
        self.assertEqual(token.expires_at, NOW + timedelta(hours=1))
        self.assertIsNone(token.refresh_token)

    def test_from_token_response_keeps_previous_refresh_token(self):
        token = TokenState.from_token_response(
            {"access_token": "at2", "expires_in": 3600}, now=NOW, previous_refresh_token="rt"
        )
        self.assertEqual(token.refresh_token, "rt")

        rotated = TokenState.from_token_response(
            {"access_token": "at3", "expires_in": 3600, "refresh_token": "rt2"}, now=NOW, previous_refresh_token="rt"
        )
        self.assertEqual(rotated.refresh_token, "rt2")


class TestTokenManager(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.cache_path = os.path.join(self._tmp.name, "nested", "spotify_tokens.json")
        self.tm = TokenManager(cache_path=self.cache_path)

    def tearDown(self):
        self._tmp.cleanup()

    def test_token_cache_roundtrip(self):
        token = TokenState(access_token="at", refresh_token="rt", expires_at=NOW + timedelta(minutes=42, seconds=7))
        self.assertTrue(self.tm.save(token, client_id="cid", redirect_uri="http://localhost:8888/callback"))

        loaded = self.tm.load()
        self.assertEqual(loaded, token)
        assert loaded is not None
        self.assertIsNotNone(loaded.expires_at.tzinfo)

    def test_file_layout(self):
        token = TokenState(access_token="at", refresh_token="rt", expires_at=NOW)
        self.tm.save(token, client_id="cid", redirect_uri="http://localhost:8888/callback")

        with open(self.cache_path, "r", encoding="utf-8") as f:
            data = json.load(f)

        self.assertEqual(
            set(data.keys()), {"accessToken", "refreshToken", "expiresAt", "clientId", "redirectUri"}
        )
        self.assertEqual(data["clientId"], "cid")
        self.assertEqual(datetime.fromisoformat(data["expiresAt"]), NOW)

    def test_load_missing_file(self):
        self.assertIsNone(self.tm.load())

    def test_load_corrupted_file(self):
        os.makedirs(os.path.dirname(self.cache_path), exist_ok=True)
        with open(self.cache_path, "w", encoding="utf-8") as f:
            f.write("{not json")
        self.assertIsNone(self.tm.load())

    def test_load_refresh_token_only(self):
        os.makedirs(os.path.dirname(self.cache_path), exist_ok=True)
        with open(self.cache_path, "w", encoding="utf-8") as f:
            json.dump({"accessToken": None, "refreshToken": "rt", "expiresAt": None}, f)

        loaded = self.tm.load()
        self.assertEqual(loaded, TokenState(refresh_token="rt"))

    def test_clear(self):
        self.tm.save(TokenState(refresh_token="rt"))
        self.assertTrue(self.tm.clear())
        self.assertFalse(os.path.exists(self.cache_path))
        self.assertTrue(self.tm.clear())


class TestAuthPersistence(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tm = TokenManager(cache_path=os.path.join(self._tmp.name, "spotify_tokens.json"))

    def tearDown(self):
        self._tmp.cleanup()

    def _auth(self, now=NOW):
        return SpotifyAuth(
            {"spotify_client_id": "cid", "spotify_client_secret": "secret"},
            token_manager=self.tm,
            clock=lambda: now,
        )

    def test_persist_then_restore_roundtrip(self):
        auth = self._auth()
        auth.token = TokenState(access_token="at", refresh_token="rt", expires_at=NOW + timedelta(hours=1))
        self.assertTrue(auth.persist())

        restored = self._auth()
        self.assertTrue(restored.restore())
        self.assertEqual(restored.token, auth.token)

    def test_restore_expired_token_loads_but_is_not_ready(self):
        auth = self._auth()
        auth.token = TokenState(access_token="at", refresh_token="rt", expires_at=NOW + timedelta(minutes=2))
        auth.persist()

        restored = self._auth()
        self.assertFalse(restored.restore())
        self.assertEqual(restored.token.refresh_token, "rt")
        self.assertFalse(restored.is_valid())

    def test_restore_without_file(self):
        self.assertFalse(self._auth().restore())

    def test_logout_clears_state_and_file(self):
        auth = self._auth()
        auth.token = TokenState(access_token="at", refresh_token="rt", expires_at=NOW + timedelta(hours=1))
        auth.persist()

        self.assertTrue(auth.logout())
        self.assertEqual(auth.token, TokenState())
        self.assertIsNone(self.tm.load())


if __name__ == "__main__":
    unittest.main(verbosity=2)
