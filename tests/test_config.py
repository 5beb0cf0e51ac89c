import json
import os
import sys
import tempfile
import unittest
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from config import DEFAULT_CONFIG, check_spotify_credentials, load_config, validate_config


class TestConfig(unittest.TestCase):
    def test_defaults_without_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            config = load_config(os.path.join(tmp, "missing.json"), use_env=False)
        self.assertEqual(config, DEFAULT_CONFIG)
        self.assertTrue(validate_config(config)[0])

    def test_file_values_win_over_defaults(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "config.json")
            with open(path, "w", encoding="utf-8") as f:
                json.dump({"spotify_auth_timeout": 60, "extractions_dir": "out"}, f)
            config = load_config(path, use_env=False)

        self.assertEqual(config["spotify_auth_timeout"], 60)
        self.assertEqual(config["extractions_dir"], "out")
        self.assertEqual(config["spotify_redirect_uri"], "http://localhost:8888/callback")

    def test_validation_errors(self):
        config = dict(DEFAULT_CONFIG)
        config["spotify_auth_timeout"] = True
        config["spotify_page_delay"] = 10
        config["spotify_scopes"] = ["ok", 3]

        ok, errors = validate_config(config)

        self.assertFalse(ok)
        self.assertEqual(len(errors), 3)

    def test_credentials_check(self):
        status = check_spotify_credentials({"spotify_client_id": "cid", "spotify_redirect_uri": "http://localhost:8888/callback"})
        self.assertFalse(status["ok"])
        self.assertEqual(status["missing"], ["SPOTIFY_CLIENT_SECRET"])

        status = check_spotify_credentials(
            {"spotify_client_id": "cid", "spotify_client_secret": "s", "spotify_redirect_uri": "http://localhost:8888/callback"}
        )
        self.assertTrue(status["ok"])


if __name__ == "__main__":
    unittest.main(verbosity=2)
