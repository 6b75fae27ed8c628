"""
Unit tests for startup configuration.
"""

import importlib
import os
import unittest
from unittest.mock import patch

from countapi import config
from countapi.config import SAFE_PATH, SAFE_UMASK, apply_process_defaults


class TestApplyProcessDefaults(unittest.TestCase):
    """One-shot process hardening."""

    @patch("countapi.config.os.umask", return_value=0o022)
    def test_sets_umask_and_returns_previous(self, umask):
        previous = apply_process_defaults({})

        umask.assert_called_once_with(SAFE_UMASK)
        self.assertEqual(previous, 0o022)

    @patch("countapi.config.os.umask", return_value=0o022)
    def test_prepends_safe_path(self, _umask):
        environ = {"PATH": "/opt/custom/bin"}
        apply_process_defaults(environ)
        self.assertEqual(environ["PATH"], f"{SAFE_PATH}:/opt/custom/bin")

    @patch("countapi.config.os.umask", return_value=0o022)
    def test_missing_path(self, _umask):
        environ = {}
        apply_process_defaults(environ)
        self.assertEqual(environ["PATH"], SAFE_PATH)

    @patch("countapi.config.os.umask", return_value=0o022)
    def test_unsets_variables(self, _umask):
        environ = {"CDPATH": "/tmp", "IFS": ":", "TMPDIR": "/var/tmp", "HOME": "/root"}
        apply_process_defaults(environ)

        self.assertNotIn("CDPATH", environ)
        self.assertNotIn("IFS", environ)
        self.assertNotIn("TMPDIR", environ)
        self.assertEqual(environ["HOME"], "/root")


class TestEnvironmentOverrides(unittest.TestCase):
    """Settings are read from the environment at import."""

    def tearDown(self):
        importlib.reload(config)

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            importlib.reload(config)

        self.assertEqual(config.HOST, "127.0.0.1")
        self.assertEqual(config.PORT, 8080)
        self.assertEqual(config.BODY_FRAMING, "line")
        self.assertIsNone(config.CONNECTION_TIMEOUT)

    def test_overrides(self):
        overrides = {
            "COUNT_API_HOST": "0.0.0.0",
            "COUNT_API_PORT": "9000",
            "COUNT_API_BODY_FRAMING": "EXACT",
            "COUNT_API_TIMEOUT": "2.5",
        }
        with patch.dict(os.environ, overrides, clear=True):
            importlib.reload(config)

        self.assertEqual(config.HOST, "0.0.0.0")
        self.assertEqual(config.PORT, 9000)
        self.assertEqual(config.BODY_FRAMING, "exact")
        self.assertEqual(config.CONNECTION_TIMEOUT, 2.5)

    def test_invalid_values_fall_back(self):
        invalid = {"COUNT_API_BODY_FRAMING": "chunked", "COUNT_API_TIMEOUT": "soon", "COUNT_API_PORT": "eighty"}
        with patch.dict(os.environ, invalid, clear=True):
            importlib.reload(config)

        self.assertEqual(config.PORT, 8080)
        self.assertEqual(config.BODY_FRAMING, "line")
        self.assertIsNone(config.CONNECTION_TIMEOUT)


if __name__ == "__main__":
    unittest.main()
