"""
Unit tests for server version resolution.
"""

import subprocess
from unittest.mock import MagicMock, patch

from backend.src import version as version_module


def _describe(stdout):
    return MagicMock(stdout=stdout)


class TestGitDescribe:
    """Tests for _git_describe()."""

    def test_exact_tag(self):
        with patch.object(version_module.subprocess, "run", return_value=_describe("v1.4.0-0-g1a2b3c4\n")):
            assert version_module._git_describe() == "v1.4.0"

    def test_commits_past_tag(self):
        with patch.object(version_module.subprocess, "run", return_value=_describe("v1.4.0-3-g1a2b3c4\n")):
            assert version_module._git_describe() == "v1.4.0-dev.3+1a2b3c4"

    def test_git_unavailable(self):
        with patch.object(version_module.subprocess, "run", side_effect=FileNotFoundError()):
            assert version_module._git_describe() is None

    def test_not_a_repository(self):
        error = subprocess.CalledProcessError(128, "git")
        with patch.object(version_module.subprocess, "run", side_effect=error):
            assert version_module._git_describe() is None


class TestGetVersion:
    """Tests for get_version()."""

    def test_environment_wins(self, monkeypatch):
        monkeypatch.setenv("OTA_SERVER_VERSION", "v9.9.9")
        version_module.get_version.cache_clear()
        try:
            assert version_module.get_version() == "v9.9.9"
        finally:
            version_module.get_version.cache_clear()

    def test_default(self, monkeypatch):
        monkeypatch.delenv("OTA_SERVER_VERSION", raising=False)
        version_module.get_version.cache_clear()
        try:
            with patch.object(version_module, "_git_describe", return_value=None):
                assert version_module.get_version() == version_module.DEFAULT_VERSION
        finally:
            version_module.get_version.cache_clear()
