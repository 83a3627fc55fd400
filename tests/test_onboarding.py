"""Tests for first-run setup."""

from io import StringIO
from unittest.mock import patch

import httpx
import pytest
from rich.console import Console

import claudephobia.onboarding as onboarding
from claudephobia.config import load_config
from claudephobia.storage import CredentialStore


@pytest.fixture
def home(tmp_path):
    with patch("claudephobia.config.CONFIG_DIR", tmp_path), \
         patch("claudephobia.config.CONFIG_FILE", tmp_path / "config.yaml"), \
         patch.object(onboarding, "console", Console(file=StringIO(), width=120)):
        yield tmp_path


class TestRunOnboarding:
    def test_saves_key_and_settings(self, home):
        store = CredentialStore(home / "credentials")
        with patch.object(onboarding.Prompt, "ask", return_value=" sk-good "), \
             patch.object(onboarding.IntPrompt, "ask", side_effect=[1, 60, 80]), \
             patch.object(onboarding, "validate_session_key", return_value=None):
            config = onboarding.run_onboarding(store)

        assert store.get() == "sk-good"
        assert config["setup_complete"] is True
        saved = load_config()
        assert saved["refresh_interval"] == 60
        assert saved["warning_threshold"] == 0.6
        assert saved["critical_threshold"] == 0.8

    def test_thresholds_asked_again_when_inverted(self, home):
        store = CredentialStore(home / "credentials")
        with patch.object(onboarding.Prompt, "ask", return_value="sk-good"), \
             patch.object(onboarding.IntPrompt, "ask", side_effect=[2, 90, 80, 70, 85]), \
             patch.object(onboarding, "validate_session_key", return_value=None):
            config = onboarding.run_onboarding(store)

        assert config["refresh_interval"] == 300
        assert config["warning_threshold"] == 0.7
        assert config["critical_threshold"] == 0.85

    def test_gives_up_after_bad_keys(self, home):
        store = CredentialStore(home / "credentials")
        with patch.object(onboarding.Prompt, "ask", return_value="sk-bad"), \
             patch.object(onboarding, "validate_session_key",
                          return_value="Session expired. Update your session key.") as validate:
            assert onboarding.run_onboarding(store) is None

        assert validate.call_count == onboarding.MAX_KEY_ATTEMPTS
        assert store.get() is None
        assert load_config() == {}


class TestValidateSessionKey:
    def _patch_client(self, handler):
        real = onboarding.ClaudeUsageClient

        def factory(session_key):
            return real(session_key, transport=httpx.MockTransport(handler))
        return patch.object(onboarding, "ClaudeUsageClient", factory)

    def test_valid(self):
        with self._patch_client(lambda request: httpx.Response(200, json=[{"uuid": "org-1"}])):
            assert onboarding.validate_session_key("sk-good") is None

    def test_expired(self):
        with self._patch_client(lambda request: httpx.Response(401)):
            assert onboarding.validate_session_key("sk-bad") == "Session expired. Update your session key."
