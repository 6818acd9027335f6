"""
Tests for settings loading: YAML file, environment overrides and fallbacks.

Run with: pytest tests/test_app_config.py -v
"""

from pathlib import Path

import pytest

from surfer_api.app_config import CacheSettings, load_settings, save_settings


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in (
        "VECTORSURFER_CONFIG",
        "VECTORSURFER_API_TOKENS",
        "VECTORSURFER_DATA_FILE",
        "VECTORSURFER_PERSIST",
        "VECTORSURFER_LOG_LEVEL",
        "VECTORSURFER_PORT",
    ):
        monkeypatch.delenv(name, raising=False)


class TestLoadSettings:
    def test_defaults_without_file(self, tmp_path):
        settings = load_settings(tmp_path)
        assert settings.drift_threshold == 0.85
        assert settings.drift_k == 5
        assert settings.api_tokens == []
        assert settings.auth_enabled is False

    def test_values_from_yaml(self, tmp_path):
        (tmp_path / "settings.yaml").write_text(
            "drift_threshold: 0.7\ndrift_k: 3\napi_tokens:\n  - one\n",
            encoding="utf-8",
        )
        settings = load_settings(tmp_path)
        assert settings.drift_threshold == 0.7
        assert settings.drift_k == 3
        assert settings.auth_enabled is True

    def test_env_overrides_file(self, tmp_path, monkeypatch):
        (tmp_path / "settings.yaml").write_text("api_tokens: [from-file]\nlog_level: INFO\n", encoding="utf-8")
        monkeypatch.setenv("VECTORSURFER_API_TOKENS", "a, b,,")
        monkeypatch.setenv("VECTORSURFER_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("VECTORSURFER_PERSIST", "false")

        settings = load_settings(tmp_path)
        assert settings.api_tokens == ["a", "b"]
        assert settings.log_level == "DEBUG"
        assert settings.resolve_data_file() is None

    def test_config_dir_from_env(self, tmp_path, monkeypatch):
        (tmp_path / "settings.yaml").write_text("drift_k: 9\n", encoding="utf-8")
        monkeypatch.setenv("VECTORSURFER_CONFIG", str(tmp_path))
        assert load_settings().drift_k == 9

    @pytest.mark.parametrize(
        "content",
        [
            "drift_threshold: [unclosed",
            "- just\n- a list\n",
            "drift_threshold: 3.0\n",
        ],
    )
    def test_bad_file_falls_back_to_defaults(self, tmp_path, content):
        (tmp_path / "settings.yaml").write_text(content, encoding="utf-8")
        assert load_settings(tmp_path).drift_threshold == 0.85

    def test_saved_settings_are_loaded_back(self, tmp_path):
        path = save_settings(CacheSettings(drift_k=7, api_tokens=["t"]), tmp_path)
        assert path == tmp_path / "settings.yaml"
        loaded = load_settings(tmp_path)
        assert loaded.drift_k == 7
        assert loaded.api_tokens == ["t"]


class TestDataFile:
    def test_explicit_data_file(self, tmp_path):
        settings = CacheSettings(data_file=str(tmp_path / "db.json"))
        assert settings.resolve_data_file() == tmp_path / "db.json"

    def test_default_data_file_is_under_user_data_dir(self):
        path = CacheSettings().resolve_data_file()
        assert isinstance(path, Path)
        assert path.name == "store.json"


class TestWriteConfigCommand:
    def test_write_config_saves_effective_settings(self, tmp_path, monkeypatch):
        import main

        monkeypatch.setenv("VECTORSURFER_CONFIG", str(tmp_path))
        monkeypatch.setattr(main.uvicorn, "run", lambda *args, **kwargs: pytest.fail("server must not start"))

        main.main(["--write-config"])

        assert (tmp_path / "settings.yaml").exists()
        saved = load_settings(tmp_path)
        assert saved.drift_threshold == main.settings.drift_threshold
        assert saved.drift_k == main.settings.drift_k
        assert saved.api_tokens == main.settings.api_tokens
