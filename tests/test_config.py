"""Tests for configuration loading: defaults, YAML, environment."""

import pytest

from source_sync.config import Config


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("SOURCESYNC_AMBIGUOUS_PATHS", "SOURCESYNC_QUEUE_TIMEOUT",
                "SOURCESYNC_PREVIEW_PREFIXES", "SOURCESYNC_METRICS", "SOURCESYNC_REVIEW",
                "SOURCESYNC_IDENTITY_ATTRIBUTE"):
        monkeypatch.delenv(key, raising=False)


class TestConfig:
    def test_defaults(self):
        config = Config()

        assert config.IDENTITY_ATTRIBUTE == "data-sync-id"
        assert "body" in config.EXCLUDED_TAGS
        assert config.PREVIEW_PREFIXES == ["#preview-content"]
        assert config.AMBIGUOUS_PATHS == "first"
        assert config.QUEUE_TIMEOUT == 10.0
        assert config.READINESS_TIMEOUT == 30.0
        assert config.METRICS is False
        assert config.REVIEW == "textual"

    def test_yaml_values(self):
        config = Config({
            "identity_attribute": "data-ag-id",
            "preview_prefixes": ["#root", "#preview-content"],
            "ambiguous_paths": "ERROR",
            "queue_timeout": 3,
            "metrics": True,
        })

        assert config.IDENTITY_ATTRIBUTE == "data-ag-id"
        assert config.PREVIEW_PREFIXES == ["#root", "#preview-content"]
        assert config.AMBIGUOUS_PATHS == "error"
        assert config.QUEUE_TIMEOUT == 3.0
        assert config.METRICS is True

    def test_env_beats_yaml(self, monkeypatch):
        monkeypatch.setenv("SOURCESYNC_QUEUE_TIMEOUT", "1.5")
        monkeypatch.setenv("SOURCESYNC_METRICS", "true")
        monkeypatch.setenv("SOURCESYNC_PREVIEW_PREFIXES", "#a, #b")

        config = Config({"queue_timeout": 3, "metrics": False})

        assert config.QUEUE_TIMEOUT == 1.5
        assert config.METRICS is True
        assert config.PREVIEW_PREFIXES == ["#a", "#b"]

    def test_unknown_choices_fall_back(self):
        config = Config({"ambiguous_paths": "random", "review": "vr-headset"})
        assert config.AMBIGUOUS_PATHS == "first"
        assert config.REVIEW == "textual"

    def test_load_explicit_file(self, tmp_path):
        path = tmp_path / "custom.yaml"
        path.write_text("review: console\nexcluded_tags: [html, body]\n")

        config = Config.load(str(path))

        assert config.REVIEW == "console"
        assert config.EXCLUDED_TAGS == ["html", "body"]

    def test_load_missing_or_broken_file(self, tmp_path):
        broken = tmp_path / "broken.yaml"
        broken.write_text("review: [unclosed\n")

        assert Config.load(str(tmp_path / "missing.yaml")).REVIEW == "textual"
        assert Config.load(str(broken)).REVIEW == "textual"

    def test_load_from_cwd(self, tmp_path, monkeypatch):
        (tmp_path / ".sourcesync.yaml").write_text("ambiguous_paths: error\n")
        monkeypatch.chdir(tmp_path)

        assert Config.load().AMBIGUOUS_PATHS == "error"
