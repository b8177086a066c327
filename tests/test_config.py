"""Unit tests for project configuration."""

from pathlib import Path

import pytest

from tagtm.config import TagTMConfig, load_config
from tagtm.recovery import FatalError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    monkeypatch.delenv("TAGTM_TASKS_PATH", raising=False)
    monkeypatch.delenv("TAGTM_DEFAULT_TAG", raising=False)


def write_config(root, text):
    config_dir = root / ".tagtm"
    config_dir.mkdir()
    (config_dir / "config.yml").write_text(text, encoding="utf-8")


class TestLoadConfig:
    """Test reading .tagtm/config.yml."""

    def test_defaults_without_file(self, tmp_path):
        """Test defaults when no config exists."""
        config = load_config(tmp_path)
        assert config == TagTMConfig()
        assert config.default_tag == "master"
        assert config.with_dependencies_max_depth == 100
        assert config.resolve_tasks_path(tmp_path) == tmp_path / ".taskmaster" / "tasks" / "tasks.json"

    def test_file_values(self, tmp_path):
        """Test values read from YAML."""
        write_config(tmp_path, "default_tag: feature\nwith_dependencies_max_depth: 10\ntasks_path: data/tasks.json\n")
        config = load_config(tmp_path)
        assert config.default_tag == "feature"
        assert config.with_dependencies_max_depth == 10
        assert config.resolve_tasks_path(tmp_path) == tmp_path / "data" / "tasks.json"

    def test_env_overrides(self, tmp_path, monkeypatch):
        """Test that environment variables win over the file."""
        write_config(tmp_path, "default_tag: feature\n")
        monkeypatch.setenv("TAGTM_DEFAULT_TAG", "release")
        monkeypatch.setenv("TAGTM_TASKS_PATH", "/abs/tasks.json")
        config = load_config(tmp_path)
        assert config.default_tag == "release"
        assert config.resolve_tasks_path(tmp_path) == Path("/abs/tasks.json")

    def test_invalid_config(self, tmp_path):
        """Test that bad values are fatal."""
        write_config(tmp_path, "with_dependencies_max_depth: 0\n")
        with pytest.raises(FatalError, match="Invalid configuration"):
            load_config(tmp_path)
