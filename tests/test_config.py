"""Tests for settings loading."""

from medmaster import config
from medmaster.config import Settings, YamlSettingsSource

YAML = """\
openai:
  generation_model: gpt-4o
  timeout_seconds: 12
goals:
  daily_questions: 20
study:
  suggestion_min_questions: 5
"""


def test_yaml_source_flattens_sections(tmp_path, monkeypatch):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "settings.yaml").write_text(YAML, encoding="utf-8")
    monkeypatch.setattr(config, "_find_project_root", lambda: tmp_path)

    assert YamlSettingsSource(Settings)() == {
        "generation_model": "gpt-4o",
        "collaborator_timeout_seconds": 12,
        "daily_questions_default": 20,
        "suggestion_min_questions": 5,
    }


def test_missing_yaml_is_empty(tmp_path, monkeypatch):
    monkeypatch.setattr(config, "_find_project_root", lambda: tmp_path)
    assert YamlSettingsSource(Settings)() == {}


def test_env_overrides_yaml(tmp_path, monkeypatch):
    (tmp_path / "config").mkdir()
    (tmp_path / "config" / "settings.yaml").write_text(YAML, encoding="utf-8")
    monkeypatch.setattr(config, "_find_project_root", lambda: tmp_path)
    monkeypatch.setenv("GENERATION_MODEL", "gpt-4.1")

    settings = Settings()
    assert settings.generation_model == "gpt-4.1"
    assert settings.daily_questions_default == 20


def test_data_dir_created(tmp_path):
    settings = Settings(project_root=tmp_path)
    assert settings.data_dir == tmp_path / "data" / "store"
    assert settings.data_dir.is_dir()
