"""
Tests for YAML configuration loading.
"""
from pathlib import Path

import pytest

from finn_bot.config import DEFAULT_SYSTEM_PROMPT, AppConfig, load_config


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "config.yaml"
    path.write_text(text)
    return path


def test_defaults(tmp_path):
    config = load_config(_write(tmp_path, ""), tmp_path / "missing.env")

    assert config.default_model == "claude-opus"
    assert config.system_prompt == DEFAULT_SYSTEM_PROMPT
    assert config.anthropic is None
    assert config.openrouter.base_url == "https://openrouter.ai/api/v1"
    assert config.catalog_path == Path("./data/openrouter-models.json")


def test_env_interpolation(tmp_path, monkeypatch):
    monkeypatch.setenv("FINN_TEST_ANTHROPIC_KEY", "sk-ant-test")
    path = _write(
        tmp_path,
        """
data_dir: /srv/finn
anthropic:
  api_key: ${FINN_TEST_ANTHROPIC_KEY}
openrouter:
  api_key: ${FINN_TEST_UNSET_KEY}
storage:
  db_path: ${data_dir}/finn.db
""",
    )

    config = load_config(path, tmp_path / "missing.env")

    assert config.anthropic.api_key == "sk-ant-test"
    assert config.openrouter.api_key is None
    assert config.storage.db_path == "/srv/finn/finn.db"
    assert config.catalog_path == Path("/srv/finn/openrouter-models.json")


def test_dotenv_file(tmp_path, monkeypatch):
    monkeypatch.delenv("FINN_TEST_OPENROUTER_KEY", raising=False)
    env = tmp_path / ".env"
    env.write_text("FINN_TEST_OPENROUTER_KEY=sk-or-test\n")
    path = _write(tmp_path, "openrouter:\n  api_key: ${FINN_TEST_OPENROUTER_KEY}\n")

    config = load_config(path, env)
    monkeypatch.delenv("FINN_TEST_OPENROUTER_KEY", raising=False)

    assert config.openrouter.api_key == "sk-or-test"


def test_explicit_catalog_path():
    config = AppConfig(catalog={"path": "/tmp/models.json", "max_age_hours": 1})

    assert config.catalog_path == Path("/tmp/models.json")
    assert config.catalog.max_age_hours == 1


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.yaml", tmp_path / "missing.env")
