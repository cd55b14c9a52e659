import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from routedoc.config import load_config

FIXTURES = Path(__file__).parent / "fixtures"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in [n for n in os.environ if n.startswith("ROUTEDOC_")]:
        monkeypatch.delenv(name, raising=False)


class TestLoadConfig:
    def test_defaults(self):
        config = load_config()
        assert config.title == ""
        assert config.samples_per_type == 100
        assert config.seed is None
        assert config.log_format == "console"

    def test_from_yaml(self):
        config = load_config(FIXTURES / "routedoc.yaml")
        assert config.title == "User API"
        assert config.version == "1.0"
        assert config.servers == ["https://api.example.com"]
        assert config.samples_per_type == 25
        assert config.log_level == "WARNING"

    def test_env_overrides_file(self, monkeypatch):
        monkeypatch.setenv("ROUTEDOC_SAMPLES_PER_TYPE", "7")
        monkeypatch.setenv("ROUTEDOC_LOG_FORMAT", "json")
        config = load_config(FIXTURES / "routedoc.yaml")
        assert config.samples_per_type == 7
        assert config.log_format == "json"
        assert config.seed == 1

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path).samples_per_type == 100

    def test_not_a_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ValueError, match="mapping"):
            load_config(path)

    def test_invalid_log_format(self, monkeypatch):
        monkeypatch.setenv("ROUTEDOC_LOG_FORMAT", "xml")
        with pytest.raises(ValidationError):
            load_config()

    def test_any_field_from_env(self, monkeypatch):
        monkeypatch.setenv("ROUTEDOC_TITLE", "From env")
        monkeypatch.setenv("ROUTEDOC_SEED", "9")
        config = load_config(FIXTURES / "routedoc.yaml")
        assert config.title == "From env"
        assert config.seed == 9
        assert config.version == "1.0"
