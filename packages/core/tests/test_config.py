"""Tests for configuration loading."""

import pytest

from prlog_core.config import DEFAULT_CONFIG, database_path, load_config, validate_config
from prlog_core.errors import ConfigError


def test_defaults_applied_when_no_config_file(tmp_path):
    config = load_config(config_path=str(tmp_path / "nonexistent.yml"))
    assert config["provider"] == "anthropic"
    assert config["source"] == "gh"
    assert config["throttle_rpm"] == 100
    assert config["batch_size"] == 5
    assert config["context_file_threshold"] == 3
    assert config["history_months"] == 6
    assert config["context_filename"] == ".prlog"
    assert config["repo"] is None


def test_config_file_overrides_defaults(tmp_path):
    cfg = tmp_path / ".prlog.yml"
    cfg.write_text("provider: openai\nbatch_size: 2\nrepo: acme/widgets\n")
    config = load_config(config_path=str(cfg))
    assert config["provider"] == "openai"
    assert config["batch_size"] == 2
    assert config["repo"] == "acme/widgets"


def test_empty_config_file_uses_defaults(tmp_path):
    cfg = tmp_path / ".prlog.yml"
    cfg.write_text("")
    config = load_config(config_path=str(cfg))
    assert config["provider"] == DEFAULT_CONFIG["provider"]


def test_cli_overrides_config_file(tmp_path):
    cfg = tmp_path / ".prlog.yml"
    cfg.write_text("provider: openai\n")
    config = load_config(config_path=str(cfg), cli_overrides={"provider": "ollama"})
    assert config["provider"] == "ollama"


def test_none_cli_overrides_ignored(tmp_path):
    cfg = tmp_path / ".prlog.yml"
    cfg.write_text("provider: openai\n")
    config = load_config(config_path=str(cfg), cli_overrides={"provider": None})
    assert config["provider"] == "openai"


def test_credentials_read_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv("GITHUB_TOKEN", "gh-tok")
    monkeypatch.setenv("ANTHROPIC_API_KEY", "ant-key")
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    config = load_config(config_path=str(tmp_path / "missing.yml"))
    assert config["github_token"] == "gh-tok"
    assert config["anthropic_api_key"] == "ant-key"
    assert config["openai_api_key"] is None


def test_invalid_yaml_raises_config_error(tmp_path):
    cfg = tmp_path / ".prlog.yml"
    cfg.write_text("provider: [unclosed\n")
    with pytest.raises(ConfigError, match="Failed to parse"):
        load_config(config_path=str(cfg))


def test_non_mapping_config_raises(tmp_path):
    cfg = tmp_path / ".prlog.yml"
    cfg.write_text("- just\n- a list\n")
    with pytest.raises(ConfigError, match="mapping"):
        load_config(config_path=str(cfg))


class TestValidateConfig:
    def test_defaults_are_valid(self):
        config = dict(DEFAULT_CONFIG)
        assert validate_config(config) is config

    def test_unknown_provider(self):
        with pytest.raises(ConfigError, match="provider"):
            validate_config({**DEFAULT_CONFIG, "provider": "bard"})

    def test_unknown_source(self):
        with pytest.raises(ConfigError, match="source"):
            validate_config({**DEFAULT_CONFIG, "source": "svn"})

    @pytest.mark.parametrize("key", ["throttle_rpm", "batch_size", "history_months"])
    def test_non_positive_ints_rejected(self, key):
        with pytest.raises(ConfigError, match=key):
            validate_config({**DEFAULT_CONFIG, key: 0})

    def test_bool_is_not_an_int(self):
        with pytest.raises(ConfigError):
            validate_config({**DEFAULT_CONFIG, "max_tokens": True})

    def test_empty_context_filename_rejected(self):
        with pytest.raises(ConfigError, match="context_filename"):
            validate_config({**DEFAULT_CONFIG, "context_filename": ""})


def test_database_path_inside_output_dir():
    assert database_path({"output_dir": "out"}).as_posix() == "out/prs.db"
