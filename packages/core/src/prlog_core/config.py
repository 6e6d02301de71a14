import os
from pathlib import Path
from typing import Optional

import yaml

from prlog_core.errors import ConfigError

DEFAULT_CONFIG: dict = {
    "repo": None,  # owner/name; None = detect from the git remote
    "source": "gh",  # "gh" (GitHub CLI) or "api" (REST API via PyGithub)
    "throttle_rpm": 100,
    "provider": "anthropic",  # "anthropic" | "openai" | "ollama"
    "model": None,  # None = the provider's default model
    "endpoint": "http://localhost:11434",  # ollama only
    "max_tokens": 500,
    "batch_size": 5,
    "output_dir": "./prlog",
    "generate_context_files": True,
    "context_file_threshold": 3,
    "history_months": 6,
    "context_root": ".",
    "context_filename": ".prlog",
}

PROVIDERS = ("anthropic", "openai", "ollama")
SOURCES = ("gh", "api")

_POSITIVE_INTS = ("throttle_rpm", "max_tokens", "batch_size", "context_file_threshold", "history_months")


def load_config(config_path: str = ".prlog.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prlog.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            try:
                file_config = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigError(f"Failed to parse config file {config_path}: {e}") from e
        if not isinstance(file_config, dict):
            raise ConfigError(f"Config file {config_path} must contain a mapping.")
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")

    return config


def validate_config(config: dict) -> dict:
    """Check value ranges and choices. Returns the config unchanged.

    Raises:
        ConfigError: on the first invalid value found.
    """
    if config.get("provider") not in PROVIDERS:
        raise ConfigError(f"Unknown AI provider: {config.get('provider')!r}. Choose one of {', '.join(PROVIDERS)}.")
    if config.get("source") not in SOURCES:
        raise ConfigError(f"Unknown PR source: {config.get('source')!r}. Choose one of {', '.join(SOURCES)}.")
    for key in _POSITIVE_INTS:
        value = config.get(key)
        if not isinstance(value, int) or isinstance(value, bool) or value < 1:
            raise ConfigError(f"Invalid value for '{key}': expected an integer greater than 0, got {value!r}.")
    if not config.get("context_filename"):
        raise ConfigError("'context_filename' must not be empty.")
    return config


def database_path(config: dict) -> Path:
    return Path(config["output_dir"]) / "prs.db"
