"""
Configuration loader for the Panel Bot system.
Reads settings from YAML file with environment variable substitution.
"""
from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml


@dataclass
class BotConfig:
    command_primers: list[str] = field(default_factory=lambda: ["/", "!", "\\"])
    allowed_users: list[str] = field(default_factory=list)   # empty → everyone
    default_language: str = "en"
    delete_commands: bool = False


@dataclass
class StoreConfig:
    backend: str = "file"                   # "file" | "memory"
    data_dir: str = "./data"
    users_file: str = "users.json"
    globals_file: str = "globals.json"
    default_colleges: list[str] = field(default_factory=list)


@dataclass
class DeleterConfig:
    message_delay: float = 180              # seconds between last queued and new message
    max_queue_length: int = 15
    perform_auto_deletion: bool = True
    collection_interval: float = 600        # base seconds between auto-deleter runs
    orphan_check_delay: float = 1.0


@dataclass
class DialogConfig:
    max_transitions: int = 64               # non-suspending steps allowed per input


@dataclass
class LoggingConfig:
    level: str = "INFO"
    json: bool = False


@dataclass
class Settings:
    app_name: str = "PanelBot"
    debug: bool = False
    bot: BotConfig = field(default_factory=BotConfig)
    store: StoreConfig = field(default_factory=StoreConfig)
    deleter: DeleterConfig = field(default_factory=DeleterConfig)
    dialog: DialogConfig = field(default_factory=DialogConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


_settings: Optional[Settings] = None


def _substitute_env_vars(value: str) -> str:
    """Replace ${VAR_NAME} patterns with environment variable values."""
    pattern = re.compile(r'\$\{(\w+)\}')
    def replacer(match):
        var_name = match.group(1)
        return os.environ.get(var_name, match.group(0))
    return pattern.sub(replacer, value)


def _process_values(obj: Any) -> Any:
    """Recursively substitute env vars in all string values."""
    if isinstance(obj, str):
        return _substitute_env_vars(obj)
    elif isinstance(obj, dict):
        return {k: _process_values(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_process_values(v) for v in obj]
    return obj


def _section(cls, raw: dict[str, Any]):
    """Build a config dataclass from a YAML mapping, ignoring unknown keys."""
    known = {k: v for k, v in (raw or {}).items() if k in cls.__dataclass_fields__}
    return cls(**known)


def load_settings(config_path: str = None) -> Settings:
    """Load settings from YAML file."""
    global _settings

    if config_path is None:
        config_path = os.environ.get(
            "PANEL_BOT_CONFIG",
            str(Path(__file__).parent / "settings.yaml"),
        )

    settings = Settings()

    if Path(config_path).exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}
        raw = _process_values(raw)

        settings.app_name = raw.get("app_name", settings.app_name)
        settings.debug = raw.get("debug", settings.debug)

        if "bot" in raw:
            settings.bot = _section(BotConfig, raw["bot"])
        if "store" in raw:
            settings.store = _section(StoreConfig, raw["store"])
        if "deleter" in raw:
            settings.deleter = _section(DeleterConfig, raw["deleter"])
        if "dialog" in raw:
            settings.dialog = _section(DialogConfig, raw["dialog"])
        if "logging" in raw:
            settings.logging = _section(LoggingConfig, raw["logging"])

    _settings = settings
    return settings


def get_settings() -> Settings:
    """Return cached settings or load from default path."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Drop the cached settings (for testing)."""
    global _settings
    _settings = None
