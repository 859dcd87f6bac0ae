"""Application configuration management."""

from __future__ import annotations

import json
import os
import sys
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping, MutableMapping

CONFIG_DIR_NAME = "AssignmentSolver"
DEFAULT_JSON_FILENAME = "settings.json"

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_BASE_URL = "https://generativelanguage.googleapis.com"


def get_user_config_dir(app_name: str = CONFIG_DIR_NAME) -> Path:
    """Return the configuration directory for the current user.

    The directory is created on first use. On Windows the directory is
    under ``%APPDATA%``; otherwise the XDG base directory or ``~/.config``
    is used.
    """
    if sys.platform.startswith("win"):
        base_dir = Path(os.getenv("APPDATA", Path.home()))
    else:
        base_dir = Path(os.getenv("XDG_CONFIG_HOME", Path.home() / ".config"))
    config_dir = base_dir / app_name
    config_dir.mkdir(parents=True, exist_ok=True)
    return config_dir


class ConfigManager:
    """Read and write the solver's JSON settings file."""

    def __init__(
        self,
        app_name: str = CONFIG_DIR_NAME,
        *,
        filename: str = DEFAULT_JSON_FILENAME,
    ) -> None:
        self.app_name = app_name
        self.config_dir = get_user_config_dir(app_name)
        self.config_path = self.config_dir / filename

    def load(self) -> dict[str, Any]:
        """Load configuration from disk.

        Returns an empty dictionary if the configuration file is absent.
        """
        if not self.config_path.exists():
            return {}
        with self.config_path.open("r", encoding="utf-8") as fh:
            data = json.load(fh)
        if not isinstance(data, dict):
            raise ValueError(f"Settings file must contain a JSON object: {self.config_path}")
        return data

    def save(self, data: MutableMapping[str, Any]) -> None:
        """Persist configuration data to disk."""
        with self.config_path.open("w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2, sort_keys=True)
            fh.write("\n")

    def update(self, data: MutableMapping[str, Any]) -> dict[str, Any]:
        """Update the stored configuration with ``data`` and return the result."""
        current = self.load()
        current.update(data)
        self.save(current)
        return current

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"ConfigManager(app_name={self.app_name!r}, path={self.config_path!s})"


_ENV_OVERRIDES = {
    "api_key": ("GEMINI_API_KEY", "API_KEY"),
    "model": ("GEMINI_MODEL",),
    "base_url": ("GEMINI_BASE_URL",),
}


@dataclass(slots=True)
class SolverSettings:
    """Settings that shape every generation run."""

    api_key: str | None = None
    model: str = DEFAULT_MODEL
    base_url: str = DEFAULT_BASE_URL
    temperature: float = 0.3
    max_output_tokens: int = 8192
    institution: str = "IGNOU"
    academic_session: str = "2025-2026"
    region: str = "INDIAN"
    request_timeout: float | None = None

    def __post_init__(self) -> None:
        try:
            self.temperature = float(self.temperature)
            self.max_output_tokens = int(self.max_output_tokens)
            if self.request_timeout is not None:
                self.request_timeout = float(self.request_timeout)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Invalid numeric setting: {exc}") from exc
        if not 0.0 <= self.temperature <= 2.0:
            raise ValueError("temperature must be between 0.0 and 2.0")
        if self.max_output_tokens < 1:
            raise ValueError("max_output_tokens must be positive")

    @classmethod
    def load(
        cls,
        config_manager: ConfigManager | None = None,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> "SolverSettings":
        """Build settings from defaults, the JSON config file and the environment.

        Environment variables win over the config file, which wins over the
        defaults declared on the dataclass.
        """

        environ = os.environ if environ is None else environ
        known = {item.name for item in fields(cls)}
        values: dict[str, Any] = {}
        if config_manager is not None:
            stored = config_manager.load()
            section = stored.get("solver", stored)
            if isinstance(section, Mapping):
                values.update({key: value for key, value in section.items() if key in known})
        for name, variables in _ENV_OVERRIDES.items():
            for variable in variables:
                value = environ.get(variable)
                if value:
                    values[name] = value
                    break
        return cls(**values)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("api_key", None)
        return data


__all__ = [
    "ConfigManager",
    "DEFAULT_BASE_URL",
    "DEFAULT_MODEL",
    "SolverSettings",
    "get_user_config_dir",
]
