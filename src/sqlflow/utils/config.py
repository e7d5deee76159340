"""Configuration management for sqlflow.

Settings live in the ``[sqlflow]`` table of a ``sqlflow.toml`` file in the
current working directory.
"""

import tomllib
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError
from rich.console import Console
from rich.markup import escape

from sqlflow.parser.validation import ValidationLimits

console = Console(stderr=True)

CONFIG_FILE_NAME = "sqlflow.toml"


class ConfigSettings(BaseModel):
    """Settings read from sqlflow.toml.

    Every field is optional; None means the file did not set it and the
    caller's default applies.
    """

    dialect: Optional[str] = None
    output_format: Optional[str] = None
    max_sql_size_bytes: Optional[int] = Field(None, gt=0)
    max_query_count: Optional[int] = Field(None, gt=0)
    custom_aggregates: List[str] = Field(default_factory=list)
    custom_window_functions: List[str] = Field(default_factory=list)

    def validation_limits(self) -> ValidationLimits:
        """Limits built from the configured values, defaults for the rest."""
        overrides = {
            name: value
            for name, value in (
                ("max_sql_size_bytes", self.max_sql_size_bytes),
                ("max_query_count", self.max_query_count),
            )
            if value is not None
        }
        return ValidationLimits(**overrides)


def find_config_file(start_path: Optional[Path] = None) -> Optional[Path]:
    """Locate sqlflow.toml in a directory (the working directory by default)."""
    config_path = (start_path or Path.cwd()) / CONFIG_FILE_NAME
    return config_path if config_path.is_file() else None


def _fallback(message: str) -> ConfigSettings:
    console.print(f"[yellow]Warning:[/yellow] {escape(message)}")
    console.print("[yellow]Using default settings[/yellow]")
    return ConfigSettings()


def load_config(config_path: Optional[Path] = None) -> ConfigSettings:
    """Load settings from sqlflow.toml.

    Args:
        config_path: Explicit config file. When omitted, the working
            directory is searched.

    Returns:
        ConfigSettings populated from the file. A missing file yields empty
        settings silently; an unreadable, malformed or invalid file prints a
        warning and yields empty settings. Unknown keys are ignored.
    """
    if config_path is None:
        config_path = find_config_file()

    if config_path is None:
        return ConfigSettings()

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        return _fallback(f"Failed to parse {config_path}: {e}")
    except OSError as e:
        return _fallback(f"Could not read {config_path}: {e}")

    section = toml_data.get("sqlflow", {})
    if not isinstance(section, dict):
        return _fallback(f"'sqlflow' in {config_path} must be a table")

    try:
        return ConfigSettings(**section)
    except ValidationError as e:
        return _fallback(f"Invalid configuration in {config_path}: {e}")
