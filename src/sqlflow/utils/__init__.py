"""Utility helpers for sqlflow."""

from sqlflow.utils.config import ConfigSettings, find_config_file, load_config
from sqlflow.utils.file_utils import is_sql_file, read_sql_file

__all__ = [
    "ConfigSettings",
    "find_config_file",
    "is_sql_file",
    "load_config",
    "read_sql_file",
]
