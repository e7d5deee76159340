"""File helpers for reading SQL input."""

from pathlib import Path

SQL_SUFFIXES = (".sql", ".ddl", ".hql")


def read_sql_file(file_path: Path) -> str:
    """
    Read a SQL file as UTF-8 text.

    A leading byte-order mark is dropped and Windows line endings are
    normalized, so statement previews and byte-size checks see the same text
    on every platform.

    Args:
        file_path: Path to the SQL file to read

    Returns:
        The file contents

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the path is not a file or is not valid UTF-8
    """
    if not file_path.exists():
        raise FileNotFoundError(f"SQL file not found: {file_path}")

    if not file_path.is_file():
        raise ValueError(f"Path is not a file: {file_path}")

    try:
        text = file_path.read_bytes().decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ValueError(f"File {file_path} is not valid UTF-8: {e.reason}") from e

    return text.replace("\r\n", "\n")


def is_sql_file(file_path: Path) -> bool:
    """Whether a path looks like a SQL script, judged by its suffix."""
    return file_path.suffix.lower() in SQL_SUFFIXES
