"""Unit tests for SQL file helpers."""

from pathlib import Path

import pytest

from sqlflow.utils.file_utils import is_sql_file, read_sql_file


class TestReadSqlFile:
    """Tests for read_sql_file."""

    def test_reads_content(self, tmp_path: Path):
        """A plain UTF-8 file is returned unchanged."""
        sql_file = tmp_path / "query.sql"
        sql_file.write_text("SELECT id FROM users;\n", encoding="utf-8")
        assert read_sql_file(sql_file) == "SELECT id FROM users;\n"

    def test_strips_byte_order_mark(self, tmp_path: Path):
        """A leading UTF-8 BOM is dropped."""
        sql_file = tmp_path / "bom.sql"
        sql_file.write_bytes(b"\xef\xbb\xbfSELECT 1")
        assert read_sql_file(sql_file) == "SELECT 1"

    def test_normalizes_line_endings(self, tmp_path: Path):
        """Windows line endings become newlines."""
        sql_file = tmp_path / "crlf.sql"
        sql_file.write_bytes(b"SELECT 1;\r\nSELECT 2;\r\n")
        assert read_sql_file(sql_file) == "SELECT 1;\nSELECT 2;\n"

    def test_unicode_content(self, tmp_path: Path):
        """Non-ASCII identifiers survive."""
        sql_file = tmp_path / "unicode.sql"
        sql_file.write_text("SELECT naïve FROM café", encoding="utf-8")
        assert read_sql_file(sql_file) == "SELECT naïve FROM café"

    def test_missing_file(self, tmp_path: Path):
        """A missing file raises FileNotFoundError."""
        with pytest.raises(FileNotFoundError, match="SQL file not found"):
            read_sql_file(tmp_path / "missing.sql")

    def test_directory(self, tmp_path: Path):
        """A directory is rejected."""
        with pytest.raises(ValueError, match="not a file"):
            read_sql_file(tmp_path)

    def test_invalid_utf8(self, tmp_path: Path):
        """Undecodable bytes raise ValueError."""
        sql_file = tmp_path / "latin1.sql"
        sql_file.write_bytes(b"SELECT '\xe9'")
        with pytest.raises(ValueError, match="not valid UTF-8"):
            read_sql_file(sql_file)


class TestIsSqlFile:
    """Tests for is_sql_file."""

    @pytest.mark.parametrize("name", ["a.sql", "b.SQL", "schema.ddl", "job.hql"])
    def test_sql_suffixes(self, name):
        """Known SQL suffixes match case-insensitively."""
        assert is_sql_file(Path(name))

    @pytest.mark.parametrize("name", ["a.txt", "b.sql.bak", "README"])
    def test_other_suffixes(self, name):
        """Other files do not match."""
        assert not is_sql_file(Path(name))
