"""Tests for the line reader."""

from pathlib import Path

import pytest

from cttimport.errors import MissingSourceFile
from cttimport.reader import read_lines


class TestReadLines:
    def test_decodes_single_byte_source(self, tmp_path):
        path = tmp_path / "distritos.txt"
        path.write_bytes("07;Évora\n08;Faro\n".encode("iso-8859-1"))
        assert list(read_lines(path)) == ["07;Évora", "08;Faro"]

    def test_strips_and_skips_blank_lines(self, tmp_path):
        path = tmp_path / "distritos.txt"
        path.write_bytes(b"  11;Lisboa  \r\n\r\n   \r\n13;Porto\r\n")
        assert list(read_lines(path)) == ["11;Lisboa", "13;Porto"]

    def test_missing_file_fails_before_iteration(self, tmp_path):
        with pytest.raises(MissingSourceFile, match="distritos.txt"):
            read_lines(tmp_path / "distritos.txt")

    def test_missing_file_is_a_file_not_found_error(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_lines(tmp_path / "todos_cp.txt")

    def test_is_lazy(self, tmp_path):
        path = tmp_path / "todos_cp.txt"
        path.write_text("a\nb\nc\n", encoding="iso-8859-1")
        lines = read_lines(path)
        assert next(lines) == "a"
        assert list(lines) == ["b", "c"]

    def test_custom_encoding(self, tmp_path):
        path = tmp_path / "concelhos.txt"
        path.write_text("11;06;Oeiras é\n", encoding="utf-8")
        assert list(read_lines(path, encoding="utf-8")) == ["11;06;Oeiras é"]

    def test_open_errors_raised_on_call(self, tmp_path, monkeypatch):
        path = tmp_path / "todos_cp.txt"
        path.write_text("a\n", encoding="iso-8859-1")

        def denied(self, *args, **kwargs):
            raise PermissionError(13, "Permission denied", str(self))

        monkeypatch.setattr(Path, "open", denied)
        with pytest.raises(PermissionError):
            read_lines(path)

    def test_file_closed_when_exhausted(self, tmp_path, monkeypatch):
        path = tmp_path / "distritos.txt"
        path.write_text("11;Lisboa\n", encoding="iso-8859-1")
        opened = []
        real_open = Path.open

        def tracking_open(self, *args, **kwargs):
            f = real_open(self, *args, **kwargs)
            opened.append(f)
            return f

        monkeypatch.setattr(Path, "open", tracking_open)
        assert list(read_lines(path)) == ["11;Lisboa"]
        assert opened[0].closed
