"""Tests for the import CLI."""

import pytest

from scripts.import_ctt import main, parse_args


class TestParseArgs:
    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CTT_DB_URL", raising=False)
        monkeypatch.delenv("CTT_DATA_PATH", raising=False)
        args = parse_args([])
        assert args.db_url is None
        assert args.path == "todos_cp"
        assert args.batch_size == 5000
        assert args.force is False
        assert args.schema == "simplified"

    def test_environment_fallbacks(self, monkeypatch):
        monkeypatch.setenv("CTT_DB_URL", "sqlite:///ctt.db")
        monkeypatch.setenv("CTT_DATA_PATH", "/data/ctt")
        args = parse_args([])
        assert args.db_url == "sqlite:///ctt.db"
        assert args.path == "/data/ctt"


class TestMain:
    def test_successful_import(self, tmp_path, write_ctt_files):
        data_dir = write_ctt_files()
        db_path = tmp_path / "ctt.db"
        main(["--db-url", f"sqlite:///{db_path}", "--path", str(data_dir), "--batch-size", "10"])
        assert db_path.exists()

    def test_missing_data_dir_exits_non_zero(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["--db-url", f"sqlite:///{tmp_path / 'ctt.db'}", "--path", str(tmp_path / "x")])
        assert exc_info.value.code == 1

    def test_missing_source_file_exits_non_zero(self, tmp_path, write_ctt_files):
        data_dir = write_ctt_files()
        (data_dir / "concelhos.txt").unlink()
        with pytest.raises(SystemExit) as exc_info:
            main(["--db-url", f"sqlite:///{tmp_path / 'ctt.db'}", "--path", str(data_dir)])
        assert exc_info.value.code == 1

    def test_missing_db_url_exits_non_zero(self, monkeypatch):
        monkeypatch.delenv("CTT_DB_URL", raising=False)
        with pytest.raises(SystemExit) as exc_info:
            main([])
        assert exc_info.value.code == 1

    def test_invalid_batch_size_exits_non_zero(self, tmp_path):
        with pytest.raises(SystemExit) as exc_info:
            main(["--db-url", f"sqlite:///{tmp_path / 'ctt.db'}", "--batch-size", "0"])
        assert exc_info.value.code == 1
