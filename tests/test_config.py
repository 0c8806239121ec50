import logging
from pathlib import Path

import pytest
from pydantic import ValidationError

from sqpack_reader.config import Settings, configure_logging


class TestSettings:
    def test_defaults(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        for name in ("SQPACK_REPO_DIR", "SQPACK_DEFAULT_LOCALE", "SQPACK_STRICT_ROWS"):
            monkeypatch.delenv(name, raising=False)
        s = Settings()
        assert s.repo_dir == Path("")
        assert s.default_locale == "en"
        assert s.strict_rows is False

    def test_from_environment(self, monkeypatch, tmp_path):
        monkeypatch.setenv("SQPACK_REPO_DIR", str(tmp_path))
        monkeypatch.setenv("SQPACK_DEFAULT_LOCALE", "_DE")
        monkeypatch.setenv("SQPACK_STRICT_ROWS", "true")
        s = Settings()
        assert s.repo_dir == tmp_path
        assert s.default_locale == "de"
        assert s.strict_rows is True

    def test_from_env_file(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.delenv("SQPACK_DEFAULT_LOCALE", raising=False)
        (tmp_path / ".env").write_text("SQPACK_DEFAULT_LOCALE=fr\n")
        assert Settings().default_locale == "fr"

    def test_unknown_locale_rejected(self, monkeypatch):
        monkeypatch.setenv("SQPACK_DEFAULT_LOCALE", "xx")
        with pytest.raises(ValidationError, match="Unknown locale"):
            Settings()


class TestConfigureLogging:
    def test_sets_root_level(self):
        root = logging.getLogger()
        previous = root.level
        try:
            configure_logging("debug")
            assert root.level == logging.DEBUG
        finally:
            root.setLevel(previous)
