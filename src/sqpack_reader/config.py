import logging
import sys
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_LOCALE_CODES = {"", "ja", "en", "de", "fr", "chs", "cht", "ko"}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="SQPACK_",
        extra="ignore",
    )

    repo_dir: Path = Path("")
    default_locale: str = "en"
    strict_rows: bool = False
    log_level: str = "INFO"

    @field_validator("default_locale")
    @classmethod
    def _known_locale(cls, value: str) -> str:
        code = value.strip().lower().lstrip("_")
        if code not in _LOCALE_CODES:
            raise ValueError(f"Unknown locale {value!r}")
        return code


def configure_logging(level: str | None = None) -> None:
    """Install the stderr log handler; for applications embedding the reader."""
    logging.basicConfig(
        level=(level or settings.log_level).upper(),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


settings = Settings()
