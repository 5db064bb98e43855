from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_DATA_DIR = Path.home() / ".gradecalc"


class Settings(BaseSettings):
    """Read from GRADECALC_DATA_DIR and GRADECALC_LOG_LEVEL."""

    model_config = SettingsConfigDict(env_prefix="GRADECALC_", frozen=True)

    data_dir: Path = DEFAULT_DATA_DIR
    log_level: str = "INFO"

    @field_validator("data_dir")
    @classmethod
    def _expand_user(cls, v: Path) -> Path:
        return v.expanduser()

    @field_validator("log_level")
    @classmethod
    def _upper(cls, v: str) -> str:
        return v.strip().upper()


def load_settings() -> Settings:
    return Settings()
