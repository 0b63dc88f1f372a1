"""Runtime settings and client construction."""
from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from lingoflip.errors import ConfigurationError

DEFAULT_DATA_DIR = Path.home() / ".lingoflip"


class Settings(BaseSettings):
    backend: Literal["local", "supabase"] = "local"
    data_dir: Path = DEFAULT_DATA_DIR
    db_filename: str = "lingoflip.db"
    session_filename: str = "session.json"

    supabase_url: str = ""
    supabase_anon_key: str = ""

    gemini_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("LINGOFLIP_GEMINI_API_KEY", "GEMINI_API_KEY"),
    )
    gemini_model: str = "gemini-2.5-flash"
    gemini_base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    flashcard_temperature: float = 0.7
    mcq_temperature: float = 0.6
    max_generation_workers: int = 8

    request_timeout: float = 60.0
    log_level: str = "WARNING"
    log_file: Path | None = None

    model_config = SettingsConfigDict(
        env_prefix="LINGOFLIP_", env_file=".env", extra="ignore", populate_by_name=True,
    )

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_filename

    @property
    def session_path(self) -> Path:
        return self.data_dir / self.session_filename


@lru_cache
def get_settings() -> Settings:
    return Settings()


def build_store(settings: Settings):
    """Construct the persistence client selected by ``settings.backend``."""
    if settings.backend == "supabase":
        if not settings.supabase_url or not settings.supabase_anon_key:
            raise ConfigurationError(
                "LINGOFLIP_SUPABASE_URL and LINGOFLIP_SUPABASE_ANON_KEY must be set for the supabase backend."
            )
        from lingoflip.supabase_store import SupabaseStore
        return SupabaseStore(
            settings.supabase_url,
            settings.supabase_anon_key,
            session_path=settings.session_path,
            timeout=settings.request_timeout,
        )
    from lingoflip.local_store import LocalStore
    return LocalStore(settings.db_path, session_path=settings.session_path)


def build_generator(settings: Settings):
    from lingoflip.generation import GeminiClient
    return GeminiClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        timeout=settings.request_timeout,
        flashcard_temperature=settings.flashcard_temperature,
        mcq_temperature=settings.mcq_temperature,
    )
