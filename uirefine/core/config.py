# uirefine/core/config.py
import os
from pydantic_settings import BaseSettings
from pydantic import AliasChoices, Field
from pydantic_settings import SettingsConfigDict
from typing import List
from functools import lru_cache

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Application Settings
    APP_NAME: str = "UI Refinement Assistant"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    DOCS_ENABLED: bool = True

    # Server Settings
    HOST: str = "0.0.0.0"
    PORT: int = int(os.environ.get("PORT", 8000))

    # CORS Settings (comma-separated)
    ALLOWED_ORIGINS: str = os.environ.get("ALLOWED_ORIGINS", "*")

    # Local storage: one named entry holds the whole record collection
    STORAGE_DIR: str = "data"
    STORAGE_KEY: str = "screenAnalyses"

    # Screenshot upload settings
    MAX_FILE_SIZE: int = 5 * 1024 * 1024  # 5MB
    MAX_REQUEST_SIZE: int = 6 * 1024 * 1024  # screenshot plus form fields
    ALLOWED_IMAGE_TYPES: List[str] = ["image/png", "image/jpeg", "image/webp", "image/gif"]
    DEFAULT_CODE_LANGUAGE: str = "tsx"

    # AI Settings
    GEMINI_API_KEY: str = Field(
        default="",
        validation_alias=AliasChoices("GEMINI_API_KEY", "VITE_GEMINI_API_KEY"),
    )
    GEMINI_MODEL: str = os.environ.get("GEMINI_MODEL", "gemini-2.5-flash")

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    def _split_csv(self, value: str) -> List[str]:
        if value is None:
            return []
        value = value.strip()
        if value == "":
            return []
        return [item.strip() for item in value.split(",")]

    @property
    def allowed_origins_list(self) -> List[str]:
        return self._split_csv(self.ALLOWED_ORIGINS)

    @property
    def gemini_configured(self) -> bool:
        return bool(self.GEMINI_API_KEY and self.GEMINI_API_KEY.strip())

@lru_cache()
def get_settings() -> Settings:
    return Settings()

settings: Settings = get_settings()
