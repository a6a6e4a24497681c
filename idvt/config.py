from typing import List, Union
from pydantic_settings import BaseSettings
from pydantic import field_validator


class Settings(BaseSettings):
    # App Info
    APP_NAME: str = "IDVT Query Engine"
    VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"

    # Offline cache database
    DATABASE_URL: str = "sqlite:///./idvt.db"

    # Host DHIS2 instance (the "current" DHIS2 for data sources flagged isCurrentDHIS2)
    DHIS2_URL: str = ""
    DHIS2_USERNAME: str = ""
    DHIS2_PASSWORD: str = ""

    # Document storage: "data-store" (DHIS2 dataStore) or "es" (search index service)
    STORAGE: str = "data-store"
    SEARCH_API_URL: str = "https://services.dhis2.hispuganda.org/wal"
    SYSTEM_ID: str = ""

    # Query engine
    HTTP_TIMEOUT: float = 60.0
    MAX_JOIN_DEPTH: int = 5

    # CORS
    CORS_ORIGINS: Union[str, List[str]] = "http://localhost:3000"

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            return [origin.strip() for origin in v.split(',')]
        return v

    @field_validator('STORAGE')
    @classmethod
    def check_storage(cls, v):
        if v not in ("data-store", "es"):
            raise ValueError("STORAGE must be 'data-store' or 'es'")
        return v

    class Config:
        env_file = ".env"
        case_sensitive = True

    @property
    def dhis2_enabled(self) -> bool:
        """True if a host DHIS2 instance is configured (DHIS2_URL set)."""
        return bool(self.DHIS2_URL)

    @property
    def search_index_enabled(self) -> bool:
        """True if documents live in the search index service rather than the DHIS2 dataStore."""
        return self.STORAGE == "es"


# Create settings instance
settings = Settings()
