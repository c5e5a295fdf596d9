from functools import lru_cache
import os
from typing import List, Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    debug: bool = False
    project_name: str = "Tour Ledger API"
    environment: str = "development"
    log_level: str = "INFO"

    # Raw CORS origins string - read from env
    cors_origins_raw: Optional[str] = Field(
        default=None,
        alias="CORS_ORIGINS"
    )

    @computed_field
    @property
    def backend_cors_origins(self) -> List[str]:
        """Parse CORS_ORIGINS from environment variable (comma-separated string)."""
        raw = self.cors_origins_raw
        if not raw:
            raw = os.environ.get("CORS_ORIGINS") or os.environ.get("BACKEND_CORS_ORIGINS") or ""

        if not raw or not raw.strip():
            return []

        origins = []
        for origin in raw.split(","):
            origin = origin.strip()
            if origin:
                # Normalize protocol to lowercase (Https -> https, Http -> http)
                if origin.lower().startswith("https://"):
                    origin = "https://" + origin[8:]
                elif origin.lower().startswith("http://"):
                    origin = "http://" + origin[7:]
                origins.append(origin)
        return origins

    database_url: str = "sqlite+aiosqlite:///./tourledger.db"

    # Projection rates (carrier contract)
    dtr_rate: float = 452.09  # Daily trip rate paid per completed tour
    trip_accessorial_rate: float = 70.0  # Flat accessorial per trip id, not per load

    # Stops whose name starts with this prefix are warehouse locations, not deliveries
    warehouse_prefix: str = "MSP"

    # Scenario calculator
    standard_hours_per_night: float = 8.0

    # Analytics
    trend_threshold_points: float = 2.0
    accuracy_trend_window: int = 12


@lru_cache
def get_settings() -> Settings:
    return Settings()
