from enum import Enum
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict


class Env(Enum):
    local = "local"
    dev = "dev"
    prod = "prod"


class StoreBackend(Enum):
    memory = "memory"
    database = "database"


class Config(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="PORTION_")

    env: Env = Env.local
    log_level: str = "INFO"
    store_backend: StoreBackend = StoreBackend.database
    db_url: str = "sqlite+aiosqlite:///portion_perfect.db"
    core_model: str = "gpt-4o-mini"
    geocoder_url: str = "https://nominatim.openstreetmap.org/"
    geocoder_timeout: float = 20
    notification_ttl: float = 5
    cache_dir: Path = Path(".cache")
