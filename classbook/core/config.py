import os
from typing import List, Optional, Union
from functools import lru_cache
import logging

from pydantic import AnyHttpUrl, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Configurar el logger
logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Permitir campos extra en .env
    )

    # Configuración básica
    API_V1_STR: str = "/api/v1"

    # Información del proyecto
    PROJECT_NAME: str = "ClassBook"
    PROJECT_DESCRIPTION: str = "Motor de horarios recurrentes y reservas de clases para gimnasios"
    VERSION: str = "0.1.0"

    # Debug mode
    DEBUG_MODE: bool = os.getenv("DEBUG_MODE", "False").lower() in ("true", "1", "t")

    # CORS
    BACKEND_CORS_ORIGINS: List[AnyHttpUrl] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode='before')
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str) and not v.startswith("["):
            return [i.strip() for i in v.split(",") if i.strip()]
        elif isinstance(v, (list, str)):
            return v
        raise ValueError(v)

    DATABASE_URL: str = "sqlite+aiosqlite:///./classbook.db"

    @field_validator("DATABASE_URL", mode="before")
    def ensure_async_driver(cls, v: Optional[str]) -> str:
        """Asegura que DATABASE_URL use un driver async (asyncpg / aiosqlite)."""
        if not v:
            return "sqlite+aiosqlite:///./classbook.db"
        v = v.strip()
        # Asegurar formato postgresql+asyncpg://
        if v.startswith("postgres://"):
            logger.info("Corrigiendo formato de postgres:// a postgresql+asyncpg://")
            return "postgresql+asyncpg://" + v[len("postgres://"):]
        if v.startswith("postgresql://"):
            return "postgresql+asyncpg://" + v[len("postgresql://"):]
        if v.startswith("sqlite://"):
            return "sqlite+aiosqlite://" + v[len("sqlite://"):]
        return v

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_POOL_MAX_CONNECTIONS: int = 50
    REDIS_POOL_SOCKET_TIMEOUT: int = 5
    REDIS_POOL_HEALTH_CHECK_INTERVAL: int = 30
    REDIS_POOL_RETRY_ON_TIMEOUT: bool = True
    REDIS_POOL_SOCKET_KEEPALIVE: bool = True

    @field_validator("REDIS_URL", mode="before")
    def clean_redis_url(cls, v: Optional[str]) -> str:
        if not v:
            return ""
        # Eliminar comentarios (todo lo que sigue a #)
        if "#" in v:
            v = v.split("#")[0]
            logger.info("REDIS_URL: eliminados comentarios en configuración")
        return v.strip()

    # Caché de horarios
    SCHEDULE_CACHE_BACKEND: str = "redis"  # redis | memory | none
    SCHEDULE_CACHE_TTL_SECONDS: int = 900  # 15 minutos

    @field_validator("SCHEDULE_CACHE_BACKEND", mode="before")
    def validate_cache_backend(cls, v: str) -> str:
        value = (v or "none").strip().lower()
        if value not in ("redis", "memory", "none"):
            raise ValueError("SCHEDULE_CACHE_BACKEND debe ser 'redis', 'memory' o 'none'")
        return value

    # Zona horaria en la que se interpretan BYDAY/BYHOUR/BYMINUTE
    SCHEDULE_TIMEZONE: str = "UTC"

    # Paginación de listados
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 100


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
