import logging

from sqlalchemy.ext.asyncio import AsyncEngine

# Importar todos los modelos para registrarlos en Base.metadata
from classbook.db.base import Base
from classbook.db.session import async_engine

logger = logging.getLogger(__name__)


async def create_tables(engine: AsyncEngine = async_engine) -> None:
    """Crear las tablas que aún no existen (user, class_template, class_occurrence, class_booking)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Tablas verificadas: {', '.join(sorted(Base.metadata.tables))}")


async def drop_tables(engine: AsyncEngine = async_engine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
