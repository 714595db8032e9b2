"""
Unidad de trabajo: delimita la transacción de una operación lógica.

Uso:
    async with transaction_scope(db):
        template = await class_template_repository.create(db, obj_in=...)
        await class_occurrence_repository.create_many(db, ...)

Al salir sin excepción se hace commit; cualquier excepción provoca rollback
completo y se relanza, de modo que nunca queda estado parcial.
"""
from contextlib import asynccontextmanager
import logging

from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)


@asynccontextmanager
async def transaction_scope(db: AsyncSession):
    try:
        yield db
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.debug(f"Rollback de transacción por {type(e).__name__}: {e}")
        raise
