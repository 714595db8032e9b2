"""
Dependencias centrales para la aplicación.

La autenticación ocurre aguas arriba: la capa de identidad valida al usuario y
reenvía su ID en la cabecera `X-User-ID`. Aquí solo se resuelve ese ID contra
el directorio de usuarios para construir el `Principal`.
"""
from typing import Optional
import logging

from fastapi import Depends, Header, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from classbook.core.principal import Principal
from classbook.db.session import get_async_db
from classbook.repositories.async_user import async_user_repository
from classbook.services.class_scheduling import ClassSchedulingService

logger = logging.getLogger(__name__)


async def get_current_principal(
    x_user_id: Optional[int] = Header(None, alias="X-User-ID"),
    db: AsyncSession = Depends(get_async_db)
) -> Principal:
    """
    Obtiene la identidad del llamante.

    Raises:
        HTTPException: 401 si falta la cabecera o el usuario no existe o está inactivo
    """
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Falta la cabecera X-User-ID"
        )

    user = await async_user_repository.get(db, x_user_id)
    if not user or not user.is_active:
        logger.warning(f"Identidad rechazada para X-User-ID={x_user_id}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Usuario no autenticado"
        )
    return Principal(id=user.id, role=user.role)


def get_scheduling_service(request: Request) -> ClassSchedulingService:
    """Servicio de horarios creado en el arranque de la aplicación (ver `lifespan`)."""
    service = getattr(request.app.state, "scheduling_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Servicio de horarios no inicializado"
        )
    return service
