from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from classbook.models.user import User, UserRole
from classbook.repositories.async_base import AsyncBaseRepository
from classbook.schemas.user import UserCreate, UserUpdate


class AsyncUserRepository(AsyncBaseRepository[User, UserCreate, UserUpdate]):
    """
    Consulta del directorio de identidades.

    Métodos específicos:
    - get_active_with_role() - Usuario activo con un rol concreto (entrenador/miembro)
    """

    async def get_active_with_role(
        self,
        db: AsyncSession,
        *,
        user_id: int,
        role: UserRole,
        for_update: bool = False
    ) -> Optional[User]:
        """
        Obtener un usuario activo con el rol indicado.

        Con `for_update=True` la fila queda bloqueada hasta el fin de la
        transacción; se usa para serializar cambios de horario de un entrenador.
        """
        stmt = select(User).where(
            User.id == user_id,
            User.role == role,
            User.is_active.is_(True)
        )
        if for_update:
            stmt = stmt.with_for_update()
        result = await db.execute(stmt)
        return result.scalar_one_or_none()


async_user_repository = AsyncUserRepository(User)
