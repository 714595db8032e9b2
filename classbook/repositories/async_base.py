"""
Base repository async para operaciones CRUD genéricas.
"""
from typing import TypeVar, Generic, Optional, Dict, Any, Type, Union
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from pydantic import BaseModel
import logging

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType")
CreateSchemaType = TypeVar("CreateSchemaType", bound=BaseModel)
UpdateSchemaType = TypeVar("UpdateSchemaType", bound=BaseModel)


class AsyncBaseRepository(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    """
    Repositorio base genérico con operaciones CRUD async.

    Los métodos hacen flush pero nunca commit: la transacción la delimita el
    llamante con `transaction_scope`.

    Uso:
        class UserRepository(AsyncBaseRepository[User, UserCreate, UserUpdate]):
            # Métodos específicos del modelo
            pass
    """

    def __init__(self, model: Type[ModelType]):
        """
        Inicializar repositorio con el modelo SQLAlchemy.

        Args:
            model: Clase del modelo SQLAlchemy (ej: User, ClassOccurrence, etc)
        """
        self.model = model

    async def get(
        self,
        db: AsyncSession,
        id: Any,
        *,
        for_update: bool = False
    ) -> Optional[ModelType]:
        """
        Obtener un objeto por ID.

        Args:
            db: Sesión async de base de datos
            id: ID del objeto a buscar
            for_update: Bloquear la fila hasta el fin de la transacción (SELECT ... FOR UPDATE)

        Returns:
            El objeto encontrado o None si no existe
        """
        stmt = select(self.model).where(self.model.id == id)
        if for_update:
            stmt = stmt.with_for_update()
            # Releer la fila aunque ya esté en el identity map
            stmt = stmt.execution_options(populate_existing=True)

        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        db: AsyncSession,
        *,
        obj_in: Union[CreateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        """
        Crear un nuevo objeto en la base de datos.

        Returns:
            El objeto creado con ID asignado
        """
        if isinstance(obj_in, dict):
            obj_in_data = obj_in
        else:
            obj_in_data = obj_in.model_dump(exclude_unset=True)

        # Filtrar solo los campos que existen en el modelo
        valid_fields = {}
        for field, value in obj_in_data.items():
            if hasattr(self.model, field):
                valid_fields[field] = value
            else:
                logger.warning(
                    f"Campo ignorado en create: {self.model.__name__} no tiene campo '{field}'"
                )

        db_obj = self.model(**valid_fields)

        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)

        return db_obj

    async def update(
        self,
        db: AsyncSession,
        *,
        db_obj: ModelType,
        obj_in: Union[UpdateSchemaType, Dict[str, Any]]
    ) -> ModelType:
        """
        Actualizar un objeto existente con los campos enviados.

        Returns:
            El objeto actualizado
        """
        if isinstance(obj_in, dict):
            update_data = obj_in
        else:
            update_data = obj_in.model_dump(exclude_unset=True)

        for field, value in update_data.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)
            else:
                logger.warning(
                    f"Campo ignorado en update: {self.model.__name__} no tiene campo '{field}'"
                )

        db.add(db_obj)
        await db.flush()
        await db.refresh(db_obj)

        return db_obj
