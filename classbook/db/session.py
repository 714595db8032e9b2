from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.exc import SQLAlchemyError
import logging

from classbook.core.config import get_settings

logger = logging.getLogger(__name__)

settings_instance = get_settings()

db_url_async = settings_instance.DATABASE_URL

# Ocultar credenciales en el log
display_url = db_url_async
if '@' in display_url:
    scheme = display_url.split('://')[0]
    display_url = f"{scheme}://***@{display_url.split('@', 1)[1]}"


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": False,
        "pool_size": 20,
        "max_overflow": 40,
        "pool_timeout": 30,
        "pool_recycle": 280,
        "connect_args": {
            # Deshabilitar prepared statements para pgbouncer
            "statement_cache_size": 0,
            "server_settings": {
                "application_name": "classbook_async",
                "statement_timeout": "30000"
            }
        },
    }


async_engine = create_async_engine(db_url_async, echo=False, **_engine_kwargs(db_url_async))
logger.info(f"Async engine creado: {display_url}")

AsyncSessionLocal = async_sessionmaker(
    async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    autocommit=False
)


async def get_async_db():
    """
    Dependencia async para obtener sesión de base de datos.

    Uso en endpoints:
        @router.get("/endpoint")
        async def my_endpoint(db: AsyncSession = Depends(get_async_db)):
            result = await db.execute(select(ClassOccurrence))
    """
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except SQLAlchemyError as e:
            logger.error(f"Error SQLAlchemy en sesión async: {e}", exc_info=True)
            await session.rollback()
            raise
        finally:
            await session.close()
