"""
Cliente Redis con Connection Pooling (async).

El pool se comparte en todo el proceso; cada consumidor crea un cliente ligero
sobre él. Lo usa `RedisScheduleCache` como backend de la caché de horarios.

Configuración ajustable mediante variables de entorno:
- REDIS_POOL_MAX_CONNECTIONS: Número máximo de conexiones en el pool (default: 50)
- REDIS_POOL_SOCKET_TIMEOUT: Timeout para operaciones de socket (default: 5 segundos)
- REDIS_POOL_HEALTH_CHECK_INTERVAL: Intervalo para verificar salud de conexiones (default: 30 segundos)
"""
import logging
from typing import Optional

from redis.asyncio import ConnectionPool, Redis

from classbook.core.config import get_settings

logger = logging.getLogger(__name__)

# Declaración global del pool de conexiones
REDIS_POOL: Optional[ConnectionPool] = None


async def initialize_redis_pool():
    """
    Inicializa el pool de conexiones a Redis.
    Debe llamarse una sola vez al iniciar la aplicación.
    """
    global REDIS_POOL
    if REDIS_POOL is not None:
        return

    settings = get_settings()
    redis_url = settings.REDIS_URL
    if not redis_url:
        logger.error("La URL de Redis está vacía. No se puede inicializar el pool.")
        raise ValueError("La URL de Redis procesada está vacía.")

    logger.info("Inicializando connection pool para Redis...")
    REDIS_POOL = ConnectionPool.from_url(
        redis_url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=settings.REDIS_POOL_MAX_CONNECTIONS,
        socket_keepalive=settings.REDIS_POOL_SOCKET_KEEPALIVE,
        socket_timeout=settings.REDIS_POOL_SOCKET_TIMEOUT,
        health_check_interval=settings.REDIS_POOL_HEALTH_CHECK_INTERVAL,
        retry_on_timeout=settings.REDIS_POOL_RETRY_ON_TIMEOUT
    )
    logger.info(
        f"Connection pool de Redis inicializado (max_connections={settings.REDIS_POOL_MAX_CONNECTIONS})."
    )


def get_redis() -> Redis:
    """Cliente Redis sobre el pool compartido."""
    if REDIS_POOL is None:
        raise RuntimeError("El connection pool de Redis no está inicializado")
    return Redis(connection_pool=REDIS_POOL)


async def close_redis_pool():
    """Cierra el pool de conexiones Redis al finalizar la aplicación."""
    global REDIS_POOL

    if REDIS_POOL:
        logger.info("Cerrando connection pool de Redis...")
        await REDIS_POOL.disconnect()
        REDIS_POOL = None
        logger.info("Connection pool de Redis cerrado.")
