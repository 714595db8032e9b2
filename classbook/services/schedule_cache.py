"""
Caché de lectura para listados y detalle de sesiones.

El servicio de horarios depende solo del puerto `ScheduleCache`; el backend
(Redis, memoria del proceso o ninguno) se elige con SCHEDULE_CACHE_BACKEND.

Las entradas caducan por TTL. La invalidación tras una escritura es de mejor
esfuerzo: puede haber lecturas obsoletas hasta que venza el TTL. Las
decisiones de aforo y de conflictos nunca pasan por esta caché.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple, Type, TypeVar
import json
import logging
import time

from pydantic import BaseModel
from redis.asyncio import Redis

logger = logging.getLogger(__name__)

T = TypeVar('T', bound=BaseModel)

DETAIL_KEY_PREFIX = "schedule:occurrence:detail:"
LIST_KEY_PREFIX = "schedule:occurrence:list:"


def occurrence_detail_key(occurrence_id: int) -> str:
    return f"{DETAIL_KEY_PREFIX}{occurrence_id}"


def _json_default(obj):
    if isinstance(obj, datetime):
        return obj.isoformat()
    raise TypeError(f"Tipo no serializable: {type(obj)}")


def occurrence_list_key(filters: Dict[str, Any], page: int, page_size: int) -> str:
    """
    Clave canónica de un listado: filtros sin valores nulos, claves ordenadas.

    Dos peticiones con los mismos filtros en distinto orden comparten entrada.
    """
    canonical = {k: v for k, v in filters.items() if v is not None}
    canonical["page"] = page
    canonical["page_size"] = page_size
    payload = json.dumps(canonical, sort_keys=True, separators=(",", ":"), default=_json_default)
    return f"{LIST_KEY_PREFIX}{payload}"


class ScheduleCache(ABC):
    """Puerto de caché; los valores son estructuras serializables a JSON."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl: int) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def invalidate_listings(self) -> int:
        """Eliminar las entradas de listados; devuelve cuántas se eliminaron."""

    async def invalidate_occurrence(self, occurrence_id: int) -> None:
        await self.delete(occurrence_detail_key(occurrence_id))


class NullScheduleCache(ScheduleCache):
    """Sin caché: siempre fallo, nada que invalidar."""

    async def get(self, key: str) -> Optional[Any]:
        return None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        return None

    async def delete(self, key: str) -> None:
        return None

    async def invalidate_listings(self) -> int:
        return 0


class InMemoryScheduleCache(ScheduleCache):
    """
    Caché local del proceso con expiración por reloj monótono.

    Los valores se guardan serializados para que el llamante nunca comparta
    referencias mutables con la caché.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._entries: Dict[str, Tuple[float, str]] = {}
        self._clock = clock
        self.hits = 0
        self.misses = 0

    async def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None
        expires_at, payload = entry
        if self._clock() >= expires_at:
            del self._entries[key]
            self.misses += 1
            return None
        self.hits += 1
        return json.loads(payload)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        self._entries[key] = (self._clock() + ttl, json.dumps(value, default=_json_default))

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def invalidate_listings(self) -> int:
        keys = [key for key in self._entries if key.startswith(LIST_KEY_PREFIX)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def get_stats(self) -> Dict:
        return {
            "entries": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
        }


class RedisScheduleCache(ScheduleCache):
    """
    Caché compartida en Redis (payloads JSON con `ex=ttl`).

    Los errores de Redis se registran y se tratan como fallo de caché; nunca
    interrumpen la operación principal.
    """

    def __init__(self, redis_client: Redis):
        self.redis = redis_client

    async def get(self, key: str) -> Optional[Any]:
        try:
            cached_data = await self.redis.get(key)
        except Exception as e:
            logger.error(f"Error al leer del caché para {key}: {e}", exc_info=True)
            return None
        if not cached_data:
            return None
        try:
            return json.loads(cached_data)
        except ValueError:
            logger.warning(f"Ignorando datos en caché corruptos para {key}")
            await self.delete(key)
            return None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self.redis.set(key, json.dumps(value, default=_json_default), ex=ttl)
        except Exception as e:
            logger.error(f"Error al guardar en caché {key}: {e}", exc_info=True)

    async def delete(self, key: str) -> None:
        try:
            await self.redis.delete(key)
        except Exception as e:
            logger.error(f"Error al eliminar clave de caché {key}: {e}", exc_info=True)

    async def invalidate_listings(self) -> int:
        pattern = f"{LIST_KEY_PREFIX}*"
        try:
            keys = [key async for key in self.redis.scan_iter(match=pattern)]
            if not keys:
                return 0
            count = await self.redis.delete(*keys)
            logger.info(f"Eliminadas {count} claves con patrón: {pattern}")
            return count
        except Exception as e:
            logger.error(f"Error al eliminar claves con patrón {pattern}: {e}", exc_info=True)
            return 0


async def read_through(
    cache: ScheduleCache,
    key: str,
    fetch: Callable[[], Awaitable[Optional[T]]],
    model_class: Type[T],
    ttl: int
) -> Optional[T]:
    """
    Obtiene un modelo de la caché o lo carga con `fetch` y lo guarda.

    Args:
        cache: Backend de caché
        key: Clave de la entrada
        fetch: Función async que consulta la base de datos
        model_class: Modelo Pydantic con el que se valida el valor cacheado
        ttl: Expiración en segundos

    Returns:
        El modelo, o None si `fetch` no encontró nada (los None no se cachean)
    """
    cached = await cache.get(key)
    if cached is not None:
        try:
            result = model_class.model_validate(cached)
            logger.debug(f"Cache hit para clave: {key}")
            return result
        except ValueError as e:
            logger.error(f"Error al deserializar datos de caché para clave {key}: {e}")
            await cache.delete(key)

    logger.debug(f"Cache miss para clave: {key}")
    data = await fetch()
    if data is not None:
        await cache.set(key, data.model_dump(mode="json"), ttl)
    return data


def build_schedule_cache(backend: str, redis_client: Optional[Redis] = None) -> ScheduleCache:
    """Construye el backend configurado; 'redis' sin cliente degrada a sin caché."""
    if backend == "redis":
        if redis_client is None:
            logger.warning("Cliente Redis no disponible, la caché de horarios queda desactivada")
            return NullScheduleCache()
        return RedisScheduleCache(redis_client)
    if backend == "memory":
        return InMemoryScheduleCache()
    return NullScheduleCache()
