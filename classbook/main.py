from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
import logging

# Importar la función de configuración de logging
from classbook.core.logging_config import setup_logging

# Llamar a la configuración de logging ANTES de importar/crear otros elementos
setup_logging()

from classbook.api.v1.api import api_router
from classbook.core.config import get_settings
from classbook.core.exceptions import ScheduleError
from classbook.db.redis_client import initialize_redis_pool, get_redis, close_redis_pool
from classbook.services.class_scheduling import ClassSchedulingService
from classbook.services.schedule_cache import build_schedule_cache

logger = logging.getLogger(__name__)

# Obtener la instancia de configuración al inicio del módulo
settings_instance = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Lifespan: Startup iniciado...")

    redis_client = None
    if settings_instance.SCHEDULE_CACHE_BACKEND == "redis":
        try:
            await initialize_redis_pool()
            redis_client = get_redis()
            logger.info("Lifespan: Redis connection pool inicializado correctamente.")
        except Exception as e:
            logger.error(f"Lifespan: Error al inicializar Redis connection pool: {e}", exc_info=True)

    cache = build_schedule_cache(settings_instance.SCHEDULE_CACHE_BACKEND, redis_client)
    app.state.scheduling_service = ClassSchedulingService(cache=cache)
    logger.info(f"Lifespan: Caché de horarios: {type(cache).__name__}")

    yield  # Aplicación en ejecución

    logger.info("Lifespan: Shutdown iniciado...")
    try:
        await close_redis_pool()
    except Exception as e:
        logger.error(f"Lifespan: Error cerrando Redis connection pool: {e}", exc_info=True)


app = FastAPI(
    title=settings_instance.PROJECT_NAME,
    description=settings_instance.PROJECT_DESCRIPTION,
    version=settings_instance.VERSION,
    openapi_url=f"{settings_instance.API_V1_STR}/openapi.json",
    docs_url=f"{settings_instance.API_V1_STR}/docs",
    redoc_url=f"{settings_instance.API_V1_STR}/redoc",
    lifespan=lifespan
)


@app.exception_handler(ScheduleError)
async def schedule_error_handler(request: Request, exc: ScheduleError):
    logger.info(f"{type(exc).__name__} en {request.method} {request.url.path}: {exc.detail}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"Middleware: Recibida petición: {request.method} {request.url}")
    if settings_instance.DEBUG_MODE:
        logger.debug(f"Middleware: X-User-ID={request.headers.get('x-user-id')}")

    response = await call_next(request)

    logger.info(f"Middleware: Enviando respuesta: {response.status_code}")
    return response


# Lista de orígenes permitidos para CORS
origins = [str(origin).rstrip("/") for origin in settings_instance.BACKEND_CORS_ORIGINS]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=86400,  # 24 horas en segundos
)

# Incluir routers
app.include_router(api_router, prefix=settings_instance.API_V1_STR)


# Ruta raíz
@app.get("/")
def root():
    return {
        "message": "Bienvenido a la API de ClassBook",
        "docs": f"{settings_instance.API_V1_STR}/docs",
    }
