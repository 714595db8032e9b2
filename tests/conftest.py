import os

# Configuración de pruebas antes de importar la aplicación
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SCHEDULE_CACHE_BACKEND", "memory")
os.environ.setdefault("SCHEDULE_TIMEZONE", "UTC")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from classbook.core.deps import get_scheduling_service
from classbook.core.principal import Principal
from classbook.db.init_db import create_tables, drop_tables
from classbook.db.session import get_async_db
from classbook.models.user import UserRole
from classbook.repositories.async_user import async_user_repository
from classbook.schemas.user import UserCreate
from classbook.services.class_scheduling import ClassSchedulingService
from classbook.services.schedule_cache import InMemoryScheduleCache, NullScheduleCache


# Usar una base de datos en memoria para pruebas
SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def db_engine():
    engine = create_async_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await create_tables(engine)

    yield engine

    # Limpiar
    await drop_tables(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(db_engine):
    """
    Crea una sesión de base de datos fresca para cada test y la cierra al finalizar.
    """
    session_factory = async_sessionmaker(
        db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False
    )
    async with session_factory() as session:
        yield session


async def _create_user(db, email: str, role: UserRole, first_name: str, is_active: bool = True):
    user = await async_user_repository.create(
        db,
        obj_in=UserCreate(
            email=email,
            first_name=first_name,
            last_name="Test",
            role=role,
            is_active=is_active
        )
    )
    await db.commit()
    return user


@pytest_asyncio.fixture
async def admin_user(db):
    return await _create_user(db, "admin@gym.com", UserRole.ADMIN, "Admin")


@pytest_asyncio.fixture
async def trainer_user(db):
    return await _create_user(db, "trainer@gym.com", UserRole.TRAINER, "Trainer")


@pytest_asyncio.fixture
async def other_trainer_user(db):
    return await _create_user(db, "trainer2@gym.com", UserRole.TRAINER, "Otro")


@pytest_asyncio.fixture
async def member_user(db):
    return await _create_user(db, "member@gym.com", UserRole.MEMBER, "Ana")


@pytest_asyncio.fixture
async def other_member_user(db):
    return await _create_user(db, "member2@gym.com", UserRole.MEMBER, "Beto")


@pytest.fixture
def admin(admin_user):
    return Principal(id=admin_user.id, role=UserRole.ADMIN)


@pytest.fixture
def trainer(trainer_user):
    return Principal(id=trainer_user.id, role=UserRole.TRAINER)


@pytest.fixture
def member(member_user):
    return Principal(id=member_user.id, role=UserRole.MEMBER)


@pytest.fixture
def other_member(other_member_user):
    return Principal(id=other_member_user.id, role=UserRole.MEMBER)


@pytest.fixture
def service():
    """Servicio sin caché, zona UTC."""
    return ClassSchedulingService(cache=NullScheduleCache(), timezone_name="UTC")


@pytest_asyncio.fixture
async def client(db):
    """
    Cliente HTTP contra la app con la sesión de pruebas y una caché en memoria.
    """
    from classbook.main import app

    async def override_get_async_db():
        yield db

    scheduling_service = ClassSchedulingService(cache=InMemoryScheduleCache(), timezone_name="UTC")

    app.dependency_overrides[get_async_db] = override_get_async_db
    app.dependency_overrides[get_scheduling_service] = lambda: scheduling_service
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
