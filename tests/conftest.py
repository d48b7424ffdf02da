import os
import tempfile

# La configuración se lee al importar la app: BD en memoria, uploads y logs temporales
os.environ["DATABASE_URI"] = "sqlite://"
os.environ.setdefault("UPLOADS_DIRECTORY", tempfile.mkdtemp(prefix="portal_uploads_"))
os.environ.setdefault("LOGS_DIRECTORY", tempfile.mkdtemp(prefix="portal_logs_"))

import pytest
import pytest_asyncio
from typing import AsyncGenerator, Generator, Callable, Dict, Iterable, Optional
from unittest import mock
from datetime import datetime, timezone
import json
import logging

import httpx
from fastapi import FastAPI
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from app.main import app as fastapi_app
from app.core.config import settings
from app.api.deps import get_db # Usado para override
from app.core.password import get_password_hash
from app.db.base import Base
from app.models import Usuario, Permiso, UsuarioPermiso, Constancia # noqa
from app.schemas.enums import RolUsuarioEnum, EstadoDocumentoEnum

from scripts.seed_data import seed_modulos, seed_permisos

# Configuración básica de logging para los tests
logging.basicConfig(level=logging.INFO, format='%(asctime)s [%(levelname)s] [%(name)s] [%(funcName)s] %(message)s')
logger = logging.getLogger(__name__)
logger.setLevel(logging.DEBUG)

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Contraseñas de prueba (cumplen la política: 8+, mayúscula, minúscula y número)
TEST_SUPERADMIN_PASSWORD = "SuperAdmin123"
TEST_ADMIN_PASSWORD = "AdminPass123"
TEST_USER_REGULAR_PASSWORD = "UsuarioPass123"


@pytest.fixture(scope="session")
def app() -> FastAPI:
    """
    Fixture que proporciona la instancia de la aplicación FastAPI para los tests.
    """
    return fastapi_app


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Sesión sobre un esquema recién creado; las tablas se eliminan al terminar cada test."""
    Base.metadata.create_all(bind=engine)
    db_session = TestingSessionLocal()
    try:
        yield db_session
    finally:
        db_session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def uploads_dir(tmp_path, monkeypatch):
    """Los archivos subidos durante el test se escriben en un directorio temporal."""
    monkeypatch.setattr("app.core.storage.UPLOAD_DIR", tmp_path)
    return tmp_path


@pytest.fixture(autouse=True)
def mock_dispatch_email() -> Generator[mock.MagicMock, None, None]:
    """Evita encolar correos reales; los tests pueden inspeccionar las llamadas."""
    with mock.patch("app.services.email.dispatch_email", return_value=True) as mocked:
        yield mocked


@pytest.fixture(autouse=True)
def mock_login_audit() -> Generator[mock.MagicMock, None, None]:
    # La tarea abre su propia sesión contra otra BD; en los tests no se ejecuta
    with mock.patch("app.api.routes.auth.log_login_attempt_task") as mocked:
        yield mocked


@pytest_asyncio.fixture(scope="function")
async def client(app: FastAPI, db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Fixture para obtener un cliente HTTP asíncrono para interactuar con la app."""
    def override_get_db_for_test():
        yield db

    app.dependency_overrides[get_db] = override_get_db_for_test
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)


async def get_auth_token(client: AsyncClient, username: str, password: str) -> Optional[str]:
    """Función helper para obtener un token de autenticación."""
    login_data = {"username": username, "password": password}
    url = f"{settings.API_V1_STR}/auth/login/access-token"
    try:
        response = await client.post(url, data=login_data)
        response.raise_for_status()
        return response.json().get("access_token")
    except httpx.HTTPStatusError as e:
        try:
            error_detail = e.response.json()
        except json.JSONDecodeError:
            error_detail = e.response.text
        logger.error(f"FALLO al obtener token para '{username}': Status={e.response.status_code}. Detail: {error_detail}")
        return None


def crear_usuario(
    db: Session,
    email: str,
    password: str,
    rol: RolUsuarioEnum = RolUsuarioEnum.USER,
    activo: bool = True,
    nombre: Optional[str] = None,
) -> Usuario:
    user = Usuario(
        email=email,
        nombre=nombre or email.split("@")[0],
        hashed_password=get_password_hash(password),
        rol=rol.value,
        activo=activo,
        email_verificado=datetime.now(timezone.utc) if activo else None,
        intentos_fallidos=0,
        bloqueado=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def test_superadmin(db: Session) -> Usuario:
    return crear_usuario(db, "superadmin@unamad.edu.pe", TEST_SUPERADMIN_PASSWORD, RolUsuarioEnum.SUPER_ADMIN, nombre="Super Admin")


@pytest.fixture(scope="function")
def test_admin(db: Session) -> Usuario:
    return crear_usuario(db, "admin@unamad.edu.pe", TEST_ADMIN_PASSWORD, RolUsuarioEnum.ADMIN, nombre="Admin Test")


@pytest.fixture(scope="function")
def test_usuario_regular(db: Session) -> Usuario:
    return crear_usuario(db, "usuario@unamad.edu.pe", TEST_USER_REGULAR_PASSWORD, nombre="Usuario Regular")


@pytest_asyncio.fixture(scope="function")
async def auth_token_superadmin(client: AsyncClient, test_superadmin: Usuario) -> str:
    token = await get_auth_token(client, test_superadmin.email, TEST_SUPERADMIN_PASSWORD)
    assert token is not None, "No se pudo obtener el token del superadministrador"
    return token


@pytest_asyncio.fixture(scope="function")
async def auth_token_admin(client: AsyncClient, test_admin: Usuario) -> str:
    token = await get_auth_token(client, test_admin.email, TEST_ADMIN_PASSWORD)
    assert token is not None, "No se pudo obtener el token del administrador"
    return token


@pytest_asyncio.fixture(scope="function")
async def auth_token_usuario_regular(client: AsyncClient, test_usuario_regular: Usuario) -> str:
    token = await get_auth_token(client, test_usuario_regular.email, TEST_USER_REGULAR_PASSWORD)
    assert token is not None, "No se pudo obtener el token del usuario regular"
    return token


@pytest.fixture(scope="function")
def catalogo_permisos(db: Session) -> Dict[str, Permiso]:
    """Módulos, submódulos y permisos iniciales del portal, cargados con el script de seed."""
    indice = seed_modulos(db)
    seed_permisos(db, indice)
    db.commit()
    return {p.codigo: p for p in db.query(Permiso).all()}


@pytest.fixture(scope="function")
def otorgar(db: Session) -> Callable[..., UsuarioPermiso]:
    """Factory para asignar un permiso a un usuario directamente en la BD."""
    def _otorgar(
        usuario: Usuario,
        permiso: Permiso,
        acciones: Iterable[str] = ("READ",),
        expira_en: Optional[datetime] = None,
    ) -> UsuarioPermiso:
        grant = UsuarioPermiso(
            usuario_id=usuario.id,
            permiso_id=permiso.id,
            acciones=list(acciones),
            otorgado_en=datetime.now(timezone.utc),
            expira_en=expira_en,
        )
        db.add(grant)
        db.commit()
        db.refresh(grant)
        return grant
    return _otorgar


@pytest.fixture(scope="function")
def crear_constancia(db: Session, test_superadmin: Usuario) -> Callable[..., Constancia]:
    def _crear(numero: str, estado: EstadoDocumentoEnum = EstadoDocumentoEnum.PENDIENTE, **campos) -> Constancia:
        datos = {
            "dni": "70123456",
            "codigo_estudiante": "18121003",
            "nombre_completo": "Juan Carlos Pérez Quispe",
            "anio": 2024,
        }
        datos.update(campos)
        constancia = Constancia(
            numero_constancia=numero,
            estado=estado.value,
            creado_por_id=test_superadmin.id,
            **datos,
        )
        db.add(constancia)
        db.commit()
        db.refresh(constancia)
        return constancia
    return _crear
