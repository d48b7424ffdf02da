import logging
import os

from fastapi import FastAPI
from starlette.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from app.core.config import settings
from app.api.routes import api_router
from app.core.logging_config import setup_logging
from app.core.error_handlers import register_error_handlers
from app.core.storage import UPLOAD_DIR

setup_logging()
logger = logging.getLogger(__name__)

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Código de inicio
    logger.info("*"*50)
    logger.info(f"Iniciando Aplicación: {settings.PROJECT_NAME}")
    logger.info("*"*50)

    PORT = os.getenv("PORT", "8000")
    BASE_URL = f"http://127.0.0.1:{PORT}"
    logger.info(f"API Docs (Swagger UI): {BASE_URL}{settings.API_V1_STR}/docs")
    logger.info(f"Directorio de archivos: {UPLOAD_DIR.resolve()}")
    if not settings.UNAMAD_API_TOKEN:
        logger.warning("UNAMAD_API_TOKEN no definido: las consultas al registro académico fallarán con 500")
    logger.info("*"*50)

    yield # La aplicación se ejecuta

    # Código de apagado
    logger.info("*"*50)
    logger.info(f"Deteniendo Aplicación: {settings.PROJECT_NAME}")
    logger.info("*"*50)

# --- Crear Instancia de FastAPI ---
app = FastAPI(
    title=settings.PROJECT_NAME,
    description="API del portal administrativo: usuarios, permisos por módulo, constancias y resoluciones.",
    version="1.0.0",
    openapi_url=f"{settings.API_V1_STR}/openapi.json",
    docs_url=f"{settings.API_V1_STR}/docs",
    redoc_url=f"{settings.API_V1_STR}/redoc",
    lifespan=lifespan
)

# --- Configurar CORS ---
if settings.BACKEND_CORS_ORIGINS:
    logger.info(f"Configurando CORS para los orígenes: {settings.BACKEND_CORS_ORIGINS}")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[str(origin).strip("/") for origin in settings.BACKEND_CORS_ORIGINS],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
else:
    logger.warning("CORS no configurado (BACKEND_CORS_ORIGINS no definido en .env)")

# --- Registrar Manejadores de Errores ---
register_error_handlers(app)

# --- Incluir Routers de la API ---
# Los uploads se sirven solo a través de /files y /documents/files, nunca como estáticos
app.include_router(api_router, prefix=settings.API_V1_STR)
logger.info(f"Routers de API incluidos bajo el prefijo: {settings.API_V1_STR}")

# --- Endpoint Raíz Básico ---
@app.get("/", tags=["Root"], include_in_schema=False)
def read_root() -> dict:
    return {"status": "ok", "message": f"Bienvenido a {settings.PROJECT_NAME}"}
