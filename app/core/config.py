import os
import json
from typing import List, Union, Optional, Any
from pydantic import Field, field_validator, PostgresDsn, ValidationInfo
from pydantic_settings import BaseSettings
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    """
    Configuraciones de la aplicación, leídas desde variables de entorno.
    """
    # --- Configuración General del Proyecto ---
    PROJECT_NAME: str = os.getenv("PROJECT_NAME", "Portal Administrativo UNAMAD API")
    API_V1_STR: str = os.getenv("API_V1_STR", "/api/v1")
    SECRET_KEY: str = os.getenv("SECRET_KEY", "cambiar-esta-clave-en-produccion")
    ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOGS_DIRECTORY: str = os.getenv("LOGS_DIRECTORY", "./logs")

    ACCESS_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "30"))
    REFRESH_TOKEN_SECRET_KEY: str = os.getenv("REFRESH_TOKEN_SECRET_KEY", "cambiar-esta-clave-de-refresco")
    REFRESH_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("REFRESH_TOKEN_EXPIRE_MINUTES", 60 * 24 * 7))

    # --- Configuración de Base de Datos ---
    POSTGRES_SERVER: str = os.getenv("POSTGRES_SERVER", "localhost")
    POSTGRES_PORT: str = os.getenv("POSTGRES_PORT", "5432")
    POSTGRES_USER: str = os.getenv("POSTGRES_USER", "postgres")
    POSTGRES_PASSWORD: str = os.getenv("POSTGRES_PASSWORD", "password")
    POSTGRES_DB: str = os.getenv("POSTGRES_DB", "portal_unamad")
    DATABASE_DRIVER: str = os.getenv("DATABASE_DRIVER", "psycopg")

    # Si DATABASE_URI viene en el entorno se usa tal cual (p. ej. sqlite:// en los tests)
    DATABASE_URI: Optional[str] = Field(default=None, validate_default=True)

    @field_validator("DATABASE_URI", mode='before')
    @classmethod
    def assemble_db_connection(cls, v: Optional[str], info: ValidationInfo) -> Any:
        if isinstance(v, str) and v:
            return v

        driver = info.data.get("DATABASE_DRIVER", "psycopg")
        scheme = f"postgresql+{driver}"

        return str(PostgresDsn.build(
            scheme=scheme,
            username=info.data.get("POSTGRES_USER"),
            password=info.data.get("POSTGRES_PASSWORD"),
            host=info.data.get("POSTGRES_SERVER"),
            port=int(info.data.get("POSTGRES_PORT", 5432)),
            path=f"{info.data.get('POSTGRES_DB') or ''}",
        ))

    # --- Configuración de CORS ---
    BACKEND_CORS_ORIGINS: List[str] = []

    @field_validator("BACKEND_CORS_ORIGINS", mode='before')
    @classmethod
    def assemble_cors_origins(cls, v: Union[str, List[str]]) -> List[str]:
        if isinstance(v, str) and v:
            if v.startswith("[") and v.endswith("]"):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    pass
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        elif isinstance(v, list):
            return v
        return []

    # --- Configuración de Celery ---
    CELERY_BROKER_URL: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
    CELERY_RESULT_BACKEND: str = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/0")

    # --- Configuración de Almacenamiento ---
    UPLOADS_DIRECTORY: str = os.getenv("UPLOADS_DIRECTORY", "./uploads")
    MAX_FILE_SIZE_BYTES: int = int(os.getenv("MAX_FILE_SIZE_BYTES", 5 * 1024 * 1024)) # 5 MB

    # --- API externa de registro académico (UNAMAD) ---
    UNAMAD_API_URL: str = os.getenv("UNAMAD_API_URL", "https://daa-documentos.unamad.edu.pe:8081/api")
    UNAMAD_API_TOKEN: str = os.getenv("UNAMAD_API_TOKEN", "")
    UNAMAD_API_TIMEOUT_SECONDS: float = float(os.getenv("UNAMAD_API_TIMEOUT_SECONDS", "15"))

    # --- Correo ---
    FRONTEND_URL: str = os.getenv("FRONTEND_URL", "http://localhost:3000")
    INSTITUTIONAL_EMAIL_DOMAIN: str = os.getenv("INSTITUTIONAL_EMAIL_DOMAIN", "unamad.edu.pe")
    SMTP_HOST: str = os.getenv("SMTP_HOST", "localhost")
    SMTP_PORT: int = int(os.getenv("SMTP_PORT", "587"))
    SMTP_USER: str = os.getenv("SMTP_USER", "")
    SMTP_PASSWORD: str = os.getenv("SMTP_PASSWORD", "")
    EMAILS_FROM: str = os.getenv("EMAILS_FROM", "no-reply@unamad.edu.pe")
    PASSWORD_RESET_TOKEN_EXPIRE_MINUTES: int = int(os.getenv("PASSWORD_RESET_TOKEN_EXPIRE_MINUTES", "60"))
    EMAIL_VERIFICATION_EXPIRE_HOURS: int = int(os.getenv("EMAIL_VERIFICATION_EXPIRE_HOURS", "24"))

    # --- Otras Configuraciones ---
    MAX_FAILED_ATTEMPTS_BEFORE_LOCK: int = int(os.getenv("MAX_FAILED_ATTEMPTS_BEFORE_LOCK", "5"))

    # --- Credenciales para el Superusuario Inicial ---
    SUPERUSER_EMAIL: str = os.getenv("SUPERUSER_EMAIL", "superadmin@unamad.edu.pe")
    SUPERUSER_PASSWORD: str = os.getenv("SUPERUSER_PASSWORD", "")

    class Config:
        case_sensitive = True
        env_file = ".env"
        env_file_encoding = 'utf-8'
        extra = "ignore"

settings = Settings()
