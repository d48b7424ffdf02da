import logging
import traceback

from fastapi import FastAPI, Request, status, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from psycopg import errors as psycopg_errors
from sqlalchemy.exc import SQLAlchemyError, IntegrityError, NoResultFound

# Códigos SQLSTATE de PostgreSQL; en SQLite se recurre al texto del error
PGCODE_UNIQUE_VIOLATION = psycopg_errors.UniqueViolation.sqlstate
PGCODE_FOREIGN_KEY_VIOLATION = psycopg_errors.ForeignKeyViolation.sqlstate
PGCODE_CHECK_VIOLATION = psycopg_errors.CheckViolation.sqlstate
PGCODE_NOT_NULL_VIOLATION = psycopg_errors.NotNullViolation.sqlstate

# Mensajes amigables para las restricciones únicas conocidas
UNIQUE_CONSTRAINT_MESSAGES = {
    "usuarios_email": "El email ya está registrado.",
    "modulos_slug": "El slug ya está en uso.",
    "uq_submodulo_modulo_slug": "El slug ya está en uso en este módulo.",
    "permisos_codigo": "Ya existe un permiso con ese código.",
    "uq_usuario_permiso": "El usuario ya tiene asignado ese permiso.",
    "constancias_numero_constancia": "El número de constancia ya existe.",
    "resoluciones_numero_resolucion": "El número de resolución ya existe.",
}

logger = logging.getLogger(__name__)


def _format_field(loc) -> str:
    if loc and loc[0] in ("body", "query", "path", "form") and len(loc) > 1:
        return " -> ".join(map(str, loc[1:]))
    return " -> ".join(map(str, loc)) if loc else "body"


async def validation_exception_handler(request: Request, exc: Exception):
    """
    Manejador para errores de validación de Pydantic en las solicitudes.
    Responde 400 con el primer mensaje como `detail` y la lista completa en `errors`.
    """
    if not isinstance(exc, RequestValidationError):
        return await generic_exception_handler(request, exc)

    error_details = []
    for error in exc.errors():
        message = error.get("msg", "Error de validación")
        # Pydantic antepone "Value error, " a los ValueError de los validadores
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        error_details.append({"field": _format_field(error.get("loc")), "message": message})

    logger.warning(f"Error de Validación en Request: {request.method} {request.url} - Errores: {error_details}")
    first_message = error_details[0]["message"] if error_details else "Error de validación en los datos de entrada."
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": first_message, "errors": error_details},
    )


async def http_exception_handler(request: Request, exc: Exception):
    """
    Manejador para excepciones HTTP explícitas lanzadas en la aplicación.
    """
    if not isinstance(exc, HTTPException):
        return await generic_exception_handler(request, exc)

    log_message = f"HTTPException - Status: {exc.status_code}, Detail: {exc.detail}, Request: {request.method} {request.url}"
    if exc.status_code >= 500:
        logger.error(log_message, exc_info=False)
    elif exc.status_code >= 400:
        logger.warning(log_message)
    else:
        logger.info(log_message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


def _unique_message(match_text: str, constraint_name: str | None) -> str:
    haystack = f"{constraint_name or ''} {match_text}".lower()
    for key, message in UNIQUE_CONSTRAINT_MESSAGES.items():
        # SQLite reporta "UNIQUE constraint failed: usuarios.email"
        if key in haystack or key.replace("_", ".", 1) in haystack:
            return message
    return f"Conflicto: Ya existe un registro con datos que deben ser únicos (restricción: {constraint_name or 'desconocida'})."


async def database_exception_handler(request: Request, exc: Exception):
    """
    Manejador para errores relacionados con la base de datos (SQLAlchemy).
    Traduce violaciones de integridad a códigos HTTP; el resto termina en 500 genérico.
    """
    if not isinstance(exc, SQLAlchemyError):
        return await generic_exception_handler(request, exc)

    original_exc = getattr(exc, 'orig', None)
    pgcode = getattr(original_exc, 'sqlstate', None) or getattr(original_exc, 'pgcode', None)
    diag = getattr(original_exc, 'diag', None)
    constraint_name = getattr(diag, 'constraint_name', None) if diag else None
    match_text = str(original_exc if original_exc else exc)
    lowered = match_text.lower()

    logger.error(
        f"Database Error Handler - Type: {type(original_exc).__name__ if original_exc else type(exc).__name__}, "
        f"SQLSTATE: {pgcode}, Constraint: '{constraint_name}', Request: {request.method} {request.url}",
        exc_info=True
    )

    if isinstance(exc, NoResultFound):
        status_code, user_message = status.HTTP_404_NOT_FOUND, "El recurso solicitado no fue encontrado."
    elif pgcode == PGCODE_UNIQUE_VIOLATION or "unique constraint" in lowered:
        status_code, user_message = status.HTTP_409_CONFLICT, _unique_message(match_text, constraint_name)
    elif pgcode == PGCODE_FOREIGN_KEY_VIOLATION or "foreign key constraint" in lowered:
        status_code = status.HTTP_404_NOT_FOUND
        user_message = f"Error de referencia: El registro vinculado no existe (restricción: {constraint_name or 'desconocida'})."
    elif pgcode == PGCODE_NOT_NULL_VIOLATION or "not null constraint" in lowered or "not-null constraint" in lowered:
        column_name = getattr(diag, 'column_name', None) if diag else None
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        user_message = f"Error de datos: El campo '{column_name or 'desconocido'}' no puede ser nulo."
    elif pgcode == PGCODE_CHECK_VIOLATION or "check constraint" in lowered:
        status_code = status.HTTP_400_BAD_REQUEST
        user_message = f"Los datos proporcionados violan una regla de negocio (restricción: {constraint_name or 'desconocida'})."
    elif isinstance(exc, IntegrityError):
        status_code, user_message = status.HTTP_409_CONFLICT, "Error de integridad en la base de datos. Verifique los datos."
    else:
        logger.error(f"DB Handler: Error DB no mapeado resultando en 500. Exception: {type(exc).__name__}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Ocurrió un error interno del servidor al procesar la solicitud de base de datos."},
        )

    logger.info(f"DB Handler: Mapeando error DB a -> Status={status_code}, Detail='{user_message}'")
    return JSONResponse(status_code=status_code, content={"detail": user_message})


async def generic_exception_handler(request: Request, exc: Exception):
    """
    Manejador genérico para cualquier excepción no capturada por otros manejadores.
    """
    logger.critical(
        f"Unhandled Python Exception: {type(exc).__name__} - {exc}, Request: {request.method} {request.url}\n{traceback.format_exc()}"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Ocurrió un error interno inesperado en la aplicación."},
    )


def register_error_handlers(app: FastAPI):
    """Registra todos los manejadores de excepciones personalizados en la app FastAPI."""
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
    logger.info("Manejadores de errores personalizados registrados.")


def form_validation_error(exc: ValidationError) -> HTTPException:
    """
    Convierte el error de un schema construido a mano (p. ej. desde campos multipart)
    en el mismo 400 con el primer mensaje que produce `validation_exception_handler`.
    """
    errors = exc.errors()
    message = errors[0].get("msg", "Error de validación") if errors else "Error de validación en los datos de entrada."
    if message.startswith("Value error, "):
        message = message[len("Value error, "):]
    logger.warning(f"Error de validación en formulario: {errors}")
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=message)
