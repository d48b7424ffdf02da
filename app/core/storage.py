import logging
from typing import Optional
import uuid
from pathlib import Path
from fastapi import UploadFile, HTTPException, status
import aiofiles
import aiofiles.os

from app.core.config import settings

logger = logging.getLogger(__name__)

# Asegurarse que el directorio de uploads exista
UPLOAD_DIR = Path(settings.UPLOADS_DIRECTORY)
UPLOAD_DIR.mkdir(parents=True, exist_ok=True)

# Subdirectorios protegidos (solo se sirven a usuarios autenticados)
PROTECTED_SUBDIRS = {"constancias", "resoluciones"}

# Tipos MIME permitidos para los documentos
ALLOWED_MIME_TYPES = {
    "application/pdf",
    "image/jpeg",
    "image/jpg",
    "image/png",
}

# Content-Type por extensión al servir archivos
CONTENT_TYPES = {
    ".pdf": "application/pdf",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".webp": "image/webp",
}
DEFAULT_CONTENT_TYPE = "application/octet-stream"

CHUNK_SIZE = 1024 * 1024


def build_file_url(relative_path: str) -> str:
    """URL pública (a través de la API) de un archivo guardado."""
    return f"{settings.API_V1_STR}/documents/files/{relative_path}"


def relative_path_from_url(url: Optional[str]) -> Optional[str]:
    """Inverso de `build_file_url`: extrae la ruta relativa a UPLOAD_DIR."""
    if not url:
        return None
    marker = "/documents/files/"
    if marker in url:
        return url.split(marker, 1)[1]
    return None


async def save_upload_file(upload_file: UploadFile, subdir: str) -> dict:
    """
    Guarda un archivo subido en `UPLOAD_DIR/<subdir>/` y devuelve sus metadatos.
    El tamaño se cuenta mientras se escribe; si supera el máximo el archivo parcial se borra.
    """
    if not upload_file or not upload_file.filename:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No se envió ningún archivo o el archivo no tiene nombre.")

    mime_type = upload_file.content_type
    if mime_type not in ALLOWED_MIME_TYPES:
        logger.warning(f"Intento de subir archivo con tipo MIME no permitido: {mime_type}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Tipo de archivo no permitido: {upload_file.filename}",
        )

    file_extension = Path(upload_file.filename).suffix.lower()
    unique_filename = f"{uuid.uuid4()}{file_extension}"
    target_dir = UPLOAD_DIR / subdir
    target_dir.mkdir(parents=True, exist_ok=True)
    destination_path = target_dir / unique_filename

    size = 0
    too_large = False
    try:
        async with aiofiles.open(destination_path, "wb") as out_file:
            while content := await upload_file.read(CHUNK_SIZE):
                size += len(content)
                if size > settings.MAX_FILE_SIZE_BYTES:
                    too_large = True
                    break
                await out_file.write(content)
    except OSError as e:
        logger.error(f"Error al guardar el archivo {unique_filename}: {e}", exc_info=True)
        if await aiofiles.os.path.exists(destination_path):
            await aiofiles.os.remove(destination_path)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="No se pudo guardar el archivo en el servidor.",
        )
    finally:
        await upload_file.close()

    if too_large:
        await aiofiles.os.remove(destination_path)
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"El archivo {upload_file.filename} supera el tamaño máximo de {settings.MAX_FILE_SIZE_BYTES // (1024 * 1024)}MB",
        )

    relative_path = f"{subdir}/{unique_filename}"
    logger.info(f"Archivo '{upload_file.filename}' guardado como '{relative_path}' en {UPLOAD_DIR}")
    return {
        "file_path": relative_path,
        "url": build_file_url(relative_path),
        "filename": upload_file.filename,
        "mime_type": mime_type,
        "size": size,
    }


async def delete_uploaded_file(file_path_relative: Optional[str]) -> bool:
    """
    Elimina un archivo del directorio de uploads. Devuelve False si no existía.
    """
    if not file_path_relative:
        return False

    full_path = UPLOAD_DIR / file_path_relative
    if await aiofiles.os.path.isfile(full_path):
        await aiofiles.os.remove(full_path)
        logger.info(f"Archivo '{full_path}' eliminado exitosamente.")
        return True
    logger.warning(f"Intento de eliminar archivo no encontrado en disco: '{full_path}'")
    return False


def split_upload_path(relative_path: str) -> list:
    """
    Separa la ruta pedida en segmentos. Los segmentos `.` y `..` se rechazan
    para que el primer segmento sea siempre el subdirectorio real del archivo.
    """
    segments = [s for s in relative_path.split("/") if s]
    if not segments or any(s in (".", "..") for s in segments):
        logger.warning(f"Acceso a ruta no permitida: '{relative_path}'")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Ruta no permitida")
    return segments


def resolve_upload_path(relative_path: str, allowed_roots: Optional[set] = None) -> Path:
    """
    Traduce una ruta pedida por el cliente a un archivo dentro de UPLOAD_DIR.

    Raises:
        HTTPException 403: si la ruta contiene `.` o `..`, si el primer segmento no
            está en `allowed_roots` o si la ruta resuelta sale del directorio de uploads.
        HTTPException 404: si el archivo no existe.
    """
    segments = split_upload_path(relative_path)
    if allowed_roots is not None and segments[0] not in allowed_roots:
        logger.warning(f"Acceso a ruta no permitida: '{relative_path}'")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Ruta no permitida")

    root = UPLOAD_DIR.resolve()
    candidate = root.joinpath(*segments).resolve()
    if candidate != root and root not in candidate.parents:
        logger.warning(f"Intento de path traversal bloqueado: '{relative_path}'")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Ruta no permitida")

    if not candidate.is_file():
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Archivo no encontrado")
    return candidate


def content_type_for(path: Path) -> str:
    return CONTENT_TYPES.get(path.suffix.lower(), DEFAULT_CONTENT_TYPE)
