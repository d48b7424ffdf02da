import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import FileResponse

from app.api import deps
from app.core.storage import PROTECTED_SUBDIRS, resolve_upload_path, split_upload_path, content_type_for
from app.models.usuario import Usuario as UsuarioModel

logger = logging.getLogger(__name__)

# documents_router se monta en /documents/files y router en /files
documents_router = APIRouter()
router = APIRouter()


def _file_response(relative_path: str, allowed_roots=None) -> FileResponse:
    path = resolve_upload_path(relative_path, allowed_roots=allowed_roots)
    media_type = content_type_for(path)
    headers = {}
    if media_type == "application/pdf":
        headers["Content-Disposition"] = f'inline; filename="{path.name}"'
    return FileResponse(path, media_type=media_type, headers=headers)


@documents_router.get("/{file_path:path}", summary="Servir un archivo de constancia o resolución")
def read_document_file(
    file_path: str,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    """Solo se sirven rutas bajo `constancias/` o `resoluciones/`."""
    logger.debug(f"Usuario '{current_user.email}' solicitó el archivo '{file_path}'.")
    return _file_response(file_path, allowed_roots=PROTECTED_SUBDIRS)


@router.get("/{file_path:path}", summary="Servir un archivo subido")
def read_upload(
    file_path: str,
    current_user: Optional[UsuarioModel] = Depends(deps.get_optional_active_user),
) -> Any:
    """
    Los archivos de constancias y resoluciones requieren sesión; el resto es público.
    """
    first_segment = split_upload_path(file_path)[0]
    if first_segment in PROTECTED_SUBDIRS and current_user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No autorizado",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return _file_response(file_path)
