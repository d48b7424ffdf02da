import logging
from typing import Any, List, Optional
from uuid import UUID as PyUUID

from fastapi import APIRouter, Depends, HTTPException, status, Query, File, UploadFile, Form, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.api import deps
from app.core.error_handlers import form_validation_error
from app.core.permissions import PERM_RESOLUCIONES
from app.core.storage import save_upload_file, delete_uploaded_file, relative_path_from_url
from app.models.usuario import Usuario as UsuarioModel
from app.schemas.common import Msg
from app.schemas.enums import AccionPermisoEnum, EstadoDocumentoEnum
from app.schemas.resolucion import Resolucion, ResolucionCreate, ResolucionUpdate
from app.services import documento_workflow
from app.services.audit_log import audit_log_service
from app.services.resolucion import resolucion_service

logger = logging.getLogger(__name__)
router = APIRouter()

UPLOAD_SUBDIR = "resoluciones"


async def _save_files(files: Optional[List[UploadFile]]) -> List[dict]:
    """Guarda los archivos en orden; si uno falla, borra los ya guardados y propaga el error."""
    saved: List[dict] = []
    try:
        for upload in files or []:
            if upload is not None and upload.filename:
                saved.append(await save_upload_file(upload, UPLOAD_SUBDIR))
    except HTTPException:
        await _discard_files(saved)
        raise
    return saved


async def _discard_files(saved: List[dict]) -> None:
    for info in saved:
        await delete_uploaded_file(info["file_path"])


@router.get(
    "/",
    response_model=List[Resolucion],
    summary="Listar resoluciones",
    response_description="Resoluciones de la más reciente a la más antigua, opcionalmente filtradas."
)
def read_resoluciones(
    db: Session = Depends(deps.get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200),
    estado: Optional[EstadoDocumentoEnum] = Query(None),
    tipo_resolucion: Optional[str] = Query(None),
    facultad_id: Optional[int] = Query(None),
    search: Optional[str] = Query(None, description="Número, título, asesor o datos de un estudiante"),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_RESOLUCIONES)),
) -> Any:
    return resolucion_service.get_multi_filtered(
        db, skip=skip, limit=limit, estado=estado, tipo_resolucion=tipo_resolucion,
        facultad_id=facultad_id, search=search,
    )


@router.get("/{resolucion_id}", response_model=Resolucion, summary="Obtener una resolución por ID")
def read_resolucion(
    resolucion_id: PyUUID,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_RESOLUCIONES)),
) -> Any:
    return resolucion_service.get_or_404(db, id=resolucion_id)


@router.post(
    "/",
    response_model=Resolucion,
    status_code=status.HTTP_201_CREATED,
    summary="Registrar resolución con estudiantes, docentes y archivos",
)
async def create_resolucion(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_RESOLUCIONES, AccionPermisoEnum.CREATE)),
    data: str = Form(..., description="JSON con los datos de la resolución, `estudiantes` y `docentes`"),
    files: Optional[List[UploadFile]] = File(None, description="PDF de la resolución e imágenes anexas"),
) -> Any:
    try:
        resolucion_in = ResolucionCreate.model_validate_json(data)
    except ValidationError as e:
        raise form_validation_error(e)

    saved = await _save_files(files)
    try:
        resolucion = resolucion_service.create(
            db, obj_in=resolucion_in, creado_por_id=current_user.id, archivos=saved
        )
        db.flush()
        audit_log_service.record(
            db, accion="resolucion.created", entidad="resolucion", entidad_id=resolucion.id,
            usuario_id=current_user.id, cambios={"numero_resolucion": resolucion.numero_resolucion},
            request=request,
        )
        db.commit()
        db.refresh(resolucion)
        logger.info(f"Resolución '{resolucion.numero_resolucion}' creada por '{current_user.email}'.")
        return resolucion
    except HTTPException:
        db.rollback()
        await _discard_files(saved)
        raise
    except IntegrityError as e:
        db.rollback()
        await _discard_files(saved)
        logger.warning(f"Error de integridad al crear resolución '{resolucion_in.numero_resolucion}': {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El número de resolución ya existe")
    except Exception as e:
        db.rollback()
        await _discard_files(saved)
        logger.error(f"Error inesperado creando resolución '{resolucion_in.numero_resolucion}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al crear resolución")


@router.put("/{resolucion_id}", response_model=Resolucion, summary="Reemplazar los datos de una resolución")
async def update_resolucion(
    *,
    request: Request,
    resolucion_id: PyUUID,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_RESOLUCIONES, AccionPermisoEnum.UPDATE)),
    data: str = Form(..., description="JSON completo de la resolución; admite `archivos_a_eliminar`"),
    files: Optional[List[UploadFile]] = File(None),
) -> Any:
    """
    Estudiantes y docentes se reemplazan por completo. Los archivos nuevos se agregan y los
    indicados en `archivos_a_eliminar` se borran del disco después de confirmar el cambio.
    """
    try:
        resolucion_in = ResolucionUpdate.model_validate_json(data)
    except ValidationError as e:
        raise form_validation_error(e)

    resolucion = resolucion_service.get_or_404(db, id=resolucion_id)
    saved = await _save_files(files)
    try:
        resolucion, urls_eliminadas = resolucion_service.update(
            db, db_obj=resolucion, obj_in=resolucion_in, actor=current_user, archivos=saved
        )
        audit_log_service.record(
            db, accion="resolucion.updated", entidad="resolucion", entidad_id=resolucion.id,
            usuario_id=current_user.id,
            cambios={
                "numero_resolucion": resolucion.numero_resolucion,
                "archivos_agregados": len(saved),
                "archivos_eliminados": len(urls_eliminadas),
            },
            request=request,
        )
        db.commit()
        db.refresh(resolucion)
    except HTTPException:
        db.rollback()
        await _discard_files(saved)
        raise
    except IntegrityError as e:
        db.rollback()
        await _discard_files(saved)
        logger.warning(f"Error de integridad al actualizar resolución {resolucion_id}: {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El número de resolución ya existe")
    except Exception as e:
        db.rollback()
        await _discard_files(saved)
        logger.error(f"Error inesperado actualizando resolución {resolucion_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al actualizar resolución")

    for url in urls_eliminadas:
        await delete_uploaded_file(relative_path_from_url(url))
    return resolucion


@router.delete("/{resolucion_id}", response_model=Msg, summary="Eliminar resolución")
async def delete_resolucion(
    *,
    request: Request,
    resolucion_id: PyUUID,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_RESOLUCIONES, AccionPermisoEnum.DELETE)),
) -> Any:
    try:
        resolucion = resolucion_service.remove(db, id=resolucion_id)
        urls = [a.url_archivo for a in resolucion.archivos]
        audit_log_service.record(
            db, accion="resolucion.deleted", entidad="resolucion", entidad_id=resolucion_id,
            usuario_id=current_user.id, cambios={"numero_resolucion": resolucion.numero_resolucion},
            request=request,
        )
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado eliminando resolución {resolucion_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al eliminar resolución")

    for url in urls:
        await delete_uploaded_file(relative_path_from_url(url))
    return Msg(msg="Resolución eliminada exitosamente")


@router.post("/{resolucion_id}/approve", response_model=Resolucion, summary="Aprobar resolución")
def approve_resolucion(
    *,
    request: Request,
    resolucion_id: PyUUID,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_RESOLUCIONES, AccionPermisoEnum.UPDATE)),
) -> Any:
    resolucion = resolucion_service.get_or_404(db, id=resolucion_id)
    try:
        documento_workflow.approve(db, documento=resolucion, actor_id=current_user.id, request=request)
        db.commit()
        db.refresh(resolucion)
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado aprobando resolución {resolucion_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al aprobar resolución")
    return resolucion


@router.post("/{resolucion_id}/reject", response_model=Resolucion, summary="Rechazar resolución")
def reject_resolucion(
    *,
    request: Request,
    resolucion_id: PyUUID,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_RESOLUCIONES, AccionPermisoEnum.UPDATE)),
) -> Any:
    """Una resolución aprobada también puede rechazarse; se limpian los datos de aprobación."""
    resolucion = resolucion_service.get_or_404(db, id=resolucion_id)
    try:
        documento_workflow.reject(db, documento=resolucion, actor_id=current_user.id, request=request)
        db.commit()
        db.refresh(resolucion)
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado rechazando resolución {resolucion_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al rechazar resolución")
    return resolucion
