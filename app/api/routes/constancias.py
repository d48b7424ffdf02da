import logging
from typing import Any, List, Optional
from uuid import UUID as PyUUID

from fastapi import APIRouter, Depends, HTTPException, status, Query, File, UploadFile, Form, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.api import deps
from app.core.error_handlers import form_validation_error
from app.core.permissions import PERM_CONSTANCIAS
from app.core.storage import save_upload_file, delete_uploaded_file, relative_path_from_url
from app.models.usuario import Usuario as UsuarioModel
from app.schemas.common import Msg
from app.schemas.constancia import Constancia, ConstanciaCreate, ConstanciaUpdate
from app.schemas.enums import AccionPermisoEnum, EstadoDocumentoEnum
from app.services import documento_workflow
from app.services.audit_log import audit_log_service
from app.services.constancia import constancia_service

logger = logging.getLogger(__name__)
router = APIRouter()

UPLOAD_SUBDIR = "constancias"


@router.get(
    "/",
    response_model=List[Constancia],
    summary="Listar constancias",
    response_description="Constancias de la más reciente a la más antigua, opcionalmente filtradas."
)
def read_constancias(
    db: Session = Depends(deps.get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200),
    estado: Optional[EstadoDocumentoEnum] = Query(None, description="Filtrar por estado"),
    anio: Optional[int] = Query(None, description="Filtrar por año"),
    search: Optional[str] = Query(None, description="Nombre, DNI, código o número de constancia"),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_CONSTANCIAS)),
) -> Any:
    return constancia_service.get_multi_filtered(
        db, skip=skip, limit=limit, estado=estado, anio=anio, search=search
    )


@router.get("/{constancia_id}", response_model=Constancia, summary="Obtener una constancia por ID")
def read_constancia(
    constancia_id: PyUUID,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_CONSTANCIAS)),
) -> Any:
    return constancia_service.get_or_404(db, id=constancia_id)


@router.post(
    "/",
    response_model=Constancia,
    status_code=status.HTTP_201_CREATED,
    summary="Registrar constancia con archivo opcional",
)
async def create_constancia(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_CONSTANCIAS, AccionPermisoEnum.CREATE)),
    dni: str = Form(...),
    codigo_estudiante: str = Form(...),
    nombre_completo: str = Form(...),
    numero_constancia: str = Form(...),
    anio: int = Form(...),
    observacion: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None, description="PDF o imagen (máx. 5MB)"),
) -> Any:
    """La constancia nace en estado PENDIENTE."""
    try:
        constancia_in = ConstanciaCreate(
            dni=dni, codigo_estudiante=codigo_estudiante, nombre_completo=nombre_completo,
            numero_constancia=numero_constancia, anio=anio, observacion=observacion,
        )
    except ValidationError as e:
        raise form_validation_error(e)

    saved_file_info = None
    try:
        if file is not None and file.filename:
            saved_file_info = await save_upload_file(file, UPLOAD_SUBDIR)
        constancia = constancia_service.create(
            db, obj_in=constancia_in, creado_por_id=current_user.id, archivo=saved_file_info
        )
        db.flush()
        audit_log_service.record(
            db, accion="constancia.created", entidad="constancia", entidad_id=constancia.id,
            usuario_id=current_user.id, cambios={"numero_constancia": constancia.numero_constancia},
            request=request,
        )
        db.commit()
        db.refresh(constancia)
        logger.info(f"Constancia '{constancia.numero_constancia}' creada por '{current_user.email}'.")
        return constancia
    except HTTPException:
        db.rollback()
        if saved_file_info:
            await delete_uploaded_file(saved_file_info["file_path"])
        raise
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Error de integridad al crear constancia '{numero_constancia}': {e}")
        if saved_file_info:
            await delete_uploaded_file(saved_file_info["file_path"])
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El número de constancia ya existe")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado creando constancia '{numero_constancia}': {e}", exc_info=True)
        if saved_file_info:
            await delete_uploaded_file(saved_file_info["file_path"])
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al crear constancia")


@router.patch("/{constancia_id}", response_model=Constancia, summary="Actualizar constancia")
async def update_constancia(
    *,
    request: Request,
    constancia_id: PyUUID,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_CONSTANCIAS, AccionPermisoEnum.UPDATE)),
    dni: Optional[str] = Form(None),
    codigo_estudiante: Optional[str] = Form(None),
    nombre_completo: Optional[str] = Form(None),
    numero_constancia: Optional[str] = Form(None),
    anio: Optional[int] = Form(None),
    observacion: Optional[str] = Form(None),
    file: Optional[UploadFile] = File(None, description="Reemplaza el archivo actual"),
) -> Any:
    """
    Solo se envían los campos a cambiar. Una constancia aprobada solo la edita el superusuario.
    Si llega un archivo nuevo, el anterior se borra del disco tras confirmar el cambio.
    """
    campos = {
        "dni": dni, "codigo_estudiante": codigo_estudiante, "nombre_completo": nombre_completo,
        "numero_constancia": numero_constancia, "anio": anio, "observacion": observacion,
    }
    try:
        constancia_in = ConstanciaUpdate(**{k: v for k, v in campos.items() if v is not None})
    except ValidationError as e:
        raise form_validation_error(e)

    constancia = constancia_service.get_or_404(db, id=constancia_id)
    url_anterior = constancia.url_archivo
    saved_file_info = None
    try:
        if file is not None and file.filename:
            saved_file_info = await save_upload_file(file, UPLOAD_SUBDIR)
        constancia = constancia_service.update(
            db, db_obj=constancia, obj_in=constancia_in, actor=current_user, archivo=saved_file_info
        )
        audit_log_service.record(
            db, accion="constancia.updated", entidad="constancia", entidad_id=constancia.id,
            usuario_id=current_user.id, cambios=constancia_in.model_dump(mode="json", exclude_unset=True),
            request=request,
        )
        db.commit()
        db.refresh(constancia)
    except HTTPException:
        db.rollback()
        if saved_file_info:
            await delete_uploaded_file(saved_file_info["file_path"])
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado actualizando constancia {constancia_id}: {e}", exc_info=True)
        if saved_file_info:
            await delete_uploaded_file(saved_file_info["file_path"])
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al actualizar constancia")

    if saved_file_info and url_anterior:
        await delete_uploaded_file(relative_path_from_url(url_anterior))
    return constancia


@router.delete("/{constancia_id}", response_model=Msg, summary="Eliminar constancia")
async def delete_constancia(
    *,
    request: Request,
    constancia_id: PyUUID,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_CONSTANCIAS, AccionPermisoEnum.DELETE)),
) -> Any:
    """No se eliminan constancias aprobadas. El archivo asociado se borra del disco."""
    try:
        constancia = constancia_service.remove(db, id=constancia_id)
        url_archivo = constancia.url_archivo
        audit_log_service.record(
            db, accion="constancia.deleted", entidad="constancia", entidad_id=constancia_id,
            usuario_id=current_user.id, cambios={"numero_constancia": constancia.numero_constancia},
            request=request,
        )
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado eliminando constancia {constancia_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al eliminar constancia")

    if url_archivo:
        await delete_uploaded_file(relative_path_from_url(url_archivo))
    return Msg(msg="Constancia eliminada exitosamente")


@router.post("/{constancia_id}/approve", response_model=Constancia, summary="Aprobar constancia")
def approve_constancia(
    *,
    request: Request,
    constancia_id: PyUUID,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_CONSTANCIAS, AccionPermisoEnum.UPDATE)),
) -> Any:
    constancia = constancia_service.get_or_404(db, id=constancia_id)
    try:
        documento_workflow.approve(db, documento=constancia, actor_id=current_user.id, request=request)
        db.commit()
        db.refresh(constancia)
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado aprobando constancia {constancia_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al aprobar constancia")
    logger.info(f"Constancia {constancia_id} aprobada por '{current_user.email}'.")
    return constancia


@router.post("/{constancia_id}/reject", response_model=Constancia, summary="Rechazar constancia")
def reject_constancia(
    *,
    request: Request,
    constancia_id: PyUUID,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_CONSTANCIAS, AccionPermisoEnum.UPDATE)),
) -> Any:
    constancia = constancia_service.get_or_404(db, id=constancia_id)
    try:
        documento_workflow.reject(db, documento=constancia, actor_id=current_user.id, request=request)
        db.commit()
        db.refresh(constancia)
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado rechazando constancia {constancia_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al rechazar constancia")
    logger.info(f"Constancia {constancia_id} rechazada por '{current_user.email}'.")
    return constancia
