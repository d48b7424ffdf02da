import logging
from typing import Any
from uuid import UUID as PyUUID

from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session

from app.api import deps
from app.core.permissions import PERM_ROLES
from app.models.usuario import Usuario as UsuarioModel
from app.schemas.common import Msg
from app.schemas.enums import AccionPermisoEnum
from app.schemas.modulo import Submodulo, SubmoduloCreate, SubmoduloUpdate
from app.services.audit_log import audit_log_service
from app.services.modulo import submodulo_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=Submodulo, status_code=status.HTTP_201_CREATED, summary="Crear submódulo")
def create_submodulo(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    submodulo_in: SubmoduloCreate,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.CREATE)),
) -> Any:
    try:
        submodulo = submodulo_service.create(db, obj_in=submodulo_in)
        db.flush()
        audit_log_service.record(
            db, accion="submodule.created", entidad="submodulo", entidad_id=submodulo.id,
            usuario_id=current_user.id,
            cambios={"slug": submodulo.slug, "modulo_id": str(submodulo.modulo_id)}, request=request,
        )
        db.commit()
        db.refresh(submodulo)
        return submodulo
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado creando submódulo '{submodulo_in.slug}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno al crear el submódulo.")


@router.patch("/{submodulo_id}", response_model=Submodulo, summary="Actualizar submódulo")
def update_submodulo(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    submodulo_id: PyUUID,
    submodulo_in: SubmoduloUpdate,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.UPDATE)),
) -> Any:
    submodulo = submodulo_service.get_or_404(db, id=submodulo_id)
    try:
        submodulo = submodulo_service.update(db, db_obj=submodulo, obj_in=submodulo_in)
        audit_log_service.record(
            db, accion="submodule.updated", entidad="submodulo", entidad_id=submodulo.id,
            usuario_id=current_user.id, cambios=submodulo_in.model_dump(mode="json", exclude_unset=True),
            request=request,
        )
        db.commit()
        db.refresh(submodulo)
        return submodulo
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado actualizando submódulo {submodulo_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno al actualizar el submódulo.")


@router.delete("/{submodulo_id}", response_model=Msg, summary="Eliminar submódulo")
def delete_submodulo(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    submodulo_id: PyUUID,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.DELETE)),
) -> Any:
    try:
        submodulo = submodulo_service.remove(db, id=submodulo_id)
        audit_log_service.record(
            db, accion="submodule.deleted", entidad="submodulo", entidad_id=submodulo_id,
            usuario_id=current_user.id, cambios={"slug": submodulo.slug}, request=request,
        )
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado eliminando submódulo {submodulo_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno al eliminar el submódulo.")
    return Msg(msg="Submódulo eliminado correctamente")
