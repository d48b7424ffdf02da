import logging
from typing import Any, List
from uuid import UUID as PyUUID

from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.api import deps
from app.core.permissions import PERM_ROLES
from app.models.usuario import Usuario as UsuarioModel
from app.schemas.common import Msg
from app.schemas.enums import AccionPermisoEnum
from app.schemas.modulo import Modulo, ModuloCreate, ModuloUpdate, NavegacionModulo
from app.services.audit_log import audit_log_service
from app.services.modulo import modulo_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/navigation",
    response_model=List[NavegacionModulo],
    summary="Árbol de navegación del usuario actual",
    response_description="Módulos y submódulos visibles, ordenados por `orden` y nombre."
)
def read_navigation(
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    return modulo_service.get_user_modules(db, usuario=current_user)


@router.get("/", response_model=List[Modulo], summary="Listar módulos")
def read_modulos(
    db: Session = Depends(deps.get_db),
    solo_activos: bool = Query(False, description="Devolver solo los módulos activos"),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_ROLES)),
) -> Any:
    return modulo_service.get_multi_ordered(db, solo_activos=solo_activos)


@router.get("/{modulo_id}", response_model=Modulo, summary="Obtener un módulo por ID")
def read_modulo(
    modulo_id: PyUUID,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_ROLES)),
) -> Any:
    return modulo_service.get_or_404(db, id=modulo_id)


@router.post("/", response_model=Modulo, status_code=status.HTTP_201_CREATED, summary="Crear módulo")
def create_modulo(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    modulo_in: ModuloCreate,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.CREATE)),
) -> Any:
    """Con `orden` 0 el módulo se coloca al final."""
    try:
        modulo = modulo_service.create(db, obj_in=modulo_in)
        db.flush()
        audit_log_service.record(
            db, accion="module.created", entidad="modulo", entidad_id=modulo.id,
            usuario_id=current_user.id, cambios={"slug": modulo.slug, "nombre": modulo.nombre}, request=request,
        )
        db.commit()
        db.refresh(modulo)
        logger.info(f"Módulo '{modulo.slug}' creado por '{current_user.email}'.")
        return modulo
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Error de integridad al crear módulo '{modulo_in.slug}': {e}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El slug ya está en uso")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado creando módulo '{modulo_in.slug}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno al crear el módulo.")


@router.patch("/{modulo_id}", response_model=Modulo, summary="Actualizar módulo")
def update_modulo(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    modulo_id: PyUUID,
    modulo_in: ModuloUpdate,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.UPDATE)),
) -> Any:
    modulo = modulo_service.get_or_404(db, id=modulo_id)
    try:
        modulo = modulo_service.update(db, db_obj=modulo, obj_in=modulo_in)
        audit_log_service.record(
            db, accion="module.updated", entidad="modulo", entidad_id=modulo.id, usuario_id=current_user.id,
            cambios=modulo_in.model_dump(mode="json", exclude_unset=True), request=request,
        )
        db.commit()
        db.refresh(modulo)
        return modulo
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado actualizando módulo {modulo_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno al actualizar el módulo.")


@router.delete("/{modulo_id}", response_model=Msg, summary="Eliminar módulo")
def delete_modulo(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    modulo_id: PyUUID,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.DELETE)),
) -> Any:
    """Solo se eliminan módulos sin submódulos ni permisos asociados."""
    try:
        modulo = modulo_service.remove(db, id=modulo_id)
        audit_log_service.record(
            db, accion="module.deleted", entidad="modulo", entidad_id=modulo_id,
            usuario_id=current_user.id, cambios={"slug": modulo.slug}, request=request,
        )
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado eliminando módulo {modulo_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno al eliminar el módulo.")
    return Msg(msg="Módulo eliminado correctamente")
