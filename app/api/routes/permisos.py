import logging
from typing import List, Any
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status, Request
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.api import deps
from app.core.permissions import PERM_ROLES
from app.models.usuario import Usuario as UsuarioModel
from app.schemas.common import Msg
from app.schemas.enums import AccionPermisoEnum, ModoAsignacionEnum
from app.schemas.permiso import (
    Permiso, PermisoCreate, PermisoUpdate, PermisosUsuarioResponse,
    PermissionCheckRequest, PermissionCheckResponse,
    PermisoAssignRequest, PermisoAssignResponse,
    PermisoBulkUpdateRequest, PermisoBulkUpdateResponse, PermisosPorRolResponse,
)
from app.services.audit_log import audit_log_service
from app.services.permiso import permiso_service
from app.services.usuario import usuario_service

logger = logging.getLogger(__name__)
router = APIRouter()

ASSIGN_MESSAGES = {
    ModoAsignacionEnum.ADD: "Permisos agregados correctamente",
    ModoAsignacionEnum.REMOVE: "Permisos eliminados correctamente",
    ModoAsignacionEnum.SET: "Permisos actualizados correctamente",
}


@router.get("/", response_model=List[Permiso], summary="Catálogo de permisos")
def read_permisos(
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_ROLES)),
) -> Any:
    return permiso_service.get_all_ordered(db)


@router.post("/", response_model=Permiso, status_code=status.HTTP_201_CREATED, summary="Crear permiso")
def create_permiso(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    permiso_in: PermisoCreate,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.CREATE)),
) -> Any:
    try:
        permiso = permiso_service.create(db, obj_in=permiso_in)
        db.flush()
        audit_log_service.record(
            db, accion="permissions.created", entidad="permiso", entidad_id=permiso.id,
            usuario_id=current_user.id, cambios={"codigo": permiso.codigo}, request=request,
        )
        db.commit()
        db.refresh(permiso)
        return permiso
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Ya existe un permiso con ese código")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado creando permiso '{permiso_in.codigo}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno al crear el permiso.")


@router.post("/check", response_model=PermissionCheckResponse, summary="Verifica un permiso del usuario actual")
def check_permission(
    *,
    db: Session = Depends(deps.get_db),
    data: PermissionCheckRequest,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    return PermissionCheckResponse(
        has_permission=deps.user_can(db, current_user, data.permission_code, data.action)
    )


@router.get("/user", response_model=PermisosUsuarioResponse, summary="Asignaciones activas del usuario actual")
def read_my_permissions(
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    return PermisosUsuarioResponse(permisos=permiso_service.get_user_permissions(db, usuario_id=current_user.id))


@router.get("/by-role", response_model=PermisosPorRolResponse, summary="Permisos agrupados por rol")
def read_permissions_by_role(
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_ROLES)),
) -> Any:
    return permiso_service.get_permissions_by_role(db)


@router.post("/assign", response_model=PermisoAssignResponse, summary="Agregar, quitar o reemplazar asignaciones")
def assign_permissions(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    data: PermisoAssignRequest,
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    """
    Destino: un usuario (`usuario_id`) o todos los usuarios de un rol (`rol`).
    `accion`: add agrega los que falten, remove quita los indicados, set deja exactamente los indicados.
    """
    if not deps.user_can(db, current_user, PERM_ROLES, AccionPermisoEnum.UPDATE):
        logger.warning(f"Usuario '{current_user.email}' intentó asignar permisos sin autorización.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Sin permisos para asignar permisos")

    try:
        if data.usuario_id is not None:
            usuario_ids = [usuario_service.get_or_404(db, id=data.usuario_id).id]
        else:
            usuario_ids = permiso_service.user_ids_for_role(db, rol=data.rol)

        afectados = permiso_service.assign(
            db,
            usuario_ids=usuario_ids,
            permiso_ids=data.permisos,
            modo=data.accion,
            otorgado_por=current_user.id,
            acciones=data.acciones,
            expira_en=data.expira_en,
        )
        for usuario_id in usuario_ids:
            audit_log_service.record(
                db,
                accion=f"permissions.{data.accion.value}",
                entidad="usuario",
                entidad_id=usuario_id,
                usuario_id=current_user.id,
                cambios={
                    "permisos": [str(p) for p in data.permisos],
                    "acciones": [a.value for a in data.acciones] if data.acciones else ["READ"],
                    "rol": data.rol.value if data.rol else None,
                },
                request=request,
            )
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Conflicto asignando permisos: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="El usuario ya tiene asignado ese permiso")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado asignando permisos: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al asignar permisos")

    return PermisoAssignResponse(msg=ASSIGN_MESSAGES[data.accion], usuarios_afectados=afectados)


@router.post("/bulk-update", response_model=PermisoBulkUpdateResponse, summary="Acciones por rol en lote")
def bulk_update_permissions(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    data: PermisoBulkUpdateRequest,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.UPDATE)),
) -> Any:
    try:
        aplicados = permiso_service.bulk_update(db, cambios=data.cambios, otorgado_por=current_user.id)
        audit_log_service.record(
            db,
            accion="permissions.bulk_update",
            entidad="permiso",
            usuario_id=current_user.id,
            cambios={"cambios": [c.model_dump(mode="json") for c in data.cambios]},
            request=request,
        )
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado en actualización masiva de permisos: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al actualizar permisos")
    return PermisoBulkUpdateResponse(msg="Permisos actualizados correctamente", cambios_aplicados=aplicados)


@router.patch("/{permiso_id}", response_model=Permiso, summary="Actualizar permiso")
def update_permiso(
    *,
    db: Session = Depends(deps.get_db),
    permiso_id: UUID,
    permiso_in: PermisoUpdate,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.UPDATE)),
) -> Any:
    permiso = permiso_service.get_or_404(db, id=permiso_id)
    try:
        permiso = permiso_service.update(db, db_obj=permiso, obj_in=permiso_in)
        db.commit()
        db.refresh(permiso)
        return permiso
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado actualizando permiso {permiso_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno al actualizar el permiso.")


@router.delete("/{permiso_id}", response_model=Msg, summary="Eliminar permiso")
def delete_permiso(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    permiso_id: UUID,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_ROLES, AccionPermisoEnum.DELETE)),
) -> Any:
    """Elimina el permiso del catálogo junto con todas sus asignaciones."""
    try:
        permiso = permiso_service.remove(db, id=permiso_id)
        audit_log_service.record(
            db, accion="permissions.deleted", entidad="permiso", entidad_id=permiso_id,
            usuario_id=current_user.id, cambios={"codigo": permiso.codigo}, request=request,
        )
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado eliminando permiso {permiso_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno al eliminar el permiso.")
    return Msg(msg="Permiso eliminado correctamente")
