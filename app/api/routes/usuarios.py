import logging
from typing import Any, List
from uuid import UUID as PyUUID

from fastapi import APIRouter, Depends, HTTPException, status, Query, Request
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError

from app.api import deps
from app.core.permissions import PERM_USERS
from app.models.usuario import Usuario as UsuarioModel
from app.schemas.common import Msg
from app.schemas.enums import AccionPermisoEnum, ModoAsignacionEnum
from app.schemas.password import AdminPasswordReset
from app.schemas.usuario import Usuario, UsuarioCreate, UsuarioUpdate
from app.services.audit_log import audit_log_service
from app.services.permiso import permiso_service
from app.services.usuario import usuario_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/",
    response_model=List[Usuario],
    summary="Listar todos los Usuarios",
    response_description="Una lista de usuarios, del más reciente al más antiguo."
)
def read_usuarios(
    db: Session = Depends(deps.get_db),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=200),
    current_user: UsuarioModel = Depends(deps.get_current_active_user),
) -> Any:
    if not deps.user_can(db, current_user, PERM_USERS):
        logger.warning(f"Usuario '{current_user.email}' intentó listar usuarios sin permiso.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Sin permisos para ver usuarios")
    return usuario_service.get_multi_ordered(db, skip=skip, limit=limit)


@router.post(
    "/",
    response_model=Usuario,
    status_code=status.HTTP_201_CREATED,
    summary="Crear un nuevo Usuario",
    response_description="El usuario creado."
)
def create_usuario(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    user_in: UsuarioCreate,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_USERS, AccionPermisoEnum.CREATE)),
) -> Any:
    """
    Crea un usuario activo y verificado. Los `permisos` indicados se otorgan con acción READ.
    """
    logger.info(f"Intento de creación de usuario '{user_in.email}' por '{current_user.email}'")
    try:
        user = usuario_service.create(db=db, obj_in=user_in)
        db.flush()
        if user_in.permisos:
            permiso_service.assign(
                db, usuario_ids=[user.id], permiso_ids=user_in.permisos,
                modo=ModoAsignacionEnum.SET, otorgado_por=current_user.id,
            )
        audit_log_service.record(
            db, accion="users.created", entidad="usuario", entidad_id=user.id, usuario_id=current_user.id,
            cambios={"email": user.email, "rol": user.rol, "permisos": [str(p) for p in user_in.permisos]},
            request=request,
        )
        db.commit()
        db.refresh(user)
        logger.info(f"Usuario '{user.email}' (ID: {user.id}) creado exitosamente por '{current_user.email}'.")
        return user
    except HTTPException as http_exc:
        db.rollback()
        logger.warning(f"Error HTTP al crear usuario '{user_in.email}': {http_exc.detail}")
        raise http_exc
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Error de integridad al crear usuario '{user_in.email}': {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Ya existe un usuario con ese correo electrónico.")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado creando usuario '{user_in.email}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al crear el usuario.")


@router.get(
    "/{usuario_id}",
    response_model=Usuario,
    summary="Obtener un Usuario por ID",
)
def read_usuario_by_id(
    usuario_id: PyUUID,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_USERS)),
) -> Any:
    return usuario_service.get_or_404(db, id=usuario_id)


@router.patch(
    "/{usuario_id}",
    response_model=Usuario,
    summary="Actualizar un Usuario",
)
def update_usuario(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    usuario_id: PyUUID,
    user_in: UsuarioUpdate,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_USERS, AccionPermisoEnum.UPDATE)),
) -> Any:
    """
    Actualiza datos, rol o estado. Si se envía `permisos`, reemplaza las asignaciones del usuario.
    """
    user = usuario_service.get_or_404(db, id=usuario_id)
    try:
        user = usuario_service.update(db=db, db_obj=user, obj_in=user_in)
        if user_in.permisos is not None:
            permiso_service.assign(
                db, usuario_ids=[user.id], permiso_ids=user_in.permisos,
                modo=ModoAsignacionEnum.SET, otorgado_por=current_user.id,
            )
        audit_log_service.record(
            db, accion="users.updated", entidad="usuario", entidad_id=user.id, usuario_id=current_user.id,
            cambios=user_in.model_dump(mode="json", exclude_unset=True), request=request,
        )
        db.commit()
        db.refresh(user)
        return user
    except HTTPException as http_exc:
        db.rollback()
        logger.warning(f"Error HTTP al actualizar usuario {usuario_id}: {http_exc.detail}")
        raise http_exc
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Error de integridad al actualizar usuario {usuario_id}: {e}")
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="El email ya está en uso")
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado actualizando usuario {usuario_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al actualizar el usuario.")


@router.delete(
    "/{usuario_id}",
    response_model=Msg,
    summary="Eliminar un Usuario",
)
def delete_usuario(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    usuario_id: PyUUID,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_USERS, AccionPermisoEnum.DELETE)),
) -> Any:
    """No se puede eliminar el propio usuario ni el último SUPER_ADMIN."""
    try:
        user = usuario_service.remove_checked(db, actor=current_user, user_id=usuario_id)
        audit_log_service.record(
            db, accion="users.deleted", entidad="usuario", entidad_id=usuario_id, usuario_id=current_user.id,
            cambios={"email": user.email}, request=request,
        )
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"No se pudo eliminar el usuario {usuario_id} por registros asociados: {e}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="No se puede eliminar el usuario porque tiene documentos asociados",
        )
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado eliminando usuario {usuario_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor al eliminar el usuario.")
    return Msg(msg="Usuario eliminado correctamente")


@router.post(
    "/{usuario_id}/toggle-status",
    response_model=Usuario,
    summary="Activar o desactivar un Usuario",
)
def toggle_usuario_status(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    usuario_id: PyUUID,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_USERS, AccionPermisoEnum.UPDATE)),
) -> Any:
    try:
        user = usuario_service.toggle_status(db, actor=current_user, user_id=usuario_id)
        audit_log_service.record(
            db, accion="users.activated" if user.activo else "users.deactivated", entidad="usuario",
            entidad_id=user.id, usuario_id=current_user.id, request=request,
        )
        db.commit()
        db.refresh(user)
        return user
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error inesperado cambiando estado del usuario {usuario_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor.")


@router.post(
    "/{usuario_id}/reset-password",
    response_model=Msg,
    summary="[Admin] Fijar una nueva contraseña para un Usuario",
)
def admin_reset_password(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    usuario_id: PyUUID,
    data: AdminPasswordReset,
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_USERS, AccionPermisoEnum.UPDATE)),
) -> Any:
    user = usuario_service.get_or_404(db, id=usuario_id)
    try:
        usuario_service.set_password(db, user=user, new_password=data.new_password)
        audit_log_service.record(
            db, accion="password.reset.admin", entidad="usuario", entidad_id=user.id,
            usuario_id=current_user.id, request=request,
        )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error al fijar la contraseña del usuario {usuario_id}: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al cambiar la contraseña")
    return Msg(msg="Contraseña actualizada exitosamente")
