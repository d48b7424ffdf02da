import logging
from typing import Any, List, Optional
from uuid import UUID as PyUUID
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session

from app.api import deps
from app.core.permissions import PERM_USERS
from app.schemas.audit_log import AuditLog as AuditLogSchema
from app.services.audit_log import audit_log_service
from app.models.usuario import Usuario as UsuarioModel

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/",
            response_model=List[AuditLogSchema],
            summary="Consultar Logs de Auditoría",
            response_description="Una lista de registros de auditoría, filtrada opcionalmente.")
def read_audit_logs(
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.PermissionChecker(PERM_USERS)),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
    usuario_id: Optional[PyUUID] = Query(None, description="Filtrar por el usuario que realizó la acción"),
    accion: Optional[str] = Query(None, description="Prefijo de la acción, p. ej. 'permissions.' o 'auth.login'"),
    entidad: Optional[str] = Query(None, description="Tipo de entidad afectada"),
    entidad_id: Optional[str] = Query(None, description="ID de la entidad afectada"),
    start_time: Optional[datetime] = Query(None, description="Fecha/hora mínima del registro (formato ISO)"),
    end_time: Optional[datetime] = Query(None, description="Fecha/hora máxima del registro (formato ISO)"),
) -> Any:
    """
    Obtiene una lista de registros del log de auditoría, permitiendo aplicar filtros.
    Requiere el permiso: `users.access`.
    """
    logger.info(
        f"Usuario '{current_user.email}' consultando logs de auditoría con filtros: "
        f"Usuario='{usuario_id}', Accion='{accion}', Entidad='{entidad}', EntidadID='{entidad_id}', "
        f"Rango='{start_time}-{end_time}', Skip={skip}, Limit={limit}"
    )

    if start_time and end_time and end_time <= start_time:
        logger.warning("Consulta de auditoría rechazada: fecha_fin debe ser posterior a fecha_inicio.")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="La fecha de fin debe ser posterior a la fecha de inicio para el filtro.")

    logs = audit_log_service.get_multi(
        db,
        skip=skip,
        limit=limit,
        usuario_id=usuario_id,
        accion=accion,
        entidad=entidad,
        entidad_id=entidad_id,
        start_time=start_time,
        end_time=end_time,
    )
    logger.info(f"Consulta de auditoría devolvió {len(logs)} registro(s).")
    return logs
