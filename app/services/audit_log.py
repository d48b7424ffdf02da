import logging
from typing import Optional, List, Dict, Any
from uuid import UUID
from datetime import datetime, timedelta

from fastapi import Request
from sqlalchemy.orm import Session
from sqlalchemy import select

from app.models.audit_log import AuditLog as AuditLogModel

logger = logging.getLogger(__name__)


def request_metadata(request: Optional[Request]) -> Dict[str, Any]:
    """IP y user agent del cliente, para guardarlos como metadatos del evento."""
    if request is None:
        return {}
    forwarded = request.headers.get("x-forwarded-for")
    ip_address = forwarded.split(",")[0].strip() if forwarded else (request.client.host if request.client else None)
    return {"ip": ip_address, "user_agent": request.headers.get("user-agent")}


class AuditLogService:
    """
    Servicio para escribir y consultar el registro de auditoría.
    `record` NO realiza commit: el evento se confirma junto con la operación auditada.
    """
    model = AuditLogModel

    def record(
        self,
        db: Session,
        *,
        accion: str,
        entidad: str,
        entidad_id: Optional[Any] = None,
        usuario_id: Optional[UUID] = None,
        cambios: Optional[Dict[str, Any]] = None,
        request: Optional[Request] = None,
        metadatos: Optional[Dict[str, Any]] = None,
    ) -> AuditLogModel:
        meta = request_metadata(request)
        if metadatos:
            meta.update(metadatos)
        entry = self.model(
            usuario_id=usuario_id,
            accion=accion,
            entidad=entidad,
            entidad_id=str(entidad_id) if entidad_id is not None else None,
            cambios=cambios,
            metadatos=meta or None,
        )
        db.add(entry)
        logger.info(f"Auditoría: '{accion}' sobre {entidad} {entidad_id} por usuario {usuario_id}")
        return entry

    def get_multi(
        self,
        db: Session,
        *,
        skip: int = 0,
        limit: int = 100,
        usuario_id: Optional[UUID] = None,
        accion: Optional[str] = None,
        entidad: Optional[str] = None,
        entidad_id: Optional[str] = None,
        start_time: Optional[datetime] = None,
        end_time: Optional[datetime] = None
    ) -> List[AuditLogModel]:
        """
        Obtiene múltiples logs de auditoría con filtros opcionales, ordenados por fecha descendente.
        """
        logger.debug(
            f"Listando logs de auditoría con filtros: Usuario='{usuario_id}', Accion='{accion}', "
            f"Entidad='{entidad}', EntidadID='{entidad_id}', RangoTiempo='{start_time}-{end_time}' "
            f"(Skip: {skip}, Limit: {limit})"
        )
        statement = select(self.model)

        if usuario_id:
            statement = statement.where(self.model.usuario_id == usuario_id)
        if accion:
            statement = statement.where(self.model.accion.ilike(f"{accion}%"))
        if entidad:
            statement = statement.where(self.model.entidad == entidad)
        if entidad_id:
            statement = statement.where(self.model.entidad_id == entidad_id)
        if start_time:
            statement = statement.where(self.model.created_at >= start_time)
        if end_time:
            end_date_inclusive = end_time
            if end_time.hour == 0 and end_time.minute == 0 and end_time.second == 0:
                # Si solo se pasa la fecha, incluir todo el día
                end_date_inclusive = end_time + timedelta(days=1, microseconds=-1)
            statement = statement.where(self.model.created_at <= end_date_inclusive)

        statement = statement.order_by(self.model.created_at.desc()).offset(skip).limit(limit)
        return list(db.execute(statement).scalars().all())

audit_log_service = AuditLogService()
