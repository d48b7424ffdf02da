import uuid
from typing import Optional, Dict, Any
from datetime import datetime

from sqlalchemy import String, DateTime, ForeignKey, JSON, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.dialects.postgresql import JSONB

from app.db.base import Base


class AuditLog(Base):
    """
    Modelo ORM para la tabla 'audit_log'. Las filas se escriben desde la aplicación
    (`app.services.audit_log.audit_log_service.record`) y nunca se modifican.
    """
    __tablename__ = "audit_log"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    usuario_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("usuarios.id", ondelete="SET NULL"), nullable=True, index=True
    )
    accion: Mapped[str] = mapped_column(String(100), index=True)  # p. ej. 'resolucion.approved'
    entidad: Mapped[str] = mapped_column(String(50), index=True)
    entidad_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    cambios: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    metadatos: Mapped[Optional[Dict[str, Any]]] = mapped_column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), index=True)

    def __repr__(self) -> str:
        return f"<AuditLog(accion='{self.accion}', entidad='{self.entidad}', ts='{self.created_at}')>"
