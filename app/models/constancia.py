import uuid
from typing import TYPE_CHECKING, Optional
from datetime import datetime

from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, Uuid, func
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base
from app.schemas.enums import EstadoDocumentoEnum

if TYPE_CHECKING:
    from .usuario import Usuario


class Constancia(Base):
    """
    Modelo ORM para la tabla 'constancias'.
    """
    __tablename__ = "constancias"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    dni: Mapped[str] = mapped_column(String(8), index=True)
    codigo_estudiante: Mapped[str] = mapped_column(String(20), index=True)
    nombre_completo: Mapped[str] = mapped_column(String(255))
    numero_constancia: Mapped[str] = mapped_column(String(50), unique=True, index=True)
    anio: Mapped[int] = mapped_column(Integer, index=True)
    observacion: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    tipo: Mapped[str] = mapped_column(String(30), default="CONSTANCIA")
    estado: Mapped[str] = mapped_column(String(20), default=EstadoDocumentoEnum.PENDIENTE.value, index=True)

    nombre_archivo: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    url_archivo: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    tamano_archivo: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    creado_por_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("usuarios.id"), index=True)
    aprobado_por_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("usuarios.id"), nullable=True)
    aprobado_en: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    creado_por: Mapped["Usuario"] = relationship("Usuario", foreign_keys=[creado_por_id], lazy="selectin")
    aprobado_por: Mapped[Optional["Usuario"]] = relationship("Usuario", foreign_keys=[aprobado_por_id], lazy="selectin")

    def __repr__(self) -> str:
        return f"<Constancia(id={self.id}, numero='{self.numero_constancia}', estado='{self.estado}')>"
