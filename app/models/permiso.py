import uuid
from typing import TYPE_CHECKING, List, Optional
from datetime import datetime

from sqlalchemy import String, Text, DateTime, ForeignKey, JSON, Uuid, func
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base

if TYPE_CHECKING:
    from .modulo import Modulo, Submodulo


class Permiso(Base):
    """
    Modelo ORM para la tabla 'permisos'.
    `acciones` es el subconjunto de READ/CREATE/UPDATE/DELETE/EXPORT que el permiso admite.
    """
    __tablename__ = "permisos"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    nombre: Mapped[str] = mapped_column(String(100))
    codigo: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    descripcion: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    modulo_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("modulos.id"), nullable=True, index=True)
    submodulo_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("submodulos.id"), nullable=True, index=True)
    acciones: Mapped[List[str]] = mapped_column(JSON().with_variant(JSONB, "postgresql"), default=lambda: ["READ"])
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    modulo: Mapped[Optional["Modulo"]] = relationship("Modulo", back_populates="permisos", lazy="selectin")
    submodulo: Mapped[Optional["Submodulo"]] = relationship("Submodulo", back_populates="permisos", lazy="selectin")

    def __repr__(self) -> str:
        return f"<Permiso(id={self.id}, codigo='{self.codigo}')>"
