import uuid
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional
from datetime import datetime, date

from sqlalchemy import (
    String, Text, Integer, Boolean, Date, DateTime, Numeric, ForeignKey, Uuid, func
)
from sqlalchemy.orm import relationship, Mapped, mapped_column

from app.db.base import Base
from app.schemas.enums import EstadoDocumentoEnum, TipoArchivoResolucionEnum

if TYPE_CHECKING:
    from .usuario import Usuario
    from .catalogo import Facultad, Departamento


class Resolucion(Base):
    """
    Modelo ORM para la tabla 'resoluciones'.
    Estudiantes, docentes y archivos cuelgan de la resolución y se borran con ella.
    """
    __tablename__ = "resoluciones"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    tipo_resolucion: Mapped[str] = mapped_column(String(50))
    numero_resolucion: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    fecha_resolucion: Mapped[date] = mapped_column(Date)
    modalidad: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    es_financiado: Mapped[bool] = mapped_column(Boolean, default=False)
    tipo_financiamiento: Mapped[Optional[str]] = mapped_column(String(30), nullable=True)
    monto: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2), nullable=True)
    dni_asesor: Mapped[Optional[str]] = mapped_column(String(8), nullable=True, index=True)
    nombre_asesor: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    titulo_proyecto: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    facultad_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("facultades.id"), nullable=True)
    departamento_id: Mapped[Optional[int]] = mapped_column(Integer, ForeignKey("departamentos.id"), nullable=True)
    estado: Mapped[str] = mapped_column(String(20), default=EstadoDocumentoEnum.PENDIENTE.value, index=True)

    creado_por_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("usuarios.id"), index=True)
    aprobado_por_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("usuarios.id"), nullable=True)
    aprobado_en: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    facultad: Mapped[Optional["Facultad"]] = relationship("Facultad", lazy="selectin")
    departamento: Mapped[Optional["Departamento"]] = relationship("Departamento", lazy="selectin")
    creado_por: Mapped["Usuario"] = relationship("Usuario", foreign_keys=[creado_por_id], lazy="selectin")
    aprobado_por: Mapped[Optional["Usuario"]] = relationship("Usuario", foreign_keys=[aprobado_por_id], lazy="selectin")

    estudiantes: Mapped[List["ResolucionEstudiante"]] = relationship(
        "ResolucionEstudiante", back_populates="resolucion", cascade="all, delete-orphan", lazy="selectin"
    )
    docentes: Mapped[List["ResolucionDocente"]] = relationship(
        "ResolucionDocente", back_populates="resolucion", cascade="all, delete-orphan", lazy="selectin"
    )
    archivos: Mapped[List["ResolucionArchivo"]] = relationship(
        "ResolucionArchivo", back_populates="resolucion", cascade="all, delete-orphan", lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Resolucion(id={self.id}, numero='{self.numero_resolucion}', estado='{self.estado}')>"


class ResolucionEstudiante(Base):
    __tablename__ = "resoluciones_estudiantes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    resolucion_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("resoluciones.id", ondelete="CASCADE"), index=True)
    dni: Mapped[str] = mapped_column(String(8), index=True)
    codigo: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    nombres: Mapped[str] = mapped_column(String(150))
    apellidos: Mapped[str] = mapped_column(String(150))

    resolucion: Mapped["Resolucion"] = relationship("Resolucion", back_populates="estudiantes")


class ResolucionDocente(Base):
    __tablename__ = "resoluciones_docentes"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    resolucion_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("resoluciones.id", ondelete="CASCADE"), index=True)
    dni: Mapped[str] = mapped_column(String(8), index=True)
    nombres: Mapped[str] = mapped_column(String(150))
    apellidos: Mapped[str] = mapped_column(String(150))
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    facultad: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)

    resolucion: Mapped["Resolucion"] = relationship("Resolucion", back_populates="docentes")


class ResolucionArchivo(Base):
    """Archivo adjunto de una resolución: el documento principal (pdf) o un anexo."""
    __tablename__ = "resoluciones_archivos"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    resolucion_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("resoluciones.id", ondelete="CASCADE"), index=True)
    nombre_archivo: Mapped[str] = mapped_column(String(255))
    url_archivo: Mapped[str] = mapped_column(String(500))
    tamano_archivo: Mapped[int] = mapped_column(Integer)
    mime_type: Mapped[str] = mapped_column(String(100))
    tipo: Mapped[str] = mapped_column(String(20), default=TipoArchivoResolucionEnum.ANEXO.value)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    resolucion: Mapped["Resolucion"] = relationship("Resolucion", back_populates="archivos")
