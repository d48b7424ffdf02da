import datetime
import uuid
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime, Integer, Boolean, String, Uuid
from sqlalchemy.orm import relationship, Mapped, mapped_column
from sqlalchemy.sql import func

from app.db.base import Base
from app.schemas.enums import RolUsuarioEnum

if TYPE_CHECKING:
    from .usuario_permiso import UsuarioPermiso


class Usuario(Base):
    """
    Modelo ORM para la tabla 'usuarios'.
    El rol es grueso: la autorización fina se resuelve con `usuarios_permisos`.
    """
    __tablename__ = "usuarios"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    nombre: Mapped[str] = mapped_column(String(150))
    hashed_password: Mapped[str] = mapped_column("contrasena", String)
    rol: Mapped[str] = mapped_column(String(20), default=RolUsuarioEnum.USER.value, index=True)
    activo: Mapped[bool] = mapped_column(Boolean, default=False)
    email_verificado: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    token_verificacion: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    token_reseteo: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    token_reseteo_expiracion: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    intentos_fallidos: Mapped[int] = mapped_column(Integer, default=0)
    bloqueado: Mapped[bool] = mapped_column(Boolean, default=False)
    ultimo_login: Mapped[Optional[datetime.datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime.datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    permisos_otorgados: Mapped[List["UsuarioPermiso"]] = relationship(
        "UsuarioPermiso",
        foreign_keys="UsuarioPermiso.usuario_id",
        back_populates="usuario",
        cascade="all, delete-orphan",
        lazy="selectin"
    )

    def __repr__(self) -> str:
        return f"<Usuario(id={self.id}, email='{self.email}', rol='{self.rol}')>"
