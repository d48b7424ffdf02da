import uuid
from pydantic import BaseModel, EmailStr, Field, ConfigDict, field_validator
from datetime import datetime
from typing import Optional, List

from app.core.password import validate_password_strength
from app.schemas.enums import RolUsuarioEnum


# ===============================================================
# Schemas para Usuario
# ===============================================================
class UsuarioBase(BaseModel):
    """Campos base que comparte un usuario."""
    email: EmailStr = Field(..., description="Correo electrónico del usuario (también es su login)")
    nombre: str = Field(..., min_length=2, max_length=150, description="Nombre completo")

    @field_validator("email")
    @classmethod
    def normalizar_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("nombre")
    @classmethod
    def nombre_no_vacio(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("El nombre debe tener al menos 2 caracteres")
        return v


class UsuarioRegister(UsuarioBase):
    """Auto-registro: la cuenta queda inactiva hasta verificar el correo."""
    password: str = Field(..., description="Contraseña (mín. 8, mayúscula, minúscula y número)")

    @field_validator("password")
    @classmethod
    def password_segura(cls, v: str) -> str:
        return validate_password_strength(v)


class UsuarioCreate(UsuarioRegister):
    """Alta realizada por un administrador: la cuenta nace activa y verificada."""
    rol: RolUsuarioEnum = Field(RolUsuarioEnum.USER, description="Rol del usuario")
    activo: bool = True
    permisos: List[uuid.UUID] = Field(default_factory=list, description="IDs de permisos a otorgar (acción READ)")


class UsuarioUpdate(BaseModel):
    """
    Schema para actualizar un usuario. Todos los campos son opcionales.
    Si se envía `permisos`, reemplaza por completo las asignaciones actuales.
    """
    email: Optional[EmailStr] = None
    nombre: Optional[str] = Field(None, min_length=2, max_length=150)
    rol: Optional[RolUsuarioEnum] = None
    activo: Optional[bool] = None
    bloqueado: Optional[bool] = None
    permisos: Optional[List[uuid.UUID]] = None

    @field_validator("email")
    @classmethod
    def normalizar_email(cls, v: Optional[str]) -> Optional[str]:
        return v.lower() if v else v


class Usuario(BaseModel):
    """Schema para devolver al cliente. Nunca expone hashes ni tokens."""
    id: uuid.UUID
    email: str
    nombre: str
    rol: str
    activo: bool
    bloqueado: bool
    email_verificado: Optional[datetime] = None
    ultimo_login: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


class UsuarioSimple(BaseModel):
    """Schema reducido para mostrar autores/aprobadores de documentos."""
    id: uuid.UUID
    nombre: str
    email: str

    model_config = ConfigDict(from_attributes=True)
