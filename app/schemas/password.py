import uuid
from typing import Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from app.core.config import settings
from app.core.password import validate_password_strength


class ForgotPasswordRequest(BaseModel):
    email: EmailStr = Field(..., description="Correo institucional de la cuenta")

    @field_validator("email")
    @classmethod
    def correo_institucional(cls, v: str) -> str:
        v = v.lower()
        if not v.endswith(f"@{settings.INSTITUTIONAL_EMAIL_DOMAIN}"):
            raise ValueError(f"Debe ser un correo institucional @{settings.INSTITUTIONAL_EMAIL_DOMAIN}")
        return v


class ResetPasswordRequest(BaseModel):
    """Confirmación del reseteo con el token recibido por correo."""
    token: str = Field(..., min_length=1)
    password: str

    @field_validator("password")
    @classmethod
    def password_segura(cls, v: str) -> str:
        return validate_password_strength(v)


class ChangePasswordRequest(BaseModel):
    """
    Cambio de contraseña. Sin `usuario_id` se cambia la propia; con él, solo
    ADMIN o SUPER_ADMIN pueden cambiar la de otro usuario.
    """
    usuario_id: Optional[uuid.UUID] = None
    current_password: str = Field(..., min_length=1, description="Contraseña actual")
    new_password: str = Field(..., description="Nueva contraseña")

    @field_validator("new_password")
    @classmethod
    def password_segura(cls, v: str) -> str:
        return validate_password_strength(v)


class AdminPasswordReset(BaseModel):
    """Contraseña fijada por un administrador para otro usuario."""
    new_password: str

    @field_validator("new_password")
    @classmethod
    def password_segura(cls, v: str) -> str:
        return validate_password_strength(v)


class VerifyEmailRequest(BaseModel):
    token: str = Field(..., min_length=1)
