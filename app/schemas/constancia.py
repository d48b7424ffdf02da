import uuid
from typing import Optional
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict

from app.schemas.usuario import UsuarioSimple


# ===============================================================
# Schema Base
# ===============================================================
class ConstanciaBase(BaseModel):
    dni: str = Field(..., min_length=1, max_length=8, description="DNI del estudiante")
    codigo_estudiante: str = Field(..., min_length=1, max_length=20)
    nombre_completo: str = Field(..., min_length=1, max_length=255)
    numero_constancia: str = Field(..., min_length=1, max_length=50)
    anio: int = Field(..., ge=1900, le=2100)
    observacion: Optional[str] = None


class ConstanciaCreate(ConstanciaBase):
    pass


class ConstanciaUpdate(BaseModel):
    """Actualización parcial. El estado solo cambia por aprobar/rechazar."""
    dni: Optional[str] = Field(None, min_length=1, max_length=8)
    codigo_estudiante: Optional[str] = Field(None, min_length=1, max_length=20)
    nombre_completo: Optional[str] = Field(None, min_length=1, max_length=255)
    numero_constancia: Optional[str] = Field(None, min_length=1, max_length=50)
    anio: Optional[int] = Field(None, ge=1900, le=2100)
    observacion: Optional[str] = None


# ===============================================================
# Schema para Respuesta API
# ===============================================================
class Constancia(ConstanciaBase):
    id: uuid.UUID
    tipo: str
    estado: str
    nombre_archivo: Optional[str] = None
    url_archivo: Optional[str] = None
    tamano_archivo: Optional[int] = None
    mime_type: Optional[str] = None
    creado_por_id: uuid.UUID
    aprobado_por_id: Optional[uuid.UUID] = None
    aprobado_en: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    creado_por: Optional[UsuarioSimple] = None
    aprobado_por: Optional[UsuarioSimple] = None

    model_config = ConfigDict(from_attributes=True)
