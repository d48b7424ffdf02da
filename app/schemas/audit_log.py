import uuid
from typing import Optional, Dict, Any
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict


class AuditLogCreate(BaseModel):
    """Datos de un evento de auditoría escrito por la aplicación."""
    usuario_id: Optional[uuid.UUID] = None
    accion: str = Field(..., description="Etiqueta de la acción, p. ej. 'permissions.add'")
    entidad: str = Field(..., description="Tipo de entidad afectada")
    entidad_id: Optional[str] = None
    cambios: Optional[Dict[str, Any]] = None
    metadatos: Optional[Dict[str, Any]] = Field(None, description="ip, user agent, etc.")


class AuditLog(AuditLogCreate):
    """Schema para devolver al cliente."""
    id: uuid.UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
