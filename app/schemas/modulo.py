import uuid
from typing import Optional, List
from datetime import datetime

from pydantic import BaseModel, Field, ConfigDict

from app.schemas.enums import TipoModuloEnum

SLUG_PATTERN = r"^[a-z0-9-]+$"


# ===============================================================
# Submódulos
# ===============================================================
class SubmoduloBase(BaseModel):
    nombre: str = Field(..., min_length=2, max_length=100)
    slug: str = Field(..., min_length=1, max_length=100, pattern=SLUG_PATTERN,
                      description="Solo minúsculas, números y guiones")
    descripcion: Optional[str] = None
    icono: Optional[str] = Field(None, max_length=50)
    activo: bool = True
    orden: int = Field(0, ge=0, description="0 = asignar el siguiente orden disponible")


class SubmoduloCreate(SubmoduloBase):
    modulo_id: uuid.UUID


class SubmoduloUpdate(BaseModel):
    nombre: Optional[str] = Field(None, min_length=2, max_length=100)
    slug: Optional[str] = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    descripcion: Optional[str] = None
    icono: Optional[str] = Field(None, max_length=50)
    activo: Optional[bool] = None
    orden: Optional[int] = Field(None, ge=0)


class Submodulo(SubmoduloBase):
    id: uuid.UUID
    modulo_id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ===============================================================
# Módulos
# ===============================================================
class ModuloBase(BaseModel):
    nombre: str = Field(..., min_length=2, max_length=100)
    slug: str = Field(..., min_length=1, max_length=100, pattern=SLUG_PATTERN,
                      description="Solo minúsculas, números y guiones")
    descripcion: Optional[str] = None
    icono: Optional[str] = Field(None, max_length=50)
    tipo: TipoModuloEnum = TipoModuloEnum.FEATURE
    activo: bool = True
    orden: int = Field(0, ge=0, description="0 = asignar el siguiente orden disponible")


class ModuloCreate(ModuloBase):
    pass


class ModuloUpdate(BaseModel):
    nombre: Optional[str] = Field(None, min_length=2, max_length=100)
    slug: Optional[str] = Field(None, min_length=1, max_length=100, pattern=SLUG_PATTERN)
    descripcion: Optional[str] = None
    icono: Optional[str] = Field(None, max_length=50)
    tipo: Optional[TipoModuloEnum] = None
    activo: Optional[bool] = None
    orden: Optional[int] = Field(None, ge=0)


class Modulo(ModuloBase):
    id: uuid.UUID
    tipo: str
    created_at: datetime
    updated_at: datetime
    submodulos: List[Submodulo] = []

    model_config = ConfigDict(from_attributes=True)


# ===============================================================
# Árbol de navegación
# ===============================================================
class NavegacionSubmodulo(BaseModel):
    id: uuid.UUID
    nombre: str
    slug: str
    icono: str
    orden: int
    url: str


class NavegacionModulo(BaseModel):
    """Módulo visible para el usuario con sus submódulos visibles."""
    id: uuid.UUID
    nombre: str
    slug: str
    descripcion: Optional[str] = None
    icono: str
    tipo: str
    orden: int
    url: str
    submodulos: List[NavegacionSubmodulo] = []
