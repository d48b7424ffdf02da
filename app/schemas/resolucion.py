import uuid
from decimal import Decimal
from typing import Optional, List
from datetime import date, datetime

from pydantic import BaseModel, Field, ConfigDict, model_validator

from app.schemas.catalogo import Facultad, Departamento
from app.schemas.usuario import UsuarioSimple


# ===============================================================
# Participantes
# ===============================================================
class ResolucionEstudianteIn(BaseModel):
    dni: str = Field(..., min_length=1, max_length=8)
    codigo: Optional[str] = Field(None, max_length=20)
    nombres: str = Field(..., min_length=1)
    apellidos: str = Field(..., min_length=1)


class ResolucionDocenteIn(BaseModel):
    dni: str = Field(..., min_length=1, max_length=8)
    nombres: str = Field(..., min_length=1)
    apellidos: str = Field(..., min_length=1)
    email: Optional[str] = None
    facultad: Optional[str] = None


class ResolucionEstudiante(ResolucionEstudianteIn):
    id: uuid.UUID
    model_config = ConfigDict(from_attributes=True)


class ResolucionDocente(ResolucionDocenteIn):
    id: uuid.UUID
    model_config = ConfigDict(from_attributes=True)


class ResolucionArchivo(BaseModel):
    id: uuid.UUID
    nombre_archivo: str
    url_archivo: str
    tamano_archivo: int
    mime_type: str
    tipo: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


# ===============================================================
# Resolución
# ===============================================================
class ResolucionBase(BaseModel):
    tipo_resolucion: str = Field(..., min_length=1, max_length=50, description="APROBACION_PROYECTO | APROBACION_INFORME_FINAL")
    numero_resolucion: str = Field(..., min_length=1, max_length=100)
    fecha_resolucion: date
    modalidad: Optional[str] = Field(None, max_length=50)
    es_financiado: bool = False
    tipo_financiamiento: Optional[str] = Field(None, max_length=30)
    monto: Optional[Decimal] = Field(None, ge=0)
    dni_asesor: Optional[str] = Field(None, max_length=8)
    nombre_asesor: Optional[str] = None
    titulo_proyecto: Optional[str] = None
    facultad_id: Optional[int] = None
    departamento_id: Optional[int] = None


class ResolucionCreate(ResolucionBase):
    estudiantes: List[ResolucionEstudianteIn] = []
    docentes: List[ResolucionDocenteIn] = []

    @model_validator(mode="after")
    def limpiar_financiamiento(self):
        # Sin financiamiento no se guardan tipo ni monto
        if not self.es_financiado:
            self.tipo_financiamiento = None
            self.monto = None
        return self


class ResolucionUpdate(ResolucionCreate):
    """La edición reemplaza por completo estudiantes y docentes."""
    archivos_a_eliminar: List[uuid.UUID] = []


class Resolucion(ResolucionBase):
    id: uuid.UUID
    estado: str
    creado_por_id: uuid.UUID
    aprobado_por_id: Optional[uuid.UUID] = None
    aprobado_en: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    facultad: Optional[Facultad] = None
    departamento: Optional[Departamento] = None
    estudiantes: List[ResolucionEstudiante] = []
    docentes: List[ResolucionDocente] = []
    archivos: List[ResolucionArchivo] = []
    creado_por: Optional[UsuarioSimple] = None
    aprobado_por: Optional[UsuarioSimple] = None

    model_config = ConfigDict(from_attributes=True)
