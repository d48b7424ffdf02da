import uuid
from decimal import Decimal
from typing import List, Optional
from datetime import date, datetime

from pydantic import BaseModel, Field, ConfigDict, field_validator


class BusquedaPublicaRequest(BaseModel):
    query: str = Field(..., description="Nombre, código, DNI o número de documento")

    @field_validator("query")
    @classmethod
    def longitud_minima(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("El término de búsqueda debe tener al menos 3 caracteres")
        return v


# Vistas públicas: sin datos de los usuarios que crearon o aprobaron el documento
class ConstanciaPublica(BaseModel):
    id: uuid.UUID
    numero_constancia: str
    codigo_estudiante: str
    nombre_completo: str
    dni: str
    anio: int
    observacion: Optional[str] = None
    nombre_archivo: Optional[str] = None
    url_archivo: Optional[str] = None
    estado: str
    tipo: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class EstudiantePublico(BaseModel):
    nombres: str
    apellidos: str
    codigo: Optional[str] = None
    dni: str

    model_config = ConfigDict(from_attributes=True)


class ArchivoPublico(BaseModel):
    id: uuid.UUID
    nombre_archivo: str
    url_archivo: str
    tipo: str

    model_config = ConfigDict(from_attributes=True)


class ResolucionPublica(BaseModel):
    id: uuid.UUID
    numero_resolucion: str
    tipo_resolucion: str
    modalidad: Optional[str] = None
    titulo_proyecto: Optional[str] = None
    fecha_resolucion: date
    nombre_asesor: Optional[str] = None
    es_financiado: bool
    monto: Optional[Decimal] = None
    estado: str
    facultad: Optional[str] = None
    departamento: Optional[str] = None
    estudiantes: List[EstudiantePublico] = []
    archivos: List[ArchivoPublico] = []


class BusquedaPublicaResponse(BaseModel):
    constancias: List[ConstanciaPublica]
    resoluciones: List[ResolucionPublica]
    total: int
