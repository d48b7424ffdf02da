from typing import Optional, Any

from pydantic import BaseModel, Field


class DniRequest(BaseModel):
    dni: Optional[str] = None


class CodigoRequest(BaseModel):
    codigo: Optional[str] = None


class EstudianteFicha(BaseModel):
    """
    Datos del estudiante para autocompletar formularios (búsqueda por DNI o por código).
    Los campos que la fuente no entrega se devuelven vacíos.
    """
    studentCode: str = ""
    name: str = ""
    documentType: str = "DNI"
    documentNumber: str = ""
    email: str = ""
    personalEmail: str = ""
    career: str = ""
    faculty: str = ""
    sex: str = ""
    careerCode: str = ""
    enrollmentDate: str = ""


class PersonaConsulta(BaseModel):
    codigo: Optional[str] = None
    dni: Optional[str] = None
    nombres: Optional[str] = None
    apellidoPaterno: Optional[str] = None
    apellidoMaterno: Optional[str] = None
    apellidos: str = ""
    nombreCompleto: str = ""
    email: Optional[str] = None
    emailPersonal: Optional[str] = None
    facultad: Optional[str] = None


class EstudianteConsulta(PersonaConsulta):
    carrera: Optional[str] = None
    creditosAprobados: Optional[Any] = Field(None, description="Solo en la consulta por DNI")
    ultimoPeriodo: Optional[str] = Field(None, description="Solo en la consulta por código")


class DocenteConsulta(PersonaConsulta):
    departamento: Optional[str] = None
