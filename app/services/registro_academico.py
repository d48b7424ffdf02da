"""
Cliente del registro académico de la UNAMAD (estudiantes y docentes).

Las respuestas del servicio externo se normalizan a los schemas de
`app.schemas.registro_academico`. Los errores del servicio se traducen a
404 o 500 con mensajes genéricos; el detalle solo queda en el log.
"""
import logging
import re
from typing import Any, Dict, Optional

import httpx
from fastapi import HTTPException, status

from app.core.config import settings
from app.schemas.registro_academico import EstudianteFicha, EstudianteConsulta, DocenteConsulta

logger = logging.getLogger(__name__)

DNI_PATTERN = re.compile(r"^\d{8}$")
CODIGO_PATTERN = re.compile(r"^\d{6,10}$")
PERIODO_ADMISION_PATTERN = re.compile(r"^\d{4}-[1-2]$")

FACULTY_MAP = {
    "INGENIERIA": "Facultad de Ingeniería",
    "EDUCACION": "Facultad de Educación",
    "SALUD": "Facultad de Ciencias de la Salud",
    "ECONOMICAS": "Facultad de Ciencias Económicas y Empresariales",
    "DERECHO": "Facultad de Derecho y Ciencias Políticas",
}

CAREER_MAP = {
    "INGENIERÍA DE SISTEMAS E INFORMÁTICA": "Ingeniería de Sistemas e Informática",
    "INGENIERÍA FORESTAL Y MEDIO AMBIENTE": "Ingeniería Forestal y Medio Ambiente",
    "INGENIERÍA AGROINDUSTRIAL": "Ingeniería Agroindustrial",
}


class UpstreamError(Exception):
    """Respuesta no exitosa del registro académico."""

    def __init__(self, status_code: int):
        super().__init__(f"Registro académico respondió {status_code}")
        self.status_code = status_code


def _texto(valor: Any) -> str:
    return "" if valor is None else str(valor)


def reorder_full_name(full_name: Optional[str]) -> str:
    """'APELLIDOS, NOMBRES' -> 'NOMBRES APELLIDOS'. Sin coma se devuelve tal cual."""
    full_name = full_name or ""
    if "," in full_name:
        apellidos, nombres = full_name.split(",", 1)
        return f"{nombres.strip()} {apellidos.strip()}"
    return full_name


def map_sex(valor: Any) -> str:
    if valor == 1:
        return "M"
    if valor == 0:
        return "F"
    return ""


def map_faculty(nombre: Optional[str]) -> str:
    if not nombre:
        return ""
    return FACULTY_MAP.get(nombre, f"Facultad de {nombre}")


def validate_admission_period(periodo: Optional[str]) -> str:
    if periodo and PERIODO_ADMISION_PATTERN.match(periodo):
        return periodo
    return ""


def _persona(data: Dict[str, Any], codigo_key: str = "userName") -> Dict[str, Any]:
    paterno = _texto(data.get("paternalSurname"))
    materno = _texto(data.get("maternalSurname"))
    nombres = _texto(data.get("name"))
    return {
        "codigo": data.get(codigo_key),
        "dni": data.get("dni"),
        "nombres": data.get("name"),
        "apellidoPaterno": data.get("paternalSurname"),
        "apellidoMaterno": data.get("maternalSurname"),
        "apellidos": f"{paterno} {materno}",
        "nombreCompleto": f"{paterno} {materno} {nombres}",
        "email": data.get("email"),
        "emailPersonal": data.get("personalEmail"),
        "facultad": data.get("facultyName"),
    }


class RegistroAcademicoService:

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.UNAMAD_API_URL).rstrip("/")
        self.token = token if token is not None else settings.UNAMAD_API_TOKEN
        self.timeout = timeout or settings.UNAMAD_API_TIMEOUT_SECONDS
        self.transport = transport

    async def _get(self, path: str) -> Any:
        headers = {"Accept": "application/json", "Authorization": f"Bearer {self.token}"}
        async with httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(path, headers=headers)
        if response.status_code != 200:
            raise UpstreamError(response.status_code)
        return response.json()

    async def student_by_dni(self, dni: str) -> EstudianteFicha:
        if not DNI_PATTERN.match(dni or ""):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="DNI inválido. Debe tener 8 dígitos")
        try:
            data = await self._get(f"/data/student/{dni}")
        except UpstreamError as e:
            if e.status_code == 401:
                logger.error("Token del registro académico inválido o expirado")
                raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error de autenticación con el servidor")
            if e.status_code == 404:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No se encontraron datos para este DNI")
            logger.error(f"Error consultando estudiante por DNI {dni}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al obtener datos del estudiante")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Fallo de comunicación con el registro académico (DNI {dni}): {e}", exc_info=True)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al obtener datos del estudiante")

        nombre = " ".join(
            _texto(data.get(k)) for k in ("name", "paternalSurname", "maternalSurname")
        ).strip()
        return EstudianteFicha(
            studentCode=_texto(data.get("userName")),
            name=nombre,
            documentType="DNI",
            documentNumber=_texto(data.get("dni") or dni),
            email=_texto(data.get("email")),
            personalEmail=_texto(data.get("personalEmail")),
            career=_texto(data.get("carrerName")),
            faculty=_texto(data.get("facultyName")),
        )

    async def student_by_code(self, code: str) -> EstudianteFicha:
        if not CODIGO_PATTERN.match(code or ""):
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Código de estudiante inválido")
        try:
            data = await self._get(f"/getStudentInfo/{code}")
        except UpstreamError as e:
            if e.status_code == 401:
                logger.error("Token del registro académico inválido o expirado")
                raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error de autenticación con el servidor")
            if e.status_code == 404:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No se encontraron datos para este código de estudiante")
            logger.error(f"Error consultando estudiante por código {code}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al obtener datos del estudiante")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Fallo de comunicación con el registro académico (código {code}): {e}", exc_info=True)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al obtener datos del estudiante")

        estudiante = (data[0] if data else None) if isinstance(data, list) else data
        if not estudiante:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No se encontraron datos del estudiante")

        carrera = estudiante.get("carrerName")
        return EstudianteFicha(
            studentCode=_texto(estudiante.get("userName") or code),
            name=reorder_full_name(estudiante.get("fullName")),
            sex=map_sex(estudiante.get("sex")),
            career=CAREER_MAP.get(carrera, carrera) if carrera else "",
            faculty=map_faculty(estudiante.get("facultyName")),
            careerCode=_texto(estudiante.get("carrerCode")),
            enrollmentDate=validate_admission_period(estudiante.get("admisionDate")),
        )

    async def consult_student(self, dni: Optional[str]) -> EstudianteConsulta:
        if not dni:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="DNI es requerido")
        try:
            data = await self._get(f"/data/student/{dni}")
        except UpstreamError as e:
            if e.status_code == 404:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Estudiante no encontrado")
            logger.error(f"Error consultando estudiante {dni}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al consultar la información del estudiante")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Fallo de comunicación con el registro académico (DNI {dni}): {e}", exc_info=True)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al consultar la información del estudiante")

        registros = data.get("data") if isinstance(data, dict) else None
        if not isinstance(registros, list) or not registros:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Formato de respuesta inesperado o estudiante no encontrado",
            )
        info = registros[0].get("info") or {}
        return EstudianteConsulta(
            **_persona(info, codigo_key="username"),
            carrera=info.get("carrerName"),
            creditosAprobados=registros[0].get("totalCreditsApproved"),
        )

    async def consult_student_by_code(self, codigo: Optional[str]) -> EstudianteConsulta:
        if not codigo:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Código de estudiante es requerido")
        try:
            data = await self._get(f"/data/student/v2/{codigo}")
        except UpstreamError as e:
            if e.status_code == 404:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Estudiante no encontrado")
            logger.error(f"Error consultando estudiante por código {codigo}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al consultar la información del estudiante")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Fallo de comunicación con el registro académico (código {codigo}): {e}", exc_info=True)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al consultar la información del estudiante")

        info = data.get("infoStudent") if isinstance(data, dict) else None
        if not info:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail="Formato de respuesta inesperado o estudiante no encontrado",
            )
        periodo = data.get("lastAcademicPeriodEnrolled") or {}
        return EstudianteConsulta(
            **_persona(info),
            carrera=info.get("carrerName"),
            ultimoPeriodo=periodo.get("text") or None,
        )

    async def consult_teacher(self, dni: Optional[str]) -> DocenteConsulta:
        if not dni:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="DNI es requerido")
        try:
            data = await self._get(f"/data/teacher/{dni}")
        except UpstreamError as e:
            if e.status_code == 404:
                raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Docente no encontrado")
            logger.error(f"Error consultando docente {dni}: {e}")
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al consultar la información del docente")
        except (httpx.HTTPError, ValueError) as e:
            logger.error(f"Fallo de comunicación con el registro académico (docente {dni}): {e}", exc_info=True)
            raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al consultar la información del docente")

        if not isinstance(data, dict):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Docente no encontrado")
        return DocenteConsulta(**_persona(data), departamento=data.get("academicDepartament"))


registro_academico_service = RegistroAcademicoService()
