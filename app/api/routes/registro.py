import logging
from typing import Any, Optional

from fastapi import APIRouter, Query

from app.schemas.registro_academico import (
    DniRequest, CodigoRequest, EstudianteFicha, EstudianteConsulta, DocenteConsulta
)
from app.services.registro_academico import registro_academico_service

logger = logging.getLogger(__name__)

# Consultas al registro académico de la universidad; no requieren sesión
student_router = APIRouter()
teacher_router = APIRouter()


@student_router.get("/by-dni/{dni}", response_model=EstudianteFicha, summary="Ficha del estudiante por DNI")
async def student_by_dni(dni: str) -> Any:
    return await registro_academico_service.student_by_dni(dni)


@student_router.get("/by-code/{code}", response_model=EstudianteFicha, summary="Ficha del estudiante por código")
async def student_by_code(code: str) -> Any:
    return await registro_academico_service.student_by_code(code)


@student_router.post("/consult", response_model=EstudianteConsulta, summary="Consulta de estudiante por DNI")
async def consult_student(data: DniRequest) -> Any:
    return await registro_academico_service.consult_student(data.dni)


@student_router.post("/consult-by-code", response_model=EstudianteConsulta, summary="Consulta de estudiante por código")
async def consult_student_by_code(data: CodigoRequest) -> Any:
    return await registro_academico_service.consult_student_by_code(data.codigo)


@teacher_router.get("/consult", response_model=DocenteConsulta, summary="Consulta de docente por DNI")
async def consult_teacher_get(dni: Optional[str] = Query(None)) -> Any:
    return await registro_academico_service.consult_teacher(dni)


@teacher_router.post("/consult", response_model=DocenteConsulta, summary="Consulta de docente por DNI")
async def consult_teacher_post(data: DniRequest) -> Any:
    return await registro_academico_service.consult_teacher(data.dni)
