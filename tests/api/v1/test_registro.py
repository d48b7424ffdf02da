from typing import Callable, Dict

import httpx
import pytest
from httpx import AsyncClient
from fastapi import status

from app.core.config import settings
from app.services.registro_academico import (
    registro_academico_service, reorder_full_name, map_sex, map_faculty, validate_admission_period,
)

STUDENT_URL = f"{settings.API_V1_STR}/student"
TEACHER_URL = f"{settings.API_V1_STR}/teacher"


@pytest.fixture
def registro_upstream():
    """
    Sustituye el transporte HTTP del cliente del registro académico.
    Recibe un dict {ruta: (status, json)} y devuelve la lista de peticiones recibidas.
    """
    original = (registro_academico_service.transport, registro_academico_service.base_url, registro_academico_service.token)
    registro_academico_service.base_url = "https://registro.test"
    registro_academico_service.token = "token-de-prueba"
    peticiones = []

    def _configurar(respuestas: Dict[str, tuple]) -> list:
        def handler(request: httpx.Request) -> httpx.Response:
            peticiones.append(request)
            codigo, cuerpo = respuestas.get(request.url.path, (404, {"message": "not found"}))
            return httpx.Response(codigo, json=cuerpo)
        registro_academico_service.transport = httpx.MockTransport(handler)
        return peticiones

    yield _configurar
    (
        registro_academico_service.transport,
        registro_academico_service.base_url,
        registro_academico_service.token,
    ) = original


def test_name_and_code_helpers():
    assert reorder_full_name("PÉREZ QUISPE, JUAN CARLOS") == "JUAN CARLOS PÉREZ QUISPE"
    assert reorder_full_name("SIN COMA") == "SIN COMA"
    assert reorder_full_name(None) == ""
    assert map_sex(1) == "M"
    assert map_sex(0) == "F"
    assert map_sex(None) == ""
    assert map_faculty("INGENIERIA") == "Facultad de Ingeniería"
    assert map_faculty("TURISMO") == "Facultad de TURISMO"
    assert validate_admission_period("2019-2") == "2019-2"
    assert validate_admission_period("2019-3") == ""


@pytest.mark.asyncio
async def test_student_by_dni(client: AsyncClient, registro_upstream: Callable):
    peticiones = registro_upstream({
        "/data/student/70123456": (200, {
            "userName": "18121003",
            "dni": "70123456",
            "name": "JUAN CARLOS",
            "paternalSurname": "PÉREZ",
            "maternalSurname": "QUISPE",
            "email": "18121003@unamad.edu.pe",
            "carrerName": "INGENIERÍA DE SISTEMAS E INFORMÁTICA",
            "facultyName": "INGENIERIA",
        }),
    })
    response = await client.get(f"{STUDENT_URL}/by-dni/70123456")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["studentCode"] == "18121003"
    assert data["name"] == "JUAN CARLOS PÉREZ QUISPE"
    assert data["documentType"] == "DNI"
    assert data["personalEmail"] == ""
    assert peticiones[0].headers["Authorization"] == "Bearer token-de-prueba"


@pytest.mark.asyncio
@pytest.mark.parametrize("dni", ["1234567", "123456789", "abcdefgh"])
async def test_student_by_dni_invalid(client: AsyncClient, registro_upstream: Callable, dni: str):
    peticiones = registro_upstream({})
    response = await client.get(f"{STUDENT_URL}/by-dni/{dni}")
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "DNI inválido. Debe tener 8 dígitos"
    assert peticiones == []


@pytest.mark.asyncio
async def test_student_by_dni_upstream_errors(client: AsyncClient, registro_upstream: Callable):
    registro_upstream({"/data/student/70000001": (401, {"message": "token"})})
    response = await client.get(f"{STUDENT_URL}/by-dni/70000001")
    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json()["detail"] == "Error de autenticación con el servidor"

    response = await client.get(f"{STUDENT_URL}/by-dni/70000002")
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "No se encontraron datos para este DNI"


@pytest.mark.asyncio
async def test_student_by_code(client: AsyncClient, registro_upstream: Callable):
    registro_upstream({
        "/getStudentInfo/18121003": (200, [{
            "userName": "18121003",
            "fullName": "PÉREZ QUISPE, JUAN CARLOS",
            "sex": 1,
            "carrerName": "INGENIERÍA FORESTAL Y MEDIO AMBIENTE",
            "facultyName": "INGENIERIA",
            "carrerCode": "IF",
            "admisionDate": "2018-1",
        }]),
    })
    response = await client.get(f"{STUDENT_URL}/by-code/18121003")
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["name"] == "JUAN CARLOS PÉREZ QUISPE"
    assert data["sex"] == "M"
    assert data["career"] == "Ingeniería Forestal y Medio Ambiente"
    assert data["faculty"] == "Facultad de Ingeniería"
    assert data["enrollmentDate"] == "2018-1"


@pytest.mark.asyncio
async def test_student_by_code_empty_list(client: AsyncClient, registro_upstream: Callable):
    registro_upstream({"/getStudentInfo/18121003": (200, [])})
    response = await client.get(f"{STUDENT_URL}/by-code/18121003")
    assert response.status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.asyncio
async def test_consult_student(client: AsyncClient, registro_upstream: Callable):
    registro_upstream({
        "/data/student/70123456": (200, {"data": [{
            "info": {
                "username": "18121003", "dni": "70123456", "name": "JUAN CARLOS",
                "paternalSurname": "PÉREZ", "maternalSurname": "QUISPE", "carrerName": "Sistemas",
            },
            "totalCreditsApproved": 180,
        }]}),
    })
    response = await client.post(f"{STUDENT_URL}/consult", json={"dni": "70123456"})
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["codigo"] == "18121003"
    assert data["apellidos"] == "PÉREZ QUISPE"
    assert data["nombreCompleto"] == "PÉREZ QUISPE JUAN CARLOS"
    assert data["creditosAprobados"] == 180

    response = await client.post(f"{STUDENT_URL}/consult", json={})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "DNI es requerido"


@pytest.mark.asyncio
async def test_consult_teacher(client: AsyncClient, registro_upstream: Callable):
    registro_upstream({
        "/data/teacher/40998877": (200, {
            "userName": "D0451", "dni": "40998877", "name": "LUIS",
            "paternalSurname": "RAMOS", "maternalSurname": "VELA",
            "academicDepartament": "Ingeniería de Sistemas",
        }),
    })
    response = await client.get(f"{TEACHER_URL}/consult", params={"dni": "40998877"})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["departamento"] == "Ingeniería de Sistemas"

    response = await client.post(f"{TEACHER_URL}/consult", json={"dni": "40000000"})
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Docente no encontrado"
