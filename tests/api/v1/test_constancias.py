import pytest
from httpx import AsyncClient
from fastapi import status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.permissions import PERM_CONSTANCIAS
from app.models.audit_log import AuditLog
from app.models.constancia import Constancia
from app.models.usuario import Usuario
from app.schemas.enums import EstadoDocumentoEnum

CONSTANCIAS_URL = f"{settings.API_V1_STR}/documents/constancias/"

PDF_BYTES = b"%PDF-1.4\n%constancia de prueba\n%%EOF"


def _form(numero: str = "CONST-2024-001", **extra) -> dict:
    data = {
        "dni": "70123456",
        "codigo_estudiante": "18121003",
        "nombre_completo": "Juan Carlos Pérez Quispe",
        "numero_constancia": numero,
        "anio": "2024",
    }
    data.update(extra)
    return data


@pytest.mark.asyncio
async def test_create_constancia_with_pdf(
    client: AsyncClient, db: Session, uploads_dir, test_superadmin: Usuario, auth_token_superadmin: str
):
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    files = {"file": ("constancia.pdf", PDF_BYTES, "application/pdf")}
    response = await client.post(CONSTANCIAS_URL, headers=headers, data=_form(), files=files)
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["estado"] == EstadoDocumentoEnum.PENDIENTE.value
    assert data["tipo"] == "CONSTANCIA"
    assert data["creado_por_id"] == str(test_superadmin.id)
    assert data["nombre_archivo"] == "constancia.pdf"
    assert data["tamano_archivo"] == len(PDF_BYTES)
    assert data["url_archivo"].startswith(f"{settings.API_V1_STR}/documents/files/constancias/")
    assert data["url_archivo"].endswith(".pdf")

    guardado = uploads_dir / "constancias" / data["url_archivo"].rsplit("/", 1)[1]
    assert guardado.read_bytes() == PDF_BYTES

    # El archivo se sirve a usuarios autenticados
    file_response = await client.get(data["url_archivo"], headers=headers)
    assert file_response.status_code == status.HTTP_200_OK
    assert file_response.headers["content-type"] == "application/pdf"
    assert file_response.content == PDF_BYTES

    assert db.query(AuditLog).filter(AuditLog.accion == "constancia.created").count() == 1


@pytest.mark.asyncio
async def test_create_constancia_rejects_disallowed_file_type(
    client: AsyncClient, db: Session, uploads_dir, auth_token_superadmin: str
):
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    files = {"file": ("notas.txt", b"texto plano", "text/plain")}
    response = await client.post(CONSTANCIAS_URL, headers=headers, data=_form(), files=files)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Tipo de archivo no permitido: notas.txt"
    assert db.query(Constancia).count() == 0
    assert not (uploads_dir / "constancias").exists() or not any((uploads_dir / "constancias").iterdir())


@pytest.mark.asyncio
async def test_create_constancia_rejects_oversized_file(
    client: AsyncClient, db: Session, uploads_dir, monkeypatch, auth_token_superadmin: str
):
    monkeypatch.setattr(settings, "MAX_FILE_SIZE_BYTES", 16)
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    files = {"file": ("grande.pdf", PDF_BYTES, "application/pdf")}
    response = await client.post(CONSTANCIAS_URL, headers=headers, data=_form(), files=files)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "supera el tamaño máximo" in response.json()["detail"]
    assert not any((uploads_dir / "constancias").iterdir())


@pytest.mark.asyncio
async def test_create_constancia_duplicate_number(client: AsyncClient, crear_constancia, auth_token_superadmin: str):
    crear_constancia("CONST-2024-001")
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    response = await client.post(CONSTANCIAS_URL, headers=headers, data=_form())
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "El número de constancia ya existe"


@pytest.mark.asyncio
async def test_create_constancia_invalid_form(client: AsyncClient, auth_token_superadmin: str):
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    response = await client.post(CONSTANCIAS_URL, headers=headers, data=_form(anio="1800"))
    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_create_constancia_requires_create_action(
    client: AsyncClient, test_usuario_regular: Usuario, catalogo_permisos, otorgar, auth_token_usuario_regular: str
):
    otorgar(test_usuario_regular, catalogo_permisos[PERM_CONSTANCIAS], ["READ"])
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    response = await client.post(CONSTANCIAS_URL, headers=headers, data=_form())
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = await client.get(CONSTANCIAS_URL, headers=headers)
    assert response.status_code == status.HTTP_200_OK


@pytest.mark.asyncio
async def test_list_constancias_filters(client: AsyncClient, crear_constancia, auth_token_superadmin: str):
    crear_constancia("CONST-2023-010", anio=2023)
    crear_constancia("CONST-2024-011", estado=EstadoDocumentoEnum.APROBADO, nombre_completo="María Huamán Torres")
    crear_constancia("CONST-2024-012", dni="45678912")
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}

    response = await client.get(CONSTANCIAS_URL, headers=headers, params={"anio": 2023})
    assert [c["numero_constancia"] for c in response.json()] == ["CONST-2023-010"]

    response = await client.get(CONSTANCIAS_URL, headers=headers, params={"estado": "APROBADO"})
    assert [c["numero_constancia"] for c in response.json()] == ["CONST-2024-011"]

    response = await client.get(CONSTANCIAS_URL, headers=headers, params={"search": "4567"})
    assert [c["numero_constancia"] for c in response.json()] == ["CONST-2024-012"]


# ==============================================================================
# Flujo de aprobación
# ==============================================================================

@pytest.mark.asyncio
async def test_approve_constancia_only_once(
    client: AsyncClient, db: Session, crear_constancia, test_superadmin: Usuario, auth_token_superadmin: str
):
    constancia = crear_constancia("CONST-2024-020")
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    url = f"{CONSTANCIAS_URL}{constancia.id}/approve"

    response = await client.post(url, headers=headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["estado"] == "APROBADO"
    assert data["aprobado_por_id"] == str(test_superadmin.id)
    assert data["aprobado_en"] is not None
    aprobado_en = data["aprobado_en"]

    response = await client.post(url, headers=headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "La constancia ya fue procesada (estado actual: APROBADO)"

    response = await client.get(f"{CONSTANCIAS_URL}{constancia.id}", headers=headers)
    assert response.json()["aprobado_en"] == aprobado_en

    logs = db.query(AuditLog).filter(AuditLog.accion == "constancia.approved").all()
    assert len(logs) == 1
    assert logs[0].entidad_id == str(constancia.id)
    assert logs[0].cambios == {"estado": {"antes": "PENDIENTE", "despues": "APROBADO"}}


@pytest.mark.asyncio
async def test_reject_constancia_only_from_pending(
    client: AsyncClient, crear_constancia, auth_token_superadmin: str
):
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}

    pendiente = crear_constancia("CONST-2024-030")
    response = await client.post(f"{CONSTANCIAS_URL}{pendiente.id}/reject", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["estado"] == "RECHAZADO"

    # Rechazada no puede aprobarse ni rechazarse otra vez
    response = await client.post(f"{CONSTANCIAS_URL}{pendiente.id}/approve", headers=headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    response = await client.post(f"{CONSTANCIAS_URL}{pendiente.id}/reject", headers=headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST

    aprobada = crear_constancia("CONST-2024-031", estado=EstadoDocumentoEnum.APROBADO)
    response = await client.post(f"{CONSTANCIAS_URL}{aprobada.id}/reject", headers=headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "La constancia ya fue procesada (estado actual: APROBADO)"


@pytest.mark.asyncio
async def test_approve_requires_update_action(
    client: AsyncClient, crear_constancia, test_usuario_regular: Usuario, catalogo_permisos, otorgar,
    auth_token_usuario_regular: str
):
    constancia = crear_constancia("CONST-2024-040")
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    otorgar(test_usuario_regular, catalogo_permisos[PERM_CONSTANCIAS], ["READ", "CREATE"])
    response = await client.post(f"{CONSTANCIAS_URL}{constancia.id}/approve", headers=headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_approve_unknown_constancia(client: AsyncClient, auth_token_superadmin: str):
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    response = await client.post(f"{CONSTANCIAS_URL}00000000-0000-0000-0000-000000000000/approve", headers=headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Constancia no encontrada"


# ==============================================================================
# Edición y borrado
# ==============================================================================

@pytest.mark.asyncio
async def test_update_constancia_replaces_file(
    client: AsyncClient, uploads_dir, auth_token_superadmin: str
):
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    files = {"file": ("original.pdf", PDF_BYTES, "application/pdf")}
    creada = (await client.post(CONSTANCIAS_URL, headers=headers, data=_form(), files=files)).json()
    archivo_original = uploads_dir / "constancias" / creada["url_archivo"].rsplit("/", 1)[1]
    assert archivo_original.exists()

    files = {"file": ("foto.png", b"\x89PNG\r\n\x1a\nimagen", "image/png")}
    response = await client.patch(
        f"{CONSTANCIAS_URL}{creada['id']}", headers=headers, data={"observacion": "Escaneo corregido"}, files=files
    )
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["observacion"] == "Escaneo corregido"
    assert data["nombre_archivo"] == "foto.png"
    assert data["mime_type"] == "image/png"
    assert data["numero_constancia"] == "CONST-2024-001"
    assert not archivo_original.exists()


@pytest.mark.asyncio
async def test_approved_constancia_edit_rules(
    client: AsyncClient, crear_constancia, test_admin: Usuario, catalogo_permisos, otorgar,
    auth_token_admin: str, auth_token_superadmin: str
):
    constancia = crear_constancia("CONST-2024-050", estado=EstadoDocumentoEnum.APROBADO)
    otorgar(test_admin, catalogo_permisos[PERM_CONSTANCIAS], ["READ", "UPDATE"])

    response = await client.patch(
        f"{CONSTANCIAS_URL}{constancia.id}",
        headers={"Authorization": f"Bearer {auth_token_admin}"},
        data={"observacion": "Cambio"},
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "No se puede editar una constancia aprobada"

    response = await client.patch(
        f"{CONSTANCIAS_URL}{constancia.id}",
        headers={"Authorization": f"Bearer {auth_token_superadmin}"},
        data={"observacion": "Cambio"},
    )
    assert response.status_code == status.HTTP_200_OK


@pytest.mark.asyncio
async def test_delete_constancia(client: AsyncClient, db: Session, uploads_dir, auth_token_superadmin: str):
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    files = {"file": ("constancia.pdf", PDF_BYTES, "application/pdf")}
    creada = (await client.post(CONSTANCIAS_URL, headers=headers, data=_form(), files=files)).json()
    archivo = uploads_dir / "constancias" / creada["url_archivo"].rsplit("/", 1)[1]

    response = await client.delete(f"{CONSTANCIAS_URL}{creada['id']}", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["msg"] == "Constancia eliminada exitosamente"
    assert db.query(Constancia).count() == 0
    assert not archivo.exists()


@pytest.mark.asyncio
async def test_cannot_delete_approved_constancia(client: AsyncClient, crear_constancia, auth_token_superadmin: str):
    constancia = crear_constancia("CONST-2024-060", estado=EstadoDocumentoEnum.APROBADO)
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    response = await client.delete(f"{CONSTANCIAS_URL}{constancia.id}", headers=headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "No se puede eliminar una constancia aprobada"
