import pytest
from httpx import AsyncClient
from fastapi import status, HTTPException

from app.core.config import settings
from app.core.storage import resolve_upload_path, relative_path_from_url, build_file_url

DOCUMENT_FILES_URL = f"{settings.API_V1_STR}/documents/files"
FILES_URL = f"{settings.API_V1_STR}/files"


@pytest.fixture
def archivos(uploads_dir):
    (uploads_dir / "constancias").mkdir()
    (uploads_dir / "constancias" / "c1.pdf").write_bytes(b"%PDF-1.4 constancia")
    (uploads_dir / "publico").mkdir()
    (uploads_dir / "publico" / "logo.png").write_bytes(b"\x89PNG logo")
    return uploads_dir


def test_resolve_upload_path(archivos):
    assert resolve_upload_path("constancias/c1.pdf") == (archivos / "constancias" / "c1.pdf").resolve()

    with pytest.raises(HTTPException) as exc:
        resolve_upload_path("constancias/../../fuera.txt")
    assert exc.value.status_code == status.HTTP_403_FORBIDDEN

    with pytest.raises(HTTPException) as exc:
        resolve_upload_path("publico/logo.png", allowed_roots={"constancias", "resoluciones"})
    assert exc.value.status_code == status.HTTP_403_FORBIDDEN

    with pytest.raises(HTTPException) as exc:
        resolve_upload_path("constancias/no-existe.pdf")
    assert exc.value.status_code == status.HTTP_404_NOT_FOUND

    with pytest.raises(HTTPException) as exc:
        resolve_upload_path("")
    assert exc.value.status_code == status.HTTP_403_FORBIDDEN

    for ruta in ("./constancias/c1.pdf", "publico/../constancias/c1.pdf"):
        with pytest.raises(HTTPException) as exc:
            resolve_upload_path(ruta)
        assert exc.value.status_code == status.HTTP_403_FORBIDDEN


def test_file_url_round_trip():
    url = build_file_url("resoluciones/abc.pdf")
    assert url == f"{settings.API_V1_STR}/documents/files/resoluciones/abc.pdf"
    assert relative_path_from_url(url) == "resoluciones/abc.pdf"
    assert relative_path_from_url("https://otro.sitio/archivo.pdf") is None
    assert relative_path_from_url(None) is None


@pytest.mark.asyncio
async def test_document_file_requires_session(client: AsyncClient, archivos):
    response = await client.get(f"{DOCUMENT_FILES_URL}/constancias/c1.pdf")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_document_file_served_inline(client: AsyncClient, archivos, auth_token_usuario_regular: str):
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    response = await client.get(f"{DOCUMENT_FILES_URL}/constancias/c1.pdf", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"] == "application/pdf"
    assert response.headers["content-disposition"].startswith("inline")
    assert response.content == b"%PDF-1.4 constancia"


@pytest.mark.asyncio
async def test_document_files_only_serve_document_roots(
    client: AsyncClient, archivos, auth_token_usuario_regular: str
):
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    response = await client.get(f"{DOCUMENT_FILES_URL}/publico/logo.png", headers=headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "Ruta no permitida"


@pytest.mark.asyncio
async def test_path_traversal_blocked(client: AsyncClient, archivos, auth_token_usuario_regular: str):
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    response = await client.get(f"{DOCUMENT_FILES_URL}/constancias/..%2F..%2Fetc%2Fpasswd", headers=headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "Ruta no permitida"


@pytest.mark.asyncio
async def test_missing_document_file(client: AsyncClient, archivos, auth_token_usuario_regular: str):
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    response = await client.get(f"{DOCUMENT_FILES_URL}/constancias/otra.pdf", headers=headers)
    assert response.status_code == status.HTTP_404_NOT_FOUND
    assert response.json()["detail"] == "Archivo no encontrado"


@pytest.mark.asyncio
async def test_uploads_route_protects_document_folders(client: AsyncClient, archivos, auth_token_usuario_regular: str):
    response = await client.get(f"{FILES_URL}/constancias/c1.pdf")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "No autorizado"

    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    response = await client.get(f"{FILES_URL}/constancias/c1.pdf", headers=headers)
    assert response.status_code == status.HTTP_200_OK


@pytest.mark.asyncio
async def test_uploads_route_serves_public_files(client: AsyncClient, archivos):
    response = await client.get(f"{FILES_URL}/publico/logo.png")
    assert response.status_code == status.HTTP_200_OK
    assert response.headers["content-type"] == "image/png"


@pytest.mark.asyncio
@pytest.mark.parametrize("ruta", ["%2E/constancias/c1.pdf", "publico/%2E%2E/constancias/c1.pdf"])
async def test_uploads_route_rejects_dot_segments_without_session(client: AsyncClient, archivos, ruta: str):
    response = await client.get(f"{FILES_URL}/{ruta}")
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "Ruta no permitida"
    assert b"constancia" not in response.content


@pytest.mark.asyncio
async def test_uploads_route_dot_segments_with_session(
    client: AsyncClient, archivos, auth_token_usuario_regular: str
):
    (archivos.parent / "fuera.txt").write_bytes(b"fuera de uploads")
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    for ruta in ("%2E/constancias/c1.pdf", "publico/%2E%2E/%2E%2E/fuera.txt", "%2E%2E/fuera.txt"):
        response = await client.get(f"{FILES_URL}/{ruta}", headers=headers)
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert b"fuera de uploads" not in response.content
