import pytest
from httpx import AsyncClient
from fastapi import status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.usuario import Usuario
from app.models.audit_log import AuditLog

from conftest import (
    get_auth_token, crear_usuario,
    TEST_USER_REGULAR_PASSWORD, TEST_ADMIN_PASSWORD,
)

LOGIN_URL = f"{settings.API_V1_STR}/auth/login/access-token"
GENERIC_RESET_MESSAGE = "Si el correo existe, recibirás instrucciones para restablecer tu contraseña"


# ==============================================================================
# Login y bloqueo de cuenta
# ==============================================================================

@pytest.mark.asyncio
async def test_login_success(client: AsyncClient, test_usuario_regular: Usuario, mock_login_audit):
    response = await client.post(
        LOGIN_URL, data={"username": test_usuario_regular.email, "password": TEST_USER_REGULAR_PASSWORD}
    )
    assert response.status_code == status.HTTP_200_OK
    tokens = response.json()
    assert tokens["token_type"] == "bearer"
    assert tokens["access_token"] and tokens["refresh_token"]
    mock_login_audit.assert_called_once()
    assert mock_login_audit.call_args.kwargs["success"] is True


@pytest.mark.asyncio
async def test_login_email_is_case_insensitive(client: AsyncClient, test_usuario_regular: Usuario):
    token = await get_auth_token(client, test_usuario_regular.email.upper(), TEST_USER_REGULAR_PASSWORD)
    assert token is not None


@pytest.mark.asyncio
async def test_login_wrong_password(client: AsyncClient, db: Session, test_usuario_regular: Usuario, mock_login_audit):
    response = await client.post(
        LOGIN_URL, data={"username": test_usuario_regular.email, "password": "Incorrecta123"}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "Email o contraseña incorrectos"
    db.refresh(test_usuario_regular)
    assert test_usuario_regular.intentos_fallidos == 1
    assert mock_login_audit.call_args.kwargs["success"] is False


@pytest.mark.asyncio
async def test_login_unknown_email(client: AsyncClient):
    response = await client.post(LOGIN_URL, data={"username": "nadie@unamad.edu.pe", "password": "Cualquiera123"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "Email o contraseña incorrectos"


@pytest.mark.asyncio
async def test_login_locks_account_after_max_failed_attempts(
    client: AsyncClient, db: Session, test_usuario_regular: Usuario
):
    for _ in range(settings.MAX_FAILED_ATTEMPTS_BEFORE_LOCK):
        response = await client.post(
            LOGIN_URL, data={"username": test_usuario_regular.email, "password": "Incorrecta123"}
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    db.refresh(test_usuario_regular)
    assert test_usuario_regular.bloqueado is True

    # Con la contraseña correcta la cuenta sigue bloqueada
    response = await client.post(
        LOGIN_URL, data={"username": test_usuario_regular.email, "password": TEST_USER_REGULAR_PASSWORD}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert "bloqueada" in response.json()["detail"]


@pytest.mark.asyncio
async def test_successful_login_resets_failed_attempts(client: AsyncClient, db: Session, test_usuario_regular: Usuario):
    await client.post(LOGIN_URL, data={"username": test_usuario_regular.email, "password": "Incorrecta123"})
    token = await get_auth_token(client, test_usuario_regular.email, TEST_USER_REGULAR_PASSWORD)
    assert token is not None
    db.refresh(test_usuario_regular)
    assert test_usuario_regular.intentos_fallidos == 0
    assert test_usuario_regular.ultimo_login is not None


@pytest.mark.asyncio
async def test_login_inactive_user(client: AsyncClient, db: Session):
    user = crear_usuario(db, "inactivo@unamad.edu.pe", TEST_USER_REGULAR_PASSWORD, activo=False)
    response = await client.post(LOGIN_URL, data={"username": user.email, "password": TEST_USER_REGULAR_PASSWORD})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert "no está activa" in response.json()["detail"]


# ==============================================================================
# Tokens
# ==============================================================================

@pytest.mark.asyncio
async def test_read_me(client: AsyncClient, test_usuario_regular: Usuario, auth_token_usuario_regular: str):
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    response = await client.get(f"{settings.API_V1_STR}/auth/me", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["id"] == str(test_usuario_regular.id)
    assert "hashed_password" not in data
    assert "token_reseteo" not in data


@pytest.mark.asyncio
async def test_protected_route_without_token(client: AsyncClient):
    response = await client.get(f"{settings.API_V1_STR}/auth/me")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_protected_route_with_garbage_token(client: AsyncClient):
    headers = {"Authorization": "Bearer esto-no-es-un-jwt"}
    response = await client.get(f"{settings.API_V1_STR}/auth/me", headers=headers)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_refresh_token_returns_new_pair(client: AsyncClient, test_usuario_regular: Usuario):
    response = await client.post(
        LOGIN_URL, data={"username": test_usuario_regular.email, "password": TEST_USER_REGULAR_PASSWORD}
    )
    refresh_token = response.json()["refresh_token"]

    response = await client.post(f"{settings.API_V1_STR}/auth/refresh-token", json={"refresh_token": refresh_token})
    assert response.status_code == status.HTTP_200_OK
    nuevo = response.json()
    headers = {"Authorization": f"Bearer {nuevo['access_token']}"}
    me = await client.get(f"{settings.API_V1_STR}/auth/me", headers=headers)
    assert me.status_code == status.HTTP_200_OK


@pytest.mark.asyncio
async def test_refresh_token_rejects_access_token(client: AsyncClient, auth_token_usuario_regular: str):
    response = await client.post(
        f"{settings.API_V1_STR}/auth/refresh-token", json={"refresh_token": auth_token_usuario_regular}
    )
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.asyncio
async def test_access_token_of_deactivated_user_is_rejected(
    client: AsyncClient, db: Session, test_usuario_regular: Usuario, auth_token_usuario_regular: str
):
    test_usuario_regular.activo = False
    db.commit()
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    response = await client.get(f"{settings.API_V1_STR}/auth/me", headers=headers)
    assert response.status_code == status.HTTP_400_BAD_REQUEST


# ==============================================================================
# Registro y verificación de correo
# ==============================================================================

@pytest.mark.asyncio
async def test_register_and_verify_email(client: AsyncClient, db: Session, mock_dispatch_email):
    payload = {"email": "Nuevo.Docente@unamad.edu.pe", "nombre": "Nuevo Docente", "password": "Registro123"}
    response = await client.post(f"{settings.API_V1_STR}/auth/register", json=payload)
    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["email"] == "nuevo.docente@unamad.edu.pe"
    assert data["activo"] is False
    assert mock_dispatch_email.call_args.args[0] == "nuevo.docente@unamad.edu.pe"

    user = db.query(Usuario).filter(Usuario.email == "nuevo.docente@unamad.edu.pe").one()
    token = user.token_verificacion
    assert token

    # Sin verificar no puede iniciar sesión
    assert await get_auth_token(client, user.email, "Registro123") is None

    response = await client.post(f"{settings.API_V1_STR}/auth/verify-email", json={"token": token})
    assert response.status_code == status.HTTP_200_OK
    assert await get_auth_token(client, user.email, "Registro123") is not None

    # El token no se puede reutilizar
    response = await client.post(f"{settings.API_V1_STR}/auth/verify-email", json={"token": token})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Token inválido o ya utilizado"


@pytest.mark.asyncio
async def test_register_duplicate_email(client: AsyncClient, test_usuario_regular: Usuario):
    payload = {"email": test_usuario_regular.email, "nombre": "Duplicado", "password": "Registro123"}
    response = await client.post(f"{settings.API_V1_STR}/auth/register", json=payload)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "El usuario ya existe"


@pytest.mark.asyncio
@pytest.mark.parametrize("password, mensaje", [
    ("Corta1", "La contraseña debe tener al menos 8 caracteres"),
    ("sinmayuscula1", "Debe contener al menos una mayúscula"),
    ("SINMINUSCULA1", "Debe contener al menos una minúscula"),
    ("SinNumeroAqui", "Debe contener al menos un número"),
])
async def test_register_weak_password(client: AsyncClient, password: str, mensaje: str):
    payload = {"email": "debil@unamad.edu.pe", "nombre": "Clave Débil", "password": password}
    response = await client.post(f"{settings.API_V1_STR}/auth/register", json=payload)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == mensaje


# ==============================================================================
# Recuperación de contraseña
# ==============================================================================

@pytest.mark.asyncio
async def test_forgot_password_same_response_for_unknown_email(
    client: AsyncClient, test_usuario_regular: Usuario, mock_dispatch_email
):
    url = f"{settings.API_V1_STR}/auth/forgot-password"
    existente = await client.post(url, json={"email": test_usuario_regular.email})
    inexistente = await client.post(url, json={"email": "no-existe@unamad.edu.pe"})

    assert existente.status_code == inexistente.status_code == status.HTTP_200_OK
    assert existente.json() == inexistente.json() == {"msg": GENERIC_RESET_MESSAGE}
    # Solo la cuenta existente recibe correo
    assert mock_dispatch_email.call_count == 1
    assert mock_dispatch_email.call_args.args[0] == test_usuario_regular.email


@pytest.mark.asyncio
async def test_forgot_password_inactive_account_gets_generic_response(
    client: AsyncClient, db: Session, test_usuario_regular: Usuario, mock_dispatch_email
):
    test_usuario_regular.activo = False
    db.commit()

    response = await client.post(
        f"{settings.API_V1_STR}/auth/forgot-password", json={"email": test_usuario_regular.email}
    )
    assert response.status_code == status.HTTP_200_OK
    assert response.json() == {"msg": GENERIC_RESET_MESSAGE}
    assert mock_dispatch_email.call_count == 0
    db.refresh(test_usuario_regular)
    assert test_usuario_regular.token_reseteo is None


@pytest.mark.asyncio
async def test_forgot_password_requires_institutional_email(client: AsyncClient):
    response = await client.post(f"{settings.API_V1_STR}/auth/forgot-password", json={"email": "alguien@gmail.com"})
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "correo institucional" in response.json()["detail"]


@pytest.mark.asyncio
async def test_reset_password_flow(client: AsyncClient, db: Session, test_usuario_regular: Usuario):
    await client.post(f"{settings.API_V1_STR}/auth/forgot-password", json={"email": test_usuario_regular.email})
    db.refresh(test_usuario_regular)
    token = test_usuario_regular.token_reseteo
    assert token

    response = await client.post(
        f"{settings.API_V1_STR}/auth/reset-password", json={"token": token, "password": "NuevaClave456"}
    )
    assert response.status_code == status.HTTP_200_OK
    assert await get_auth_token(client, test_usuario_regular.email, "NuevaClave456") is not None
    assert await get_auth_token(client, test_usuario_regular.email, TEST_USER_REGULAR_PASSWORD) is None

    # El token se consume
    response = await client.post(
        f"{settings.API_V1_STR}/auth/reset-password", json={"token": token, "password": "OtraClave789"}
    )
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Token inválido o expirado"


# ==============================================================================
# Cambio de contraseña
# ==============================================================================

@pytest.mark.asyncio
async def test_change_own_password(
    client: AsyncClient, db: Session, test_usuario_regular: Usuario, auth_token_usuario_regular: str
):
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    payload = {"current_password": TEST_USER_REGULAR_PASSWORD, "new_password": "CambioClave789"}
    response = await client.post(f"{settings.API_V1_STR}/auth/change-password", headers=headers, json=payload)
    assert response.status_code == status.HTTP_200_OK
    assert await get_auth_token(client, test_usuario_regular.email, "CambioClave789") is not None

    logs = db.query(AuditLog).filter(AuditLog.accion == "password.changed").all()
    assert len(logs) == 1


@pytest.mark.asyncio
async def test_change_password_wrong_current(client: AsyncClient, auth_token_usuario_regular: str):
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    payload = {"current_password": "NoEsLaActual1", "new_password": "CambioClave789"}
    response = await client.post(f"{settings.API_V1_STR}/auth/change-password", headers=headers, json=payload)
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["detail"] == "La contraseña actual no es correcta"


@pytest.mark.asyncio
async def test_change_password_must_differ(client: AsyncClient, auth_token_usuario_regular: str):
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    payload = {"current_password": TEST_USER_REGULAR_PASSWORD, "new_password": TEST_USER_REGULAR_PASSWORD}
    response = await client.post(f"{settings.API_V1_STR}/auth/change-password", headers=headers, json=payload)
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "La nueva contraseña debe ser diferente a la actual"


@pytest.mark.asyncio
async def test_regular_user_cannot_change_other_password(
    client: AsyncClient, test_admin: Usuario, auth_token_usuario_regular: str
):
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    payload = {
        "usuario_id": str(test_admin.id),
        "current_password": TEST_ADMIN_PASSWORD,
        "new_password": "Hackeada123",
    }
    response = await client.post(f"{settings.API_V1_STR}/auth/change-password", headers=headers, json=payload)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["detail"] == "No tienes permiso para cambiar esta contraseña"


@pytest.mark.asyncio
async def test_admin_changes_other_user_password(
    client: AsyncClient, test_usuario_regular: Usuario, auth_token_admin: str
):
    headers = {"Authorization": f"Bearer {auth_token_admin}"}
    payload = {
        "usuario_id": str(test_usuario_regular.id),
        "current_password": TEST_USER_REGULAR_PASSWORD,
        "new_password": "DesdeAdmin123",
    }
    response = await client.post(f"{settings.API_V1_STR}/auth/change-password", headers=headers, json=payload)
    assert response.status_code == status.HTTP_200_OK
    assert await get_auth_token(client, test_usuario_regular.email, "DesdeAdmin123") is not None
