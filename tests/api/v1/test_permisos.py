import pytest
from httpx import AsyncClient
from fastapi import status
from sqlalchemy.orm import Session
from datetime import datetime, timedelta, timezone

from app.core.config import settings
from app.core.permissions import PERM_CONSTANCIAS, PERM_RESOLUCIONES, PERM_ROLES, PERM_USERS
from app.models.audit_log import AuditLog
from app.models.usuario import Usuario
from app.models.usuario_permiso import UsuarioPermiso
from app.schemas.enums import AccionPermisoEnum, RolUsuarioEnum
from app.services.permiso import permiso_service

from conftest import crear_usuario


# ==============================================================================
# Verificación de permisos (servicio)
# ==============================================================================

def test_has_permission_without_grant(db: Session, test_usuario_regular: Usuario, catalogo_permisos):
    assert permiso_service.has_permission(db, usuario_id=test_usuario_regular.id, codigo=PERM_CONSTANCIAS) is False


def test_has_permission_defaults_to_read(db: Session, test_usuario_regular: Usuario, catalogo_permisos, otorgar):
    otorgar(test_usuario_regular, catalogo_permisos[PERM_CONSTANCIAS], ["READ"])
    assert permiso_service.has_permission(db, usuario_id=test_usuario_regular.id, codigo=PERM_CONSTANCIAS) is True
    assert permiso_service.has_permission(
        db, usuario_id=test_usuario_regular.id, codigo=PERM_CONSTANCIAS, accion=AccionPermisoEnum.CREATE
    ) is False


def test_grant_without_read_does_not_satisfy_default_check(
    db: Session, test_usuario_regular: Usuario, catalogo_permisos, otorgar
):
    otorgar(test_usuario_regular, catalogo_permisos[PERM_CONSTANCIAS], ["CREATE"])
    assert permiso_service.has_permission(db, usuario_id=test_usuario_regular.id, codigo=PERM_CONSTANCIAS) is False
    assert permiso_service.has_permission(
        db, usuario_id=test_usuario_regular.id, codigo=PERM_CONSTANCIAS, accion="CREATE"
    ) is True


def test_expired_grant_is_ignored(db: Session, test_usuario_regular: Usuario, catalogo_permisos, otorgar):
    ayer = datetime.now(timezone.utc) - timedelta(days=1)
    otorgar(test_usuario_regular, catalogo_permisos[PERM_CONSTANCIAS], ["READ"], expira_en=ayer)
    assert permiso_service.has_permission(db, usuario_id=test_usuario_regular.id, codigo=PERM_CONSTANCIAS) is False
    assert permiso_service.get_user_permissions(db, usuario_id=test_usuario_regular.id) == []


def test_grant_with_future_expiry_is_active(db: Session, test_usuario_regular: Usuario, catalogo_permisos, otorgar):
    manana = datetime.now(timezone.utc) + timedelta(days=1)
    otorgar(test_usuario_regular, catalogo_permisos[PERM_CONSTANCIAS], ["READ"], expira_en=manana)
    assert permiso_service.has_permission(db, usuario_id=test_usuario_regular.id, codigo=PERM_CONSTANCIAS) is True


def test_has_all_and_has_any(db: Session, test_usuario_regular: Usuario, catalogo_permisos, otorgar):
    otorgar(test_usuario_regular, catalogo_permisos[PERM_CONSTANCIAS], ["READ"])
    uid = test_usuario_regular.id

    # Códigos repetidos equivalen a un único código
    assert permiso_service.has_all_permissions(db, usuario_id=uid, codigos=[PERM_CONSTANCIAS, PERM_CONSTANCIAS]) is True
    assert permiso_service.has_all_permissions(db, usuario_id=uid, codigos=[PERM_CONSTANCIAS, PERM_RESOLUCIONES]) is False
    assert permiso_service.has_any_permission(db, usuario_id=uid, codigos=[PERM_CONSTANCIAS, PERM_RESOLUCIONES]) is True
    assert permiso_service.has_any_permission(db, usuario_id=uid, codigos=[PERM_RESOLUCIONES]) is False

    # Listas vacías
    assert permiso_service.has_all_permissions(db, usuario_id=uid, codigos=[]) is True
    assert permiso_service.has_any_permission(db, usuario_id=uid, codigos=[]) is False


# ==============================================================================
# Guardas de rutas
# ==============================================================================

@pytest.mark.asyncio
async def test_permission_checker_denies_without_grant(
    client: AsyncClient, catalogo_permisos, auth_token_usuario_regular: str
):
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    response = await client.get(f"{settings.API_V1_STR}/documents/constancias/", headers=headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_permission_checker_requires_specific_action(
    client: AsyncClient, test_usuario_regular: Usuario, catalogo_permisos, otorgar, auth_token_usuario_regular: str
):
    otorgar(test_usuario_regular, catalogo_permisos[PERM_CONSTANCIAS], ["READ"])
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}

    response = await client.get(f"{settings.API_V1_STR}/documents/constancias/", headers=headers)
    assert response.status_code == status.HTTP_200_OK

    form = {
        "dni": "70123456", "codigo_estudiante": "18121003", "nombre_completo": "Ana Ríos",
        "numero_constancia": "C-001-2024", "anio": "2024",
    }
    response = await client.post(f"{settings.API_V1_STR}/documents/constancias/", headers=headers, data=form)
    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_superadmin_bypasses_permission_checks(client: AsyncClient, auth_token_superadmin: str):
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    response = await client.get(f"{settings.API_V1_STR}/documents/resoluciones/", headers=headers)
    assert response.status_code == status.HTTP_200_OK


@pytest.mark.asyncio
async def test_admin_role_alone_grants_nothing(client: AsyncClient, catalogo_permisos, auth_token_admin: str):
    headers = {"Authorization": f"Bearer {auth_token_admin}"}
    response = await client.get(f"{settings.API_V1_STR}/users/", headers=headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN


@pytest.mark.asyncio
async def test_check_endpoint(
    client: AsyncClient, test_usuario_regular: Usuario, catalogo_permisos, otorgar, auth_token_usuario_regular: str
):
    otorgar(test_usuario_regular, catalogo_permisos[PERM_CONSTANCIAS], ["READ", "CREATE"])
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    url = f"{settings.API_V1_STR}/permissions/check"

    response = await client.post(url, headers=headers, json={"permission_code": PERM_CONSTANCIAS, "action": "CREATE"})
    assert response.json() == {"has_permission": True}
    response = await client.post(url, headers=headers, json={"permission_code": PERM_CONSTANCIAS, "action": "DELETE"})
    assert response.json() == {"has_permission": False}
    response = await client.post(url, headers=headers, json={"permission_code": "no.existe"})
    assert response.json() == {"has_permission": False}


@pytest.mark.asyncio
async def test_read_my_permissions(
    client: AsyncClient, test_usuario_regular: Usuario, catalogo_permisos, otorgar, auth_token_usuario_regular: str
):
    otorgar(test_usuario_regular, catalogo_permisos[PERM_CONSTANCIAS], ["READ"])
    otorgar(
        test_usuario_regular, catalogo_permisos[PERM_RESOLUCIONES], ["READ"],
        expira_en=datetime.now(timezone.utc) - timedelta(hours=1),
    )
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    response = await client.get(f"{settings.API_V1_STR}/permissions/user", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    codigos = [p["permiso"]["codigo"] for p in response.json()["permisos"]]
    assert codigos == [PERM_CONSTANCIAS]


# ==============================================================================
# Asignación de permisos
# ==============================================================================

@pytest.mark.asyncio
async def test_assign_add_remove_set(
    client: AsyncClient, db: Session, test_usuario_regular: Usuario, catalogo_permisos, auth_token_superadmin: str
):
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    url = f"{settings.API_V1_STR}/permissions/assign"
    constancias = catalogo_permisos[PERM_CONSTANCIAS]
    resoluciones = catalogo_permisos[PERM_RESOLUCIONES]
    uid = test_usuario_regular.id

    response = await client.post(url, headers=headers, json={
        "usuario_id": str(uid), "permisos": [str(constancias.id), str(resoluciones.id)],
        "accion": "add", "acciones": ["READ", "UPDATE"],
    })
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["usuarios_afectados"] == 1
    assert permiso_service.has_permission(db, usuario_id=uid, codigo=PERM_RESOLUCIONES, accion="UPDATE")

    # Agregar de nuevo no duplica ni falla
    response = await client.post(url, headers=headers, json={
        "usuario_id": str(uid), "permisos": [str(constancias.id)], "accion": "add",
    })
    assert response.status_code == status.HTTP_200_OK
    assert db.query(UsuarioPermiso).filter(UsuarioPermiso.usuario_id == uid).count() == 2

    response = await client.post(url, headers=headers, json={
        "usuario_id": str(uid), "permisos": [str(resoluciones.id)], "accion": "remove",
    })
    assert response.status_code == status.HTTP_200_OK
    assert not permiso_service.has_permission(db, usuario_id=uid, codigo=PERM_RESOLUCIONES)
    assert permiso_service.has_permission(db, usuario_id=uid, codigo=PERM_CONSTANCIAS)

    response = await client.post(url, headers=headers, json={
        "usuario_id": str(uid), "permisos": [str(resoluciones.id)], "accion": "set", "acciones": ["READ"],
    })
    assert response.status_code == status.HTTP_200_OK
    codigos = {g.permiso.codigo for g in permiso_service.get_user_permissions(db, usuario_id=uid)}
    assert codigos == {PERM_RESOLUCIONES}

    logs = db.query(AuditLog).filter(AuditLog.accion.like("permissions.%")).all()
    assert {log.accion for log in logs} == {"permissions.add", "permissions.remove", "permissions.set"}


@pytest.mark.asyncio
async def test_assign_by_role_reaches_every_user_of_role(
    client: AsyncClient, db: Session, catalogo_permisos, auth_token_superadmin: str
):
    moderadores = [
        crear_usuario(db, f"moderador{i}@unamad.edu.pe", "Moderador123", RolUsuarioEnum.MODERATOR) for i in range(2)
    ]
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    response = await client.post(f"{settings.API_V1_STR}/permissions/assign", headers=headers, json={
        "rol": "MODERATOR", "permisos": [str(catalogo_permisos[PERM_CONSTANCIAS].id)], "accion": "add",
    })
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["usuarios_afectados"] == 2
    for moderador in moderadores:
        assert permiso_service.has_permission(db, usuario_id=moderador.id, codigo=PERM_CONSTANCIAS)


@pytest.mark.asyncio
async def test_assign_requires_target(client: AsyncClient, catalogo_permisos, auth_token_superadmin: str):
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    response = await client.post(f"{settings.API_V1_STR}/permissions/assign", headers=headers, json={
        "permisos": [str(catalogo_permisos[PERM_CONSTANCIAS].id)], "accion": "add",
    })
    assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.asyncio
async def test_assign_unknown_permission(
    client: AsyncClient, test_usuario_regular: Usuario, catalogo_permisos, auth_token_superadmin: str
):
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    response = await client.post(f"{settings.API_V1_STR}/permissions/assign", headers=headers, json={
        "usuario_id": str(test_usuario_regular.id),
        "permisos": ["00000000-0000-0000-0000-000000000000"],
        "accion": "add",
    })
    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Algunos permisos no existen"


@pytest.mark.asyncio
async def test_assign_forbidden_without_roles_update(
    client: AsyncClient, db: Session, test_usuario_regular: Usuario, catalogo_permisos, otorgar,
    auth_token_usuario_regular: str
):
    # READ sobre roles no alcanza para asignar
    otorgar(test_usuario_regular, catalogo_permisos[PERM_ROLES], ["READ"])
    headers = {"Authorization": f"Bearer {auth_token_usuario_regular}"}
    response = await client.post(f"{settings.API_V1_STR}/permissions/assign", headers=headers, json={
        "usuario_id": str(test_usuario_regular.id),
        "permisos": [str(catalogo_permisos[PERM_USERS].id)],
        "accion": "add",
    })
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert not permiso_service.has_permission(db, usuario_id=test_usuario_regular.id, codigo=PERM_USERS)


@pytest.mark.asyncio
async def test_bulk_update_by_role(
    client: AsyncClient, db: Session, catalogo_permisos, auth_token_superadmin: str
):
    moderador = crear_usuario(db, "moderador@unamad.edu.pe", "Moderador123", RolUsuarioEnum.MODERATOR)
    permiso = catalogo_permisos[PERM_CONSTANCIAS]
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    url = f"{settings.API_V1_STR}/permissions/bulk-update"

    response = await client.post(url, headers=headers, json={"cambios": [
        {"rol": "MODERATOR", "permiso_id": str(permiso.id), "acciones": ["READ", "UPDATE"]},
    ]})
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["cambios_aplicados"] == 1
    assert permiso_service.has_permission(db, usuario_id=moderador.id, codigo=PERM_CONSTANCIAS, accion="UPDATE")

    # Lista vacía de acciones: se elimina la asignación
    response = await client.post(url, headers=headers, json={"cambios": [
        {"rol": "MODERATOR", "permiso_id": str(permiso.id), "acciones": []},
    ]})
    assert response.status_code == status.HTTP_200_OK
    assert not permiso_service.has_permission(db, usuario_id=moderador.id, codigo=PERM_CONSTANCIAS)


@pytest.mark.asyncio
async def test_permissions_by_role(
    client: AsyncClient, db: Session, test_usuario_regular: Usuario, catalogo_permisos, otorgar, auth_token_superadmin: str
):
    otorgar(test_usuario_regular, catalogo_permisos[PERM_CONSTANCIAS], ["READ"])
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    response = await client.get(f"{settings.API_V1_STR}/permissions/by-role", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["usuarios_por_rol"]["USER"] == 1
    assert data["usuarios_por_rol"]["SUPER_ADMIN"] == 1
    assert [p["codigo"] for p in data["permisos_por_rol"]["USER"]] == [PERM_CONSTANCIAS]
    assert data["permisos_por_rol"]["MODERATOR"] == []
    assert len(data["permisos"]) == len(catalogo_permisos)


@pytest.mark.asyncio
async def test_permission_catalog_crud(
    client: AsyncClient, db: Session, test_usuario_regular: Usuario, catalogo_permisos, otorgar,
    auth_token_superadmin: str
):
    headers = {"Authorization": f"Bearer {auth_token_superadmin}"}
    url = f"{settings.API_V1_STR}/permissions/"

    response = await client.post(url, headers=headers, json={
        "nombre": "Reportes", "codigo": "reports.access", "acciones": ["READ", "EXPORT"],
    })
    assert response.status_code == status.HTTP_201_CREATED
    creado = response.json()
    assert creado["acciones"] == ["READ", "EXPORT"]

    response = await client.post(url, headers=headers, json={"nombre": "Reportes", "codigo": "reports.access"})
    assert response.status_code in (status.HTTP_400_BAD_REQUEST, status.HTTP_409_CONFLICT)
    assert response.json()["detail"] == "Ya existe un permiso con ese código"

    nuevo = permiso_service.get_by_codigo(db, codigo="reports.access")
    otorgar(test_usuario_regular, nuevo, ["READ", "EXPORT"])
    assert permiso_service.has_permission(db, usuario_id=test_usuario_regular.id, codigo="reports.access", accion="EXPORT")

    # Al eliminar el permiso desaparecen sus asignaciones
    response = await client.delete(f"{url}{creado['id']}", headers=headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["msg"] == "Permiso eliminado correctamente"
    assert not permiso_service.has_permission(db, usuario_id=test_usuario_regular.id, codigo="reports.access")
    assert db.query(UsuarioPermiso).filter(UsuarioPermiso.usuario_id == test_usuario_regular.id).count() == 0
