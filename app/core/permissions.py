from app.schemas.enums import RolUsuarioEnum

# =================================================================
# Roles del Sistema
# =================================================================
SUPER_ADMIN_ROLE = RolUsuarioEnum.SUPER_ADMIN.value
ADMIN_ROLE = RolUsuarioEnum.ADMIN.value
MODERATOR_ROLE = RolUsuarioEnum.MODERATOR.value
USER_ROLE = RolUsuarioEnum.USER.value

# Roles que pueden cambiar la contraseña de otro usuario
PASSWORD_ADMIN_ROLES = {SUPER_ADMIN_ROLE, ADMIN_ROLE}


# =================================================================
# Códigos de Permiso
# =================================================================
# Cada código identifica un permiso de la tabla `permisos`; las acciones
# (READ, CREATE, UPDATE, DELETE, EXPORT) se otorgan por usuario.
# =================================================================

# --- Administración ---
PERM_USERS = "users.access"
PERM_ROLES = "roles.access"
PERM_SETTINGS = "settings.access"
PERM_DASHBOARD = "dashboard.access"

# --- Documentos ---
PERM_CONSTANCIAS = "constancias.access"
PERM_RESOLUCIONES = "resoluciones.access"


def is_superuser(usuario) -> bool:
    """
    Único criterio de omisión de permisos: el rol SUPER_ADMIN.
    Todas las rutas de autorización lo consultan antes de mirar las asignaciones.
    """
    return usuario is not None and usuario.rol == SUPER_ADMIN_ROLE
