from typing import Generator, Optional, Any
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
import logging

from app.core.config import settings
from app.core import security
from app.core.permissions import is_superuser
from app.db.session import SessionLocal

from app.models.usuario import Usuario
from app.schemas.enums import AccionPermisoEnum
from app.services.usuario import usuario_service
from app.services.permiso import permiso_service

logger = logging.getLogger(__name__)

__all__ = [
    "get_db", "reusable_oauth2", "get_current_user", "get_current_active_user",
    "PermissionChecker", "is_superuser", "user_can", "get_optional_active_user",
]


# --- Dependencia para la Sesión de Base de Datos ---
def get_db() -> Generator[Session, None, None]:
    """Dependency para obtener la sesión de base de datos."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# --- Dependencia para Autenticación ---
reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login/access-token"
)

def get_current_user(
    db: Session = Depends(get_db), token: str = Depends(reusable_oauth2)
) -> Usuario:
    """
    Obtiene el usuario actual a partir del token JWT de acceso.
    El usuario resuelto es el contexto explícito de la petición: cada ruta lo recibe por dependencia.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="No se pudieron validar las credenciales",
        headers={"WWW-Authenticate": "Bearer"},
    )
    token_data = security.decode_access_token(token)

    if not token_data or not token_data.sub:
        logger.warning("Token de acceso inválido o expirado.")
        raise credentials_exception

    user = db.get(Usuario, token_data.sub)
    if not user:
        logger.warning(f"Usuario no encontrado para ID {token_data.sub} en token válido.")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario no encontrado.")

    return user

def get_current_active_user(
    current_user: Usuario = Depends(get_current_user),
) -> Usuario:
    """Obtiene el usuario actual y verifica que esté activo y no bloqueado."""
    if not usuario_service.is_active(current_user):
        logger.warning(f"Acceso denegado: Usuario inactivo/bloqueado {current_user.email} (ID: {current_user.id}).")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El usuario está inactivo o bloqueado.")
    return current_user


class PermissionChecker:
    """
    Dependencia de FastAPI que exige un permiso y, opcionalmente, una acción concreta.
    Sin acción se exige READ. El superusuario pasa siempre.
    Devuelve el usuario actual para que la ruta pueda usarlo directamente.
    """
    def __init__(self, codigo: str, accion: Optional[AccionPermisoEnum] = None):
        if not codigo:
            logger.error("PermissionChecker inicializado sin código de permiso.")
            raise ValueError("El código de permiso requerido no puede estar vacío.")
        self.codigo = codigo
        self.accion = accion

    def __call__(
        self,
        request: Request,
        db: Session = Depends(get_db),
        current_user: Usuario = Depends(get_current_active_user),
    ) -> Usuario:
        accion = self.accion.value if self.accion else AccionPermisoEnum.READ.value
        logger.debug(f"PermissionChecker: Verificando '{self.codigo}:{accion}' para '{current_user.email}' en '{request.url.path}'.")

        if is_superuser(current_user):
            return current_user

        if not permiso_service.has_permission(db, usuario_id=current_user.id, codigo=self.codigo, accion=self.accion):
            logger.warning(
                f"Acceso denegado a '{current_user.email}' (Rol: {current_user.rol}) en '{request.url.path}'. "
                f"Permiso requerido: '{self.codigo}' con acción {accion}."
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="No tiene permiso para realizar esta acción."
            )

        logger.debug(f"PermissionChecker: Acceso concedido a '{current_user.email}'.")
        return current_user


def user_can(db: Session, usuario: Usuario, codigo: str, accion: Optional[Any] = None) -> bool:
    """Verificación en línea (dentro de una ruta) con la misma regla que PermissionChecker."""
    if is_superuser(usuario):
        return True
    return permiso_service.has_permission(db, usuario_id=usuario.id, codigo=codigo, accion=accion)


optional_oauth2 = OAuth2PasswordBearer(
    tokenUrl=f"{settings.API_V1_STR}/auth/login/access-token", auto_error=False
)

def get_optional_active_user(
    db: Session = Depends(get_db), token: Optional[str] = Depends(optional_oauth2)
) -> Optional[Usuario]:
    """Usuario activo si la petición trae un token válido; None en caso contrario."""
    if not token:
        return None
    token_data = security.decode_access_token(token)
    if not token_data or not token_data.sub:
        return None
    user = db.get(Usuario, token_data.sub)
    if not user or not usuario_service.is_active(user):
        return None
    return user
