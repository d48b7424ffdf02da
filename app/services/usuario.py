import logging
import secrets
from typing import Any, Dict, Optional, Union, List
from uuid import UUID
from datetime import datetime, timezone, timedelta

from sqlalchemy.orm import Session
from sqlalchemy import select, func
from fastapi import HTTPException, status

from app.core.config import settings
from app.core.permissions import PASSWORD_ADMIN_ROLES, SUPER_ADMIN_ROLE
from app.models.usuario import Usuario
from app.schemas.usuario import UsuarioCreate, UsuarioUpdate, UsuarioRegister

from .base_service import BaseService

from app.core.password import verify_password, get_password_hash

logger = logging.getLogger(__name__)


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    # SQLite devuelve fechas sin zona horaria; se guardan siempre en UTC
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class UsuarioService(BaseService[Usuario, UsuarioCreate, UsuarioUpdate]):
    """
    Servicio para gestionar Usuarios: alta, autenticación, verificación de correo
    y ciclo de vida de la contraseña.
    """
    not_found_message = "Usuario no encontrado"

    def get_by_email(self, db: Session, *, email: str) -> Optional[Usuario]:
        """Obtiene un usuario por su correo electrónico (sin distinguir mayúsculas)."""
        statement = select(self.model).where(self.model.email == email.lower())
        return db.execute(statement).scalar_one_or_none()

    def get_multi_ordered(self, db: Session, *, skip: int = 0, limit: int = 100) -> List[Usuario]:
        statement = select(self.model).order_by(self.model.created_at.desc()).offset(skip).limit(limit)
        return list(db.execute(statement).scalars().all())

    def register(self, db: Session, *, obj_in: UsuarioRegister) -> Usuario:
        """
        Auto-registro: la cuenta queda inactiva con un token de verificación.
        NO realiza db.commit().
        """
        if self.get_by_email(db, email=obj_in.email):
            logger.warning(f"Intento de registro con email duplicado: {obj_in.email}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El usuario ya existe")

        db_obj = self.model(
            email=obj_in.email.lower(),
            nombre=obj_in.nombre,
            hashed_password=get_password_hash(obj_in.password),
            activo=False,
            token_verificacion=secrets.token_hex(32),
        )
        db.add(db_obj)
        logger.info(f"Usuario '{db_obj.email}' registrado (pendiente de verificación).")
        return db_obj

    def create(self, db: Session, *, obj_in: UsuarioCreate) -> Usuario:
        """
        Alta por un administrador: cuenta activa y con el correo verificado.
        Los permisos iniciales se asignan desde la ruta con el servicio de permisos.
        NO realiza db.commit().
        """
        if self.get_by_email(db, email=obj_in.email):
            logger.warning(f"Intento de crear usuario con email duplicado: {obj_in.email}")
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El email ya está registrado")

        db_obj = self.model(
            email=obj_in.email.lower(),
            nombre=obj_in.nombre,
            hashed_password=get_password_hash(obj_in.password),
            rol=obj_in.rol.value,
            activo=obj_in.activo,
            email_verificado=datetime.now(timezone.utc),
        )
        db.add(db_obj)
        logger.info(f"Usuario '{db_obj.email}' preparado para ser creado con rol {db_obj.rol}.")
        return db_obj

    def update(
        self,
        db: Session,
        *,
        db_obj: Usuario,
        obj_in: Union[UsuarioUpdate, Dict[str, Any]]
    ) -> Usuario:
        """
        Actualiza un usuario existente. `permisos` se ignora aquí (lo maneja la ruta).
        NO realiza db.commit().
        """
        update_data = obj_in if isinstance(obj_in, dict) else obj_in.model_dump(exclude_unset=True)
        update_data.pop("permisos", None)

        if update_data.get("email") and update_data["email"] != db_obj.email:
            existing = self.get_by_email(db, email=update_data["email"])
            if existing and existing.id != db_obj.id:
                logger.warning(f"Conflicto de email al actualizar usuario {db_obj.id} a '{update_data['email']}'.")
                raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El email ya está en uso")
        elif "email" in update_data and not update_data["email"]:
            update_data.pop("email")

        if update_data.get("rol") is not None:
            update_data["rol"] = getattr(update_data["rol"], "value", update_data["rol"])
        if update_data.get("bloqueado") is False:
            update_data["intentos_fallidos"] = 0

        return super().update(db, db_obj=db_obj, obj_in=update_data)

    def authenticate(
        self, db: Session, *, email: str, password: str
    ) -> Optional[Usuario]:
        """
        Autentica a un usuario por email y contraseña.
        Cada fallo incrementa `intentos_fallidos`; al llegar al máximo la cuenta se bloquea.
        Devuelve el usuario bloqueado sin verificar la contraseña para que la ruta decida el mensaje.
        NO realiza db.commit().
        """
        user = self.get_by_email(db, email=email)
        if not user:
            logger.warning(f"Intento de login fallido: Usuario '{email}' no encontrado.")
            return None

        if user.bloqueado:
            logger.warning(f"Intento de login para usuario '{email}' que ya está bloqueado.")
            return user

        if not verify_password(password, user.hashed_password):
            logger.warning(f"Intento de login fallido: Contraseña incorrecta para usuario '{email}'.")
            user.intentos_fallidos = (user.intentos_fallidos or 0) + 1
            if user.intentos_fallidos >= settings.MAX_FAILED_ATTEMPTS_BEFORE_LOCK:
                user.bloqueado = True
                logger.warning(f"Usuario '{email}' bloqueado por exceder {settings.MAX_FAILED_ATTEMPTS_BEFORE_LOCK} intentos fallidos.")
            db.add(user)
            return None

        return user

    def is_active(self, user: Usuario) -> bool:
        """Un usuario puede operar si está activo y no bloqueado."""
        return bool(user.activo) and not user.bloqueado

    def handle_successful_login(self, db: Session, *, user: Usuario) -> None:
        """
        Resetea intentos fallidos y actualiza la fecha de último login.
        NO realiza db.commit().
        """
        user.ultimo_login = datetime.now(timezone.utc)
        user.intentos_fallidos = 0
        db.add(user)

    # --- Verificación de correo ---
    def verify_email(self, db: Session, *, token: str) -> Usuario:
        """
        Activa la cuenta asociada al token si sigue inactiva y tiene menos de
        EMAIL_VERIFICATION_EXPIRE_HOURS de antigüedad. NO realiza db.commit().
        """
        statement = select(self.model).where(
            self.model.token_verificacion == token,
            self.model.activo.is_(False),
        )
        user = db.execute(statement).scalar_one_or_none()
        if not user:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Token inválido o ya utilizado")

        created_at = _as_utc(user.created_at) or datetime.now(timezone.utc)
        if datetime.now(timezone.utc) - created_at > timedelta(hours=settings.EMAIL_VERIFICATION_EXPIRE_HOURS):
            logger.warning(f"Token de verificación expirado para '{user.email}'.")
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="El token ha expirado. Por favor, solicita un nuevo enlace de verificación.",
            )

        user.activo = True
        user.email_verificado = datetime.now(timezone.utc)
        user.token_verificacion = None
        db.add(user)
        logger.info(f"Email verificado para el usuario '{user.email}'.")
        return user

    # --- Ciclo de vida de la contraseña ---
    def initiate_password_reset(self, db: Session, *, email: str) -> Optional[Usuario]:
        """
        Genera un token de reseteo si el email pertenece a una cuenta activa.
        Devuelve None en cualquier otro caso; el llamador responde siempre lo mismo.
        NO realiza db.commit().
        """
        user = self.get_by_email(db, email=email)
        if not user or not user.activo:
            logger.info(f"Solicitud de reseteo ignorada para '{email}' (inexistente o inactivo).")
            return None

        user.token_reseteo = secrets.token_hex(32)
        user.token_reseteo_expiracion = datetime.now(timezone.utc) + timedelta(
            minutes=settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES
        )
        db.add(user)
        logger.info(f"Token de reseteo de contraseña generado para '{email}'.")
        return user

    def confirm_password_reset(self, db: Session, *, token: str, new_password: str) -> Usuario:
        """
        Consume un token de reseteo vigente y fija la nueva contraseña.
        NO realiza db.commit().
        """
        now = datetime.now(timezone.utc)
        statement = select(self.model).where(
            self.model.token_reseteo == token,
            self.model.token_reseteo_expiracion > now,
        )
        user = db.execute(statement).scalar_one_or_none()
        if not user:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Token inválido o expirado")

        user.hashed_password = get_password_hash(new_password)
        user.token_reseteo = None
        user.token_reseteo_expiracion = None
        user.bloqueado = False
        user.intentos_fallidos = 0
        db.add(user)
        logger.info(f"Contraseña reseteada exitosamente para '{user.email}'.")
        return user

    def change_password(
        self,
        db: Session,
        *,
        actor: Usuario,
        target_id: Optional[UUID],
        current_password: str,
        new_password: str,
    ) -> Usuario:
        """
        Cambia la contraseña propia o, si el actor es ADMIN/SUPER_ADMIN, la de otro usuario.
        Siempre se verifica la contraseña actual del usuario destino.
        NO realiza db.commit().
        """
        if target_id is not None and target_id != actor.id and actor.rol not in PASSWORD_ADMIN_ROLES:
            logger.warning(f"Usuario '{actor.email}' intentó cambiar la contraseña de {target_id} sin permiso.")
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="No tienes permiso para cambiar esta contraseña")

        user = actor if target_id is None or target_id == actor.id else self.get(db, id=target_id)
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Usuario no encontrado")

        if not verify_password(current_password, user.hashed_password):
            logger.warning(f"Cambio de contraseña fallido para '{user.email}': contraseña actual incorrecta.")
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="La contraseña actual no es correcta")

        if verify_password(new_password, user.hashed_password):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="La nueva contraseña debe ser diferente a la actual",
            )

        user.hashed_password = get_password_hash(new_password)
        db.add(user)
        logger.info(f"Contraseña actualizada para '{user.email}' por '{actor.email}'.")
        return user

    def set_password(self, db: Session, *, user: Usuario, new_password: str) -> Usuario:
        """Contraseña fijada por un administrador. Desbloquea la cuenta. NO realiza db.commit()."""
        user.hashed_password = get_password_hash(new_password)
        user.bloqueado = False
        user.intentos_fallidos = 0
        db.add(user)
        return user

    # --- Reglas de administración ---
    def count_by_role(self, db: Session, *, rol: str) -> int:
        statement = select(func.count(self.model.id)).where(self.model.rol == rol)
        return db.execute(statement).scalar_one()

    def remove_checked(self, db: Session, *, actor: Usuario, user_id: UUID) -> Usuario:
        """
        Elimina un usuario salvo que sea el propio actor o el último SUPER_ADMIN.
        NO realiza db.commit().
        """
        if user_id == actor.id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No puedes eliminar tu propio usuario")
        user = self.get_or_404(db, id=user_id)
        if user.rol == SUPER_ADMIN_ROLE and self.count_by_role(db, rol=SUPER_ADMIN_ROLE) <= 1:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="No se puede eliminar el último super administrador",
            )
        db.delete(user)
        logger.warning(f"Usuario '{user.email}' (ID: {user_id}) preparado para ser eliminado por '{actor.email}'.")
        return user

    def toggle_status(self, db: Session, *, actor: Usuario, user_id: UUID) -> Usuario:
        if user_id == actor.id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No puedes desactivar tu propio usuario")
        user = self.get_or_404(db, id=user_id)
        user.activo = not user.activo
        db.add(user)
        logger.info(f"Usuario '{user.email}' {'activado' if user.activo else 'desactivado'} por '{actor.email}'.")
        return user

usuario_service = UsuarioService(Usuario)
