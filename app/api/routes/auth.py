import logging
from typing import Any, Optional
from uuid import UUID as PyUUID

from fastapi import APIRouter, Depends, HTTPException, status, BackgroundTasks, Request
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError, IntegrityError

from app.api import deps
from app.core import security
from app.db.session import SessionLocal
from app.models.usuario import Usuario as UsuarioModel
from app.schemas.common import Msg
from app.schemas.token import Token, RefreshToken as RefreshTokenSchema
from app.schemas.usuario import Usuario, UsuarioRegister
from app.schemas.password import (
    ForgotPasswordRequest, ResetPasswordRequest, ChangePasswordRequest, VerifyEmailRequest
)
from app.services import email as email_service
from app.services.audit_log import audit_log_service, request_metadata
from app.services.usuario import usuario_service

router = APIRouter()
logger = logging.getLogger(__name__)

GENERIC_RESET_MESSAGE = "Si el correo existe, recibirás instrucciones para restablecer tu contraseña"

# --- Función para Tarea de Fondo (Manejo Seguro de Sesión DB) ---
def log_login_attempt_task(
    email_attempt: Optional[str],
    success: bool,
    ip_address: Optional[str],
    user_agent: Optional[str],
    fail_reason: Optional[str] = None,
    user_id: Optional[PyUUID] = None
):
    """
    Tarea de fondo para registrar un intento de login en la auditoría.
    Crea y cierra su propia sesión de base de datos para operar de forma independiente.
    """
    db: Optional[Session] = None
    try:
        db = SessionLocal()
        audit_log_service.record(
            db,
            accion="auth.login.success" if success else "auth.login.failed",
            entidad="usuario",
            entidad_id=user_id,
            usuario_id=user_id,
            cambios={"email": email_attempt, "motivo": fail_reason} if fail_reason else {"email": email_attempt},
            metadatos={"ip": ip_address, "user_agent": user_agent},
        )
        db.commit()
        logger.info(f"Intento de login (Email: '{email_attempt}', Exito: {success}) registrado en background.")

    except IntegrityError as e:
        logger.warning(
            f"No se pudo registrar el intento de login para '{email_attempt}'. "
            f"El usuario asociado (ID: {user_id}) probablemente fue eliminado. Error: {e}"
        )
        if db:
            db.rollback()

    except SQLAlchemyError as e_sql:
        logger.error(f"ERROR de SQLAlchemy en tarea de fondo log_login_attempt_task: {e_sql}", exc_info=True)
        if db:
            db.rollback()

    finally:
        if db:
            db.close()

# --- Rutas de Login ---
@router.post("/login/access-token", response_model=Token)
def login_access_token(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(deps.get_db),
    form_data: OAuth2PasswordRequestForm = Depends()
) -> Any:
    """
    Endpoint de login (el campo `username` del formulario es el email).
    Cada fallo suma un intento; al superar el máximo la cuenta queda bloqueada.
    """
    meta = request_metadata(request)
    email_attempt = form_data.username.strip().lower()
    logger.info(f"Intento de login para '{email_attempt}' desde IP {meta.get('ip')}")

    user = usuario_service.authenticate(db, email=email_attempt, password=form_data.password)
    # El contador de intentos fallidos se persiste aunque el login falle
    db.commit()

    if not user or not usuario_service.is_active(user):
        if not user:
            fail_reason, detail = "Credenciales incorrectas", "Email o contraseña incorrectos"
        elif user.bloqueado:
            fail_reason = "Usuario bloqueado"
            detail = "Cuenta bloqueada por múltiples intentos fallidos. Contacta al administrador."
        else:
            fail_reason, detail = "Usuario inactivo", "La cuenta no está activa. Verifica tu correo electrónico."
        background_tasks.add_task(
            log_login_attempt_task,
            email_attempt=email_attempt, success=False, ip_address=meta.get("ip"),
            user_agent=meta.get("user_agent"), fail_reason=fail_reason, user_id=user.id if user else None
        )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        usuario_service.handle_successful_login(db, user=user)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error crítico al registrar el login de {user.email}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Error interno del servidor al procesar el login.")

    logger.info(f"Login exitoso para '{email_attempt}'.")
    background_tasks.add_task(
        log_login_attempt_task,
        email_attempt=email_attempt, success=True,
        ip_address=meta.get("ip"), user_agent=meta.get("user_agent"), user_id=user.id
    )

    return {
        "access_token": security.create_access_token(subject=user.id),
        "refresh_token": security.create_refresh_token(subject=user.id),
        "token_type": "bearer"
    }


@router.post("/refresh-token", response_model=Token, summary="Refresca un Access Token")
def refresh_access_token(
    token_data: RefreshTokenSchema,
    db: Session = Depends(deps.get_db),
):
    """
    Obtiene un nuevo par de tokens a partir de un refresh token válido.
    """
    payload = security.decode_refresh_token(token_data.refresh_token)
    if not payload or not payload.sub:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Token de refresco inválido o expirado")

    user = usuario_service.get(db, id=payload.sub)
    if not user or not usuario_service.is_active(user):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Usuario no encontrado o inactivo")

    return {
        "access_token": security.create_access_token(subject=user.id),
        "refresh_token": security.create_refresh_token(subject=user.id),
        "token_type": "bearer",
    }


@router.get("/me", response_model=Usuario, summary="Perfil del usuario autenticado")
def read_me(current_user: UsuarioModel = Depends(deps.get_current_active_user)):
    return current_user


# --- Registro y verificación de correo ---
@router.post("/register", response_model=Usuario, status_code=status.HTTP_201_CREATED)
def register(
    *,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(deps.get_db),
    user_in: UsuarioRegister,
):
    """
    **Endpoint público.** Crea una cuenta inactiva y envía el enlace de verificación.
    """
    try:
        user = usuario_service.register(db, obj_in=user_in)
        db.flush()
        audit_log_service.record(
            db, accion="users.registered", entidad="usuario", entidad_id=user.id,
            usuario_id=user.id, request=request,
        )
        db.commit()
        db.refresh(user)
    except HTTPException:
        db.rollback()
        raise
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="El usuario ya existe")
    except Exception as e:
        db.rollback()
        logger.error(f"Error en registro de '{user_in.email}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor")

    background_tasks.add_task(
        email_service.send_verification_email, user.email, user.nombre, user.token_verificacion
    )
    return user


@router.post("/verify-email", response_model=Msg)
def verify_email(
    *,
    background_tasks: BackgroundTasks,
    db: Session = Depends(deps.get_db),
    data: VerifyEmailRequest,
):
    """
    **Endpoint público.** Activa la cuenta si el token es válido y la cuenta tiene menos de 24 horas.
    """
    try:
        user = usuario_service.verify_email(db, token=data.token)
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error verificando email: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error interno del servidor")

    background_tasks.add_task(email_service.send_welcome_email, user.email, user.nombre)
    return Msg(msg="Email verificado exitosamente. Ya puedes iniciar sesión.")


# --- Ciclo de vida de la contraseña ---
@router.post("/forgot-password", response_model=Msg)
def forgot_password(
    *,
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(deps.get_db),
    data: ForgotPasswordRequest,
):
    """
    **Endpoint público.** La respuesta es idéntica exista o no la cuenta.
    """
    try:
        user = usuario_service.initiate_password_reset(db, email=data.email)
        if user:
            audit_log_service.record(
                db, accion="password.reset.requested", entidad="usuario", entidad_id=user.id,
                usuario_id=user.id, request=request,
            )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Error al procesar la recuperación de contraseña para '{data.email}': {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al procesar la solicitud")

    if user:
        background_tasks.add_task(
            email_service.send_password_reset_email, user.email, user.nombre, user.token_reseteo
        )
    return Msg(msg=GENERIC_RESET_MESSAGE)


@router.post("/reset-password", response_model=Msg)
def reset_password(
    *,
    request: Request,
    db: Session = Depends(deps.get_db),
    data: ResetPasswordRequest,
):
    """**Endpoint público.** Consume el token de reseteo y fija la nueva contraseña."""
    try:
        user = usuario_service.confirm_password_reset(db, token=data.token, new_password=data.password)
        audit_log_service.record(
            db, accion="password.reset.completed", entidad="usuario", entidad_id=user.id,
            usuario_id=user.id, request=request,
        )
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error en reset de contraseña: {e}", exc_info=True)
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Error al restablecer la contraseña")
    return Msg(msg="Contraseña actualizada exitosamente")


@router.post("/change-password", response_model=Msg, summary="Cambia la contraseña propia o, si es administrador, la de otro usuario")
def change_password(
    *,
    request: Request,
    password_data: ChangePasswordRequest,
    db: Session = Depends(deps.get_db),
    current_user: UsuarioModel = Depends(deps.get_current_active_user)
):
    logger.info(f"Usuario '{current_user.email}' ha solicitado cambiar una contraseña.")
    try:
        user = usuario_service.change_password(
            db,
            actor=current_user,
            target_id=password_data.usuario_id,
            current_password=password_data.current_password,
            new_password=password_data.new_password,
        )
        audit_log_service.record(
            db, accion="password.changed", entidad="usuario", entidad_id=user.id,
            usuario_id=current_user.id, request=request,
        )
        db.commit()
    except HTTPException:
        db.rollback()
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Error al cambiar la contraseña (actor '{current_user.email}'): {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Error al cambiar la contraseña"
        )
    return Msg(msg="Contraseña actualizada exitosamente")
