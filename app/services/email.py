"""
Correos transaccionales del portal. El envío real lo hace la tarea Celery
`task_send_email`; desde la API solo se encola, y un fallo al encolar se
registra sin afectar la operación que lo originó.
"""
import logging

from app.core.config import settings
from app.tasks.email_tasks import task_send_email

logger = logging.getLogger(__name__)


def dispatch_email(recipient_email: str, subject: str, html_content: str) -> bool:
    try:
        task_send_email.delay(recipient_email, subject, html_content)
    except Exception as e:
        logger.error(f"No se pudo encolar el email '{subject}' para {recipient_email}: {e}", exc_info=True)
        return False
    logger.info(f"Email '{subject}' encolado para {recipient_email}")
    return True


def _layout(titulo: str, cuerpo: str) -> str:
    return (
        "<div style=\"font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;\">"
        f"<h2 style=\"color: #1e3a8a;\">{titulo}</h2>{cuerpo}"
        f"<p style=\"color: #6b7280; font-size: 12px;\">{settings.PROJECT_NAME}</p></div>"
    )


def send_verification_email(email: str, nombre: str, token: str) -> bool:
    link = f"{settings.FRONTEND_URL}/verify-email?token={token}"
    cuerpo = (
        f"<p>Hola {nombre},</p>"
        "<p>Gracias por registrarte. Confirma tu correo para activar tu cuenta:</p>"
        f"<p><a href=\"{link}\">Verificar mi correo</a></p>"
        f"<p>El enlace vence en {settings.EMAIL_VERIFICATION_EXPIRE_HOURS} horas.</p>"
    )
    return dispatch_email(email, "Verifica tu correo electrónico", _layout("Verificación de correo", cuerpo))


def send_welcome_email(email: str, nombre: str) -> bool:
    cuerpo = (
        f"<p>Hola {nombre},</p>"
        "<p>Tu cuenta fue activada. Ya puedes iniciar sesión en el portal.</p>"
        f"<p><a href=\"{settings.FRONTEND_URL}/login\">Ir al portal</a></p>"
    )
    return dispatch_email(email, "Bienvenido al portal", _layout("¡Bienvenido!", cuerpo))


def send_password_reset_email(email: str, nombre: str, token: str) -> bool:
    link = f"{settings.FRONTEND_URL}/reset-password?token={token}"
    cuerpo = (
        f"<p>Hola {nombre},</p>"
        "<p>Recibimos una solicitud para restablecer tu contraseña.</p>"
        f"<p><a href=\"{link}\">Restablecer contraseña</a></p>"
        f"<p>El enlace vence en {settings.PASSWORD_RESET_TOKEN_EXPIRE_MINUTES} minutos. "
        "Si no fuiste tú, ignora este correo.</p>"
    )
    return dispatch_email(email, "Restablecer contraseña", _layout("Restablecer contraseña", cuerpo))
