import logging
import smtplib
from email.message import EmailMessage

from app.worker import celery_app
from app.core.config import settings

logger = logging.getLogger(__name__)


@celery_app.task(name="tasks.send_email", bind=True, max_retries=3, default_retry_delay=60)
def task_send_email(self, recipient_email: str, subject: str, html_content: str) -> str:
    """
    Tarea Celery que entrega un correo HTML por SMTP.
    Los errores de conexión se reintentan; tras el último intento solo se registran.
    """
    logger.info(f"Iniciando tarea: Enviar email a {recipient_email}, Asunto: {subject}")
    if not settings.SMTP_HOST:
        logger.warning(f"SMTP_HOST no configurado. Email a {recipient_email} descartado.")
        return f"SMTP no configurado; email a {recipient_email} no enviado"

    message = EmailMessage()
    message["From"] = settings.EMAILS_FROM
    message["To"] = recipient_email
    message["Subject"] = subject
    message.set_content("Este correo requiere un cliente compatible con HTML.")
    message.add_alternative(html_content, subtype="html")

    try:
        with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT, timeout=30) as smtp:
            smtp.starttls()
            if settings.SMTP_USER:
                smtp.login(settings.SMTP_USER, settings.SMTP_PASSWORD or "")
            smtp.send_message(message)
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Error en tarea send_email para {recipient_email}: {e}", exc_info=True)
        if self.request.retries < self.max_retries:
            raise self.retry(exc=e)
        return f"Error al enviar email: {e}"

    logger.info(f"Tarea completada: Email enviado a {recipient_email}.")
    return f"Email enviado a {recipient_email}"
