import logging
from celery import Celery

from app.core.config import settings
# El worker también escribe en los logs de la aplicación
from app.core.logging_config import setup_logging

# Configurar logging para el worker ANTES de definir tareas
setup_logging()
logger = logging.getLogger(__name__)
logger.info("Configurando Celery worker...")

celery_app = Celery(
    "worker",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    # Módulos donde están definidas las tareas
    include=["app.tasks.email_tasks"]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
)

logger.info(f"Celery worker configurado. Broker: {settings.CELERY_BROKER_URL}")

# Para ejecutar el worker desde el directorio raíz del proyecto:
# celery -A app.worker worker --loglevel=info
