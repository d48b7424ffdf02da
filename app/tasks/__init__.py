# Importa las tareas para que Celery las descubra
from .email_tasks import task_send_email

__all__ = [
    "task_send_email",
]
