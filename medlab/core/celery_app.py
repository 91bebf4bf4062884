from celery import Celery

from medlab.core.config import get_settings

settings = get_settings()

celery_app = Celery("medlab", broker=settings.broker_url)
celery_app.conf.update(task_serializer="json", accept_content=["json"], broker_connection_retry_on_startup=False)
