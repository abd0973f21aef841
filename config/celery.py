# config/celery.py

import os
import logging

from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

app = Celery('markethub')

# Read CELERY_* keys from Django settings
app.config_from_object('django.conf:settings', namespace='CELERY')

# Pick up tasks.py from every installed app
app.autodiscover_tasks()


@app.task(bind=True)
def debug_task(self):
    logger = logging.getLogger(__name__)
    logger.debug(f'Request: {self.request!r}')
