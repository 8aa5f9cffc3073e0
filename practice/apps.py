import logging
import os
import sys

from django.apps import AppConfig
from django.conf import settings

logger = logging.getLogger(__name__)


class PracticeConfig(AppConfig):
    name = 'practice'
    verbose_name = 'Cabinet'
    default_auto_field = 'django.db.models.BigAutoField'

    def ready(self):
        if not settings.CRON_ENABLED:
            return
        # Only the serving process runs the timers (not migrate, shell, tests or the autoreloader parent).
        command = sys.argv[1] if len(sys.argv) > 1 else ''
        if command in {'runcron', 'migrate', 'shell', 'test', 'makemigrations', 'collectstatic'}:
            return
        if command == 'runserver' and os.environ.get('RUN_MAIN') != 'true':
            return
        from practice.cron import server_cron
        server_cron.start()
        logger.info("In-process cron started")
