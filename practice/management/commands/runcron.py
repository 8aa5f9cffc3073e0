from apscheduler.schedulers.blocking import BlockingScheduler
from django.conf import settings
from django.core.management.base import BaseCommand

from practice.cron import ServerCron


class Command(BaseCommand):
    help = "Run the periodic jobs (follow-ups, inbox sync, survey sync) in the foreground."

    def add_arguments(self, parser):
        parser.add_argument('--base-url', default=None, help="Server to call (default CRON_BASE_URL)")

    def handle(self, *args, **opts):
        cron = ServerCron(base_url=opts['base_url'])
        self.stdout.write(self.style.SUCCESS(
            f"Cron calling {opts['base_url'] or settings.CRON_BASE_URL}; Ctrl+C to stop."))
        try:
            cron.start(blocking_scheduler=BlockingScheduler(timezone=settings.TIME_ZONE))
        except (KeyboardInterrupt, SystemExit):
            cron.stop()
