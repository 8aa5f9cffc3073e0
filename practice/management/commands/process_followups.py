from django.core.management.base import BaseCommand

from practice.services.followups import BATCH_SIZE, process_due_follow_ups


class Command(BaseCommand):
    help = "Send the due J+7 follow-up emails now, without going through HTTP."

    def add_arguments(self, parser):
        parser.add_argument('--limit', type=int, default=BATCH_SIZE)

    def handle(self, *args, **opts):
        result = process_due_follow_ups(limit=opts['limit'])
        for err in result['errors']:
            self.stdout.write(self.style.WARNING(err))
        self.stdout.write(self.style.SUCCESS(result['message']))
