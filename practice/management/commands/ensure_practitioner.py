from django.core.management.base import BaseCommand, CommandError

from practice.models import Practitioner
from practice.services.practitioners import create_account, find_user_by_email


class Command(BaseCommand):
    help = "Ensure a login user with a practitioner profile exists (idempotent; resets the password)."

    def add_arguments(self, parser):
        parser.add_argument('--email', required=True)
        parser.add_argument('--password', required=True)
        parser.add_argument('--first-name', default='')
        parser.add_argument('--last-name', default='')

    def handle(self, *args, **opts):
        email = opts['email'].strip().lower()
        if len(opts['password']) < 8:
            raise CommandError('Le mot de passe doit contenir au moins 8 caractères')

        user = find_user_by_email(email)
        if user is None:
            create_account(email=email, password=opts['password'],
                           first_name=opts['first_name'], last_name=opts['last_name'])
            self.stdout.write(self.style.SUCCESS(f"created: {email}"))
            return

        user.set_password(opts['password'])
        user.is_active = True
        user.save(update_fields=['password', 'is_active'])
        _, created = Practitioner.objects.get_or_create(
            user=user,
            defaults={'email': email, 'first_name': opts['first_name'] or user.first_name,
                      'last_name': opts['last_name'] or user.last_name},
        )
        self.stdout.write(self.style.SUCCESS(f"ok: {email}" + (" (profile created)" if created else "")))
