"""
Management command to grant or revoke platform-operator access.

This is the only way the flag changes: no API endpoint, company name or
role can set it.
"""
from django.core.management.base import BaseCommand, CommandError
from apps.core.logging import SecurityLogger
from apps.rbac.models import User


class Command(BaseCommand):
    help = 'Grant (or with --revoke, remove) platform-operator access for an account'

    def add_arguments(self, parser):
        parser.add_argument(
            '--email',
            type=str,
            required=True,
            help='Email of the identity account',
        )
        parser.add_argument(
            '--revoke',
            action='store_true',
            help='Remove the flag instead of granting it',
        )

    def handle(self, *args, **options):
        email = options['email']
        grant = not options['revoke']

        user = User.objects.by_email(email)
        if user is None:
            raise CommandError(f'No account with email {email}')

        if user.is_platform_operator == grant:
            state = 'already a' if grant else 'not a'
            self.stdout.write(self.style.WARNING(f'{user.email} is {state} platform operator'))
            return

        User.objects.filter(pk=user.pk).update(is_platform_operator=grant)
        SecurityLogger.log_platform_operator_changed(user.email, grant)

        verb = 'Granted' if grant else 'Revoked'
        self.stdout.write(self.style.SUCCESS(f'{verb} platform-operator access for {user.email}'))
