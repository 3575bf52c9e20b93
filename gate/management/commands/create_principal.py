"""
Management command: create_principal

Adds a user to the credential store. Without --password a random password is
generated and printed once, so a fresh install always has a usable login.
"""
from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError
from django.utils.crypto import get_random_string


class Command(BaseCommand):
    help = 'Create a user that can sign in through the access gate'

    def add_arguments(self, parser):
        parser.add_argument('--username', type=str, default='user')
        parser.add_argument('--password', type=str, default=None)

    def handle(self, *args, **options):
        User = get_user_model()
        username = options['username'].strip()
        password = options['password']

        if not username:
            raise CommandError('Username must not be blank.')

        if User.objects.filter(username=username).exists():
            self.stdout.write(self.style.WARNING(f'User "{username}" already exists.'))
            return

        generated = not password
        if generated:
            password = get_random_string(20)

        User.objects.create_user(username=username, password=password)
        self.stdout.write(self.style.SUCCESS(f'User created: {username}'))
        if generated:
            self.stdout.write(f'Using generated password: {password}')
