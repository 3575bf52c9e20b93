"""
Management command: purge_sessions

Sweeps sessions older than SESSION_COOKIE_AGE out of the session table.
Meant to be run periodically (cron, systemd timer) with the database store;
a presented session is also expired lazily when the gate checks it.
"""
from django.core.management.base import BaseCommand

from gate.gate import get_gate


class Command(BaseCommand):
    help = 'Remove expired sessions from the session table'

    def handle(self, *args, **options):
        removed = get_gate().purge_expired()
        self.stdout.write(self.style.SUCCESS(f'Purged {removed} expired session(s).'))
