"""
Management command to expire lapsed reservations.

Usage:
    python manage.py cleanup_expired_reservations
    python manage.py cleanup_expired_reservations --dry-run
"""

from django.core.management.base import BaseCommand

from stockledger import stock
from stockledger.models import Reservation


class Command(BaseCommand):
    """Expire lapsed reservations command."""

    help = 'Marks active reservations past their expiry as expired'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show how many would expire without changing anything'
        )

    def handle(self, *args, **options):
        if options['dry_run']:
            expired = Reservation.objects.expired().count()
            self.stdout.write(f'{expired} reservation(s) would expire')
        else:
            count = stock.cleanup_expired()
            self.stdout.write(
                self.style.SUCCESS(f'{count} reservation(s) expired')
            )
