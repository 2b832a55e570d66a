"""
Management command to close deals whose end time has passed.

Meant to run from cron or a scheduler every few minutes.

Usage:
    python manage.py close_expired_deals
    python manage.py close_expired_deals --dry-run
"""

from django.core.management.base import BaseCommand
from django.utils import timezone

from apps.deals.models import Deal, DealStatus
from apps.deals.services import close_expired_deals


class Command(BaseCommand):
    help = 'Close expired deals and charge their participants'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='List expired deals without closing them',
        )

    def handle(self, *args, **options):
        now = timezone.now()
        expired = Deal.objects.filter(status=DealStatus.ACTIVE, end_time__lte=now)
        count = expired.count()

        if count == 0:
            self.stdout.write(self.style.SUCCESS('No expired deals to close.'))
            return

        self.stdout.write(f'\nFound {count} expired deal(s):\n')
        for deal in expired:
            self.stdout.write(
                f'  - {deal.name} | {deal.participant_count} joined '
                f'(min {deal.min_participants}) | Ended: {deal.end_time:%Y-%m-%d %H:%M}'
            )

        if options['dry_run']:
            self.stdout.write(self.style.WARNING('\n--dry-run mode: No changes made.'))
            return

        results = close_expired_deals(now=now)

        for result in results:
            line = f'  {result.deal_id}: {result.status} ({result.charged} charged, {result.failed} failed)'
            if result.status == DealStatus.CLOSED:
                self.stdout.write(self.style.SUCCESS(line))
            else:
                self.stdout.write(self.style.WARNING(line))

        self.stdout.write(self.style.SUCCESS(f'\nProcessed {len(results)} deal(s).'))
