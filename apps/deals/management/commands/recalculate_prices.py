"""
Management command to recalculate participant prices of active deals.

Use after changing the pricing formula or the default price delta.

Usage:
    python manage.py recalculate_prices
    python manage.py recalculate_prices --dry-run
"""

from django.core.management.base import BaseCommand
from django.db import transaction

from apps.deals.models import Deal, DealStatus
from apps.deals.pricing import calculate_all_participant_prices
from apps.deals.services import reprice_deal


class Command(BaseCommand):
    help = 'Recalculate participant prices for all active deals'

    def add_arguments(self, parser):
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show price changes without saving them',
        )

    def handle(self, *args, **options):
        dry_run = options['dry_run']
        deals = Deal.objects.filter(status=DealStatus.ACTIVE)

        self.stdout.write(f'Found {deals.count()} active deal(s)')

        total_changed = 0
        for deal in deals:
            if dry_run:
                changed = self.preview(deal)
            else:
                with transaction.atomic():
                    locked = Deal.objects.select_for_update().get(id=deal.id)
                    changed = reprice_deal(locked)
            self.stdout.write(f'  - {deal.name}: {changed} price(s) changed')
            total_changed += changed

        if dry_run:
            self.stdout.write(self.style.WARNING(
                f'\n--dry-run mode: {total_changed} price(s) would change.'
            ))
            return

        self.stdout.write(self.style.SUCCESS(f'\nUpdated {total_changed} participant price(s).'))

    def preview(self, deal):
        participants = list(deal.participants.order_by('position'))
        if not participants:
            return 0

        calculations = calculate_all_participant_prices(
            deal.original_price,
            deal.get_tiers(),
            [(p.position, p.quantity) for p in participants],
            deal.price_delta_percentage,
        )

        changed = 0
        for participant in participants:
            new_price = calculations[participant.position].dynamic_price
            if new_price != participant.price_paid:
                self.stdout.write(
                    f'      #{participant.position}: {participant.price_paid} -> {new_price}'
                )
                changed += 1
        return changed
