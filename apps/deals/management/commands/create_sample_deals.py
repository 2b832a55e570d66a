"""
Management command to create sample deals for local development.

Usage:
    python manage.py create_sample_deals
    python manage.py create_sample_deals --clear

This creates:
- 1 supplier (supplier@example.com)
- 6 active deals across categories, each with a 3-tier table
- Guest participants so the deals sit in different tiers
"""

from datetime import timedelta
from decimal import Decimal
import random

from django.core.management.base import BaseCommand
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from apps.accounts.models import User
from apps.deals.models import Deal, Participant, DealCategory
from apps.deals.pricing import get_current_tier
from apps.deals.services import create_deal, reprice_deal
from apps.deals.services.participation import current_deal_price


SAMPLE_DEALS = [
    {
        'name': 'Samsung 4-door refrigerator 636L',
        'description': 'Family refrigerator with Twin Cooling Plus',
        'category': DealCategory.ELECTRICAL,
        'original_price': Decimal('8500'),
        'target_participants': 100,
        'hours_left': 18,
        'participants': 45,
        'tiers': [(0, 30, 15, 7225), (31, 60, 20, 6800), (61, 100, 25, 6375)],
    },
    {
        'name': 'LG OLED 65" TV',
        'description': '4K OLED television with webOS',
        'category': DealCategory.ELECTRICAL,
        'original_price': Decimal('7500'),
        'target_participants': 100,
        'hours_left': 30,
        'participants': 78,
        'tiers': [(0, 40, 20, 6000), (41, 80, 25, 5625), (81, 100, 30, 5250)],
    },
    {
        'name': 'Tadiran 1.5 HP wall air conditioner',
        'description': 'Inverter air conditioner, installation included',
        'category': DealCategory.ELECTRICAL,
        'original_price': Decimal('4500'),
        'target_participants': 200,
        'hours_left': 48,
        'participants': 156,
        'tiers': [(0, 50, 12, 3960), (51, 120, 18, 3690), (121, 200, 25, 3375)],
    },
    {
        'name': 'Modern corner sofa',
        'description': 'Fabric corner sofa with storage',
        'category': DealCategory.FURNITURE,
        'original_price': Decimal('12000'),
        'target_participants': 50,
        'hours_left': 72,
        'participants': 23,
        'tiers': [(0, 20, 15, 10200), (21, 35, 20, 9600), (36, 50, 28, 8640)],
    },
    {
        'name': '4-room apartment in Tel Aviv',
        'description': 'New development, group purchase with the developer',
        'category': DealCategory.APARTMENTS,
        'original_price': Decimal('2800000'),
        'target_participants': 30,
        'hours_left': 240,
        'participants': 12,
        'tiers': [(0, 10, 8, 2576000), (11, 20, 10, 2520000), (21, 30, 12, 2464000)],
    },
    {
        'name': 'Solid wood dining table',
        'description': 'Oak dining table for eight',
        'category': DealCategory.FURNITURE,
        'original_price': Decimal('8500'),
        'target_participants': 60,
        'hours_left': 96,
        'participants': 34,
        'tiers': [(0, 25, 15, 7225), (26, 45, 20, 6800), (46, 60, 25, 6375)],
    },
]

GUEST_NAMES = [
    'Dana Levi', 'Yossi Cohen', 'Noa Mizrahi', 'Avi Peretz', 'Maya Biton',
    'Eitan Friedman', 'Tamar Azulay', 'Omer Shapiro', 'Shira Katz', 'Lior Dahan',
]


class Command(BaseCommand):
    help = 'Create sample deals with participants'

    def add_arguments(self, parser):
        parser.add_argument(
            '--clear',
            action='store_true',
            help='Delete existing deals before creating sample deals',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        if options['clear']:
            self.stdout.write('Clearing existing deals...')
            Deal.objects.all().delete()

        supplier = self.get_supplier()
        now = timezone.now()

        for sample in SAMPLE_DEALS:
            deal = create_deal(
                supplier=supplier,
                tiers=[
                    {
                        'min_participants': low,
                        'max_participants': high,
                        'discount': Decimal(discount),
                        'price': Decimal(price),
                    }
                    for low, high, discount, price in sample['tiers']
                ],
                name=sample['name'],
                description=sample['description'],
                category=sample['category'],
                original_price=sample['original_price'],
                target_participants=sample['target_participants'],
                end_time=now + timedelta(hours=sample['hours_left']),
            )
            self.add_guests(deal, sample['participants'])
            self.stdout.write(
                f'  - {deal.name}: {deal.participant_count} joined, price {deal.current_price}'
            )

        self.stdout.write(self.style.SUCCESS(f'Created {len(SAMPLE_DEALS)} sample deals.'))
        self.stdout.write('Supplier account: supplier@example.com / password123')

    def get_supplier(self):
        supplier = User.objects.filter(email='supplier@example.com').first()
        if supplier:
            return supplier
        return User.objects.create_user(
            email='supplier@example.com',
            password='password123',
            display_name='Sample Supplier',
            is_supplier=True,
        )

    def add_guests(self, deal, count):
        """Add guest participants in one go, then price them together."""
        Participant.objects.bulk_create([
            Participant(
                deal=deal,
                name=random.choice(GUEST_NAMES),
                position=position,
                initial_price=deal.current_price,
                price_paid=deal.current_price,
            )
            for position in range(1, count + 1)
        ])

        tiers = deal.get_tiers()
        deal.participant_count = count
        reprice_deal(deal, tiers)
        deal.participants.update(initial_price=F('price_paid'))
        deal.current_price = current_deal_price(deal, get_current_tier(tiers, count))
        deal.price_version += 1
        deal.save(update_fields=['participant_count', 'current_price', 'price_version', 'updated_at'])
