"""
Management command to watch the live price feed from a terminal.

Usage:
    python manage.py watch_deal_prices
    python manage.py watch_deal_prices <deal_id> --url ws://localhost:8000
"""

import asyncio

from django.core.management.base import BaseCommand

from apps.notifications.client import PriceFeedClient


class Command(BaseCommand):
    help = 'Print live price feed events for one deal or all deals'

    def add_arguments(self, parser):
        parser.add_argument(
            'deal_id',
            nargs='?',
            help='Deal to watch; omit to watch every deal',
        )
        parser.add_argument(
            '--url',
            default='ws://localhost:8000',
            help='Base URL of the ASGI server',
        )
        parser.add_argument(
            '--reconnect-delay',
            type=float,
            default=None,
            help='Seconds to wait before reconnecting',
        )

    def handle(self, *args, **options):
        base = options['url'].rstrip('/')
        deal_id = options['deal_id']
        url = f'{base}/ws/deals/{deal_id}/' if deal_id else f'{base}/ws/deals/'

        client = PriceFeedClient(
            url,
            self.print_message,
            reconnect_delay=options['reconnect_delay'],
        )

        self.stdout.write(f'Watching {url} (Ctrl+C to stop)')
        try:
            asyncio.run(client.run())
        except KeyboardInterrupt:
            self.stdout.write(self.style.WARNING('\nStopped.'))

    def print_message(self, message):
        kind = message.get('type')

        if kind == 'snapshot':
            self.stdout.write(self.style.SUCCESS(
                f"[v{message['version']}] {message['participant_count']} joined, "
                f"price {message['current_price']} (tier {message['tier_number']})"
            ))
            for row in message.get('prices', []):
                self.stdout.write(f"    #{row['position']} {row['name']} {row['price']}")
        elif kind == 'participant_joined':
            self.stdout.write(
                f"[v{message['version']}] #{message['position']} {message['participant_name']} joined "
                f"{message['deal_name']}, price {message['new_price']}"
            )
        elif kind == 'tier_unlocked':
            self.stdout.write(self.style.SUCCESS(
                f"[v{message['version']}] Tier {message['tier_number']} unlocked: "
                f"{message['old_price']} -> {message['new_price']}"
            ))
        elif kind in ('deal_closed', 'deal_cancelled'):
            self.stdout.write(self.style.WARNING(f"[v{message['version']}] {kind}: {message}"))
        else:
            self.stdout.write(str(message))
