"""
WebSocket consumer for the live price feed.

Routes:
    ws/deals/             every event for every deal
    ws/deals/<uuid>/      events for one deal, preceded by a price snapshot

Client messages:
    {"type": "ping"}                          -> {"type": "pong"}
    {"type": "subscribe", "deal_id": "..."}   -> snapshot, then that deal's events
    {"type": "unsubscribe", "deal_id": "..."} -> {"type": "unsubscribed", ...}
"""

import logging
import uuid

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from apps.deals.models import Deal
from apps.deals.services import get_price_table

from .events import ALL_DEALS_GROUP, deal_group_name, to_wire


logger = logging.getLogger(__name__)

CLOSE_DEAL_NOT_FOUND = 4404


class DealFeedConsumer(AsyncJsonWebsocketConsumer):

    async def connect(self):
        self.deal_ids = set()
        self.all_deals = False

        deal_id = self.scope['url_route']['kwargs'].get('deal_id')

        if deal_id is None:
            self.all_deals = True
            await self.channel_layer.group_add(ALL_DEALS_GROUP, self.channel_name)
            await self.accept()
            logger.info("Feed viewer connected to all deals")
            return

        deal_id = parse_deal_id(deal_id)
        # Join the group before reading, so a join committed while the
        # snapshot loads is still delivered after it
        await self.follow(deal_id)
        snapshot = await self.load_snapshot(deal_id)
        if snapshot is None:
            logger.info("Feed viewer asked for unknown deal %s", deal_id)
            await self.unfollow(deal_id)
            await self.close(code=CLOSE_DEAL_NOT_FOUND)
            return

        await self.accept()
        await self.send_json(snapshot)
        logger.info("Feed viewer connected to deal %s", deal_id)

    async def disconnect(self, code):
        if getattr(self, 'all_deals', False):
            await self.channel_layer.group_discard(ALL_DEALS_GROUP, self.channel_name)
        for deal_id in getattr(self, 'deal_ids', set()):
            await self.channel_layer.group_discard(deal_group_name(deal_id), self.channel_name)
        logger.info("Feed viewer disconnected (%s)", code)

    async def receive(self, text_data=None, bytes_data=None, **kwargs):
        if not text_data:
            await self.send_error('Only JSON text frames are accepted')
            return
        try:
            content = await self.decode_json(text_data)
        except ValueError:
            await self.send_error('Malformed JSON')
            return
        if not isinstance(content, dict):
            await self.send_error('Messages must be JSON objects')
            return
        await self.receive_json(content, **kwargs)

    async def receive_json(self, content, **kwargs):
        message_type = content.get('type')

        if message_type == 'ping':
            await self.send_json({'type': 'pong'})
        elif message_type == 'subscribe':
            await self.subscribe(content.get('deal_id'))
        elif message_type == 'unsubscribe':
            await self.unsubscribe(content.get('deal_id'))
        else:
            await self.send_error(f"Unknown message type: {message_type}")

    async def subscribe(self, raw_deal_id):
        deal_id = parse_deal_id(raw_deal_id)
        if deal_id is None:
            await self.send_error('subscribe needs a valid deal_id')
            return

        already_following = deal_id in self.deal_ids
        await self.follow(deal_id)
        snapshot = await self.load_snapshot(deal_id)
        if snapshot is None:
            if not already_following:
                await self.unfollow(deal_id)
            await self.send_error(f"Deal {deal_id} not found")
            return

        await self.send_json(snapshot)

    async def unsubscribe(self, raw_deal_id):
        deal_id = parse_deal_id(raw_deal_id)
        if deal_id is None or deal_id not in self.deal_ids:
            await self.send_error('Not subscribed to that deal')
            return

        await self.unfollow(deal_id)
        await self.send_json({'type': 'unsubscribed', 'deal_id': deal_id})

    async def follow(self, deal_id):
        # The all-deals group already delivers this deal's events
        if deal_id in self.deal_ids or self.all_deals:
            self.deal_ids.add(deal_id)
            return
        self.deal_ids.add(deal_id)
        await self.channel_layer.group_add(deal_group_name(deal_id), self.channel_name)

    async def unfollow(self, deal_id):
        self.deal_ids.discard(deal_id)
        if not self.all_deals:
            await self.channel_layer.group_discard(deal_group_name(deal_id), self.channel_name)

    async def send_error(self, message):
        await self.send_json({'type': 'error', 'message': message})

    async def feed_event(self, message):
        """Handler for group messages of type ``feed.event``."""
        await self.send_json(message['event'])

    @database_sync_to_async
    def load_snapshot(self, deal_id):
        try:
            deal = Deal.objects.get(id=deal_id)
        except Deal.DoesNotExist:
            return None
        snapshot = to_wire(get_price_table(deal))
        snapshot['type'] = 'snapshot'
        return snapshot


def parse_deal_id(value):
    """Canonical string form of a deal UUID, or None when invalid."""
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return None
