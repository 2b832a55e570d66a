"""
Feed events and publishing.

Every event is sent to two channel-layer groups: ``deals`` (all viewers) and
``deal.<id>`` (viewers of one deal). Events carry the deal's
``price_version`` so clients can discard anything older than what they have
already applied.

Publishing from a service always goes through ``publish_on_commit`` so a
viewer never hears about a join that was rolled back.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.db import transaction
from django.utils import timezone


logger = logging.getLogger(__name__)

ALL_DEALS_GROUP = 'deals'

WHOLE = Decimal('1')

# Consumer handler for group messages (type "feed.event" -> feed_event)
GROUP_MESSAGE_TYPE = 'feed.event'


class EventType:
    PARTICIPANT_JOINED = 'participant_joined'
    PRICE_UPDATED = 'price_updated'
    TIER_UNLOCKED = 'tier_unlocked'
    DEAL_CLOSED = 'deal_closed'
    DEAL_CANCELLED = 'deal_cancelled'

    ALL = [
        PARTICIPANT_JOINED,
        PRICE_UPDATED,
        TIER_UNLOCKED,
        DEAL_CLOSED,
        DEAL_CANCELLED,
    ]


def deal_group_name(deal_id):
    return f'deal.{deal_id}'


def to_wire(value):
    """Make payloads safe for JSON and the Redis channel layer."""
    if isinstance(value, Decimal):
        # Whole amounts go out without a fractional part: "7225", not "7225.00"
        if value == value.to_integral_value():
            return str(value.quantize(WHOLE))
        return str(value)
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return {key: to_wire(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(item) for item in value]
    return value


@dataclass
class FeedEvent:
    type: str
    deal_id: str
    version: int
    payload: dict = field(default_factory=dict)
    timestamp: str = field(default_factory=lambda: timezone.now().isoformat())

    def as_message(self):
        message = {
            'type': self.type,
            'deal_id': str(self.deal_id),
            'version': self.version,
            'timestamp': self.timestamp,
        }
        message.update(to_wire(self.payload))
        return message


# =============================================================================
# Event builders
# =============================================================================

def participant_joined(deal, participant):
    return FeedEvent(
        type=EventType.PARTICIPANT_JOINED,
        deal_id=str(deal.id),
        version=deal.price_version,
        payload={
            'deal_name': deal.name,
            'participant_name': participant.get_initials(),
            'position': participant.position,
            'new_participant_count': deal.participant_count,
            'new_price': deal.current_price,
        },
    )


def price_updated(deal, price_table):
    return FeedEvent(
        type=EventType.PRICE_UPDATED,
        deal_id=str(deal.id),
        version=deal.price_version,
        payload={
            'current_price': deal.current_price,
            'participant_count': deal.participant_count,
            'tier_number': price_table.get('tier_number'),
            'prices': price_table.get('prices', []),
        },
    )


def tier_unlocked(deal, tier_number, old_price, new_price, discount_percent):
    return FeedEvent(
        type=EventType.TIER_UNLOCKED,
        deal_id=str(deal.id),
        version=deal.price_version,
        payload={
            'deal_name': deal.name,
            'tier_number': tier_number,
            'old_price': old_price,
            'new_price': new_price,
            'discount_percent': discount_percent,
        },
    )


def deal_closed(deal, final_price, participant_count):
    return FeedEvent(
        type=EventType.DEAL_CLOSED,
        deal_id=str(deal.id),
        version=deal.price_version,
        payload={
            'deal_name': deal.name,
            'final_price': final_price,
            'participant_count': participant_count,
        },
    )


def deal_cancelled(deal, reason):
    return FeedEvent(
        type=EventType.DEAL_CANCELLED,
        deal_id=str(deal.id),
        version=deal.price_version,
        payload={
            'deal_name': deal.name,
            'reason': reason,
        },
    )


# =============================================================================
# Publishing
# =============================================================================

def publish(event):
    """
    Send an event to the global and per-deal groups.

    Channel-layer failures are logged, not raised: the database change the
    event describes is already committed and must stand.
    """
    channel_layer = get_channel_layer()
    if channel_layer is None:
        logger.debug("No channel layer configured, dropping %s", event.type)
        return

    message = {'type': GROUP_MESSAGE_TYPE, 'event': event.as_message()}
    try:
        async_to_sync(channel_layer.group_send)(ALL_DEALS_GROUP, message)
        async_to_sync(channel_layer.group_send)(deal_group_name(event.deal_id), message)
    except Exception:
        logger.exception(
            "Failed to publish %s for deal %s (version %s)",
            event.type, event.deal_id, event.version,
        )
        return

    logger.debug("Published %s for deal %s v%s", event.type, event.deal_id, event.version)


def publish_on_commit(event):
    """Publish once the surrounding transaction commits."""
    transaction.on_commit(lambda: publish(event))
