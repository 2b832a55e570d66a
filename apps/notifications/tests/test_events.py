"""
Feed event tests.

Tests cover:
- Wire formatting of decimals and UUIDs
- Event builders and message shape
- Publishing to both groups, and surviving channel-layer failures
"""

import logging
import pytest
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

from apps.deals.services import join_deal
from apps.notifications import events
from apps.notifications.events import (
    ALL_DEALS_GROUP,
    GROUP_MESSAGE_TYPE,
    EventType,
    FeedEvent,
    deal_group_name,
    publish,
    publish_on_commit,
    to_wire,
)


DEAL_ID = '0b6e4a8e-5b0c-4f4e-9d55-1f0f3c1f9a10'


class TestToWire:

    def test_whole_decimal_has_no_fraction(self):
        assert to_wire(Decimal('7225.00')) == '7225'
        assert to_wire(Decimal('7225')) == '7225'

    def test_fractional_decimal_kept(self):
        assert to_wire(Decimal('2.5000')) == '2.5000'

    def test_nested_values(self):
        value = {
            'deal_id': UUID(DEAL_ID),
            'prices': [{'position': 1, 'price': Decimal('7081.00')}],
        }

        assert to_wire(value) == {
            'deal_id': DEAL_ID,
            'prices': [{'position': 1, 'price': '7081'}],
        }

    def test_plain_values_untouched(self):
        assert to_wire(None) is None
        assert to_wire(3) == 3


class TestFeedEvent:

    def test_as_message(self):
        event = FeedEvent(
            type=EventType.DEAL_CLOSED,
            deal_id=DEAL_ID,
            version=4,
            payload={'final_price': Decimal('6800.00')},
            timestamp='2026-01-01T00:00:00+00:00',
        )

        assert event.as_message() == {
            'type': 'deal_closed',
            'deal_id': DEAL_ID,
            'version': 4,
            'timestamp': '2026-01-01T00:00:00+00:00',
            'final_price': '6800',
        }

    def test_group_names(self):
        assert deal_group_name(DEAL_ID) == f'deal.{DEAL_ID}'
        assert ALL_DEALS_GROUP == 'deals'


@pytest.mark.django_db
class TestEventBuilders:

    def test_participant_joined(self, deal, buyer):
        participant, _ = join_deal(deal_id=deal.id, user=buyer)
        deal.refresh_from_db()

        message = events.participant_joined(deal, participant).as_message()

        assert message['type'] == EventType.PARTICIPANT_JOINED
        assert message['participant_name'] == 'B.O.'
        assert message['position'] == 1
        assert message['new_participant_count'] == 1
        assert message['new_price'] == '7225'
        assert message['version'] == 1

    def test_deal_cancelled(self, deal):
        message = events.deal_cancelled(deal, 'not_enough_participants').as_message()

        assert message['type'] == EventType.DEAL_CANCELLED
        assert message['deal_name'] == deal.name
        assert message['reason'] == 'not_enough_participants'


class TestPublish:

    def event(self):
        return FeedEvent(type=EventType.PRICE_UPDATED, deal_id=DEAL_ID, version=2)

    def test_sends_to_both_groups(self):
        layer = MagicMock()
        layer.group_send = AsyncMock()
        event = self.event()

        with patch.object(events, 'get_channel_layer', return_value=layer):
            publish(event)

        groups = [call.args[0] for call in layer.group_send.call_args_list]
        assert groups == [ALL_DEALS_GROUP, f'deal.{DEAL_ID}']
        message = layer.group_send.call_args.args[1]
        assert message['type'] == GROUP_MESSAGE_TYPE
        assert message['event']['version'] == 2

    def test_channel_layer_failure_is_logged(self, caplog):
        layer = MagicMock()
        layer.group_send = AsyncMock(side_effect=ConnectionError('redis down'))

        with patch.object(events, 'get_channel_layer', return_value=layer):
            with caplog.at_level(logging.ERROR, logger='apps.notifications.events'):
                publish(self.event())

        assert 'Failed to publish price_updated' in caplog.text

    def test_no_channel_layer(self):
        with patch.object(events, 'get_channel_layer', return_value=None):
            publish(self.event())

    @pytest.mark.django_db
    def test_publish_waits_for_commit(self, django_capture_on_commit_callbacks):
        with patch.object(events, 'publish') as mock_publish:
            with django_capture_on_commit_callbacks() as callbacks:
                publish_on_commit(self.event())

            assert mock_publish.call_count == 0
            assert len(callbacks) == 1

            callbacks[0]()

        mock_publish.assert_called_once()
