"""
Closure service tests.

Tests cover:
- Charging every participant through the gateway
- Cancelling under-subscribed deals
- Partial and total payment failures
- Recovery from unexpected gateway errors
"""

import pytest
from decimal import Decimal
from unittest.mock import patch
from uuid import uuid4

from apps.deals.models import DealStatus, PaymentStatus
from apps.deals.payments import PaymentGateway, RecordingGateway, get_payment_gateway
from apps.deals.services import (
    close_deal,
    close_expired_deals,
    join_deal,
    DealNotFoundError,
    PaymentGatewayError,
)
from apps.notifications.events import EventType


class DecliningGateway(PaymentGateway):
    """Declines charges for the given positions."""

    def __init__(self, declined_positions):
        self.declined_positions = set(declined_positions)
        self.charged = []

    def charge(self, participant, amount):
        if participant.position in self.declined_positions:
            raise PaymentGatewayError('Card declined')
        self.charged.append((participant.position, amount))
        return f'TEST-{participant.position}'


class BrokenGateway(PaymentGateway):

    def charge(self, participant, amount):
        raise RuntimeError('Gateway unreachable')


class FlakyGateway(PaymentGateway):
    """Crashes on the given position during the first attempt only."""

    def __init__(self, crash_position):
        self.crash_position = crash_position
        self.crashed = False
        self.charged = []

    def charge(self, participant, amount):
        if participant.position == self.crash_position and not self.crashed:
            self.crashed = True
            raise RuntimeError('Gateway timed out')
        self.charged.append(participant.position)
        return f'TEST-{participant.position}'


@pytest.fixture
def joined_deal(deal, buyer, buyer2):
    """Deal with two participants; buyer took two units."""
    join_deal(deal_id=deal.id, user=buyer, quantity=2)
    join_deal(deal_id=deal.id, user=buyer2)
    deal.refresh_from_db()
    return deal


@pytest.mark.django_db
class TestCloseDeal:
    """Tests for close_deal()."""

    def test_charges_every_participant(self, joined_deal):
        gateway = DecliningGateway(declined_positions=[])

        result = close_deal(joined_deal.id, gateway=gateway)

        joined_deal.refresh_from_db()
        assert result.status == DealStatus.CLOSED
        assert result.charged == 2
        assert result.failed == 0
        assert joined_deal.status == DealStatus.CLOSED
        # Position 1 bought two units at 7081
        assert gateway.charged == [(1, Decimal('14162')), (2, Decimal('7225'))]

    def test_final_price_and_reference_recorded(self, joined_deal):
        close_deal(joined_deal.id, gateway=DecliningGateway(declined_positions=[]))

        first = joined_deal.participants.get(position=1)
        assert first.final_price == Decimal('14162')
        assert first.payment_status == PaymentStatus.CHARGED
        assert first.payment_reference == 'TEST-1'

    def test_default_gateway_records_references(self, joined_deal):
        result = close_deal(joined_deal.id)

        assert result.status == DealStatus.CLOSED
        references = list(joined_deal.participants.values_list('payment_reference', flat=True))
        assert all(reference.startswith('DEAL-') for reference in references)

    def test_partial_failure(self, joined_deal):
        result = close_deal(joined_deal.id, gateway=DecliningGateway(declined_positions=[2]))

        joined_deal.refresh_from_db()
        assert result.status == DealStatus.PARTIALLY_FAILED
        assert (result.charged, result.failed) == (1, 1)
        assert joined_deal.participants.get(position=2).payment_status == PaymentStatus.FAILED
        assert joined_deal.participants.get(position=1).payment_status == PaymentStatus.CHARGED

    def test_all_payments_failed(self, joined_deal):
        result = close_deal(joined_deal.id, gateway=DecliningGateway(declined_positions=[1, 2]))

        assert result.status == DealStatus.PAYMENT_FAILED
        assert result.charged == 0

    def test_under_subscribed_deal_is_cancelled(self, deal, buyer):
        deal.min_participants = 5
        deal.save()
        join_deal(deal_id=deal.id, user=buyer)

        result = close_deal(deal.id, gateway=DecliningGateway(declined_positions=[]))

        deal.refresh_from_db()
        assert result.status == DealStatus.CANCELLED
        assert deal.status == DealStatus.CANCELLED
        assert deal.participants.get().payment_status == PaymentStatus.CANCELLED

    def test_inactive_deal_is_skipped(self, joined_deal):
        close_deal(joined_deal.id, gateway=DecliningGateway(declined_positions=[]))

        result = close_deal(joined_deal.id, gateway=DecliningGateway(declined_positions=[]))

        assert result.skipped is True
        assert result.status == DealStatus.CLOSED

    def test_unexpected_error_reopens_deal(self, joined_deal):
        with pytest.raises(RuntimeError):
            close_deal(joined_deal.id, gateway=BrokenGateway())

        joined_deal.refresh_from_db()
        assert joined_deal.status == DealStatus.ACTIVE

    def test_retry_does_not_charge_twice(self, joined_deal):
        gateway = FlakyGateway(crash_position=2)

        with pytest.raises(RuntimeError):
            close_deal(joined_deal.id, gateway=gateway)

        joined_deal.refresh_from_db()
        assert joined_deal.status == DealStatus.ACTIVE
        assert gateway.charged == [1]

        result = close_deal(joined_deal.id, gateway=gateway)

        assert gateway.charged == [1, 2]
        assert result.status == DealStatus.CLOSED
        assert (result.charged, result.failed) == (2, 0)
        assert joined_deal.participants.get(position=1).payment_reference == 'TEST-1'

    def test_unknown_deal(self):
        with pytest.raises(DealNotFoundError):
            close_deal(uuid4())

    def test_closed_event_published(self, joined_deal, django_capture_on_commit_callbacks):
        with patch('apps.notifications.events.publish') as mock_publish:
            with django_capture_on_commit_callbacks(execute=True):
                close_deal(joined_deal.id, gateway=DecliningGateway(declined_positions=[]))

        event = mock_publish.call_args.args[0]
        message = event.as_message()
        assert event.type == EventType.DEAL_CLOSED
        assert message['final_price'] == '7225'
        assert message['participant_count'] == 2
        assert message['version'] == joined_deal.price_version + 1

    def test_cancelled_event_published(self, deal, buyer, django_capture_on_commit_callbacks):
        deal.min_participants = 5
        deal.save()
        join_deal(deal_id=deal.id, user=buyer)

        with patch('apps.notifications.events.publish') as mock_publish:
            with django_capture_on_commit_callbacks(execute=True):
                close_deal(deal.id)

        message = mock_publish.call_args.args[0].as_message()
        assert message['type'] == EventType.DEAL_CANCELLED
        assert message['reason'] == 'not_enough_participants'


@pytest.mark.django_db
class TestCloseExpiredDeals:
    """Tests for close_expired_deals()."""

    def test_only_expired_deals_are_closed(self, deal, expired_deal):
        results = close_expired_deals()

        deal.refresh_from_db()
        expired_deal.refresh_from_db()
        assert [result.deal_id for result in results] == [expired_deal.id]
        assert deal.status == DealStatus.ACTIVE
        # No participants, below the default minimum of one
        assert expired_deal.status == DealStatus.CANCELLED

    def test_nothing_expired(self, deal):
        assert close_expired_deals() == []


class TestPaymentGateway:

    def test_interface_requires_charge(self):
        with pytest.raises(NotImplementedError):
            PaymentGateway().charge(None, Decimal('1'))

    def test_configured_gateway(self, settings):
        settings.DEALRUSH_PAYMENT_GATEWAY = 'apps.deals.payments.RecordingGateway'
        assert isinstance(get_payment_gateway(), RecordingGateway)
