"""
Deal closure service.

Closing locks every participant's final price and charges it through the
configured payment gateway. The deal row is locked only long enough to move
it from ``active`` to ``closing``; charges run outside that lock so a slow
gateway does not block readers, and the ``closing`` status keeps joins out.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from apps.deals.models import Deal, DealStatus, PaymentStatus
from apps.deals.payments import PaymentGateway, get_payment_gateway
from apps.notifications import events

from apps.deals.exceptions import DealNotFoundError, PaymentGatewayError


logger = logging.getLogger(__name__)

NOT_ENOUGH_PARTICIPANTS = 'not_enough_participants'


@dataclass(frozen=True)
class ClosureResult:
    deal_id: UUID
    status: str
    charged: int = 0
    failed: int = 0
    skipped: bool = False


def _begin_closing(deal_id: UUID) -> Optional[Deal]:
    """Flip an active deal to closing, or return None if someone else got it."""
    with transaction.atomic():
        try:
            deal = Deal.objects.select_for_update().get(id=deal_id)
        except Deal.DoesNotExist:
            raise DealNotFoundError(f"Deal with ID {deal_id} not found")

        if deal.status != DealStatus.ACTIVE:
            return None

        deal.status = DealStatus.CLOSING
        deal.save(update_fields=['status', 'updated_at'])
        return deal


def _restore_active(deal: Deal) -> None:
    Deal.objects.filter(id=deal.id, status=DealStatus.CLOSING).update(
        status=DealStatus.ACTIVE,
        updated_at=timezone.now(),
    )


@transaction.atomic
def _cancel(deal: Deal) -> ClosureResult:
    deal.participants.update(payment_status=PaymentStatus.CANCELLED)
    deal.status = DealStatus.CANCELLED
    deal.price_version += 1
    deal.save(update_fields=['status', 'price_version', 'updated_at'])

    logger.info(
        "Deal %s cancelled: %s of %s required participants",
        deal.id, deal.participant_count, deal.min_participants,
    )
    events.publish_on_commit(events.deal_cancelled(deal, NOT_ENOUGH_PARTICIPANTS))
    return ClosureResult(deal_id=deal.id, status=deal.status)


def _charge_participants(deal: Deal, gateway: PaymentGateway) -> ClosureResult:
    charged = 0
    failed = 0

    for participant in deal.participants.order_by('position'):
        # Charged by an earlier closure attempt that was interrupted
        if participant.payment_status == PaymentStatus.CHARGED:
            charged += 1
            continue

        participant.final_price = participant.price_paid * participant.quantity
        try:
            reference = gateway.charge(participant, participant.final_price)
        except PaymentGatewayError as e:
            logger.warning(
                "Charge failed for participant #%s of deal %s: %s",
                participant.position, deal.id, e,
            )
            participant.payment_status = PaymentStatus.FAILED
            failed += 1
        else:
            participant.payment_status = PaymentStatus.CHARGED
            participant.payment_reference = reference
            charged += 1
        participant.save(update_fields=['final_price', 'payment_status', 'payment_reference'])

    if failed == 0:
        status = DealStatus.CLOSED
    elif charged == 0:
        status = DealStatus.PAYMENT_FAILED
    else:
        status = DealStatus.PARTIALLY_FAILED

    with transaction.atomic():
        deal.status = status
        deal.price_version += 1
        deal.save(update_fields=['status', 'price_version', 'updated_at'])
        events.publish_on_commit(events.deal_closed(deal, deal.current_price, charged))

    logger.info(
        "Deal %s closed as %s (%s charged, %s failed)",
        deal.id, status, charged, failed,
    )
    return ClosureResult(deal_id=deal.id, status=status, charged=charged, failed=failed)


def close_deal(deal_id: UUID, gateway: Optional[PaymentGateway] = None) -> ClosureResult:
    """
    Close a deal: cancel it when under-subscribed, otherwise charge everyone.

    Args:
        deal_id: UUID of the deal
        gateway: Payment gateway, defaults to DEALRUSH_PAYMENT_GATEWAY

    Returns:
        ClosureResult; ``skipped`` is True when the deal was not active.

    Raises:
        DealNotFoundError: If the deal doesn't exist
    """
    deal = _begin_closing(deal_id)
    if deal is None:
        current = Deal.objects.filter(id=deal_id).values_list('status', flat=True).first()
        logger.debug("Deal %s not active (%s), skipping closure", deal_id, current)
        return ClosureResult(deal_id=deal_id, status=current, skipped=True)

    try:
        if deal.participant_count < deal.min_participants:
            return _cancel(deal)

        return _charge_participants(deal, gateway or get_payment_gateway())
    except Exception:
        logger.exception("Closing deal %s failed, reopening it", deal.id)
        _restore_active(deal)
        raise


def close_expired_deals(now: Optional[datetime] = None) -> List[ClosureResult]:
    """Close every active deal whose end time has passed."""
    now = now or timezone.now()
    expired = Deal.objects.filter(
        status=DealStatus.ACTIVE,
        end_time__lte=now,
    ).values_list('id', flat=True)

    results = [close_deal(deal_id) for deal_id in list(expired)]

    if results:
        logger.info("Processed %s expired deals", len(results))
    return results
