"""
Participation service.

Joining a deal, retroactive repricing, and the price reads used by the feed
and by checkout. Concurrent joins are serialised by locking the deal row, so
two buyers racing across a tier threshold get consecutive positions and the
second one sees the first one's tier.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Tuple
from uuid import UUID

from django.db import transaction, IntegrityError
from django.db.models import F, Max

from apps.accounts.models import User
from apps.deals.models import Deal, Participant
from apps.deals.pricing import (
    Tier,
    calculate_all_participant_prices,
    calculate_dynamic_price,
    get_current_tier,
    get_tier_number,
    should_update_prices,
    tier_base_price,
)
from apps.notifications import events

from apps.deals.exceptions import (
    DealNotFoundError,
    DealClosedError,
    AlreadyParticipantError,
    InvalidQuantityError,
    ParticipantNotFoundError,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class JoinResult:
    """What a join changed, for the caller and for notifications."""

    old_price: Decimal
    new_price: Decimal
    old_tier: Optional[Tier]
    new_tier: Optional[Tier]
    tier_changed: bool
    version: int


def current_deal_price(deal: Deal, tier: Optional[Tier]) -> Decimal:
    """Headline price of a deal: the base price of its current tier."""
    if tier is None:
        return deal.original_price
    return tier_base_price(deal.original_price, tier)


def reprice_deal(deal: Deal, tiers=None) -> int:
    """
    Rewrite ``price_paid`` of every participant for the deal's current total.

    Args:
        deal: Deal whose participants are repriced. Callers that mutate
            the deal hold its row lock.
        tiers: Pre-loaded tier table, loaded from the deal when omitted.

    Returns:
        Number of participants whose price changed.
    """
    if tiers is None:
        tiers = deal.get_tiers()

    participants = list(deal.participants.order_by('position'))
    if not participants:
        return 0

    calculations = calculate_all_participant_prices(
        deal.original_price,
        tiers,
        [(p.position, p.quantity) for p in participants],
        deal.price_delta_percentage,
    )

    changed = []
    for participant in participants:
        new_price = calculations[participant.position].dynamic_price
        if participant.price_paid != new_price:
            participant.price_paid = new_price
            changed.append(participant)

    if changed:
        Participant.objects.bulk_update(changed, ['price_paid'])

    return len(changed)


def get_price_table(deal: Deal) -> dict:
    """
    Snapshot of a deal's prices, as sent to (re)connecting feed viewers.

    Returns:
        dict with deal_id, version, participant_count, current_price,
        tier_number, tier and the ordered per-position ``prices``.
    """
    tiers = deal.get_tiers()
    tier = get_current_tier(tiers, deal.participant_count)
    participants = deal.participants.order_by('position')

    return {
        'deal_id': str(deal.id),
        'version': deal.price_version,
        'participant_count': deal.participant_count,
        'current_price': deal.current_price,
        'tier_number': get_tier_number(tiers, tier),
        'tier': tier.as_dict() if tier else None,
        'prices': [
            {
                'position': p.position,
                'name': p.get_initials(),
                'quantity': p.quantity,
                'price': p.price_paid,
            }
            for p in participants
        ],
    }


@transaction.atomic
def join_deal(
    *,
    deal_id: UUID,
    user: Optional[User],
    quantity: int = 1,
    name: str = '',
    email: str = ''
) -> Tuple[Participant, JoinResult]:
    """
    Add a buyer at the end of a deal's queue and reprice everyone.

    Uses row-level locking on the deal so position assignment, tier
    selection and repricing see a single consistent participant total.

    Args:
        deal_id: UUID of the deal
        user: Joining user, or None for a guest entry
        quantity: Units bought (counts towards tier thresholds)
        name: Display name, defaults to the user's display name
        email: Contact email, defaults to the user's email

    Returns:
        (Participant, JoinResult)

    Raises:
        InvalidQuantityError: If quantity < 1
        DealNotFoundError: If the deal doesn't exist
        DealClosedError: If the deal is not active or has ended
        AlreadyParticipantError: If the user already holds a position
    """
    if quantity < 1:
        raise InvalidQuantityError("Quantity must be at least 1")

    # Claim the next price version before any read: the UPDATE takes the
    # deal's row lock, and the database write lock on SQLite
    claimed = Deal.objects.filter(id=deal_id).update(price_version=F('price_version') + 1)
    if not claimed:
        raise DealNotFoundError(f"Deal with ID {deal_id} not found")

    deal = Deal.objects.select_for_update().get(id=deal_id)

    if not deal.is_open():
        raise DealClosedError(f"Deal {deal.name} is no longer open for joining")

    if user is not None and deal.participants.filter(user=user).exists():
        raise AlreadyParticipantError(f"User already joined {deal.name}")

    tiers = deal.get_tiers()
    old_count = deal.participant_count
    old_tier = get_current_tier(tiers, old_count)
    old_price = deal.current_price

    new_count = old_count + quantity
    new_tier = get_current_tier(tiers, new_count)
    last_position = deal.participants.aggregate(last=Max('position'))['last'] or 0
    position = last_position + 1

    calculation = calculate_dynamic_price(
        deal.original_price,
        position,
        new_count,
        new_tier,
        deal.price_delta_percentage,
    )

    try:
        participant = Participant.objects.create(
            deal=deal,
            user=user,
            name=name or (user.get_display_name() if user else 'Guest'),
            email=email or (user.email if user else ''),
            quantity=quantity,
            position=position,
            initial_price=calculation.dynamic_price,
            price_paid=calculation.dynamic_price,
        )
    except IntegrityError:
        # Unique (deal, user) caught a duplicate join
        raise AlreadyParticipantError(f"User already joined {deal.name}")

    deal.participant_count = new_count
    reprice_deal(deal, tiers)
    participant.refresh_from_db(fields=['price_paid'])

    deal.current_price = current_deal_price(deal, new_tier)
    deal.save(update_fields=['participant_count', 'current_price', 'updated_at'])

    tier_changed = should_update_prices(old_count, new_count, tiers)
    result = JoinResult(
        old_price=old_price,
        new_price=deal.current_price,
        old_tier=old_tier,
        new_tier=new_tier,
        tier_changed=tier_changed,
        version=deal.price_version,
    )

    events.publish_on_commit(events.participant_joined(deal, participant))
    events.publish_on_commit(events.price_updated(deal, get_price_table(deal)))

    if tier_changed:
        logger.info(
            "Tier %s unlocked for deal %s: %s -> %s",
            get_tier_number(tiers, new_tier), deal.id, old_price, deal.current_price,
        )
        events.publish_on_commit(events.tier_unlocked(
            deal,
            tier_number=get_tier_number(tiers, new_tier),
            old_price=old_price,
            new_price=deal.current_price,
            discount_percent=new_tier.discount,
        ))

    logger.info(
        "Participant #%s joined deal %s (count %s, price %s)",
        position, deal.id, new_count, participant.price_paid,
    )

    return participant, result


def quote_price(*, deal_id: UUID, user: User) -> dict:
    """
    Price the user's position would be charged right now.

    This is the read the checkout flow performs before charging a buyer.

    Raises:
        DealNotFoundError: If the deal doesn't exist
        ParticipantNotFoundError: If the user has not joined the deal
    """
    try:
        deal = Deal.objects.get(id=deal_id)
    except Deal.DoesNotExist:
        raise DealNotFoundError(f"Deal with ID {deal_id} not found")

    try:
        participant = deal.participants.get(user=user)
    except Participant.DoesNotExist:
        raise ParticipantNotFoundError(f"User has not joined {deal.name}")

    tiers = deal.get_tiers()
    tier = get_current_tier(tiers, deal.participant_count)

    return {
        'deal_id': deal.id,
        'position': participant.position,
        'quantity': participant.quantity,
        'unit_price': participant.price_paid,
        'total_price': participant.price_paid * participant.quantity,
        'original_price': deal.original_price,
        'tier_number': get_tier_number(tiers, tier),
        'version': deal.price_version,
        'is_open': deal.is_open(),
    }
