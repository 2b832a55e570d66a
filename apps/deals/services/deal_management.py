"""
Deal management service.

Creating deals with their tier table and updating them. Any change that
affects prices reprices existing participants and notifies the feed.
"""

import logging
from typing import List, Optional
from uuid import UUID

from django.conf import settings
from django.db import transaction

from apps.accounts.models import User
from apps.deals.models import Deal, DealTier, DealStatus
from apps.deals.pricing import Tier, get_current_tier, get_tier_number, validate_tier_table
from apps.notifications import events

from apps.deals.exceptions import (
    DealClosedError,
    DealNotFoundError,
    InsufficientPermissionsError,
)
from .participation import current_deal_price, get_price_table, reprice_deal


logger = logging.getLogger(__name__)

# Fields a supplier may change after publishing
UPDATABLE_FIELDS = [
    'name',
    'description',
    'category',
    'original_price',
    'price_delta_percentage',
    'min_participants',
    'target_participants',
    'end_time',
]

PRICE_FIELDS = {'original_price', 'price_delta_percentage'}


def _build_tiers(tier_data: List[dict]) -> List[Tier]:
    return [
        Tier(
            min_participants=item['min_participants'],
            max_participants=item['max_participants'],
            discount=item.get('discount', 0),
            price=item.get('price'),
        )
        for item in tier_data
    ]


def _replace_tiers(deal: Deal, tiers: List[Tier]) -> None:
    deal.tiers.all().delete()
    DealTier.objects.bulk_create([
        DealTier(
            deal=deal,
            min_participants=tier.min_participants,
            max_participants=tier.max_participants,
            discount=tier.discount,
            price=tier.price,
        )
        for tier in tiers
    ])


def _can_manage(deal: Deal, user: User) -> bool:
    return user.is_staff or (deal.supplier_id is not None and deal.supplier_id == user.id)


@transaction.atomic
def create_deal(*, supplier: User, tiers: List[dict], **fields) -> Deal:
    """
    Publish a new deal with its tier table.

    Args:
        supplier: Supplier (or staff) publishing the deal
        tiers: Tier dicts with min_participants, max_participants,
            discount and optional fixed price
        **fields: Deal fields (name, category, original_price, end_time, ...)

    Returns:
        Created Deal with current_price set to its opening tier price

    Raises:
        InsufficientPermissionsError: If the user is neither supplier nor staff
        InvalidTierTableError: If the tier table is invalid
    """
    if not (supplier.is_supplier or supplier.is_staff):
        raise InsufficientPermissionsError("Only suppliers can publish deals")

    pricing_tiers = validate_tier_table(_build_tiers(tiers), fields['original_price'])

    fields.setdefault('price_delta_percentage', settings.DEALRUSH_PRICE_DELTA_PERCENTAGE)
    deal = Deal(supplier=supplier, **fields)
    deal.participant_count = 0
    deal.current_price = current_deal_price(deal, get_current_tier(pricing_tiers, 0))
    deal.save()

    _replace_tiers(deal, pricing_tiers)

    logger.info("Deal %s published with %s tiers", deal.id, len(pricing_tiers))
    return deal


def get_deal_by_id(*, deal_id: UUID) -> Deal:
    """
    Raises:
        DealNotFoundError: If the deal doesn't exist
    """
    try:
        return Deal.objects.select_related('supplier').prefetch_related('tiers').get(id=deal_id)
    except Deal.DoesNotExist:
        raise DealNotFoundError(f"Deal with ID {deal_id} not found")


@transaction.atomic
def update_deal(
    *,
    deal_id: UUID,
    user: User,
    tiers: Optional[List[dict]] = None,
    **fields
) -> Deal:
    """
    Update deal fields and/or replace its tier table.

    When prices can change (new tiers, original price or delta), every
    participant is repriced under the deal's row lock and a
    ``price_updated`` event follows the commit. A change that moves the deal
    into another tier also sends ``tier_unlocked``. Prices of deals that are
    closing or finished are locked.

    Raises:
        DealNotFoundError: If the deal doesn't exist
        InsufficientPermissionsError: If user is not the supplier or staff
        DealClosedError: If prices change on a deal that is no longer active
        InvalidTierTableError: If the new tier table is invalid
    """
    try:
        deal = Deal.objects.select_for_update().get(id=deal_id)
    except Deal.DoesNotExist:
        raise DealNotFoundError(f"Deal with ID {deal_id} not found")

    if not _can_manage(deal, user):
        raise InsufficientPermissionsError("Only the deal's supplier can update it")

    prices_touched = tiers is not None or bool(PRICE_FIELDS.intersection(fields))

    if prices_touched and deal.status != DealStatus.ACTIVE:
        raise DealClosedError(f"Deal {deal.name} is {deal.status}, its prices are locked")

    old_tiers = deal.get_tiers()
    old_tier_number = get_tier_number(
        old_tiers, get_current_tier(old_tiers, deal.participant_count)
    )
    old_price = deal.current_price

    update_fields = ['updated_at']
    for name, value in fields.items():
        if name not in UPDATABLE_FIELDS:
            continue
        setattr(deal, name, value)
        update_fields.append(name)

    if tiers is not None:
        pricing_tiers = validate_tier_table(_build_tiers(tiers), deal.original_price)
        _replace_tiers(deal, pricing_tiers)
    elif prices_touched:
        # Existing tiers must still be ordered under the new original price
        pricing_tiers = validate_tier_table(old_tiers, deal.original_price)
    else:
        pricing_tiers = old_tiers

    new_tier = get_current_tier(pricing_tiers, deal.participant_count)

    if prices_touched:
        reprice_deal(deal, pricing_tiers)
        deal.current_price = current_deal_price(deal, new_tier)
        deal.price_version += 1
        update_fields += ['current_price', 'price_version']

    deal.save(update_fields=update_fields)

    if not prices_touched:
        return deal

    events.publish_on_commit(events.price_updated(deal, get_price_table(deal)))
    logger.info("Deal %s repriced after update (v%s)", deal.id, deal.price_version)

    new_tier_number = get_tier_number(pricing_tiers, new_tier)
    if new_tier is not None and new_tier_number != old_tier_number:
        events.publish_on_commit(events.tier_unlocked(
            deal,
            tier_number=new_tier_number,
            old_price=old_price,
            new_price=deal.current_price,
            discount_percent=new_tier.discount,
        ))

    return deal
