"""
Dynamic Tiered Pricing Engine
=============================

Pure functions that turn a deal's tier table, original price and join
positions into prices. Nothing here touches the database; the services layer
feeds plain values in and persists what comes out.

Pricing model:
    1. The **tier** is picked by participant count: the highest tier whose
       ``min_participants`` has been reached, or the lowest tier while no
       threshold has been reached yet.
    2. The tier's **base price** is its fixed ``price`` when one is set,
       otherwise ``original_price * (1 - discount / 100)``.
    3. Every join **position** gets a linear variance of ``delta`` percent
       spread around the base price: position 1 pays ``delta / 2`` percent
       below base (early bird), the last position ``delta / 2`` percent above
       (late joiner).

All prices are whole currency units, rounded half up.

Example:
    Five buyers in a 15 % tier of an 8 500 deal::

        >>> tier = Tier(min_participants=0, max_participants=30, discount=Decimal('15'))
        >>> [calculate_dynamic_price(Decimal('8500'), p, 5, tier).dynamic_price
        ...  for p in range(1, 6)]
        [Decimal('7081'), Decimal('7153'), Decimal('7225'), Decimal('7297'), Decimal('7370')]
"""

from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .exceptions import InvalidTierTableError


DEFAULT_PRICE_DELTA_PERCENTAGE = Decimal('4')

# Display spread for first/last buyer prices on deal cards
POSITION_VARIANCE = Decimal('0.025')

WHOLE_UNIT = Decimal('1')
PERCENT_PRECISION = Decimal('0.0001')
HUNDRED = Decimal('100')


def to_decimal(value) -> Decimal:
    """Coerce ints, floats and strings to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def round_price(amount) -> Decimal:
    """Round to a whole currency unit, halves away from zero."""
    return to_decimal(amount).quantize(WHOLE_UNIT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Tier:
    """A participant-count range mapped to a discount or a fixed price."""

    min_participants: int
    max_participants: int
    discount: Decimal = Decimal('0')
    price: Optional[Decimal] = None

    def has_fixed_price(self) -> bool:
        return self.price is not None and self.price > 0

    def as_dict(self) -> dict:
        return {
            'min_participants': self.min_participants,
            'max_participants': self.max_participants,
            'discount': self.discount,
            'price': self.price,
        }


@dataclass(frozen=True)
class PriceCalculation:
    base_price: Decimal
    dynamic_price: Decimal
    discount: Decimal
    position_discount: Decimal
    total_participants: int


@dataclass(frozen=True)
class PositionPricing:
    first_buyer_price: Decimal
    last_buyer_price: Decimal
    avg_price: Decimal


@dataclass(frozen=True)
class SimulationRow:
    position: int
    price: Decimal
    discount: Decimal
    position_discount: Decimal
    difference_from_previous: Decimal

    def as_dict(self) -> dict:
        return asdict(self)


def sort_tiers(tiers: Iterable[Tier]) -> List[Tier]:
    return sorted(tiers, key=lambda tier: tier.min_participants)


def get_current_tier(tiers: Sequence[Tier], participant_count: int) -> Optional[Tier]:
    """
    Return the tier that applies to ``participant_count`` participants.

    The highest tier whose ``min_participants`` is reached wins. When the
    count is below every threshold the lowest tier still applies, so a deal
    always has a price once it has a tier table.

    Args:
        tiers: Tier table in any order.
        participant_count: Current number of participants (sum of quantities).

    Returns:
        The applicable Tier, or None for an empty table.
    """
    if not tiers:
        return None

    sorted_tiers = sort_tiers(tiers)
    for tier in reversed(sorted_tiers):
        if participant_count >= tier.min_participants:
            return tier

    return sorted_tiers[0]


def get_tier_number(tiers: Sequence[Tier], tier: Optional[Tier]) -> Optional[int]:
    """1-based index of ``tier`` in the sorted table, as shown to buyers."""
    if tier is None:
        return None
    return sort_tiers(tiers).index(tier) + 1


def tier_base_price(original_price, tier: Tier) -> Decimal:
    """
    Fixed tier price when set, otherwise the discounted original price.

    Both come back in whole currency units, so a fractional fixed price is
    rounded half up like every other price.
    """
    if tier.has_fixed_price():
        return round_price(tier.price)
    discount = to_decimal(tier.discount)
    return round_price(to_decimal(original_price) * (1 - discount / HUNDRED))


def calculate_dynamic_price(
    original_price,
    position: int,
    total_participants: int,
    current_tier: Optional[Tier],
    price_delta_percentage=DEFAULT_PRICE_DELTA_PERCENTAGE,
) -> PriceCalculation:
    """
    Price for the buyer at ``position`` out of ``total_participants``.

    Args:
        original_price: Undiscounted deal price.
        position: 1-based join position.
        total_participants: Participant count used for the interpolation.
        current_tier: Tier from get_current_tier(); None means no discount.
        price_delta_percentage: Spread in percent between the first and the
            last position (default 4, i.e. -2 % .. +2 %).

    Returns:
        PriceCalculation with the tier base price and the position price.

    Raises:
        ValueError: If position is outside 1..total_participants.
    """
    original_price = to_decimal(original_price)

    if position < 1:
        raise ValueError(f"Position must be 1 or greater, got {position}")
    if position > max(total_participants, 1):
        raise ValueError(
            f"Position {position} is beyond {total_participants} participants"
        )

    if current_tier is None:
        return PriceCalculation(
            base_price=original_price,
            dynamic_price=original_price,
            discount=Decimal('0'),
            position_discount=Decimal('0'),
            total_participants=total_participants,
        )

    discount = to_decimal(current_tier.discount)
    base_price = tier_base_price(original_price, current_tier)

    if total_participants <= 1:
        return PriceCalculation(
            base_price=base_price,
            dynamic_price=base_price,
            discount=discount,
            position_discount=Decimal('0'),
            total_participants=total_participants,
        )

    delta = to_decimal(price_delta_percentage)
    ratio = Decimal(position - 1) / Decimal(total_participants - 1)
    position_discount = -(delta / 2) + ratio * delta
    dynamic_price = round_price(base_price * (1 + position_discount / HUNDRED))

    return PriceCalculation(
        base_price=base_price,
        dynamic_price=dynamic_price,
        discount=discount,
        position_discount=position_discount.quantize(PERCENT_PRECISION, rounding=ROUND_HALF_UP),
        total_participants=total_participants,
    )


def calculate_all_participant_prices(
    original_price,
    tiers: Sequence[Tier],
    participants: Iterable[Tuple[int, int]],
    price_delta_percentage=DEFAULT_PRICE_DELTA_PERCENTAGE,
) -> Dict[int, PriceCalculation]:
    """
    Reprice every position of a deal for its current participant total.

    Used retroactively whenever the total changes: earlier joiners' prices
    follow the tier and the interpolation span.

    Args:
        participants: ``(position, quantity)`` pairs.

    Returns:
        Mapping of position to PriceCalculation.
    """
    participants = list(participants)
    total = sum(quantity for _, quantity in participants)
    current_tier = get_current_tier(tiers, total)

    return {
        position: calculate_dynamic_price(
            original_price,
            position,
            total,
            current_tier,
            price_delta_percentage,
        )
        for position, _ in participants
    }


def simulate_pricing(
    original_price,
    tier: Tier,
    units_per_tier: int,
    price_delta_percentage=DEFAULT_PRICE_DELTA_PERCENTAGE,
) -> List[SimulationRow]:
    """Price every position of a tier filled with ``units_per_tier`` buyers."""
    rows: List[SimulationRow] = []

    for position in range(1, units_per_tier + 1):
        calc = calculate_dynamic_price(
            original_price,
            position,
            units_per_tier,
            tier,
            price_delta_percentage,
        )
        previous = rows[-1].price if rows else calc.dynamic_price
        rows.append(SimulationRow(
            position=position,
            price=calc.dynamic_price,
            discount=calc.discount,
            position_discount=calc.position_discount,
            difference_from_previous=calc.dynamic_price - previous,
        ))

    return rows


def should_update_prices(old_count: int, new_count: int, tiers: Sequence[Tier]) -> bool:
    """True when moving from ``old_count`` to ``new_count`` changes the tier."""
    old_tier = get_current_tier(tiers, old_count)
    new_tier = get_current_tier(tiers, new_count)

    old_min = old_tier.min_participants if old_tier else None
    new_min = new_tier.min_participants if new_tier else None
    return old_min != new_min


def calculate_position_pricing(tier_average_price) -> PositionPricing:
    tier_average_price = to_decimal(tier_average_price)
    variance = tier_average_price * POSITION_VARIANCE
    return PositionPricing(
        first_buyer_price=round_price(tier_average_price - variance),
        last_buyer_price=round_price(tier_average_price + variance),
        avg_price=round_price(tier_average_price),
    )


def calculate_pricing_from_discount(original_price, discount_percent) -> PositionPricing:
    average = to_decimal(original_price) * (1 - to_decimal(discount_percent) / HUNDRED)
    return calculate_position_pricing(average)


def calculate_pricing_from_tier(tier: Tier, original_price) -> PositionPricing:
    if tier.has_fixed_price():
        return calculate_position_pricing(tier.price)
    return calculate_pricing_from_discount(original_price, tier.discount)


def validate_tier_table(tiers: Sequence[Tier], original_price) -> List[Tier]:
    """
    Check a tier table and return it sorted by ``min_participants``.

    Rules:
        - at least one tier
        - ``0 <= min_participants <= max_participants`` and ``max >= 1``
        - discount between 0 and 100 percent
        - ranges do not overlap
        - base price never rises as the thresholds rise

    Raises:
        InvalidTierTableError: On the first violated rule.
    """
    if not tiers:
        raise InvalidTierTableError("At least one tier is required")

    sorted_tiers = sort_tiers(tiers)

    for tier in sorted_tiers:
        if tier.min_participants < 0:
            raise InvalidTierTableError("min_participants cannot be negative")
        if tier.max_participants < 1:
            raise InvalidTierTableError("max_participants must be at least 1")
        if tier.min_participants > tier.max_participants:
            raise InvalidTierTableError(
                f"Tier {tier.min_participants}-{tier.max_participants} has min above max"
            )
        discount = to_decimal(tier.discount)
        if discount < 0 or discount > HUNDRED:
            raise InvalidTierTableError("Discount must be between 0 and 100")
        if tier.price is not None and tier.price < 0:
            raise InvalidTierTableError("Tier price cannot be negative")

    for lower, upper in zip(sorted_tiers, sorted_tiers[1:]):
        if upper.min_participants <= lower.max_participants:
            raise InvalidTierTableError(
                f"Tier starting at {upper.min_participants} overlaps tier ending at "
                f"{lower.max_participants}"
            )
        if tier_base_price(original_price, upper) > tier_base_price(original_price, lower):
            raise InvalidTierTableError(
                f"Tier starting at {upper.min_participants} is more expensive than the tier below it"
            )

    return sorted_tiers
