"""
Pricing engine tests.

Pure functions only, no database.
"""

import pytest
from decimal import Decimal

from apps.deals.exceptions import InvalidTierTableError
from apps.deals.pricing import (
    Tier,
    calculate_all_participant_prices,
    calculate_dynamic_price,
    calculate_position_pricing,
    calculate_pricing_from_discount,
    calculate_pricing_from_tier,
    get_current_tier,
    get_tier_number,
    round_price,
    should_update_prices,
    simulate_pricing,
    tier_base_price,
    validate_tier_table,
)


ORIGINAL = Decimal('8500')

TIER_1 = Tier(0, 30, Decimal('15'), Decimal('7225'))
TIER_2 = Tier(31, 60, Decimal('20'), Decimal('6800'))
TIER_3 = Tier(61, 100, Decimal('25'), Decimal('6375'))
TIERS = [TIER_1, TIER_2, TIER_3]


class TestRounding:

    def test_half_rounds_up(self):
        assert round_price(Decimal('7080.5')) == Decimal('7081')

    def test_accepts_floats_without_artefacts(self):
        assert round_price(7152.75) == Decimal('7153')


class TestCurrentTier:

    @pytest.mark.parametrize('count,expected', [
        (0, TIER_1),
        (30, TIER_1),
        (31, TIER_2),
        (60, TIER_2),
        (61, TIER_3),
        (150, TIER_3),
    ])
    def test_highest_reached_threshold_wins(self, count, expected):
        assert get_current_tier(TIERS, count) == expected

    def test_unsorted_table(self):
        assert get_current_tier([TIER_3, TIER_1, TIER_2], 45) == TIER_2

    def test_below_every_threshold_uses_lowest_tier(self):
        tiers = [Tier(5, 10, Decimal('10')), Tier(11, 20, Decimal('20'))]
        assert get_current_tier(tiers, 2) == tiers[0]

    def test_empty_table(self):
        assert get_current_tier([], 10) is None

    def test_tier_number_is_one_based(self):
        assert get_tier_number(TIERS, TIER_2) == 2
        assert get_tier_number(TIERS, None) is None


class TestBasePrice:

    def test_fixed_price_preferred(self):
        tier = Tier(0, 30, Decimal('15'), Decimal('7000'))
        assert tier_base_price(ORIGINAL, tier) == Decimal('7000')

    def test_discount_when_no_fixed_price(self):
        assert tier_base_price(ORIGINAL, Tier(0, 30, Decimal('15'))) == Decimal('7225')

    def test_fractional_fixed_price_rounded(self):
        tier = Tier(0, 30, Decimal('15'), Decimal('7000.50'))
        assert tier_base_price(ORIGINAL, tier) == Decimal('7001')

    def test_zero_price_means_discount(self):
        tier = Tier(0, 30, Decimal('20'), Decimal('0'))
        assert tier_base_price(ORIGINAL, tier) == Decimal('6800')


class TestDynamicPrice:

    def test_five_positions_spread_around_base(self):
        prices = [
            calculate_dynamic_price(ORIGINAL, position, 5, TIER_1).dynamic_price
            for position in range(1, 6)
        ]
        assert prices == [
            Decimal('7081'), Decimal('7153'), Decimal('7225'), Decimal('7297'), Decimal('7370'),
        ]

    def test_first_and_last_position_discount(self):
        first = calculate_dynamic_price(ORIGINAL, 1, 5, TIER_1)
        last = calculate_dynamic_price(ORIGINAL, 5, 5, TIER_1)

        assert first.position_discount == Decimal('-2.0000')
        assert last.position_discount == Decimal('2.0000')
        assert first.base_price == Decimal('7225')
        assert first.discount == Decimal('15')

    def test_single_participant_pays_base(self):
        calc = calculate_dynamic_price(ORIGINAL, 1, 1, TIER_1)
        assert calc.dynamic_price == Decimal('7225')
        assert calc.position_discount == Decimal('0')

    def test_custom_delta(self):
        calc = calculate_dynamic_price(ORIGINAL, 1, 2, TIER_2, Decimal('10'))
        assert calc.dynamic_price == Decimal('6460')

    def test_zero_delta_flattens_prices(self):
        prices = {
            calculate_dynamic_price(ORIGINAL, position, 4, TIER_2, 0).dynamic_price
            for position in range(1, 5)
        }
        assert prices == {Decimal('6800')}

    def test_no_tier_means_original_price(self):
        calc = calculate_dynamic_price(ORIGINAL, 2, 3, None)
        assert calc.dynamic_price == ORIGINAL
        assert calc.discount == Decimal('0')

    def test_position_below_one_rejected(self):
        with pytest.raises(ValueError):
            calculate_dynamic_price(ORIGINAL, 0, 5, TIER_1)

    def test_position_beyond_total_rejected(self):
        with pytest.raises(ValueError):
            calculate_dynamic_price(ORIGINAL, 6, 5, TIER_1)

    def test_position_beyond_single_participant_rejected(self):
        with pytest.raises(ValueError):
            calculate_dynamic_price(ORIGINAL, 2, 1, TIER_1)

    def test_first_position_with_no_participants_yet(self):
        calc = calculate_dynamic_price(ORIGINAL, 1, 0, TIER_1)
        assert calc.dynamic_price == Decimal('7225')


class TestAllParticipantPrices:

    def test_reprices_for_total(self):
        prices = calculate_all_participant_prices(ORIGINAL, TIERS, [(1, 1), (2, 1), (3, 1)])

        assert {p: calc.dynamic_price for p, calc in prices.items()} == {
            1: Decimal('7081'),
            2: Decimal('7225'),
            3: Decimal('7370'),
        }

    def test_quantities_count_towards_tier(self):
        prices = calculate_all_participant_prices(ORIGINAL, TIERS, [(1, 30), (2, 1)])

        assert prices[1].base_price == Decimal('6800')
        assert prices[1].dynamic_price == Decimal('6664')
        assert prices[2].dynamic_price == Decimal('6673')

    def test_no_participants(self):
        assert calculate_all_participant_prices(ORIGINAL, TIERS, []) == {}


class TestSimulation:

    def test_rows_and_differences(self):
        rows = simulate_pricing(ORIGINAL, TIER_1, 5)

        assert [row.position for row in rows] == [1, 2, 3, 4, 5]
        assert rows[0].difference_from_previous == Decimal('0')
        assert rows[1].difference_from_previous == Decimal('72')
        assert rows[-1].price == Decimal('7370')

    def test_as_dict(self):
        row = simulate_pricing(ORIGINAL, TIER_1, 1)[0]
        assert row.as_dict()['price'] == Decimal('7225')


class TestTierChange:

    def test_crossing_threshold(self):
        assert should_update_prices(30, 31, TIERS) is True

    def test_within_tier(self):
        assert should_update_prices(10, 20, TIERS) is False

    def test_first_join_stays_in_lowest_tier(self):
        assert should_update_prices(0, 1, TIERS) is False


class TestPositionPricing:

    def test_variance_around_average(self):
        pricing = calculate_position_pricing(Decimal('7225'))

        assert pricing.first_buyer_price == Decimal('7044')
        assert pricing.last_buyer_price == Decimal('7406')
        assert pricing.avg_price == Decimal('7225')

    def test_from_discount(self):
        pricing = calculate_pricing_from_discount(ORIGINAL, 20)
        assert pricing.avg_price == Decimal('6800')

    def test_from_tier_with_fixed_price(self):
        pricing = calculate_pricing_from_tier(TIER_2, ORIGINAL)

        assert pricing.first_buyer_price == Decimal('6630')
        assert pricing.last_buyer_price == Decimal('6970')


class TestValidateTierTable:

    def test_returns_sorted_table(self):
        assert validate_tier_table([TIER_3, TIER_1, TIER_2], ORIGINAL) == TIERS

    def test_empty_table(self):
        with pytest.raises(InvalidTierTableError):
            validate_tier_table([], ORIGINAL)

    def test_overlapping_ranges(self):
        tiers = [Tier(0, 30, Decimal('15')), Tier(30, 60, Decimal('20'))]
        with pytest.raises(InvalidTierTableError, match='overlaps'):
            validate_tier_table(tiers, ORIGINAL)

    def test_price_must_not_rise(self):
        tiers = [Tier(0, 30, Decimal('20')), Tier(31, 60, Decimal('15'))]
        with pytest.raises(InvalidTierTableError, match='more expensive'):
            validate_tier_table(tiers, ORIGINAL)

    def test_min_above_max(self):
        with pytest.raises(InvalidTierTableError):
            validate_tier_table([Tier(10, 5, Decimal('10'))], ORIGINAL)

    def test_discount_out_of_range(self):
        with pytest.raises(InvalidTierTableError):
            validate_tier_table([Tier(0, 5, Decimal('120'))], ORIGINAL)

    def test_negative_price(self):
        with pytest.raises(InvalidTierTableError):
            validate_tier_table([Tier(0, 5, Decimal('10'), Decimal('-1'))], ORIGINAL)
