import pytest
from decimal import Decimal
from io import StringIO
from django.core.management import call_command
from apps.deals.models import Deal, DealStatus
from apps.deals.services import join_deal


def run(*args):
    out = StringIO()
    call_command(*args, stdout=out)
    return out.getvalue()


@pytest.mark.django_db
class TestCloseExpiredDealsCommand:

    def test_closes_expired_deals(self, deal, expired_deal):
        output = run('close_expired_deals')

        expired_deal.refresh_from_db()
        deal.refresh_from_db()
        assert 'Processed 1 deal(s)' in output
        assert expired_deal.status == DealStatus.CANCELLED
        assert deal.status == DealStatus.ACTIVE

    def test_dry_run_changes_nothing(self, expired_deal):
        output = run('close_expired_deals', '--dry-run')

        expired_deal.refresh_from_db()
        assert '--dry-run mode' in output
        assert expired_deal.status == DealStatus.ACTIVE

    def test_nothing_to_close(self, deal):
        assert 'No expired deals' in run('close_expired_deals')


@pytest.mark.django_db
class TestRecalculatePricesCommand:

    @pytest.fixture
    def drifted_deal(self, deal, buyer, buyer2):
        join_deal(deal_id=deal.id, user=buyer)
        join_deal(deal_id=deal.id, user=buyer2)
        deal.participants.filter(position=1).update(price_paid=Decimal('9999'))
        return deal

    def test_fixes_drifted_price(self, drifted_deal):
        output = run('recalculate_prices')

        assert 'Updated 1 participant price(s)' in output
        assert drifted_deal.participants.get(position=1).price_paid == Decimal('7081')

    def test_dry_run_previews(self, drifted_deal):
        output = run('recalculate_prices', '--dry-run')

        assert '#1: 9999.00 -> 7081' in output
        assert drifted_deal.participants.get(position=1).price_paid == Decimal('9999')


@pytest.mark.django_db
class TestCreateSampleDealsCommand:

    def test_creates_deals_in_different_tiers(self):
        run('create_sample_deals')

        assert Deal.objects.count() == 6
        fridge = Deal.objects.get(name='Samsung 4-door refrigerator 636L')
        assert fridge.participant_count == 45
        assert fridge.current_price == Decimal('6800')
        assert fridge.participants.count() == 45

    def test_participants_priced_by_position(self):
        run('create_sample_deals')

        fridge = Deal.objects.get(name='Samsung 4-door refrigerator 636L')
        prices = list(fridge.participants.order_by('position').values_list('price_paid', flat=True))
        assert prices[0] < prices[-1]
        assert prices[0] == Decimal('6664')

    def test_clear_replaces_deals(self):
        run('create_sample_deals')
        run('create_sample_deals', '--clear')

        assert Deal.objects.count() == 6
