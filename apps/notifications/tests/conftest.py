import pytest
from datetime import timedelta
from decimal import Decimal
from channels.layers import channel_layers
from django.utils import timezone
from apps.accounts.models import User
from apps.deals.models import DealCategory
from apps.deals.services import create_deal


@pytest.fixture(autouse=True)
def fresh_channel_layer():
    """Give every test its own in-memory channel layer."""
    channel_layers.backends = {}
    yield
    channel_layers.backends = {}


@pytest.fixture
def supplier(db):
    """Create and return a supplier who publishes deals."""
    return User.objects.create_user(
        email='supplier@example.com',
        password='TestPass123!',
        display_name='Cool Appliances',
        is_supplier=True,
    )


@pytest.fixture
def buyer(db):
    """Create and return a buyer."""
    return User.objects.create_user(
        email='buyer@example.com',
        password='TestPass123!',
        display_name='Buyer One',
    )


@pytest.fixture
def deal(db, supplier):
    """Active fridge deal ending tomorrow, no participants yet."""
    return create_deal(
        supplier=supplier,
        tiers=[
            {'min_participants': 0, 'max_participants': 30, 'discount': Decimal('15'), 'price': Decimal('7225')},
            {'min_participants': 31, 'max_participants': 60, 'discount': Decimal('20'), 'price': Decimal('6800')},
        ],
        name='Samsung 4-door refrigerator',
        category=DealCategory.ELECTRICAL,
        original_price=Decimal('8500'),
        target_participants=60,
        end_time=timezone.now() + timedelta(days=1),
    )


@pytest.fixture
def other_deal(db, supplier):
    """A second active deal, for sockets following more than one deal."""
    return create_deal(
        supplier=supplier,
        tiers=[
            {'min_participants': 0, 'max_participants': 100, 'discount': Decimal('10')},
        ],
        name='LG front-load washer 9kg',
        category=DealCategory.ELECTRICAL,
        original_price=Decimal('1000'),
        target_participants=100,
        end_time=timezone.now() + timedelta(days=2),
    )
