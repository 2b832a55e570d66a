import pytest
from datetime import timedelta
from decimal import Decimal
from django.utils import timezone
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.deals.models import DealCategory
from apps.deals.services import create_deal


FRIDGE_TIERS = [
    {'min_participants': 0, 'max_participants': 30, 'discount': Decimal('15'), 'price': Decimal('7225')},
    {'min_participants': 31, 'max_participants': 60, 'discount': Decimal('20'), 'price': Decimal('6800')},
    {'min_participants': 61, 'max_participants': 100, 'discount': Decimal('25'), 'price': Decimal('6375')},
]


def client_for(user):
    """Return an API client authenticated as ``user``."""
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture(autouse=True)
def _no_ssl_redirect(settings):
    """Disable the production HTTPS redirect for the plain-HTTP test client."""
    settings.SECURE_SSL_REDIRECT = False


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


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
def other_supplier(db):
    """Create and return a supplier who does not own the test deal."""
    return User.objects.create_user(
        email='other-supplier@example.com',
        password='TestPass123!',
        display_name='Other Supplier',
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
def buyer2(db):
    """Create and return a second buyer."""
    return User.objects.create_user(
        email='buyer2@example.com',
        password='TestPass123!',
        display_name='Second Buyer',
    )


@pytest.fixture
def buyer3(db):
    """Create and return a third buyer."""
    return User.objects.create_user(
        email='buyer3@example.com',
        password='TestPass123!',
        display_name='Third Buyer',
    )


@pytest.fixture
def staff(db):
    """Create and return a staff user."""
    return User.objects.create_user(
        email='staff@example.com',
        password='TestPass123!',
        display_name='Staff Member',
        is_staff=True,
    )


@pytest.fixture
def supplier_client(supplier):
    """Return API client authenticated as the deal's supplier."""
    return client_for(supplier)


@pytest.fixture
def other_supplier_client(other_supplier):
    """Return API client authenticated as another supplier."""
    return client_for(other_supplier)


@pytest.fixture
def buyer_client(buyer):
    """Return API client authenticated as buyer."""
    return client_for(buyer)


@pytest.fixture
def buyer2_client(buyer2):
    """Return API client authenticated as buyer2."""
    return client_for(buyer2)


@pytest.fixture
def staff_client(staff):
    """Return API client authenticated as staff."""
    return client_for(staff)


@pytest.fixture
def tier_data():
    """Fridge tier table: 15 % / 20 % / 25 % off 8500."""
    return [dict(tier) for tier in FRIDGE_TIERS]


@pytest.fixture
def deal(db, supplier, tier_data):
    """Active fridge deal ending tomorrow, no participants yet."""
    return create_deal(
        supplier=supplier,
        tiers=tier_data,
        name='Samsung 4-door refrigerator',
        description='636 litre family refrigerator',
        category=DealCategory.ELECTRICAL,
        original_price=Decimal('8500'),
        target_participants=100,
        end_time=timezone.now() + timedelta(days=1),
    )


@pytest.fixture
def expired_deal(db, supplier, tier_data):
    """Active deal whose end time passed an hour ago."""
    return create_deal(
        supplier=supplier,
        tiers=tier_data,
        name='Expired TV deal',
        category=DealCategory.ELECTRONICS,
        original_price=Decimal('8500'),
        target_participants=100,
        end_time=timezone.now() - timedelta(hours=1),
    )
