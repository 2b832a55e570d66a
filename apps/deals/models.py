from django.db import models
from django.core.validators import MinValueValidator, MaxValueValidator
from django.utils import timezone
from decimal import Decimal
import uuid

from apps.accounts.models import initials_for

from .pricing import Tier, get_current_tier, DEFAULT_PRICE_DELTA_PERCENTAGE


class DealCategory(models.TextChoices):
    APARTMENTS = 'apartments', 'Apartments'
    ELECTRICAL = 'electrical', 'Electrical Appliances'
    FURNITURE = 'furniture', 'Furniture'
    ELECTRONICS = 'electronics', 'Electronics'
    HOME = 'home', 'Home'
    FASHION = 'fashion', 'Fashion'


class DealStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    ACTIVE = 'active', 'Active'
    CLOSING = 'closing', 'Closing'
    CLOSED = 'closed', 'Closed'
    CANCELLED = 'cancelled', 'Cancelled'
    PARTIALLY_FAILED = 'partially_failed', 'Partially Failed'
    PAYMENT_FAILED = 'payment_failed', 'Payment Failed'


class PaymentStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    CHARGED = 'charged', 'Charged'
    FAILED = 'failed', 'Failed'
    CANCELLED = 'cancelled', 'Cancelled'


class Deal(models.Model):
    """Group-buying deal whose price drops as participants join."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    category = models.CharField(max_length=20, choices=DealCategory.choices)

    supplier = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='supplied_deals'
    )

    # Prices in whole currency units
    original_price = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('1'))]
    )
    current_price = models.DecimalField(max_digits=12, decimal_places=2)
    price_delta_percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        default=DEFAULT_PRICE_DELTA_PERCENTAGE,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('50'))]
    )

    # Participation
    participant_count = models.PositiveIntegerField(default=0)
    min_participants = models.PositiveIntegerField(default=1)
    target_participants = models.PositiveIntegerField()

    # Lifecycle
    end_time = models.DateTimeField()
    status = models.CharField(
        max_length=20,
        choices=DealStatus.choices,
        default=DealStatus.ACTIVE
    )

    # Bumped on every price-affecting change, echoed in feed events
    price_version = models.PositiveIntegerField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'deals'
        indexes = [
            models.Index(fields=['status', 'end_time'], name='deals_status_end_idx'),
            models.Index(fields=['category', 'status'], name='deals_category_idx'),
            models.Index(fields=['supplier', 'created_at'], name='deals_supplier_idx'),
        ]
        ordering = ['end_time']

    def __str__(self):
        return f"{self.name} - {self.current_price} ({self.participant_count} joined)"

    def is_open(self, now=None):
        """Active and not yet past its end time."""
        now = now or timezone.now()
        return self.status == DealStatus.ACTIVE and self.end_time > now

    def get_tiers(self):
        """Pricing tiers sorted by threshold."""
        return [tier.as_pricing_tier() for tier in self.tiers.order_by('min_participants')]

    def get_current_tier(self):
        return get_current_tier(self.get_tiers(), self.participant_count)


class DealTier(models.Model):
    """One row of a deal's tier table."""

    deal = models.ForeignKey(Deal, on_delete=models.CASCADE, related_name='tiers')
    min_participants = models.PositiveIntegerField()
    max_participants = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    discount = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        validators=[MinValueValidator(Decimal('0')), MaxValueValidator(Decimal('100'))]
    )
    price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    class Meta:
        db_table = 'deal_tiers'
        unique_together = [['deal', 'min_participants']]
        ordering = ['min_participants']

    def __str__(self):
        return f"{self.deal.name}: {self.min_participants}-{self.max_participants} ({self.discount}%)"

    def as_pricing_tier(self):
        return Tier(
            min_participants=self.min_participants,
            max_participants=self.max_participants,
            discount=self.discount,
            price=self.price,
        )


class Participant(models.Model):
    """A buyer's place in a deal's join queue."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    deal = models.ForeignKey(Deal, on_delete=models.CASCADE, related_name='participants')
    user = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='participations'
    )

    name = models.CharField(max_length=200)
    email = models.EmailField(blank=True)
    quantity = models.PositiveIntegerField(default=1, validators=[MinValueValidator(1)])

    # 1-based join order
    position = models.PositiveIntegerField()

    # Price when joining, current price for the position, and the charged amount
    initial_price = models.DecimalField(max_digits=12, decimal_places=2)
    price_paid = models.DecimalField(max_digits=12, decimal_places=2)
    final_price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)

    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING
    )
    payment_reference = models.CharField(max_length=100, blank=True)

    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'deal_participants'
        constraints = [
            models.UniqueConstraint(fields=['deal', 'position'], name='unique_deal_position'),
            models.UniqueConstraint(fields=['deal', 'user'], name='unique_deal_user'),
        ]
        indexes = [
            models.Index(fields=['user', 'joined_at'], name='participants_user_idx'),
            models.Index(fields=['deal', 'payment_status'], name='participants_payment_idx'),
        ]
        ordering = ['position']

    def __str__(self):
        return f"#{self.position} {self.name} @ {self.price_paid} ({self.deal.name})"

    def get_initials(self):
        return initials_for(self.name)
