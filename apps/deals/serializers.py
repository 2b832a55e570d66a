from rest_framework import serializers

from .models import Deal, DealTier, Participant, DealCategory, DealStatus
from .pricing import Tier, calculate_pricing_from_tier
from apps.accounts.models import User


# =============================================================================
# Input Serializers
# =============================================================================

class DealFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for deal filtering.

    Query Parameters:
        category (str): Filter by category
        status (str): Filter by deal status
        is_open (bool): Only deals still accepting participants
        supplier (UUID): Filter by supplier
    """

    category = serializers.ChoiceField(choices=DealCategory.choices, required=False)
    status = serializers.ChoiceField(choices=DealStatus.choices, required=False)
    is_open = serializers.BooleanField(required=False, allow_null=True, default=None)
    supplier = serializers.UUIDField(required=False)


class TierInputSerializer(serializers.Serializer):
    """One row of a tier table as sent by a supplier."""

    min_participants = serializers.IntegerField(min_value=0)
    max_participants = serializers.IntegerField(min_value=1)
    discount = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=100
    )
    price = serializers.DecimalField(
        max_digits=12, decimal_places=2, min_value=0, required=False, allow_null=True
    )

    def validate(self, attrs):
        if attrs['min_participants'] > attrs['max_participants']:
            raise serializers.ValidationError({
                'max_participants': 'Must not be below min_participants'
            })
        return attrs


class DealCreateSerializer(serializers.ModelSerializer):
    """Serializer for publishing a deal with its tier table."""

    tiers = TierInputSerializer(many=True, allow_empty=False)

    class Meta:
        model = Deal
        fields = [
            'name',
            'description',
            'category',
            'original_price',
            'price_delta_percentage',
            'min_participants',
            'target_participants',
            'end_time',
            'tiers',
        ]
        extra_kwargs = {
            'price_delta_percentage': {'required': False},
            'min_participants': {'required': False},
        }


class DealUpdateSerializer(serializers.ModelSerializer):
    """Partial update of a deal; ``tiers`` replaces the whole table."""

    tiers = TierInputSerializer(many=True, allow_empty=False, required=False)

    class Meta:
        model = Deal
        fields = [
            'name',
            'description',
            'category',
            'original_price',
            'price_delta_percentage',
            'min_participants',
            'target_participants',
            'end_time',
            'tiers',
        ]
        extra_kwargs = {field: {'required': False} for field in fields}


class JoinDealSerializer(serializers.Serializer):
    """
    Validate input for joining a deal.

    Fields:
        quantity (int): Units bought, counted towards tier thresholds
        name (str): Optional display name override
        email (str): Optional contact email override
    """

    quantity = serializers.IntegerField(min_value=1, default=1)
    name = serializers.CharField(max_length=200, required=False, allow_blank=True)
    email = serializers.EmailField(required=False, allow_blank=True)


class SimulateQuerySerializer(serializers.Serializer):
    """
    Validate query parameters for price simulation.

    Query Parameters:
        units (int): Buyers to simulate in the tier
        delta (decimal): Position spread in percent, defaults to the deal's
        tier (int): 1-based tier to simulate, defaults to the current tier
    """

    units = serializers.IntegerField(min_value=1, max_value=1000, default=10)
    delta = serializers.DecimalField(
        max_digits=5, decimal_places=2, min_value=0, max_value=50, required=False
    )
    tier = serializers.IntegerField(min_value=1, required=False)


# =============================================================================
# Output Serializers
# =============================================================================

class SupplierMinimalSerializer(serializers.ModelSerializer):
    """Minimal supplier info for nested serialization."""

    display_name = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = ['id', 'display_name']
        read_only_fields = fields

    def get_display_name(self, obj):
        return obj.get_display_name()


class DealTierSerializer(serializers.ModelSerializer):

    class Meta:
        model = DealTier
        fields = ['min_participants', 'max_participants', 'discount', 'price']
        read_only_fields = fields


class DealListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for deal cards."""

    is_open = serializers.SerializerMethodField()

    class Meta:
        model = Deal
        fields = [
            'id',
            'name',
            'category',
            'original_price',
            'current_price',
            'participant_count',
            'target_participants',
            'end_time',
            'status',
            'is_open',
        ]
        read_only_fields = fields

    def get_is_open(self, obj):
        return obj.is_open()


class DealSerializer(serializers.ModelSerializer):
    """Full deal with its tier table and the current tier's price spread."""

    supplier = SupplierMinimalSerializer(read_only=True)
    tiers = DealTierSerializer(many=True, read_only=True)
    is_open = serializers.SerializerMethodField()
    position_pricing = serializers.SerializerMethodField()

    class Meta:
        model = Deal
        fields = [
            'id',
            'name',
            'description',
            'category',
            'supplier',
            'original_price',
            'current_price',
            'price_delta_percentage',
            'participant_count',
            'min_participants',
            'target_participants',
            'end_time',
            'status',
            'is_open',
            'price_version',
            'tiers',
            'position_pricing',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_is_open(self, obj):
        return obj.is_open()

    def get_position_pricing(self, obj):
        tier: Tier = obj.get_current_tier()
        if tier is None:
            return None
        pricing = calculate_pricing_from_tier(tier, obj.original_price)
        return {
            'first_buyer_price': str(pricing.first_buyer_price),
            'last_buyer_price': str(pricing.last_buyer_price),
            'avg_price': str(pricing.avg_price),
        }


class ParticipantSerializer(serializers.ModelSerializer):
    """Public view of a participant: initials only, no contact details."""

    initials = serializers.SerializerMethodField()

    class Meta:
        model = Participant
        fields = [
            'id',
            'position',
            'initials',
            'quantity',
            'initial_price',
            'price_paid',
            'final_price',
            'payment_status',
            'joined_at',
        ]
        read_only_fields = fields

    def get_initials(self, obj):
        return obj.get_initials()


class JoinResponseSerializer(serializers.Serializer):
    participant = ParticipantSerializer()
    current_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    participant_count = serializers.IntegerField()
    tier_changed = serializers.BooleanField()
    version = serializers.IntegerField()


class PriceEntrySerializer(serializers.Serializer):
    position = serializers.IntegerField()
    name = serializers.CharField()
    quantity = serializers.IntegerField()
    price = serializers.DecimalField(max_digits=12, decimal_places=2)


class PriceTierSerializer(serializers.Serializer):
    min_participants = serializers.IntegerField()
    max_participants = serializers.IntegerField()
    discount = serializers.DecimalField(max_digits=5, decimal_places=2)
    price = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)


class PriceTableSerializer(serializers.Serializer):
    """Price snapshot, same shape the live feed sends on connect."""

    deal_id = serializers.UUIDField()
    version = serializers.IntegerField()
    participant_count = serializers.IntegerField()
    current_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    tier_number = serializers.IntegerField(allow_null=True)
    tier = PriceTierSerializer(allow_null=True)
    prices = PriceEntrySerializer(many=True)


class QuoteSerializer(serializers.Serializer):
    deal_id = serializers.UUIDField()
    position = serializers.IntegerField()
    quantity = serializers.IntegerField()
    unit_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    total_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    original_price = serializers.DecimalField(max_digits=12, decimal_places=2)
    tier_number = serializers.IntegerField(allow_null=True)
    version = serializers.IntegerField()
    is_open = serializers.BooleanField()


class SimulationRowSerializer(serializers.Serializer):
    position = serializers.IntegerField()
    price = serializers.DecimalField(max_digits=12, decimal_places=2)
    discount = serializers.DecimalField(max_digits=5, decimal_places=2)
    position_discount = serializers.DecimalField(max_digits=8, decimal_places=4)
    difference_from_previous = serializers.DecimalField(max_digits=12, decimal_places=2)


class ClosureResultSerializer(serializers.Serializer):
    deal_id = serializers.UUIDField()
    status = serializers.CharField()
    charged = serializers.IntegerField()
    failed = serializers.IntegerField()
    skipped = serializers.BooleanField()
