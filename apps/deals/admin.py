# ==========================================
# apps/deals/admin.py
# ==========================================

from django.contrib import admin
from django.utils.html import format_html
from .models import Deal, DealTier, Participant, DealStatus, PaymentStatus
from .services import close_deal, reprice_deal


BADGE_HTML = (
    '<span style="background: {}; color: {}; padding: 3px 8px; '
    'border-radius: 10px; font-size: 11px;">{}</span>'
)

DEAL_STATUS_COLORS = {
    DealStatus.DRAFT: ('#E8DDD4', '#2C1810'),
    DealStatus.ACTIVE: ('#6B8E5E', 'white'),
    DealStatus.CLOSING: ('#E5C49A', '#2C1810'),
    DealStatus.CLOSED: ('#A47449', 'white'),
    DealStatus.CANCELLED: ('#999', 'white'),
    DealStatus.PARTIALLY_FAILED: ('#D08C5C', 'white'),
    DealStatus.PAYMENT_FAILED: ('#B85C5C', 'white'),
}

PAYMENT_STATUS_COLORS = {
    PaymentStatus.PENDING: ('#E5C49A', '#2C1810'),
    PaymentStatus.CHARGED: ('#6B8E5E', 'white'),
    PaymentStatus.FAILED: ('#B85C5C', 'white'),
    PaymentStatus.CANCELLED: ('#999', 'white'),
}


class DealTierInline(admin.TabularInline):
    """Inline admin for a deal's tier table."""
    model = DealTier
    extra = 0
    fields = ['min_participants', 'max_participants', 'discount', 'price']


class ParticipantInline(admin.TabularInline):
    """Inline admin for participants within a deal."""
    model = Participant
    extra = 0
    fields = [
        'position',
        'name',
        'quantity',
        'price_paid',
        'final_price',
        'payment_badge',
        'payment_reference',
    ]
    readonly_fields = fields
    ordering = ['position']

    def payment_badge(self, obj):
        """Display payment status as colored badge."""
        bg, fg = PAYMENT_STATUS_COLORS.get(obj.payment_status, ('#ccc', '#666'))
        return format_html(BADGE_HTML, bg, fg, obj.get_payment_status_display())
    payment_badge.short_description = 'Payment'

    def has_add_permission(self, request, obj=None):
        """Participants are created by joining, not by hand."""
        return False


@admin.register(Deal)
class DealAdmin(admin.ModelAdmin):
    """
    Admin interface for Deals.

    Provides:
    - Deal listing with live price and status
    - Inline tier table and participants
    - Actions to reprice or close deals
    """

    list_display = [
        'name',
        'category',
        'supplier',
        'original_price',
        'current_price',
        'participant_count',
        'status_badge',
        'end_time',
    ]

    list_filter = [
        'status',
        'category',
        'end_time',
    ]

    search_fields = [
        'name',
        'description',
        'supplier__email',
        'supplier__display_name',
    ]

    readonly_fields = [
        'current_price',
        'participant_count',
        'price_version',
        'created_at',
        'updated_at',
    ]

    inlines = [DealTierInline, ParticipantInline]
    date_hierarchy = 'end_time'
    ordering = ['-created_at']

    fieldsets = (
        ('Deal Information', {
            'fields': (
                'name',
                'description',
                'category',
                'supplier',
            )
        }),
        ('Pricing', {
            'fields': (
                'original_price',
                'current_price',
                'price_delta_percentage',
                'price_version',
            )
        }),
        ('Participation', {
            'fields': (
                'participant_count',
                'min_participants',
                'target_participants',
                'end_time',
                'status',
            )
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',),
        }),
    )

    def status_badge(self, obj):
        """Display deal status as colored badge."""
        bg, fg = DEAL_STATUS_COLORS.get(obj.status, ('#ccc', '#666'))
        return format_html(BADGE_HTML, bg, fg, obj.get_status_display())
    status_badge.short_description = 'Status'
    status_badge.admin_order_field = 'status'

    actions = [
        'close_selected',
        'reprice_selected',
    ]

    @admin.action(description='Close selected deals and charge participants')
    def close_selected(self, request, queryset):
        """Run closure for selected active deals."""
        results = [close_deal(deal.id) for deal in queryset.filter(status=DealStatus.ACTIVE)]
        charged = sum(result.charged for result in results)
        self.message_user(request, f'Closed {len(results)} deal(s), {charged} charge(s).')

    @admin.action(description='Recalculate participant prices')
    def reprice_selected(self, request, queryset):
        """Reprice every participant of the selected deals."""
        changed = sum(reprice_deal(deal) for deal in queryset)
        self.message_user(request, f'Updated {changed} participant price(s).')

    def get_queryset(self, request):
        """Optimize query with select_related."""
        qs = super().get_queryset(request)
        return qs.select_related('supplier')
