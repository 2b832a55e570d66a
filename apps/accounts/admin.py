# ==========================================
# apps/accounts/admin.py
# ==========================================

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from django.utils.html import format_html
from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """
    Admin interface for buyers and suppliers.

    Provides:
    - User listing with supplier flag
    - Filtering by status and role
    - Bulk actions to grant or revoke supplier access
    """

    list_display = [
        'email',
        'display_name',
        'supplier_badge',
        'is_active',
        'is_staff',
        'created_at',
    ]

    list_filter = [
        'is_supplier',
        'is_active',
        'is_staff',
        'created_at',
    ]

    search_fields = [
        'email',
        'display_name',
        'phone',
    ]

    ordering = ['-created_at']
    date_hierarchy = 'created_at'

    # Remove username field references from BaseUserAdmin
    fieldsets = (
        ('Basic Information', {
            'fields': ('email', 'display_name', 'phone', 'password')
        }),
        ('Role', {
            'fields': ('is_supplier',),
        }),
        ('Permissions', {
            'fields': ('is_active', 'is_staff', 'is_superuser', 'groups', 'user_permissions'),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'last_login'),
            'classes': ('collapse',),
        }),
    )

    add_fieldsets = (
        ('Create User', {
            'classes': ('wide',),
            'fields': ('email', 'display_name', 'password1', 'password2'),
        }),
        ('Role', {
            'fields': ('is_supplier', 'is_staff'),
        }),
    )

    readonly_fields = [
        'created_at',
        'last_login',
    ]

    filter_horizontal = ['groups', 'user_permissions']

    def supplier_badge(self, obj):
        """Display supplier flag as colored badge."""
        if obj.is_supplier:
            return format_html(
                '<span style="background: #7B2FF7; color: white; padding: 3px 8px; '
                'border-radius: 10px; font-size: 11px;">Supplier</span>'
            )
        return format_html(
            '<span style="background: #ccc; color: #666; padding: 3px 8px; '
            'border-radius: 10px; font-size: 11px;">Buyer</span>'
        )
    supplier_badge.short_description = 'Role'
    supplier_badge.admin_order_field = 'is_supplier'

    actions = ['grant_supplier', 'revoke_supplier']

    @admin.action(description='Grant supplier access')
    def grant_supplier(self, request, queryset):
        count = queryset.update(is_supplier=True)
        self.message_user(request, f'Granted supplier access to {count} user(s).')

    @admin.action(description='Revoke supplier access')
    def revoke_supplier(self, request, queryset):
        count = queryset.update(is_supplier=False)
        self.message_user(request, f'Revoked supplier access from {count} user(s).')
