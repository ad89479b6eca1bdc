# billiards/admin.py

from django.contrib import admin

from .models import (
    Company, Profile,
    Table, TableSession, TableActivityLog,
    InventoryItem, StockMovement, SessionTrackedItem,
)
from .permissions import CompanyScopedAdmin, RoleRestrictedAdmin
from .utils import format_cost


# =============================================================================
# === GLOBAL UTILITIES ========================================================
# =============================================================================

@admin.action(description="Mark selected as inactive")
def mark_inactive(modeladmin, request, queryset):
    queryset.update(active=False)


@admin.action(description="Mark selected as active")
def mark_active(modeladmin, request, queryset):
    queryset.update(active=True)


class AppendOnlyAdmin(CompanyScopedAdmin):
    """Audit-style rows: visible, never edited from the admin."""

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =============================================================================
# === COMPANY & PROFILE ADMIN =================================================
# =============================================================================

@admin.register(Company)
class CompanyAdmin(RoleRestrictedAdmin):
    list_display = ("name", "email", "phone", "active", "created_at")
    list_filter = ("active", "created_at")
    search_fields = ("name",)
    actions = [mark_active, mark_inactive]
    ordering = ("name",)


@admin.register(Profile)
class ProfileAdmin(CompanyScopedAdmin):
    list_display = ("user", "role", "company", "active")
    list_filter = ("role", "company", "active")
    search_fields = ("user__username", "user__email", "phone_number")
    actions = [mark_active, mark_inactive]


# =============================================================================
# === TABLE & SESSION ADMIN ===================================================
# =============================================================================

@admin.register(Table)
class TableAdmin(CompanyScopedAdmin):
    list_display = ("name", "company", "status", "hourly_rate", "updated_at")
    list_filter = ("company", "status")
    search_fields = ("name",)
    # Status moves only through sessions or the status endpoint, which keep the activity log
    readonly_fields = ("status",)
    ordering = ("company", "name")


class SessionTrackedItemInline(admin.TabularInline):
    model = SessionTrackedItem
    extra = 0
    fields = ("item", "quantity", "unit_price", "created_at")
    readonly_fields = fields
    can_delete = False


@admin.register(TableSession)
class TableSessionAdmin(AppendOnlyAdmin):
    company_lookup = "table__company"
    list_display = ("short_id", "table", "staff", "status", "started_at", "ended_at", "cost")
    list_filter = ("status", "table__company")
    search_fields = ("id", "table__name")
    date_hierarchy = "started_at"
    inlines = [SessionTrackedItemInline]

    @admin.display(description="Session")
    def short_id(self, obj):
        return str(obj.id)[:8]

    @admin.display(description="Total cost")
    def cost(self, obj):
        return format_cost(obj.total_cost)


@admin.register(TableActivityLog)
class TableActivityLogAdmin(AppendOnlyAdmin):
    company_lookup = "table__company"
    list_display = ("table", "previous_status", "new_status", "changed_by", "notes", "changed_at")
    list_filter = ("new_status", "table__company")
    search_fields = ("table__name", "notes")


# =============================================================================
# === INVENTORY ADMIN =========================================================
# =============================================================================

@admin.register(InventoryItem)
class InventoryItemAdmin(CompanyScopedAdmin):
    list_display = ("name", "company", "sku", "quantity", "price", "reorder_level", "last_stock_update", "active")
    list_filter = ("company", "active")
    search_fields = ("name", "sku")
    actions = [mark_active, mark_inactive]
    ordering = ("company", "name")


@admin.register(StockMovement)
class StockMovementAdmin(AppendOnlyAdmin):
    company_lookup = "item__company"
    list_display = ("item", "type", "quantity", "reason", "created_by", "created_at")
    list_filter = ("type",)
    search_fields = ("item__name", "reference")

