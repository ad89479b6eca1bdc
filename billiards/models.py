import uuid
from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator, RegexValidator
from django.db import models
from django.db.models import Q
from django.utils import timezone

# =============================================================================
# === COMPANY (Multi-tenant partition) ========================================
# =============================================================================

class Company(models.Model):
    """Billiard hall operator. Every table and inventory item belongs to one."""
    name = models.CharField(max_length=150, unique=True)
    address = models.CharField(max_length=255, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name_plural = "Companies"
        ordering = ["name"]

    def __str__(self):
        return self.name


# =============================================================================
# === USER PROFILE ============================================================
# =============================================================================

phone_regex = RegexValidator(
    regex=r'^\+?1?\d{9,15}$',
    message="Use international format: +999999999. Up to 15 digits."
)

class Profile(models.Model):
    class Roles(models.TextChoices):
        SELLER = 'SELLER', 'Seller'
        ADMIN = 'ADMIN', 'Admin'
        SUPERADMIN = 'SUPERADMIN', 'Super Admin'

    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='profile')
    company = models.ForeignKey(Company, null=True, blank=True, on_delete=models.SET_NULL, related_name='profiles')
    role = models.CharField(max_length=20, choices=Roles.choices, default=Roles.SELLER)
    phone_number = models.CharField(validators=[phone_regex], max_length=17, blank=True)
    active = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)

    def __str__(self):
        return f"{self.user.username} ({self.role})"

    @property
    def full_name(self):
        return self.user.get_full_name() or self.user.username

    @property
    def is_superadmin(self) -> bool:
        return self.role == self.Roles.SUPERADMIN


# =============================================================================
# === TABLES & SESSIONS =======================================================
# =============================================================================

class Table(models.Model):
    class Status(models.TextChoices):
        AVAILABLE = 'AVAILABLE', 'Available'
        OCCUPIED = 'OCCUPIED', 'Occupied'
        RESERVED = 'RESERVED', 'Reserved'
        MAINTENANCE = 'MAINTENANCE', 'Maintenance'

    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='tables')
    name = models.CharField(max_length=100)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.AVAILABLE)
    hourly_rate = models.DecimalField(
        max_digits=10, decimal_places=2, null=True, blank=True,
        validators=[MinValueValidator(Decimal('0.00'))],
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        unique_together = ('company', 'name')
        ordering = ['company', 'name']

    def __str__(self):
        return f"{self.name} ({self.company.name})"

    @property
    def is_occupied(self) -> bool:
        return self.status == self.Status.OCCUPIED

    @property
    def active_session(self):
        return self.sessions.filter(status=TableSession.Status.ACTIVE).first()


class TableSession(models.Model):
    """One occupancy period of a table, from start to end or cancellation."""
    class Status(models.TextChoices):
        ACTIVE = 'ACTIVE', 'Active'
        COMPLETED = 'COMPLETED', 'Completed'
        CANCELLED = 'CANCELLED', 'Cancelled'

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    table = models.ForeignKey(Table, on_delete=models.PROTECT, related_name='sessions')
    staff = models.ForeignKey(
        Profile, null=True, blank=True, on_delete=models.SET_NULL,
        related_name='table_sessions',
    )
    started_at = models.DateTimeField(default=timezone.now)
    ended_at = models.DateTimeField(null=True, blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.ACTIVE)
    # Unrounded; formatting to cents happens in billiards.utils.format_cost
    total_cost = models.DecimalField(max_digits=16, decimal_places=6, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['table'],
                condition=Q(status='ACTIVE'),
                name='one_active_session_per_table',
            ),
        ]

    def __str__(self):
        return f"Session {str(self.id)[:8]} on {self.table.name} ({self.status})"

    @property
    def is_terminal(self) -> bool:
        return self.status in (self.Status.COMPLETED, self.Status.CANCELLED)

    def elapsed(self, now=None):
        """Elapsed time as a timedelta, up to now while the session is active."""
        end = self.ended_at or now or timezone.now()
        return end - self.started_at


class TableActivityLog(models.Model):
    """Append-only audit trail of table status transitions."""
    table = models.ForeignKey(Table, on_delete=models.CASCADE, related_name='activity_logs')
    previous_status = models.CharField(max_length=20, choices=Table.Status.choices)
    new_status = models.CharField(max_length=20, choices=Table.Status.choices)
    changed_by = models.ForeignKey(
        Profile, null=True, blank=True, on_delete=models.SET_NULL,
        related_name='table_activity',
    )
    notes = models.TextField(blank=True, null=True)
    changed_at = models.DateTimeField(default=timezone.now, db_index=True)

    class Meta:
        ordering = ['-changed_at', '-id']
        indexes = [
            models.Index(fields=['table', 'changed_at'], name='activity_table_changed_idx'),
        ]

    def __str__(self):
        return f"{self.table.name}: {self.previous_status} -> {self.new_status}"


# =============================================================================
# === INVENTORY ===============================================================
# =============================================================================

class InventoryItem(models.Model):
    """Stock item sold or lent during table sessions (drinks, snacks, cues)."""
    company = models.ForeignKey(Company, on_delete=models.CASCADE, related_name='inventory')
    name = models.CharField(max_length=100)
    sku = models.CharField(max_length=50, blank=True)
    quantity = models.IntegerField(default=0)
    price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal('0.00'))
    reorder_level = models.IntegerField(default=0)
    last_stock_update = models.DateTimeField(null=True, blank=True)
    active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]
        unique_together = ("company", "name")

    def __str__(self):
        return f"{self.name} ({self.quantity})"

    @property
    def is_below_reorder(self):
        return self.quantity <= self.reorder_level


class StockMovement(models.Model):
    class MovementType(models.TextChoices):
        PURCHASE = 'PURCHASE', 'Purchase'
        SALE = 'SALE', 'Sale'
        ADJUSTMENT = 'ADJUSTMENT', 'Adjustment'
        RETURN = 'RETURN', 'Return'
        TRANSFER = 'TRANSFER', 'Transfer'

    item = models.ForeignKey(InventoryItem, on_delete=models.CASCADE, related_name='movements')
    quantity = models.PositiveIntegerField()
    type = models.CharField(max_length=20, choices=MovementType.choices)
    reason = models.CharField(max_length=255, blank=True)
    reference = models.CharField(max_length=255, blank=True)
    created_by = models.CharField(max_length=64, default="system")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']

    def __str__(self):
        return f"{self.type} {self.quantity} x {self.item.name}"


class SessionTrackedItem(models.Model):
    """Inventory consumed into a table session, reversible until removed."""
    table_session = models.ForeignKey(TableSession, on_delete=models.CASCADE, related_name='tracked_items')
    item = models.ForeignKey(InventoryItem, on_delete=models.PROTECT, related_name='tracked_in_sessions')
    quantity = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at', '-id']
        unique_together = ('table_session', 'item')

    def __str__(self):
        return f"{self.quantity} x {self.item.name} ({self.table_session_id})"

    @property
    def subtotal(self):
        return self.unit_price * self.quantity
