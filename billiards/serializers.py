# billiards/serializers.py

from rest_framework import serializers

from .models import Profile, SessionTrackedItem, Table, TableActivityLog, TableSession
from .utils import format_cost, format_duration


# ==============================================================================
# Table & Staff summaries
# ==============================================================================

class TableSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Table
        fields = ['id', 'name', 'hourly_rate', 'status']
        read_only_fields = fields


class TableSerializer(serializers.ModelSerializer):
    status_display = serializers.CharField(source='get_status_display', read_only=True)

    class Meta:
        model = Table
        fields = [
            'id',
            'company',
            'name',
            'description',
            'status',
            'status_display',
            'hourly_rate',
            'updated_at',
        ]
        read_only_fields = fields


class StaffSerializer(serializers.ModelSerializer):
    """Serializer for the staff member that opened or changed something."""

    username = serializers.CharField(source='user.username', read_only=True)
    full_name = serializers.CharField(read_only=True)

    class Meta:
        model = Profile
        fields = ['id', 'username', 'full_name', 'role']
        read_only_fields = fields


# ==============================================================================
# Table Session Serializers
# ==============================================================================

class SessionTrackedItemSerializer(serializers.ModelSerializer):
    item_name = serializers.CharField(source='item.name', read_only=True)
    item_price = serializers.DecimalField(
        source='item.price', max_digits=10, decimal_places=2, read_only=True
    )
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, read_only=True)

    class Meta:
        model = SessionTrackedItem
        fields = [
            'id',
            'item',
            'item_name',
            'item_price',
            'quantity',
            'unit_price',
            'subtotal',
            'created_at',
        ]
        read_only_fields = fields


class TableSessionSerializer(serializers.ModelSerializer):
    """
    Main serializer for a table session. ``total_cost`` is returned
    unrounded; ``total_cost_display`` is the two-decimal rendering.
    """

    table = TableSummarySerializer(read_only=True)
    staff = StaffSerializer(read_only=True, allow_null=True)
    status_display = serializers.CharField(source='get_status_display', read_only=True)
    total_cost_display = serializers.SerializerMethodField()
    duration_seconds = serializers.SerializerMethodField()
    duration_display = serializers.SerializerMethodField()

    class Meta:
        model = TableSession
        fields = [
            'id',
            'table',
            'staff',
            'status',
            'status_display',
            'started_at',
            'ended_at',
            'total_cost',
            'total_cost_display',
            'duration_seconds',
            'duration_display',
        ]
        read_only_fields = fields

    def get_total_cost_display(self, obj):
        return format_cost(obj.total_cost)

    def get_duration_seconds(self, obj):
        return int(obj.elapsed().total_seconds())

    def get_duration_display(self, obj):
        return format_duration(obj.elapsed().total_seconds())


class TableSessionDetailSerializer(TableSessionSerializer):
    tracked_items = SessionTrackedItemSerializer(many=True, read_only=True)

    class Meta(TableSessionSerializer.Meta):
        fields = TableSessionSerializer.Meta.fields + ['tracked_items']
        read_only_fields = fields


class TableActivityLogSerializer(serializers.ModelSerializer):
    changed_by = StaffSerializer(read_only=True, allow_null=True)

    class Meta:
        model = TableActivityLog
        fields = [
            'id',
            'table',
            'previous_status',
            'new_status',
            'changed_by',
            'notes',
            'changed_at',
        ]
        read_only_fields = fields


# ==============================================================================
# Request bodies
# ==============================================================================

class StartSessionSerializer(serializers.Serializer):
    tableId = serializers.IntegerField(error_messages={'required': 'Table ID is required'})
    staffId = serializers.IntegerField(required=False, allow_null=True)


class MoveSessionSerializer(serializers.Serializer):
    targetTableId = serializers.IntegerField(error_messages={'required': 'Target table ID is required'})


class TableStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Table.Status.choices)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
