import logging
from decimal import Decimal, ROUND_HALF_UP

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer

logger = logging.getLogger(__name__)

ALL_TABLES_GROUP = "tables_all"


# -----------------------------------------------------------------------------
# Display formatting
# -----------------------------------------------------------------------------

def format_duration(total_seconds) -> str:
    """Format seconds as HH:MM:SS."""
    total_seconds = int(total_seconds)
    hours, rest = divmod(total_seconds, 3600)
    minutes, seconds = divmod(rest, 60)
    return f"{hours:02d}:{minutes:02d}:{seconds:02d}"


def format_duration_human(total_seconds) -> str:
    total_seconds = int(total_seconds)
    hours, rest = divmod(total_seconds, 3600)
    minutes = rest // 60
    if hours > 0:
        return f"{hours}h {minutes}m"
    return f"{minutes}m"


def format_cost(cost) -> str:
    if cost is None:
        return "-"
    return str(Decimal(str(cost)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


# -----------------------------------------------------------------------------
# Real-time broadcast
# -----------------------------------------------------------------------------

def table_group_name(company_id) -> str:
    return f"tables_{company_id}"


def broadcast_table_activity(log):
    """
    Push a committed activity log row to the table status WebSocket groups:
    the owning company's group and the unscoped superadmin group.
    """
    layer = get_channel_layer()
    if not layer:
        logger.warning("No channel layer configured; table broadcast skipped.")
        return

    table = log.table
    payload = {
        "type": "table_status",
        "log": {
            "id": log.id,
            "tableId": table.id,
            "tableName": table.name,
            "previousStatus": log.previous_status,
            "newStatus": log.new_status,
            "notes": log.notes,
            "changedAt": log.changed_at.isoformat(),
        },
    }

    for group in (table_group_name(table.company_id), ALL_TABLES_GROUP):
        async_to_sync(layer.group_send)(group, {"type": "table_update", "data": payload})

    logger.debug(f"Broadcasted table {table.id} status {log.new_status}.")
