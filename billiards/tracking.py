"""
Inventory items tracked against a table session.

Adding an item takes it out of stock with a SALE movement; removing it puts
it back with a RETURN movement. Inventory quantity plus tracked quantity is
the same before an add and after the matching remove.
"""
import logging
from decimal import Decimal, InvalidOperation

from django.db import transaction
from django.db.models import F
from django.utils import timezone

from .exceptions import ConflictError, NotFoundError, SessionClosedError, ValidationError
from .models import InventoryItem, SessionTrackedItem, StockMovement, TableSession
from .services import get_session

logger = logging.getLogger(__name__)


def _movement_author(actor, session):
    if actor is not None:
        return str(actor.id)
    if session.staff_id:
        return str(session.staff_id)
    return "system"


def _parse_items(items):
    if not items or not isinstance(items, list):
        raise ValidationError("Items array is required and must not be empty")

    parsed = []
    for raw in items:
        if not isinstance(raw, dict) or any(raw.get(key) is None for key in ("itemId", "quantity", "unitPrice")):
            raise ValidationError("Each item must have itemId, quantity, and unitPrice fields")
        quantity = raw["quantity"]
        try:
            unit_price = Decimal(str(raw["unitPrice"]))
            # bool is an int subclass; 2.7 or "2" are rejected rather than coerced
            valid = (
                isinstance(quantity, int) and not isinstance(quantity, bool) and quantity > 0
                and unit_price.is_finite() and unit_price >= 0
            )
        except (TypeError, ValueError, InvalidOperation):
            valid = False
        if not valid:
            raise ValidationError("Quantity must be a positive integer and unitPrice a non-negative number")
        parsed.append((raw["itemId"], quantity, unit_price))
    return parsed


def _get_inventory_item(item_id, company_id):
    try:
        return InventoryItem.objects.select_for_update().get(pk=item_id, company_id=company_id)
    except (InventoryItem.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(f"Item with ID {item_id} not found")


def _return_to_stock(session, tracked, now, created_by):
    StockMovement.objects.create(
        item_id=tracked.item_id,
        quantity=tracked.quantity,
        type=StockMovement.MovementType.RETURN,
        reason=f"Returned from session {session.id}",
        reference=f"Session: {session.id}, Item removed",
        created_by=created_by,
    )
    InventoryItem.objects.filter(pk=tracked.item_id).update(
        quantity=F("quantity") + tracked.quantity,
        last_stock_update=now,
    )
    tracked.delete()


def list_tracked_items(session_id, actor=None):
    session = get_session(session_id, actor)
    return session.tracked_items.select_related("item")


def add_tracked_items(session_id, items, actor=None):
    """
    Consume inventory into an ACTIVE session.

    ``items`` is a list of ``{"itemId", "quantity", "unitPrice"}`` mappings.
    An item already tracked in the session has its quantity increased.
    """
    parsed = _parse_items(items)
    now = timezone.now()

    with transaction.atomic():
        session = get_session(session_id, actor)
        if session.status != TableSession.Status.ACTIVE:
            raise SessionClosedError(session.status)
        created_by = _movement_author(actor, session)

        tracked = []
        for item_id, quantity, unit_price in parsed:
            item = _get_inventory_item(item_id, session.table.company_id)
            taken = (
                InventoryItem.objects.filter(pk=item.pk, quantity__gte=quantity)
                .update(quantity=F("quantity") - quantity, last_stock_update=now)
            )
            if not taken:
                raise ConflictError(f"Not enough stock for {item.name} (available: {item.quantity})")

            StockMovement.objects.create(
                item=item,
                quantity=quantity,
                type=StockMovement.MovementType.SALE,
                reason=f"Consumed in session {session.id}",
                reference=f"Session: {session.id}",
                created_by=created_by,
            )

            row, created = SessionTrackedItem.objects.get_or_create(
                table_session=session,
                item=item,
                defaults={"quantity": quantity, "unit_price": unit_price},
            )
            if not created:
                SessionTrackedItem.objects.filter(pk=row.pk).update(quantity=F("quantity") + quantity)
                row.refresh_from_db()
            tracked.append(row)

    logger.info(f"Tracked {len(parsed)} item line(s) in session {session.id}")
    return tracked


def remove_tracked_item(session_id, tracked_item_id, actor=None):
    """Remove one tracked row and return its quantity to inventory."""
    now = timezone.now()

    with transaction.atomic():
        session = get_session(session_id, actor)
        try:
            tracked = (
                SessionTrackedItem.objects.select_for_update()
                .get(pk=tracked_item_id, table_session=session)
            )
        except (SessionTrackedItem.DoesNotExist, ValueError, TypeError):
            raise NotFoundError("Tracked item not found")
        _return_to_stock(session, tracked, now, _movement_author(actor, session))

    logger.info(f"Removed tracked item {tracked_item_id} from session {session.id}")


def clear_tracked_items(session_id, actor=None):
    """Remove every tracked row of a session, returning each to inventory."""
    now = timezone.now()

    with transaction.atomic():
        session = get_session(session_id, actor)
        created_by = _movement_author(actor, session)
        rows = list(SessionTrackedItem.objects.select_for_update().filter(table_session=session))
        for tracked in rows:
            _return_to_stock(session, tracked, now, created_by)

    logger.info(f"Cleared {len(rows)} tracked item(s) from session {session.id}")
    return len(rows)
