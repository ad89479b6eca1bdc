"""
Table session lifecycle.

Every transition runs in a single ``transaction.atomic()`` block that wraps
exactly the rows being transitioned: the session, its table and the activity
log row. Terminations flip the session with a conditional update on
``status=ACTIVE`` so two racing end/cancel calls produce one success and one
NotFoundError.
"""
import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import IntegrityError, transaction
from django.utils import timezone

from .billing import session_cost
from .exceptions import ConflictError, NotFoundError, SessionClosedError, ValidationError
from .models import Table, TableActivityLog, TableSession
from .permissions import ensure_company_access, scope_to_company

logger = logging.getLogger(__name__)
audit_logger = logging.getLogger("audit")

SESSION_ACCESS_DENIED = "You don't have access to this session"
TABLE_ACCESS_DENIED = "Access denied to this table"


# -----------------------------------------------------------------------------
# Lookups
# -----------------------------------------------------------------------------

def _get_table(table_id, lock=False, message="Table not found"):
    qs = Table.objects.select_for_update() if lock else Table.objects.all()
    try:
        return qs.get(pk=table_id)
    except (Table.DoesNotExist, ValueError, TypeError):
        raise NotFoundError(message)


def _load_session(session_id, lock=False):
    qs = TableSession.objects.select_related("table")
    if lock:
        qs = qs.select_for_update(of=("self",))
    try:
        return qs.get(pk=session_id)
    except (TableSession.DoesNotExist, ValueError, DjangoValidationError):
        raise NotFoundError("Table session not found")


def _inactive_error(status, report_closed=True):
    if report_closed:
        return SessionClosedError(status)
    return NotFoundError("Active session not found")


def _closed_error(session_id, report_closed=True):
    """Error for a conditional update that matched nothing, re-read after a lost race."""
    status = (
        TableSession.objects.filter(pk=session_id)
        .values_list("status", flat=True)
        .first()
    )
    if status is None:
        return NotFoundError("Table session not found")
    if status == TableSession.Status.ACTIVE:
        # Still active, but no longer on the table we locked
        return ConflictError("Session was moved to another table, try again")
    return _inactive_error(status, report_closed)


def _lock_tables(table_ids):
    """Lock several tables in primary key order, keyed by pk."""
    tables = Table.objects.select_for_update().filter(pk__in=table_ids).order_by("pk")
    return {table.pk: table for table in tables}


def _log_transition(table, previous_status, new_status, actor=None, notes=None):
    entry = TableActivityLog.objects.create(
        table=table,
        previous_status=previous_status,
        new_status=new_status,
        changed_by=actor,
        notes=notes,
    )
    audit_logger.info(
        f"table={table.id} {previous_status} -> {new_status} "
        f"by={getattr(actor, 'id', None)} notes={notes!r}"
    )
    return entry


def _set_table_status(table, status, now):
    Table.objects.filter(pk=table.pk).update(status=status, updated_at=now)
    table.status = status


# -----------------------------------------------------------------------------
# Transitions
# -----------------------------------------------------------------------------

def start_session(table_id, staff=None, actor=None):
    """
    Open a session on an AVAILABLE table and mark it OCCUPIED.

    ``actor`` is the caller's Profile; a table outside its company is
    reported as not found. ``staff`` defaults to the actor.
    """
    staff = staff or actor
    now = timezone.now()

    with transaction.atomic():
        table = _get_table(table_id, lock=True)
        if actor is not None and actor.company_id and table.company_id != actor.company_id:
            raise NotFoundError("Table not found")
        if staff is not None and staff.company_id and staff.company_id != table.company_id:
            raise ValidationError("Staff member does not belong to this company")

        previous_status = table.status
        if previous_status != Table.Status.AVAILABLE:
            raise ConflictError(f"Table is not available (current status: {previous_status})")
        if TableSession.objects.filter(table=table, status=TableSession.Status.ACTIVE).exists():
            raise ConflictError("Table already has an active session")

        flipped = (
            Table.objects.filter(pk=table.pk, status=Table.Status.AVAILABLE)
            .update(status=Table.Status.OCCUPIED, updated_at=now)
        )
        if not flipped:
            raise ConflictError("Table is no longer available")
        table.status = Table.Status.OCCUPIED

        try:
            with transaction.atomic():
                session = TableSession.objects.create(
                    table=table,
                    staff=staff,
                    started_at=now,
                    status=TableSession.Status.ACTIVE,
                )
        except IntegrityError:
            raise ConflictError("Table already has an active session")

        _log_transition(table, previous_status, Table.Status.OCCUPIED, actor or staff, "Session started")

    logger.info(f"Session {session.id} started on table {table.id}")
    return session


def _terminate(session_id, new_status, notes, actor=None, report_closed=True):
    """
    Shared end/cancel transition. Locks the session row, then its table.

    ``report_closed`` picks the error for a session that is no longer
    ACTIVE: ``SessionClosedError`` naming its status (cancel), or a plain
    ``NotFoundError`` (end).
    """
    now = timezone.now()

    with transaction.atomic():
        session = _load_session(session_id, lock=True)
        ensure_company_access(actor, session.table.company_id, SESSION_ACCESS_DENIED)
        if session.status != TableSession.Status.ACTIVE:
            raise _inactive_error(session.status, report_closed)

        table = _get_table(session.table_id, lock=True)
        total_cost = None
        if new_status == TableSession.Status.COMPLETED:
            total_cost = session_cost(table.hourly_rate, session.started_at, now)

        updated = (
            TableSession.objects.filter(pk=session.pk, table_id=table.pk, status=TableSession.Status.ACTIVE)
            .update(status=new_status, ended_at=now, total_cost=total_cost, updated_at=now)
        )
        if not updated:
            raise _closed_error(session.pk, report_closed)

        previous_status = table.status
        _set_table_status(table, Table.Status.AVAILABLE, now)
        _log_transition(table, previous_status, Table.Status.AVAILABLE, actor, notes)

    session.refresh_from_db()
    logger.info(f"Session {session.id} on table {table.id} -> {new_status} (cost={total_cost})")
    return session


def end_session(session_id, actor=None):
    """Complete an ACTIVE session, bill it and free its table."""
    return _terminate(session_id, TableSession.Status.COMPLETED, "Session ended", actor, report_closed=False)


def cancel_session(session_id, actor=None):
    """Cancel an ACTIVE session without billing and free its table."""
    return _terminate(session_id, TableSession.Status.CANCELLED, "Session cancelled", actor)


def move_session(session_id, target_table_id, actor=None):
    """Re-point an ACTIVE session to another AVAILABLE table of the same company."""
    if not target_table_id:
        raise ValidationError("Target table ID is required")
    try:
        target_pk = int(target_table_id)
    except (TypeError, ValueError):
        raise NotFoundError("Target table not found")
    now = timezone.now()

    with transaction.atomic():
        session = _load_session(session_id, lock=True)
        ensure_company_access(actor, session.table.company_id, SESSION_ACCESS_DENIED)
        if session.status != TableSession.Status.ACTIVE:
            raise SessionClosedError(session.status)
        if target_pk == session.table_id:
            raise ConflictError("Session is already on this table")

        # Two opposite moves must take the table locks in the same order
        tables = _lock_tables([session.table_id, target_pk])
        source = tables[session.table_id]
        target = tables.get(target_pk)
        if target is None or target.company_id != source.company_id:
            raise NotFoundError("Target table not found")
        if target.status != Table.Status.AVAILABLE:
            raise ConflictError("Target table is not available")
        if TableSession.objects.filter(table=target, status=TableSession.Status.ACTIVE).exists():
            raise ConflictError("Target table already has an active session")

        moved = (
            TableSession.objects.filter(pk=session.pk, table_id=source.pk, status=TableSession.Status.ACTIVE)
            .update(table=target, updated_at=now)
        )
        if not moved:
            raise _closed_error(session.pk)

        changed_by = actor or session.staff
        source_status, target_status = source.status, target.status
        _set_table_status(source, Table.Status.AVAILABLE, now)
        _set_table_status(target, Table.Status.OCCUPIED, now)
        _log_transition(source, source_status, Table.Status.AVAILABLE, changed_by,
                        f"Session moved to table {target.name}")
        _log_transition(target, target_status, Table.Status.OCCUPIED, changed_by,
                        f"Session moved from table {source.name}")

    session.refresh_from_db()
    logger.info(f"Session {session.id} moved from table {source.id} to table {target.id}")
    return session


def change_table_status(table_id, status, actor=None, notes=None):
    """
    Manual maintenance transition (AVAILABLE, RESERVED, MAINTENANCE).

    Returns ``(table, log)``; ``log`` is None when the status is unchanged.
    """
    if status not in Table.Status.values:
        raise ValidationError(f"Invalid status: {status}")
    if status == Table.Status.OCCUPIED:
        raise ValidationError("Tables become occupied only by starting a session")
    now = timezone.now()

    with transaction.atomic():
        table = _get_table(table_id, lock=True)
        ensure_company_access(actor, table.company_id, TABLE_ACCESS_DENIED)

        previous_status = table.status
        if status == previous_status:
            return table, None
        if (previous_status == Table.Status.OCCUPIED
                or TableSession.objects.filter(table=table, status=TableSession.Status.ACTIVE).exists()):
            raise ConflictError("Table has an active session; end or cancel it first")

        _set_table_status(table, status, now)
        log = _log_transition(table, previous_status, status, actor, notes)

    logger.info(f"Table {table.id} status {previous_status} -> {status}")
    return table, log


# -----------------------------------------------------------------------------
# Reads
# -----------------------------------------------------------------------------

def list_sessions(actor=None, table_id=None, status=None):
    if status and status not in TableSession.Status.values:
        raise ValidationError(f"Invalid status: {status}")
    qs = TableSession.objects.select_related("table", "staff__user").order_by("-created_at")
    qs = scope_to_company(qs, actor, "table__company")
    if table_id:
        try:
            qs = qs.filter(table_id=int(table_id))
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid table id: {table_id}")
    if status:
        qs = qs.filter(status=status)
    return qs


def get_session(session_id, actor=None):
    session = _load_session(session_id)
    ensure_company_access(actor, session.table.company_id, SESSION_ACCESS_DENIED)
    return session


def get_table(table_id, actor=None):
    table = _get_table(table_id)
    ensure_company_access(actor, table.company_id, TABLE_ACCESS_DENIED)
    return table


def table_activity(table_id, actor=None):
    table = get_table(table_id, actor)
    return table.activity_logs.select_related("changed_by__user")
