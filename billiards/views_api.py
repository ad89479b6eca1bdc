import logging

from rest_framework import exceptions as drf_exceptions
from rest_framework import status
from rest_framework.decorators import api_view
from rest_framework.response import Response
from rest_framework.views import exception_handler

from . import services, tracking
from .exceptions import BilliardsError, NotFoundError
from .models import Profile
from .permissions import get_caller_profile
from .serializers import (
    MoveSessionSerializer,
    SessionTrackedItemSerializer,
    StartSessionSerializer,
    TableActivityLogSerializer,
    TableSerializer,
    TableSessionDetailSerializer,
    TableSessionSerializer,
    TableStatusSerializer,
)

logger = logging.getLogger(__name__)


# ==============================================================================
# ERROR MAPPING
# ==============================================================================

def _first_message(data):
    if isinstance(data, dict):
        if "detail" in data:
            return str(data["detail"])
        for value in data.values():
            return _first_message(value)
    if isinstance(data, list) and data:
        return _first_message(data[0])
    return str(data)


def api_exception_handler(exc, context):
    """
    Render every error as ``{"error": message}``.

    Domain errors carry their own status; unauthenticated callers get 401;
    anything unexpected is logged with the request's ids and answered with a
    generic 500.
    """
    if isinstance(exc, BilliardsError):
        if exc.status_code >= 500:
            logger.error(f"{exc.__class__.__name__} {context.get('kwargs')}: {exc.message}")
            return Response({"error": "Internal server error"}, status=exc.status_code)
        return Response({"error": exc.message}, status=exc.status_code)

    if isinstance(exc, (drf_exceptions.NotAuthenticated, drf_exceptions.AuthenticationFailed)):
        return Response({"error": "Unauthorized"}, status=status.HTTP_401_UNAUTHORIZED)

    response = exception_handler(exc, context)
    if response is not None:
        response.data = {"error": _first_message(response.data)}
        return response

    view = context.get("view")
    logger.error(
        f"Unhandled error in {view.__class__.__name__ if view else '-'} {context.get('kwargs')}",
        exc_info=exc,
    )
    return Response({"error": "Internal server error"}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


# ==============================================================================
# SESSIONS
# ==============================================================================

@api_view(["GET", "POST"])
def sessions_collection(request):
    """List the caller's sessions, or start one on a table."""
    profile = get_caller_profile(request.user)

    if request.method == "GET":
        sessions = services.list_sessions(
            actor=profile,
            table_id=request.query_params.get("tableId"),
            status=request.query_params.get("status"),
        )
        return Response(TableSessionSerializer(sessions, many=True).data)

    body = StartSessionSerializer(data=request.data)
    body.is_valid(raise_exception=True)

    staff = None
    staff_id = body.validated_data.get("staffId")
    if staff_id:
        staff = Profile.objects.filter(pk=staff_id).first()
        if staff is None:
            raise NotFoundError("Staff member not found")

    session = services.start_session(body.validated_data["tableId"], staff=staff, actor=profile)
    return Response(TableSessionSerializer(session).data, status=status.HTTP_201_CREATED)


@api_view(["GET"])
def session_detail(request, session_id):
    profile = get_caller_profile(request.user)
    session = services.get_session(session_id, actor=profile)
    return Response(TableSessionDetailSerializer(session).data)


@api_view(["POST"])
def session_end(request, session_id):
    profile = get_caller_profile(request.user)
    session = services.end_session(session_id, actor=profile)
    return Response(TableSessionSerializer(session).data)


@api_view(["POST"])
def session_cancel(request, session_id):
    profile = get_caller_profile(request.user)
    session = services.cancel_session(session_id, actor=profile)
    return Response(TableSessionSerializer(session).data)


@api_view(["POST"])
def legacy_session_cancel(request, session_id):
    """Deprecated alias of ``POST /sessions/<id>/cancel/``."""
    logger.warning(f"Deprecated route table-sessions/{session_id}/cancel/ used; call sessions/{session_id}/cancel/")
    profile = get_caller_profile(request.user)
    session = services.cancel_session(session_id, actor=profile)
    return Response(TableSessionSerializer(session).data)


@api_view(["POST"])
def session_move(request, session_id):
    profile = get_caller_profile(request.user)
    body = MoveSessionSerializer(data=request.data)
    body.is_valid(raise_exception=True)
    session = services.move_session(session_id, body.validated_data["targetTableId"], actor=profile)
    return Response(TableSessionDetailSerializer(session).data)


# ==============================================================================
# TRACKED ITEMS
# ==============================================================================

@api_view(["GET", "POST", "DELETE"])
def tracked_items(request, session_id):
    profile = get_caller_profile(request.user)

    if request.method == "GET":
        rows = tracking.list_tracked_items(session_id, actor=profile)
        return Response(SessionTrackedItemSerializer(rows, many=True).data)

    if request.method == "DELETE":
        tracking.clear_tracked_items(session_id, actor=profile)
        return Response({"success": True})

    items = request.data.get("items") if isinstance(request.data, dict) else None
    rows = tracking.add_tracked_items(session_id, items, actor=profile)
    return Response(SessionTrackedItemSerializer(rows, many=True).data)


@api_view(["DELETE"])
def tracked_item_detail(request, session_id, item_id):
    profile = get_caller_profile(request.user)
    tracking.remove_tracked_item(session_id, item_id, actor=profile)
    return Response({"success": True})


# ==============================================================================
# TABLES
# ==============================================================================

@api_view(["PATCH"])
def table_status(request, table_id):
    profile = get_caller_profile(request.user)
    body = TableStatusSerializer(data=request.data)
    body.is_valid(raise_exception=True)

    table, log = services.change_table_status(
        table_id,
        body.validated_data["status"],
        actor=profile,
        notes=body.validated_data.get("notes"),
    )
    if log is None:
        return Response({"message": "Status unchanged", "table": TableSerializer(table).data})
    return Response({
        "table": TableSerializer(table).data,
        "activityLog": TableActivityLogSerializer(log).data,
    })


@api_view(["GET"])
def table_activity(request, table_id):
    profile = get_caller_profile(request.user)
    logs = services.table_activity(table_id, actor=profile)
    return Response(TableActivityLogSerializer(logs, many=True).data)
