from django.urls import path

from . import views_api

# ==============================================================================
# URL PATTERNS (mounted under /api/)
# ==============================================================================
app_name = 'billiards'

urlpatterns = [
    # --------------------------------------------------------------------------
    # TABLE SESSIONS
    # --------------------------------------------------------------------------
    path('sessions/', views_api.sessions_collection, name='session-list'),
    path('sessions/<str:session_id>/', views_api.session_detail, name='session-detail'),
    path('sessions/<str:session_id>/end/', views_api.session_end, name='session-end'),
    path('sessions/<str:session_id>/cancel/', views_api.session_cancel, name='session-cancel'),

    # --------------------------------------------------------------------------
    # SESSION OPERATIONS (move, tracked inventory)
    # --------------------------------------------------------------------------
    # Deprecated: same handler semantics as sessions/<id>/cancel/
    path('table-sessions/<str:session_id>/cancel/', views_api.legacy_session_cancel, name='legacy-session-cancel'),
    path('table-sessions/<str:session_id>/move/', views_api.session_move, name='session-move'),
    path('table-sessions/<str:session_id>/tracked-items/', views_api.tracked_items, name='tracked-items'),
    path(
        'table-sessions/<str:session_id>/tracked-items/<str:item_id>/',
        views_api.tracked_item_detail,
        name='tracked-item-detail',
    ),

    # --------------------------------------------------------------------------
    # TABLES
    # --------------------------------------------------------------------------
    path('tables/<int:table_id>/status/', views_api.table_status, name='table-status'),
    path('tables/<int:table_id>/activity/', views_api.table_activity, name='table-activity'),
]
