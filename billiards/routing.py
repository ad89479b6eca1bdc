"""
billiards/routing.py

WebSocket route map for Django Channels.
"""

from django.urls import re_path

from . import consumers

websocket_urlpatterns = [
    # Table status feed for floor displays and POS terminals
    re_path(r"^ws/tables/$", consumers.TableStatusConsumer.as_asgi()),
]
