# billiard_hall/asgi.py

import os

import django
from django.core.asgi import get_asgi_application

# -----------------------------------------------------------------------------
# Environment setup
# -----------------------------------------------------------------------------
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "billiard_hall.settings")
django.setup()

from channels.auth import AuthMiddlewareStack  # noqa: E402
from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402

from billiards import routing  # noqa: E402

# -----------------------------------------------------------------------------
# ASGI application configuration
# -----------------------------------------------------------------------------
application = ProtocolTypeRouter({
    # Handles traditional HTTP requests
    "http": get_asgi_application(),

    # Live table status feed
    "websocket": AuthMiddlewareStack(
        URLRouter(routing.websocket_urlpatterns)
    ),
})
