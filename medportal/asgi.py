"""
ASGI config for medportal.

Serves HTTP through Django and the clinic queue WebSocket through Channels;
WebSocket clients authenticate with the API's JWT (``?token=`` or cookie).
Django must be configured before any model-dependent import.
"""
import os

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "medportal.settings")

import django  # noqa: E402
django.setup()  # noqa: E402

from channels.routing import ProtocolTypeRouter, URLRouter  # noqa: E402
from django.core.asgi import get_asgi_application  # noqa: E402
from django.urls import path  # noqa: E402

from clinic.realtime.consumers import QueueConsumer  # noqa: E402
from clinic.realtime.middleware import JWTAuthMiddlewareStack  # noqa: E402

django_asgi_app = get_asgi_application()

websocket_urlpatterns = [
    path("ws/clinic/<int:clinic_id>/queue/", QueueConsumer.as_asgi()),
]

application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": JWTAuthMiddlewareStack(URLRouter(websocket_urlpatterns)),
})
