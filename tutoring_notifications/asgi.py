import os
from django.core.asgi import get_asgi_application
from channels.routing import ProtocolTypeRouter, URLRouter

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'tutoring_notifications.settings')

django_asgi_app = get_asgi_application()


# Import routing inside the application to avoid premature Django setup
def get_websocket_urlpatterns():
    import notifications.routing  # Import here to avoid AppRegistryNotReady
    return notifications.routing.websocket_urlpatterns


def get_websocket_application():
    from .websocket_middleware import WebSocketJWTMiddleware
    return WebSocketJWTMiddleware(
        URLRouter(
            get_websocket_urlpatterns()
        )
    )


application = ProtocolTypeRouter({
    "http": django_asgi_app,
    "websocket": get_websocket_application(),
})
