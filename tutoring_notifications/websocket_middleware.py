import logging
import urllib.parse

import jwt
from channels.db import database_sync_to_async

from .middleware import decode_identity

logger = logging.getLogger('notifications.websocket')


class WebSocketJWTMiddleware:
    """
    WebSocket JWT authentication middleware
    Extracts user_id and role from the JWT token in the query string
    """

    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        query_string = scope.get("query_string", b"").decode()
        token = None

        for param in query_string.split('&'):
            if param.startswith('token='):
                token = urllib.parse.unquote(param.split('=', 1)[1])
                break

        scope = dict(scope)
        scope['user_id'] = None
        scope['user_role'] = None

        if token:
            try:
                identity = await self.authenticate_token(token)
                scope['user_id'] = identity['user_id']
                scope['user_role'] = identity['role']
            except jwt.InvalidTokenError as e:
                logger.warning(f"WebSocket authentication failed: {str(e)}")
        else:
            logger.warning("No token provided in WebSocket connection")

        return await self.app(scope, receive, send)

    @database_sync_to_async
    def authenticate_token(self, token):
        return decode_identity(token)
