import logging

import jwt
from django.conf import settings

logger = logging.getLogger('notifications.middleware')


def decode_identity(token: str) -> dict:
    """
    Verify a bearer token and return the identity claims the service relies on.

    Raises:
        jwt.InvalidTokenError: If the token is malformed, expired or badly signed
    """
    payload = jwt.decode(
        token,
        settings.JWT_SECRET_KEY,
        algorithms=[settings.JWT_ALGORITHM],
        options={"verify_aud": False},
    )
    user = payload.get('user') or {}
    user_id = user.get('id') or payload.get('user_id') or payload.get('sub')
    if not user_id:
        raise jwt.InvalidTokenError("Token carries no user id")
    return {
        'user_id': str(user_id),
        'role': user.get('role') or payload.get('role'),
        'jwt_payload': payload,
    }


class JWTIdentityMiddleware:
    """
    Attach ``user_id`` and ``user_role`` to every request carrying a valid bearer token.
    Session handling lives in the upstream gateway; requests without a token pass through anonymous.
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request.user_id = None
        request.user_role = None

        auth_header = request.META.get('HTTP_AUTHORIZATION', '')
        if auth_header.startswith('Bearer '):
            try:
                identity = decode_identity(auth_header[7:])
                request.user_id = identity['user_id']
                request.user_role = identity['role']
            except jwt.ExpiredSignatureError:
                logger.warning("Rejected expired bearer token")
            except jwt.InvalidTokenError as e:
                logger.warning(f"Rejected invalid bearer token: {str(e)}")

        return self.get_response(request)
