import jwt
from flask import current_app

from geoduel.services.match.errors import NotAuthenticated


def decode_identity(token, secret=None, algorithm=None) -> int:
    """Return the user id carried by a signed token.

    Raises ``NotAuthenticated`` with close code 4001 when no token is given
    and 4002 when it does not verify.
    """
    if not token:
        raise NotAuthenticated('Authentication required', close_code=4001)
    secret = secret or current_app.config['JWT_SECRET']
    algorithm = algorithm or current_app.config.get('JWT_ALGORITHM', 'HS256')
    try:
        claims = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.ExpiredSignatureError:
        raise NotAuthenticated('Token expired', close_code=4002)
    except jwt.InvalidTokenError:
        raise NotAuthenticated('Invalid token', close_code=4002)
    user_id = claims.get('userId')
    if isinstance(user_id, bool) or not isinstance(user_id, int):
        raise NotAuthenticated('Invalid token', close_code=4002)
    return user_id


def bearer_token(header_value):
    if not header_value or not header_value.startswith('Bearer '):
        return None
    return header_value.split(' ', 1)[1].strip() or None


def load_user_from_request(request):
    """Flask-Login request loader for ``Authorization: Bearer <token>``."""
    from geoduel.models import User
    from geoduel import db

    token = bearer_token(request.headers.get('Authorization'))
    if not token:
        return None
    try:
        user_id = decode_identity(token)
    except NotAuthenticated:
        return None
    return db.session.get(User, user_id)
