"""Middleware for bearer-token authentication."""
import logging
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import g, request, current_app

from marketplace.database import get_session
from marketplace.exceptions import UnauthorizedError
from marketplace.models import User

logger = logging.getLogger(__name__)


def issue_token(user_id: int, expires_hours=None) -> str:
    """Signed HS256 token carrying the user id in `sub`."""
    hours = expires_hours or current_app.config.get('JWT_EXPIRES_HOURS', 24)
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user_id),
        'iat': now,
        'exp': now + timedelta(hours=hours),
    }
    return jwt.encode(
        payload,
        current_app.config['SECRET_KEY'],
        algorithm=current_app.config.get('JWT_ALGORITHM', 'HS256')
    )


def _bearer_token():
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        return None
    return token.strip()


def load_current_user():
    """
    Resolve the bearer token into g.user / g.user_id.

    Missing, expired or invalid tokens leave both as None; routes that need a
    user are guarded by require_login.
    """
    g.user = None
    g.user_id = None

    token = _bearer_token()
    if not token:
        return

    try:
        payload = jwt.decode(
            token,
            current_app.config['SECRET_KEY'],
            algorithms=[current_app.config.get('JWT_ALGORITHM', 'HS256')]
        )
    except jwt.ExpiredSignatureError:
        logger.info("Rejected expired bearer token")
        return
    except jwt.InvalidTokenError as e:
        logger.info(f"Rejected invalid bearer token: {e}")
        return

    try:
        user_id = int(payload.get('sub'))
    except (TypeError, ValueError):
        return

    user = get_session().query(User).filter_by(id=user_id, is_active=True).first()
    if user:
        g.user = user
        g.user_id = user.id


def require_login(f):
    """Decorator: reject the request with 401 unless a valid bearer token was sent."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            raise UnauthorizedError()
        return f(*args, **kwargs)
    return decorated_function
