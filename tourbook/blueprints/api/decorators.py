"""
Authorization gate for the REST API: identity resolution, role
restriction, and the non-rejecting "is logged in" variant.
"""
from functools import wraps

from flask import request

from tourbook.errors import AppError
from tourbook.extensions import db
from tourbook.models.user import User
from tourbook.services.token_service import ACCESS, get_token_service

ACCESS_COOKIE = 'access_jwt'
REFRESH_COOKIE = 'refresh_jwt'


def extract_access_token():
    """Bearer token from the Authorization header, else the access cookie."""
    auth_header = request.headers.get('Authorization', '')
    if auth_header.startswith('Bearer '):
        return auth_header[7:].strip() or None
    return request.cookies.get(ACCESS_COOKIE) or None


def resolve_identity(claims):
    """Load the identity verified token claims belong to.

    Returns:
        (user, error_message), exactly one of them None.
    """
    try:
        user_id = int(claims['sub'])
    except (KeyError, TypeError, ValueError):
        return None, 'Invalid token. Please log in again!'

    user = db.session.get(User, user_id)
    if user is None or not user.active:
        return None, 'The user belonging to this token no longer exists.'

    if user.changed_password_after(claims['iat']):
        return None, 'User recently changed password! Please log in again.'

    return user, None


def current_user():
    """The identity resolved for this request, or None."""
    return getattr(request, 'api_user', None)


def jwt_required(f):
    """Decorator: require a valid access token; sets ``request.api_user``."""
    @wraps(f)
    def decorated(*args, **kwargs):
        request.api_user = None
        token = extract_access_token()
        if not token:
            raise AppError('You are not logged in! Please log in to get access.', 401)

        # Expired or forged tokens raise here and reach the error translator
        claims = get_token_service().decode(token, ACCESS)
        user, error = resolve_identity(claims)
        if error:
            raise AppError(error, 401)

        request.api_user = user
        return f(*args, **kwargs)
    return decorated


def restrict_to(*roles):
    """Decorator: allow only identities holding one of ``roles``.

    Must be applied under ``jwt_required`` so unauthenticated callers get
    401 before any 403:

        @jwt_required
        @restrict_to(Role.ADMIN, Role.LEAD_GUIDE)
        def view(): ...
    """
    def decorator(f):
        @wraps(f)
        def decorated(*args, **kwargs):
            user = current_user()
            if user is None:
                raise AppError('You are not logged in! Please log in to get access.', 401)
            if not user.has_role(*roles):
                raise AppError('You do not have permission to perform this action.', 403)
            return f(*args, **kwargs)
        return decorated
    return decorator


def is_logged_in(f):
    """Decorator: resolve the identity when possible, never reject."""
    @wraps(f)
    def decorated(*args, **kwargs):
        request.api_user = None
        token = extract_access_token()
        claims = get_token_service().verify(token, ACCESS)
        if claims is not None:
            user, _ = resolve_identity(claims)
            request.api_user = user
        return f(*args, **kwargs)
    return decorated
