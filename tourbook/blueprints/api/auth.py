"""
API authentication endpoints: signup, login, logout, password reset,
token refresh and password change.
"""
import logging

from flask import current_app, jsonify, request, url_for

from tourbook.blueprints.api import api_bp
from tourbook.blueprints.api.decorators import (
    ACCESS_COOKIE, REFRESH_COOKIE, current_user, jwt_required,
)
from tourbook.blueprints.api.handlers import request_payload
from tourbook.blueprints.api.schemas import (
    PasswordSchema, SignupSchema, UpdatePasswordSchema, UserSchema,
)
from tourbook.errors import AppError
from tourbook.extensions import db, limiter
from tourbook.models.user import Role, User, hash_reset_token
from tourbook.services.token_service import REFRESH, get_token_service
from tourbook.utils.email import send_password_reset_email, send_welcome_email
from tourbook.utils.timezone import utcnow

logger = logging.getLogger(__name__)


def _set_token_cookies(response, access_token, refresh_token):
    tokens = get_token_service()
    settings = tokens.settings
    response.set_cookie(
        ACCESS_COOKIE, access_token,
        max_age=tokens.access_max_age,
        httponly=True,
        samesite='Lax',
        secure=settings.cookie_secure,
    )
    response.set_cookie(
        REFRESH_COOKIE, refresh_token,
        max_age=tokens.refresh_max_age,
        httponly=True,
        samesite='Strict',
        secure=settings.cookie_secure,
        path=settings.refresh_cookie_path,
    )


def send_tokens(user, status_code):
    """Issue an access/refresh pair: access token in the body and a cookie,
    refresh token only in its http-only cookie."""
    tokens = get_token_service()
    access_token = tokens.sign_access_token(user.id)
    refresh_token = tokens.sign_refresh_token(user.id)

    response = jsonify({
        'status': 'success',
        'token': access_token,
        'data': {'user': UserSchema().dump(user)},
    })
    response.status_code = status_code
    _set_token_cookies(response, access_token, refresh_token)
    return response


@api_bp.route('/auth/signup', methods=['POST'])
@limiter.limit('10 per minute')
def signup():
    """Create an identity with role ``user`` and log it in.

    Request body:
        {"name": "...", "email": "...", "password": "...", "passwordConfirm": "..."}
    """
    data = SignupSchema().load(request_payload())

    user = User(name=data['name'], email=data['email'], role=Role.USER)
    user.set_password(data['password'])
    db.session.add(user)
    db.session.commit()
    logger.info('New signup: user %s', user.id)

    account_url = url_for('api.get_me', _external=True)
    if not send_welcome_email(user, account_url):
        logger.warning('Welcome email to user %s failed', user.id)

    return send_tokens(user, 201)


@api_bp.route('/auth/login', methods=['POST'])
@limiter.limit('10 per minute')
def login():
    """Authenticate with email and password.

    Request body:
        {"email": "...", "password": "..."}
    """
    data = request_payload()
    email = str(data.get('email') or '').strip()
    password = str(data.get('password') or '')

    if not email or not password:
        raise AppError('Please provide email and password!', 400)

    user = User.find_by_email(email)
    if user is None or not user.check_password(password):
        raise AppError('Incorrect email or password', 401)

    return send_tokens(user, 200)


@api_bp.route('/auth/logout', methods=['POST'])
def logout():
    """Clear the token cookies.

    Tokens are stateless: an access token already held by a client stays
    valid until it expires.
    """
    settings = get_token_service().settings
    response = jsonify({'status': 'success', 'message': 'Logged out successfully.'})
    response.delete_cookie(ACCESS_COOKIE, httponly=True, samesite='Lax')
    response.delete_cookie(
        REFRESH_COOKIE,
        path=settings.refresh_cookie_path,
        httponly=True,
        samesite='Strict',
    )
    return response, 200


@api_bp.route('/auth/refresh-token', methods=['POST'])
@limiter.limit('20 per minute')
def refresh_token():
    """Mint a new access token from the refresh cookie.

    The refresh token itself is not rotated.
    """
    token = request.cookies.get(REFRESH_COOKIE)
    if not token:
        raise AppError('No refresh token provided.', 401)

    tokens = get_token_service()
    claims = tokens.decode(token, REFRESH)

    try:
        user_id = int(claims['sub'])
    except (TypeError, ValueError):
        raise AppError('Invalid token. Please log in again!', 401)

    user = db.session.get(User, user_id)
    if user is None or not user.active:
        raise AppError('The user belonging to this token no longer exists.', 401)
    if user.changed_password_after(claims['iat']):
        raise AppError('User recently changed password! Please log in again.', 401)

    access_token = tokens.sign_access_token(user.id)
    response = jsonify({
        'status': 'success',
        'token': access_token,
        'data': {'user': UserSchema().dump(user)},
    })
    response.set_cookie(
        ACCESS_COOKIE, access_token,
        max_age=tokens.access_max_age,
        httponly=True,
        samesite='Lax',
        secure=tokens.settings.cookie_secure,
    )
    return response, 200


@api_bp.route('/auth/forgot-password', methods=['POST'])
@limiter.limit('5 per minute')
def forgot_password():
    """Email a password reset link.

    If the email cannot be sent, the stored reset token is cleared again.
    """
    email = str(request_payload().get('email') or '').strip()
    user = User.find_by_email(email)
    if user is None:
        raise AppError('There is no user with this email address.', 404)

    expiry = current_app.config.get('PASSWORD_RESET_EXPIRES_MINUTES', 10)
    reset_token = user.create_password_reset_token(expires_minutes=expiry)
    db.session.commit()

    reset_url = url_for('api.reset_password', token=reset_token, _external=True)
    if not send_password_reset_email(user, reset_url, expiry_minutes=expiry):
        user.clear_password_reset()
        db.session.commit()
        raise AppError('There was an error sending the email. Try again later!', 500)

    return jsonify({'status': 'success', 'message': 'Token sent to email!'}), 200


@api_bp.route('/auth/reset-password/<token>', methods=['PATCH'])
def reset_password(token):
    """Set a new password using an emailed reset token."""
    user = User.active_query().filter(
        User.password_reset_token == hash_reset_token(token),
        User.password_reset_expires > utcnow(),
    ).first()
    if user is None:
        raise AppError('Token is invalid or has expired.', 400)

    data = PasswordSchema().load(request_payload())
    user.set_password(data['password'], changed=True)
    user.clear_password_reset()
    db.session.commit()
    logger.info('Password reset for user %s', user.id)

    return send_tokens(user, 200)


@api_bp.route('/auth/update-my-password', methods=['PATCH'])
@jwt_required
def update_my_password():
    """Change the caller's password; previously issued tokens stop working."""
    user = current_user()
    data = UpdatePasswordSchema().load(request_payload())

    if not user.check_password(data['password_current']):
        raise AppError('Your current password is wrong.', 401)

    user.set_password(data['password'], changed=True)
    db.session.commit()
    logger.info('Password changed for user %s', user.id)

    return send_tokens(user, 200)
