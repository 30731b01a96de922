"""
API user endpoints: own profile and admin user management.
"""
import logging

from flask import jsonify, request

from tourbook.blueprints.api import api_bp
from tourbook.blueprints.api.decorators import current_user, jwt_required, restrict_to
from tourbook.blueprints.api.handlers import (
    delete_one, get_all, get_one, request_payload, update_one,
)
from tourbook.blueprints.api.schemas import BookingSchema, UpdateMeSchema, UserSchema
from tourbook.errors import AppError
from tourbook.extensions import db
from tourbook.models.booking import Booking
from tourbook.models.tour import recalculate_ratings
from tourbook.models.user import Role, User
from tourbook.utils.images import save_resized_image

logger = logging.getLogger(__name__)

USER_PHOTO_SIZE = (500, 500)


def _active_users(**_):
    return User.active_query()


_list_users = get_all(User, UserSchema, base_query=_active_users)
_get_user = get_one(User, UserSchema, base_query=_active_users)
_update_user = update_one(User, UserSchema, base_query=_active_users)


def _refresh_reviewed_tours(user):
    """Recompute ratings of the tours a hard-deleted user had reviewed."""
    # session.delete() loaded user.reviews to cascade, before the flush
    for tour_id in sorted({review.tour_id for review in user.reviews}):
        recalculate_ratings(tour_id)


_delete_user = delete_one(User, after_write=_refresh_reviewed_tours)


# ── Current user ────────────────────────────────────────────

@api_bp.route('/users/me', methods=['GET'])
@jwt_required
def get_me():
    """Profile of the authenticated user."""
    return _get_user(id=current_user().id)


@api_bp.route('/users/update-me', methods=['PATCH'])
@jwt_required
def update_me():
    """Update name, email and photo. Passwords go through /auth/update-my-password.

    Accepts JSON, or multipart form data with a ``photo`` file.
    """
    payload = request_payload()
    if 'password' in payload or 'passwordConfirm' in payload:
        raise AppError('This route is not for password updates. Please use /auth/update-my-password.', 400)

    allowed = {key: value for key, value in payload.items() if key in ('name', 'email')}
    data = UpdateMeSchema().load(allowed, partial=True)

    user = current_user()
    photo = request.files.get('photo')
    if photo:
        data['photo'] = save_resized_image(photo, 'users', f'user-{user.id}', USER_PHOTO_SIZE)

    for key, value in data.items():
        setattr(user, key, value)
    db.session.commit()

    return jsonify({'status': 'success', 'data': {'user': UserSchema().dump(user)}}), 200


@api_bp.route('/users/delete-me', methods=['DELETE'])
@jwt_required
def delete_me():
    """Deactivate the caller's account (soft delete)."""
    user = current_user()
    user.active = False
    db.session.commit()
    logger.info('User %s deactivated their account', user.id)
    return '', 204


@api_bp.route('/users/me/bookings', methods=['GET'])
@jwt_required
def list_my_bookings():
    """Bookings made by the authenticated user."""
    bookings = Booking.query.filter_by(user_id=current_user().id) \
        .order_by(Booking.created_at.desc()).all()
    return jsonify({
        'status': 'success',
        'results': len(bookings),
        'data': {'data': BookingSchema(many=True).dump(bookings)},
    }), 200


# ── Admin ───────────────────────────────────────────────────

@api_bp.route('/users', methods=['GET'])
@jwt_required
@restrict_to(Role.ADMIN)
def list_users():
    return _list_users()


@api_bp.route('/users', methods=['POST'])
@jwt_required
@restrict_to(Role.ADMIN)
def create_user():
    raise AppError('This route is not defined! Please use /auth/signup instead.', 400)


@api_bp.route('/users/<id>', methods=['GET'])
@jwt_required
@restrict_to(Role.ADMIN)
def get_user(id):
    return _get_user(id=id)


@api_bp.route('/users/<id>', methods=['PATCH'])
@jwt_required
@restrict_to(Role.ADMIN)
def update_user(id):
    """Admin update. Passwords cannot be changed here."""
    return _update_user(id=id)


@api_bp.route('/users/<id>', methods=['DELETE'])
@jwt_required
@restrict_to(Role.ADMIN)
def delete_user(id):
    return _delete_user(id=id)
