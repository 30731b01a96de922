"""
API booking endpoints: payment checkout and booking management.
"""
from flask import jsonify

from tourbook.blueprints.api import api_bp
from tourbook.blueprints.api.decorators import current_user, jwt_required, restrict_to
from tourbook.blueprints.api.handlers import (
    create_one, delete_one, get_all, get_one, parse_id, request_payload, update_one,
)
from tourbook.blueprints.api.schemas import BookingSchema
from tourbook.errors import AppError
from tourbook.extensions import db
from tourbook.models.booking import Booking
from tourbook.models.tour import Tour
from tourbook.models.user import Role, User
from tourbook.services.checkout_service import get_checkout_gateway


def _existing_references(**_):
    """Reject bookings pointing at a missing tour or user."""
    payload = request_payload()
    if 'tour_id' in payload and db.session.get(Tour, parse_id(payload['tour_id'], 'tour_id')) is None:
        raise AppError('No tour found with that ID.', 404)
    if 'user_id' in payload and db.session.get(User, parse_id(payload['user_id'], 'user_id')) is None:
        raise AppError('No user found with that ID.', 404)
    return {}


_list_bookings = get_all(Booking, BookingSchema)
_get_booking = get_one(Booking, BookingSchema)
_create_booking = create_one(Booking, BookingSchema, prepare=_existing_references)
_update_booking = update_one(Booking, BookingSchema, prepare=_existing_references)
_delete_booking = delete_one(Booking)


@api_bp.route('/bookings/checkout-session/<tour_id>', methods=['GET'])
@jwt_required
def get_checkout_session(tour_id):
    """Start a payment for one place on a tour.

    Response:
        {"status": "success", "session": {"id": "...", "url": "..."}}
    """
    tour = db.session.get(Tour, parse_id(tour_id, 'tour_id'))
    if tour is None:
        raise AppError('No tour found with that ID.', 404)

    session = get_checkout_gateway().create_session(tour, current_user())
    return jsonify({
        'status': 'success',
        'session': {'id': session.id, 'url': session.url},
    }), 200


@api_bp.route('/bookings', methods=['GET'])
@jwt_required
@restrict_to(Role.ADMIN, Role.LEAD_GUIDE)
def list_bookings():
    return _list_bookings()


@api_bp.route('/bookings', methods=['POST'])
@jwt_required
@restrict_to(Role.ADMIN, Role.LEAD_GUIDE)
def create_booking():
    return _create_booking()


@api_bp.route('/bookings/<id>', methods=['GET'])
@jwt_required
@restrict_to(Role.ADMIN, Role.LEAD_GUIDE)
def get_booking(id):
    return _get_booking(id=id)


@api_bp.route('/bookings/<id>', methods=['PATCH'])
@jwt_required
@restrict_to(Role.ADMIN, Role.LEAD_GUIDE)
def update_booking(id):
    return _update_booking(id=id)


@api_bp.route('/bookings/<id>', methods=['DELETE'])
@jwt_required
@restrict_to(Role.ADMIN, Role.LEAD_GUIDE)
def delete_booking(id):
    return _delete_booking(id=id)
