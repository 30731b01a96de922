"""
API review endpoints, top-level and nested under a tour.
Every write recomputes the reviewed tour's rating aggregate.
"""
from tourbook.blueprints.api import api_bp
from tourbook.blueprints.api.decorators import current_user, jwt_required, restrict_to
from tourbook.blueprints.api.handlers import (
    create_one, delete_one, find_or_404, get_all, get_one, parse_id, request_payload, update_one,
)
from tourbook.blueprints.api.schemas import ReviewSchema, ReviewUpdateSchema
from tourbook.errors import AppError
from tourbook.extensions import db
from tourbook.models.review import Review
from tourbook.models.tour import Tour, recalculate_ratings
from tourbook.models.user import Role


def _reviews_for(tour_id=None, **_):
    """Reviews, scoped to one tour when the route names it."""
    query = Review.query
    if tour_id is not None:
        query = query.filter(Review.tour_id == parse_id(tour_id, 'tour_id'))
    return query


def _author_and_tour(tour_id=None, **_):
    """Author is always the caller; the tour comes from the route, else the body."""
    if tour_id is None:
        tour_id = request_payload().get('tour_id')
    if tour_id is None:
        raise AppError('A review must belong to a tour.', 400)

    tour = db.session.get(Tour, parse_id(tour_id, 'tour_id'))
    if tour is None:
        raise AppError('No tour found with that ID.', 404)

    return {'tour_id': tour.id, 'user_id': current_user().id}


def _update_tour_ratings(review):
    recalculate_ratings(review.tour_id)


def _ensure_author_or_admin(id, **view_args):
    review = find_or_404(Review, id, _reviews_for, **view_args)
    user = current_user()
    if review.user_id != user.id and not user.has_role(Role.ADMIN):
        raise AppError('You can only change your own reviews.', 403)


_list_reviews = get_all(Review, ReviewSchema, base_query=_reviews_for)
_get_review = get_one(Review, ReviewSchema, base_query=_reviews_for)
_create_review = create_one(
    Review, ReviewSchema, prepare=_author_and_tour, after_write=_update_tour_ratings,
)
_update_review = update_one(
    Review, ReviewUpdateSchema, base_query=_reviews_for, after_write=_update_tour_ratings,
)
_delete_review = delete_one(Review, base_query=_reviews_for, after_write=_update_tour_ratings)


@api_bp.route('/reviews', methods=['GET'])
@api_bp.route('/tours/<tour_id>/reviews', methods=['GET'])
@jwt_required
def list_reviews(tour_id=None):
    return _list_reviews(tour_id=tour_id)


@api_bp.route('/reviews', methods=['POST'])
@api_bp.route('/tours/<tour_id>/reviews', methods=['POST'])
@jwt_required
@restrict_to(Role.USER, Role.ADMIN)
def create_review(tour_id=None):
    """Review a tour as the authenticated user.

    Request body:
        {"review": "...", "rating": 1-5, "tour_id": 1}   # tour_id only on /reviews
    """
    return _create_review(tour_id=tour_id)


@api_bp.route('/reviews/<id>', methods=['GET'])
@api_bp.route('/tours/<tour_id>/reviews/<id>', methods=['GET'])
@jwt_required
def get_review(id, tour_id=None):
    return _get_review(id=id, tour_id=tour_id)


@api_bp.route('/reviews/<id>', methods=['PATCH'])
@api_bp.route('/tours/<tour_id>/reviews/<id>', methods=['PATCH'])
@jwt_required
@restrict_to(Role.USER, Role.ADMIN)
def update_review(id, tour_id=None):
    _ensure_author_or_admin(id, tour_id=tour_id)
    return _update_review(id=id, tour_id=tour_id)


@api_bp.route('/reviews/<id>', methods=['DELETE'])
@api_bp.route('/tours/<tour_id>/reviews/<id>', methods=['DELETE'])
@jwt_required
@restrict_to(Role.USER, Role.ADMIN)
def delete_review(id, tour_id=None):
    _ensure_author_or_admin(id, tour_id=tour_id)
    return _delete_review(id=id, tour_id=tour_id)
