"""
API tour endpoints: CRUD, the top-5 alias, statistics and geo queries.
"""
import math
from collections import defaultdict
from datetime import date

from flask import jsonify, request
from sqlalchemy import func
from werkzeug.datastructures import MultiDict

from tourbook.blueprints.api import api_bp
from tourbook.blueprints.api.decorators import (
    current_user, is_logged_in, jwt_required, restrict_to,
)
from tourbook.blueprints.api.handlers import (
    create_one, delete_one, get_all, get_one, update_one,
)
from tourbook.blueprints.api.schemas import TourSchema
from tourbook.errors import AppError
from tourbook.extensions import db
from tourbook.models.tour import Tour
from tourbook.models.user import Role
from tourbook.utils.images import save_resized_image

TOUR_IMAGE_SIZE = (2000, 1333)
MAX_TOUR_IMAGES = 3

EARTH_RADIUS = {'mi': 3963.2, 'km': 6378.1}

TOP_CHEAP_ARGS = {
    'limit': '5',
    'sort': '-ratings_average,price',
    'fields': 'name,price,ratings_average,summary,difficulty',
}


def _public_tours(**_):
    return Tour.public_query()


def _tours_visible_to_caller(**_):
    """Secret tours are only reachable by staff who manage tours."""
    user = current_user()
    if user is not None and user.has_role(Role.ADMIN, Role.LEAD_GUIDE):
        return Tour.query
    return Tour.public_query()


def _uploaded_tour_images(id=None, **_):
    """Resize ``image_cover`` and ``images`` uploads, if any were sent."""
    cover = request.files.get('image_cover')
    images = request.files.getlist('images')
    if not cover and not images:
        return {}
    if len(images) > MAX_TOUR_IMAGES:
        raise AppError(f'A tour can have at most {MAX_TOUR_IMAGES} images.', 400)

    data = {}
    if cover:
        data['image_cover'] = save_resized_image(cover, 'tours', f'tour-{id}-cover', TOUR_IMAGE_SIZE)
    if images:
        data['images'] = [
            save_resized_image(image, 'tours', f'tour-{id}-{index}', TOUR_IMAGE_SIZE)
            for index, image in enumerate(images, start=1)
        ]
    return data


def _check_discount(tour):
    """A partial update may change only one side of the discount rule."""
    if tour.price_discount is not None and tour.price_discount >= tour.price:
        raise AppError('Invalid input data. price_discount: Discount price should be below the regular price.', 400)


_list_tours = get_all(Tour, TourSchema, base_query=_public_tours)
_get_tour = get_one(Tour, TourSchema, base_query=_tours_visible_to_caller, expand=('reviews',))
_create_tour = create_one(Tour, TourSchema)
_update_tour = update_one(Tour, TourSchema, prepare=_uploaded_tour_images, after_write=_check_discount)
_delete_tour = delete_one(Tour)


# ── CRUD ────────────────────────────────────────────────────

@api_bp.route('/tours', methods=['GET'])
def list_tours():
    """List public tours.

    Query params:
        <field>, <field>[gte|gt|lte|lt]: filters
        sort, fields, page, limit
    """
    return _list_tours()


@api_bp.route('/tours/top-5-cheap', methods=['GET'])
def top_cheap_tours():
    """Five best-rated, cheapest tours."""
    args = MultiDict(request.args)
    for key, value in TOP_CHEAP_ARGS.items():
        args[key] = value
    return _list_tours(args=args)


@api_bp.route('/tours/<id>', methods=['GET'])
@is_logged_in
def get_tour(id):
    """Single tour with its reviews."""
    return _get_tour(id=id)


@api_bp.route('/tours', methods=['POST'])
@jwt_required
@restrict_to(Role.ADMIN, Role.LEAD_GUIDE)
def create_tour():
    return _create_tour()


@api_bp.route('/tours/<id>', methods=['PATCH'])
@jwt_required
@restrict_to(Role.ADMIN, Role.LEAD_GUIDE)
def update_tour(id):
    """Update a tour. Multipart requests may carry image_cover and images files."""
    return _update_tour(id=id)


@api_bp.route('/tours/<id>', methods=['DELETE'])
@jwt_required
@restrict_to(Role.ADMIN, Role.LEAD_GUIDE)
def delete_tour(id):
    return _delete_tour(id=id)


# ── Aggregates ──────────────────────────────────────────────

@api_bp.route('/tours/tour-stats', methods=['GET'])
def tour_stats():
    """Per-difficulty statistics for public tours rated 4.5 and above."""
    avg_price = func.avg(Tour.price)
    rows = db.session.query(
        Tour.difficulty,
        func.count(Tour.id),
        func.sum(Tour.ratings_quantity),
        func.avg(Tour.ratings_average),
        avg_price,
        func.min(Tour.price),
        func.max(Tour.price),
    ).filter(
        Tour.secret_tour.is_(False),
        Tour.ratings_average >= 4.5,
    ).group_by(Tour.difficulty).order_by(avg_price).all()

    stats = [
        {
            'difficulty': difficulty.value.upper(),
            'num_tours': num_tours,
            'num_ratings': int(num_ratings or 0),
            'avg_rating': round(float(avg_rating), 2),
            'avg_price': round(float(avg), 2),
            'min_price': min_price,
            'max_price': max_price,
        }
        for difficulty, num_tours, num_ratings, avg_rating, avg, min_price, max_price in rows
    ]
    return jsonify({'status': 'success', 'data': {'stats': stats}}), 200


@api_bp.route('/tours/monthly-plan/<int:year>', methods=['GET'])
@jwt_required
@restrict_to(Role.ADMIN, Role.LEAD_GUIDE, Role.GUIDE)
def monthly_plan(year):
    """Number of tour starts per month of ``year``, busiest month first."""
    months = defaultdict(list)
    for tour in Tour.public_query().order_by(Tour.name).all():
        for raw in tour.start_dates or []:
            start = date.fromisoformat(raw[:10])
            if start.year == year:
                months[start.month].append(tour.name)

    plan = sorted(
        (
            {'month': month, 'num_tour_starts': len(names), 'tours': names}
            for month, names in months.items()
        ),
        key=lambda item: (-item['num_tour_starts'], item['month']),
    )
    return jsonify({'status': 'success', 'results': len(plan), 'data': {'plan': plan}}), 200


# ── Geo ─────────────────────────────────────────────────────

def _parse_latlng(latlng):
    try:
        lat, lng = (float(part) for part in latlng.split(','))
    except ValueError:
        raise AppError('Please provide latitude and longitude in the format lat,lng.', 400)
    return lat, lng


def _parse_unit(unit):
    if unit not in EARTH_RADIUS:
        raise AppError('Unit must be either mi or km.', 400)
    return unit


def great_circle_distance(lat1, lng1, lat2, lng2, unit='km'):
    """Haversine distance between two points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS[unit] * math.asin(math.sqrt(a))


def _located_tours():
    for tour in Tour.public_query().all():
        coordinates = (tour.start_location or {}).get('coordinates')
        if coordinates and len(coordinates) == 2:
            lng, lat = coordinates
            yield tour, lat, lng


@api_bp.route('/tours/tours-within/<distance>/center/<latlng>/unit/<unit>', methods=['GET'])
def tours_within(distance, latlng, unit):
    """Tours starting within ``distance`` of a point."""
    lat, lng = _parse_latlng(latlng)
    unit = _parse_unit(unit)
    try:
        radius = float(distance)
    except ValueError:
        raise AppError('Distance must be a number.', 400)

    tours = [
        tour for tour, t_lat, t_lng in _located_tours()
        if great_circle_distance(lat, lng, t_lat, t_lng, unit) <= radius
    ]
    return jsonify({
        'status': 'success',
        'results': len(tours),
        'data': {'data': TourSchema(many=True, exclude=TourSchema.EXPANDABLE).dump(tours)},
    }), 200


@api_bp.route('/tours/distances/<latlng>/unit/<unit>', methods=['GET'])
def tour_distances(latlng, unit):
    """Distance from a point to every tour's start, nearest first."""
    lat, lng = _parse_latlng(latlng)
    unit = _parse_unit(unit)

    distances = sorted(
        (
            {
                'id': tour.id,
                'name': tour.name,
                'distance': round(great_circle_distance(lat, lng, t_lat, t_lng, unit), 3),
            }
            for tour, t_lat, t_lng in _located_tours()
        ),
        key=lambda item: item['distance'],
    )
    return jsonify({
        'status': 'success',
        'unit': 'miles' if unit == 'mi' else 'kilometers',
        'data': {'distances': distances},
    }), 200
