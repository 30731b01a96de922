"""
Tour model and rating aggregate.
"""
import re
from enum import Enum

from sqlalchemy import func
from sqlalchemy.orm import validates

from tourbook.extensions import db
from tourbook.utils.timezone import utcnow


class Difficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    DIFFICULT = "difficult"


DEFAULT_RATINGS_AVERAGE = 4.5

tour_guides = db.Table(
    'tour_guides',
    db.Column('tour_id', db.Integer, db.ForeignKey('tours.id', ondelete='CASCADE'), primary_key=True),
    db.Column('user_id', db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True),
)


def slugify(value):
    slug = re.sub(r'[^a-z0-9]+', '-', value.lower()).strip('-')
    return slug or None


class Tour(db.Model):
    """A bookable tour."""

    __tablename__ = 'tours'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(40), unique=True, nullable=False)
    slug = db.Column(db.String(60), index=True)
    duration = db.Column(db.Integer, nullable=False)
    max_group_size = db.Column(db.Integer, nullable=False)
    difficulty = db.Column(
        db.Enum(Difficulty, values_callable=lambda items: [d.value for d in items]),
        nullable=False
    )
    ratings_average = db.Column(db.Float, default=DEFAULT_RATINGS_AVERAGE, nullable=False)
    ratings_quantity = db.Column(db.Integer, default=0, nullable=False)
    price = db.Column(db.Float, nullable=False)
    price_discount = db.Column(db.Float)
    summary = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text)
    image_cover = db.Column(db.String(255), nullable=False, default='default-cover.jpg')
    images = db.Column(db.JSON, default=list)
    start_dates = db.Column(db.JSON, default=list)  # ISO dates
    secret_tour = db.Column(db.Boolean, default=False, nullable=False)

    # GeoJSON-like points: {"type": "Point", "coordinates": [lng, lat], ...}
    start_location = db.Column(db.JSON)
    locations = db.Column(db.JSON, default=list)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    guides = db.relationship('User', secondary=tour_guides, lazy='selectin')
    reviews = db.relationship(
        'Review',
        back_populates='tour',
        cascade='all, delete-orphan',
        order_by='Review.created_at',
    )
    bookings = db.relationship('Booking', back_populates='tour', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<Tour {self.name}>'

    @validates('name')
    def _set_slug(self, key, value):
        if value:
            self.slug = slugify(value)
        return value

    @property
    def guide_ids(self):
        return [guide.id for guide in self.guides]

    @guide_ids.setter
    def guide_ids(self, ids):
        from tourbook.models.user import User
        self.guides = User.query.filter(User.id.in_(ids or [])).all()

    @classmethod
    def public_query(cls):
        """Tours visible in listings (secret tours excluded)."""
        return cls.query.filter(cls.secret_tour.is_(False))


def recalculate_ratings(tour_id):
    """Recompute a tour's rating aggregate from its reviews.

    Called by the review write paths after a flush, inside the same
    transaction, so the aggregate commits together with the review.
    """
    from tourbook.models.review import Review

    count, average = db.session.query(
        func.count(Review.id),
        func.avg(Review.rating),
    ).filter(Review.tour_id == tour_id).one()

    tour = db.session.get(Tour, tour_id)
    if tour is None:
        return None

    if count:
        tour.ratings_quantity = count
        tour.ratings_average = round(float(average), 1)
    else:
        tour.ratings_quantity = 0
        tour.ratings_average = DEFAULT_RATINGS_AVERAGE
    return tour
