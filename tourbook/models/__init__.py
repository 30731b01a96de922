"""
SQLAlchemy models for Tourbook.
All models are imported here so relationships resolve on first use.
"""
from tourbook.models.user import User, Role, hash_reset_token
from tourbook.models.tour import Tour, Difficulty, tour_guides, recalculate_ratings
from tourbook.models.review import Review
from tourbook.models.booking import Booking

__all__ = [
    'User',
    'Role',
    'hash_reset_token',
    'Tour',
    'Difficulty',
    'tour_guides',
    'recalculate_ratings',
    'Review',
    'Booking',
]
