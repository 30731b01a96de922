"""
API v1 Blueprint: REST API with JWT authentication.
Tokens travel as a Bearer header or in http-only cookies.
"""
from flask import Blueprint

api_bp = Blueprint('api', __name__)

from tourbook.blueprints.api import auth, tours, users, reviews, bookings  # noqa: E402, F401
