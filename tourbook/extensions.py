"""
Flask extensions initialization.
Extensions are initialized here and bound to the app in the factory.
"""
from flask_sqlalchemy import SQLAlchemy
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_mailman import Mail

# Database
db = SQLAlchemy()

# Rate Limiting (coarse quota per caller, API-wide)
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=['100 per hour']
)

# Email
mail = Mail()


def init_extensions(app):
    """Initialize all extensions with the Flask app."""
    db.init_app(app)
    limiter.init_app(app)
    mail.init_app(app)
