"""
User (identity) model with role-based access.
"""
import hashlib
import secrets
from enum import Enum
from datetime import timedelta

from sqlalchemy.orm import validates
from werkzeug.security import generate_password_hash, check_password_hash

from tourbook.extensions import db
from tourbook.utils.timezone import utcnow, to_epoch


class Role(str, Enum):
    """Roles an identity can hold."""
    USER = "user"
    GUIDE = "guide"
    LEAD_GUIDE = "lead-guide"
    ADMIN = "admin"


class User(db.Model):
    """Authenticated principal. Deactivated (soft-deleted) rather than removed."""

    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(40), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    photo = db.Column(db.String(255), nullable=False, default='default.jpg')
    role = db.Column(
        db.Enum(Role, values_callable=lambda roles: [r.value for r in roles]),
        default=Role.USER,
        nullable=False,
        index=True
    )
    password_hash = db.Column(db.String(256), nullable=False)
    password_changed_at = db.Column(db.DateTime, nullable=True)

    # Password reset (sha256 of the emailed token)
    password_reset_token = db.Column(db.String(64), nullable=True, index=True)
    password_reset_expires = db.Column(db.DateTime, nullable=True)

    active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    reviews = db.relationship('Review', back_populates='user', cascade='all, delete-orphan')
    bookings = db.relationship('Booking', back_populates='user', cascade='all, delete-orphan')

    def __repr__(self):
        return f'<User {self.email}>'

    @validates('email')
    def normalize_email(self, key, value):
        return value.strip().lower() if value else value

    @classmethod
    def active_query(cls):
        """Query over identities that have not been deactivated."""
        return cls.query.filter(cls.active.is_(True))

    @classmethod
    def find_by_email(cls, email):
        if not email:
            return None
        return cls.active_query().filter_by(email=email.strip().lower()).first()

    def set_password(self, password, changed=False):
        """Hash and store a password.

        Args:
            password: Plain text password
            changed: Stamp password_changed_at (every change after signup)
        """
        self.password_hash = generate_password_hash(password)
        if changed:
            self.password_changed_at = utcnow()

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def changed_password_after(self, issued_at):
        """True when the password changed after a token's ``iat`` claim."""
        if self.password_changed_at is None:
            return False
        return to_epoch(self.password_changed_at) > float(issued_at)

    def create_password_reset_token(self, expires_minutes=10):
        """Generate a reset token; only its sha256 digest is stored.

        Returns:
            The raw token to send to the user.
        """
        token = secrets.token_hex(32)
        self.password_reset_token = hash_reset_token(token)
        self.password_reset_expires = utcnow() + timedelta(minutes=expires_minutes)
        return token

    def clear_password_reset(self):
        self.password_reset_token = None
        self.password_reset_expires = None

    def has_role(self, *roles):
        return self.role in roles


def hash_reset_token(token):
    return hashlib.sha256(token.encode('utf-8')).hexdigest()
