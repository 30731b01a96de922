"""
Marshmallow schemas for API serialization and input validation.
Secrets (password hash, reset token) are never declared, so never dumped.
"""
import re
from datetime import date

from marshmallow import (
    EXCLUDE, Schema, ValidationError, fields, validate, validates, validates_schema,
)

from tourbook.models.tour import Difficulty
from tourbook.models.user import Role

PASSWORD_PATTERN = re.compile(r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d).{8,}$')
PASSWORD_MESSAGE = 'Password must be at least 8 characters and include uppercase, lowercase, and a number.'


# ── Shared helpers ──────────────────────────────────────────

class BaseSchema(Schema):
    """Base schema with common config."""

    # Relationships serialized only when a read asks to expand them
    EXPANDABLE = ()

    @classmethod
    def list_fields(cls):
        """Field names a list endpoint may filter, sort or select on."""
        return set(cls().dump_fields) - set(cls.EXPANDABLE)


def _validate_iso_date(value):
    try:
        date.fromisoformat(value[:10])
    except (TypeError, ValueError):
        raise ValidationError('Dates must use the YYYY-MM-DD format.')


class PasswordSchema(BaseSchema):
    """New password with its confirmation."""
    password = fields.Str(
        required=True,
        load_only=True,
        validate=validate.Regexp(PASSWORD_PATTERN, error=PASSWORD_MESSAGE),
    )
    password_confirm = fields.Str(required=True, load_only=True, data_key='passwordConfirm')

    @validates_schema
    def validate_confirmation(self, data, **kwargs):
        if data.get('password') != data.get('password_confirm'):
            raise ValidationError('Passwords do not match.', 'passwordConfirm')


# ── User ────────────────────────────────────────────────────

class UserMinimalSchema(BaseSchema):
    """Minimal user representation (for nested references)."""
    id = fields.Int(dump_only=True)
    name = fields.Str()
    photo = fields.Str()


class UserSchema(BaseSchema):
    """Full user representation. ``role`` is only writable through admin routes."""
    id = fields.Int(dump_only=True)
    name = fields.Str(required=True, validate=validate.Length(min=2, max=40))
    email = fields.Email(required=True)
    photo = fields.Str()
    role = fields.Enum(Role, by_value=True)
    created_at = fields.DateTime(format='iso', dump_only=True)


class SignupSchema(PasswordSchema):
    """Signup payload. Unknown keys (including ``role``) are dropped."""

    class Meta:
        unknown = EXCLUDE

    name = fields.Str(required=True, validate=validate.Length(min=2, max=40))
    email = fields.Email(required=True)


class UpdateMeSchema(BaseSchema):
    """Fields a user may change on their own profile."""
    name = fields.Str(validate=validate.Length(min=2, max=40))
    email = fields.Email()


class UpdatePasswordSchema(PasswordSchema):
    password_current = fields.Str(required=True, load_only=True, data_key='passwordCurrent')


# ── Tour ────────────────────────────────────────────────────

class LocationSchema(BaseSchema):
    """GeoJSON-like point with an optional itinerary day."""
    type = fields.Str(load_default='Point', validate=validate.OneOf(['Point']))
    coordinates = fields.List(fields.Float(), required=True, validate=validate.Length(equal=2))
    address = fields.Str()
    description = fields.Str()
    day = fields.Int(validate=validate.Range(min=0))


class TourMinimalSchema(BaseSchema):
    id = fields.Int(dump_only=True)
    name = fields.Str()
    slug = fields.Str()


class ReviewSchema(BaseSchema):
    """Review representation. The author is always the caller."""

    class Meta:
        unknown = EXCLUDE

    id = fields.Int(dump_only=True)
    review = fields.Str(required=True, validate=validate.Length(min=1))
    rating = fields.Int(required=True, validate=validate.Range(min=1, max=5))
    tour_id = fields.Int()
    user_id = fields.Int(dump_only=True)
    user = fields.Nested(UserMinimalSchema, dump_only=True)
    created_at = fields.DateTime(format='iso', dump_only=True)


class ReviewUpdateSchema(ReviewSchema):
    """Review edits. A review cannot be moved to another tour."""
    tour_id = fields.Int(dump_only=True)


class TourSchema(BaseSchema):
    """Tour representation."""
    EXPANDABLE = ('reviews',)

    id = fields.Int(dump_only=True)
    name = fields.Str(required=True, validate=validate.Length(min=10, max=40))
    slug = fields.Str(dump_only=True)
    duration = fields.Int(required=True, validate=validate.Range(min=1))
    max_group_size = fields.Int(required=True, validate=validate.Range(min=1))
    difficulty = fields.Enum(Difficulty, by_value=True, required=True)
    ratings_average = fields.Float(dump_only=True)
    ratings_quantity = fields.Int(dump_only=True)
    price = fields.Float(required=True, validate=validate.Range(min=0))
    price_discount = fields.Float(allow_none=True, validate=validate.Range(min=0))
    summary = fields.Str(required=True, validate=validate.Length(min=1, max=255))
    description = fields.Str()
    image_cover = fields.Str()
    images = fields.List(fields.Str())
    start_dates = fields.List(fields.Str(validate=_validate_iso_date))
    secret_tour = fields.Bool()
    start_location = fields.Nested(LocationSchema, allow_none=True)
    locations = fields.List(fields.Nested(LocationSchema))
    guides = fields.Nested(UserMinimalSchema, many=True, dump_only=True)
    guide_ids = fields.List(fields.Int(), load_only=True)
    reviews = fields.Nested(ReviewSchema, many=True, dump_only=True, exclude=('tour_id',))
    created_at = fields.DateTime(format='iso', dump_only=True)

    @validates('name')
    def validate_name(self, value, **kwargs):
        if not re.search(r'[A-Za-z]', value):
            raise ValidationError('A tour name must contain letters.')

    @validates_schema
    def validate_discount(self, data, **kwargs):
        price = data.get('price')
        discount = data.get('price_discount')
        if price is not None and discount is not None and discount >= price:
            raise ValidationError('Discount price should be below the regular price.', 'price_discount')


# ── Booking ─────────────────────────────────────────────────

class BookingSchema(BaseSchema):
    id = fields.Int(dump_only=True)
    tour_id = fields.Int(required=True)
    user_id = fields.Int(required=True)
    price = fields.Float(required=True, validate=validate.Range(min=0))
    paid = fields.Bool()
    tour = fields.Nested(TourMinimalSchema, dump_only=True)
    user = fields.Nested(UserMinimalSchema, dump_only=True)
    created_at = fields.DateTime(format='iso', dump_only=True)
