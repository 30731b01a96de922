"""
Booking model: a user's paid place on a tour.
"""
from tourbook.extensions import db
from tourbook.utils.timezone import utcnow


class Booking(db.Model):
    __tablename__ = 'bookings'

    id = db.Column(db.Integer, primary_key=True)
    tour_id = db.Column(db.Integer, db.ForeignKey('tours.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    price = db.Column(db.Float, nullable=False)
    paid = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    tour = db.relationship('Tour', back_populates='bookings', lazy='joined')
    user = db.relationship('User', back_populates='bookings', lazy='joined')

    def __repr__(self):
        return f'<Booking {self.id} tour={self.tour_id} user={self.user_id}>'
