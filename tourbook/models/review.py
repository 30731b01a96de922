"""
Review model. One review per user per tour.
"""
from tourbook.extensions import db
from tourbook.utils.timezone import utcnow


class Review(db.Model):
    __tablename__ = 'reviews'
    __table_args__ = (
        db.UniqueConstraint('tour_id', 'user_id', name='uq_reviews_tour_user'),
    )

    id = db.Column(db.Integer, primary_key=True)
    review = db.Column(db.Text, nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    tour_id = db.Column(db.Integer, db.ForeignKey('tours.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    tour = db.relationship('Tour', back_populates='reviews')
    user = db.relationship('User', back_populates='reviews', lazy='joined')

    def __repr__(self):
        return f'<Review {self.id} tour={self.tour_id} rating={self.rating}>'
