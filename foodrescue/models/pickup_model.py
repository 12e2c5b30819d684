from datetime import datetime
from foodrescue.extensions import db

PICKUP_STATUSES = ('scheduled', 'in-progress', 'completed', 'cancelled')


class Pickup(db.Model):
    __tablename__ = 'pickups'

    id = db.Column(db.Integer, primary_key=True)
    donation_id = db.Column(db.Integer, db.ForeignKey('donations.id'), nullable=False, index=True)
    volunteer_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    scheduled_time = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.Enum(*PICKUP_STATUSES, name='pickup_status'), nullable=False, default='scheduled')
    completion_notes = db.Column(db.Text)
    completion_photos = db.Column(db.JSON, default=list)
    rating = db.Column(db.Integer)
    feedback = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    donation = db.relationship('Donation', backref=db.backref('pickups', cascade='all, delete-orphan'))
    volunteer = db.relationship('User')

    __table_args__ = (
        db.CheckConstraint('rating IS NULL OR (rating >= 1 AND rating <= 5)', name='ck_pickup_rating_range'),
    )

    def to_dict(self):
        donation = self.donation
        return {
            'id': self.id,
            'donation': {
                'id': donation.id,
                'foodName': donation.food_name,
                'description': donation.description,
                'expirationDate': donation.expiration_date.isoformat(),
                'status': donation.status,
                'imageUrl': donation.image_url,
            } if donation else self.donation_id,
            'volunteer': self.volunteer.summary() if self.volunteer else self.volunteer_id,
            'scheduledTime': self.scheduled_time.isoformat() if self.scheduled_time else None,
            'status': self.status,
            'completionNotes': self.completion_notes,
            'completionPhotos': self.completion_photos or [],
            'rating': self.rating,
            'feedback': self.feedback,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
            'updatedAt': self.updated_at.isoformat() if self.updated_at else None,
        }
