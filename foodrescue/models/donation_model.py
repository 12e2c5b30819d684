from datetime import datetime
from foodrescue.extensions import db

FOOD_TYPES = ('produce', 'prepared', 'packaged')
DONATION_STATUSES = ('available', 'claimed', 'completed', 'expired')
TERMINAL_STATUSES = ('completed', 'expired')


def _iso(value):
    return value.isoformat() if value else None


class Donation(db.Model):
    __tablename__ = 'donations'

    id = db.Column(db.Integer, primary_key=True)
    donor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    food_name = db.Column(db.String(150), nullable=False)
    food_type = db.Column(db.Enum(*FOOD_TYPES, name='food_type'), nullable=False, default='produce')
    description = db.Column(db.Text, nullable=False)
    quantity = db.Column(db.Float, nullable=False)
    unit = db.Column(db.String(30), nullable=False)
    expiration_date = db.Column(db.DateTime, nullable=False, index=True)
    image_url = db.Column(db.String(500))

    # Point stored as plain columns; distance filtering happens in the discovery service
    longitude = db.Column(db.Float, nullable=False, default=0.0)
    latitude = db.Column(db.Float, nullable=False, default=0.0)

    street = db.Column(db.String(200), nullable=False)
    city = db.Column(db.String(100), nullable=False)
    state = db.Column(db.String(50), nullable=False)
    zip_code = db.Column(db.String(20), nullable=False)
    pickup_instructions = db.Column(db.Text)
    pickup_time = db.Column(db.DateTime)

    status = db.Column(db.Enum(*DONATION_STATUSES, name='donation_status'),
                       nullable=False, default='available', index=True)
    claimed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    claimed_at = db.Column(db.DateTime)
    completed_at = db.Column(db.DateTime)
    expired_at = db.Column(db.DateTime)
    reminder_sent_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.now, onupdate=datetime.now, nullable=False)

    donor = db.relationship('User', foreign_keys=[donor_id], backref='donations')
    claimant = db.relationship('User', foreign_keys=[claimed_by])

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='ck_donation_quantity_positive'),
        db.Index('ix_donation_location', 'latitude', 'longitude'),
    )

    @property
    def coordinates(self):
        """(latitude, longitude), the order geopy expects."""
        return self.latitude, self.longitude

    @property
    def is_terminal(self):
        return self.status in TERMINAL_STATUSES

    def is_expired(self, now=None):
        return self.expiration_date < (now or datetime.now())

    @property
    def pickup_address(self):
        return {
            'street': self.street,
            'city': self.city,
            'state': self.state,
            'zipCode': self.zip_code,
        }

    def to_dict(self):
        return {
            'id': self.id,
            'donor': self.donor.summary() if self.donor else self.donor_id,
            'foodName': self.food_name,
            'foodType': self.food_type,
            'description': self.description,
            'quantity': self.quantity,
            'unit': self.unit,
            'expirationDate': _iso(self.expiration_date),
            'imageUrl': self.image_url,
            'location': {'type': 'Point', 'coordinates': [self.longitude, self.latitude]},
            'pickupAddress': self.pickup_address,
            'pickupInstructions': self.pickup_instructions,
            'pickupTime': _iso(self.pickup_time),
            'status': self.status,
            'claimedBy': self.claimant.summary() if self.claimant else self.claimed_by,
            'claimedAt': _iso(self.claimed_at),
            'completedAt': _iso(self.completed_at),
            'expiredAt': _iso(self.expired_at),
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Donation {self.id} {self.food_name} [{self.status}]>'
