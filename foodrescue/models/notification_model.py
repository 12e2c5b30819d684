from datetime import datetime
from foodrescue.extensions import db

NOTIFICATION_TYPES = (
    'donation_request',
    'donation_accepted',
    'pickup_scheduled',
    'pickup_completed',
    'donation_expired',
    'system',
)


class Notification(db.Model):
    """In-app message for one user.

    Rows are never deleted; the read flag is the only field that changes after
    creation.
    """
    __tablename__ = 'notifications'

    id = db.Column(db.Integer, primary_key=True)
    recipient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    type = db.Column(db.Enum(*NOTIFICATION_TYPES, name='notification_type'), nullable=False)
    title = db.Column(db.String(150), nullable=False)
    message = db.Column(db.String(500), nullable=False)
    # Plain ids: a moderated donation may be deleted while its notifications stay
    donation_id = db.Column(db.Integer, nullable=True, index=True)
    pickup_id = db.Column(db.Integer, nullable=True)
    read = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'recipient': self.recipient_id,
            'sender': self.sender_id,
            'type': self.type,
            'title': self.title,
            'message': self.message,
            'relatedDonation': self.donation_id,
            'relatedPickup': self.pickup_id,
            'read': self.read,
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }
