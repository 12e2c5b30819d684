from datetime import datetime
from foodrescue.extensions import db

ROLES = ('donor', 'volunteer', 'admin')


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), nullable=False, unique=True)
    phone = db.Column(db.String(20))
    organization = db.Column(db.String(120))
    role = db.Column(db.Enum(*ROLES, name='user_role'), nullable=False, default='donor')
    status = db.Column(db.Enum('active', 'inactive', name='user_status'), nullable=False, default='active')

    street = db.Column(db.String(200))
    city = db.Column(db.String(100))
    state = db.Column(db.String(50))
    zip_code = db.Column(db.String(20))

    created_at = db.Column(db.DateTime, default=datetime.now, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phone': self.phone,
            'organization': self.organization,
            'role': self.role,
            'status': self.status,
            'address': {
                'street': self.street,
                'city': self.city,
                'state': self.state,
                'zipCode': self.zip_code,
            },
            'createdAt': self.created_at.isoformat() if self.created_at else None,
        }

    def summary(self):
        """Short form embedded in donation and pickup payloads."""
        return {'id': self.id, 'name': self.name, 'organization': self.organization}

    @property
    def is_admin(self):
        return self.role == 'admin'

    @property
    def is_active(self):
        return self.status == 'active'

    def __repr__(self):
        return f'<User {self.email} ({self.role})>'
