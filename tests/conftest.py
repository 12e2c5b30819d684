from datetime import datetime, timedelta

import pytest

from foodrescue import create_app
from foodrescue.auth import issue_token
from foodrescue.config import TestingConfig
from foodrescue.extensions import db
from foodrescue.models.user_model import User
from foodrescue.schemas import DonationInput
from foodrescue.services import lifecycle

NOW = datetime(2026, 10, 18, 10, 0, 0)


@pytest.fixture
def app(tmp_path):
    class Config(TestingConfig):
        UPLOAD_FOLDER = str(tmp_path / 'uploads')

    app = create_app(Config)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _user(name, role, **kwargs):
    user = User(name=name, email=f'{name.lower()}@example.org', role=role, **kwargs)
    db.session.add(user)
    db.session.commit()
    return user


@pytest.fixture
def donor(app):
    return _user('Dana', 'donor', organization='Corner Bakery')


@pytest.fixture
def other_donor(app):
    return _user('Omar', 'donor')


@pytest.fixture
def volunteer(app):
    return _user('Vic', 'volunteer')


@pytest.fixture
def other_volunteer(app):
    return _user('Wren', 'volunteer')


@pytest.fixture
def admin(app):
    return _user('Ada', 'admin')


@pytest.fixture
def auth_header(app):
    def make(user):
        return {'Authorization': f'Bearer {issue_token(user)}'}
    return make


def donation_input(**overrides):
    values = dict(
        food_name='Fresh apples',
        food_type='produce',
        description='Two crates of apples',
        quantity=12.0,
        unit='kg',
        expiration_date=NOW + timedelta(days=2),
        street='1 Market St',
        city='Springfield',
        state='IL',
        zip_code='62701',
        longitude=0.0,
        latitude=0.0,
    )
    values.update(overrides)
    return DonationInput(**values)


@pytest.fixture
def make_donation(donor):
    """Create a donation through the lifecycle engine.

    ``now`` is the creation time; pass an earlier one to build donations
    that are already past their expiration date.
    """
    def make(owner=None, now=NOW, **overrides):
        return lifecycle.create(owner or donor, donation_input(**overrides), now=now)
    return make


def donation_payload(**overrides):
    payload = {
        'foodName': 'Vegetable soup',
        'foodType': 'prepared',
        'description': 'Ten litres, still warm',
        'quantity': 10,
        'unit': 'servings',
        'expirationDate': (datetime.now() + timedelta(days=1)).isoformat(),
        'pickupAddress': {'street': '5 Elm Rd', 'city': 'Springfield', 'state': 'IL', 'zipCode': '62704'},
        'location': {'type': 'Point', 'coordinates': [-89.65, 39.78]},
        'pickupInstructions': 'Ring the back door',
    }
    payload.update(overrides)
    return payload
