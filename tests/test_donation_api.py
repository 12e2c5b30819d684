"""HTTP tests for the donation, notification and pickup routes."""

import io
import os
from datetime import datetime, timedelta

import pytest

from conftest import donation_input, donation_payload
from foodrescue.extensions import db
from foodrescue.models.donation_model import Donation
from foodrescue.models.notification_model import Notification
from foodrescue.services import lifecycle


@pytest.fixture
def live_donation(donor):
    """An available donation expiring a day after the real clock."""
    def make(**overrides):
        overrides.setdefault('expiration_date', datetime.now() + timedelta(days=1))
        overrides.setdefault('latitude', 39.78)
        overrides.setdefault('longitude', -89.65)
        return lifecycle.create(donor, donation_input(**overrides), now=datetime.now())
    return make


def test_index(client):
    response = client.get('/')

    assert response.status_code == 200
    assert 'Food Rescue Hub' in response.get_json()['message']


def test_create_requires_token(client):
    response = client.post('/api/donations', json=donation_payload())

    assert response.status_code == 401
    assert response.get_json()['message'] == 'Authentication required'


def test_create_with_json(client, donor, auth_header):
    response = client.post('/api/donations', json=donation_payload(), headers=auth_header(donor))

    assert response.status_code == 201
    body = response.get_json()
    assert body['status'] == 'available'
    assert body['foodName'] == 'Vegetable soup'
    assert body['donor']['name'] == 'Dana'
    assert body['location']['coordinates'] == [-89.65, 39.78]
    assert body['pickupAddress']['zipCode'] == '62704'
    assert body['claimedBy'] is None


def test_create_by_volunteer_forbidden(client, volunteer, auth_header):
    response = client.post('/api/donations', json=donation_payload(), headers=auth_header(volunteer))

    assert response.status_code == 403


def test_create_validation_errors(client, donor, auth_header):
    past = (datetime.now() - timedelta(hours=1)).isoformat()

    missing = client.post('/api/donations', json={'foodName': 'Soup'}, headers=auth_header(donor))
    expired = client.post('/api/donations', json=donation_payload(expirationDate=past),
                          headers=auth_header(donor))

    assert missing.status_code == 400
    assert 'Missing required fields' in missing.get_json()['message']
    assert expired.status_code == 400
    assert Donation.query.count() == 0


def test_create_multipart_with_image(app, client, donor, auth_header):
    payload = donation_payload()
    form = {key: value for key, value in payload.items() if key not in ('pickupAddress', 'location')}
    form.update({f'pickupAddress[{key}]': value for key, value in payload['pickupAddress'].items()})
    form.update({'lat': '39.78', 'lng': '-89.65', 'quantity': '10'})
    form['image'] = (io.BytesIO(b'\x89PNG fake image bytes'), 'soup pot.png', 'image/png')

    response = client.post('/api/donations', data=form, content_type='multipart/form-data',
                           headers=auth_header(donor))

    assert response.status_code == 201
    image_url = response.get_json()['imageUrl']
    assert image_url.startswith('/uploads/')
    assert image_url.endswith('soup_pot.png')
    assert client.get(image_url).data == b'\x89PNG fake image bytes'


def test_create_rejects_non_image_upload(client, donor, auth_header):
    payload = donation_payload()
    form = {'foodName': payload['foodName'], 'foodType': 'prepared', 'description': 'Soup',
            'quantity': '3', 'unit': 'servings', 'expirationDate': payload['expirationDate'],
            'pickupAddress': '{"street": "5 Elm Rd", "city": "Springfield", "state": "IL", "zipCode": "62704"}',
            'image': (io.BytesIO(b'hello'), 'notes.txt', 'text/plain')}

    response = client.post('/api/donations', data=form, content_type='multipart/form-data',
                           headers=auth_header(donor))

    assert response.status_code == 400
    assert 'Unsupported image type' in response.get_json()['message']


def test_get_list_and_detail(client, live_donation):
    donation = live_donation()

    listing = client.get('/api/donations?status=available')
    detail = client.get(f'/api/donations/{donation.id}')
    missing = client.get('/api/donations/9999')

    assert [item['id'] for item in listing.get_json()] == [donation.id]
    assert detail.get_json()['id'] == donation.id
    assert missing.status_code == 404
    assert missing.get_json()['message'] == 'Donation not found'


def test_available_filters(client, live_donation):
    live_donation(food_name='Apples', city='Springfield')
    live_donation(food_name='Crackers', food_type='packaged', city='Chatham')

    by_address = client.get('/api/donations/available?address=chatham').get_json()
    by_type = client.get('/api/donations/available?foodType=produce').get_json()
    bad = client.get('/api/donations/available?expiryTimeframe=decade')

    assert [item['foodName'] for item in by_address] == ['Crackers']
    assert [item['foodName'] for item in by_type] == ['Apples']
    assert bad.status_code == 400


def test_nearby(client, volunteer, auth_header, live_donation):
    live_donation(food_name='Close', latitude=39.79, longitude=-89.65)
    live_donation(food_name='Far', latitude=41.88, longitude=-87.63)

    response = client.get('/api/donations/nearby?lat=39.78&lng=-89.65&distance=5',
                          headers=auth_header(volunteer))
    missing = client.get('/api/donations/nearby?lat=39.78', headers=auth_header(volunteer))
    anonymous = client.get('/api/donations/nearby?lat=39.78&lng=-89.65')

    body = response.get_json()
    assert [item['foodName'] for item in body] == ['Close']
    assert body[0]['distanceKm'] == pytest.approx(1.11, abs=0.01)
    assert missing.status_code == 400
    assert anonymous.status_code == 401


def test_claim_then_second_claim_fails(client, volunteer, other_volunteer, auth_header, live_donation):
    donation = live_donation()
    pickup_time = (datetime.now() + timedelta(hours=3)).replace(microsecond=0)

    first = client.patch(f'/api/donations/{donation.id}/claim', json={'pickupTime': pickup_time.isoformat()},
                         headers=auth_header(volunteer))
    second = client.patch(f'/api/donations/{donation.id}/claim', headers=auth_header(other_volunteer))

    assert first.status_code == 200
    body = first.get_json()
    assert body['donation']['status'] == 'claimed'
    assert body['donation']['claimedBy']['id'] == volunteer.id
    assert body['donation']['pickupTime'] == pickup_time.isoformat()
    assert body['pickup']['status'] == 'scheduled'

    assert second.status_code == 400
    assert second.get_json()['message'] == 'This donation is no longer available'
    assert db.session.get(Donation, donation.id).claimed_by == volunteer.id


def test_claim_by_donor_forbidden(client, donor, auth_header, live_donation):
    donation = live_donation()

    response = client.post(f'/api/donations/{donation.id}/claim', headers=auth_header(donor))

    assert response.status_code == 403


def test_full_round_trip(client, donor, volunteer, auth_header):
    created = client.post('/api/donations', json=donation_payload(), headers=auth_header(donor))
    donation_id = created.get_json()['id']

    claimed = client.patch(f'/api/donations/{donation_id}/claim', headers=auth_header(volunteer))
    completed = client.post(f'/api/donations/{donation_id}/complete',
                            json={'thankYouMessage': 'Thank you!'}, headers=auth_header(volunteer))

    assert claimed.status_code == 200
    assert completed.status_code == 200
    assert completed.get_json()['donation']['status'] == 'completed'
    assert completed.get_json()['pickup']['status'] == 'completed'

    donor_feed = client.get('/api/notifications', headers=auth_header(donor)).get_json()
    volunteer_feed = client.get('/api/notifications', headers=auth_header(volunteer)).get_json()
    assert sorted(n['type'] for n in donor_feed) == ['donation_request', 'pickup_completed']
    assert [n['type'] for n in volunteer_feed] == ['pickup_completed']
    assert all(n['relatedDonation'] == donation_id for n in donor_feed + volunteer_feed)

    history = client.get('/api/donations/user/history', headers=auth_header(volunteer)).get_json()
    assert [item['id'] for item in history] == [donation_id]


def test_delivered_alias_and_not_delivered(client, volunteer, auth_header, live_donation):
    delivered = live_donation(food_name='Delivered')
    dropped = live_donation(food_name='Dropped')
    for donation in (delivered, dropped):
        client.patch(f'/api/donations/{donation.id}/claim', headers=auth_header(volunteer))

    first = client.patch(f'/api/donations/{delivered.id}/delivered', headers=auth_header(volunteer))
    second = client.patch(f'/api/donations/{dropped.id}/expired', headers=auth_header(volunteer))
    again = client.patch(f'/api/donations/{dropped.id}/expired', headers=auth_header(volunteer))

    assert first.get_json()['donation']['status'] == 'completed'
    assert second.get_json()['donation']['status'] == 'expired'
    assert again.status_code == 400


def test_update_and_delete(client, donor, other_donor, auth_header, live_donation):
    donation = live_donation()

    updated = client.put(f'/api/donations/{donation.id}', json={'quantity': 4, 'unit': 'kg'},
                         headers=auth_header(donor))
    stranger = client.delete(f'/api/donations/{donation.id}', headers=auth_header(other_donor))
    deleted = client.delete(f'/api/donations/{donation.id}', headers=auth_header(donor))

    assert updated.status_code == 200
    assert updated.get_json()['quantity'] == 4.0
    assert stranger.status_code == 403
    assert deleted.status_code == 200
    assert client.get(f'/api/donations/{donation.id}').status_code == 404


def test_update_claimed_rejected(client, donor, volunteer, auth_header, live_donation):
    donation = live_donation()
    client.patch(f'/api/donations/{donation.id}/claim', headers=auth_header(volunteer))

    response = client.patch(f'/api/donations/{donation.id}', json={'quantity': 1},
                            headers=auth_header(donor))

    assert response.status_code == 400
    assert db.session.get(Donation, donation.id).quantity == 12.0


def test_notification_routes(client, donor, volunteer, auth_header, live_donation):
    donation = live_donation()
    client.patch(f'/api/donations/{donation.id}/claim', headers=auth_header(volunteer))
    note = Notification.query.filter_by(recipient_id=donor.id).one()

    count = client.get('/api/notifications/unread-count', headers=auth_header(donor))
    forbidden = client.patch(f'/api/notifications/{note.id}/read', headers=auth_header(volunteer))
    marked = client.patch(f'/api/notifications/{note.id}/read', headers=auth_header(donor))
    unread = client.get('/api/notifications?unread=true', headers=auth_header(donor))
    read_all = client.patch('/api/notifications/read-all', headers=auth_header(donor))

    assert count.get_json() == {'count': 1}
    assert forbidden.status_code == 403
    assert marked.get_json()['read'] is True
    assert unread.get_json() == []
    assert read_all.get_json()['updated'] == 0


def test_pickup_routes(client, donor, volunteer, other_volunteer, auth_header, live_donation):
    donation = live_donation()
    claimed = client.patch(f'/api/donations/{donation.id}/claim', headers=auth_header(volunteer))
    pickup_id = claimed.get_json()['pickup']['id']

    mine = client.get('/api/pickups/my-pickups', headers=auth_header(volunteer)).get_json()
    early_rating = client.patch(f'/api/pickups/{pickup_id}/feedback', json={'rating': 5},
                                headers=auth_header(donor))
    wrong_volunteer = client.patch(f'/api/pickups/{pickup_id}/complete', headers=auth_header(other_volunteer))
    done = client.patch(f'/api/pickups/{pickup_id}/complete', json={'notes': 'Left at shelter'},
                        headers=auth_header(volunteer))
    bad_rating = client.patch(f'/api/pickups/{pickup_id}/feedback', json={'rating': 9},
                              headers=auth_header(donor))
    rated = client.patch(f'/api/pickups/{pickup_id}/feedback', json={'rating': 5, 'feedback': 'Prompt'},
                         headers=auth_header(donor))

    assert [p['id'] for p in mine] == [pickup_id]
    assert early_rating.status_code == 400
    assert wrong_volunteer.status_code == 403
    assert done.get_json()['status'] == 'completed'
    assert done.get_json()['completionNotes'] == 'Left at shelter'
    assert db.session.get(Donation, donation.id).status == 'completed'
    assert bad_rating.status_code == 400
    assert rated.get_json()['rating'] == 5


def test_inactive_user_cannot_act(client, donor, auth_header):
    donor.status = 'inactive'
    db.session.commit()

    response = client.post('/api/donations', json=donation_payload(), headers=auth_header(donor))

    assert response.status_code == 403


def _multipart(payload, **overrides):
    form = {key: value for key, value in payload.items() if key not in ('pickupAddress', 'location')}
    form.update({f'pickupAddress[{key}]': value for key, value in payload['pickupAddress'].items()})
    form.update({'lat': '39.78', 'lng': '-89.65', 'quantity': '10'})
    form['image'] = (io.BytesIO(b'\x89PNG fake image bytes'), 'soup.png', 'image/png')
    form.update(overrides)
    return form


def _stored_uploads(app):
    folder = app.config['UPLOAD_FOLDER']
    return os.listdir(folder) if os.path.isdir(folder) else []


def test_rejected_create_leaves_no_upload(app, client, donor, volunteer, auth_header):
    past = (datetime.now() - timedelta(hours=1)).isoformat()

    forbidden = client.post('/api/donations', data=_multipart(donation_payload()),
                            content_type='multipart/form-data', headers=auth_header(volunteer))
    expired = client.post('/api/donations', data=_multipart(donation_payload(expirationDate=past)),
                          content_type='multipart/form-data', headers=auth_header(donor))

    assert forbidden.status_code == 403
    assert expired.status_code == 400
    assert _stored_uploads(app) == []


def test_rejected_update_leaves_no_upload(app, client, donor, volunteer, auth_header, live_donation):
    donation = live_donation()
    client.patch(f'/api/donations/{donation.id}/claim', headers=auth_header(volunteer))

    response = client.patch(f'/api/donations/{donation.id}',
                            data={'image': (io.BytesIO(b'\x89PNG new photo'), 'new.png', 'image/png')},
                            content_type='multipart/form-data', headers=auth_header(donor))

    assert response.status_code == 400
    assert _stored_uploads(app) == []
