"""Search over available donations.

``nearby`` narrows candidates with a latitude/longitude bounding box in SQL
and then keeps only those whose great-circle (haversine) distance from the
origin is within the radius. The boundary is inclusive.
"""
import math
from datetime import datetime, timedelta

from geopy.distance import great_circle
from sqlalchemy import or_

from foodrescue.errors import Forbidden, ValidationError
from foodrescue.models.donation_model import FOOD_TYPES, Donation

EXPIRY_TIMEFRAMES = ('today', 'tomorrow', 'week')

# great_circle's mean earth radius (6371.009 km) spread over one degree of arc
KM_PER_DEGREE = 111.195


def _start_of_day(moment):
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _end_of_day(moment):
    return moment.replace(hour=23, minute=59, second=59, microsecond=999999)


def expiry_window(timeframe, now=None):
    """Inclusive ``(start, end)`` expiration range for a timeframe keyword."""
    now = now or datetime.now()
    if timeframe == 'today':
        return now, _end_of_day(now)
    if timeframe == 'tomorrow':
        tomorrow = now + timedelta(days=1)
        return _start_of_day(tomorrow), _end_of_day(tomorrow)
    if timeframe == 'week':
        return now, now + timedelta(days=7)
    raise ValidationError(f'expiryTimeframe must be one of: {", ".join(EXPIRY_TIMEFRAMES)}')


def _normalize_filter(value):
    if value is None:
        return None
    value = value.strip()
    return None if value in ('', 'all') else value


def _filtered(food_type=None, expiry_timeframe=None, now=None):
    food_type = _normalize_filter(food_type)
    if food_type is not None and food_type not in FOOD_TYPES:
        raise ValidationError(f'foodType must be one of: {", ".join(FOOD_TYPES)}')

    window = None
    expiry_timeframe = _normalize_filter(expiry_timeframe)
    if expiry_timeframe is not None:
        window = expiry_window(expiry_timeframe, now)

    query = Donation.query.filter(Donation.status == 'available')
    if food_type is not None:
        query = query.filter(Donation.food_type == food_type)
    if window is not None:
        start, end = window
        query = query.filter(Donation.expiration_date >= start, Donation.expiration_date <= end)
    return query


def _bounding_box(query, latitude, longitude, radius_km):
    # pad the box slightly so float error never drops a boundary point
    lat_delta = radius_km / KM_PER_DEGREE * 1.01
    query = query.filter(Donation.latitude.between(latitude - lat_delta, latitude + lat_delta))

    cos_lat = math.cos(math.radians(latitude))
    if abs(latitude) + lat_delta >= 90 or cos_lat < 1e-6:
        return query  # box covers a pole, every longitude qualifies
    lng_delta = lat_delta / cos_lat
    if longitude - lng_delta < -180 or longitude + lng_delta > 180:
        return query  # box crosses the antimeridian
    return query.filter(Donation.longitude.between(longitude - lng_delta, longitude + lng_delta))


def nearby(latitude, longitude, radius_km=10, food_type=None, expiry_timeframe=None, now=None):
    """Available donations within ``radius_km`` of the origin.

    Returns ``(donation, distance_km)`` pairs sorted by distance, ties broken
    by soonest expiration.
    """
    if not -90 <= latitude <= 90 or not -180 <= longitude <= 180:
        raise ValidationError('Coordinates are out of range')
    if radius_km <= 0:
        raise ValidationError('Distance must be greater than zero')

    query = _bounding_box(_filtered(food_type, expiry_timeframe, now), latitude, longitude, radius_km)

    origin = (latitude, longitude)
    results = []
    for donation in query.all():
        distance = great_circle(origin, donation.coordinates).km
        if distance <= radius_km:
            results.append((donation, distance))

    results.sort(key=lambda pair: (pair[1], pair[0].expiration_date))
    return results


def list_available(address=None, food_type=None, expiry_timeframe=None, now=None):
    """Non-geospatial listing, optionally matching part of the pickup address."""
    query = _filtered(food_type, expiry_timeframe, now)

    address = (address or '').strip()
    if address:
        pattern = f'%{address}%'
        query = query.filter(or_(
            Donation.street.ilike(pattern),
            Donation.city.ilike(pattern),
            Donation.state.ilike(pattern),
            Donation.zip_code.ilike(pattern),
        ))

    return query.order_by(Donation.expiration_date.asc(), Donation.id.asc()).all()


def list_donations(status=None, food_type=None, donor_id=None):
    query = Donation.query
    if status:
        query = query.filter(Donation.status == status)
    if food_type:
        query = query.filter(Donation.food_type == food_type)
    if donor_id:
        query = query.filter(Donation.donor_id == donor_id)
    return query.order_by(Donation.created_at.desc(), Donation.id.desc()).all()


def history(user):
    """Donations a user created (donor) or claimed (volunteer); admins see all."""
    if user.role == 'donor':
        query = Donation.query.filter(Donation.donor_id == user.id)
    elif user.role == 'volunteer':
        query = Donation.query.filter(Donation.claimed_by == user.id)
    elif user.is_admin:
        query = Donation.query
    else:
        raise Forbidden('Unauthorized')
    return query.order_by(Donation.created_at.desc(), Donation.id.desc()).all()
