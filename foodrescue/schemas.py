"""Request body normalization for donations.

Clients send donations either as JSON or as multipart forms (when an image is
attached). Multipart bodies nest the address as ``pickupAddress[street]`` keys
or as a JSON string, and the point as a GeoJSON string or flat ``lat``/``lng``
fields. Everything is folded into one ``DonationInput`` before it reaches the
lifecycle engine.
"""
import json
from dataclasses import dataclass, fields
from datetime import datetime
from typing import Optional

from foodrescue.errors import ValidationError
from foodrescue.models.donation_model import FOOD_TYPES

ADDRESS_FIELDS = {
    'street': 'street',
    'city': 'city',
    'state': 'state',
    'zipCode': 'zip_code',
}

REQUIRED_FIELDS = ('food_name', 'description', 'quantity', 'unit', 'expiration_date',
                   'street', 'city', 'state', 'zip_code')


@dataclass
class DonationInput:
    food_name: Optional[str] = None
    food_type: Optional[str] = None
    description: Optional[str] = None
    quantity: Optional[float] = None
    unit: Optional[str] = None
    expiration_date: Optional[datetime] = None
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip_code: Optional[str] = None
    longitude: Optional[float] = None
    latitude: Optional[float] = None
    pickup_instructions: Optional[str] = None
    image_url: Optional[str] = None

    def to_fields(self):
        """Model column values that were actually supplied."""
        return {f.name: getattr(self, f.name) for f in fields(self)
                if getattr(self, f.name) is not None}

    def missing(self):
        return [name for name in REQUIRED_FIELDS if getattr(self, name) in (None, '')]


def parse_datetime(value, field_name='date'):
    """Parse an ISO-8601 string into a naive datetime in server local time."""
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith('Z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise ValidationError(f'Invalid {field_name}: {value}')
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone().replace(tzinfo=None)
    return parsed


def parse_float(value, field_name):
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValidationError(f'Invalid {field_name}: {value}')


def _maybe_json(value, field_name):
    if isinstance(value, str):
        try:
            return json.loads(value)
        except ValueError:
            raise ValidationError(f'{field_name} must be valid JSON')
    return value


def _text(value):
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def _extract_address(data):
    address = data.get('pickupAddress')
    if address is not None:
        address = _maybe_json(address, 'pickupAddress')
        if not isinstance(address, dict):
            raise ValidationError('pickupAddress must be an object')
        return address
    # multipart: pickupAddress[street]=...
    nested = {key: data.get(f'pickupAddress[{key}]') for key in ADDRESS_FIELDS}
    if any(value is not None for value in nested.values()):
        return nested
    return None


def _extract_point(data):
    location = data.get('location')
    if location is not None:
        location = _maybe_json(location, 'location')
        coordinates = location.get('coordinates') if isinstance(location, dict) else None
        if not isinstance(coordinates, (list, tuple)) or len(coordinates) != 2:
            raise ValidationError('location must be a GeoJSON Point with [longitude, latitude]')
        longitude, latitude = coordinates
        return parse_float(longitude, 'longitude'), parse_float(latitude, 'latitude')
    if data.get('lat') is not None and data.get('lng') is not None:
        return parse_float(data['lng'], 'longitude'), parse_float(data['lat'], 'latitude')
    return None


def parse_donation_input(data, partial=False):
    """Build a DonationInput from a JSON dict or a form MultiDict.

    With ``partial`` set (updates) only supplied fields are validated and
    missing mandatory fields are not reported.
    """
    if data is None:
        raise ValidationError('No input data provided')

    result = DonationInput(
        food_name=_text(data.get('foodName')),
        food_type=_text(data.get('foodType')),
        description=_text(data.get('description')),
        unit=_text(data.get('unit')),
        pickup_instructions=_text(data.get('pickupInstructions')),
    )

    if result.food_type is not None and result.food_type not in FOOD_TYPES:
        raise ValidationError(f'foodType must be one of: {", ".join(FOOD_TYPES)}')

    if data.get('quantity') not in (None, ''):
        result.quantity = parse_float(data['quantity'], 'quantity')
        if result.quantity <= 0:
            raise ValidationError('Quantity must be greater than zero')

    if data.get('expirationDate') not in (None, ''):
        result.expiration_date = parse_datetime(data['expirationDate'], 'expirationDate')

    address = _extract_address(data)
    if address is not None:
        for key, attr in ADDRESS_FIELDS.items():
            setattr(result, attr, _text(address.get(key)))

    point = _extract_point(data)
    if point is not None:
        result.longitude, result.latitude = point
        if not -180 <= result.longitude <= 180 or not -90 <= result.latitude <= 90:
            raise ValidationError('Coordinates are out of range')

    if not partial:
        missing = result.missing()
        if missing:
            raise ValidationError(f'Missing required fields: {", ".join(missing)}')
    elif address is not None:
        # a replacement address must be complete
        empty = [key for key, attr in ADDRESS_FIELDS.items() if getattr(result, attr) is None]
        if empty:
            raise ValidationError(f'Missing pickupAddress fields: {", ".join(empty)}')

    return result
