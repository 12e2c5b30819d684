from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user, jwt_required
from sqlalchemy.exc import SQLAlchemyError

from foodrescue.errors import (DependencyFailure, Forbidden, InvalidState, NotFound,
                               ValidationError, error_response)
from foodrescue.extensions import db
from foodrescue.schemas import parse_datetime, parse_donation_input, parse_float
from foodrescue.services import discovery, lifecycle

# Define the Blueprint for donation lifecycle and discovery
donation_bp = Blueprint('donation_bp', __name__, url_prefix='/api/donations')

CLIENT_ERRORS = (ValidationError, InvalidState, Forbidden, NotFound)


def _request_data():
    """JSON body, or form fields when the donation arrives as multipart."""
    if request.is_json:
        return request.get_json(silent=True)
    if request.form:
        return request.form
    return None


def _attach_image(data):
    image = request.files.get('image')
    if image is None or not image.filename:
        return
    data.image_url = current_app.extensions['image_store'].save(image)


def _discard_image(data):
    """Drop an upload whose donation was rejected."""
    if data is not None and data.image_url:
        current_app.extensions['image_store'].delete(data.image_url)


def _database_error(e):
    db.session.rollback()
    current_app.logger.error('Database error: %s', e)
    return jsonify({'message': 'Database error occurred'}), 500


# GET all donations (public, with filters)
@donation_bp.route('', methods=['GET'])
def get_donations():
    try:
        donations = discovery.list_donations(
            status=request.args.get('status'),
            food_type=request.args.get('foodType'),
            donor_id=request.args.get('donor', type=int),
        )
        return jsonify([donation.to_dict() for donation in donations]), 200
    except SQLAlchemyError as e:
        return _database_error(e)


# GET available donations, optionally filtered by address fragment
@donation_bp.route('/available', methods=['GET'])
def get_available_donations():
    try:
        donations = discovery.list_available(
            address=request.args.get('address'),
            food_type=request.args.get('foodType'),
            expiry_timeframe=request.args.get('expiryTimeframe'),
        )
        return jsonify([donation.to_dict() for donation in donations]), 200
    except ValidationError as e:
        return error_response(e)
    except SQLAlchemyError as e:
        return _database_error(e)


# GET donations near a point
@donation_bp.route('/nearby', methods=['GET'])
@jwt_required()
def get_nearby_donations():
    try:
        lat, lng = request.args.get('lat'), request.args.get('lng')
        if not lat or not lng:
            raise ValidationError('Location coordinates are required')

        radius = request.args.get('distance')
        radius_km = (parse_float(radius, 'distance') if radius
                     else current_app.config['DEFAULT_SEARCH_RADIUS_KM'])

        results = discovery.nearby(
            parse_float(lat, 'lat'),
            parse_float(lng, 'lng'),
            radius_km=radius_km,
            food_type=request.args.get('foodType'),
            expiry_timeframe=request.args.get('expiryTimeframe'),
        )
        payload = []
        for donation, distance in results:
            item = donation.to_dict()
            item['distanceKm'] = round(distance, 2)
            payload.append(item)
        return jsonify(payload), 200
    except ValidationError as e:
        return error_response(e)
    except SQLAlchemyError as e:
        return _database_error(e)


# GET the caller's donation history
@donation_bp.route('/user/history', methods=['GET'])
@jwt_required()
def get_history():
    try:
        donations = discovery.history(current_user)
        return jsonify([donation.to_dict() for donation in donations]), 200
    except Forbidden as e:
        return error_response(e)
    except SQLAlchemyError as e:
        return _database_error(e)


# GET a specific donation by ID
@donation_bp.route('/<int:id>', methods=['GET'])
def get_donation(id):
    try:
        donation = lifecycle.get_donation(id)
        return jsonify(donation.to_dict()), 200
    except NotFound as e:
        return error_response(e)
    except SQLAlchemyError as e:
        return _database_error(e)


# POST a new donation (JSON, or multipart with an image)
@donation_bp.route('', methods=['POST'])
@jwt_required()
def create_donation():
    data = None
    try:
        data = parse_donation_input(_request_data())
        _attach_image(data)
        donation = lifecycle.create(current_user, data)
        return jsonify(donation.to_dict()), 201
    except CLIENT_ERRORS as e:
        _discard_image(data)
        return error_response(e)
    except DependencyFailure as e:
        return error_response(e)
    except SQLAlchemyError as e:
        _discard_image(data)
        return _database_error(e)


# PUT/PATCH to update an available donation
@donation_bp.route('/<int:id>', methods=['PUT', 'PATCH'])
@jwt_required()
def update_donation(id):
    data = None
    try:
        data = parse_donation_input(_request_data() or {}, partial=True)
        _attach_image(data)
        donation = lifecycle.update(id, current_user, data)
        return jsonify(donation.to_dict()), 200
    except CLIENT_ERRORS as e:
        _discard_image(data)
        return error_response(e)
    except DependencyFailure as e:
        return error_response(e)
    except SQLAlchemyError as e:
        _discard_image(data)
        return _database_error(e)


# DELETE an available donation
@donation_bp.route('/<int:id>', methods=['DELETE'])
@jwt_required()
def delete_donation(id):
    try:
        lifecycle.delete(id, current_user)
        return jsonify({'message': 'Donation removed'}), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except SQLAlchemyError as e:
        return _database_error(e)


# Claim a donation
@donation_bp.route('/<int:id>/claim', methods=['PATCH', 'POST'])
@jwt_required()
def claim_donation(id):
    try:
        body = request.get_json(silent=True) or {}
        pickup_time = body.get('pickupTime')
        if pickup_time:
            pickup_time = parse_datetime(pickup_time, 'pickupTime')

        donation, pickup = lifecycle.claim(id, current_user, pickup_time=pickup_time or None)
        return jsonify({
            'message': 'Donation claimed successfully',
            'donation': donation.to_dict(),
            'pickup': pickup.to_dict(),
        }), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except SQLAlchemyError as e:
        return _database_error(e)


# Mark a claimed donation as delivered
@donation_bp.route('/<int:id>/complete', methods=['POST', 'PATCH'])
@donation_bp.route('/<int:id>/delivered', methods=['POST', 'PATCH'])
@jwt_required()
def complete_donation(id):
    try:
        body = request.get_json(silent=True) or {}
        donation, pickup = lifecycle.complete(
            id, current_user,
            thank_you_message=body.get('thankYouMessage', ''),
            notes=body.get('notes'),
            photos=body.get('photos'),
        )
        return jsonify({
            'message': 'Donation marked as completed',
            'donation': donation.to_dict(),
            'pickup': pickup.to_dict() if pickup else None,
        }), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except SQLAlchemyError as e:
        return _database_error(e)


# Mark a claimed donation as not delivered
@donation_bp.route('/<int:id>/expired', methods=['PATCH'])
@jwt_required()
def expire_donation(id):
    try:
        donation = lifecycle.expire(id, current_user)
        return jsonify({
            'message': 'Donation marked as not delivered',
            'donation': donation.to_dict(),
        }), 200
    except CLIENT_ERRORS as e:
        return error_response(e)
    except SQLAlchemyError as e:
        return _database_error(e)
