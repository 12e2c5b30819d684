from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user, jwt_required
from sqlalchemy.exc import SQLAlchemyError

from foodrescue.errors import Forbidden, InvalidState, NotFound, ValidationError, error_response
from foodrescue.extensions import db
from foodrescue.models.pickup_model import Pickup
from foodrescue.services import lifecycle

pickup_bp = Blueprint('pickup_bp', __name__, url_prefix='/api/pickups')


def _get_pickup(id):
    pickup = db.session.get(Pickup, id)
    if not pickup:
        raise NotFound('Pickup not found')
    return pickup


# GET pickups assigned to the caller
@pickup_bp.route('/my-pickups', methods=['GET'])
@jwt_required()
def get_my_pickups():
    try:
        pickups = (Pickup.query
                   .filter_by(volunteer_id=current_user.id)
                   .order_by(Pickup.created_at.desc(), Pickup.id.desc())
                   .all())
        return jsonify([pickup.to_dict() for pickup in pickups]), 200
    except SQLAlchemyError as e:
        current_app.logger.error('Database error: %s', e)
        return jsonify({'message': 'Database error occurred'}), 500


# PATCH to complete a pickup, which completes its donation
@pickup_bp.route('/<int:id>/complete', methods=['PATCH'])
@jwt_required()
def complete_pickup(id):
    try:
        pickup = _get_pickup(id)
        if pickup.volunteer_id != current_user.id:
            raise Forbidden('Not authorized')
        if pickup.status not in ('scheduled', 'in-progress'):
            raise InvalidState(f'Pickup is already {pickup.status}')

        body = request.get_json(silent=True) or {}
        _, pickup = lifecycle.complete(
            pickup.donation_id, current_user,
            thank_you_message=body.get('thankYouMessage', ''),
            notes=body.get('notes'),
            photos=body.get('photos'),
        )
        return jsonify(pickup.to_dict()), 200
    except (Forbidden, InvalidState, NotFound) as e:
        return error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error('Database error: %s', e)
        return jsonify({'message': 'Database error occurred'}), 500


# PATCH rating and feedback from the donor once the pickup is done
@pickup_bp.route('/<int:id>/feedback', methods=['PATCH'])
@jwt_required()
def rate_pickup(id):
    try:
        pickup = _get_pickup(id)
        if pickup.donation.donor_id != current_user.id and not current_user.is_admin:
            raise Forbidden('Not authorized')
        if pickup.status != 'completed':
            raise InvalidState('Only completed pickups can be rated')

        body = request.get_json(silent=True)
        if not body:
            raise ValidationError('No input data provided')
        if 'rating' in body:
            rating = body['rating']
            if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
                raise ValidationError('Rating must be an integer between 1 and 5')
            pickup.rating = rating
        if 'feedback' in body:
            pickup.feedback = body['feedback']

        db.session.commit()
        return jsonify(pickup.to_dict()), 200
    except (Forbidden, InvalidState, NotFound, ValidationError) as e:
        return error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error('Database error: %s', e)
        return jsonify({'message': 'Database error occurred'}), 500
