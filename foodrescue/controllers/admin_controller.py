from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user
from sqlalchemy.exc import SQLAlchemyError

from foodrescue.auth import role_required
from foodrescue.errors import Forbidden, InvalidState, NotFound, ValidationError, error_response
from foodrescue.extensions import db
from foodrescue.models.donation_model import Donation
from foodrescue.models.user_model import User
from foodrescue.schemas import parse_datetime
from foodrescue.services import lifecycle, notifications, stats

admin_bp = Blueprint('admin_bp', __name__, url_prefix='/api/admin')


def _database_error(e):
    db.session.rollback()
    current_app.logger.error('Database error: %s', e)
    return jsonify({'message': 'Database error occurred'}), 500


# GET dashboard statistics
@admin_bp.route('/stats', methods=['GET'])
@role_required('admin')
def get_stats():
    try:
        return jsonify(stats.dashboard()), 200
    except SQLAlchemyError as e:
        return _database_error(e)


# GET all users
@admin_bp.route('/users', methods=['GET'])
@role_required('admin')
def get_users():
    try:
        users = User.query.order_by(User.created_at.desc()).all()
        return jsonify([user.to_dict() for user in users]), 200
    except SQLAlchemyError as e:
        return _database_error(e)


# GET a specific user by ID
@admin_bp.route('/users/<int:id>', methods=['GET'])
@role_required('admin')
def get_user(id):
    try:
        user = db.session.get(User, id)
        if not user:
            raise NotFound('User not found')
        return jsonify(user.to_dict()), 200
    except NotFound as e:
        return error_response(e)
    except SQLAlchemyError as e:
        return _database_error(e)


# PATCH a user's status and tell them about it
@admin_bp.route('/users/<int:id>', methods=['PATCH'])
@role_required('admin')
def update_user_status(id):
    try:
        data = request.get_json(silent=True) or {}
        status = data.get('status')
        if status not in ('active', 'inactive'):
            raise ValidationError('Invalid status value')

        user = db.session.get(User, id)
        if not user:
            raise NotFound('User not found')

        user.status = status
        verb = 'activated' if status == 'active' else 'deactivated'
        notifications.notify(
            user, 'system', f'Account {verb.capitalize()}',
            f'Your account has been {verb} by an administrator.',
            sender=current_user,
        )
        db.session.commit()
        return jsonify(user.to_dict()), 200
    except (ValidationError, NotFound) as e:
        return error_response(e)
    except SQLAlchemyError as e:
        return _database_error(e)


# GET all donations, any status
@admin_bp.route('/donations', methods=['GET'])
@role_required('admin')
def get_all_donations():
    try:
        donations = Donation.query.order_by(Donation.created_at.desc(), Donation.id.desc()).all()
        return jsonify([donation.to_dict() for donation in donations]), 200
    except SQLAlchemyError as e:
        return _database_error(e)


# PATCH to moderate a donation (approve/remove)
@admin_bp.route('/donations/<int:id>', methods=['PATCH'])
@role_required('admin')
def moderate_donation(id):
    try:
        data = request.get_json(silent=True) or {}
        action = data.get('action')
        donation = lifecycle.moderate(id, current_user, action)
        if action == 'approve':
            return jsonify({'message': 'Donation approved', 'donation': donation.to_dict()}), 200
        return jsonify({
            'message': 'Donation removed',
            'donation': donation.to_dict() if donation else None,
        }), 200
    except (ValidationError, InvalidState, Forbidden, NotFound) as e:
        return error_response(e)
    except SQLAlchemyError as e:
        return _database_error(e)


# GET a report over a date range
@admin_bp.route('/reports/<string:type>', methods=['GET'])
@role_required('admin')
def get_report(type):
    try:
        start = request.args.get('startDate')
        end = request.args.get('endDate')
        report = stats.report(
            type,
            start=parse_datetime(start, 'startDate') if start else None,
            end=parse_datetime(end, 'endDate') if end else None,
        )
        return jsonify(report), 200
    except ValidationError as e:
        return error_response(e)
    except SQLAlchemyError as e:
        return _database_error(e)


# GET the scheduled sweep jobs
@admin_bp.route('/jobs', methods=['GET'])
@role_required('admin')
def get_jobs():
    sweeper = current_app.extensions['sweep']
    return jsonify({'running': sweeper.running, 'jobs': sweeper.get_jobs()}), 200
