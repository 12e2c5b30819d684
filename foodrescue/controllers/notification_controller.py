from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user, jwt_required
from sqlalchemy.exc import SQLAlchemyError

from foodrescue.errors import Forbidden, NotFound, error_response
from foodrescue.extensions import db
from foodrescue.services import notifications

# Define the Blueprint for handling notifications
notification_blueprint = Blueprint('notification_blueprint', __name__, url_prefix='/api/notifications')


# GET the caller's notifications, newest first
@notification_blueprint.route('', methods=['GET'])
@jwt_required()
def get_notifications():
    try:
        unread_only = request.args.get('unread', '').lower() in ('1', 'true', 'yes')
        items = notifications.list_for_user(current_user, unread_only=unread_only)
        return jsonify([notification.to_dict() for notification in items]), 200
    except SQLAlchemyError as e:
        current_app.logger.error('Database error: %s', e)
        return jsonify({'message': 'Database error occurred'}), 500


# GET the number of unread notifications
@notification_blueprint.route('/unread-count', methods=['GET'])
@jwt_required()
def get_unread_count():
    try:
        return jsonify({'count': notifications.unread_count(current_user)}), 200
    except SQLAlchemyError as e:
        current_app.logger.error('Database error: %s', e)
        return jsonify({'message': 'Database error occurred'}), 500


# PATCH to mark every notification read
@notification_blueprint.route('/read-all', methods=['PATCH'])
@jwt_required()
def mark_all_notifications_read():
    try:
        updated = notifications.mark_all_read(current_user)
        return jsonify({'message': f'{updated} notifications marked as read', 'updated': updated}), 200
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error('Database error: %s', e)
        return jsonify({'message': 'Database error occurred'}), 500


# PATCH to mark one notification read
@notification_blueprint.route('/<int:id>/read', methods=['PATCH'])
@jwt_required()
def mark_notification_read(id):
    try:
        notification = notifications.mark_read(id, current_user)
        return jsonify(notification.to_dict()), 200
    except (Forbidden, NotFound) as e:
        return error_response(e)
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error('Database error: %s', e)
        return jsonify({'message': 'Database error occurred'}), 500
