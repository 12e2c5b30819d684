"""Identity plumbing on top of Flask-JWT-Extended.

Tokens are issued by the identity provider; their ``sub`` claim is the user
id. This module turns a token into a User and guards role-restricted routes.
"""
from functools import wraps

from flask import jsonify
from flask_jwt_extended import create_access_token, current_user, verify_jwt_in_request

from foodrescue.extensions import db, jwt
from foodrescue.models.user_model import User


@jwt.user_lookup_loader
def load_user(_jwt_header, jwt_data):
    try:
        return db.session.get(User, int(jwt_data['sub']))
    except (TypeError, ValueError):
        return None


@jwt.user_lookup_error_loader
def user_lookup_error(_jwt_header, _jwt_data):
    return jsonify({'message': 'User not found'}), 401


@jwt.unauthorized_loader
def missing_token(reason):
    return jsonify({'message': 'Authentication required', 'error': reason}), 401


@jwt.invalid_token_loader
def invalid_token(reason):
    return jsonify({'message': 'Invalid token', 'error': reason}), 401


@jwt.expired_token_loader
def expired_token(_jwt_header, _jwt_data):
    return jsonify({'message': 'Token has expired'}), 401


def issue_token(user):
    """Access token for ``user``; the test-suite signs requests with it."""
    return create_access_token(identity=str(user.id), additional_claims={'role': user.role})


def role_required(*roles):
    """Require a valid token for an active user holding one of ``roles``."""
    def wrapper(fn):
        @wraps(fn)
        def decorator(*args, **kwargs):
            verify_jwt_in_request()
            if not current_user.is_active:
                return jsonify({'message': 'Your account is inactive'}), 403
            if roles and current_user.role not in roles:
                return jsonify({'message': 'Access denied'}), 403
            return fn(*args, **kwargs)
        return decorator
    return wrapper
