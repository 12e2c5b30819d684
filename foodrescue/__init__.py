import logging

from flask import Flask, jsonify, send_from_directory
from werkzeug.exceptions import HTTPException, RequestEntityTooLarge

from foodrescue.config import Config
from foodrescue.extensions import db, migrate, jwt, scheduler, mail, cors
from foodrescue.services.storage import LocalImageStore
from foodrescue.services.sweep import SweepScheduler

# Import controllers (blueprints) for each module
from foodrescue import auth  # noqa: F401  registers the JWT loaders
from foodrescue.controllers.donation_controller import donation_bp
from foodrescue.controllers.notification_controller import notification_blueprint
from foodrescue.controllers.pickup_controller import pickup_bp
from foodrescue.controllers.admin_controller import admin_bp


def create_app(config_object=Config, image_store=None):
    """Flask application factory"""
    app = Flask(__name__)
    app.config.from_object(config_object)

    if not app.debug and not app.testing:
        logging.basicConfig(level=logging.INFO,
                            format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)
    jwt.init_app(app)
    mail.init_app(app)
    cors.init_app(app, resources={r'/api/*': {'origins': '*'}})
    scheduler.init_app(app)

    app.extensions['image_store'] = image_store or LocalImageStore(app.config['UPLOAD_FOLDER'])

    # Register Blueprints; each carries its own /api/... prefix
    app.register_blueprint(donation_bp)
    app.register_blueprint(notification_blueprint)
    app.register_blueprint(pickup_bp)
    app.register_blueprint(admin_bp)

    @app.route('/')
    def index():
        return jsonify({'message': 'Welcome to Food Rescue Hub API'})

    @app.route('/uploads/<path:filename>')
    def uploaded_file(filename):
        return send_from_directory(app.config['UPLOAD_FOLDER'], filename)

    @app.errorhandler(RequestEntityTooLarge)
    def file_too_large(e):
        return jsonify({'message': 'File is too large. Maximum size is 5MB.'}), 400

    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({'message': e.description}), e.code

    @app.errorhandler(Exception)
    def unexpected_error(e):
        app.logger.exception('Unhandled error: %s', e)
        return jsonify({'message': 'Something went wrong!'}), 500

    sweeper = SweepScheduler(app, scheduler)
    app.extensions['sweep'] = sweeper
    sweeper.setup_jobs()
    if app.config['SCHEDULER_ENABLED']:
        sweeper.start()

    return app
